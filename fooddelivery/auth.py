import enum
import time
from typing import Optional

import jwt
from fastapi import Depends, Request
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import errors, models
from .config import Settings, get_settings
from .db import get_db

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")


class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


PRINCIPAL_MODELS = {
    Role.USER: models.User,
    Role.ADMIN: models.Admin,
}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


class TokenService:
    """Signs and checks stateless bearer tokens.

    Tokens carry ``{id, role, iat, exp}``. There is no revocation list, so
    changing the secret is the only way to invalidate issued tokens.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", lifetime_seconds: int = 7 * 24 * 60 * 60):
        self.secret = secret
        self.algorithm = algorithm
        self.lifetime_seconds = lifetime_seconds

    def issue(self, principal_id: str, role: Role, issued_at: Optional[int] = None) -> str:
        now = int(time.time()) if issued_at is None else issued_at
        payload = {"id": principal_id, "role": Role(role).value, "iat": now, "exp": now + self.lifetime_seconds}
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> dict:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as e:
            raise errors.ExpiredTokenError() from e
        except jwt.PyJWTError as e:
            raise errors.InvalidTokenError() from e
        if not claims.get("id"):
            raise errors.InvalidTokenError()
        return claims


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings.jwt_secret, settings.jwt_algorithm, settings.token_lifetime_seconds)


def bearer_token(request: Request) -> str:
    auth = request.headers.get("authorization")
    if not auth or not auth.lower().startswith("bearer "):
        raise errors.UnauthorizedError("Missing bearer token")
    parts = auth.split(None, 1)
    if len(parts) != 2 or not parts[1].strip():
        raise errors.UnauthorizedError("Missing bearer token")
    return parts[1].strip()


def require_role(role: Optional[Role] = None):
    """Build a dependency that authenticates the caller.

    With no role, any valid token passes. With a role, the token's principal
    must also exist in that role's namespace, otherwise the request is
    forbidden. The resolved id is stored on ``request.state.principal_id``.
    """

    def dependency(
        request: Request,
        tokens: TokenService = Depends(get_token_service),
        db: Session = Depends(get_db),
    ) -> str:
        claims = tokens.verify(bearer_token(request))
        principal_id = str(claims["id"])
        if role is not None and db.get(PRINCIPAL_MODELS[role], principal_id) is None:
            raise errors.ForbiddenError(f"{role.value} access required")
        request.state.principal_id = principal_id
        return principal_id

    return dependency


authenticated = require_role()
admin_required = require_role(Role.ADMIN)
