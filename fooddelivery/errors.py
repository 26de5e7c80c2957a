"""Application error taxonomy.

Every error carries the HTTP status it maps to; the handlers in ``main``
turn them into the ``{success, message}`` envelope.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class MissingFieldsError(ValidationError):
    default_message = "Please provide all fields"


class MissingCartError(ValidationError):
    default_message = "Please provide a cart"


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Authentication required"


class InvalidTokenError(UnauthorizedError):
    default_message = "Invalid token"


class ExpiredTokenError(UnauthorizedError):
    default_message = "Token has expired"


class IncorrectPasswordError(UnauthorizedError):
    default_message = "Incorrect password"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"


class DuplicateEmailError(ConflictError):
    default_message = "Email already registered"


class InvalidTransitionError(ConflictError):
    default_message = "Invalid status transition"


class InternalError(AppError):
    pass
