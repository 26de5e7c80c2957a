import logging
import math
from typing import List, Optional, Type

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import errors, models, schemas
from .auth import hash_password, verify_password
from .models import OrderStatus

logger = logging.getLogger(__name__)

# Forward order of the delivery pipeline; cancelled sits outside it
STATUS_FLOW = [
    OrderStatus.PLACED,
    OrderStatus.PREPARING,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
]
TERMINAL_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


def _commit(db: Session, obj, on_conflict: Type[errors.AppError] = errors.ConflictError) -> None:
    db.add(obj)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise on_conflict("integrity error") from e
    db.refresh(obj)


def _get_or_404(db: Session, model, obj_id: str, label: str):
    obj = db.get(model, obj_id)
    if obj is None:
        raise errors.NotFoundError(f"{label} not found")
    return obj


def _apply_partial(obj, changes: dict) -> None:
    for field, value in changes.items():
        setattr(obj, field, value)


# -------------------- Identity --------------------

def _find_by_email(db: Session, model, email: str):
    return db.query(model).filter(model.email == email).first()


def create_admin(db: Session, data: schemas.AdminRegister) -> models.Admin:
    if _find_by_email(db, models.Admin, data.email):
        raise errors.DuplicateEmailError("Admin already exists")
    admin = models.Admin(email=data.email, password_hash=hash_password(data.password))
    _commit(db, admin, errors.DuplicateEmailError)
    logger.info(f"Admin registered: {admin.id}")
    return admin


def create_user(db: Session, data: schemas.UserRegister, verify_token: str) -> models.User:
    if _find_by_email(db, models.User, data.email):
        raise errors.DuplicateEmailError("User already exists")
    user = models.User(
        username=data.username,
        email=data.email,
        password_hash=hash_password(data.password),
        address=data.address,
        phone=data.phone,
        answer=data.answer,
        is_verified=False,
        verify_token=verify_token,
    )
    _commit(db, user, errors.DuplicateEmailError)
    logger.info(f"User registered: {user.id}")
    return user


def authenticate(db: Session, model: Type[models.Admin] | Type[models.User], email: str, password: str):
    """Return the principal for ``email`` if ``password`` matches.

    Raises NotFoundError for an unknown email and IncorrectPasswordError for a
    wrong password; callers facing the network should not tell them apart.
    """
    principal = _find_by_email(db, model, email)
    if principal is None:
        raise errors.NotFoundError(f"{model.__name__} not found")
    if not verify_password(password, principal.password_hash):
        raise errors.IncorrectPasswordError()
    return principal


def verify_email(db: Session, token: str) -> models.User:
    user = db.query(models.User).filter(models.User.verify_token == token).first()
    if user is None:
        raise errors.InvalidTokenError("Invalid or expired token")
    user.is_verified = True
    user.verify_token = None
    db.commit()
    db.refresh(user)
    logger.info(f"User verified: {user.id}")
    return user


def request_password_reset(db: Session, email: str, token: str) -> models.User:
    user = _find_by_email(db, models.User, email)
    if user is None:
        raise errors.NotFoundError("User not found")
    user.verify_token = token
    db.commit()
    db.refresh(user)
    return user


def reset_password_with_token(db: Session, token: str, new_password: str) -> models.User:
    user = db.query(models.User).filter(models.User.verify_token == token).first()
    if user is None:
        raise errors.InvalidTokenError("Invalid or expired token")
    user.password_hash = hash_password(new_password)
    user.verify_token = None
    # the reset code arrived by mail, so the address is proven
    user.is_verified = True
    db.commit()
    db.refresh(user)
    logger.info(f"Password reset by token for user {user.id}")
    return user


def reset_password_with_answer(db: Session, email: str, answer: str, new_password: str) -> models.User:
    # Security-question reset: a weak factor, kept for client compatibility
    user = (
        db.query(models.User)
        .filter(models.User.email == email, models.User.answer == answer)
        .first()
    )
    if user is None:
        raise errors.ValidationError("User not found or invalid answer")
    user.password_hash = hash_password(new_password)
    db.commit()
    db.refresh(user)
    logger.info(f"Password reset by security answer for user {user.id}")
    return user


def get_user(db: Session, user_id: str) -> models.User:
    return _get_or_404(db, models.User, user_id, "User")


def update_user(db: Session, user_id: str, data: schemas.UserUpdate) -> models.User:
    user = get_user(db, user_id)
    _apply_partial(user, data.model_dump(exclude_unset=True, exclude_none=True))
    db.commit()
    db.refresh(user)
    return user


def update_password(db: Session, user_id: str, old_password: Optional[str], new_password: Optional[str]) -> None:
    user = get_user(db, user_id)
    if not old_password or not new_password:
        raise errors.MissingFieldsError("Please provide both old and new passwords")
    if not verify_password(old_password, user.password_hash):
        raise errors.IncorrectPasswordError("Incorrect old password")
    user.password_hash = hash_password(new_password)
    db.commit()
    logger.info(f"Password updated for user {user.id}")


def set_profile_image(db: Session, user_id: str, path: str) -> models.User:
    user = get_user(db, user_id)
    user.profile_image = path
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: str) -> None:
    user = get_user(db, user_id)
    db.delete(user)
    db.commit()
    logger.info(f"User deleted: {user_id}")


# -------------------- Restaurants --------------------

def create_restaurant(db: Session, data: schemas.RestaurantCreate) -> models.Restaurant:
    restaurant = models.Restaurant(**data.model_dump())
    _commit(db, restaurant)
    return restaurant


def list_restaurants(db: Session) -> List[models.Restaurant]:
    return db.query(models.Restaurant).order_by(models.Restaurant.created_at).all()


def get_restaurant(db: Session, restaurant_id: str) -> models.Restaurant:
    return _get_or_404(db, models.Restaurant, restaurant_id, "Restaurant")


def update_restaurant(db: Session, restaurant_id: str, data: schemas.RestaurantUpdate) -> models.Restaurant:
    restaurant = get_restaurant(db, restaurant_id)
    _apply_partial(restaurant, data.model_dump(exclude_unset=True, exclude_none=True))
    db.commit()
    db.refresh(restaurant)
    return restaurant


def delete_restaurant(db: Session, restaurant_id: str) -> None:
    # its foods go with it
    restaurant = get_restaurant(db, restaurant_id)
    db.delete(restaurant)
    db.commit()


# -------------------- Foods --------------------

def create_food(db: Session, data: schemas.FoodCreate) -> models.Food:
    get_restaurant(db, data.restaurant)
    fields = data.model_dump(exclude={"restaurant"})
    food = models.Food(restaurant_id=data.restaurant, **fields)
    _commit(db, food)
    return food


def list_foods(db: Session, q: str = "") -> List[models.Food]:
    query = db.query(models.Food)
    if q:
        # ORM filter, parameterized
        pattern = f"%{q}%"
        query = query.filter(or_(models.Food.title.like(pattern), models.Food.description.like(pattern)))
    return query.order_by(models.Food.created_at).all()


def list_foods_by_restaurant(db: Session, restaurant_id: str) -> List[models.Food]:
    return (
        db.query(models.Food)
        .filter(models.Food.restaurant_id == restaurant_id)
        .order_by(models.Food.created_at)
        .all()
    )


def get_food(db: Session, food_id: str) -> models.Food:
    return _get_or_404(db, models.Food, food_id, "Food")


def update_food(db: Session, food_id: str, data: schemas.FoodUpdate) -> models.Food:
    food = get_food(db, food_id)
    _apply_partial(food, data.model_dump(exclude_unset=True, exclude_none=True))
    db.commit()
    db.refresh(food)
    return food


def delete_food(db: Session, food_id: str) -> None:
    food = get_food(db, food_id)
    db.delete(food)
    db.commit()


# -------------------- Categories --------------------

def create_category(db: Session, data: schemas.CategoryCreate) -> models.Category:
    category = models.Category(**data.model_dump())
    _commit(db, category)
    return category


def list_categories(db: Session) -> List[models.Category]:
    return db.query(models.Category).order_by(models.Category.created_at).all()


def update_category(db: Session, category_id: str, data: schemas.CategoryUpdate) -> models.Category:
    category = _get_or_404(db, models.Category, category_id, "Category")
    _apply_partial(category, data.model_dump(exclude_unset=True, exclude_none=True))
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: str) -> None:
    category = _get_or_404(db, models.Category, category_id, "Category")
    db.delete(category)
    db.commit()


# -------------------- Orders --------------------

def place_order(db: Session, cart: Optional[List[schemas.CartItem]], buyer_id: str) -> models.Order:
    if not cart:
        raise errors.MissingCartError()
    get_user(db, buyer_id)
    # raw sum, no tax/discount/rounding
    payment = sum(item.price for item in cart)
    if not math.isfinite(payment):
        raise errors.ValidationError("Order total is out of range")
    order = models.Order(
        foods=[item.model_dump() for item in cart],
        payment=payment,
        buyer_id=buyer_id,
        status=OrderStatus.PLACED.value,
    )
    _commit(db, order)
    logger.info(f"Order {order.id} placed by {buyer_id}: {len(cart)} items, payment={payment}")
    return order


def list_orders_for_buyer(db: Session, buyer_id: str) -> List[models.Order]:
    return (
        db.query(models.Order)
        .filter(models.Order.buyer_id == buyer_id)
        .order_by(models.Order.created_at.desc())
        .all()
    )


def check_transition(current: OrderStatus, new: OrderStatus) -> None:
    if current == new:
        return
    if current in TERMINAL_STATUSES:
        raise errors.InvalidTransitionError(f"Order is already {current.value}")
    if new == OrderStatus.CANCELLED:
        return
    if STATUS_FLOW.index(new) < STATUS_FLOW.index(current):
        raise errors.InvalidTransitionError(f"Cannot move order from {current.value} back to {new.value}")


def update_order_status(db: Session, order_id: str, status: OrderStatus) -> models.Order:
    order = _get_or_404(db, models.Order, order_id, "Order")
    current = OrderStatus(order.status)
    check_transition(current, status)
    if current != status:
        order.status = status.value
        db.commit()
        db.refresh(order)
        logger.info(f"Order {order.id} status {current.value} -> {status.value}")
    return order
