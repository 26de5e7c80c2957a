from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict

from .models import OrderStatus


class APIModel(BaseModel):
    """Base for request/response bodies: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def dump(model_cls: type[APIModel], obj) -> dict:
    return model_cls.model_validate(obj).model_dump(mode="json", by_alias=True)


# -------------------- Identity --------------------

class UserRegister(APIModel):
    username: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


class AdminRegister(APIModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginRequest(APIModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(APIModel):
    email: str = Field(..., min_length=1)


class TokenPasswordUpdate(APIModel):
    token: str = Field(..., min_length=1)
    # original clients send "newpassword"
    new_password: str = Field(..., min_length=1, alias="newpassword")


class UserUpdate(APIModel):
    username: Optional[str] = Field(default=None, min_length=1)
    address: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = Field(default=None, min_length=1)


class PasswordUpdate(APIModel):
    # presence is checked by crud.update_password so a missing user is reported first
    old_password: Optional[str] = None
    new_password: Optional[str] = None


class AnswerPasswordReset(APIModel):
    email: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class AdminRead(APIModel):
    id: str
    email: str
    created_at: Optional[datetime] = None


class UserRead(APIModel):
    id: str
    username: str
    email: str
    address: str
    phone: str
    is_verified: bool = False
    profile_image: Optional[str] = None
    created_at: Optional[datetime] = None


# -------------------- Catalog --------------------

class RestaurantCreate(APIModel):
    title: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    image_url: Optional[str] = None
    time: Optional[str] = None
    pickup: bool = True
    delivery: bool = True
    is_open: bool = True
    logo_url: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    rating_count: Optional[str] = None
    code: Optional[str] = None


class RestaurantUpdate(APIModel):
    title: Optional[str] = Field(default=None, min_length=1)
    address: Optional[str] = Field(default=None, min_length=1)
    image_url: Optional[str] = None
    time: Optional[str] = None
    pickup: Optional[bool] = None
    delivery: Optional[bool] = None
    is_open: Optional[bool] = None
    logo_url: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    rating_count: Optional[str] = None
    code: Optional[str] = None


class RestaurantRead(APIModel):
    id: str
    title: str
    address: str
    image_url: Optional[str] = None
    time: Optional[str] = None
    pickup: bool = True
    delivery: bool = True
    is_open: bool = True
    logo_url: Optional[str] = None
    rating: Optional[float] = None
    rating_count: Optional[str] = None
    code: Optional[str] = None
    foods: list[str] = []

    @field_validator("foods", mode="before")
    @classmethod
    def food_ids(cls, v):
        return [getattr(f, "id", f) for f in v or []]


class FoodCreate(APIModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0, allow_inf_nan=False)
    restaurant: str = Field(..., min_length=1)
    image_url: Optional[str] = None
    food_tags: Optional[str] = None
    category: Optional[str] = None
    code: Optional[str] = None
    is_available: bool = True
    rating: Optional[float] = Field(default=None, ge=0, le=5)


class FoodUpdate(APIModel):
    # the owning restaurant is fixed at creation
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    price: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    image_url: Optional[str] = None
    food_tags: Optional[str] = None
    category: Optional[str] = None
    code: Optional[str] = None
    is_available: Optional[bool] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)


class FoodRead(APIModel):
    id: str
    title: str
    description: str
    price: float
    restaurant_id: str = Field(validation_alias="restaurant_id", serialization_alias="restaurant")
    image_url: Optional[str] = None
    food_tags: Optional[str] = None
    category: Optional[str] = None
    code: Optional[str] = None
    is_available: bool = True
    rating: Optional[float] = None


class CategoryCreate(APIModel):
    title: str = Field(..., min_length=1)
    image_url: Optional[str] = None


class CategoryUpdate(APIModel):
    title: Optional[str] = Field(default=None, min_length=1)
    image_url: Optional[str] = None


class CategoryRead(APIModel):
    id: str
    title: str
    image_url: Optional[str] = None


# -------------------- Orders --------------------

class CartItem(BaseModel):
    """A cart line. Only ``price`` is required; any other keys are kept as sent."""
    price: float = Field(..., allow_inf_nan=False)
    model_config = ConfigDict(extra="allow")


class OrderCreate(APIModel):
    cart: Optional[list[CartItem]] = None


class OrderStatusUpdate(APIModel):
    status: OrderStatus


class OrderRead(APIModel):
    id: str
    foods: list[dict]
    payment: float
    buyer_id: Optional[str] = Field(default=None, validation_alias="buyer_id", serialization_alias="buyer")
    status: OrderStatus
    created_at: Optional[datetime] = None
