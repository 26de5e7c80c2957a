import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, JSON, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .db import Base


def new_id() -> str:
    return uuid.uuid4().hex


class OrderStatus(str, enum.Enum):
    """Order lifecycle. Delivered and cancelled are terminal."""
    PLACED = "placed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Admin(Base):
    __tablename__ = "admins"

    id = Column(String(32), primary_key=True, default=new_id)
    # unique per namespace: admins and users may share an email
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_id)
    username = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    address = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    # security question answer, used by /user/resetPassword
    answer = Column(String, nullable=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    # shared by email verification and the forgot-password flow
    verify_token = Column(String, nullable=True, index=True)
    profile_image = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(String, nullable=False, index=True)
    address = Column(String, nullable=False)
    image_url = Column(String, nullable=True)
    time = Column(String, nullable=True)
    pickup = Column(Boolean, nullable=False, default=True)
    delivery = Column(Boolean, nullable=False, default=True)
    is_open = Column(Boolean, nullable=False, default=True)
    logo_url = Column(String, nullable=True)
    rating = Column(Float, nullable=True)
    rating_count = Column(String, nullable=True)
    code = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    foods = relationship("Food", cascade="all, delete-orphan", order_by="Food.created_at")


class Food(Base):
    __tablename__ = "foods"

    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(String, nullable=False, index=True)
    description = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    restaurant_id = Column(String(32), ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String, nullable=True)
    food_tags = Column(String, nullable=True)
    category = Column(String, nullable=True)
    code = Column(String, nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    rating = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    image_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(32), primary_key=True, default=new_id)
    # cart lines exactly as submitted at placement time
    foods = Column(JSON, nullable=False)
    payment = Column(Float, nullable=False)
    # orders outlive the buyer account
    buyer_id = Column(String(32), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(String, nullable=False, default=OrderStatus.PLACED.value, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
