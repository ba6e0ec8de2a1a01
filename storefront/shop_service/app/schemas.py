"""Pydantic schemas for the storefront API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt, field_validator

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _strip_required(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        msg = "value must be non-empty"
        raise ValueError(msg)
    return cleaned


class Pagination(BaseModel):
    page: PositiveInt
    limit: PositiveInt
    total: NonNegativeInt
    total_pages: NonNegativeInt = Field(alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


class MessageResponse(BaseModel):
    message: str


# Auth


class RegisterRequest(BaseModel):
    email: str = Field(max_length=255, pattern=_EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=128)
    full_name: str = Field(min_length=2, max_length=255, alias="fullName")
    phone: str | None = Field(default=None, max_length=32)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("full_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return _strip_required(value)


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value: str) -> str:
        return value.strip().lower()


class UserResponse(BaseModel):
    id: PositiveInt
    email: str
    full_name: str | None = Field(alias="fullName")
    phone: str | None = None
    role: str
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class RegisterResponse(BaseModel):
    user: UserResponse


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


# Catalog


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    description: str | None = None

    @field_validator("name")
    @classmethod
    def _strip(cls, value: str) -> str:
        return _strip_required(value)


class CategoryResponse(BaseModel):
    id: PositiveInt
    name: str
    slug: str
    description: str | None = None
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class CategoryDetailResponse(CategoryResponse):
    product_count: NonNegativeInt = Field(alias="productCount")


class CategorySummary(BaseModel):
    id: PositiveInt
    name: str
    slug: str


class ProductImageResponse(BaseModel):
    id: PositiveInt
    url: str
    is_primary: bool = Field(alias="isPrimary")
    sort_order: int = Field(alias="sortOrder")

    model_config = ConfigDict(populate_by_name=True)


class ProductResponse(BaseModel):
    id: PositiveInt
    name: str
    slug: str
    description: str | None = None
    price: Decimal
    stock_quantity: NonNegativeInt = Field(alias="stockQuantity")
    category_id: int | None = Field(alias="categoryId")
    category: CategorySummary | None = None
    is_active: bool = Field(alias="isActive")
    images: list[ProductImageResponse]
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class ProductListResponse(BaseModel):
    products: list[ProductResponse]
    pagination: Pagination


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    description: str | None = None
    price: Decimal = Field(gt=Decimal("0"), max_digits=12, decimal_places=2)
    stock_quantity: NonNegativeInt = Field(default=0, alias="stockQuantity")
    category_id: PositiveInt | None = Field(default=None, alias="categoryId")
    is_active: bool = Field(default=True, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name")
    @classmethod
    def _strip(cls, value: str) -> str:
        return _strip_required(value)


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    slug: str | None = Field(default=None, min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    description: str | None = None
    price: Decimal | None = Field(default=None, gt=Decimal("0"), max_digits=12, decimal_places=2)
    stock_quantity: NonNegativeInt | None = Field(default=None, alias="stockQuantity")
    category_id: PositiveInt | None = Field(default=None, alias="categoryId")
    is_active: bool | None = Field(default=None, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)


class ProductImagesResponse(BaseModel):
    images: list[ProductImageResponse]


# Cart


class CartItemCreate(BaseModel):
    product_id: PositiveInt = Field(alias="productId")
    quantity: PositiveInt = 1

    model_config = ConfigDict(populate_by_name=True)


class CartItemUpdate(BaseModel):
    quantity: PositiveInt


class CartProductResponse(BaseModel):
    id: PositiveInt
    name: str
    price: Decimal
    image: str | None = None


class CartItemResponse(BaseModel):
    id: PositiveInt
    product: CartProductResponse
    quantity: PositiveInt
    subtotal: Decimal


class CartResponse(BaseModel):
    id: PositiveInt | None
    items: list[CartItemResponse]
    item_count: NonNegativeInt = Field(alias="itemCount")
    total: Decimal

    model_config = ConfigDict(populate_by_name=True)


# Checkout and orders


class ShippingAddress(BaseModel):
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=120)
    state: str = Field(min_length=1, max_length=120)
    zip: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=1, max_length=120)

    @field_validator("street", "city", "state", "zip", "country")
    @classmethod
    def _strip(cls, value: str) -> str:
        return _strip_required(value)


class CheckoutRequest(BaseModel):
    shipping_address: ShippingAddress = Field(alias="shippingAddress")
    payment_method: Literal["mock"] = Field(alias="paymentMethod")

    model_config = ConfigDict(populate_by_name=True)


class OrderItemProduct(BaseModel):
    id: int | None
    name: str


class OrderItemResponse(BaseModel):
    id: PositiveInt
    product: OrderItemProduct
    quantity: PositiveInt
    price_at_time: Decimal = Field(alias="priceAtTime")

    model_config = ConfigDict(populate_by_name=True)


class StatusEventResponse(BaseModel):
    status: OrderStatus
    notes: str | None = None
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class OrderResponse(BaseModel):
    id: PositiveInt
    order_number: str = Field(alias="orderNumber")
    status: OrderStatus
    total_amount: Decimal = Field(alias="totalAmount")
    shipping_address: dict[str, Any] | None = Field(alias="shippingAddress")
    items: list[OrderItemResponse]
    status_history: list[StatusEventResponse] = Field(alias="statusHistory")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class OrderSummaryResponse(BaseModel):
    id: PositiveInt
    order_number: str = Field(alias="orderNumber")
    status: OrderStatus
    total_amount: Decimal = Field(alias="totalAmount")
    item_count: NonNegativeInt = Field(alias="itemCount")
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class OrderListResponse(BaseModel):
    orders: list[OrderSummaryResponse]
    pagination: Pagination


class OrderTimelineResponse(BaseModel):
    order_id: PositiveInt = Field(alias="orderId")
    timeline: list[StatusEventResponse]

    model_config = ConfigDict(populate_by_name=True)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    notes: str | None = Field(default=None, max_length=1000)
