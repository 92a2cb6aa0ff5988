"""
Pydantic models for catalog, cart and checkout requests and responses.
"""
import math
from datetime import datetime
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def coerce_quantity(value: Any) -> Union[int, float]:
    """
    Coerce a client-supplied quantity into a finite number.

    Integers, floats and numeric strings are accepted. Booleans, None,
    NaN, infinities and anything else raise ValueError.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError("Quantity must be a number")

    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise ValueError("Quantity must be a number")

    if not isinstance(value, (int, float)):
        raise ValueError("Quantity must be a number")

    if not math.isfinite(value):
        raise ValueError("Quantity must be a finite number")

    return value


def _coerce_id(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


class Product(BaseModel):
    """Catalog product"""
    id: str = Field(..., description="Product identifier")
    name: str = Field(..., description="Display name")
    price: float = Field(..., ge=0, description="Unit price")
    image: str = Field("", description="Image URI")
    description: str = Field("", description="Product description")
    category: str = Field("", description="Catalog category")


class ProductDraft(BaseModel):
    """Product attributes before an identifier is assigned"""
    name: str
    price: float = Field(..., ge=0)
    image: str = ""
    description: str = ""
    category: str = ""


class CartLineItem(BaseModel):
    """Cart line item joined with its product"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Line item identifier")
    product_id: str = Field(..., alias="productId", description="Product identifier")
    quantity: int = Field(..., ge=1, description="Item quantity")
    product: Product = Field(..., description="Current product data")


class CartResponse(BaseModel):
    """Response model for cart retrieval"""
    items: List[CartLineItem] = Field(default_factory=list, description="Live line items")
    total: float = Field(0.0, description="Sum of price x quantity, rounded to cents")


class AddToCartRequest(BaseModel):
    """Request model for adding a product to the cart"""
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(..., alias="productId", min_length=1, description="Product identifier")
    quantity: float = Field(1, description="Quantity to add")

    @field_validator("product_id", mode="before")
    @classmethod
    def validate_product_id(cls, v: Any) -> Any:
        return _coerce_id(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def validate_quantity(cls, v: Any) -> Union[int, float]:
        v = coerce_quantity(v)
        if v < 1:
            raise ValueError("Quantity must be at least 1")
        return v


class UpdateQuantityRequest(BaseModel):
    """Request model for setting a line item quantity"""
    quantity: float = Field(..., description="New quantity, clamped to the allowed range")

    @field_validator("quantity", mode="before")
    @classmethod
    def validate_quantity(cls, v: Any) -> Union[int, float]:
        return coerce_quantity(v)


class SnapshotProduct(BaseModel):
    """Product data as the client last saw it"""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    price: float = Field(..., ge=0)

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: Any) -> Any:
        return _coerce_id(v)


class SnapshotItem(BaseModel):
    """Client-held copy of a cart line item"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    product_id: Optional[str] = Field(None, alias="productId")
    quantity: int = Field(..., ge=1)
    product: SnapshotProduct

    @field_validator("id", "product_id", mode="before")
    @classmethod
    def validate_ids(cls, v: Any) -> Any:
        return _coerce_id(v)

    @classmethod
    def from_line_item(cls, item: CartLineItem) -> "SnapshotItem":
        """Build a snapshot entry from a live line item"""
        return cls.model_validate(item.model_dump(by_alias=True))


class CheckoutRequest(BaseModel):
    """Request model for checkout"""
    model_config = ConfigDict(populate_by_name=True)

    cart_items: List[SnapshotItem] = Field(
        default_factory=list, alias="cartItems", description="Cart snapshot held by the client"
    )


class Receipt(BaseModel):
    """Response model for checkout"""
    id: str = Field(..., description="12-digit order identifier")
    items: List[SnapshotItem] = Field(..., description="Snapshot the order was placed with")
    total: float = Field(..., description="Order total")
    timestamp: datetime = Field(..., description="Creation instant (UTC)")
    status: Literal["completed"] = Field("completed", description="Checkout status")
