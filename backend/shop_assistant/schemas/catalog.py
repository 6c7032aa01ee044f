from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import Field

from shop_assistant.schemas.common import WireModel

StockStatus = Literal["In Stock", "Low Stock", "Out of Stock"]


class ProductRating(WireModel):
    rate: float = 0
    count: int = 0


class Product(WireModel):
    """Catalog product in the shape the assistant and UI use."""

    id: int
    name: str
    price: float
    description: str = ""
    short_description: str = ""
    category: str = ""
    status: StockStatus = "Out of Stock"
    specs: List[str] = Field(default_factory=list)
    image_url: str = ""
    rating: ProductRating = Field(default_factory=ProductRating)


class PriceRange(WireModel):
    min: Optional[float] = None
    max: Optional[float] = None


class ProductFilters(WireModel):
    """Filters accepted by the catalog listing."""

    product_type: Optional[str] = None
    category: Optional[str] = None
    search: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    price_range: Optional[PriceRange] = None
    limit: Optional[int] = Field(default=None, ge=1)


class CartItem(WireModel):
    product: Product
    quantity: int = Field(ge=1)


class Cart(WireModel):
    """Snapshot of the cart contents and totals."""

    items: List[CartItem] = Field(default_factory=list)
    total: float = 0
    item_count: int = 0
