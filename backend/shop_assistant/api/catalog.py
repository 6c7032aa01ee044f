from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from shop_assistant.schemas.catalog import Cart, PriceRange, Product, ProductFilters
from shop_assistant.services.cart_service import CartStore, get_cart_store
from shop_assistant.services.catalog_service import (
    CatalogError,
    CatalogService,
    get_catalog_service,
)

router = APIRouter(prefix="/api/catalog", tags=["catalog"])
cart_router = APIRouter(prefix="/api/cart", tags=["cart"])


@router.get("/products", response_model=List[Product])
async def list_products(
    product_type: Optional[str] = Query(default=None, alias="productType"),
    category: Optional[str] = None,
    search: Optional[str] = None,
    features: Optional[List[str]] = Query(default=None),
    min_price: Optional[float] = Query(default=None, alias="minPrice"),
    max_price: Optional[float] = Query(default=None, alias="maxPrice"),
    limit: Optional[int] = Query(default=None, ge=1),
    catalog: CatalogService = Depends(get_catalog_service),
) -> List[Product]:
    """List catalog products matching the given filters."""

    price_range = None
    if min_price is not None or max_price is not None:
        price_range = PriceRange(min=min_price, max=max_price)
    filters = ProductFilters(
        product_type=product_type,
        category=category,
        search=search,
        features=features or [],
        price_range=price_range,
        limit=limit,
    )
    try:
        return await catalog.list_products(filters)
    except CatalogError as exc:
        raise HTTPException(status_code=_catalog_status(exc), detail=exc.message) from exc


@router.get("/products/{product_id}", response_model=Product)
async def get_product(
    product_id: int,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Product:
    """Return one product."""

    try:
        return await catalog.get_product(product_id)
    except CatalogError as exc:
        raise HTTPException(status_code=_catalog_status(exc), detail=exc.message) from exc


@router.get("/categories", response_model=List[str])
async def list_categories(
    catalog: CatalogService = Depends(get_catalog_service),
) -> List[str]:
    """Return the catalog categories."""

    try:
        return await catalog.list_categories()
    except CatalogError as exc:
        raise HTTPException(status_code=_catalog_status(exc), detail=exc.message) from exc


@cart_router.get("", response_model=Cart)
async def get_cart(cart: CartStore = Depends(get_cart_store)) -> Cart:
    """Return the cart contents and totals."""

    return cart.snapshot()


@cart_router.delete("", response_model=Cart)
async def clear_cart(cart: CartStore = Depends(get_cart_store)) -> Cart:
    """Empty the cart."""

    return cart.clear()


def _catalog_status(exc: CatalogError) -> int:
    if exc.code == "CATALOG_NOT_FOUND":
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_502_BAD_GATEWAY
