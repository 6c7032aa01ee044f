from __future__ import annotations

from typing import Any, Optional

import httpx
from fastapi import Request

from shop_assistant.schemas.catalog import Product, ProductFilters


class CatalogError(RuntimeError):
    """Raised when the catalog backend cannot serve a request."""

    def __init__(self, code: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


class CatalogService:
    """Read-only client for a Fake Store compatible product API."""

    def __init__(
        self,
        base_url: str,
        timeout_sec: float = 15,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_sec
        self._client = http_client

    async def list_products(self, filters: Optional[ProductFilters] = None) -> list[Product]:
        """Return products matching ``filters`` in catalog order."""

        data = await self._get_json("/products")
        if not isinstance(data, list):
            raise CatalogError("CATALOG_PARSE_ERROR", "Catalog returned an invalid product list.")
        products = [_convert_product(item) for item in data]
        if filters is None:
            return products
        matched = [product for product in products if _matches(product, filters)]
        if filters.limit:
            matched = matched[: filters.limit]
        return matched

    async def get_product(self, product_id: int) -> Product:
        data = await self._get_json(f"/products/{int(product_id)}")
        # The Fake Store API answers unknown ids with 200 and an empty body.
        if not isinstance(data, dict) or not data:
            raise CatalogError("CATALOG_NOT_FOUND", f"Product {product_id} not found.", 404)
        return _convert_product(data)

    async def list_categories(self) -> list[str]:
        data = await self._get_json("/products/categories")
        if not isinstance(data, list):
            raise CatalogError("CATALOG_PARSE_ERROR", "Catalog returned invalid categories.")
        return [str(item) for item in data]

    async def _get_json(self, path: str) -> Any:
        url = self._base_url + path
        try:
            if self._client:
                response = await self._client.get(url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url)
        except httpx.RequestError as exc:
            raise CatalogError("CATALOG_UNAVAILABLE", "Catalog connection failed.") from exc
        if response.status_code == 404:
            raise CatalogError("CATALOG_NOT_FOUND", f"Catalog path {path} not found.", 404)
        if response.status_code >= 400:
            raise CatalogError(
                "CATALOG_BAD_STATUS",
                f"Catalog returned {response.status_code}.",
                response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise CatalogError("CATALOG_PARSE_ERROR", "Invalid JSON from catalog.") from exc


def _convert_product(item: dict[str, Any]) -> Product:
    try:
        description = str(item.get("description") or "")
        rating = item.get("rating") or {}
        count = int(rating.get("count") or 0)
        if count > 100:
            status = "In Stock"
        elif count > 20:
            status = "Low Stock"
        else:
            status = "Out of Stock"
        return Product(
            id=item["id"],
            name=str(item.get("title") or ""),
            price=float(item.get("price") or 0),
            description=description,
            short_description=description.split(".")[0] + "." if description else "",
            category=str(item.get("category") or ""),
            status=status,
            specs=[],
            image_url=str(item.get("image") or ""),
            rating={"rate": float(rating.get("rate") or 0), "count": count},
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise CatalogError("CATALOG_PARSE_ERROR", "Catalog returned a malformed product.") from exc


def _matches(product: Product, filters: ProductFilters) -> bool:
    name = product.name.lower()
    description = product.description.lower()
    category = product.category.lower()

    if filters.product_type:
        term = filters.product_type.lower()
        if not (category.startswith(term) or name.startswith(term)):
            return False
    if filters.category and category != filters.category.lower():
        return False
    if filters.search:
        terms = filters.search.lower().split()
        if not all(term in name or term in description for term in terms):
            return False
    if filters.features:
        features = [feature.lower() for feature in filters.features]
        if not all(feature in name or feature in description for feature in features):
            return False
    if filters.price_range:
        if filters.price_range.min is not None and product.price < filters.price_range.min:
            return False
        if filters.price_range.max is not None and product.price > filters.price_range.max:
            return False
    return True


def get_catalog_service(request: Request) -> CatalogService:
    """Dependency to access the catalog service from app state."""

    return request.app.state.catalog_service
