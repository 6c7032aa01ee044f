from __future__ import annotations

from typing import Any, Protocol

from shop_assistant.schemas.catalog import Cart, Product, ProductFilters
from shop_assistant.schemas.conversation import ActionType
from shop_assistant.services.action_dispatcher import ActionDispatcher
from shop_assistant.services.cart_service import CartStore
from shop_assistant.services.catalog_service import CatalogService

CART_OPERATIONS = ("add", "remove", "update", "clear")


class EventPublisher(Protocol):
    async def broadcast(self, payload: dict) -> None:
        """Deliver a UI event to subscribers."""


class DefaultExecutors:
    """Executors for the built-in action types."""

    def __init__(self, catalog: CatalogService, cart: CartStore, events: EventPublisher) -> None:
        self._catalog = catalog
        self._cart = cart
        self._events = events

    def register_all(self, dispatcher: ActionDispatcher) -> ActionDispatcher:
        dispatcher.register(ActionType.SHOW_PRODUCTS, self.show_products)
        dispatcher.register(ActionType.SHOW_PRODUCT_DETAILS, self.show_product_details)
        dispatcher.register(ActionType.UPDATE_CART, self.update_cart)
        dispatcher.register(ActionType.SHOW_CATEGORIES, self.show_categories)
        dispatcher.register(ActionType.SHOW_COMPARISON, self.show_comparison)
        dispatcher.register(ActionType.UPDATE_UI, self.update_ui)
        dispatcher.register(ActionType.NO_ACTION, self.no_action)
        return dispatcher

    async def show_products(self, parameters: dict[str, Any]) -> list[Product]:
        filters = _filters_from_parameters(parameters)
        products = await self._catalog.list_products(filters)
        await self._events.broadcast(
            {
                "event": "show_products",
                "filters": filters.model_dump(mode="json", by_alias=True, exclude_none=True),
                "products": [_dump(product) for product in products],
            }
        )
        return products

    async def show_product_details(self, parameters: dict[str, Any]) -> Product:
        product = await self._catalog.get_product(_require_int(parameters, "productId"))
        await self._events.broadcast({"event": "show_product_details", "product": _dump(product)})
        return product

    async def update_cart(self, parameters: dict[str, Any]) -> Cart:
        operation = str(parameters.get("action") or "add").strip().lower()
        if operation not in CART_OPERATIONS:
            raise ValueError(f"Unsupported cart operation: {operation}")

        if operation == "clear":
            cart = self._cart.clear()
        elif operation == "remove":
            cart = self._cart.remove(_require_int(parameters, "productId"))
        elif operation == "update":
            cart = self._cart.set_quantity(
                _require_int(parameters, "productId"), _require_int(parameters, "quantity")
            )
        else:
            product = await self._catalog.get_product(_require_int(parameters, "productId"))
            quantity = int(parameters.get("quantity") or 1)
            cart = self._cart.add(product, quantity)

        await self._events.broadcast(
            {"event": "cart_updated", "operation": operation, "cart": _dump(cart)}
        )
        return cart

    async def show_categories(self, parameters: dict[str, Any]) -> list[str]:
        categories = await self._catalog.list_categories()
        await self._events.broadcast({"event": "show_categories", "categories": categories})
        return categories

    async def show_comparison(self, parameters: dict[str, Any]) -> list[Product]:
        raw_ids = parameters.get("productIds")
        if not isinstance(raw_ids, list) or not raw_ids:
            raise ValueError("productIds must be a non-empty list.")
        products = [await self._catalog.get_product(int(item)) for item in raw_ids]
        await self._events.broadcast(
            {"event": "show_comparison", "products": [_dump(product) for product in products]}
        )
        return products

    async def update_ui(self, parameters: dict[str, Any]) -> dict[str, Any]:
        await self._events.broadcast({"event": "update_ui", "parameters": parameters})
        return parameters

    async def no_action(self, parameters: dict[str, Any]) -> None:
        return None


def build_default_dispatcher(
    catalog: CatalogService, cart: CartStore, events: EventPublisher
) -> ActionDispatcher:
    """Create a dispatcher with every built-in action type registered."""

    return DefaultExecutors(catalog, cart, events).register_all(ActionDispatcher())


def _filters_from_parameters(parameters: dict[str, Any]) -> ProductFilters:
    values = dict(parameters)
    features = values.get("features")
    if isinstance(features, str):
        values["features"] = [features]
    elif features is None:
        values.pop("features", None)
    if not values.get("limit"):
        values.pop("limit", None)
    return ProductFilters.model_validate(values)


def _require_int(parameters: dict[str, Any], key: str) -> int:
    value = parameters.get(key)
    if value is None or isinstance(value, bool):
        raise ValueError(f"Parameter {key} is required.")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Parameter {key} must be an integer.") from exc


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)
