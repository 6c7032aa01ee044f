from __future__ import annotations

from fastapi import Request

from shop_assistant.schemas.catalog import Cart, CartItem, Product


class CartStore:
    """In-memory cart keyed by product id, in insertion order."""

    def __init__(self) -> None:
        self._items: dict[int, CartItem] = {}

    def add(self, product: Product, quantity: int = 1) -> Cart:
        """Add ``quantity`` of ``product``, incrementing an existing line."""

        if quantity < 1:
            raise ValueError("Quantity to add must be at least 1.")
        existing = self._items.get(product.id)
        if existing:
            quantity += existing.quantity
        self._items[product.id] = CartItem(product=product, quantity=quantity)
        return self.snapshot()

    def remove(self, product_id: int) -> Cart:
        self._items.pop(product_id, None)
        return self.snapshot()

    def set_quantity(self, product_id: int, quantity: int) -> Cart:
        """Set the quantity of a line; zero or less removes it."""

        if quantity <= 0:
            return self.remove(product_id)
        existing = self._items.get(product_id)
        if existing is None:
            raise ValueError(f"Product {product_id} is not in the cart.")
        self._items[product_id] = CartItem(product=existing.product, quantity=quantity)
        return self.snapshot()

    def clear(self) -> Cart:
        self._items.clear()
        return self.snapshot()

    def snapshot(self) -> Cart:
        items = list(self._items.values())
        total = round(sum(item.product.price * item.quantity for item in items), 2)
        return Cart(
            items=items,
            total=total,
            item_count=sum(item.quantity for item in items),
        )


def get_cart_store(request: Request) -> CartStore:
    """Dependency to access the cart store from app state."""

    return request.app.state.cart_store
