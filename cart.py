"""
Cart ledger: ordered line items keyed by product id and option signature.
"""
from typing import Dict, Iterator, List, Optional, Tuple

from schemas import Product, CartItem

Signature = Tuple[Tuple[str, str], ...]
LineKey = Tuple[str, Signature]


def option_signature(selected_options: Optional[Dict[str, str]]) -> Signature:
    """Order-independent identity of a set of selected options."""
    return tuple(sorted((selected_options or {}).items()))


class CartLedger:
    def __init__(self) -> None:
        # dicts keep insertion order, which is the display order of the cart
        self._lines: Dict[LineKey, CartItem] = {}

    def __iter__(self) -> Iterator[CartItem]:
        return iter(self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)

    def items(self) -> List[CartItem]:
        return list(self._lines.values())

    def add(
        self,
        product: Product,
        quantity: int = 1,
        selected_options: Optional[Dict[str, str]] = None,
        unit_price: Optional[float] = None,
    ) -> CartItem:
        key = (product.id, option_signature(selected_options))
        existing = self._lines.get(key)
        if existing is not None:
            existing.quantity += quantity
            return existing

        price = product.price if unit_price is None else unit_price
        snapshot = product.model_dump(exclude={"price"})
        item = CartItem(
            **snapshot,
            price=price,
            quantity=quantity,
            selected_options=dict(selected_options) if selected_options else None,
            final_unit_price=price,
        )
        self._lines[key] = item
        return item

    def _matching(self, product_id: str, selected_options: Optional[Dict[str, str]]) -> List[LineKey]:
        if selected_options is None:
            return [key for key in self._lines if key[0] == product_id]
        key = (product_id, option_signature(selected_options))
        return [key] if key in self._lines else []

    def remove(self, product_id: str, selected_options: Optional[Dict[str, str]] = None) -> int:
        """Drop one line, or every line of the product when no options are given."""
        keys = self._matching(product_id, selected_options)
        for key in keys:
            del self._lines[key]
        return len(keys)

    def update_quantity(
        self, product_id: str, quantity: int, selected_options: Optional[Dict[str, str]] = None
    ) -> int:
        keys = self._matching(product_id, selected_options)
        for key in keys:
            self._lines[key].quantity = max(1, quantity)
        return len(keys)

    def clear(self) -> None:
        self._lines.clear()

    def total(self) -> float:
        return sum(item.final_unit_price * item.quantity for item in self._lines.values())

    def count(self) -> int:
        return sum(item.quantity for item in self._lines.values())
