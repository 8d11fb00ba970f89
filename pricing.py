"""
Price resolution for products and their variant options.

Only the first variation of a product drives its price; the remaining
variations are plain choices (size, colour...) that don't change the amount.
"""
from typing import Dict, List, Optional

from schemas import Product, PriceQuote


def active_price(regular: Optional[float], sale: Optional[float]) -> float:
    """The price actually charged: the sale price when one is set, else regular."""
    if sale and sale > 0:
        return sale
    return regular or 0


def _base_quote(product: Product) -> PriceQuote:
    regular = product.regular_price or product.price or 0
    sale = product.sale_price or 0
    return PriceQuote(regular=regular, sale=sale, active=active_price(regular, sale), stock=product.stock)


def resolve_price(product: Product, selected_options: Optional[Dict[str, str]] = None) -> PriceQuote:
    if not product.variations:
        return _base_quote(product)

    selected_options = selected_options or {}
    first = product.variations[0]
    chosen = selected_options.get(first.name)
    if chosen:
        for option in first.options:
            if option.value == chosen:
                sale = option.sale_price or 0
                return PriceQuote(
                    regular=option.regular_price,
                    sale=sale,
                    active=active_price(option.regular_price, sale),
                    stock=option.stock,
                )

    # nothing (valid) picked yet
    return _base_quote(product)


def missing_selections(product: Product, selected_options: Optional[Dict[str, str]] = None) -> List[str]:
    """Names of the product's variations that have no selection yet."""
    selected_options = selected_options or {}
    return [v.name for v in product.variations if not selected_options.get(v.name)]
