"""
Catalog store: products, categories, variation presets, shipping options and
payment methods.

Products go through the persistence gateway and are only changed in memory
once the write went through. Presets, shipping and payment configuration live
for the process only.
"""
import uuid
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from database import PersistenceGateway, PRODUCTS
from pricing import active_price
from schemas import (
    Category,
    GlobalVariation,
    PaymentMethod,
    Product,
    ProductVariantOption,
    ProductVariation,
    ShippingOption,
)
import seed

OPTION_FIELDS = {"stock", "regular_price", "sale_price"}


class CatalogError(Exception):
    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _new_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex[:10]}"


def attach_variation(product: Product, preset: GlobalVariation) -> Product:
    """Copy a preset onto the product, seeding each option with the product's pricing."""
    if any(v.id == preset.id for v in product.variations):
        return product
    sale = product.sale_price or None
    variation = ProductVariation(
        id=preset.id,
        name=preset.name,
        options=[
            ProductVariantOption(
                value=label,
                regular_price=product.regular_price or 0,
                sale_price=sale,
                price=active_price(product.regular_price, sale),
                stock=product.stock,
            )
            for label in preset.options
        ],
    )
    return product.model_copy(update={"variations": [*product.variations, variation]})


def edit_variant_option(product: Product, variation_id: str, value: str, **fields: Any) -> Product:
    unknown = set(fields) - OPTION_FIELDS
    if unknown:
        raise CatalogError(f"Cannot edit {', '.join(sorted(unknown))} on a variant option")
    # sale_price=None clears the discount; the other fields can't be blanked
    fields = {k: v for k, v in fields.items() if v is not None or k == "sale_price"}

    variations = [v.model_copy(deep=True) for v in product.variations]
    for variation in variations:
        if variation.id != variation_id:
            continue
        for i, option in enumerate(variation.options):
            if option.value == value:
                data = {**option.model_dump(), **fields}
                data["price"] = active_price(data["regular_price"], data["sale_price"])
                try:
                    variation.options[i] = ProductVariantOption.model_validate(data)
                except ValidationError as e:
                    raise CatalogError(f"Invalid option {value!r}: {e.errors()[0]['msg']}") from e
                return product.model_copy(update={"variations": variations})
        raise CatalogError(f"Option {value!r} not found on {variation.name}", status_code=404)
    raise CatalogError(f"Variation {variation_id} is not attached to {product.name}", status_code=404)


class CatalogStore:
    def __init__(
        self,
        gateway: PersistenceGateway,
        products: Optional[List[Product]] = None,
        categories: Optional[List[Category]] = None,
    ) -> None:
        self.gateway = gateway
        self.products: List[Product] = list(products or [])
        self.categories: List[Category] = list(categories or seed.CATEGORIES)
        self.global_variations: List[GlobalVariation] = seed.default_variations()
        self.shipping_options: List[ShippingOption] = seed.default_shipping()
        self.payment_methods: List[PaymentMethod] = seed.default_payments()

    # --- Products ---

    def list_products(self, category: Optional[str] = None, query: Optional[str] = None) -> List[Product]:
        items = self.products
        if category and category != "all":
            items = [p for p in items if p.category == category]
        if query:
            q = query.lower()
            items = [p for p in items if q in p.name.lower() or q in p.description.lower()]
        return items

    def get_product(self, product_id: str) -> Product:
        for p in self.products:
            if p.id == product_id:
                return p
        raise CatalogError("Product not found", status_code=404)

    def _mirror(self, product: Product) -> None:
        for i, p in enumerate(self.products):
            if p.id == product.id:
                self.products[i] = product
                return
        self.products.append(product)

    def _persist(self, product: Product) -> Product:
        self.gateway.save(product)
        self._mirror(product)
        return product

    def save_product(self, draft: Dict[str, Any]) -> Product:
        """Create or update a product from a partial record with snake_case keys.

        Fields left out of an update keep their stored values; fields left out
        of a new product get the store defaults. ``price`` is always recomputed.
        """
        data = {k: v for k, v in draft.items() if v is not None}
        defaults: Dict[str, Any] = {
            "stock": 0,
            "rating": 4.5,
            "reviews": [],
            "variations": [],
            "gallery": [],
            "category": self.categories[0].id if self.categories else "",
        }
        existing = next((p for p in self.products if p.id == data.get("id")), None)
        if existing is not None:
            defaults = existing.model_dump()
            if "sale_price" in draft and draft["sale_price"] is None:
                # explicit None clears the discount
                defaults["sale_price"] = None

        merged = {**defaults, **data}
        name = merged.get("name") or ""
        regular = merged.get("regular_price")
        if not name.strip() or not regular or regular <= 0:
            raise CatalogError("Name and Base Price are required.")

        try:
            product = Product.model_validate({**merged, "id": data.get("id") or _new_id()})
        except ValidationError as e:
            raise CatalogError(f"Invalid product: {e.errors()[0]['msg']}") from e
        product.price = active_price(product.regular_price, product.sale_price)
        return self._persist(product)

    def delete_product(self, product_id: str) -> None:
        self.get_product(product_id)
        self.gateway.remove(PRODUCTS, product_id)
        self.products = [p for p in self.products if p.id != product_id]

    def add_variation_to_product(self, product_id: str, preset_id: str) -> Product:
        product = self.get_product(product_id)
        preset = self.get_variation(preset_id)
        updated = attach_variation(product, preset)
        if updated is product:
            return product
        return self._persist(updated)

    def remove_variation_from_product(self, product_id: str, variation_id: str) -> Product:
        product = self.get_product(product_id)
        variations = [v for v in product.variations if v.id != variation_id]
        if len(variations) == len(product.variations):
            return product
        return self._persist(product.model_copy(update={"variations": variations}))

    def update_variant_option(self, product_id: str, variation_id: str, value: str, **fields: Any) -> Product:
        product = self.get_product(product_id)
        return self._persist(edit_variant_option(product, variation_id, value, **fields))

    # --- Global variation presets ---

    def get_variation(self, preset_id: str) -> GlobalVariation:
        for v in self.global_variations:
            if v.id == preset_id:
                return v
        raise CatalogError("Variation preset not found", status_code=404)

    def save_variation(self, name: str, options: List[str], preset_id: Optional[str] = None) -> GlobalVariation:
        options = [o.strip() for o in options if o and o.strip()]
        if not name or not name.strip() or not options:
            raise CatalogError("Name and at least one option required.")
        preset = GlobalVariation(id=preset_id or _new_id("gv-"), name=name.strip(), options=options)
        for i, v in enumerate(self.global_variations):
            if v.id == preset.id:
                self.global_variations[i] = preset
                return preset
        self.global_variations.append(preset)
        return preset

    def delete_variation(self, preset_id: str) -> None:
        self.get_variation(preset_id)
        # copies already attached to products stay as they are
        self.global_variations = [v for v in self.global_variations if v.id != preset_id]

    # --- Shipping ---

    def get_shipping_option(self, option_id: str) -> Optional[ShippingOption]:
        return next((s for s in self.shipping_options if s.id == option_id), None)

    def add_shipping_option(self, name: str, charge: Optional[float]) -> ShippingOption:
        if not name or charge is None or charge < 0:
            raise CatalogError("Shipping name and charge are required.")
        option = ShippingOption(id=_new_id("ship-"), name=name, charge=charge)
        self.shipping_options.append(option)
        return option

    def delete_shipping_option(self, option_id: str) -> None:
        if self.get_shipping_option(option_id) is None:
            raise CatalogError("Shipping option not found", status_code=404)
        self.shipping_options = [s for s in self.shipping_options if s.id != option_id]

    # --- Payment ---

    def get_payment_method(self, method_id: str) -> Optional[PaymentMethod]:
        return next((p for p in self.payment_methods if p.id == method_id), None)

    def active_payment_methods(self) -> List[PaymentMethod]:
        return [p for p in self.payment_methods if p.is_active]

    def update_payment_method(self, method_id: str, **fields: Any) -> PaymentMethod:
        method = self.get_payment_method(method_id)
        if method is None:
            raise CatalogError("Payment method not found", status_code=404)
        fields.pop("id", None)
        fields = {k: v for k, v in fields.items() if v is not None}
        try:
            updated = PaymentMethod.model_validate({**method.model_dump(), **fields})
        except ValidationError as e:
            raise CatalogError(f"Invalid payment method: {e.errors()[0]['msg']}") from e
        self.payment_methods = [updated if p.id == method_id else p for p in self.payment_methods]
        return updated

    def toggle_payment_method(self, method_id: str) -> PaymentMethod:
        method = self.get_payment_method(method_id)
        if method is None:
            raise CatalogError("Payment method not found", status_code=404)
        return self.update_payment_method(method_id, is_active=not method.is_active)
