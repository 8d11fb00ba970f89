import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import EmailStr, Field

import config
from accounts import AccountError
from cart import CartLedger
from catalog import CatalogError
from database import DataSourceError, StartupError
from orders import OrderError
from pricing import missing_selections, resolve_price
from schemas import (
    Schema,
    Address,
    AddressInput,
    CheckoutRequest,
    GlobalVariation,
    Order,
    OrderStatus,
    PaymentMethod,
    Product,
    ShippingOption,
    User,
)
from seed import default_products
from state import AppState, build_state, remote_source_from_config

logger = logging.getLogger(__name__)

app = FastAPI(title="Nova Storefront API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_state: Optional[AppState] = None
# set when loading failed; cleared only by POST /api/reload
_startup_error: Optional[StartupError] = None


def _unavailable(e: StartupError) -> HTTPException:
    return HTTPException(503, f"{e}. Retry with POST /api/reload")


def get_state() -> AppState:
    global _state, _startup_error
    if _startup_error is not None:
        raise _unavailable(_startup_error)
    if _state is None:
        try:
            _state = build_state(remote_source_from_config())
        except StartupError as e:
            logger.error("Startup failed: %s", e)
            _startup_error = e
            raise _unavailable(e)
    return _state


# Domain errors -> HTTP
@app.exception_handler(CatalogError)
@app.exception_handler(AccountError)
@app.exception_handler(OrderError)
async def domain_error_handler(request: Request, exc):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(DataSourceError)
async def store_error_handler(request: Request, exc: DataSourceError):
    status = 404 if exc.status_code == 404 else 502
    return JSONResponse(status_code=status, content={"detail": f"Store write failed: {exc.message}"})


# Request bodies
class CartAdd(Schema):
    product_id: str
    quantity: int = Field(1, ge=1)
    selected_options: Optional[Dict[str, str]] = None


class CartUpdate(Schema):
    product_id: str
    quantity: int
    selected_options: Optional[Dict[str, str]] = None


class PriceRequest(Schema):
    selected_options: Dict[str, str] = {}


class ProductDraft(Schema):
    id: Optional[str] = None
    name: Optional[str] = None
    short_description: Optional[str] = None
    description: Optional[str] = None
    regular_price: Optional[float] = Field(None, ge=0)
    sale_price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    image: Optional[str] = None
    gallery: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0)
    rating: Optional[float] = None


class AttachVariation(Schema):
    preset_id: str


class OptionEdit(Schema):
    stock: Optional[int] = Field(None, ge=0)
    regular_price: Optional[float] = Field(None, ge=0)
    sale_price: Optional[float] = Field(None, ge=0)


class VariationIn(Schema):
    name: str = ""
    options: List[str] = []


class ShippingIn(Schema):
    name: str = ""
    charge: Optional[float] = None


class PaymentUpdate(Schema):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class StatusUpdate(Schema):
    status: OrderStatus


class LoginIn(Schema):
    email: str
    password: str


class SignupIn(Schema):
    name: str
    email: EmailStr
    password: str


class PixelIn(Schema):
    pixel_id: str = ""


def _parse_options(option: Optional[List[str]]) -> Optional[Dict[str, str]]:
    """Turn ?option=Color:Red&option=Size:M into a dict; None when absent."""
    if not option:
        return None
    parsed = {}
    for raw in option:
        name, sep, value = raw.partition(":")
        if not sep or not name:
            raise HTTPException(400, f"Invalid option {raw!r}, expected Name:Value")
        parsed[name] = value
    return parsed


def _cart_view(cart: CartLedger) -> dict:
    return {"items": cart.items(), "count": cart.count(), "total": cart.total()}


@app.get("/")
def read_root():
    return {"message": "Nova storefront backend is running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "mode": None,
        "store_api_url": "✅ Set" if config.STORE_API_URL else "❌ Not Set",
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": "✅ Set" if config.DATABASE_NAME else "❌ Not Set",
        "collections": [],
    }
    try:
        state = get_state()
    except HTTPException as e:
        response["database"] = f"❌ Error: {str(e.detail)[:80]}"
        return response
    info = state.gateway.describe()
    response["mode"] = info.get("mode")
    response["collections"] = info.get("collections", [])
    if state.gateway.mode == "remote":
        response["database"] = "✅ Connected & Working"
    else:
        response["database"] = "⚠️ Local fallback in use"
    return response


@app.post("/api/reload")
def reload_state():
    global _state, _startup_error
    _state = None
    _startup_error = None
    state = get_state()
    return {"mode": state.gateway.mode, "products": len(state.catalog.products)}


# Catalog
@app.get("/api/categories")
def list_categories(state: AppState = Depends(get_state)):
    return state.catalog.categories


@app.get("/api/products", response_model=List[Product])
def list_products(
    category: Optional[str] = None,
    q: Optional[str] = None,
    state: AppState = Depends(get_state),
):
    return state.catalog.list_products(category=category, query=q)


@app.get("/api/products/{product_id}", response_model=Product)
def get_product(product_id: str, state: AppState = Depends(get_state)):
    return state.catalog.get_product(product_id)


@app.post("/api/products/{product_id}/price")
def quote_price(product_id: str, body: PriceRequest, state: AppState = Depends(get_state)):
    product = state.catalog.get_product(product_id)
    quote = resolve_price(product, body.selected_options)
    return {**quote.model_dump(by_alias=True), "onSale": quote.on_sale}


@app.get("/api/shipping", response_model=List[ShippingOption])
def list_shipping(state: AppState = Depends(get_state)):
    return state.catalog.shipping_options


@app.get("/api/payment-methods", response_model=List[PaymentMethod])
def list_payment_methods(state: AppState = Depends(get_state)):
    return state.catalog.active_payment_methods()


# Cart
@app.get("/api/carts/{cart_id}")
def get_cart(cart_id: str, state: AppState = Depends(get_state)):
    cart = state.carts.get(cart_id)
    return _cart_view(cart if cart is not None else CartLedger())


@app.post("/api/carts/{cart_id}/items")
def add_to_cart(cart_id: str, body: CartAdd, state: AppState = Depends(get_state)):
    product = state.catalog.get_product(body.product_id)
    missing = missing_selections(product, body.selected_options)
    if missing:
        raise HTTPException(400, f"Please select a {missing[0]}")
    quote = resolve_price(product, body.selected_options)
    if quote.stock <= 0:
        raise HTTPException(400, "This item is currently out of stock.")
    cart = state.cart(cart_id)
    cart.add(product, body.quantity, body.selected_options, quote.active)
    return _cart_view(cart)


@app.patch("/api/carts/{cart_id}/items")
def update_cart_item(cart_id: str, body: CartUpdate, state: AppState = Depends(get_state)):
    cart = state.cart(cart_id)
    if not cart.update_quantity(body.product_id, body.quantity, body.selected_options):
        raise HTTPException(404, "Item not in cart")
    return _cart_view(cart)


@app.delete("/api/carts/{cart_id}/items/{product_id}")
def remove_cart_item(
    cart_id: str,
    product_id: str,
    option: Optional[List[str]] = Query(None, description="Name:Value, repeatable"),
    state: AppState = Depends(get_state),
):
    cart = state.cart(cart_id)
    cart.remove(product_id, _parse_options(option))
    return _cart_view(cart)


@app.delete("/api/carts/{cart_id}")
def clear_cart(cart_id: str, state: AppState = Depends(get_state)):
    cart = state.cart(cart_id)
    cart.clear()
    state.drop_cart(cart_id)
    return _cart_view(cart)


@app.post("/api/carts/{cart_id}/checkout", response_model=Order)
def checkout(cart_id: str, body: CheckoutRequest, state: AppState = Depends(get_state)):
    order = state.orders.place_order(state.cart(cart_id), body)
    state.drop_cart(cart_id)
    return order


# Orders
@app.get("/api/orders", response_model=List[Order])
def list_orders(state: AppState = Depends(get_state)):
    return state.orders.orders


@app.get("/api/orders/last", response_model=Order)
def last_order(state: AppState = Depends(get_state)):
    if state.orders.last_order is None:
        raise HTTPException(404, "No order placed yet")
    return state.orders.last_order


@app.get("/api/orders/{order_id}", response_model=Order)
def get_order(order_id: str, state: AppState = Depends(get_state)):
    return state.orders.get(order_id)


@app.patch("/api/orders/{order_id}", response_model=Order)
def update_order_status(order_id: str, body: StatusUpdate, state: AppState = Depends(get_state)):
    return state.orders.update_status(order_id, body.status)


# Accounts (demo only)
@app.post("/api/login", response_model=User)
def login(body: LoginIn, state: AppState = Depends(get_state)):
    return state.users.login(body.email, body.password)


@app.post("/api/register", response_model=User)
def register(body: SignupIn, state: AppState = Depends(get_state)):
    return state.users.signup(body.name, body.email, body.password)


@app.get("/api/users/{user_id}", response_model=User)
def get_user(user_id: str, state: AppState = Depends(get_state)):
    return state.users.get(user_id)


@app.get("/api/users/{user_id}/orders", response_model=List[Order])
def get_user_orders(user_id: str, state: AppState = Depends(get_state)):
    state.users.get(user_id)
    return state.orders.orders_for_user(user_id)


@app.post("/api/users/{user_id}/addresses", response_model=Address)
def add_address(user_id: str, body: AddressInput, state: AppState = Depends(get_state)):
    return state.users.add_address(user_id, body.model_dump())


@app.delete("/api/users/{user_id}/addresses/{address_id}")
def remove_address(user_id: str, address_id: str, state: AppState = Depends(get_state)):
    state.users.remove_address(user_id, address_id)
    return {"ok": True}


# Admin
@app.get("/api/admin/metrics")
def admin_metrics(state: AppState = Depends(get_state)):
    return state.orders.dashboard_metrics()


@app.post("/api/admin/products", response_model=Product)
def save_product(body: ProductDraft, state: AppState = Depends(get_state)):
    return state.catalog.save_product(body.model_dump(exclude_unset=True))


@app.delete("/api/admin/products/{product_id}")
def delete_product(product_id: str, state: AppState = Depends(get_state)):
    state.catalog.delete_product(product_id)
    return {"ok": True}


@app.post("/api/admin/products/{product_id}/variations", response_model=Product)
def attach_variation(product_id: str, body: AttachVariation, state: AppState = Depends(get_state)):
    return state.catalog.add_variation_to_product(product_id, body.preset_id)


@app.delete("/api/admin/products/{product_id}/variations/{variation_id}", response_model=Product)
def detach_variation(product_id: str, variation_id: str, state: AppState = Depends(get_state)):
    return state.catalog.remove_variation_from_product(product_id, variation_id)


@app.patch("/api/admin/products/{product_id}/variations/{variation_id}/options/{value}", response_model=Product)
def edit_variant_option(
    product_id: str, variation_id: str, value: str, body: OptionEdit, state: AppState = Depends(get_state)
):
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(400, "Nothing to update")
    return state.catalog.update_variant_option(product_id, variation_id, value, **fields)


@app.get("/api/admin/variations", response_model=List[GlobalVariation])
def list_variations(state: AppState = Depends(get_state)):
    return state.catalog.global_variations


@app.post("/api/admin/variations", response_model=GlobalVariation)
def add_variation(body: VariationIn, state: AppState = Depends(get_state)):
    return state.catalog.save_variation(body.name, body.options)


@app.put("/api/admin/variations/{preset_id}", response_model=GlobalVariation)
def update_variation(preset_id: str, body: VariationIn, state: AppState = Depends(get_state)):
    state.catalog.get_variation(preset_id)
    return state.catalog.save_variation(body.name, body.options, preset_id=preset_id)


@app.delete("/api/admin/variations/{preset_id}")
def delete_variation(preset_id: str, state: AppState = Depends(get_state)):
    state.catalog.delete_variation(preset_id)
    return {"ok": True}


@app.post("/api/admin/shipping", response_model=ShippingOption)
def add_shipping(body: ShippingIn, state: AppState = Depends(get_state)):
    return state.catalog.add_shipping_option(body.name, body.charge)


@app.delete("/api/admin/shipping/{option_id}")
def delete_shipping(option_id: str, state: AppState = Depends(get_state)):
    state.catalog.delete_shipping_option(option_id)
    return {"ok": True}


@app.get("/api/admin/payment-methods", response_model=List[PaymentMethod])
def admin_payment_methods(state: AppState = Depends(get_state)):
    return state.catalog.payment_methods


@app.patch("/api/admin/payment-methods/{method_id}", response_model=PaymentMethod)
def update_payment_method(method_id: str, body: PaymentUpdate, state: AppState = Depends(get_state)):
    return state.catalog.update_payment_method(method_id, **body.model_dump(exclude_unset=True))


@app.post("/api/admin/payment-methods/{method_id}/toggle", response_model=PaymentMethod)
def toggle_payment_method(method_id: str, state: AppState = Depends(get_state)):
    return state.catalog.toggle_payment_method(method_id)


@app.get("/api/admin/pixel")
def get_pixel(state: AppState = Depends(get_state)):
    return {"pixelId": state.gateway.pixel_id}


@app.put("/api/admin/pixel")
def set_pixel(body: PixelIn, state: AppState = Depends(get_state)):
    state.gateway.set_pixel_id(body.pixel_id.strip())
    return {"pixelId": state.gateway.pixel_id}


# Seed the built-in catalog into an empty store
@app.post("/api/seed")
def seed(state: AppState = Depends(get_state)):
    seeded = 0
    if not state.catalog.products:
        for product in default_products():
            state.catalog.save_product(product.model_dump())
            seeded += 1
    return {"ok": True, "seeded": seeded}


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
