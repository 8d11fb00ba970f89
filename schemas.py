"""
Storefront Schemas

Each Pydantic model represents a record kept by the storefront.
Attributes are snake_case in Python and camelCase on the wire
(regular_price -> regularPrice); both spellings are accepted on input.
"""
from typing import List, Optional, Dict, Literal
from pydantic import BaseModel, ConfigDict, Field, EmailStr, field_validator
from pydantic.alias_generators import to_camel

OrderStatus = Literal["pending", "shipped", "delivered", "cancelled"]


class Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Category(Schema):
    id: str
    name: str
    icon: Optional[str] = None


class Review(Schema):
    id: str
    user: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    date: str


class ProductVariantOption(Schema):
    value: str = Field(..., description="e.g., Red or M")
    regular_price: float = Field(0, ge=0)
    sale_price: Optional[float] = None
    price: float = Field(0, ge=0, description="Active price")
    stock: int = 0


class ProductVariation(Schema):
    id: str = Field(..., description="Id of the GlobalVariation it was copied from")
    name: str
    options: List[ProductVariantOption] = []


class GlobalVariation(Schema):
    id: str
    name: str
    options: List[str] = []


class Product(Schema):
    id: str
    name: str
    short_description: Optional[str] = None
    description: str = ""
    regular_price: float = Field(0, ge=0)
    sale_price: Optional[float] = None
    price: float = Field(0, ge=0, description="Active price (legacy)")
    category: str = ""
    image: str = ""
    gallery: List[str] = []
    stock: int = 0
    rating: float = 0.0
    reviews: List[Review] = []
    variations: List[ProductVariation] = []

    @field_validator("gallery", "reviews", "variations", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        # storage rows carry NULL for lists that were never set
        return [] if v is None else v

    @field_validator("description", mode="before")
    @classmethod
    def _none_as_blank(cls, v):
        return "" if v is None else v


class CartItem(Product):
    quantity: int = Field(1, ge=1)
    selected_options: Optional[Dict[str, str]] = None
    final_unit_price: float = Field(..., ge=0)


class Address(Schema):
    id: str
    label: str = "Shipping Address"
    full_name: str
    phone: str = ""
    street: str
    city: str
    zip: str = ""
    country: str = ""


class ShippingOption(Schema):
    id: str
    name: str
    charge: float = Field(0, ge=0)


class PaymentMethod(Schema):
    id: str
    name: str
    is_active: bool = True
    description: Optional[str] = None


class Order(Schema):
    id: str
    user_id: Optional[str] = None
    date: str
    customer_name: str
    customer_email: str = ""
    customer_phone: Optional[str] = None
    items: List[CartItem]
    total: float
    shipping_charge: float = 0
    shipping_method_name: str = ""
    payment_method_name: str = ""
    status: OrderStatus = "pending"
    shipping_address: Optional[Address] = None


class User(Schema):
    id: str
    email: EmailStr
    name: str
    role: Literal["customer", "admin"] = "customer"
    addresses: List[Address] = []


class CustomerInfo(Schema):
    name: str = ""
    email: str = ""
    phone: str = ""


class AddressInput(Schema):
    label: Optional[str] = None
    full_name: str = ""
    phone: str = ""
    street: str = ""
    city: str = ""
    zip: str = ""
    country: str = ""


class CheckoutRequest(Schema):
    customer: CustomerInfo = CustomerInfo()
    user_id: Optional[str] = None
    address_id: Optional[str] = Field(None, description="Saved address of the user")
    address: Optional[AddressInput] = Field(None, description="Manually entered address")
    shipping_option_id: Optional[str] = None
    payment_method_id: Optional[str] = None


class PriceQuote(Schema):
    regular: float
    sale: float = 0
    active: float
    stock: int

    @property
    def on_sale(self) -> bool:
        return 0 < self.sale < self.regular
