"""
Built-in store data: categories, default catalog and orders used to seed the
local fallback store, and the initial shipping/payment configuration.
"""
from schemas import Category, Product, Order, CartItem, ShippingOption, PaymentMethod, GlobalVariation

CATEGORIES = [
    Category(id="electronics", name="Electronics", icon="fa-laptop"),
    Category(id="fashion", name="Fashion", icon="fa-shirt"),
    Category(id="home", name="Home & Living", icon="fa-house"),
    Category(id="beauty", name="Beauty", icon="fa-sparkles"),
]

DEFAULT_SHIPPING = [
    {"id": "s1", "name": "Inside City", "charge": 60},
    {"id": "s2", "name": "Outside City", "charge": 120},
]

DEFAULT_PAYMENTS = [
    {"id": "p1", "name": "Cash on Delivery", "is_active": True, "description": "Pay when you receive the product"},
    {"id": "p2", "name": "bKash Online", "is_active": True, "description": "Pay via bKash gateway"},
]

DEFAULT_VARIATIONS = [
    {"id": "gv1", "name": "Size", "options": ["XS", "S", "M", "L", "XL"]},
    {"id": "gv2", "name": "Color", "options": ["Midnight Black", "Silver Grey", "Deep Blue", "Pure White", "Sky Blue"]},
    {"id": "gv3", "name": "Switches", "options": ["Linear Red", "Tactile Brown", "Clicky Blue"]},
]


def _option(value, regular, stock, sale=None):
    return {
        "value": value,
        "regular_price": regular,
        "sale_price": sale,
        "price": sale if sale else regular,
        "stock": stock,
    }


DEFAULT_PRODUCTS = [
    {
        "id": "1",
        "name": "Aether Pro Wireless Headphones",
        "description": "Immersive sound quality with industry-leading noise cancellation. 40 hours of battery life.",
        "regular_price": 349.99,
        "sale_price": 299.99,
        "price": 299.99,
        "category": "electronics",
        "image": "https://images.unsplash.com/photo-1505740420928-5e560c06d30e?auto=format&fit=crop&q=80&w=800",
        "stock": 25,
        "rating": 4.8,
        "reviews": [
            {"id": "r1", "user": "Alice Smith", "rating": 5, "comment": "Best headphones I ever owned!", "date": "2023-10-15"}
        ],
        "variations": [
            {
                "id": "gv2",
                "name": "Color",
                "options": [
                    _option("Midnight Black", 349.99, 10, 299.99),
                    _option("Silver Grey", 349.99, 10, 299.99),
                    _option("Deep Blue", 349.99, 5, 299.99),
                ],
            }
        ],
    },
    {
        "id": "2",
        "name": "Lunar Silk Summer Dress",
        "description": "Breathable and elegant, hand-crafted from sustainable silk.",
        "regular_price": 145.00,
        "price": 145.00,
        "category": "fashion",
        "image": "https://images.unsplash.com/photo-1515378791036-0648a3ef77b2?auto=format&fit=crop&q=80&w=800",
        "stock": 12,
        "rating": 4.5,
        "variations": [
            {
                "id": "gv1",
                "name": "Size",
                "options": [_option(size, 145.00, stock) for size, stock in
                            [("XS", 2), ("S", 3), ("M", 3), ("L", 2), ("XL", 2)]],
            },
            {
                "id": "gv2",
                "name": "Color",
                "options": [_option("Pure White", 145.00, 6), _option("Sky Blue", 145.00, 6)],
            },
        ],
    },
    {
        "id": "3",
        "name": "Zenith Mechanical Keyboard",
        "description": "Compact 65% layout with hot-swappable switches and customizable RGB lighting.",
        "regular_price": 220.00,
        "sale_price": 189.50,
        "price": 189.50,
        "category": "electronics",
        "image": "https://images.unsplash.com/photo-1511467687858-23d96c32e4ae?auto=format&fit=crop&q=80&w=800",
        "stock": 8,
        "rating": 4.9,
        "variations": [
            {
                "id": "gv3",
                "name": "Switches",
                "options": [
                    _option("Linear Red", 220.00, 3, 189.50),
                    _option("Tactile Brown", 220.00, 3, 189.50),
                    _option("Clicky Blue", 220.00, 2, 189.50),
                ],
            }
        ],
    },
    {
        "id": "4",
        "name": "Minimalist Oak Coffee Table",
        "description": "Solid oak construction with a clean, Scandinavian aesthetic.",
        "regular_price": 450.00,
        "price": 450.00,
        "category": "home",
        "image": "https://images.unsplash.com/photo-1533090161767-e6ffed986c88?auto=format&fit=crop&q=80&w=800",
        "stock": 5,
        "rating": 4.7,
    },
    {
        "id": "5",
        "name": "Midnight Rose Perfume",
        "description": "A sophisticated blend of damask rose and deep oud.",
        "regular_price": 120.00,
        "sale_price": 85.00,
        "price": 85.00,
        "category": "beauty",
        "image": "https://images.unsplash.com/photo-1541643600914-78b084683601?auto=format&fit=crop&q=80&w=800",
        "stock": 50,
        "rating": 4.6,
    },
]


def default_products():
    return [Product.model_validate(p) for p in DEFAULT_PRODUCTS]


def default_orders():
    headphones = Product.model_validate(DEFAULT_PRODUCTS[0])
    item = CartItem(**headphones.model_dump(), quantity=1, final_unit_price=headphones.price)
    return [
        Order(
            id="ORD-1001",
            date="2023-11-20",
            customer_name="John Doe",
            customer_email="john@example.com",
            items=[item],
            total=299.99,
            shipping_charge=0,
            shipping_method_name="Standard Shipping",
            payment_method_name="Cash on Delivery",
            status="delivered",
        )
    ]


def default_shipping():
    return [ShippingOption.model_validate(s) for s in DEFAULT_SHIPPING]


def default_payments():
    return [PaymentMethod.model_validate(p) for p in DEFAULT_PAYMENTS]


def default_variations():
    return [GlobalVariation.model_validate(v) for v in DEFAULT_VARIATIONS]
