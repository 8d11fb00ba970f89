from pricing import active_price, missing_selections, resolve_price
from schemas import Product


def make_product(**kwargs):
    data = {"id": "P1", "name": "Lamp", "regular_price": 100, "price": 100, "stock": 7}
    data.update(kwargs)
    return Product.model_validate(data)


def dress():
    return make_product(
        regular_price=145,
        price=145,
        variations=[
            {
                "id": "gv1",
                "name": "Size",
                "options": [
                    {"value": "S", "regular_price": 140, "price": 140, "stock": 3},
                    {"value": "XL", "regular_price": 160, "sale_price": 150, "price": 150, "stock": 0},
                ],
            },
            {
                "id": "gv2",
                "name": "Color",
                "options": [{"value": "Red", "regular_price": 999, "price": 999, "stock": 1}],
            },
        ],
    )


def test_sale_price_wins_without_variations():
    quote = resolve_price(make_product(sale_price=80))
    assert (quote.regular, quote.sale, quote.active) == (100, 80, 80)
    assert quote.stock == 7
    assert quote.on_sale


def test_zero_or_missing_sale_means_no_discount():
    assert resolve_price(make_product(sale_price=0)).active == 100
    quote = resolve_price(make_product())
    assert quote.sale == 0
    assert quote.active == 100
    assert not quote.on_sale


def test_regular_price_falls_back_to_legacy_price():
    quote = resolve_price(make_product(regular_price=0, price=42))
    assert quote.regular == 42
    assert quote.active == 42


def test_first_variation_selection_drives_price():
    quote = resolve_price(dress(), {"Size": "XL", "Color": "Red"})
    assert (quote.regular, quote.sale, quote.active, quote.stock) == (160, 150, 150, 0)

    quote = resolve_price(dress(), {"Size": "S"})
    assert (quote.regular, quote.sale, quote.active, quote.stock) == (140, 0, 140, 3)


def test_other_variations_do_not_change_price():
    quote = resolve_price(dress(), {"Color": "Red"})
    assert quote.active == 145
    assert quote.stock == 7


def test_unknown_option_falls_back_to_product():
    assert resolve_price(dress(), {"Size": "XXL"}).active == 145


def test_active_price_rule():
    assert active_price(10, None) == 10
    assert active_price(10, 0) == 10
    assert active_price(10, 8) == 8
    assert active_price(None, None) == 0


def test_missing_selections_lists_unpicked_variations():
    assert missing_selections(dress(), {"Size": "S"}) == ["Color"]
    assert missing_selections(dress(), None) == ["Size", "Color"]
    assert missing_selections(make_product(), None) == []
