import json
import os
from concurrent.futures import ThreadPoolExecutor

import pytest
from pymongo.errors import ServerSelectionTimeoutError

import database
from conftest import FakeResponse, FakeSession
from database import (
    DataSourceError,
    HttpDataSource,
    LocalDataSource,
    MongoDataSource,
    RemoteUnavailable,
    StartupError,
    open_gateway,
)
from schemas import Order, Product
from seed import default_products

PRODUCT_ROW = {
    "id": "7",
    "name": "Bamboo Tray",
    "description": None,
    "regular_price": 30.0,
    "sale_price": 25.0,
    "price": 25.0,
    "category": "home",
    "image": "tray.jpg",
    "stock": 4,
    "rating": 4.1,
    "variations": None,
    "gallery": None,
}
ORDER_ROW = {
    "id": "ORD-2000",
    "user_id": None,
    "date": "2024-01-02",
    "customer_name": "Kim",
    "customer_email": "kim@example.com",
    "customer_phone": "555",
    "items": [],
    "total": 60.0,
    "shipping_charge": 60.0,
    "shipping_method": "Inside City",
    "payment_method": "Cash on Delivery",
    "status": "pending",
    "shipping_address": None,
}


def remote(routes=None, error=None):
    return HttpDataSource("http://shop.test/api", session=FakeSession(routes, error))


def test_404_on_listing_falls_back_to_default_catalog(local):
    gateway, snapshot = open_gateway(remote(), local)
    assert gateway.mode == "local"
    assert [p.id for p in snapshot.products] == [p.id for p in default_products()]
    assert snapshot.orders[0].id == "ORD-1001"


def test_unreachable_remote_falls_back(local, connection_error):
    gateway, snapshot = open_gateway(remote(error=connection_error), local)
    assert gateway.mode == "local"
    assert snapshot.products


def test_malformed_listing_falls_back(local):
    routes = {("GET", "products"): FakeResponse(200, text="<html>")}
    gateway, _ = open_gateway(remote(routes), local)
    assert gateway.mode == "local"


def test_server_error_on_listing_is_fatal(local):
    routes = {("GET", "products"): FakeResponse(500, {"error": "password authentication failed"})}
    with pytest.raises(StartupError, match="password authentication failed"):
        open_gateway(remote(routes), local)


def test_remote_rows_are_normalized():
    routes = {
        ("GET", "products"): FakeResponse(200, [PRODUCT_ROW]),
        ("GET", "orders"): FakeResponse(200, [ORDER_ROW]),
    }
    snapshot = remote(routes).load()
    product = snapshot.products[0]
    assert (product.regular_price, product.sale_price, product.price) == (30.0, 25.0, 25.0)
    assert product.variations == [] and product.gallery == [] and product.description == ""
    order = snapshot.orders[0]
    assert order.customer_name == "Kim"
    assert order.shipping_method_name == "Inside City"
    assert order.payment_method_name == "Cash on Delivery"


def test_remote_mode_is_kept_when_listing_works(local):
    routes = {
        ("GET", "products"): FakeResponse(200, [PRODUCT_ROW]),
        ("GET", "orders"): FakeResponse(200, []),
    }
    gateway, snapshot = open_gateway(remote(routes), local)
    assert gateway.mode == "remote"
    assert [p.id for p in snapshot.products] == ["7"]


def test_remote_writes_use_application_shape():
    session = FakeSession({
        ("POST", "products"): FakeResponse(201, {"message": "Product updated"}),
        ("DELETE", "products"): FakeResponse(200, {"message": "Deleted"}),
        ("PATCH", "orders"): FakeResponse(200, {"message": "Status updated"}),
    })
    source = HttpDataSource("http://shop.test/api/", session=session)
    source.save(Product.model_validate(PRODUCT_ROW))
    source.remove("products", "7")
    source.patch("orders", "ORD-2000", {"status": "shipped"})

    (m1, url1, kw1), (m2, _, kw2), (m3, _, kw3) = session.calls
    assert (m1, url1) == ("POST", "http://shop.test/api/products")
    assert kw1["json"]["regularPrice"] == 30.0
    assert kw1["json"]["salePrice"] == 25.0
    assert kw2["params"] == {"id": "7"}
    assert kw3["json"] == {"id": "ORD-2000", "status": "shipped"}


def test_remote_write_failure_carries_error_message():
    session = FakeSession({("POST", "orders"): FakeResponse(500, {"error": "relation \"orders\" does not exist"})})
    source = HttpDataSource("http://shop.test/api", session=session)
    order = Order.model_validate({**ORDER_ROW, "shipping_method_name": "x", "payment_method_name": "y"})
    with pytest.raises(DataSourceError) as exc:
        source.save(order)
    assert "does not exist" in exc.value.message
    assert exc.value.status_code == 500


def test_local_store_is_seeded_once(store_path):
    LocalDataSource(store_path).load()
    with open(store_path) as f:
        data = json.load(f)
    assert len(data["nova_products"]) == 5
    assert data["nova_products"][0]["regularPrice"] == 349.99

    data["nova_products"] = data["nova_products"][:1]
    with open(store_path, "w") as f:
        json.dump(data, f)
    assert len(LocalDataSource(store_path).load().products) == 1


def test_local_product_round_trip(local, store_path):
    local.load()
    product = Product.model_validate({**PRODUCT_ROW, "variations": [
        {"id": "gv1", "name": "Size", "options": [{"value": "S", "regular_price": 30, "sale_price": 20, "price": 20}]}
    ]})
    local.save(product)
    reloaded = {p.id: p for p in LocalDataSource(store_path).load().products}["7"]
    assert reloaded == product


def test_corrupt_local_store_is_a_startup_failure(store_path, connection_error):
    with open(store_path, "w") as f:
        f.write("{not json")
    with pytest.raises(StartupError):
        open_gateway(remote(error=connection_error), LocalDataSource(store_path))


def test_pixel_id_lives_in_local_settings(local, store_path):
    gateway, _ = open_gateway(None, local)
    assert gateway.pixel_id == ""
    gateway.set_pixel_id("123456")
    with open(store_path) as f:
        assert json.load(f)["nova_pixel_id"] == "123456"


class FakeCursor(list):
    def sort(self, key, direction):
        return FakeCursor(sorted(self, key=lambda d: d[key], reverse=direction < 0))


class FakeCollection:
    def __init__(self, docs=None, error=None):
        self.docs = list(docs or [])
        self.error = error

    def find(self, query, projection):
        if self.error:
            raise self.error
        return FakeCursor(dict(d) for d in self.docs)

    def replace_one(self, flt, doc, upsert=False):
        self.docs = [d for d in self.docs if d["id"] != flt["id"]] + [doc]

    def delete_one(self, flt):
        self.docs = [d for d in self.docs if d["id"] != flt["id"]]

    def update_one(self, flt, update):
        matched = [d for d in self.docs if d["id"] == flt["id"]]
        for d in matched:
            d.update(update["$set"])

        class Result:
            matched_count = len(matched)
        return Result()


class FakeDb(dict):
    name = "shop"

    def list_collection_names(self):
        return list(self)


def test_mongo_source_load_and_writes():
    db = FakeDb(product=FakeCollection([PRODUCT_ROW, {**PRODUCT_ROW, "id": "8", "name": "Apron"}]),
                order=FakeCollection([ORDER_ROW]))
    source = MongoDataSource(db)
    snapshot = source.load()
    assert [p.id for p in snapshot.products] == ["8", "7"]

    order = snapshot.orders[0]
    source.patch("orders", order.id, {"status": "shipped"})
    assert db["order"].docs[0]["status"] == "shipped"
    with pytest.raises(DataSourceError):
        source.patch("orders", "ORD-0000", {"status": "shipped"})

    source.save(snapshot.products[0].model_copy(update={"stock": 99}))
    stored = next(d for d in db["product"].docs if d["id"] == "8")
    assert stored["stock"] == 99
    assert "regular_price" in stored

    source.remove("products", "7")
    assert [d["id"] for d in db["product"].docs] == ["8"]
    assert source.describe()["collections"] == ["product", "order"]


def test_unreachable_mongo_falls_back(local):
    db = FakeDb(product=FakeCollection(error=ServerSelectionTimeoutError("no servers")), order=FakeCollection())
    with pytest.raises(RemoteUnavailable):
        MongoDataSource(db).load()
    gateway, _ = open_gateway(MongoDataSource(db), local)
    assert gateway.mode == "local"


def test_concurrent_local_writes_all_land(local, store_path):
    local.load()

    def write(worker):
        for i in range(20):
            local.save(Product.model_validate({**PRODUCT_ROW, "id": f"w{worker}-{i}"}))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(write, range(8)))

    ids = {p.id for p in LocalDataSource(store_path).load().products}
    assert {f"w{w}-{i}" for w in range(8) for i in range(20)} <= ids
    assert not [name for name in os.listdir(os.path.dirname(store_path)) if name.endswith(".tmp")]


def test_failed_local_write_keeps_cached_records(local, monkeypatch):
    local.load()

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(database.os, "replace", broken_replace)
    with pytest.raises(DataSourceError, match="disk full"):
        local.save(Product.model_validate(PRODUCT_ROW))
    with pytest.raises(DataSourceError):
        local.set_setting("nova_pixel_id", "42")
    monkeypatch.undo()

    local.set_setting("nova_pixel_id", "7")
    assert "7" not in {p.id for p in local.load().products}
    assert local.get_setting("nova_pixel_id") == "7"
