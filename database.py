"""
Persistence gateway.

A DataSource is where products and orders live. Three are available:

- HttpDataSource: the remote CRUD endpoints (/products, /orders).
- MongoDataSource: a MongoDB database ("product" and "order" collections).
- LocalDataSource: a JSON file on this machine, seeded with the built-in
  catalog the first time it is used.

open_gateway() picks one at startup. If the remote store can't be reached the
gateway falls back to the local file for the rest of the process; there is no
promotion back to remote.
"""
import json
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import requests
from pydantic import ValidationError
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from schemas import Product, Order
from seed import default_products, default_orders

logger = logging.getLogger(__name__)

PRODUCTS = "products"
ORDERS = "orders"

# storage column -> application field, for rows the remote store hands back raw
PRODUCT_COLUMNS = {
    "regular_price": "regularPrice",
    "sale_price": "salePrice",
    "short_description": "shortDescription",
}
ORDER_COLUMNS = {
    "user_id": "userId",
    "customer_name": "customerName",
    "customer_email": "customerEmail",
    "customer_phone": "customerPhone",
    "shipping_charge": "shippingCharge",
    "shipping_method": "shippingMethodName",
    "payment_method": "paymentMethodName",
    "shipping_address": "shippingAddress",
}

Entity = Union[Product, Order]


class DataSourceError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RemoteUnavailable(DataSourceError):
    """The store can't be reached at all (network error, 404 on listing, garbage)."""


class StartupError(Exception):
    """Neither the remote store nor the local fallback produced a catalog."""


@dataclass
class Snapshot:
    products: List[Product] = field(default_factory=list)
    orders: List[Order] = field(default_factory=list)


def kind_of(entity: Entity) -> str:
    if isinstance(entity, Product):
        return PRODUCTS
    if isinstance(entity, Order):
        return ORDERS
    raise TypeError(f"Cannot persist {type(entity).__name__}")


def normalize_row(row: Dict[str, Any], columns: Dict[str, str]) -> Dict[str, Any]:
    d = dict(row)
    for column, name in columns.items():
        if column in d:
            value = d.pop(column)
            d.setdefault(name, value)
    return d


def _parse(rows, model, where: str):
    try:
        return [model.model_validate(r) for r in rows]
    except ValidationError as e:
        raise RemoteUnavailable(f"Malformed {model.__name__} data from {where}: {e.error_count()} errors") from e


class DataSource:
    name = "abstract"

    def load(self) -> Snapshot:
        raise NotImplementedError

    def save(self, entity: Entity) -> None:
        raise NotImplementedError

    def remove(self, kind: str, entity_id: str) -> None:
        raise NotImplementedError

    def patch(self, kind: str, entity_id: str, fields: Dict[str, Any]) -> None:
        raise NotImplementedError

    def describe(self) -> Dict[str, Any]:
        return {"source": self.name}


# --- Remote CRUD endpoints ---

def _error_message(r: requests.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return r.text[:200] or f"HTTP {r.status_code}"


class HttpDataSource(DataSource):
    name = "remote"

    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, kind: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}/{kind}"
        try:
            r = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise RemoteUnavailable(f"{method} {url} failed: {e}") from e
        if not 200 <= r.status_code < 300:
            raise DataSourceError(_error_message(r), status_code=r.status_code)
        return r

    def _list(self, kind: str, columns: Dict[str, str]) -> List[Dict[str, Any]]:
        try:
            r = self._request("GET", kind)
        except RemoteUnavailable:
            raise
        except DataSourceError as e:
            if e.status_code == 404:
                raise RemoteUnavailable(f"No backend available at {self.base_url}", status_code=404) from e
            raise
        try:
            rows = r.json()
        except ValueError as e:
            raise RemoteUnavailable(f"Malformed response from {self.base_url}/{kind}") from e
        if not isinstance(rows, list):
            raise RemoteUnavailable(f"Expected a list from {self.base_url}/{kind}")
        return [normalize_row(row, columns) for row in rows]

    def load(self) -> Snapshot:
        products = _parse(self._list(PRODUCTS, PRODUCT_COLUMNS), Product, self.base_url)
        orders = _parse(self._list(ORDERS, ORDER_COLUMNS), Order, self.base_url)
        return Snapshot(products=products, orders=orders)

    def save(self, entity: Entity) -> None:
        self._request("POST", kind_of(entity), json=entity.model_dump(mode="json", by_alias=True))

    def remove(self, kind: str, entity_id: str) -> None:
        if kind != PRODUCTS:
            raise DataSourceError(f"Deleting {kind} is not supported by the remote store")
        self._request("DELETE", kind, params={"id": entity_id})

    def patch(self, kind: str, entity_id: str, fields: Dict[str, Any]) -> None:
        if kind != ORDERS:
            raise DataSourceError(f"Patching {kind} is not supported by the remote store")
        self._request("PATCH", kind, json={"id": entity_id, **fields})

    def describe(self) -> Dict[str, Any]:
        return {"source": self.name, "url": self.base_url}


# --- MongoDB ---

class MongoDataSource(DataSource):
    """Documents are stored in their storage-friendly (snake_case) form."""

    name = "mongodb"
    collections = {PRODUCTS: "product", ORDERS: "order"}

    def __init__(self, db) -> None:
        self.db = db

    @classmethod
    def connect(cls, url: str, database_name: str, timeout: float = 10.0) -> "MongoDataSource":
        try:
            client = MongoClient(url, serverSelectionTimeoutMS=int(timeout * 1000))
        except PyMongoError as e:
            raise RemoteUnavailable(f"Invalid MongoDB settings: {str(e)[:80]}") from e
        return cls(client[database_name])

    def _collection(self, kind: str):
        return self.db[self.collections[kind]]

    def load(self) -> Snapshot:
        try:
            products = list(self._collection(PRODUCTS).find({}, {"_id": 0}).sort("name", 1))
            orders = list(self._collection(ORDERS).find({}, {"_id": 0}).sort("date", -1))
        except PyMongoError as e:
            raise RemoteUnavailable(f"MongoDB unavailable: {str(e)[:80]}") from e
        return Snapshot(products=_parse(products, Product, "mongodb"), orders=_parse(orders, Order, "mongodb"))

    def save(self, entity: Entity) -> None:
        doc = entity.model_dump(mode="json")
        try:
            self._collection(kind_of(entity)).replace_one({"id": entity.id}, doc, upsert=True)
        except PyMongoError as e:
            raise DataSourceError(f"Failed to save {entity.id}: {str(e)[:80]}") from e

    def remove(self, kind: str, entity_id: str) -> None:
        try:
            self._collection(kind).delete_one({"id": entity_id})
        except PyMongoError as e:
            raise DataSourceError(f"Failed to delete {entity_id}: {str(e)[:80]}") from e

    def patch(self, kind: str, entity_id: str, fields: Dict[str, Any]) -> None:
        try:
            result = self._collection(kind).update_one({"id": entity_id}, {"$set": fields})
        except PyMongoError as e:
            raise DataSourceError(f"Failed to update {entity_id}: {str(e)[:80]}") from e
        if result.matched_count == 0:
            raise DataSourceError(f"{entity_id} not found", status_code=404)

    def describe(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {"source": self.name, "database_name": self.db.name, "collections": []}
        try:
            info["collections"] = self.db.list_collection_names()[:10]
        except PyMongoError as e:
            info["error"] = str(e)[:80]
        return info


# --- Local fallback ---

PRODUCTS_KEY = "nova_products"
ORDERS_KEY = "nova_orders"
PIXEL_ID_KEY = "nova_pixel_id"


class LocalDataSource(DataSource):
    """A JSON file holding the product list, the order list and a few settings.

    The whole file is rewritten after every change. Changes are made on a copy
    and only become visible once the file has been replaced.
    """

    name = "local"

    def __init__(self, path: str) -> None:
        self.path = path
        self._data: Optional[Dict[str, Any]] = None
        self._lock = threading.RLock()

    def _read(self) -> Dict[str, Any]:
        if self._data is None:
            if os.path.exists(self.path):
                try:
                    with open(self.path, encoding="utf-8") as f:
                        data = json.load(f)
                except (OSError, ValueError) as e:
                    raise DataSourceError(f"Could not read local store {self.path}: {e}") from e
                if not isinstance(data, dict):
                    raise DataSourceError(f"Local store {self.path} is not a JSON object")
                self._data = data
            else:
                self._data = {}
        return self._data

    def _write(self, data: Dict[str, Any]) -> None:
        tmp = f"{self.path}.{os.getpid()}.{threading.get_ident()}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise DataSourceError(f"Could not write local store {self.path}: {e}") from e
        self._data = data

    def load(self) -> Snapshot:
        with self._lock:
            data = dict(self._read())
            seeded = False
            if PRODUCTS_KEY not in data:
                data[PRODUCTS_KEY] = [p.model_dump(mode="json", by_alias=True) for p in default_products()]
                seeded = True
            if ORDERS_KEY not in data:
                data[ORDERS_KEY] = [o.model_dump(mode="json", by_alias=True) for o in default_orders()]
                seeded = True
            try:
                products = [Product.model_validate(p) for p in data[PRODUCTS_KEY]]
                orders = [Order.model_validate(o) for o in data[ORDERS_KEY]]
            except (ValidationError, TypeError) as e:
                raise DataSourceError(f"Local store {self.path} holds invalid data: {e}") from e
            if seeded:
                logger.info("Seeded local store %s with the default catalog", self.path)
                self._write(data)
        return Snapshot(products=products, orders=orders)

    def _key(self, kind: str) -> str:
        return PRODUCTS_KEY if kind == PRODUCTS else ORDERS_KEY

    def _replace_records(self, kind: str, records: List[Dict[str, Any]]) -> None:
        self._write({**self._read(), self._key(kind): records})

    def save(self, entity: Entity) -> None:
        kind = kind_of(entity)
        doc = entity.model_dump(mode="json", by_alias=True)
        with self._lock:
            records = list(self._read().get(self._key(kind), []))
            for i, r in enumerate(records):
                if r.get("id") == entity.id:
                    records[i] = doc
                    break
            else:
                if kind == ORDERS:
                    records.insert(0, doc)
                else:
                    records.append(doc)
            self._replace_records(kind, records)

    def remove(self, kind: str, entity_id: str) -> None:
        with self._lock:
            records = [r for r in self._read().get(self._key(kind), []) if r.get("id") != entity_id]
            self._replace_records(kind, records)

    def patch(self, kind: str, entity_id: str, fields: Dict[str, Any]) -> None:
        with self._lock:
            records = list(self._read().get(self._key(kind), []))
            for i, r in enumerate(records):
                if r.get("id") == entity_id:
                    records[i] = {**r, **fields}
                    self._replace_records(kind, records)
                    return
        raise DataSourceError(f"{entity_id} not found", status_code=404)

    def get_setting(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read().get(key, default)

    def set_setting(self, key: str, value: Any) -> None:
        with self._lock:
            self._write({**self._read(), key: value})

    def describe(self) -> Dict[str, Any]:
        return {"source": self.name, "path": os.path.abspath(self.path)}


class PersistenceGateway:
    """Uniform read/write access to whichever DataSource was picked at startup."""

    def __init__(self, source: DataSource, local: LocalDataSource) -> None:
        self.source = source
        self.local = local

    @property
    def mode(self) -> str:
        return "local" if self.source is self.local else "remote"

    def load(self) -> Snapshot:
        return self.source.load()

    def save(self, entity: Entity) -> None:
        self.source.save(entity)

    def remove(self, kind: str, entity_id: str) -> None:
        self.source.remove(kind, entity_id)

    def patch(self, kind: str, entity_id: str, fields: Dict[str, Any]) -> None:
        self.source.patch(kind, entity_id, fields)

    @property
    def pixel_id(self) -> str:
        return self.local.get_setting(PIXEL_ID_KEY, "") or ""

    def set_pixel_id(self, pixel_id: str) -> None:
        self.local.set_setting(PIXEL_ID_KEY, pixel_id)

    def describe(self) -> Dict[str, Any]:
        return {"mode": self.mode, **self.source.describe()}


def open_gateway(remote: Optional[DataSource], local: LocalDataSource) -> Tuple[PersistenceGateway, Snapshot]:
    if remote is not None:
        try:
            snapshot = remote.load()
        except RemoteUnavailable as e:
            logger.warning("Remote store unavailable (%s); using local store %s for this session", e, local.path)
        except DataSourceError as e:
            raise StartupError(f"Failed to connect to database: {e.message}") from e
        else:
            logger.info("Loaded %d products and %d orders from %s store",
                        len(snapshot.products), len(snapshot.orders), remote.name)
            return PersistenceGateway(remote, local), snapshot

    try:
        snapshot = local.load()
    except DataSourceError as e:
        raise StartupError(e.message) from e
    return PersistenceGateway(local, local), snapshot
