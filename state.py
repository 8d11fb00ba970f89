"""
Application state: every component of the storefront, wired once at startup.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import config
from accounts import UserDirectory
from cart import CartLedger
from catalog import CatalogStore
from database import (
    DataSource,
    HttpDataSource,
    LocalDataSource,
    MongoDataSource,
    PersistenceGateway,
    RemoteUnavailable,
    open_gateway,
)
from orders import OrderDesk

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    gateway: PersistenceGateway
    catalog: CatalogStore
    orders: OrderDesk
    users: UserDirectory
    carts: Dict[str, CartLedger] = field(default_factory=dict)

    def cart(self, cart_id: str) -> CartLedger:
        return self.carts.setdefault(cart_id, CartLedger())

    def drop_cart(self, cart_id: str) -> None:
        self.carts.pop(cart_id, None)


def remote_source_from_config() -> Optional[DataSource]:
    if config.STORE_API_URL:
        return HttpDataSource(config.STORE_API_URL, timeout=config.STORE_TIMEOUT)
    if config.DATABASE_URL and config.DATABASE_NAME:
        try:
            return MongoDataSource.connect(config.DATABASE_URL, config.DATABASE_NAME, timeout=config.STORE_TIMEOUT)
        except RemoteUnavailable as e:
            logger.warning("%s; using the local store", e)
            return None
    logger.info("No remote store configured")
    return None


def build_state(remote: Optional[DataSource] = None, local: Optional[LocalDataSource] = None) -> AppState:
    """Load the catalog and orders and assemble the application state.

    Raises database.StartupError when no store could produce a catalog.
    """
    local = local or LocalDataSource(config.LOCAL_STORE_PATH)
    gateway, snapshot = open_gateway(remote, local)
    catalog = CatalogStore(gateway, products=snapshot.products)
    users = UserDirectory()
    orders = OrderDesk(gateway, catalog, users, orders=snapshot.orders)
    logger.info("Storefront ready in %s mode", gateway.mode)
    return AppState(gateway=gateway, catalog=catalog, orders=orders, users=users)
