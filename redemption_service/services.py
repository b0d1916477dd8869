"""
services.py — Construction and Teardown of the Service Objects

`build_services()` creates the store and the outbound clients once per
process from the settings. A subsystem whose settings are missing is logged
and left as `None`; the rest of the application keeps running and the
pipeline reports a `ConfigurationError` when it reaches the missing piece.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .clients import PartnerClient, ShopifyAdminClient
from .config import Settings
from .errors import StoreError
from .store import CodeStore, InMemoryCodeStore, MongoCodeStore

log = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: Optional[CodeStore] = None
    partner: Optional[PartnerClient] = None
    shopify: Optional[ShopifyAdminClient] = None

    def close(self):
        """Closes every initialized client. Errors are logged, not raised."""
        for name in ("shopify", "partner", "store"):
            resource = getattr(self, name)
            if resource is None:
                continue
            try:
                resource.close()
            except Exception as e:
                log.error(f"Closing {name} failed: {e}")


def build_store(settings: Settings) -> Optional[CodeStore]:
    if settings.store_backend == "memory":
        log.warning("Using in-memory code store. Codes are lost on restart.")
        return InMemoryCodeStore()

    if not settings.store_configured:
        log.error("MONGODB_URI/MONGODB_DB_NAME missing: code store not initialized.")
        return None

    store = MongoCodeStore(settings.mongodb_uri, settings.mongodb_db_name, timeout_ms=settings.store_timeout_ms)
    try:
        store.ensure_indexes()
        log.info("Connected to MongoDB.")
    except StoreError as e:
        # Indexes are retried on the first insert
        log.error(f"MongoDB connection error: {e}")
    return store


def build_shopify_client(settings: Settings) -> Optional[ShopifyAdminClient]:
    if not settings.shopify_configured:
        log.error("SHOP_DOMAIN/ADMIN_API_ACCESS_TOKEN missing: Shopify client not initialized.")
        return None
    client = ShopifyAdminClient(
        settings.shop_domain,
        settings.admin_access_token,
        api_version=settings.api_version,
        timeout=settings.http_timeout,
        retry_attempts=settings.retry_attempts,
        retry_delay=settings.retry_delay,
    )
    log.info("Shopify Admin client initialized.")
    return client


def build_services(settings: Settings) -> Services:
    """
    Creates all service objects for the given settings.

    Args:
        settings (Settings): The loaded configuration.

    Returns:
        Services: Container with store and clients; missing subsystems are None.
    """
    for name in settings.missing_settings():
        log.warning(f"{name}: missing")

    partner = PartnerClient(
        settings.partner_api_url,
        timeout=settings.http_timeout,
        retry_attempts=settings.retry_attempts,
        retry_delay=settings.retry_delay,
    )
    return Services(
        settings=settings,
        store=build_store(settings),
        partner=partner,
        shopify=build_shopify_client(settings),
    )
