"""Wiring for one tracked product: builds every component from settings."""

import logging
from typing import Optional

import httpx

from .admin import LicenseActions
from .api_client import ApiClient
from .cache import ResponseCache
from .config import Settings, settings
from .environment import SiteInfo, get_site_info
from .license_store import LicenseStore
from .models import Product
from .orchestrator import UpdateOrchestrator, VersionReader
from .registry import UpdateRegistry
from .store import KeyValueStore

logger = logging.getLogger(__name__)


def settings_version_reader(product: Product) -> Optional[str]:
    """
    Re-read the installed version from the environment after an upgrade.

    Returns None unless PRODUCT_VERSION is actually configured, so the
    in-memory version is kept rather than reset to the default.
    """
    fresh = Settings()
    if "PRODUCT_VERSION" not in fresh.model_fields_set:
        return None
    return fresh.PRODUCT_VERSION


class Integration:
    """
    Entry point for a host application embedding the updater.

    Holds the product and the components that share it; the host forwards
    its lifecycle hooks to ``orchestrator`` and its license page actions to
    ``actions``.
    """

    def __init__(
        self,
        product: Product,
        store: KeyValueStore,
        api_url: str,
        site: Optional[SiteInfo] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 5.0,
        ping_timeout: float = 2.0,
        cache_ttl: int = 600,
        registry_key: str = "update_products",
        version_reader: Optional[VersionReader] = None,
    ):
        self.product = product
        self.store = store

        self.registry = UpdateRegistry(store, registry_key)
        self.license_store = LicenseStore(product, store, self.registry)
        self.cache = ResponseCache(store)
        self.client = ApiClient(
            product,
            api_url,
            site=site,
            license_store=self.license_store,
            cache=self.cache,
            http=http,
            timeout=timeout,
            ping_timeout=ping_timeout,
            cache_ttl=cache_ttl,
        )
        self.orchestrator = UpdateOrchestrator(
            product, self.client, self.registry, self.license_store, version_reader
        )
        self.actions = LicenseActions(self.client, self.license_store, self.registry)

    @classmethod
    def from_settings(
        cls,
        config: Settings = settings,
        store: Optional[KeyValueStore] = None,
        http: Optional[httpx.Client] = None,
        version_reader: Optional[VersionReader] = None,
    ) -> "Integration":
        """
        Build an integration from ``Settings``; defaults to the SQL store.

        Without a ``version_reader`` the installed version is re-read from
        settings once an upgrade completes.
        """
        if store is None:
            from .database import SqlStore, init_db

            init_db()
            store = SqlStore()

        product = Product(
            product_id=config.PRODUCT_ID,
            file_path=config.PRODUCT_FILE,
            version=config.PRODUCT_VERSION,
            name=config.PRODUCT_NAME,
            license_enabled=config.LICENSE_ENABLED,
        )
        logger.info("Tracking %s %s (product %s)", product.file_path, product.version, product.product_id)

        return cls(
            product,
            store,
            config.API_URL,
            site=get_site_info(config),
            http=http,
            timeout=config.API_TIMEOUT,
            ping_timeout=config.PING_TIMEOUT,
            cache_ttl=config.RESPONSE_CACHE_TTL,
            registry_key=config.REGISTRY_KEY,
            version_reader=version_reader or settings_version_reader,
        )

    def close(self):
        self.client.close()
