import logging
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .api_client import ApiClient
from .license_store import LicenseStore
from .models import (
    ApiResult,
    DetailsDescriptor,
    LicenseResponse,
    Product,
    ProductStatus,
    RegistryState,
    UpgradeEvent,
)
from .registry import UpdateRegistry

logger = logging.getLogger(__name__)

UPGRADE_EVENT_TYPE = "product"
UPGRADE_EVENT_ACTION = "update"
DETAILS_ACTION = "product_information"

VersionReader = Callable[[Product], Optional[str]]


class UpdateOrchestrator:
    """
    Binds host lifecycle events to the API client and the update registry.

    The host calls these handlers from its own hooks and scheduler; nothing
    here runs on a timer of its own.
    """

    def __init__(
        self,
        product: Product,
        client: ApiClient,
        registry: UpdateRegistry,
        license_store: LicenseStore,
        version_reader: Optional[VersionReader] = None,
    ):
        self.product = product
        self.client = client
        self.registry = registry
        self.license_store = license_store
        self.version_reader = version_reader

    @property
    def sync_hook_name(self) -> str:
        return f"product_updater_sync_license_data_{self.product.license_name}"

    def on_activate(self):
        self.product.status = ProductStatus.ACTIVE
        self.registry.mark_up_to_date(self.product)
        self._ping_quietly()

    def on_deactivate(self):
        self.product.status = ProductStatus.INACTIVE
        self.registry.mark_up_to_date(self.product)
        self._ping_quietly()

    def on_periodic_sync(self) -> Optional[ApiResult[LicenseResponse]]:
        """
        Refresh the stored license record; without a code only announce the
        installation with a ping.
        """
        if not self.license_store.has_code():
            self._ping_quietly()
            return None

        result = self.client.check_license()
        if not result.ok:
            # Left stale, retried on the next cycle
            logger.warning("License sync failed for %s: %s", self.product.file_path, result.error.message)
            return result

        if result.data.license is not None:
            self.license_store.set_record(result.data.license)
            logger.info("License record synced for %s", self.product.file_path)

        return result

    def on_check_for_updates(self, checked: Optional[Mapping[str, str]] = None) -> RegistryState:
        """
        Run during the host's periodic update scan.

        ``checked`` is the host's map of installed versions; an empty map means
        the scan has not collected anything yet and is skipped.
        """
        if checked is not None and not checked:
            return self.registry.state(self.product)

        result = self.client.fetch_updates()
        return self.registry.reconcile(self.product, result)

    def on_post_upgrade_complete(self, event: Union[UpgradeEvent, Mapping[str, Any]]) -> bool:
        """
        Handle the host's "upgrade finished" notification.

        Returns True when the event concerned this product.
        """
        if not isinstance(event, UpgradeEvent):
            event = UpgradeEvent.model_validate(dict(event))

        if (
            event.type != UPGRADE_EVENT_TYPE
            or event.action != UPGRADE_EVENT_ACTION
            or self.product.file_path not in event.items
        ):
            return False

        if self.version_reader is not None:
            version = self.version_reader(self.product)
            if version:
                self.product.version = version

        self.client.invalidate_cache()
        self.registry.mark_up_to_date(self.product)
        self._ping_quietly()
        logger.info("%s upgraded to %s", self.product.file_path, self.product.version)
        return True

    def on_details_request(self, action: str, slug: Optional[str]) -> Optional[DetailsDescriptor]:
        """
        Answer the host's "what is this product" query; None when the request
        is for another product. Display only, no state changes.
        """
        if action != DETAILS_ACTION or not slug or slug != self.product.slug:
            return None

        result = self.client.fetch_details()

        if not result.ok:
            return DetailsDescriptor(
                sections={"error": f"Unable to retrieve information. Error: {result.error.message}"}
            )

        if result.data.details is None:
            return DetailsDescriptor(
                sections={"api_error": result.data.message or "Errors occurred. Try back later"}
            )

        return result.data.details

    def on_upgrade_package_options(self, options: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Force a clean install over the existing directory when the host is
        upgrading this product.
        """
        options = dict(options)
        target = (options.get("hook_extra") or {}).get("product")

        if target and self.product.file_path.lower() in str(target).lower():
            options["clear_destination"] = True
            options["abort_if_destination_exists"] = True

        return options

    def _ping_quietly(self):
        result = self.client.ping()
        if not result.ok:
            logger.debug("Ping failed for %s: %s", self.product.file_path, result.error.message)
