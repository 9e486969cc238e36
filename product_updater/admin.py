"""
License page actions and the plain-text details panel.

The host renders the page; these handlers only perform the save/sync
actions and describe the product's update situation. Each action returns
an ``ActionResult`` and leaves the actual redirect to the host.
"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from .api_client import ApiClient
from .license_store import LicenseStore
from .models import ActionResult, DetailsDescriptor, DetailsSummary, LicenseStatus, Product
from .placeholders import fill_placeholders
from .registry import UpdateRegistry
from .version import is_version_newer

logger = logging.getLogger(__name__)

DEFAULT_UPGRADE_URL = "update.php?action=upgrade-product&product={file_path}"


def build_redirect(base_url: str, text: str, is_error: bool = False) -> ActionResult:
    """Drop a stale ``m`` flag from ``base_url`` and append the flash text."""
    url = httpx.URL(base_url).copy_remove_param("m")
    url = url.copy_set_param("error" if is_error else "message", text)
    return ActionResult(redirect_to=str(url), flash_message=text, is_error=is_error)


class LicenseActions:
    def __init__(self, client: ApiClient, license_store: LicenseStore, registry: UpdateRegistry):
        self.client = client
        self.license_store = license_store
        self.registry = registry

    @property
    def product(self) -> Product:
        return self.license_store.product

    def save(self, license_code: Optional[str], base_url: str = "/") -> ActionResult:
        """
        Save (and verify) a license code; an empty code deactivates the license.
        """
        license_code = (license_code or "").strip()

        if not license_code:
            self.license_store.delete_code()
            return build_redirect(base_url, "License deactivated")

        result = self.client.check_license(license_code)

        if not result.ok:
            return build_redirect(base_url, result.error.message, is_error=True)

        if result.data.license is not None:
            self.license_store.set_code(license_code)
            self.license_store.set_record(result.data.license)
            self.registry.refresh(self.product)
            return build_redirect(base_url, "License activated")

        return build_redirect(base_url, result.data.message or "Invalid License Key", is_error=True)

    def sync(self, base_url: str = "/") -> ActionResult:
        """
        Re-check the stored license code and refresh the license record.
        """
        license_code = self.license_store.get_code()

        if not license_code:
            return build_redirect(base_url, "No license key to sync", is_error=True)

        result = self.client.check_license(license_code)

        if not result.ok:
            return build_redirect(base_url, result.error.message, is_error=True)

        if result.data.license is not None:
            self.license_store.set_record(result.data.license)
            self.registry.refresh(self.product)
            return build_redirect(base_url, "License data synced")

        return build_redirect(base_url, result.data.message or "Unable to sync license data", is_error=True)


def summarize_details(
    details: DetailsDescriptor,
    product: Product,
    license_store: LicenseStore,
    upgrade_url_template: str = DEFAULT_UPGRADE_URL,
) -> DetailsSummary:
    """
    Describe the product's update situation for the license page.
    """
    summary = DetailsSummary(latest_version=details.version)
    has_license = license_store.has_code()
    status = license_store.status() if has_license else LicenseStatus.UNKNOWN

    if not is_version_newer(details.version, product.version):
        summary.notices.append("You are using the latest version.")
        if status == LicenseStatus.EXPIRED:
            summary.notices.append(_expired_notice(license_store, "to get new updates"))
        return summary

    summary.upgrade_available = True
    summary.notices.append(f"Upgrade available. New version {details.version}")
    if details.changelog_new:
        summary.notices.append(f"Changelog: {details.changelog_new}")
    if details.upgrade_notice_new:
        summary.notices.append(f"Upgrade notice: {details.upgrade_notice_new}")

    if not has_license:
        summary.notices.append("Please save your license to receive updates.")
        return summary

    if details.download_link:
        summary.upgrade_url = fill_placeholders(
            upgrade_url_template, {"file_path": quote(product.file_path, safe="")}
        )
    elif status == LicenseStatus.EXPIRED:
        summary.notices.append(_expired_notice(license_store, "to get updates"))
    elif status == LicenseStatus.SUSPENDED:
        summary.notices.append(_support_notice("Your license has been suspended.", details.homepage))
    else:
        summary.notices.append(
            _support_notice("Upgrade package file missing, unable to upgrade.", details.homepage)
        )

    return summary


def _expired_notice(license_store: LicenseStore, purpose: str) -> str:
    renewal_url = license_store.renewal_url()
    if renewal_url:
        return f"Your license has expired. Renew your license {purpose}: {renewal_url}"
    return f"Your license has expired. Please renew your license {purpose}."


def _support_notice(text: str, homepage: Optional[str]) -> str:
    if homepage:
        return f"{text} Please contact support: {homepage}"
    return f"{text} Please contact support."
