import logging
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from .models import LicenseRecord, LicenseStatus, Product
from .placeholders import fill_placeholders
from .registry import UpdateRegistry
from .store import KeyValueStore

logger = logging.getLogger(__name__)


class LicenseStore:
    """
    Persisted license code and server license record for one product.

    Stored under ``{license_name}_code`` and ``{license_name}_data``.
    """

    def __init__(self, product: Product, store: KeyValueStore, registry: Optional[UpdateRegistry] = None):
        self.product = product
        self.store = store
        self.registry = registry

    @property
    def code_key(self) -> str:
        return f"{self.product.license_name}_code"

    @property
    def data_key(self) -> str:
        return f"{self.product.license_name}_data"

    def get_code(self) -> Optional[str]:
        value = self.store.get(self.code_key)
        if isinstance(value, str) and value.strip():
            return value
        return None

    def has_code(self) -> bool:
        return self.get_code() is not None

    def set_code(self, code: str):
        code = (code or "").strip()
        if not code:
            raise ValueError("license code must not be empty")
        self.store.set(self.code_key, code)
        logger.info("License code saved for %s", self.product.file_path)

    def delete_code(self):
        """
        Remove the license code.

        The product is also marked up to date in the update registry: without
        a license an upgrade cannot be validated, so it must not stay pending.
        """
        self.store.delete(self.code_key)
        logger.info("License code removed for %s", self.product.file_path)

        if self.registry is not None:
            self.registry.mark_up_to_date(self.product)

    def get_record(self) -> Optional[LicenseRecord]:
        raw = self.store.get(self.data_key)
        if not raw or not isinstance(raw, dict):
            return None

        try:
            return LicenseRecord.model_validate(raw)
        except ValidationError:
            logger.warning("Ignoring malformed license record for %s", self.product.file_path)
            return None

    def set_record(self, record: Union[LicenseRecord, Dict[str, Any]]):
        # Overwritten wholesale, never merged with the previous record
        if not isinstance(record, LicenseRecord):
            record = LicenseRecord.model_validate(record)
        self.store.set(self.data_key, record.model_dump(mode="json", exclude_unset=True))

    def delete_record(self):
        self.store.delete(self.data_key)

    def status(self) -> LicenseStatus:
        record = self.get_record()
        if record is None:
            return LicenseStatus.UNKNOWN
        return record.license_status

    def is_active(self) -> bool:
        return self.status() == LicenseStatus.ACTIVE

    def renewal_url(self) -> Optional[str]:
        record = self.get_record()
        if record is None or not record.renewal_url:
            return None

        return fill_placeholders(
            record.renewal_url,
            {
                "license_code": self.get_code() or "",
                "email": record.buyer_email or "",
            },
        )
