import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, computed_field, field_validator

from .errors import ApiError

T = TypeVar("T")
U = TypeVar("U")


class ProductStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class LicenseStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "LicenseStatus":
        """Map a raw server status onto the enum, ``UNKNOWN`` when unrecognised."""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN


class RegistryState(str, Enum):
    NO_RECORD = "no_record"
    UP_TO_DATE = "up_to_date"
    PENDING = "pending"


# Domain Models
class Product(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    product_id: str
    file_path: str
    version: str = "0.0.0"
    status: ProductStatus = ProductStatus.ACTIVE
    name: str = ""
    license_enabled: bool = False

    @field_validator("product_id", "file_path")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @computed_field
    @property
    def slug(self) -> str:
        """Directory component of ``file_path`` (file stem for single-file products)."""
        path = PurePosixPath(self.file_path)
        if str(path.parent) not in ("", "."):
            return path.parent.name
        return path.stem

    @property
    def license_name(self) -> str:
        return re.sub(r"[^a-z0-9_\-]", "", f"{self.slug}{self.product_id}".lower())


def _empty_to_none(value: Any) -> Any:
    # The server sends [] or {} for "nothing here"
    if value in (None, "", [], {}):
        return None
    return value


class LicenseRecord(BaseModel):
    """License metadata as returned by ``check_license``; unknown fields are kept."""

    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    renewal_url: Optional[str] = None
    buyer_email: Optional[str] = None

    @property
    def license_status(self) -> LicenseStatus:
        return LicenseStatus.parse(self.status)


class UpdateDescriptor(BaseModel):
    model_config = ConfigDict(extra="allow")

    new_version: Optional[str] = None
    download_link: Optional[str] = None
    changelog: Optional[str] = None
    upgrade_notice: Optional[str] = None

    @property
    def has_package(self) -> bool:
        return bool(self.download_link or getattr(self, "package", None))


class DetailsDescriptor(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    version: Optional[str] = None
    homepage: Optional[str] = None
    download_link: Optional[str] = None
    sections: Dict[str, Any] = {}
    changelog_new: Optional[str] = None
    upgrade_notice_new: Optional[str] = None


# Update Server Responses
class ApiResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: Optional[str] = None


class PingResponse(ApiResponse):
    pass


class LicenseResponse(ApiResponse):
    license: Optional[LicenseRecord] = None

    @field_validator("license", mode="before")
    @classmethod
    def _blank_license(cls, value: Any) -> Any:
        return _empty_to_none(value)


class UpdatesResponse(ApiResponse):
    updates: Optional[UpdateDescriptor] = None

    @field_validator("updates", mode="before")
    @classmethod
    def _blank_updates(cls, value: Any) -> Any:
        return _empty_to_none(value)


class DetailsResponse(ApiResponse):
    details: Optional[DetailsDescriptor] = None

    @field_validator("details", mode="before")
    @classmethod
    def _blank_details(cls, value: Any) -> Any:
        return _empty_to_none(value)


@dataclass(frozen=True)
class ApiResult(Generic[T]):
    """Either ``data`` or ``error`` is set, never both."""

    data: Optional[T] = None
    error: Optional[ApiError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.data

    def map(self, fn: Callable[[T], U]) -> "ApiResult[U]":
        if self.error is not None:
            return ApiResult(error=self.error)
        return ApiResult(data=fn(self.data))


# Update Registry
class RegistryEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    slug: str
    file_path: str
    new_version: Optional[str] = None
    url: str = ""
    package: str = ""


class PendingUpdateSet(BaseModel):
    """
    The host's shared update document; one per host, all products inside.

    Entries stay raw JSON so other products' records and any fields the host
    keeps on the document survive a rewrite untouched. Only the entry being
    read is decoded, through ``pending_entry`` / ``up_to_date_entry``.
    """

    model_config = ConfigDict(extra="allow")

    pending: Dict[str, Any] = {}
    up_to_date: Dict[str, Any] = {}
    checked: Dict[str, Any] = {}

    def state_of(self, file_path: str) -> RegistryState:
        if file_path in self.pending:
            return RegistryState.PENDING
        if file_path in self.up_to_date:
            return RegistryState.UP_TO_DATE
        return RegistryState.NO_RECORD

    def pending_entry(self, file_path: str) -> Optional[RegistryEntry]:
        return _decode_entry(self.pending.get(file_path))

    def up_to_date_entry(self, file_path: str) -> Optional[RegistryEntry]:
        return _decode_entry(self.up_to_date.get(file_path))


def _decode_entry(raw: Any) -> Optional[RegistryEntry]:
    if not isinstance(raw, dict):
        return None
    try:
        return RegistryEntry.model_validate(raw)
    except ValidationError:
        return None


class CacheEntry(BaseModel):
    key: str
    payload: Dict[str, Any]
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ActionResult(BaseModel):
    """Outcome of a license page action; the host performs the redirect."""

    redirect_to: str
    flash_message: str
    is_error: bool = False


class UpgradeEvent(BaseModel):
    type: str
    action: str
    items: List[str] = []


# HTTP Surface
class LicenseSaveRequest(BaseModel):
    licenseKey: Optional[str] = None
    baseUrl: str = "/"


class LicenseSyncRequest(BaseModel):
    baseUrl: str = "/"


class LicenseStatusResponse(BaseModel):
    hasLicense: bool
    status: LicenseStatus
    isActive: bool
    renewalUrl: Optional[str] = None
    license: Optional[Dict[str, Any]] = None


class UpdateStateResponse(BaseModel):
    filePath: str
    installedVersion: str
    state: RegistryState
    entry: Optional[Dict[str, Any]] = None


class DetailsSummary(BaseModel):
    """Plain-text notices for the license page details panel."""

    latest_version: Optional[str] = None
    upgrade_available: bool = False
    notices: List[str] = []
    upgrade_url: Optional[str] = None


class HealthCheckResponse(BaseModel):
    status: str
    service: str
    version: str
    productId: Optional[str] = None
    productVersion: Optional[str] = None
