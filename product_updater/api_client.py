import logging
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

import httpx
from pydantic import ValidationError

from .cache import DEFAULT_TTL, ResponseCache
from .environment import SiteInfo
from .errors import (
    FALLBACK_ERROR_CODE,
    FALLBACK_ERROR_MESSAGE,
    NoResponseError,
    RemoteError,
    TransportError,
)
from .license_store import LicenseStore
from .models import (
    ApiResponse,
    ApiResult,
    DetailsResponse,
    LicenseResponse,
    PingResponse,
    Product,
    UpdatesResponse,
)

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=ApiResponse)

DEFAULT_TIMEOUT = 5.0
PING_TIMEOUT = 2.0

# Endpoints whose payloads may be served from the response cache
CACHED_ENDPOINTS = ("updates", "details")


class ApiClient:
    """
    Talks to the update server for a single product.

    Every call returns an ``ApiResult``; transport problems, empty bodies and
    server-side rejections come back as typed errors instead of exceptions.
    """

    def __init__(
        self,
        product: Product,
        api_url: str,
        site: Optional[SiteInfo] = None,
        license_store: Optional[LicenseStore] = None,
        cache: Optional[ResponseCache] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
        ping_timeout: float = PING_TIMEOUT,
        cache_ttl: int = DEFAULT_TTL,
    ):
        self.product = product
        self.api_url = api_url.rstrip("/")
        self.site = site or SiteInfo()
        self.license_store = license_store
        self.cache = cache
        self.timeout = timeout
        self.ping_timeout = ping_timeout
        self.cache_ttl = cache_ttl
        self._owns_http = http is None
        self.http = http or httpx.Client()

    def close(self):
        if self._owns_http:
            self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def endpoint_url(self, method: str) -> str:
        return f"{self.api_url}/products/{self.product.product_id}/{method}"

    def request(
        self,
        method: str,
        args: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ApiResult[Dict[str, Any]]:
        """
        Send a GET request to ``{api_url}/products/{product_id}/{method}``.

        Telemetry fields are always sent; ``args`` override them on conflict.
        """
        url = self.endpoint_url(method)
        params = {
            "product_version": self.product.version,
            "product_status": self.product.status.value,
            **self.site.as_query(),
            **(args or {}),
        }

        logger.debug("Update server request: GET %s", url)

        try:
            response = self.http.get(url, params=params, timeout=timeout or self.timeout)
        except httpx.DecodingError as e:
            logger.warning("Undecodable response from update server for %s: %s", method, e)
            return ApiResult(error=NoResponseError())
        except httpx.RequestError as e:
            message = str(e) or e.__class__.__name__
            logger.warning("Update server unreachable (%s): %s", method, message)
            return ApiResult(error=TransportError(message))

        body = self._decode_body(response)

        if response.status_code >= 400:
            error = RemoteError(
                code=str(body.get("code") or FALLBACK_ERROR_CODE),
                message=str(body.get("message") or FALLBACK_ERROR_MESSAGE),
            )
            logger.info(
                "Update server rejected %s (HTTP %s): %s",
                method, response.status_code, error.code,
            )
            return ApiResult(error=error)

        if not body:
            logger.warning("Empty response from update server for %s", method)
            return ApiResult(error=NoResponseError())

        return ApiResult(data=body)

    def ping(self) -> ApiResult[PingResponse]:
        """Fast liveness call; also reports the installation to the server."""
        result = self.request("ping", {}, self.ping_timeout)
        return self._decode_as(PingResponse, result)

    def check_license(self, license_code: Optional[str] = None) -> ApiResult[LicenseResponse]:
        """
        Verify a license code against the server. Never cached.

        An explicit code takes precedence over the stored one.
        """
        result = self.request("check_license", self._license_args(license_code))
        return self._decode_as(LicenseResponse, result)

    def fetch_updates(self, ttl: Optional[int] = None) -> ApiResult[UpdatesResponse]:
        return self._cached_request("updates", UpdatesResponse, ttl)

    def fetch_details(self, ttl: Optional[int] = None) -> ApiResult[DetailsResponse]:
        return self._cached_request("details", DetailsResponse, ttl)

    def cache_key(self, endpoint: str) -> str:
        return ResponseCache.key_for(self.product.product_id, endpoint)

    def invalidate_cache(self):
        """
        Drop cached updates/details payloads so the next call hits the server.
        """
        if not self.cache:
            return

        for endpoint in CACHED_ENDPOINTS:
            self.cache.invalidate(self.cache_key(endpoint))

    def _cached_request(self, endpoint: str, model: Type[R], ttl: Optional[int]) -> ApiResult[R]:
        ttl = self.cache_ttl if ttl is None else ttl
        use_cache = self.cache is not None and ttl > 0
        key = self.cache_key(endpoint)

        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Serving %s from cache", endpoint)
                return self._decode_as(model, ApiResult(data=cached))

        raw = self.request(endpoint, self._license_args())
        result = self._decode_as(model, raw)

        # Errors are never cached, the next call retries immediately
        if use_cache and result.ok:
            self.cache.put(key, raw.data, ttl)

        return result

    def _license_args(self, explicit: Optional[str] = None) -> Dict[str, str]:
        if explicit:
            return {"license": explicit}

        if not self.product.license_enabled or self.license_store is None:
            return {}

        code = self.license_store.get_code()
        return {"license": code} if code else {}

    @staticmethod
    def _decode_body(response: httpx.Response) -> Dict[str, Any]:
        # An empty body decodes exactly like "{}"
        if not response.content.strip():
            return {}

        try:
            data = response.json()
        except ValueError:
            return {}

        return data if isinstance(data, dict) else {}

    @staticmethod
    def _decode_as(model: Type[R], result: ApiResult[Dict[str, Any]]) -> ApiResult[R]:
        if not result.ok:
            return ApiResult(error=result.error)

        try:
            return ApiResult(data=model.model_validate(result.data))
        except ValidationError as e:
            logger.warning("Malformed %s payload: %s", model.__name__, e.error_count())
            return ApiResult(error=NoResponseError())
