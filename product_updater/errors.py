"""Error taxonomy for update server calls.

API errors are returned inside an ``ApiResult`` rather than raised, so the
caller decides whether a failure is fatal to the operation or can wait for
the next scheduled run. They are still ``Exception`` subclasses so they can
be raised where a caller prefers that (``ApiResult.unwrap``).
"""

from typing import Optional

NO_RESPONSE_MESSAGE = "No response from update server"
FALLBACK_ERROR_CODE = "api_error"
FALLBACK_ERROR_MESSAGE = "API request failed"


class ApiError(Exception):
    """Base class for every update server failure."""

    code = "api_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __eq__(self, other):
        if not isinstance(other, ApiError):
            return NotImplemented
        return (type(self), self.code, self.message) == (type(other), other.code, other.message)

    def __hash__(self):
        return hash((type(self), self.code, self.message))

    def __repr__(self):
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class TransportError(ApiError):
    """Connection failure or timeout; retried on the next trigger."""

    code = "http_request_failed"


class NoResponseError(ApiError):
    """Empty or unparseable body on a non-error status."""

    code = "api_no_response"

    def __init__(self, message: str = NO_RESPONSE_MESSAGE):
        super().__init__(message)


class RemoteError(ApiError):
    """The server answered with an HTTP status >= 400."""

    def __init__(self, code: str = FALLBACK_ERROR_CODE, message: str = FALLBACK_ERROR_MESSAGE):
        super().__init__(message, code=code)
