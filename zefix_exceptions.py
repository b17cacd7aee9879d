"""
Custom exceptions for ZEFIX API operations.
"""

from typing import Any, Dict, Optional

REDACTION_MARKER = "[REDACTED]"
SENSITIVE_HEADERS = frozenset({"authorization", "proxy-authorization"})


def redact(value: Any) -> Any:
    """
    Return a copy of value with credential headers replaced by REDACTION_MARKER.

    Walks nested dicts, lists and tuples; header-like mappings such as
    requests' CaseInsensitiveDict are converted to plain dicts.
    """
    if hasattr(value, "items"):
        return {
            key: REDACTION_MARKER
            if isinstance(key, str) and key.lower() in SENSITIVE_HEADERS
            else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


class ZefixAPIError(Exception):
    """Base exception for all ZEFIX API-related errors."""

    pass


class ZefixValidationError(ZefixAPIError):
    """Raised when input validation fails."""

    pass


class ZefixNetworkError(ZefixAPIError):
    """Raised when API request fails due to network issues."""

    pass


class ZefixDataError(ZefixAPIError):
    """Raised when API response data is malformed or unexpected."""

    pass


class ZefixConfigurationError(ZefixAPIError):
    """Raised when the client is configured in an unsupported environment."""

    pass


class ZefixEnvironmentError(ZefixAPIError):
    """Raised when the interpreter lacks a capability the client needs."""

    pass


class ZefixRequestCancelled(ZefixAPIError):
    """Raised when a request is cancelled while waiting for its throttle slot."""

    pass


class ZefixHTTPError(ZefixAPIError):
    """
    Raised when the API answers with an error status or without data.

    Attributes:
        status: HTTP status code, if known
        code: Short machine-readable code (e.g. "NO_DATA")
        details: Response body and request summary, with credentials redacted
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.details = redact(details)

    @classmethod
    def from_response(cls, response) -> "ZefixHTTPError":
        """
        Build an error from a failed requests.Response.

        Args:
            response: The response whose status indicated failure

        Returns:
            ZefixHTTPError carrying the decoded body and the originating request
        """
        try:
            body = response.json()
        except ValueError:
            body = response.text or None

        details: Dict[str, Any] = {"body": body}
        request = getattr(response, "request", None)
        if request is not None:
            details["request"] = {
                "method": request.method,
                "url": request.url,
                "headers": dict(request.headers or {}),
            }

        message = f"ZEFIX API Error: {response.status_code} {response.reason or ''}".rstrip()
        return cls(message, status=response.status_code, details=details)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view of the error."""
        return {
            "message": self.message,
            "status": self.status,
            "code": self.code,
            "details": self.details,
        }
