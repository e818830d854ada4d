"""
Doc Client Error Classes

Internal failure taxonomy. Client operations convert these into
``DocApiResponse`` envelopes before returning, so only
``ConfigurationError`` ever reaches the caller.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class DocClientError(Exception):
    """Base error class for Doc Client."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "name": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class NetworkError(DocClientError):
    """Transport failure (connection, DNS, TLS, timeout)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("NETWORK_ERROR", message, 500, details)


class DecodeError(DocClientError):
    """Response body is not the expected JSON object."""

    def __init__(
        self,
        message: str = "Invalid JSON response",
        http_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if http_status is not None:
            details["http_status"] = http_status
        super().__init__("DECODE_ERROR", message, 500, details)
        self.http_status = http_status


class ConfigurationError(DocClientError):
    """Configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, 0, details)


def is_doc_client_error(error: Any) -> bool:
    """Check if error is a DocClientError."""
    return isinstance(error, DocClientError)
