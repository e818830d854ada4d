"""
Doc Client Type Definitions

Result envelope, client configuration and the token storage interface.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Mapping, Optional, Protocol, TypeVar, runtime_checkable


T = TypeVar("T")

LOGIN_ROUTE = "/api/v1/login"
REFRESH_ROUTE = "/api/v1/refresh"
LOGOUT_ROUTE = "/api/v1/logout"

NO_MESSAGE = "[No Message]"
NO_ERROR_MESSAGE = "[No error message]"
UNKNOWN_ERROR_TYPE = "[Unknown error type]"

_ENVELOPE_FIELDS = ("success", "code", "message", "data", "errors")


def extract_message(message: Any) -> str:
    """
    Normalize anything used as a message into a non-empty string.

    Strings pass through, exceptions yield their ``message`` attribute (or
    ``str(exc)``), mappings yield a string ``message`` key. Everything else
    maps to a fixed fallback.
    """
    if message is None:
        return NO_MESSAGE
    if isinstance(message, str):
        return message or NO_MESSAGE
    if isinstance(message, BaseException):
        text = getattr(message, "message", None)
        if not isinstance(text, str) or not text:
            text = str(message)
        return text or NO_ERROR_MESSAGE
    if isinstance(message, Mapping):
        text = message.get("message")
        if isinstance(text, str) and text:
            return text
    return UNKNOWN_ERROR_TYPE


def _merge(defaults: Dict[str, Any], overrides: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Right-biased merge restricted to envelope fields; None values are skipped."""
    merged = dict(defaults)
    if overrides:
        for key in _ENVELOPE_FIELDS:
            value = overrides.get(key)
            if value is not None:
                merged[key] = value
    return merged


@dataclass
class DocApiResponse(Generic[T]):
    """
    Uniform result of every client operation.

    A failed envelope never carries data. ``is_success()`` is the single check
    callers need before touching ``data``.
    """

    success: bool = False
    code: int = 500
    message: str = NO_MESSAGE
    data: Optional[T] = None
    errors: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.success = bool(self.success)
        try:
            self.code = int(self.code)
        except (TypeError, ValueError):
            self.code = 500
        self.message = extract_message(self.message)
        if not self.success:
            self.data = None
        self.errors = dict(self.errors) if isinstance(self.errors, Mapping) else {}

    @classmethod
    def ok(cls, data: Optional[T], overrides: Optional[Mapping[str, Any]] = None) -> "DocApiResponse[T]":
        """Success envelope (200/OK) with caller overrides applied on top."""
        fields = _merge(
            {"success": True, "code": 200, "message": "OK", "data": data, "errors": {}},
            overrides,
        )
        return cls(**fields)

    @classmethod
    def error(cls, message: Any, overrides: Optional[Mapping[str, Any]] = None) -> "DocApiResponse[T]":
        """Failure envelope (500) with caller overrides applied on top; data is always None."""
        fields = _merge(
            {"success": False, "code": 500, "message": message, "data": None, "errors": {}},
            overrides,
        )
        fields["success"] = False
        fields["data"] = None
        return cls(**fields)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], status_code: int) -> "DocApiResponse[Any]":
        """
        Success envelope from a decoded backend body.

        Only a non-empty string ``message`` replaces the "OK" default.
        """
        message = payload.get("message")
        if not isinstance(message, str) or not message:
            message = None
        return cls.ok(payload.get("data"), {"message": message, "code": status_code})

    def add_error(self, field_name: str, detail: Any) -> None:
        """Record field-level error detail."""
        self.errors[field_name] = detail

    def is_success(self) -> bool:
        return self.success and self.data is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "success": self.success,
            "code": self.code,
            "message": self.message,
            "data": self.data,
            "errors": dict(self.errors),
        }


@runtime_checkable
class TokenStorage(Protocol):
    """Token storage interface for custom implementations."""

    def get_access_token(self) -> Optional[str]:
        """Get the stored access token."""
        ...

    def set_access_token(self, token: Optional[str]) -> None:
        """Store (or clear, with None) the access token."""
        ...

    def get_refresh_token(self) -> Optional[str]:
        """Get the stored refresh token."""
        ...

    def set_refresh_token(self, token: Optional[str]) -> None:
        """Store (or clear, with None) the refresh token."""
        ...


@dataclass
class DocClientConfig:
    """Client configuration options."""

    # API base URL; a trailing slash is stripped
    base_url: str
    # Static API key, takes precedence over tokens and disables refresh
    api_key: Optional[str] = None
    # Request timeout in seconds (default: 30)
    timeout: float = 30.0
    # Custom storage for tokens (default: None, uses MemoryStorage)
    storage: Optional[TokenStorage] = None
    # Enable debug logging (default: False)
    debug: bool = False
    # Attach the access token as a bearer header (default: True)
    tokens_enabled: bool = True
    # Custom headers to include in requests
    headers: Optional[Dict[str, str]] = None
    # TLS verification, passed through to httpx
    verify: bool = True
