"""
Doc Client

Authenticated REST clients for a single backend. Both the synchronous and the
asynchronous client attach the right credential to every call, refresh an
expired access token once on HTTP 401 and retry the call, and return every
outcome as a ``DocApiResponse`` instead of raising.
"""

import asyncio
import logging
import threading
from typing import Any, Dict, Literal, Mapping, Optional, Tuple, Union
from urllib.parse import urlparse

import httpx

from .types import (
    DocApiResponse,
    DocClientConfig,
    TokenStorage,
    LOGIN_ROUTE,
    LOGOUT_ROUTE,
    REFRESH_ROUTE,
)
from .errors import (
    DocClientError,
    NetworkError,
    DecodeError,
    ConfigurationError,
)
from .storage import MemoryStorage


logger = logging.getLogger("doc_client")

HttpMethod = Literal["GET", "POST", "PUT", "DELETE"]

API_KEY_NO_RETRY = "Not retrying request with API key set"
UNKNOWN_REQUEST_FAIL = "[Unknown Request Fail]"
RETRIED_REQUEST_FAIL = "[Retried Request Failed]"

# Never echoed to the debug log
_SENSITIVE_HEADERS = {"authorization", "set-cookie", "cookie"}


def _backend_message(payload: Mapping[str, Any]) -> Optional[str]:
    """Pick the most specific message a backend body carries."""
    message = payload.get("message")
    if isinstance(message, str) and message:
        return message
    error = payload.get("error")
    if isinstance(error, str) and error:
        return error
    if isinstance(error, Mapping):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
    return None


class _BaseDocClient:
    """
    Credential state and the I/O-free parts of the request protocol.

    Subclasses own the HTTP client and implement the network round-trips.
    """

    def __init__(
        self,
        config: Union[DocClientConfig, str],
        api_key: Optional[str] = None,
    ) -> None:
        if isinstance(config, str):
            config = DocClientConfig(base_url=config)
        self._validate_config(config)

        self._base_url = config.base_url.rstrip("/")
        self._api_key = api_key if api_key is not None else config.api_key
        self._timeout = config.timeout
        self._storage: TokenStorage = config.storage if config.storage is not None else MemoryStorage()
        self._debug = config.debug
        self._tokens_enabled = config.tokens_enabled
        self._custom_headers = dict(config.headers or {})
        self._verify = config.verify

    def _validate_config(self, config: DocClientConfig) -> None:
        """Validate configuration."""
        if not config.base_url:
            raise ConfigurationError("base_url is required")
        if urlparse(config.base_url).scheme not in ("http", "https"):
            raise ConfigurationError(
                "Invalid base_url. Expected an http:// or https:// URL",
                {"base_url": config.base_url},
            )

    def _log(self, message: str, *args: Any) -> None:
        """Log debug message."""
        if self._debug:
            logger.debug("[DocClient] " + message, *args)

    # =========================================================================
    # Configuration and Credential Accessors
    # =========================================================================

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def tokens_enabled(self) -> bool:
        return self._tokens_enabled

    def set_debug(self, debug: bool) -> None:
        """Toggle diagnostic logging for this client."""
        self._debug = debug

    def disable_tokens(self, disabled: bool = True) -> None:
        """Stop (or resume) attaching the access token as a bearer header."""
        self._tokens_enabled = not disabled

    def get_access_token(self) -> Optional[str]:
        return self._storage.get_access_token()

    def set_access_token(self, token: Optional[str]) -> None:
        self._storage.set_access_token(token)

    def get_refresh_token(self) -> Optional[str]:
        return self._storage.get_refresh_token()

    def set_refresh_token(self, token: Optional[str]) -> None:
        self._storage.set_refresh_token(token)

    def get_api_key(self) -> Optional[str]:
        return self._api_key

    def set_api_key(self, api_key: Optional[str]) -> None:
        self._api_key = api_key

    def is_authenticated(self) -> bool:
        """Check whether a credential is held locally. No network call is made."""
        return bool(self._api_key or self.get_access_token())

    # =========================================================================
    # Request Construction and Decoding
    # =========================================================================

    def _url(self, command: str) -> str:
        return f"{self._base_url}{command}"

    def _build_headers(self, authorize: bool = True) -> Dict[str, str]:
        """
        Headers for one attempt.

        The API key wins over the access token. With token mode on, a missing
        access token is sent as-is and left for the backend to reject.
        """
        headers: Dict[str, str] = {
            "Content-Type": "application/json",
            **self._custom_headers,
        }
        if not authorize:
            return headers
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        elif self._tokens_enabled:
            headers["Authorization"] = f"Bearer {self.get_access_token()}"
        return headers

    def _build_request(
        self,
        client: Union[httpx.Client, httpx.AsyncClient],
        method: str,
        url: str,
        body: Any = None,
        authorize: bool = True,
    ) -> httpx.Request:
        """Build a fresh request descriptor; every attempt gets its own."""
        headers = self._build_headers(authorize)
        try:
            return client.build_request(method, url, headers=headers, json=body)
        except httpx.InvalidURL as e:
            raise NetworkError(f"Invalid URL: {e}", {"url": url})
        except UnicodeEncodeError as e:
            # httpx encodes header values as ASCII
            raise DocClientError(
                "INVALID_HEADER",
                f"Header value is not ASCII encodable: {e.reason}",
                details={"position": e.start},
            )
        except (TypeError, ValueError) as e:
            raise DocClientError("INVALID_BODY", f"Request body is not JSON serializable: {e}")

    def _decode(self, response: httpx.Response) -> Dict[str, Any]:
        """Decode a response body into the backend's JSON object."""
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError:
            raise DecodeError(
                f"Invalid JSON response (HTTP {response.status_code})",
                response.status_code,
            )
        if not isinstance(payload, dict):
            raise DecodeError(
                f"Unexpected response shape (HTTP {response.status_code}): "
                f"expected a JSON object, got {type(payload).__name__}",
                response.status_code,
            )
        return payload

    def _log_response(self, method: str, url: str, response: httpx.Response) -> None:
        self._log("%s %s -> %d", method, url, response.status_code)

    def _log_headers(self, label: str, response: httpx.Response) -> None:
        if not self._debug:
            return
        self._log("%s response headers:", label)
        for name, value in response.headers.items():
            if name.lower() in _SENSITIVE_HEADERS:
                value = "<redacted>"
            self._log("  %s: %s", name, value)

    # =========================================================================
    # Envelope Construction
    # =========================================================================

    def _exception_envelope(self, error: DocClientError) -> DocApiResponse[Any]:
        """Fold an internal failure into an envelope."""
        self._log("Request failed: %s", error.message)
        return DocApiResponse.error(error, {"code": error.status_code})

    def _failure(
        self,
        payload: Mapping[str, Any],
        status_code: int,
        fallback: str,
    ) -> DocApiResponse[Any]:
        """Error envelope for a non-2xx response, preferring backend text."""
        self._log("HTTP %d: %s", status_code, _backend_message(payload) or fallback)
        return DocApiResponse.error(
            _backend_message(payload) or fallback,
            {"code": status_code, "errors": payload.get("errors")},
        )

    def _store_login(self, payload: Mapping[str, Any], status_code: int) -> DocApiResponse[Dict[str, Any]]:
        """Seed the credential pair from a successful login body."""
        tokens = payload.get("data")
        if not isinstance(tokens, Mapping) or not tokens.get("accessToken"):
            return self._exception_envelope(
                DecodeError("Login response carried no access token", status_code)
            )

        self.set_access_token(tokens["accessToken"])
        self.set_refresh_token(tokens.get("refreshToken"))
        self._log("Login successful")
        return DocApiResponse.ok(dict(tokens), {**payload, "data": None, "code": status_code})

    def _store_refreshed(self, payload: Mapping[str, Any], status_code: int) -> DocApiResponse[Dict[str, Any]]:
        """Store the rotated credentials from a successful refresh body."""
        tokens = payload.get("data")
        if not isinstance(tokens, Mapping) or not tokens.get("accessToken"):
            return self._exception_envelope(
                DecodeError("Token refresh response carried no access token", status_code)
            )

        self.set_access_token(tokens["accessToken"])
        # A backend that does not rotate refresh tokens keeps the current one
        if tokens.get("refreshToken"):
            self.set_refresh_token(tokens["refreshToken"])
        self._log("Access token refreshed")
        return DocApiResponse.ok(
            dict(tokens),
            {"message": _backend_message(payload) or "Token Refreshed", "code": status_code},
        )

    def _clear_after_logout(self, payload: Mapping[str, Any], status_code: int) -> DocApiResponse[Any]:
        self.set_access_token(None)
        self.set_refresh_token(None)
        self._log("Logout successful")
        return DocApiResponse.ok(
            payload.get("data"),
            {"message": _backend_message(payload) or "Logout Successful", "code": status_code},
        )

    def _already_refreshed(self, stale_token: Optional[str]) -> Optional[DocApiResponse[Dict[str, Any]]]:
        """
        Envelope for a refresh another caller completed while we waited on
        the lock, or None when this caller has to refresh itself.
        """
        current = self.get_access_token()
        if current and current != stale_token:
            self._log("Access token already refreshed by a concurrent request")
            return DocApiResponse.ok({"accessToken": current}, {"message": "Token Refreshed"})
        return None


class DocClient(_BaseDocClient):
    """
    Doc Client - Synchronous entry point.

    Every operation returns a ``DocApiResponse``; transport, decode and HTTP
    failures are reported in the envelope, never raised.
    """

    def __init__(
        self,
        config: Union[DocClientConfig, str],
        api_key: Optional[str] = None,
    ) -> None:
        """Initialize the client from a config or a bare base URL."""
        super().__init__(config, api_key)

        self._refresh_lock = threading.Lock()

        # HTTP client (created lazily, recreated after close)
        self._http_client: Optional[httpx.Client] = None

        self._log("DocClient initialized (base_url=%s, api_key=%s)", self._base_url, bool(self._api_key))

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=self._timeout, verify=self._verify)
        return self._http_client

    # =========================================================================
    # Authentication Methods
    # =========================================================================

    def login(
        self,
        username: str,
        password: str,
        domain: str = "",
        fingerprint: str = "",
    ) -> DocApiResponse[Dict[str, Any]]:
        """
        Login with username and password.

        On success both tokens are stored before the envelope is returned.

        Args:
            username: Login name
            password: Password
            domain: Backend domain the account belongs to
            fingerprint: Client device fingerprint

        Returns:
            Envelope with ``{"accessToken", "refreshToken"}`` as data
        """
        self._log("Login attempt for: %s", username)

        body = {"login": username, "password": password, "domain": domain, "fingerprint": fingerprint}
        try:
            response, payload = self._send("POST", self._url(LOGIN_ROUTE), body, authorize=False)
        except DocClientError as e:
            return self._exception_envelope(e)

        self._log_headers("Login", response)
        if not response.is_success:
            return self._failure(payload, response.status_code, "Login Failed")
        return self._store_login(payload, response.status_code)

    def logout(self, token: Optional[str] = None) -> DocApiResponse[Any]:
        """
        Logout the current session.

        Local tokens are cleared only when the backend confirms the logout.
        """
        self._log("Logout")

        body = {"token": token} if token else {}
        try:
            response, payload = self._send("POST", self._url(LOGOUT_ROUTE), body)
        except DocClientError as e:
            return self._exception_envelope(e)

        self._log_headers("Logout", response)
        if not response.is_success:
            return self._failure(payload, response.status_code, "Logout Failed")
        return self._clear_after_logout(payload, response.status_code)

    def _refresh_access_token(self) -> DocApiResponse[Dict[str, Any]]:
        """Exchange the stored refresh token for a new credential pair."""
        refresh_token = self.get_refresh_token()
        if not refresh_token:
            return DocApiResponse.error("No Refresh Token Available", {"code": 401})

        try:
            response, payload = self._send(
                "POST",
                self._url(REFRESH_ROUTE),
                {"refreshToken": refresh_token},
                authorize=False,
            )
        except DocClientError as e:
            return self._exception_envelope(e)

        if not response.is_success:
            return self._failure(payload, response.status_code, "Token Refresh Failed")
        return self._store_refreshed(payload, response.status_code)

    def _refresh_once(self, stale_token: Optional[str]) -> DocApiResponse[Dict[str, Any]]:
        """Refresh under the lock so concurrent 401s share one refresh."""
        with self._refresh_lock:
            done = self._already_refreshed(stale_token)
            if done is not None:
                return done
            return self._refresh_access_token()

    # =========================================================================
    # Request Methods
    # =========================================================================

    def request(self, method: HttpMethod, command: str, body: Any = None) -> DocApiResponse[Any]:
        """
        Issue an authenticated request against ``base_url + command``.

        A 401 is answered with at most one refresh and one retry.
        """
        return self._fetch_with_retry(method, self._url(command), body)

    def get(self, command: str) -> DocApiResponse[Any]:
        return self.request("GET", command)

    def post(self, command: str, body: Any = None) -> DocApiResponse[Any]:
        return self.request("POST", command, body)

    def put(self, command: str, body: Any = None) -> DocApiResponse[Any]:
        return self.request("PUT", command, body)

    def delete(self, command: str, body: Any = None) -> DocApiResponse[Any]:
        return self.request("DELETE", command, body)

    # =========================================================================
    # Internal Methods
    # =========================================================================

    def _fetch_with_retry(self, method: str, url: str, body: Any = None) -> DocApiResponse[Any]:
        """Send once; on an eligible 401 refresh and send exactly once more."""
        sent_token = self.get_access_token()
        try:
            response, payload = self._send(method, url, body)
            if response.is_success:
                return DocApiResponse.from_payload(payload, response.status_code)

            if self._api_key:
                return self._failure(payload, response.status_code, API_KEY_NO_RETRY)

            if response.status_code != 401 or not self.get_refresh_token():
                return self._failure(payload, response.status_code, UNKNOWN_REQUEST_FAIL)

            self._log("Access token rejected, refreshing before retry")
            refreshed = self._refresh_once(sent_token)
            if not refreshed.success:
                return DocApiResponse.error(refreshed.message, {"code": refreshed.code})

            response, payload = self._send(method, url, body)
            if response.is_success:
                return DocApiResponse.from_payload(payload, response.status_code)
            return self._failure(payload, response.status_code, RETRIED_REQUEST_FAIL)
        except DocClientError as e:
            return self._exception_envelope(e)

    def _send(
        self,
        method: str,
        url: str,
        body: Any = None,
        authorize: bool = True,
    ) -> Tuple[httpx.Response, Dict[str, Any]]:
        """Execute a single HTTP round-trip and decode the body."""
        client = self._get_client()
        request = self._build_request(client, method, url, body, authorize)
        self._log("%s %s", method, url)

        try:
            response = client.send(request)
        except httpx.TimeoutException:
            raise NetworkError("Request timeout", {"timeout": self._timeout})
        except httpx.RequestError as e:
            raise NetworkError(str(e) or e.__class__.__name__)

        self._log_response(method, url, response)
        return response, self._decode(response)

    def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            self._http_client.close()
            self._http_client = None

    def __enter__(self) -> "DocClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


# =============================================================================
# Async Client
# =============================================================================

class DocAsyncClient(_BaseDocClient):
    """
    Doc Client - Asynchronous entry point.

    Same surface as ``DocClient`` with coroutine methods. Concurrent calls
    that hit a 401 together share a single token refresh.
    """

    def __init__(
        self,
        config: Union[DocClientConfig, str],
        api_key: Optional[str] = None,
    ) -> None:
        """Initialize the async client from a config or a bare base URL."""
        super().__init__(config, api_key)

        self._refresh_lock = asyncio.Lock()

        # HTTP client (created lazily)
        self._http_client: Optional[httpx.AsyncClient] = None

        self._log("DocAsyncClient initialized (base_url=%s, api_key=%s)", self._base_url, bool(self._api_key))

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout, verify=self._verify)
        return self._http_client

    # =========================================================================
    # Authentication Methods
    # =========================================================================

    async def login(
        self,
        username: str,
        password: str,
        domain: str = "",
        fingerprint: str = "",
    ) -> DocApiResponse[Dict[str, Any]]:
        """Login with username and password."""
        self._log("Login attempt for: %s", username)

        body = {"login": username, "password": password, "domain": domain, "fingerprint": fingerprint}
        try:
            response, payload = await self._send("POST", self._url(LOGIN_ROUTE), body, authorize=False)
        except DocClientError as e:
            return self._exception_envelope(e)

        self._log_headers("Login", response)
        if not response.is_success:
            return self._failure(payload, response.status_code, "Login Failed")
        return self._store_login(payload, response.status_code)

    async def logout(self, token: Optional[str] = None) -> DocApiResponse[Any]:
        """Logout the current session."""
        self._log("Logout")

        body = {"token": token} if token else {}
        try:
            response, payload = await self._send("POST", self._url(LOGOUT_ROUTE), body)
        except DocClientError as e:
            return self._exception_envelope(e)

        self._log_headers("Logout", response)
        if not response.is_success:
            return self._failure(payload, response.status_code, "Logout Failed")
        return self._clear_after_logout(payload, response.status_code)

    async def _refresh_access_token(self) -> DocApiResponse[Dict[str, Any]]:
        refresh_token = self.get_refresh_token()
        if not refresh_token:
            return DocApiResponse.error("No Refresh Token Available", {"code": 401})

        try:
            response, payload = await self._send(
                "POST",
                self._url(REFRESH_ROUTE),
                {"refreshToken": refresh_token},
                authorize=False,
            )
        except DocClientError as e:
            return self._exception_envelope(e)

        if not response.is_success:
            return self._failure(payload, response.status_code, "Token Refresh Failed")
        return self._store_refreshed(payload, response.status_code)

    async def _refresh_once(self, stale_token: Optional[str]) -> DocApiResponse[Dict[str, Any]]:
        async with self._refresh_lock:
            done = self._already_refreshed(stale_token)
            if done is not None:
                return done
            return await self._refresh_access_token()

    # =========================================================================
    # Request Methods
    # =========================================================================

    async def request(self, method: HttpMethod, command: str, body: Any = None) -> DocApiResponse[Any]:
        """Issue an authenticated request against ``base_url + command``."""
        return await self._fetch_with_retry(method, self._url(command), body)

    async def get(self, command: str) -> DocApiResponse[Any]:
        return await self.request("GET", command)

    async def post(self, command: str, body: Any = None) -> DocApiResponse[Any]:
        return await self.request("POST", command, body)

    async def put(self, command: str, body: Any = None) -> DocApiResponse[Any]:
        return await self.request("PUT", command, body)

    async def delete(self, command: str, body: Any = None) -> DocApiResponse[Any]:
        return await self.request("DELETE", command, body)

    # =========================================================================
    # Internal Methods
    # =========================================================================

    async def _fetch_with_retry(self, method: str, url: str, body: Any = None) -> DocApiResponse[Any]:
        sent_token = self.get_access_token()
        try:
            response, payload = await self._send(method, url, body)
            if response.is_success:
                return DocApiResponse.from_payload(payload, response.status_code)

            if self._api_key:
                return self._failure(payload, response.status_code, API_KEY_NO_RETRY)

            if response.status_code != 401 or not self.get_refresh_token():
                return self._failure(payload, response.status_code, UNKNOWN_REQUEST_FAIL)

            self._log("Access token rejected, refreshing before retry")
            refreshed = await self._refresh_once(sent_token)
            if not refreshed.success:
                return DocApiResponse.error(refreshed.message, {"code": refreshed.code})

            response, payload = await self._send(method, url, body)
            if response.is_success:
                return DocApiResponse.from_payload(payload, response.status_code)
            return self._failure(payload, response.status_code, RETRIED_REQUEST_FAIL)
        except DocClientError as e:
            return self._exception_envelope(e)

    async def _send(
        self,
        method: str,
        url: str,
        body: Any = None,
        authorize: bool = True,
    ) -> Tuple[httpx.Response, Dict[str, Any]]:
        """Execute a single HTTP round-trip and decode the body."""
        client = self._get_client()
        request = self._build_request(client, method, url, body, authorize)
        self._log("%s %s", method, url)

        try:
            response = await client.send(request)
        except httpx.TimeoutException:
            raise NetworkError("Request timeout", {"timeout": self._timeout})
        except httpx.RequestError as e:
            raise NetworkError(str(e) or e.__class__.__name__)

        self._log_response(method, url, response)
        return response, self._decode(response)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "DocAsyncClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


# =============================================================================
# Factory Functions
# =============================================================================

def create_doc_client(base_url: str, api_key: Optional[str] = None, **options: Any) -> DocClient:
    """Create a new synchronous client; ``options`` are ``DocClientConfig`` fields."""
    return DocClient(DocClientConfig(base_url=base_url, api_key=api_key, **options))


def create_async_doc_client(base_url: str, api_key: Optional[str] = None, **options: Any) -> DocAsyncClient:
    """Create a new asynchronous client; ``options`` are ``DocClientConfig`` fields."""
    return DocAsyncClient(DocClientConfig(base_url=base_url, api_key=api_key, **options))
