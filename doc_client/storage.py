"""
Doc Client Token Storage Implementations

Provides various storage backends for token persistence. Any object with the
``TokenStorage`` methods can be passed to the client instead.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional


logger = logging.getLogger("doc_client")


class MemoryStorage:
    """In-memory token storage (default, non-persistent)."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> None:
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._lock = threading.Lock()

    def get_access_token(self) -> Optional[str]:
        """Get the stored access token."""
        with self._lock:
            return self._access_token

    def set_access_token(self, token: Optional[str]) -> None:
        with self._lock:
            self._access_token = token

    def get_refresh_token(self) -> Optional[str]:
        """Get the stored refresh token."""
        with self._lock:
            return self._refresh_token

    def set_refresh_token(self, token: Optional[str]) -> None:
        with self._lock:
            self._refresh_token = token


class FileStorage:
    """File-based token storage (persistent across restarts)."""

    def __init__(self, file_path: Optional[str] = None) -> None:
        """
        Initialize file storage.

        Args:
            file_path: Path to token file. Defaults to ~/.doc_client/tokens.json
        """
        if file_path:
            self._file_path = Path(file_path)
        else:
            self._file_path = Path.home() / ".doc_client" / "tokens.json"

        self._lock = threading.Lock()
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Ensure the storage directory exists."""
        self._file_path.parent.mkdir(parents=True, exist_ok=True)

    def _read_data(self) -> Dict[str, Any]:
        """Read token data from file."""
        if not self._file_path.exists():
            return {}
        try:
            with open(self._file_path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Could not read token file %s: %s", self._file_path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_data(self, data: Dict[str, Any]) -> None:
        """Write token data to file, or remove it once both tokens are cleared."""
        try:
            if not any(data.values()):
                if self._file_path.exists():
                    self._file_path.unlink()
                return
            with open(self._file_path, "w") as f:
                json.dump(data, f)
            # Owner read/write only
            os.chmod(self._file_path, 0o600)
        except OSError as e:
            logger.warning("Could not write token file %s: %s", self._file_path, e)

    def _update(self, key: str, token: Optional[str]) -> None:
        with self._lock:
            data = self._read_data()
            data[key] = token
            self._write_data(data)

    def get_access_token(self) -> Optional[str]:
        """Get the stored access token."""
        with self._lock:
            return self._read_data().get("access_token")

    def set_access_token(self, token: Optional[str]) -> None:
        self._update("access_token", token)

    def get_refresh_token(self) -> Optional[str]:
        """Get the stored refresh token."""
        with self._lock:
            return self._read_data().get("refresh_token")

    def set_refresh_token(self, token: Optional[str]) -> None:
        self._update("refresh_token", token)


class EnvironmentStorage:
    """Environment variable based storage (for serverless/containers)."""

    def __init__(
        self,
        access_token_var: str = "DOC_CLIENT_ACCESS_TOKEN",
        refresh_token_var: str = "DOC_CLIENT_REFRESH_TOKEN",
    ) -> None:
        self._access_token_var = access_token_var
        self._refresh_token_var = refresh_token_var
        self._lock = threading.Lock()

    def _set(self, var: str, token: Optional[str]) -> None:
        with self._lock:
            if token is None:
                os.environ.pop(var, None)
            else:
                os.environ[var] = token

    def get_access_token(self) -> Optional[str]:
        """Get the stored access token from environment."""
        return os.environ.get(self._access_token_var)

    def set_access_token(self, token: Optional[str]) -> None:
        self._set(self._access_token_var, token)

    def get_refresh_token(self) -> Optional[str]:
        """Get the stored refresh token from environment."""
        return os.environ.get(self._refresh_token_var)

    def set_refresh_token(self, token: Optional[str]) -> None:
        self._set(self._refresh_token_var, token)
