"""
Doc Client Python SDK

An authenticated REST client with bearer token handling, a single transparent
refresh-and-retry on HTTP 401, and a uniform result envelope for every call.
Ships a synchronous and an asynchronous client over httpx.
"""

from .client import DocClient, DocAsyncClient, create_doc_client, create_async_doc_client
from .types import (
    DocApiResponse,
    DocClientConfig,
    TokenStorage,
)
from .errors import (
    DocClientError,
    NetworkError,
    DecodeError,
    ConfigurationError,
    is_doc_client_error,
)
from .storage import MemoryStorage, FileStorage, EnvironmentStorage

__version__ = "1.0.0"
__all__ = [
    # Clients
    "DocClient",
    "DocAsyncClient",
    "create_doc_client",
    "create_async_doc_client",
    # Types
    "DocApiResponse",
    "DocClientConfig",
    "TokenStorage",
    # Errors
    "DocClientError",
    "NetworkError",
    "DecodeError",
    "ConfigurationError",
    "is_doc_client_error",
    # Storage
    "MemoryStorage",
    "FileStorage",
    "EnvironmentStorage",
]
