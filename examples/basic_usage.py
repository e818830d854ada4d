"""
Doc Client Python SDK - Basic Usage Example

This example demonstrates the basic usage of the Doc Client Python SDK.
Every call returns a DocApiResponse, so no try/except is needed.
"""

import asyncio
import logging

from doc_client import (
    DocClient,
    DocAsyncClient,
    DocClientConfig,
    FileStorage,
)


API_BASE_URL = "https://stage.example.com:3790"


def sync_example():
    """Synchronous client example."""
    print("=== Sync Client Example ===\n")

    # Initialize client, persisting tokens between runs
    client = DocClient(DocClientConfig(
        base_url=API_BASE_URL,
        storage=FileStorage(),
        debug=True,
    ))

    # Login (fails without a real API, but never raises)
    login = client.login("dummy@test.com", "password", domain="somewhere", fingerprint="ff78")
    if not login.is_success():
        print(f"Login failed ({login.code}): {login.message}")
    else:
        print("Logged in")

    # An expired access token is refreshed once and the call retried
    whoami = client.get("/api/v1/whoami")
    if whoami.is_success():
        print(f"Whoami: {whoami.data}")
    else:
        print(f"Whoami failed ({whoami.code}): {whoami.message}")

    logout = client.logout()
    print(f"Logout: {logout.message}")

    # Cleanup
    client.close()


async def async_example():
    """Asynchronous client example using an API key."""
    print("\n=== Async Client Example ===\n")

    # Using context manager; an API key disables the refresh cycle
    async with DocAsyncClient(API_BASE_URL, api_key="apikey-9XyZ7890KlMnP") as client:
        results = await asyncio.gather(
            client.get("/api/v1/whoami"),
            client.get("/api/v1/documents"),
        )
        for result in results:
            print(result.to_dict())


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    sync_example()
    asyncio.run(async_example())

    print("\nExamples completed!")
