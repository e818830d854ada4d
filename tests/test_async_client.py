"""
Tests for the asynchronous Doc Client

Covers the coroutine surface and the shared refresh under concurrent 401s.
"""

import asyncio
import json
import pytest
from typing import Any, Dict

import httpx
import respx

from doc_client import DocAsyncClient, DocClientConfig, create_async_doc_client


BASE_URL = "https://api.example.com"
LOGIN_URL = f"{BASE_URL}/api/v1/login"
REFRESH_URL = f"{BASE_URL}/api/v1/refresh"
LOGOUT_URL = f"{BASE_URL}/api/v1/logout"
WHOAMI_URL = f"{BASE_URL}/api/v1/whoami"


@pytest.fixture
def refresh_response() -> Dict[str, Any]:
    return {"data": {"accessToken": "A2", "refreshToken": "R2"}}


def make_client(**options: Any) -> DocAsyncClient:
    client = create_async_doc_client(BASE_URL, **options)
    client.set_access_token("A")
    client.set_refresh_token("R")
    return client


class TestAsyncClient:
    """Tests for asynchronous client."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_login_success(self):
        """Test successful async login."""
        respx.post(LOGIN_URL).mock(
            return_value=httpx.Response(200, json={"data": {"accessToken": "A", "refreshToken": "R"}})
        )

        async with DocAsyncClient(DocClientConfig(base_url=BASE_URL)) as client:
            result = await client.login("dummy@test.com", "secret", "somewhere", "ff78")

            assert result.is_success()
            assert client.get_access_token() == "A"
            assert client.get_refresh_token() == "R"

    @pytest.mark.asyncio
    @respx.mock
    async def test_login_failure(self):
        respx.post(LOGIN_URL).mock(
            return_value=httpx.Response(401, json={"message": "Invalid login or password"})
        )

        client = DocAsyncClient(BASE_URL)
        result = await client.login("user", "wrong")

        assert result.success is False
        assert result.code == 401
        assert result.message == "Invalid login or password"
        assert client.get_access_token() is None

        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_verbs(self):
        client = make_client()
        get = respx.get(WHOAMI_URL).mock(return_value=httpx.Response(200, json={"data": {"uid": 1}}))
        post = respx.post(f"{BASE_URL}/api/v1/items").mock(
            return_value=httpx.Response(200, json={"data": {"id": 2}})
        )
        respx.put(f"{BASE_URL}/api/v1/items/2").mock(
            return_value=httpx.Response(200, json={"data": {"id": 2}})
        )
        respx.delete(f"{BASE_URL}/api/v1/items/2").mock(
            return_value=httpx.Response(200, json={"data": {"deleted": True}})
        )

        assert (await client.get("/api/v1/whoami")).data == {"uid": 1}
        assert (await client.post("/api/v1/items", {"name": "x"})).data == {"id": 2}
        assert (await client.put("/api/v1/items/2", {"name": "y"})).is_success()
        assert (await client.delete("/api/v1/items/2")).is_success()

        assert get.calls.last.request.headers["Authorization"] == "Bearer A"
        assert json.loads(post.calls.last.request.content) == {"name": "x"}

        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_refresh_and_retry_once(self, refresh_response: Dict):
        client = make_client()
        route = respx.get(WHOAMI_URL).mock(side_effect=[
            httpx.Response(401, json={"message": "jwt expired"}),
            httpx.Response(200, json={"data": {"uid": 7}}),
        ])
        refresh = respx.post(REFRESH_URL).mock(
            return_value=httpx.Response(200, json=refresh_response)
        )

        result = await client.get("/api/v1/whoami")

        assert result.is_success()
        assert result.data == {"uid": 7}
        assert route.call_count == 2
        assert refresh.call_count == 1
        assert route.calls[1].request.headers["Authorization"] == "Bearer A2"
        assert client.get_refresh_token() == "R2"

        await client.close()

    @pytest.mark.asyncio
    async def test_no_retry_with_api_key(self):
        client = make_client(api_key="apikey-9XyZ")

        with respx.mock(assert_all_called=False) as router:
            route = router.get(WHOAMI_URL).mock(return_value=httpx.Response(401, json={}))
            refresh = router.post(REFRESH_URL)

            result = await client.get("/api/v1/whoami")

        assert result.success is False
        assert result.code == 401
        assert route.call_count == 1
        assert refresh.call_count == 0
        assert route.calls.last.request.headers["Authorization"] == "Bearer apikey-9XyZ"

        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_refresh_failure_aborts_retry(self):
        client = make_client()
        route = respx.get(WHOAMI_URL).mock(return_value=httpx.Response(401, json={}))
        respx.post(REFRESH_URL).mock(
            return_value=httpx.Response(401, json={"message": "Refresh token expired"})
        )

        result = await client.get("/api/v1/whoami")

        assert result.success is False
        assert result.message == "Refresh token expired"
        assert route.call_count == 1

        await client.close()

    @pytest.mark.asyncio
    async def test_no_refresh_token(self):
        client = create_async_doc_client(BASE_URL)
        client.set_access_token("A")

        with respx.mock(assert_all_called=False) as router:
            route = router.get(WHOAMI_URL).mock(return_value=httpx.Response(401, json={}))
            refresh = router.post(REFRESH_URL)

            result = await client.get("/api/v1/whoami")

        assert result.code == 401
        assert route.call_count == 1
        assert refresh.call_count == 0

        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_logout_failure_keeps_tokens(self):
        client = make_client()
        respx.post(LOGOUT_URL).mock(return_value=httpx.Response(500, json={}))

        result = await client.logout()

        assert result.success is False
        assert result.message == "Logout Failed"
        assert client.get_access_token() == "A"
        assert client.get_refresh_token() == "R"

        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_logout_success(self):
        client = make_client()
        respx.post(LOGOUT_URL).mock(return_value=httpx.Response(200, json={"data": {}}))

        result = await client.logout("R")

        assert result.success is True
        assert client.get_access_token() is None
        assert client.get_refresh_token() is None

        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_failure(self):
        client = make_client()
        respx.get(WHOAMI_URL).mock(side_effect=httpx.ConnectError("Name or service not known"))

        result = await client.get("/api/v1/whoami")

        assert result.success is False
        assert result.code == 500
        assert "Name or service not known" in result.message

        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_concurrent_401s_share_one_refresh(self, refresh_response: Dict):
        client = make_client()

        def whoami(request: httpx.Request) -> httpx.Response:
            if request.headers["Authorization"] == "Bearer A":
                return httpx.Response(401, json={})
            return httpx.Response(200, json={"data": {"uid": 1}})

        respx.get(WHOAMI_URL).mock(side_effect=whoami)
        refresh = respx.post(REFRESH_URL).mock(
            return_value=httpx.Response(200, json=refresh_response)
        )

        results = await asyncio.gather(*(client.get("/api/v1/whoami") for _ in range(3)))

        assert all(result.is_success() for result in results)
        assert refresh.call_count == 1
        assert client.get_access_token() == "A2"

        await client.close()
