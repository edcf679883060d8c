"""Tests for the async client and its blocking facade."""

from __future__ import annotations

import asyncio
import json
from datetime import timedelta

import httpx
import pytest

from steadyhttp.cache import MemoryCacheStore, ResponseCache
from steadyhttp.client import AsyncHttpClient, HttpClient
from steadyhttp.client.response import json_handler, status_handler, text_handler
from steadyhttp.exceptions import (
    ConnectionError_,
    InvalidArgumentError,
    InvalidHandlerError,
    ResponseError,
)
from steadyhttp.options import Option, RequestConfig
from steadyhttp.retry import AttemptStats
from steadyhttp.transport import HttpxTransport


URL = "https://api.example.com/items"


def _echo(request: httpx.Request) -> httpx.Response:
    """Reply with what was received."""
    body = request.content.decode() if request.content else None
    return httpx.Response(
        200,
        json={
            "method": request.method,
            "url": str(request.url),
            "headers": dict(request.headers),
            "body": body,
        },
    )


def _echo_client(config=None, **kwargs) -> HttpClient:
    return HttpClient(config, transport=httpx.MockTransport(_echo), **kwargs)


class Extractor:
    def __init__(self, field: str) -> None:
        self.field = field

    def pick(self, request, response):
        return response.json()[self.field]

    async def pick_async(self, request, response):
        return response.json()[self.field]


# ------------------------------------------------------------------ #
# Fluent configuration
# ------------------------------------------------------------------ #


class TestConfiguration:
    def test_setters_chain_and_return_client(self) -> None:
        client = HttpClient()
        returned = (
            client.set_header("DNT", "1")
            .set_proxy("socks5://127.0.0.1:9050")
            .set_timeout(5)
            .set_connect_timeout(2)
            .set_retry_limit(1)
            .set_cache_ttl(timedelta(minutes=1))
            .set_handler(json_handler)
        )
        assert returned is client
        assert client.get_config("headers")["DNT"] == "1"
        assert client.get_config(Option.PROXY) == "socks5://127.0.0.1:9050"
        assert client.get_config("timeout") == 5.0
        assert client.get_config("connect_timeout") == 2.0
        assert client.get_config("retry_limit") == 1
        assert client.config.ttl_seconds == 60.0
        assert client.get_config("handler") is json_handler

    def test_get_config_without_name_returns_all(self) -> None:
        options = HttpClient({"timeout": 4}).get_config()
        assert options["timeout"] == 4.0
        assert set(options) == {option.value for option in Option}

    def test_remove_default_header(self) -> None:
        client = HttpClient().set_header("Accept-Language", None)
        assert "Accept-Language" not in client.get_config("headers")

    def test_merge_config(self) -> None:
        client = AsyncHttpClient({"timeout": 3})
        client.merge_config({"retry_limit": 0, "headers": {"X-A": "1"}})
        assert client.get_config("timeout") == 3.0
        assert client.get_config("retry_limit") == 0
        assert client.get_config("headers")["X-A"] == "1"

    def test_accepts_snapshot(self) -> None:
        config = RequestConfig(timeout=1)
        assert HttpClient(config).config is config

    def test_invalid_values_raise_at_call_site(self) -> None:
        client = HttpClient()
        with pytest.raises(InvalidArgumentError, match="negative timeout"):
            client.set_timeout(-3.14)
        with pytest.raises(InvalidArgumentError, match="negative connect timeout"):
            client.set_connect_timeout(-3.14)
        with pytest.raises(InvalidArgumentError, match="Invalid cache ttl value"):
            client.set_cache_ttl("1 day")  # type: ignore[arg-type]
        with pytest.raises(InvalidHandlerError, match="'handler' option is not callable"):
            client.set_handler("not callable at all")
        assert client.get_config("timeout") == 30.0

    def test_unknown_option(self) -> None:
        with pytest.raises(InvalidArgumentError):
            HttpClient({"verify": False})

    def test_snapshot_isolated_from_later_changes(self) -> None:
        client = HttpClient({"timeout": 3})
        snapshot = client.config
        client.set_timeout(9)
        assert snapshot.timeout == 3.0


# ------------------------------------------------------------------ #
# Blocking requests
# ------------------------------------------------------------------ #


class TestSyncRequests:
    def test_get_returns_response_without_handler(self) -> None:
        response = _echo_client().get(URL)
        assert isinstance(response, httpx.Response)
        assert response.json()["method"] == "GET"

    def test_handler_transforms_result(self) -> None:
        assert _echo_client({"handler": status_handler}).get(URL) == 200

    def test_default_headers_sent(self) -> None:
        data = _echo_client({"handler": json_handler}).get(URL)
        assert data["headers"]["accept-language"] == "en-US,en;q=0.9"
        assert data["headers"]["user-agent"].startswith("steadyhttp/")

    def test_per_request_options_override_base(self) -> None:
        client = _echo_client({"handler": json_handler, "headers": {"X-Base": "1"}})
        data = client.get(URL, {"headers": {"X-Base": None, "X-Call": "2"}})
        assert "x-base" not in data["headers"]
        assert data["headers"]["x-call"] == "2"
        assert client.get_config("headers")["X-Base"] == "1"

    def test_params_are_added_to_url(self) -> None:
        data = _echo_client({"handler": json_handler}).get(URL, params={"page": 2})
        assert data["url"] == f"{URL}?page=2"

    def test_json_body(self) -> None:
        data = _echo_client({"handler": json_handler}).post(URL, json={"name": "x"})
        assert data["method"] == "POST"
        assert json.loads(data["body"]) == {"name": "x"}

    @pytest.mark.parametrize("verb", ["put", "patch", "delete", "head"])
    def test_verb_helpers(self, verb: str) -> None:
        client = _echo_client({"handler": status_handler})
        assert getattr(client, verb)(URL) == 200

    def test_method_helper_is_case_insensitive(self) -> None:
        data = _echo_client({"handler": json_handler}).request("get", URL)
        assert data["method"] == "GET"

    def test_handler_by_pair_and_string(self) -> None:
        client = _echo_client()
        assert client.get(URL, {"handler": (Extractor("method"), "pick")}) == "GET"
        assert client.get(URL, {"handler": "steadyhttp.client.response.status_handler"}) == 200

    def test_async_handler_is_awaited(self) -> None:
        client = _echo_client({"handler": (Extractor("method"), "pick_async")})
        assert client.get(URL) == "GET"

    def test_handler_receives_request_and_response(self) -> None:
        seen = {}

        def handler(request, response):
            seen["request"] = request
            seen["response"] = response
            return "done"

        assert _echo_client({"handler": handler}).get(URL) == "done"
        assert seen["request"].url == URL
        assert seen["response"].status_code == 200

    def test_error_response_raises(self, recording) -> None:
        handler = recording(httpx.Response(422, json={"detail": "bad input"}))
        client = HttpClient({"retry_limit": 0}, transport=httpx.MockTransport(handler))
        with pytest.raises(ResponseError) as excinfo:
            client.post(URL, json={})
        assert excinfo.value.status_code == 422
        assert excinfo.value.request.method == "POST"
        assert "bad input" in str(excinfo.value)

    def test_connection_error(self, recording) -> None:
        handler = recording(httpx.ConnectError("refused"))
        client = HttpClient(
            {"retry_limit": 1, "backoff_factor": 0}, transport=httpx.MockTransport(handler)
        )
        with pytest.raises(ConnectionError_, match="Connection failed"):
            client.get(URL)
        assert handler.calls == 2

    def test_redirect_loop_is_a_connection_error(self, recording) -> None:
        handler = recording(httpx.Response(302, headers={"Location": URL}))
        client = HttpClient({"retry_limit": 0}, transport=httpx.MockTransport(handler))
        with pytest.raises(ConnectionError_, match="Request failed") as excinfo:
            client.get(URL)
        assert isinstance(excinfo.value.__cause__, httpx.TooManyRedirects)
        assert handler.calls > 1

    def test_unparsable_url_is_an_invalid_argument(self, recording) -> None:
        handler = recording()
        client = HttpClient(transport=httpx.MockTransport(handler))
        with pytest.raises(InvalidArgumentError, match="Invalid URL"):
            client.get("https://api.example.com:port/items")
        assert handler.calls == 0

    def test_on_attempt_observer(self, recording) -> None:
        handler = recording(httpx.Response(500))
        stats: list[AttemptStats] = []
        client = HttpClient(
            {"retry_limit": 2, "backoff_factor": 0, "on_attempt": stats.append},
            transport=httpx.MockTransport(handler),
        )
        with pytest.raises(ResponseError):
            client.get(URL)
        assert [s.ordinal for s in stats] == [0, 1, 2]
        assert all(s.status_code == 500 for s in stats)
        assert all(s.url == URL and s.method == "GET" for s in stats)

    def test_cache_shared_between_calls(self, recording) -> None:
        handler = recording(httpx.Response(200, text="cached"))
        with HttpClient(
            {"cache_ttl": 60, "handler": text_handler},
            cache=MemoryCacheStore(),
            transport=httpx.MockTransport(handler),
        ) as client:
            assert client.get(URL) == "cached"
            assert client.get(URL) == "cached"
            assert client.cache.stats()["size"] == 1
        assert handler.calls == 1

    def test_request_pool(self) -> None:
        client = _echo_client({"handler": status_handler})
        results = client.request_pool("GET", {"a": URL, 2: URL}, concurrency=2)
        assert results == {"a": 200, 2: 200}


# ------------------------------------------------------------------ #
# Async client
# ------------------------------------------------------------------ #


class TestAsyncClient:
    def test_get(self) -> None:
        async def main():
            async with AsyncHttpClient(
                {"handler": json_handler}, transport=httpx.MockTransport(_echo)
            ) as client:
                return await client.get(URL)

        assert asyncio.run(main())["method"] == "GET"

    def test_concurrent_requests_share_one_client(self) -> None:
        async def main():
            async with AsyncHttpClient(
                {"handler": status_handler}, transport=httpx.MockTransport(_echo)
            ) as client:
                return await asyncio.gather(*(client.get(f"{URL}/{i}") for i in range(5)))

        assert asyncio.run(main()) == [200] * 5

    def test_accepts_response_cache_instance(self) -> None:
        cache = ResponseCache(MemoryCacheStore())
        client = AsyncHttpClient(cache=cache)
        assert client.cache is cache

    def test_cache_disabled_by_default(self) -> None:
        assert not AsyncHttpClient().cache.enabled

    def test_accepts_transport_instance(self) -> None:
        transport = HttpxTransport(transport=httpx.MockTransport(_echo))

        async def main():
            async with AsyncHttpClient({"handler": status_handler}, transport=transport) as client:
                return await client.get(URL)

        assert asyncio.run(main()) == 200

    def test_invalid_handler_fails_before_io(self, recording) -> None:
        handler = recording()

        async def main():
            async with AsyncHttpClient(transport=httpx.MockTransport(handler)) as client:
                await client.get(URL, {"handler": ("not a type", "missing")})

        with pytest.raises(InvalidHandlerError):
            asyncio.run(main())
        assert handler.calls == 0
