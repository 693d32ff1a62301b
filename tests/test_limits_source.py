"""Tests for the remote (Sanity) usage limits document and its cache."""

import json
import logging

import httpx
import pytest

from chat_usage.services.limits_source import (
    USAGE_LIMITS_DOCUMENT_ID,
    UsageLimitsCache,
    fetch_usage_limits_config,
    load_usage_limits_config,
)
from chat_usage.services.usage_limits import DEFAULT_USAGE_LIMITS, FREE_LIMITS


@pytest.fixture
def sanity_settings(settings_factory):
    return settings_factory(SANITY_PROJECT_ID="abc123", SANITY_DATASET="production")


def _transport(responses, seen=None):
    """MockTransport replaying `responses` in order."""
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    return httpx.MockTransport(handler)


class TestFetchUsageLimitsConfig:
    async def test_queries_singleton_document(self, sanity_settings):
        seen = []
        transport = _transport(
            [httpx.Response(200, json={"result": {"freeSessionsPerDay": 5}})], seen
        )

        config = await fetch_usage_limits_config(sanity_settings, transport=transport)

        assert config.free_limits.sessions_per_day == 5
        request = seen[0]
        assert request.url.host == "abc123.api.sanity.io"
        assert request.url.path.endswith("/data/query/production")
        assert request.url.params["$id"] == json.dumps(USAGE_LIMITS_DOCUMENT_ID)
        assert "chatUsageLimits" in request.url.params["query"]
        assert "Authorization" not in request.headers

    async def test_sends_token_when_configured(self, settings_factory):
        seen = []
        app_settings = settings_factory(SANITY_PROJECT_ID="abc123", SANITY_API_TOKEN="tok")
        transport = _transport([httpx.Response(200, json={"result": None})], seen)

        await fetch_usage_limits_config(app_settings, transport=transport)

        assert seen[0].headers["Authorization"] == "Bearer tok"

    async def test_null_result_yields_defaults(self, sanity_settings):
        transport = _transport([httpx.Response(200, json={"result": None})])
        config = await fetch_usage_limits_config(sanity_settings, transport=transport)
        assert config == DEFAULT_USAGE_LIMITS

    async def test_no_project_means_no_network(self, settings_factory):
        transport = _transport([])  # any request would pop from an empty list
        config = await fetch_usage_limits_config(settings_factory(), transport=transport)
        assert config == DEFAULT_USAGE_LIMITS

    async def test_http_error_raises(self, sanity_settings):
        transport = _transport([httpx.Response(500, text="boom")])
        with pytest.raises(httpx.HTTPStatusError):
            await fetch_usage_limits_config(sanity_settings, transport=transport)

    async def test_malformed_result_raises(self, sanity_settings):
        transport = _transport([httpx.Response(200, json={"result": [1, 2]})])
        with pytest.raises(ValueError):
            await fetch_usage_limits_config(sanity_settings, transport=transport)


class TestLoadUsageLimitsConfig:
    async def test_network_failure_falls_back_to_defaults(self, sanity_settings, caplog):
        transport = _transport([httpx.ConnectError("unreachable")])

        with caplog.at_level(logging.WARNING):
            config = await load_usage_limits_config(sanity_settings, transport=transport)

        assert config == DEFAULT_USAGE_LIMITS
        assert "Failed to load chat usage limits config" in caplog.text

    async def test_bad_json_falls_back_to_defaults(self, sanity_settings):
        transport = _transport([httpx.Response(200, text="<html>")])
        config = await load_usage_limits_config(sanity_settings, transport=transport)
        assert config == DEFAULT_USAGE_LIMITS

    async def test_cache_serves_until_ttl_expires(self, sanity_settings):
        now = [0.0]
        cache = UsageLimitsCache(ttl_seconds=60, clock=lambda: now[0])
        seen = []
        transport = _transport(
            [
                httpx.Response(200, json={"result": {"freeSessionsPerDay": 5}}),
                httpx.Response(200, json={"result": {"freeSessionsPerDay": 6}}),
            ],
            seen,
        )

        first = await load_usage_limits_config(sanity_settings, cache, transport=transport)
        now[0] = 59.0
        second = await load_usage_limits_config(sanity_settings, cache, transport=transport)
        now[0] = 60.0
        third = await load_usage_limits_config(sanity_settings, cache, transport=transport)

        assert first.free_limits.sessions_per_day == 5
        assert second is first
        assert third.free_limits.sessions_per_day == 6
        assert len(seen) == 2

    async def test_failures_are_not_cached(self, sanity_settings):
        cache = UsageLimitsCache(ttl_seconds=60)
        transport = _transport(
            [
                httpx.ConnectError("unreachable"),
                httpx.Response(200, json={"result": {"freeSessionsPerDay": 4}}),
            ]
        )

        first = await load_usage_limits_config(sanity_settings, cache, transport=transport)
        second = await load_usage_limits_config(sanity_settings, cache, transport=transport)

        assert first.free_limits == FREE_LIMITS
        assert second.free_limits.sessions_per_day == 4


def test_cache_clear():
    cache = UsageLimitsCache(ttl_seconds=60)
    cache.set(DEFAULT_USAGE_LIMITS)
    assert cache.get() is DEFAULT_USAGE_LIMITS
    cache.clear()
    assert cache.get() is None
