"""Tests for the create-session use case against a real SQLite usage store."""

import json

import httpx
import pytest
import pytest_asyncio

from chat_usage.auth.identity import VisitorIdentity
from chat_usage.core.context import build_usage_context
from chat_usage.core.database import ensure_usage_schema
from chat_usage.core.errors import ConfigurationError, UpstreamSessionError
from chat_usage.services.session_gate import UsageLimitError
from chat_usage.services.session_service import create_session

GUEST = VisitorIdentity(subject="guest-fingerprint", tier="guest")
MEMBER = VisitorIdentity(subject="user_42", tier="authenticated")


@pytest_asyncio.fixture
async def metered_context(settings_factory, usage_db_url, chatkit_transport):
    context = build_usage_context(
        settings_factory(USAGE_DATABASE_URL=usage_db_url),
        http_transport=chatkit_transport,
    )
    await ensure_usage_schema(context.engine)
    yield context
    await context.dispose()


class TestCreateSession:
    async def test_fourth_guest_session_is_refused(self, metered_context, chatkit_requests):
        secrets = [await create_session(metered_context, GUEST) for _ in range(3)]

        with pytest.raises(UsageLimitError) as exc_info:
            await create_session(metered_context, GUEST)

        assert secrets == ["cs_1", "cs_2", "cs_3"]
        assert exc_info.value.details.status.sessions_today == 3
        assert exc_info.value.details.status.is_session_blocked is True
        # Refused before any upstream call
        assert len(chatkit_requests) == 3

    async def test_authenticated_users_get_higher_cap(self, metered_context):
        for _ in range(10):
            await create_session(metered_context, MEMBER)

        with pytest.raises(UsageLimitError) as exc_info:
            await create_session(metered_context, MEMBER)
        assert exc_info.value.details.limits.sessions_per_day == 10

    async def test_payload_carries_workflow_and_subject(self, metered_context, chatkit_requests):
        await create_session(metered_context, GUEST)

        body = json.loads(chatkit_requests[0].content)
        assert body == {"workflow": {"id": "wf_test"}, "user": GUEST.subject}
        assert chatkit_requests[0].headers["Authorization"] == "Bearer sk-test"

    async def test_unmetered_without_store(self, settings_factory, chatkit_transport, chatkit_requests):
        context = build_usage_context(settings_factory(), http_transport=chatkit_transport)
        assert context.store is None

        for _ in range(5):
            await create_session(context, GUEST)
        assert len(chatkit_requests) == 5

    @pytest.mark.parametrize(
        "overrides,missing",
        [
            ({"OPENAI_API_KEY": ""}, "OPENAI_API_KEY"),
            ({"CHATKIT_WORKFLOW_ID": "  "}, "CHATKIT_WORKFLOW_ID"),
        ],
    )
    async def test_missing_configuration(
        self, settings_factory, chatkit_transport, chatkit_requests, overrides, missing
    ):
        context = build_usage_context(
            settings_factory(**overrides), http_transport=chatkit_transport
        )

        with pytest.raises(ConfigurationError, match=missing):
            await create_session(context, GUEST)
        assert chatkit_requests == []

    async def test_upstream_failure_still_counts_the_session(
        self, settings_factory, usage_db_url
    ):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="down"))
        context = build_usage_context(
            settings_factory(USAGE_DATABASE_URL=usage_db_url), http_transport=transport
        )
        await ensure_usage_schema(context.engine)
        try:
            with pytest.raises(UpstreamSessionError):
                await create_session(context, GUEST)

            status = await context.store.get_status(
                subject=GUEST.subject, sessions_per_day=3, messages_per_day=20
            )
            assert status.sessions_today == 1
        finally:
            await context.dispose()
