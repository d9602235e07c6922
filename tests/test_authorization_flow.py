"""
Tests for single-use authorization state and the authorization-code flow.
"""

import asyncio
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest
import pytest_asyncio

from credbridge.auth.authorization_code import AuthorizationFlowCoordinator, FlowStage
from credbridge.errors import (
    ConfigurationError,
    InvalidStateError,
    OAuthCallbackError,
    UpstreamAuthError,
)
from credbridge.http.client import UpstreamClient
from credbridge.state import AuthorizationStateStore, MemoryTTLStore

from .conftest import REGISTRY_CLIENT_ID, REGISTRY_CLIENT_SECRET


@pytest.fixture
def state_store(clock):
    return AuthorizationStateStore(MemoryTTLStore(clock=clock), ttl_seconds=600, clock=clock)


@pytest_asyncio.fixture
async def coordinator(base_url, state_store, clock):
    coordinator = AuthorizationFlowCoordinator(
        authorize_url=f"{base_url}/oauth2/v2.0/authorize",
        token_url=f"{base_url}/oauth2/v2.0/token",
        client_id=REGISTRY_CLIENT_ID,
        client_secret=REGISTRY_CLIENT_SECRET,
        redirect_uri="http://localhost:3001/nzbn/oauth/callback",
        scope="NZBNCO:manage offline_access",
        policy="b2c_1a_api_consent_susi",
        state_store=state_store,
        http=UpstreamClient(timeout=5.0),
        clock=clock,
    )
    yield coordinator
    await coordinator.http.close()


def state_from(url):
    return parse_qs(urlparse(url).query)["state"][0]


class TestAuthorizationStateStore:
    """Test single-use state semantics."""

    @pytest.mark.asyncio
    async def test_consume_returns_bound_session(self, state_store):
        await state_store.put("abc", "session-1")
        entry = await state_store.consume("abc")
        assert entry.session_id == "session-1"

    @pytest.mark.asyncio
    async def test_consume_twice_fails(self, state_store):
        await state_store.put("abc", "session-1")
        await state_store.consume("abc")
        with pytest.raises(InvalidStateError):
            await state_store.consume("abc")

    @pytest.mark.asyncio
    async def test_unknown_state(self, state_store):
        with pytest.raises(InvalidStateError):
            await state_store.consume("never-issued")

    @pytest.mark.asyncio
    async def test_expired_state(self, state_store, clock):
        await state_store.put("abc", "session-1")
        clock.advance(seconds=601)
        with pytest.raises(InvalidStateError):
            await state_store.consume("abc")

    @pytest.mark.asyncio
    async def test_concurrent_consume_exactly_one_wins(self, state_store):
        await state_store.put("abc", "session-1")

        results = await asyncio.gather(
            *(state_store.consume("abc") for _ in range(5)),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, InvalidStateError)]
        assert len(successes) == 1
        assert len(failures) == 4

    @pytest.mark.asyncio
    async def test_memory_cleanup(self, clock):
        store = MemoryTTLStore(clock=clock)
        await store.set_with_ttl("a", "1", 10)
        await store.set_with_ttl("b", "2", 100)
        clock.advance(seconds=50)

        assert await store.cleanup() == 1
        assert len(store) == 1


class TestAuthorizationFlowCoordinator:
    """Test the authorization-code flow against the fake registry."""

    @pytest.mark.asyncio
    async def test_authorization_url(self, coordinator, base_url):
        url = await coordinator.build_authorization_url("session-1")

        parsed = urlparse(url)
        params = parse_qs(parsed.query)
        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == f"{base_url}/oauth2/v2.0/authorize"
        assert params["p"] == ["b2c_1a_api_consent_susi"]
        assert params["response_type"] == ["code"]
        assert params["client_id"] == [REGISTRY_CLIENT_ID]
        assert params["redirect_uri"] == ["http://localhost:3001/nzbn/oauth/callback"]
        assert params["scope"] == ["NZBNCO:manage offline_access"]
        assert len(params["state"][0]) >= 32

    @pytest.mark.asyncio
    async def test_states_are_unique(self, coordinator):
        first = state_from(await coordinator.build_authorization_url("s"))
        second = state_from(await coordinator.build_authorization_url("s"))
        assert first != second

    @pytest.mark.asyncio
    async def test_missing_client_id(self, coordinator):
        coordinator.client_id = ""
        with pytest.raises(ConfigurationError):
            await coordinator.build_authorization_url("session-1")

    @pytest.mark.asyncio
    async def test_callback_exchanges_code(self, coordinator, upstream, clock):
        state = state_from(await coordinator.build_authorization_url("session-1"))

        result = await coordinator.handle_callback("the-code", state)

        assert result.session_id == "session-1"
        assert result.stage is FlowStage.TOKEN_EXCHANGED
        assert result.token.access_token == "registry-token-1"
        assert result.token.refresh_token == "registry-refresh-1"
        assert result.token.expires_at == clock() + timedelta(seconds=3600)

        (call,) = upstream.calls("/oauth2/v2.0/token")
        assert call["raw"] == b""
        assert call["query"] == {
            "p": "b2c_1a_api_consent_susi",
            "grant_type": "authorization_code",
            "code": "the-code",
            "redirect_uri": "http://localhost:3001/nzbn/oauth/callback",
        }
        assert call["basic"].login == REGISTRY_CLIENT_ID
        assert call["basic"].password == REGISTRY_CLIENT_SECRET

    @pytest.mark.asyncio
    async def test_replayed_callback_rejected(self, coordinator, upstream):
        state = state_from(await coordinator.build_authorization_url("session-1"))
        await coordinator.handle_callback("the-code", state)

        with pytest.raises(InvalidStateError):
            await coordinator.handle_callback("the-code", state)
        assert len(upstream.calls("/oauth2/v2.0/token")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_callbacks_one_exchange(self, coordinator, upstream):
        state = state_from(await coordinator.build_authorization_url("session-1"))

        results = await asyncio.gather(
            coordinator.handle_callback("code", state),
            coordinator.handle_callback("code", state),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, InvalidStateError)) == 1
        assert len(upstream.calls("/oauth2/v2.0/token")) == 1

    @pytest.mark.asyncio
    async def test_error_callback_consumes_state(self, coordinator, upstream):
        state = state_from(await coordinator.build_authorization_url("session-1"))

        with pytest.raises(OAuthCallbackError) as exc_info:
            await coordinator.handle_callback(None, state, error="access_denied",
                                              error_description="User cancelled")

        assert exc_info.value.error == "access_denied"
        assert exc_info.value.error_description == "User cancelled"
        with pytest.raises(InvalidStateError):
            await coordinator.handle_callback("code", state)
        assert upstream.calls("/oauth2/v2.0/token") == []

    @pytest.mark.asyncio
    async def test_missing_parameters(self, coordinator):
        with pytest.raises(OAuthCallbackError) as exc_info:
            await coordinator.handle_callback(None, "some-state")
        assert exc_info.value.error == "missing_parameters"

    @pytest.mark.asyncio
    async def test_exchange_rejected(self, coordinator):
        coordinator.client_secret = "wrong"
        state = state_from(await coordinator.build_authorization_url("session-1"))

        with pytest.raises(UpstreamAuthError) as exc_info:
            await coordinator.handle_callback("code", state)
        assert exc_info.value.upstream_status == 401

    @pytest.mark.asyncio
    async def test_refresh_token_form_body(self, coordinator, upstream):
        token = await coordinator.refresh_token("old-refresh")

        assert token.access_token == "registry-token-1"
        (call,) = upstream.calls("/oauth2/v2.0/token")
        assert call["query"] == {}
        assert call["form"] == {
            "grant_type": "refresh_token",
            "refresh_token": "old-refresh",
            "scope": "NZBNCO:manage offline_access",
        }
        assert call["basic"].login == REGISTRY_CLIENT_ID
