from __future__ import annotations

import asyncio
from urllib.parse import parse_qs, urlparse

import pytest

from tiktok_proxy.clients.tiktok_auth import OAuthStateEncoder, TokenGrant
from tiktok_proxy.core.errors import (
    MissingCodeError,
    MissingVerifierError,
    NotAuthorizedError,
    UpstreamMalformedError,
    UpstreamRejectedError,
)
from tiktok_proxy.models.oauth import CredentialRecord
from tiktok_proxy.services.credentials import CredentialManager
from tiktok_proxy.services.pkce import generate_code_challenge


class DummyOAuthClient:
    def __init__(self) -> None:
        self.exchanges: list[tuple[str, str]] = []
        self.refreshes: list[str] = []
        self.exchange_error: Exception | None = None
        self.refresh_error: Exception | None = None
        self.refresh_grant = TokenGrant("refreshed-access", "refreshed-refresh", 86400)

    def build_authorization_url(self, state: str, code_challenge: str) -> str:
        return f"https://auth.example/?state={state}&code_challenge={code_challenge}"

    async def exchange_authorization_code(self, code: str, code_verifier: str) -> TokenGrant:
        self.exchanges.append((code, code_verifier))
        if self.exchange_error is not None:
            raise self.exchange_error
        return TokenGrant("initial-access", "initial-refresh", 86400)

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        self.refreshes.append(refresh_token)
        await asyncio.sleep(0)
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.refresh_grant


@pytest.fixture
def oauth_client() -> DummyOAuthClient:
    return DummyOAuthClient()


@pytest.fixture
def manager(store, oauth_client, clock) -> CredentialManager:
    return CredentialManager(
        store=store,
        oauth_client=oauth_client,
        state_encoder=OAuthStateEncoder(secret_key="state-secret"),
        clock=clock,
    )


def _now_ms(clock) -> int:
    return int(clock() * 1000)


def test_begin_authorization_retains_verifier_and_embeds_challenge(manager) -> None:
    request = manager.begin_authorization()

    query = parse_qs(urlparse(request.authorization_url).query)
    assert query["code_challenge"] == [generate_code_challenge(request.verifier)]
    assert query["state"] == [request.state]
    assert len(request.verifier) == 64
    assert manager.authorization_pending is True


def test_begin_authorization_state_is_signed(manager) -> None:
    request = manager.begin_authorization()

    payload = OAuthStateEncoder(secret_key="state-secret").decode(request.state)
    assert payload["nonce"]
    assert payload["issued_at"]


@pytest.mark.asyncio
async def test_complete_authorization_persists_record(manager, oauth_client, store, clock) -> None:
    request = manager.begin_authorization()

    record = await manager.complete_authorization("auth-code")

    assert oauth_client.exchanges == [("auth-code", request.verifier)]
    assert record == CredentialRecord(
        access_token="initial-access",
        refresh_token="initial-refresh",
        expires_at=_now_ms(clock) + 86400 * 1000,
    )
    assert store.load() == record
    assert manager.authorization_pending is False


@pytest.mark.asyncio
async def test_second_completion_with_same_code_needs_new_verifier(manager) -> None:
    manager.begin_authorization()
    await manager.complete_authorization("auth-code")

    with pytest.raises(MissingVerifierError):
        await manager.complete_authorization("auth-code")


@pytest.mark.asyncio
async def test_complete_without_begin_is_missing_verifier(manager, oauth_client) -> None:
    with pytest.raises(MissingVerifierError):
        await manager.complete_authorization("auth-code")
    assert oauth_client.exchanges == []


@pytest.mark.asyncio
async def test_missing_code_clears_verifier(manager, oauth_client) -> None:
    manager.begin_authorization()

    with pytest.raises(MissingCodeError):
        await manager.complete_authorization("")

    assert manager.authorization_pending is False
    assert oauth_client.exchanges == []


@pytest.mark.asyncio
async def test_only_latest_verifier_is_used(manager, oauth_client) -> None:
    first = manager.begin_authorization()
    second = manager.begin_authorization()

    await manager.complete_authorization("auth-code")

    assert first.verifier != second.verifier
    assert oauth_client.exchanges == [("auth-code", second.verifier)]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        UpstreamRejectedError("denied", error="invalid_grant"),
        UpstreamMalformedError("Access token not received from TikTok."),
    ],
)
async def test_failed_exchange_clears_verifier_and_stores_nothing(
    manager, oauth_client, store, error
) -> None:
    oauth_client.exchange_error = error
    manager.begin_authorization()

    with pytest.raises(type(error)):
        await manager.complete_authorization("auth-code")

    assert manager.authorization_pending is False
    assert store.load() is None


@pytest.mark.asyncio
async def test_failed_save_still_returns_record(manager, store, monkeypatch) -> None:
    monkeypatch.setattr(store, "save", lambda record: False)
    manager.begin_authorization()

    record = await manager.complete_authorization("auth-code")

    assert record.access_token == "initial-access"
    assert manager.authorization_pending is False


@pytest.mark.asyncio
async def test_get_valid_access_token_requires_credentials(manager) -> None:
    with pytest.raises(NotAuthorizedError):
        await manager.get_valid_access_token()


@pytest.mark.asyncio
async def test_cached_token_until_margin_then_single_refresh(
    store, oauth_client, clock
) -> None:
    manager = CredentialManager(
        store=store,
        oauth_client=oauth_client,
        state_encoder=OAuthStateEncoder(secret_key="state-secret"),
        expiry_margin_seconds=1,
        clock=clock,
    )
    store.save(
        CredentialRecord(
            access_token="cached-access",
            refresh_token="cached-refresh",
            expires_at=_now_ms(clock) + 5000,
        )
    )

    assert await manager.get_valid_access_token() == "cached-access"
    assert oauth_client.refreshes == []

    clock.advance(4.5)

    assert await manager.get_valid_access_token() == "refreshed-access"
    assert oauth_client.refreshes == ["cached-refresh"]
    assert store.load() == CredentialRecord(
        access_token="refreshed-access",
        refresh_token="refreshed-refresh",
        expires_at=_now_ms(clock) + 86400 * 1000,
    )

    assert await manager.get_valid_access_token() == "refreshed-access"
    assert oauth_client.refreshes == ["cached-refresh"]


@pytest.mark.asyncio
async def test_default_margin_refreshes_a_minute_early(manager, store, oauth_client, clock) -> None:
    store.save(
        CredentialRecord(
            access_token="cached-access",
            refresh_token="cached-refresh",
            expires_at=_now_ms(clock) + 30_000,
        )
    )

    assert await manager.get_valid_access_token() == "refreshed-access"
    assert oauth_client.refreshes == ["cached-refresh"]


@pytest.mark.asyncio
async def test_rejected_refresh_leaves_record_untouched(manager, store, oauth_client, clock) -> None:
    stale = CredentialRecord(
        access_token="stale-access",
        refresh_token="revoked-refresh",
        expires_at=_now_ms(clock) - 1,
    )
    store.save(stale)
    oauth_client.refresh_error = UpstreamRejectedError(
        "refresh rejected", error="invalid_grant", error_description="revoked"
    )

    with pytest.raises(UpstreamRejectedError):
        await manager.get_valid_access_token()

    assert store.load() == stale
    assert oauth_client.refreshes == ["revoked-refresh"]


@pytest.mark.asyncio
async def test_refresh_without_new_refresh_token_keeps_current_one(
    manager, store, oauth_client, clock
) -> None:
    store.save(
        CredentialRecord(
            access_token="stale-access",
            refresh_token="long-lived-refresh",
            expires_at=_now_ms(clock) - 1,
        )
    )
    oauth_client.refresh_grant = TokenGrant("refreshed-access", None, 3600)

    await manager.get_valid_access_token()

    stored = store.load()
    assert stored is not None
    assert stored.refresh_token == "long-lived-refresh"
    assert stored.access_token == "refreshed-access"


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh(manager, store, oauth_client, clock) -> None:
    store.save(
        CredentialRecord(
            access_token="stale-access",
            refresh_token="cached-refresh",
            expires_at=_now_ms(clock) - 1,
        )
    )

    tokens = await asyncio.gather(*(manager.get_valid_access_token() for _ in range(5)))

    assert tokens == ["refreshed-access"] * 5
    assert oauth_client.refreshes == ["cached-refresh"]


@pytest.mark.asyncio
async def test_status_reports_staleness_without_exposing_tokens(manager, store, clock) -> None:
    assert manager.status().authorized is False

    store.save(
        CredentialRecord(
            access_token="a", refresh_token="r", expires_at=_now_ms(clock) + 30_000
        )
    )
    status = manager.status()
    assert status.authorized is True
    assert status.stale is True
    assert status.expires_at == _now_ms(clock) + 30_000

    manager.begin_authorization()
    assert manager.status().authorization_pending is True


def test_clear_credentials_delegates_to_store(manager, store, clock) -> None:
    store.save(
        CredentialRecord(access_token="a", refresh_token="r", expires_at=_now_ms(clock) + 1)
    )

    assert manager.clear_credentials() is True
    assert store.load() is None
