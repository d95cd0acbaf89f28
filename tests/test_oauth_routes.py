try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import copy

import httpx
import pytest

from app.main import app
from app.models.credentials import ProviderIdentity, ProviderTokens
from app.services.authorization import AuthorizationFlowService
from app.services.credential_store import CredentialRecordStore
from app.services.encryption import SymmetricEncryptor
from app.services.errors import StorePersistError
from app.services.oauth_state import OAuthStateManager
from app.services.token_refresh import TokenRefreshOrchestrator
from app.services.transport_codec import decode_access_token, encode_access_token
from app.services.ttl_cache import TTLCache


class DummyOAuthClient:
    def __init__(self) -> None:
        self.states: list[str] = []
        self.codes: list[str] = []
        self.refreshes: list[str] = []

    def build_authorization_url(self, state: str) -> str:
        self.states.append(state)
        return f"https://oauth.example.com/auth?state={state}"

    async def exchange_authorization_code(self, code: str) -> ProviderTokens:
        self.codes.append(code)
        return ProviderTokens(access_token="access-token", refresh_token="refresh-token", expires_in=3600)

    async def fetch_identity(self, access_token: str) -> ProviderIdentity:
        return ProviderIdentity(provider_id="provider-user", display_name="Listener")

    async def refresh_access_token(self, refresh_token: str) -> ProviderTokens:
        self.refreshes.append(refresh_token)
        return ProviderTokens(access_token="rotated-token", expires_in=3600)


class DummyRepository:
    def __init__(self) -> None:
        self.items: list = []
        self.fail = False

    def create(self, record) -> None:
        if self.fail:
            raise StorePersistError("unavailable")
        self.items.append(record)

    def find_latest(self, access_token: str):
        matches = [item for item in self.items if item.access_token == access_token]
        return matches[-1] if matches else None

    def find_latest_for_identity(self, provider_id: str, user_id):
        matches = [
            item
            for item in self.items
            if item.provider_id == provider_id and item.user_id == user_id
        ]
        return matches[-1] if matches else None


@pytest.fixture()
def oauth_overrides(clock):
    from app import dependencies
    from app.core.config import get_settings

    dummy_client = DummyOAuthClient()
    repository = DummyRepository()
    store = CredentialRecordStore(repository, TTLCache(clock=clock), clock=clock)
    service = AuthorizationFlowService(
        state_manager=OAuthStateManager(TTLCache(clock=clock), SymmetricEncryptor(), clock=clock),
        oauth_client=dummy_client,
        store=store,
        orchestrator=TokenRefreshOrchestrator(store, dummy_client, clock=clock),
        clock=clock,
    )
    base_settings = copy.deepcopy(get_settings())
    base_settings.frontend_base_url = None
    base_settings.session_cookie_secure = False

    overrides = {
        dependencies.get_authorization_service: lambda: service,
        dependencies.get_app_settings: lambda: base_settings,
    }

    app.dependency_overrides.update(overrides)

    yield dummy_client, repository, base_settings

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


@pytest.mark.anyio
async def test_health() -> None:
    async with _client() as client:
        response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_authorize_returns_json_by_default(oauth_overrides):
    dummy_client, _, _ = oauth_overrides
    async with _client() as client:
        response = await client.get("/api/auth/authorize")

    assert response.status_code == 200
    data = response.json()
    assert data["authorization_url"].startswith("https://")
    assert data["state"] == dummy_client.states[-1]


@pytest.mark.anyio
async def test_authorize_redirects_for_html_accept(oauth_overrides):
    async with _client() as client:
        response = await client.get(
            "/api/auth/authorize", headers={"accept": "text/html"}
        )

    assert response.status_code == 307
    assert response.headers["location"].startswith("https://oauth.example.com/auth")


@pytest.mark.anyio
async def test_callback_get_returns_json_and_sets_cookie(oauth_overrides):
    dummy_client, repository, settings = oauth_overrides

    async with _client() as client:
        await client.get("/api/auth/authorize")
        state = dummy_client.states[-1]
        callback_resp = await client.get(
            "/api/auth/callback", params={"state": state, "code": "oauth-code"}
        )

    assert callback_resp.status_code == 200
    data = callback_resp.json()
    assert data["status"] == "connected"
    assert data["provider_id"] == "provider-user"
    assert decode_access_token(data["access_token"]) == "access-token"
    assert callback_resp.cookies.get(settings.session_cookie_name) == data["access_token"]
    assert dummy_client.codes[-1] == "oauth-code"
    assert [item.access_token for item in repository.items] == ["access-token"]


@pytest.mark.anyio
async def test_callback_post_completes_flow(oauth_overrides):
    dummy_client, repository, _ = oauth_overrides

    async with _client() as client:
        await client.get("/api/auth/authorize")
        response = await client.post(
            "/api/auth/callback",
            json={"state": dummy_client.states[-1], "code": "oauth-code"},
        )

    assert response.status_code == 200
    assert response.json()["status"] == "connected"
    assert repository.items


@pytest.mark.anyio
async def test_callback_redirects_when_frontend_available(oauth_overrides):
    dummy_client, _, settings = oauth_overrides
    settings.frontend_base_url = "https://app.example.com/oauth/success"

    async with _client() as client:
        await client.get("/api/auth/authorize")
        callback_resp = await client.get(
            "/api/auth/callback",
            params={"state": dummy_client.states[-1], "code": "oauth-code"},
            headers={"accept": "text/html"},
        )

    assert callback_resp.status_code == 307
    assert callback_resp.headers["location"] == "https://app.example.com/oauth/success"


@pytest.mark.anyio
async def test_callback_with_replayed_state_is_unauthorized(oauth_overrides):
    dummy_client, _, _ = oauth_overrides

    async with _client() as client:
        await client.get("/api/auth/authorize")
        state = dummy_client.states[-1]
        first = await client.get("/api/auth/callback", params={"state": state, "code": "c1"})
        second = await client.get("/api/auth/callback", params={"state": state, "code": "c2"})

    assert first.status_code == 200
    assert second.status_code == 401
    assert dummy_client.codes == ["c1"]


@pytest.mark.anyio
async def test_callback_with_unknown_state_is_unauthorized(oauth_overrides):
    async with _client() as client:
        response = await client.get(
            "/api/auth/callback", params={"state": "forged", "code": "oauth-code"}
        )

    assert response.status_code == 401


@pytest.mark.anyio
async def test_callback_store_failure_is_service_unavailable(oauth_overrides):
    dummy_client, repository, _ = oauth_overrides
    repository.fail = True

    async with _client() as client:
        await client.get("/api/auth/authorize")
        response = await client.get(
            "/api/auth/callback",
            params={"state": dummy_client.states[-1], "code": "oauth-code"},
        )

    assert response.status_code == 503


@pytest.mark.anyio
async def test_session_requires_a_token(oauth_overrides):
    async with _client() as client:
        response = await client.get("/api/auth/session")

    assert response.status_code == 401


@pytest.mark.anyio
async def test_session_rejects_malformed_token(oauth_overrides):
    async with _client() as client:
        response = await client.get(
            "/api/auth/session", headers={"Authorization": "Bearer %%%"}
        )

    assert response.status_code == 400


@pytest.mark.anyio
async def test_session_unknown_token_is_unauthorized(oauth_overrides):
    async with _client() as client:
        response = await client.get(
            "/api/auth/session",
            headers={"Authorization": f"Bearer {encode_access_token('nope')}"},
        )

    assert response.status_code == 401


@pytest.mark.anyio
async def test_session_rotates_expired_token(oauth_overrides, clock):
    dummy_client, _, settings = oauth_overrides

    async with _client() as client:
        await client.get("/api/auth/authorize")
        connected = await client.get(
            "/api/auth/callback",
            params={"state": dummy_client.states[-1], "code": "oauth-code"},
        )
        token = connected.json()["access_token"]

        fresh = await client.get(
            "/api/auth/session", headers={"Authorization": f"Bearer {token}"}
        )
        assert fresh.status_code == 200
        assert fresh.json()["rotated"] is False

        clock.advance(hours=2)
        rotated = await client.get(
            "/api/auth/session", headers={"Authorization": f"Bearer {token}"}
        )

    assert rotated.status_code == 200
    body = rotated.json()
    assert body["rotated"] is True
    assert decode_access_token(body["access_token"]) == "rotated-token"
    assert rotated.cookies.get(settings.session_cookie_name) == body["access_token"]
    assert dummy_client.refreshes == ["refresh-token"]


@pytest.mark.anyio
async def test_session_reads_token_from_cookie(oauth_overrides):
    dummy_client, _, settings = oauth_overrides

    async with _client() as client:
        await client.get("/api/auth/authorize")
        connected = await client.get(
            "/api/auth/callback",
            params={"state": dummy_client.states[-1], "code": "oauth-code"},
        )
        token = connected.json()["access_token"]
        client.cookies.set(settings.session_cookie_name, token)

        response = await client.get("/api/auth/session")

    assert response.status_code == 200
    assert response.json()["provider_id"] == "provider-user"


@pytest.mark.anyio
async def test_session_rejects_token_replaced_by_rotation(oauth_overrides, clock):
    dummy_client, repository, _ = oauth_overrides

    async with _client() as client:
        await client.get("/api/auth/authorize")
        connected = await client.get(
            "/api/auth/callback",
            params={"state": dummy_client.states[-1], "code": "oauth-code"},
        )
        old_token = connected.json()["access_token"]

        clock.advance(hours=2)
        rotated = await client.get(
            "/api/auth/session", headers={"Authorization": f"Bearer {old_token}"}
        )
        replayed = await client.get(
            "/api/auth/session", headers={"Authorization": f"Bearer {old_token}"}
        )

    assert rotated.status_code == 200
    assert replayed.status_code == 401
    assert dummy_client.refreshes == ["refresh-token"]
    assert [item.access_token for item in repository.items] == [
        "access-token",
        "rotated-token",
    ]
