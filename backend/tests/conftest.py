"""Shared fixtures: a fake Google (token, userinfo, calendar) behind httpx.MockTransport."""

from __future__ import annotations

import json
from urllib.parse import parse_qs

import httpx
import pytest

from server import create_app
from services.config import OAuthConfig, Settings, get_settings
from services.credential_store import InMemoryCredentialStore
from services.deps import get_credential_store, get_http_client

GOOGLE_SUB = "google-sub-1"


class FakeGoogle:
    """Minimal stand-in for the Google endpoints the backend talks to.

    Calendar calls succeed only when the bearer token is in ``valid_tokens``;
    anything else gets a 401, which is what drives the refresh path.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.valid_tokens = {"access-1", "access-2"}
        self.token_status = 200
        self.token_grant = {
            "access_token": "access-1",
            "refresh_token": "refresh-1",
            "expires_in": 3599,
            "token_type": "Bearer",
        }
        self.refresh_status = 200
        self.refresh_grant = {"access_token": "access-2", "expires_in": 3599, "token_type": "Bearer"}
        self.profile_status = 200
        self.profile = {"sub": GOOGLE_SUB, "email": "ada@example.com", "name": "Ada Lovelace"}
        self.calendar_status: int | None = None
        self.calendar_error = {"error": {"code": 500, "message": "Backend Error"}}
        self.items = [
            {"id": "evt-1", "summary": "Standup", "start": {"dateTime": "2030-01-01T09:00:00Z"}},
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host, path = request.url.host, request.url.path

        if host == "oauth2.googleapis.com" and path == "/token":
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            if form.get("grant_type") == "refresh_token":
                if self.refresh_status != 200:
                    return httpx.Response(self.refresh_status, json={"error": "invalid_grant"})
                return httpx.Response(200, json=self.refresh_grant)
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_grant"})
            return httpx.Response(200, json=self.token_grant)

        if path == "/oauth2/v3/userinfo":
            if self.profile_status != 200:
                return httpx.Response(self.profile_status, json={"error": "invalid_token"})
            return httpx.Response(200, json=self.profile)

        if path == "/calendar/v3/calendars/primary/events":
            token = request.headers.get("Authorization", "").removeprefix("Bearer ")
            if token not in self.valid_tokens:
                return httpx.Response(401, json={"error": {"code": 401, "message": "Invalid Credentials"}})
            if self.calendar_status is not None:
                return httpx.Response(self.calendar_status, json=self.calendar_error)
            if request.method == "POST":
                body = json.loads(request.content)
                return httpx.Response(
                    200,
                    json={
                        "id": "evt-new",
                        "htmlLink": "https://calendar.google.com/event?eid=evt-new",
                        **body,
                    },
                )
            return httpx.Response(200, json={"kind": "calendar#events", "items": self.items})

        return httpx.Response(404, json={"error": "not found"})

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @property
    def calendar_calls(self) -> list[httpx.Request]:
        return self.calls_to("/calendar/v3/calendars/primary/events")

    @property
    def refresh_calls(self) -> list[httpx.Request]:
        return [
            r
            for r in self.calls_to("/token")
            if parse_qs(r.content.decode()).get("grant_type") == ["refresh_token"]
        ]


@pytest.fixture
def fake_google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
async def http_client(fake_google):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_google)) as client:
        yield client


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        google_client_id="test-client-id.apps.googleusercontent.com",
        google_client_secret="test-client-secret",
        google_redirect_url="http://localhost:5000/api/auth/google/callback",
        frontend_url="http://localhost:3000",
        credential_store="memory",
    )


@pytest.fixture
def oauth_config(settings) -> OAuthConfig:
    return settings.oauth


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def stored_user(store):
    return store.upsert(
        GOOGLE_SUB,
        email="ada@example.com",
        name="Ada Lovelace",
        access_token="access-1",
        refresh_token="refresh-1",
    )


@pytest.fixture
def app(settings, store, http_client):
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_credential_store] = lambda: store
    app.dependency_overrides[get_http_client] = lambda: http_client
    return app


@pytest.fixture
async def api(app):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
        follow_redirects=False,
    ) as client:
        yield client
