"""FastAPI dependencies wiring config, storage and outbound HTTP together.

Tests swap any of these through ``app.dependency_overrides``.
"""

from functools import lru_cache

import httpx
from fastapi import Depends

from services.config import Settings, get_settings
from services.credential_store import CredentialStore, InMemoryCredentialStore, SupabaseCredentialStore
from services.errors import ConfigurationError
from services.executor import AuthenticatedExecutor
from services.google_calendar import CalendarService
from services.google_oauth import OAuthCallbackHandler, TokenRefresher
from services.supabase_client import get_supabase

HTTP_TIMEOUT_SECONDS = 30


async def get_http_client():
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        yield client


@lru_cache()
def _memory_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


def get_credential_store(settings: Settings = Depends(get_settings)) -> CredentialStore:
    if settings.credential_store == "memory":
        return _memory_store()
    if settings.credential_store == "supabase":
        return SupabaseCredentialStore(get_supabase())
    raise ConfigurationError(f"Unknown CREDENTIAL_STORE: {settings.credential_store}")


def get_callback_handler(
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
    store: CredentialStore = Depends(get_credential_store),
) -> OAuthCallbackHandler:
    return OAuthCallbackHandler(client, settings.oauth, store)


def get_calendar_service(
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
    store: CredentialStore = Depends(get_credential_store),
) -> CalendarService:
    executor = AuthenticatedExecutor(client, store, TokenRefresher(client, settings.oauth))
    return CalendarService(executor)
