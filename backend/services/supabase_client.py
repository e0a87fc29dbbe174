"""Supabase client for the credential store."""

from functools import lru_cache
from supabase import create_client, Client

from services.config import get_settings
from services.errors import ConfigurationError


@lru_cache()
def get_supabase() -> Client:
    """Return a server-side Supabase client using the service-role key."""
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
    return create_client(settings.supabase_url, settings.supabase_service_role_key)
