"""Process configuration, read once from the environment (and ``.env``).

Components receive a ``Settings`` instance at construction time instead of
calling ``os.getenv`` ad hoc; ``get_settings`` is the FastAPI dependency.
"""

from functools import lru_cache

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from services.errors import ConfigurationError

DEFAULT_FRONTEND_URL = "http://localhost:3000"


class OAuthConfig(BaseModel):
    client_id: str | None = None
    client_secret: str | None = None
    redirect_uri: str | None = None
    frontend_url: str = DEFAULT_FRONTEND_URL

    def require_authorization(self) -> None:
        """Fail before any I/O when the authorization URL can't be built."""
        if not self.client_id or not self.redirect_uri:
            raise ConfigurationError()

    def require_client_credentials(self) -> None:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError()

    def require_token_exchange(self) -> None:
        self.require_authorization()
        self.require_client_credentials()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_ignore_empty=True, extra="ignore"
    )

    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_redirect_url: str | None = None
    frontend_url: str = DEFAULT_FRONTEND_URL

    credential_store: str = "supabase"
    supabase_url: str | None = None
    supabase_service_role_key: str | None = None

    # comma-separated
    cors_origins: str = "*"
    port: int = 5000
    log_level: str = "INFO"

    @field_validator("frontend_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("credential_store")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("log_level")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def oauth(self) -> OAuthConfig:
        return OAuthConfig(
            client_id=self.google_client_id,
            client_secret=self.google_client_secret,
            redirect_uri=self.google_redirect_url,
            frontend_url=self.frontend_url,
        )

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
