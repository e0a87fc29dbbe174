"""Per-user Google credential storage.

One row per Google account, keyed by the ``sub`` claim. The row's local
``id`` is what the frontend sends back in ``X-User-ID``.

Two backends share the ``CredentialStore`` interface:

- ``SupabaseCredentialStore``: the ``users`` table (see ``sql/users.sql``).
- ``InMemoryCredentialStore``: process-local dict, for local runs and tests.

Writes are single-row and last-writer-wins. Token values are never logged.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone

from postgrest.exceptions import APIError

from models.schemas import CredentialRecord
from services.errors import CredentialStoreError

logger = logging.getLogger(__name__)

USERS_TABLE = "users"


class CredentialNotFound(LookupError):
    """No credential record for the requested id."""


def _merge_fields(email: str, name: str | None, access_token: str, refresh_token: str | None) -> dict:
    fields = {"email": email, "name": name, "access_token": access_token}
    # Google only sends a refresh token on consent; keep the stored one otherwise.
    if refresh_token:
        fields["refresh_token"] = refresh_token
    return fields


class CredentialStore(ABC):
    @abstractmethod
    def upsert(
        self,
        google_id: str,
        *,
        email: str,
        name: str | None,
        access_token: str,
        refresh_token: str | None = None,
    ) -> CredentialRecord:
        """Create or update the record for ``google_id``."""

    @abstractmethod
    def get(self, user_id: str) -> CredentialRecord:
        """Return the record for ``user_id`` or raise ``CredentialNotFound``."""

    @abstractmethod
    def update_tokens(
        self, user_id: str, access_token: str, refresh_token: str | None = None
    ) -> CredentialRecord:
        """Replace the access token (and the refresh token, when a new one was issued)."""


class InMemoryCredentialStore(CredentialStore):
    def __init__(self):
        self._records: dict[str, CredentialRecord] = {}

    def upsert(self, google_id, *, email, name, access_token, refresh_token=None):
        now = datetime.now(timezone.utc)
        fields = _merge_fields(email, name, access_token, refresh_token)
        existing = next((r for r in self._records.values() if r.google_id == google_id), None)
        if existing is None:
            record = CredentialRecord(
                id=str(uuid.uuid4()), google_id=google_id, created_at=now, updated_at=now, **fields
            )
            logger.info("Created credential record %s for google_id=%s", record.id, google_id)
        else:
            record = existing.model_copy(update={**fields, "updated_at": now})
            logger.info("Updated credential record %s for google_id=%s", record.id, google_id)
        self._records[record.id] = record
        return record

    def get(self, user_id):
        try:
            return self._records[user_id]
        except KeyError:
            raise CredentialNotFound(user_id) from None

    def update_tokens(self, user_id, access_token, refresh_token=None):
        record = self.get(user_id)
        update = {"access_token": access_token, "updated_at": datetime.now(timezone.utc)}
        if refresh_token:
            update["refresh_token"] = refresh_token
        record = record.model_copy(update=update)
        self._records[user_id] = record
        return record

    def __len__(self) -> int:
        return len(self._records)


@contextmanager
def _translate_api_errors(operation: str):
    try:
        yield
    except APIError as exc:
        logger.error("Supabase %s on %s failed: %s (code=%s)", operation, USERS_TABLE, exc.message, exc.code)
        raise CredentialStoreError(details=exc.message) from exc


class SupabaseCredentialStore(CredentialStore):
    def __init__(self, client):
        self._sb = client

    def upsert(self, google_id, *, email, name, access_token, refresh_token=None):
        row = {"google_id": google_id, **_merge_fields(email, name, access_token, refresh_token)}
        row["updated_at"] = datetime.now(timezone.utc).isoformat()
        with _translate_api_errors("upsert"):
            result = self._sb.table(USERS_TABLE).upsert(row, on_conflict="google_id").execute()
        if not result.data:
            raise CredentialStoreError(details=f"upsert returned no row for google_id={google_id}")
        record = CredentialRecord(**result.data[0])
        logger.info("Upserted credential record %s for google_id=%s", record.id, google_id)
        return record

    def get(self, user_id):
        with _translate_api_errors("select"):
            result = self._sb.table(USERS_TABLE).select("*").eq("id", user_id).maybe_single().execute()
        # maybe_single() yields None (not an empty response) on some client versions
        if result is None or not result.data:
            raise CredentialNotFound(user_id)
        return CredentialRecord(**result.data)

    def update_tokens(self, user_id, access_token, refresh_token=None):
        update = {"access_token": access_token, "updated_at": datetime.now(timezone.utc).isoformat()}
        if refresh_token:
            update["refresh_token"] = refresh_token
        with _translate_api_errors("update"):
            result = self._sb.table(USERS_TABLE).update(update).eq("id", user_id).execute()
        if not result.data:
            raise CredentialNotFound(user_id)
        return CredentialRecord(**result.data[0])
