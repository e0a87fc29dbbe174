"""Authenticated request executor: try once, refresh once, retry once.

States::

    INITIAL --2xx--> DONE
    INITIAL --401 + refresh token--> AWAITING_REFRESH --ok--> RETRYING
    RETRYING --2xx--> DONE
    anything else --> FAILED

Only a 401 moves the machine forward; every other failure is terminal.
The new access token is persisted before the retry, and only after the
refresh succeeded, so a failed refresh leaves the stored token as it was.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from models.schemas import CredentialRecord
from services.credential_store import CredentialNotFound, CredentialStore
from services.errors import (
    AuthenticationExpired,
    CalendarConnectError,
    NotAuthenticated,
    UpstreamError,
)
from services.google_oauth import TokenRefresher

logger = logging.getLogger(__name__)


class ExecutionState(str, enum.Enum):
    INITIAL = "initial"
    AWAITING_REFRESH = "awaiting_refresh"
    RETRYING = "retrying"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RequestSpec:
    method: str
    url: str
    json: Any = None
    params: dict | None = None


@dataclass
class ExecutionResult:
    response: httpx.Response
    refreshed: bool = False
    transitions: list[ExecutionState] = field(default_factory=list)

    @property
    def state(self) -> ExecutionState:
        return self.transitions[-1] if self.transitions else ExecutionState.INITIAL

    def json(self) -> Any:
        return self.response.json()


class AuthenticatedExecutor:
    def __init__(self, client: httpx.AsyncClient, store: CredentialStore, refresher: TokenRefresher):
        self._client = client
        self._store = store
        self._refresher = refresher

    def load_credentials(self, user_id: str) -> CredentialRecord:
        try:
            record = self._store.get(user_id)
        except CredentialNotFound:
            raise NotAuthenticated() from None
        if not record.access_token:
            raise NotAuthenticated()
        return record

    async def execute(
        self,
        user_id: str,
        spec: RequestSpec,
        validate: Callable[[], Any] | None = None,
    ) -> ExecutionResult:
        record = self.load_credentials(user_id)
        if validate is not None:
            validate()

        transitions = [ExecutionState.INITIAL]
        try:
            response = await self._send(spec, record.access_token)
            refreshed = False
            if response.status_code == 401:
                if not record.refresh_token:
                    logger.info("Access token rejected for %s and no refresh token stored", user_id)
                    raise AuthenticationExpired()

                transitions.append(ExecutionState.AWAITING_REFRESH)
                logger.info("Access token expired for %s, refreshing...", user_id)
                grant = await self._refresher.refresh(record.refresh_token)
                try:
                    self._store.update_tokens(record.id, grant.access_token, grant.refresh_token)
                except CredentialNotFound:
                    # row vanished between the first attempt and the refresh
                    raise NotAuthenticated() from None
                refreshed = True

                transitions.append(ExecutionState.RETRYING)
                response = await self._retry(spec, grant.access_token, user_id)

            if not response.is_success:
                raise UpstreamError(details=_response_details(response), upstream_status=response.status_code)
        except CalendarConnectError as exc:
            transitions.append(ExecutionState.FAILED)
            exc.transitions = transitions
            logger.debug("Request %s %s failed after %s", spec.method, spec.url, transitions)
            raise

        transitions.append(ExecutionState.DONE)
        return ExecutionResult(response=response, refreshed=refreshed, transitions=transitions)

    async def _retry(self, spec: RequestSpec, access_token: str, user_id: str) -> httpx.Response:
        """The one retry after a refresh; any failure here means re-authenticate."""
        try:
            response = await self._send(spec, access_token)
        except UpstreamError as exc:
            logger.warning("Retry with refreshed token failed for %s: %s", user_id, exc.details)
            raise AuthenticationExpired(details=exc.details) from exc
        if not response.is_success:
            logger.warning("Retry with refreshed token got %s for %s", response.status_code, user_id)
            raise AuthenticationExpired(details=_response_details(response))
        return response

    async def _send(self, spec: RequestSpec, access_token: str) -> httpx.Response:
        try:
            return await self._client.request(
                spec.method,
                spec.url,
                json=spec.json,
                params=spec.params,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as exc:
            logger.error("Error calling %s %s: %s", spec.method, spec.url, exc)
            raise UpstreamError(details=str(exc)) from exc


def _response_details(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
