from __future__ import annotations

import logging
from typing import Any

import httpx

from credential_relay.config import Settings
from credential_relay.errors import InvalidIdentifierError, StatusWriteError
from credential_relay.models import CredentialData

logger = logging.getLogger(__name__)

_SINGLE_OBJECT = "application/vnd.pgrst.object+json"
_USER_COLUMNS = "n8n_url,n8n_user_email,n8n_encryption_key,email,name"


class CredentialStore:
    """Supabase REST access for OAuth credential rows and user n8n settings."""

    def __init__(
        self,
        url: str,
        service_key: str,
        *,
        credentials_table: str = "user_social_credentials",
        users_table: str = "launchmvpfast-saas-starterkit_user",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credentials_table = credentials_table
        self._users_table = users_table
        self._client = httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/rest/v1",
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> CredentialStore:
        return cls(
            settings.supabase_url or "",
            settings.supabase_service_role_key or "",
            credentials_table=settings.credentials_table,
            users_table=settings.users_table,
            timeout=settings.request_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_credentials(self, user_id: str, provider: str) -> CredentialData | None:
        """Merge the credential row and the user's n8n settings.

        Returns None when either row is missing or the backend fails; the
        two cases are only distinguished in the log.
        """
        self._validate_non_empty(user_id, "user_id")
        self._validate_non_empty(provider, "provider")

        social = await self._fetch_single(
            self._credentials_table,
            {"select": "*", "user_id": f"eq.{user_id}", "provider": f"eq.{provider}"},
            label="social credentials",
        )
        if social is None:
            return None

        user = await self._fetch_single(
            self._users_table,
            {"select": _USER_COLUMNS, "id": f"eq.{user_id}"},
            label="user n8n info",
        )
        if user is None:
            return None

        return CredentialData(
            user_id=user_id,
            provider=provider,
            access_token=social.get("access_token") or "",
            refresh_token=social.get("refresh_token") or "",
            client_id=social.get("client_id"),
            client_secret=social.get("client_secret"),
            n8n_url=user.get("n8n_url"),
            n8n_user_email=user.get("n8n_user_email") or user.get("email"),
            n8n_encryption_key=user.get("n8n_encryption_key"),
        )

    async def update_status(self, user_id: str, provider: str, fields: dict[str, Any]) -> None:
        try:
            response = await self._client.patch(
                f"/{self._credentials_table}",
                params={"user_id": f"eq.{user_id}", "provider": f"eq.{provider}"},
                json=fields,
                headers={"Prefer": "return=minimal"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Failed to update credential status for user=%s provider=%s: %s",
                user_id,
                provider,
                exc.response.text,
            )
            raise StatusWriteError(
                f"Database update failed: {_error_message(exc.response)}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(
                "Failed to update credential status for user=%s provider=%s: %s",
                user_id,
                provider,
                exc,
            )
            raise StatusWriteError(f"Database update failed: {exc}") from exc

    async def _fetch_single(
        self, table: str, params: dict[str, str], *, label: str
    ) -> dict[str, Any] | None:
        try:
            response = await self._client.get(
                f"/{table}",
                params=params,
                headers={"Accept": _SINGLE_OBJECT},
            )
        except httpx.HTTPError as exc:
            logger.error("Error fetching %s: %s", label, exc)
            return None

        if response.status_code == 406:
            # PostgREST answers 406 when a single-object read matches 0 or >1 rows.
            logger.warning("%s not found: %s", label.capitalize(), _error_message(response))
            return None
        if response.is_error:
            logger.error(
                "Error fetching %s: HTTP %s %s",
                label,
                response.status_code,
                _error_message(response),
            )
            return None

        try:
            row = response.json()
        except ValueError:
            logger.error("Error fetching %s: response is not JSON: %.200s", label, response.text)
            return None
        if row and not isinstance(row, dict):
            logger.error("Error fetching %s: expected one object, got %s", label, type(row).__name__)
            return None
        if not row:
            logger.warning("%s not found", label.capitalize())
            return None
        return row

    @staticmethod
    def _validate_non_empty(value: str, name: str) -> None:
        if not isinstance(value, str) or not value.strip():
            raise InvalidIdentifierError(f"{name} must be a non-empty string")


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict):
        return str(payload.get("message") or payload)
    return str(payload)
