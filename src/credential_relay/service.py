from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Protocol

from credential_relay.config import Settings
from credential_relay.errors import CredentialsNotFoundError, StatusWriteError
from credential_relay.import_file import remove_import_file, write_import_file
from credential_relay.importer import N8nImporter
from credential_relay.models import CredentialData, InjectionOutcome
from credential_relay.reporter import StatusSink, report_status
from credential_relay.templates import build_credential_template

logger = logging.getLogger(__name__)


class CredentialSource(StatusSink, Protocol):
    async def fetch_credentials(self, user_id: str, provider: str) -> CredentialData | None: ...


class InjectionService:
    """Sequence one credential injection from lookup to status write."""

    def __init__(
        self,
        store: CredentialSource,
        importer: N8nImporter,
        settings: Settings,
    ) -> None:
        self._store = store
        self._importer = importer
        self._scratch_dir = settings.scratch_dir

    async def inject(self, user_id: str, provider: str, attempt: int = 1) -> InjectionOutcome:
        logger.info(
            "Processing credential injection (attempt %s) user=%s provider=%s at %s",
            attempt,
            user_id,
            provider,
            datetime.now(UTC).isoformat(),
        )

        await self._importer.version()

        data = await self._store.fetch_credentials(user_id, provider)
        if data is None:
            raise CredentialsNotFoundError("User credentials or n8n configuration not found")

        template = build_credential_template(data)
        try:
            path = write_import_file([template], self._scratch_dir)
        except OSError as exc:
            logger.error("Could not write import file in %s: %s", self._scratch_dir, exc)
            outcome = self._importer.failure(str(exc))
        else:
            try:
                outcome = await self._importer.import_file(
                    path, data.n8n_encryption_key, template.id
                )
            finally:
                remove_import_file(path)

        try:
            await report_status(self._store, user_id, provider, outcome)
        except StatusWriteError as exc:
            if outcome.credential_id:
                logger.error(
                    "Credential %s was imported but its status was not recorded "
                    "user=%s provider=%s",
                    outcome.credential_id,
                    user_id,
                    provider,
                )
                exc.extra.setdefault("credential_id", outcome.credential_id)
            raise
        return outcome
