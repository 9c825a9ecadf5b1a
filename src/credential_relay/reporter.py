from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any, Protocol

from credential_relay import __version__
from credential_relay.models import InjectionOutcome
from credential_relay.templates import iso_timestamp

logger = logging.getLogger(__name__)

INJECTION_METHOD = "n8n_cli"


class StatusSink(Protocol):
    async def update_status(self, user_id: str, provider: str, fields: dict[str, Any]) -> None: ...


def build_status_update(
    outcome: InjectionOutcome, *, now: datetime | None = None
) -> dict[str, Any]:
    stamp = iso_timestamp(now or datetime.now(UTC))
    error = None if outcome.success else outcome.message

    fields: dict[str, Any] = {
        "injected_to_n8n": outcome.success,
        "injected_at": stamp if outcome.success else None,
        "injection_error": error,
        "additional_data": json.dumps(
            {
                "injection_method": INJECTION_METHOD,
                "success": outcome.success,
                "error": error,
                "details": outcome.details or outcome.troubleshooting,
                "timestamp": stamp,
                "version": __version__,
            }
        ),
        "updated_at": stamp,
    }
    if outcome.credential_id:
        fields["n8n_credential_id"] = outcome.credential_id
    return fields


async def report_status(
    store: StatusSink, user_id: str, provider: str, outcome: InjectionOutcome
) -> None:
    """Write the outcome back to the credential row.

    StatusWriteError propagates even after a successful import; the n8n
    credential then exists without being recorded.
    """
    await store.update_status(user_id, provider, build_status_update(outcome))
    logger.info(
        "Recorded injection status user=%s provider=%s success=%s",
        user_id,
        provider,
        outcome.success,
    )
