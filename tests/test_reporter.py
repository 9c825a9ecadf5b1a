from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from conftest import FakeStore
from credential_relay.errors import StatusWriteError
from credential_relay.models import InjectionOutcome
from credential_relay.reporter import build_status_update, report_status

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def test_success_update():
    outcome = InjectionOutcome(
        success=True,
        message="Credentials imported successfully using basic strategy",
        credential_id="cred-1",
        details={"strategy": "basic"},
    )
    fields = build_status_update(outcome, now=NOW)

    assert fields["injected_to_n8n"] is True
    assert fields["injected_at"] == "2026-10-18T12:00:00.000Z"
    assert fields["injection_error"] is None
    assert fields["n8n_credential_id"] == "cred-1"
    assert fields["updated_at"] == "2026-10-18T12:00:00.000Z"

    blob = json.loads(fields["additional_data"])
    assert blob["success"] is True
    assert blob["details"] == {"strategy": "basic"}
    assert blob["injection_method"] == "n8n_cli"


def test_failure_update():
    outcome = InjectionOutcome(
        success=False,
        message="All import strategies failed",
        troubleshooting={"strategies_tried": ["basic", "userFolder", "minimal"]},
    )
    fields = build_status_update(outcome, now=NOW)

    assert fields["injected_to_n8n"] is False
    assert fields["injected_at"] is None
    assert fields["injection_error"] == "All import strategies failed"
    assert "n8n_credential_id" not in fields
    assert json.loads(fields["additional_data"])["error"] == "All import strategies failed"


@pytest.mark.asyncio
async def test_report_status_writes_once():
    store = FakeStore()
    await report_status(store, "u1", "google", InjectionOutcome(success=True, message="ok"))
    assert len(store.updates) == 1
    assert store.updates[0][:2] == ("u1", "google")


@pytest.mark.asyncio
async def test_report_status_propagates_write_failure():
    store = FakeStore(fail_write=True)
    with pytest.raises(StatusWriteError):
        await report_status(store, "u1", "google", InjectionOutcome(success=True, message="ok"))
