from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import pytest

from credential_relay.config import Settings
from credential_relay.errors import StatusWriteError
from credential_relay.importer import IMPORT_SUBCOMMAND
from credential_relay.models import CommandResult, CredentialData

HELP_TEXT = """Usage: n8n [command]

Commands:
  export:credentials  Export credentials
  import:credentials  Import credentials
  start               Starts n8n
"""


@dataclass
class RunnerCall:
    args: list[str]
    env: dict[str, str] | None
    timeout: float
    cwd: str | None
    input_document: str | None = None


class FakeRunner:
    """Stands in for the n8n binary; import results are consumed in order."""

    def __init__(
        self,
        import_results: Sequence[CommandResult | BaseException] = (),
        *,
        version: str = "1.82.0",
        help_text: str = HELP_TEXT,
        probe_error: BaseException | None = None,
    ) -> None:
        self.import_results = list(import_results)
        self.version = version
        self.help_text = help_text
        self.probe_error = probe_error
        self.calls: list[RunnerCall] = []

    async def run(
        self,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        timeout: float,
        cwd: str | None = None,
    ) -> CommandResult:
        call = RunnerCall(list(args), dict(env) if env is not None else None, timeout, cwd)
        self.calls.append(call)

        if args[1] in ("--version", "--help"):
            if self.probe_error is not None:
                raise self.probe_error
            text = self.version if args[1] == "--version" else self.help_text
            return CommandResult(returncode=0, stdout=f"{text}\n", stderr="")

        input_path = Path(args[2].split("=", 1)[1])
        if input_path.exists():
            call.input_document = input_path.read_text(encoding="utf-8")

        result = self.import_results.pop(0) if self.import_results else CommandResult(1, "", "boom")
        if isinstance(result, BaseException):
            raise result
        return result

    @property
    def import_calls(self) -> list[RunnerCall]:
        return [call for call in self.calls if call.args[1] == IMPORT_SUBCOMMAND]


class FakeStore:
    def __init__(self, data: CredentialData | None = None, *, fail_write: bool = False) -> None:
        self.data = data
        self.fail_write = fail_write
        self.updates: list[tuple[str, str, dict[str, Any]]] = []

    async def fetch_credentials(self, user_id: str, provider: str) -> CredentialData | None:
        if self.data is None:
            return None
        if (self.data.user_id, self.data.provider) != (user_id, provider):
            return None
        return self.data

    async def update_status(self, user_id: str, provider: str, fields: dict[str, Any]) -> None:
        self.updates.append((user_id, provider, fields))
        if self.fail_write:
            raise StatusWriteError("Database update failed: permission denied")


def imported(stdout: str = "Successfully imported 1 credentials", returncode: int = 0) -> CommandResult:
    return CommandResult(returncode=returncode, stdout=stdout, stderr="")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        supabase_url="https://db.example.test",
        supabase_service_role_key="service-key",
        scratch_dir=str(tmp_path / "scratch"),
        n8n_user_folder=str(tmp_path / ".n8n"),
    )


def make_credential_data(provider: str = "google", user_id: str = "u1") -> CredentialData:
    return CredentialData(
        user_id=user_id,
        provider=provider,
        access_token="access-abc",
        refresh_token="refresh-xyz",
        client_id="client-1",
        client_secret="secret-1",
        n8n_url="https://n8n.example.test",
        n8n_user_email="owner@example.test",
        n8n_encryption_key="enc-key",
    )


@pytest.fixture
def credential_data() -> CredentialData:
    return make_credential_data()


SOCIAL_ROW = {
    "user_id": "u1",
    "provider": "google",
    "access_token": "access-abc",
    "refresh_token": None,
    "client_id": "client-1",
    "client_secret": "secret-1",
}
USER_ROW = {
    "n8n_url": "https://n8n.example.test",
    "n8n_user_email": None,
    "n8n_encryption_key": "enc-key",
    "email": "owner@example.test",
    "name": "Owner",
}


class FakeSupabase:
    """Minimal PostgREST stand-in for the two tables the relay reads."""

    def __init__(self, *, social=SOCIAL_ROW, user=USER_ROW, patch_status=204) -> None:
        self.social = social
        self.user = user
        self.patch_status = patch_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        table = request.url.path.rsplit("/", 1)[-1]

        if request.method == "PATCH":
            if self.patch_status >= 400:
                return httpx.Response(self.patch_status, json={"message": "permission denied"})
            return httpx.Response(self.patch_status)

        row = self.social if table == "user_social_credentials" else self.user
        if row is None:
            return httpx.Response(
                406, json={"message": "JSON object requested, multiple (or no) rows returned"}
            )
        return httpx.Response(200, json=row)
