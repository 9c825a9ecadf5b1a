from __future__ import annotations

import os
from dataclasses import asdict
from typing import Any

from mcp.server.fastmcp import FastMCP

from credential_relay.config import Settings
from credential_relay.errors import ConfigurationError
from credential_relay.importer import N8nImporter
from credential_relay.service import InjectionService
from credential_relay.store import CredentialStore

mcp = FastMCP("n8n Credential Relay")
_service: InjectionService | None = None
_importer: N8nImporter | None = None


def _get_importer() -> N8nImporter:
    global _importer
    if _importer is None:
        _importer = N8nImporter(Settings())
    return _importer


def _get_service() -> InjectionService:
    global _service
    if _service is None:
        settings = Settings()
        if not settings.backend_configured:
            raise ConfigurationError("Missing Supabase configuration")
        _service = InjectionService(
            CredentialStore.from_settings(settings), _get_importer(), settings
        )
    return _service


@mcp.tool(description="Import a stored OAuth credential into the user's n8n instance")
async def inject_credential(user_id: str, provider: str, attempt: int = 1) -> dict[str, Any]:
    outcome = await _get_service().inject(user_id, provider, attempt)
    return asdict(outcome)


@mcp.tool(description="Report n8n CLI availability, version and import support")
async def cli_status() -> dict[str, Any]:
    importer = _get_importer()
    return {
        "n8n_cli_version": await importer.version(),
        "import_command_available": await importer.has_import_command(),
    }


def main() -> None:
    mcp.run(transport=os.getenv("RELAY_MCP_TRANSPORT", "stdio"))


if __name__ == "__main__":
    main()
