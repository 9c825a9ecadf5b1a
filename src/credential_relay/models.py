from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CredentialData:
    user_id: str
    provider: str
    access_token: str
    refresh_token: str
    client_id: str | None
    client_secret: str | None
    n8n_url: str | None
    n8n_user_email: str | None
    n8n_encryption_key: str | None


@dataclass(frozen=True)
class CredentialTemplate:
    id: str
    name: str
    type: str
    data: dict[str, Any]
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "data": dict(self.data),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True)
class InjectionOutcome:
    success: bool
    message: str
    credential_id: str | None = None
    details: dict[str, Any] | None = None
    troubleshooting: dict[str, Any] | None = None
