from __future__ import annotations

import uuid
from datetime import UTC, datetime

from credential_relay.errors import UnsupportedProviderError
from credential_relay.models import CredentialData, CredentialTemplate

CREDENTIAL_TYPES = {
    "google": "googleOAuth2Api",
    "spotify": "spotifyOAuth2Api",
    "github": "githubOAuth2Api",
}


def credential_type_for(provider: str) -> str:
    try:
        return CREDENTIAL_TYPES[provider]
    except KeyError:
        raise UnsupportedProviderError(f"Unsupported provider: {provider}") from None


def build_credential_template(
    data: CredentialData, *, now: datetime | None = None
) -> CredentialTemplate:
    """Build an n8n OAuth2 credential for ``data.provider`` with a fresh id."""
    credential_type = credential_type_for(data.provider)
    now = now or datetime.now(UTC)
    stamp = iso_timestamp(now)

    return CredentialTemplate(
        id=str(uuid.uuid4()),
        name=f"{data.provider[:1].upper()}{data.provider[1:]} OAuth2 - {now:%Y-%m-%d %H:%M}",
        type=credential_type,
        data={
            "clientId": data.client_id,
            "clientSecret": data.client_secret,
            "accessToken": data.access_token,
            "refreshToken": data.refresh_token,
            "tokenType": "Bearer",
            "grantType": "authorizationCode",
        },
        created_at=stamp,
        updated_at=stamp,
    )


def iso_timestamp(moment: datetime | None = None) -> str:
    moment = (moment or datetime.now(UTC)).astimezone(UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
