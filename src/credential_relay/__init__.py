__version__ = "2.0.0"

from credential_relay.config import Settings
from credential_relay.errors import (
    CliUnavailableError,
    ConfigurationError,
    CredentialsNotFoundError,
    RelayError,
    StatusWriteError,
    UnsupportedProviderError,
)
from credential_relay.models import CredentialData, CredentialTemplate, InjectionOutcome
from credential_relay.service import InjectionService
from credential_relay.store import CredentialStore

__all__ = [
    "CliUnavailableError",
    "ConfigurationError",
    "CredentialData",
    "CredentialStore",
    "CredentialTemplate",
    "CredentialsNotFoundError",
    "InjectionOutcome",
    "InjectionService",
    "RelayError",
    "Settings",
    "StatusWriteError",
    "UnsupportedProviderError",
]
