from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SUCCESS_MARKERS = ["Successfully imported", "imported", "credential"]


class Settings(BaseSettings):
    """Relay configuration, read once from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    credentials_table: str = "user_social_credentials"
    users_table: str = "launchmvpfast-saas-starterkit_user"
    request_timeout: float = 10.0

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    n8n_command: str = "n8n"
    scratch_dir: str = "/tmp"
    n8n_user_folder: str = "/tmp/.n8n"
    import_timeout: float = 60.0
    probe_timeout: float = 5.0
    success_markers: list[str] = DEFAULT_SUCCESS_MARKERS

    @property
    def backend_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)
