from __future__ import annotations

import logging
import platform
import sys

import uvicorn

from credential_relay.config import Settings

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s  %(levelname)-8s  %(name)s - %(message)s",
        stream=sys.stdout,
    )
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def main() -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    logger.info(
        "Environment check: has_supabase_url=%s has_supabase_key=%s python=%s port=%s",
        bool(settings.supabase_url),
        bool(settings.supabase_service_role_key),
        platform.python_version(),
        settings.port,
    )
    uvicorn.run(
        "credential_relay.api:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
