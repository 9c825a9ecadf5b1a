from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from credential_relay import __version__
from credential_relay.config import Settings
from credential_relay.errors import (
    CliUnavailableError,
    ConfigurationError,
    InvalidRequestError,
    RelayError,
)
from credential_relay.importer import N8nImporter
from credential_relay.service import CredentialSource, InjectionService
from credential_relay.store import CredentialStore

logger = logging.getLogger(__name__)

SERVICE_NAME = "n8n-credential-relay"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Origin, X-Requested-With, Content-Type, Accept, Authorization",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
}


class InjectCredentialRequest(BaseModel):
    user_id: str | None = None
    provider: str | None = None
    attempt: int | float = 1


class InjectCredentialResponse(BaseModel):
    success: bool
    message: str
    credential_id: str | None
    details: dict[str, Any] | None


def create_app(
    settings: Settings | None = None,
    *,
    store: CredentialSource | None = None,
    importer: N8nImporter | None = None,
) -> FastAPI:
    settings = settings or Settings()
    owns_store = store is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if owns_store and settings.backend_configured:
            app.state.store = CredentialStore.from_settings(settings)

        yield

        if owns_store and app.state.store is not None:
            await app.state.store.aclose()

    app = FastAPI(title="n8n Credential Relay", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.importer = importer or N8nImporter(settings)

    @app.middleware("http")
    async def cors(request: Request, call_next):
        if request.method == "OPTIONS":
            response = PlainTextResponse("OK")
        else:
            response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.exception_handler(RelayError)
    async def relay_error(request: Request, exc: RelayError) -> JSONResponse:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Missing user_id or provider"},
        )

    @app.get("/")
    async def root(request: Request) -> Any:
        importer: N8nImporter = request.app.state.importer
        try:
            cli_version = await importer.version()
        except CliUnavailableError as exc:
            return JSONResponse(
                status_code=500,
                content={
                    "status": "unhealthy",
                    "timestamp": _now(),
                    "service": SERVICE_NAME,
                    "error": "n8n CLI not available",
                    "details": exc.extra.get("details", exc.message),
                    "n8n_available": False,
                },
            )

        return {
            "status": "healthy",
            "timestamp": _now(),
            "service": SERVICE_NAME,
            "version": __version__,
            "n8n_cli_version": cli_version,
            "n8n_available": True,
        }

    @app.get("/health")
    async def health(request: Request) -> Any:
        importer: N8nImporter = request.app.state.importer
        try:
            import_available = await importer.has_import_command()
        except CliUnavailableError as exc:
            return JSONResponse(
                status_code=500,
                content={
                    "status": "error",
                    "timestamp": _now(),
                    "error": "n8n CLI check failed",
                    "details": exc.extra.get("details", exc.message),
                    "n8n_cli_available": False,
                },
            )

        return {
            "status": "ok",
            "timestamp": _now(),
            "n8n_cli_available": True,
            "import_command_available": import_available,
        }

    @app.post("/inject-credential", response_model=InjectCredentialResponse)
    async def inject_credential(payload: InjectCredentialRequest, request: Request) -> Any:
        if not payload.user_id or not payload.provider:
            raise InvalidRequestError("Missing user_id or provider")

        app_settings: Settings = request.app.state.settings
        credential_store = request.app.state.store
        if not app_settings.backend_configured or credential_store is None:
            raise ConfigurationError("Missing Supabase configuration")

        service = InjectionService(credential_store, request.app.state.importer, app_settings)
        try:
            outcome = await service.inject(payload.user_id, payload.provider, payload.attempt)
        except RelayError:
            raise
        except Exception as exc:
            logger.exception(
                "Relay service error user=%s provider=%s", payload.user_id, payload.provider
            )
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "message": str(exc) or "Internal server error",
                    "error_type": "relay_service_error",
                },
            )

        if not outcome.success:
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "message": outcome.message,
                    "attempt": payload.attempt,
                    "troubleshooting": outcome.troubleshooting,
                },
            )

        return InjectCredentialResponse(
            success=True,
            message="Credentials injected successfully via n8n CLI",
            credential_id=outcome.credential_id,
            details=outcome.details,
        )

    return app


def _now() -> str:
    return datetime.now(UTC).isoformat()
