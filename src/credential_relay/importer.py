from __future__ import annotations

import asyncio
import logging
import os
import shutil
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from credential_relay.config import Settings
from credential_relay.errors import CliUnavailableError, CommandError, CommandTimeoutError
from credential_relay.models import CommandResult, InjectionOutcome

logger = logging.getLogger(__name__)

IMPORT_SUBCOMMAND = "import:credentials"

COMMON_FIXES = [
    "Rebuild Docker image with proper n8n installation",
    "Check n8n global installation",
    "Verify file permissions in container",
]


class CommandRunner(Protocol):
    async def run(
        self,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        timeout: float,
        cwd: str | None = None,
    ) -> CommandResult: ...


class SubprocessRunner:
    """Run a command without a shell and collect its decoded output.

    Non-zero exit codes are returned in the result. A timeout kills the
    child and raises CommandTimeoutError; spawn failures raise OSError.
    """

    async def run(
        self,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        timeout: float,
        cwd: str | None = None,
    ) -> CommandResult:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(env) if env is not None else None,
            cwd=cwd,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise CommandTimeoutError(
                f"{' '.join(args)} timed out after {timeout:g}s"
            ) from None

        return CommandResult(
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )


class OutcomeClassifier(Protocol):
    def is_success(self, result: CommandResult) -> bool: ...


class MarkerClassifier:
    """Treat an import as successful when stdout contains any marker."""

    def __init__(self, markers: Iterable[str]) -> None:
        self.markers = tuple(markers)
        if not self.markers:
            raise ValueError("at least one success marker is required")

    def is_success(self, result: CommandResult) -> bool:
        return any(marker in result.stdout for marker in self.markers)


@dataclass(frozen=True)
class ImportStrategy:
    name: str
    extra_args: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    inherit_env: bool = True
    user_folder: str | None = None

    def build_env(
        self, encryption_key: str | None, base_env: Mapping[str, str] | None = None
    ) -> dict[str, str]:
        env = dict(os.environ if base_env is None else base_env) if self.inherit_env else {}
        env.update(self.env)
        if encryption_key:
            env["N8N_ENCRYPTION_KEY"] = encryption_key
        else:
            env.pop("N8N_ENCRYPTION_KEY", None)
        return env


def default_strategies(user_folder: str) -> list[ImportStrategy]:
    return [
        ImportStrategy(name="basic"),
        ImportStrategy(
            name="userFolder",
            extra_args=(f"--userFolder={user_folder}",),
            env={"N8N_USER_FOLDER": user_folder},
            user_folder=user_folder,
        ),
        ImportStrategy(
            name="minimal",
            env={
                "NODE_ENV": "production",
                "N8N_LOG_LEVEL": "error",
                "N8N_USER_MANAGEMENT_DISABLED": "true",
            },
            inherit_env=False,
        ),
    ]


class N8nImporter:
    """Drive the n8n command-line importer."""

    def __init__(
        self,
        settings: Settings,
        *,
        runner: CommandRunner | None = None,
        classifier: OutcomeClassifier | None = None,
        strategies: Sequence[ImportStrategy] | None = None,
    ) -> None:
        self._command = settings.n8n_command
        self._scratch_dir = settings.scratch_dir
        self._import_timeout = settings.import_timeout
        self._probe_timeout = settings.probe_timeout
        self._runner = runner or SubprocessRunner()
        self._classifier = classifier or MarkerClassifier(settings.success_markers)
        self.strategies = list(strategies or default_strategies(settings.n8n_user_folder))

    async def version(self) -> str:
        result = await self._probe("--version")
        return result.stdout.strip()

    async def has_import_command(self) -> bool:
        result = await self._probe("--help")
        return IMPORT_SUBCOMMAND in result.stdout

    async def import_file(
        self,
        path: str | os.PathLike[str],
        encryption_key: str | None,
        credential_id: str,
    ) -> InjectionOutcome:
        """Try each strategy in order until the classifier accepts the output."""
        logger.info("Starting n8n CLI import of %s", path)

        for strategy in self.strategies:
            logger.info("Attempting %s import strategy", strategy.name)
            try:
                result = await self._run_strategy(strategy, path, encryption_key)
            except (CommandError, OSError) as exc:
                logger.warning("Strategy %s failed: %s", strategy.name, exc)
                continue

            if self._classifier.is_success(result):
                logger.info(
                    "Strategy %s imported credential %s (exit code %s)",
                    strategy.name,
                    credential_id,
                    result.returncode,
                )
                return InjectionOutcome(
                    success=True,
                    credential_id=credential_id,
                    message=f"Credentials imported successfully using {strategy.name} strategy",
                    details={
                        "method": f"n8n_cli_{strategy.name}",
                        "output": result.stdout,
                        "strategy": strategy.name,
                    },
                )

            logger.warning(
                "Strategy %s completed with exit code %s but no success indicators found",
                strategy.name,
                result.returncode,
            )

        logger.error("All import strategies failed for credential %s", credential_id)
        return self.failure("All import strategies failed")

    def failure(self, message: str) -> InjectionOutcome:
        return InjectionOutcome(
            success=False,
            message=message,
            troubleshooting={
                "strategies_tried": [strategy.name for strategy in self.strategies],
                "common_fixes": list(COMMON_FIXES),
            },
        )

    async def _run_strategy(
        self,
        strategy: ImportStrategy,
        path: str | os.PathLike[str],
        encryption_key: str | None,
    ) -> CommandResult:
        if strategy.user_folder:
            Path(strategy.user_folder).mkdir(parents=True, exist_ok=True)

        command = self._command
        if not strategy.inherit_env:
            # the replaced environment has no PATH to resolve the binary with
            command = shutil.which(command) or command
        args = [command, IMPORT_SUBCOMMAND, f"--input={path}", *strategy.extra_args]
        env = strategy.build_env(encryption_key)
        logger.info("Executing: %s", " ".join(args))
        logger.info(
            "Environment: N8N_ENCRYPTION_KEY=%s",
            "set" if env.get("N8N_ENCRYPTION_KEY") else "not set",
        )

        result = await self._runner.run(
            args, env=env, timeout=self._import_timeout, cwd=self._scratch_dir
        )
        logger.debug("Strategy %s output: %s", strategy.name, result.stdout)
        if result.stderr:
            logger.debug("Strategy %s stderr: %s", strategy.name, result.stderr)
        return result

    async def _probe(self, flag: str) -> CommandResult:
        try:
            result = await self._runner.run(
                [self._command, flag], timeout=self._probe_timeout
            )
        except (CommandError, OSError) as exc:
            logger.error("n8n CLI probe %s failed: %s", flag, exc)
            raise CliUnavailableError(
                "N8N CLI is not available in this environment", details=str(exc)
            ) from exc

        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit code {result.returncode}"
            logger.error("n8n CLI probe %s failed: %s", flag, detail)
            raise CliUnavailableError(
                "N8N CLI is not available in this environment", details=detail
            )
        return result
