from __future__ import annotations

import json
import logging
import os
import time
import uuid
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from credential_relay.models import CredentialTemplate

logger = logging.getLogger(__name__)

IMPORT_DOCUMENT_VERSION = "1.0.0"


def build_import_document(templates: Sequence[CredentialTemplate]) -> dict[str, Any]:
    return {
        "version": IMPORT_DOCUMENT_VERSION,
        "credentials": [template.to_dict() for template in templates],
        "workflows": [],
    }


def write_import_file(
    templates: Sequence[CredentialTemplate], scratch_dir: str | os.PathLike[str]
) -> Path:
    """Write the n8n import document to a new scratch file and return its path.

    The name combines the epoch milliseconds with a random suffix and the
    file is created exclusively, so concurrent requests never share a file.
    """
    directory = Path(scratch_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"credentials-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.json"

    with path.open("x", encoding="utf-8") as handle:
        json.dump(build_import_document(templates), handle, indent=2)

    logger.debug("Wrote import file %s", path)
    return path


def remove_import_file(path: str | os.PathLike[str]) -> bool:
    """Advisory cleanup of a scratch file. Failures are logged, never raised."""
    try:
        os.unlink(path)
    except OSError as exc:
        logger.warning("Could not remove import file %s: %s", path, exc)
        return False
    return True
