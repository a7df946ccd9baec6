from __future__ import annotations

import os
from pathlib import Path

from .config import EntrypointConfig
from .errors import StartupError
from .logger import StructuredLogger

STAGE = "workspace_validation"


def validate_workspace(cfg: EntrypointConfig, logger: StructuredLogger) -> Path:
    """
    The workspace must exist and be writable; optional state
    directories beneath it are created when missing.

    Never deletes or rewrites existing content.
    Raises:
    - StartupError(stage="workspace_validation")
    """
    logger.info(STAGE, "Validating workspace configuration...")
    ws = cfg.workspace_dir

    if not ws.is_dir():
        raise StartupError(STAGE, f"Workspace directory {ws} not found")
    if not os.access(ws, os.W_OK):
        raise StartupError(STAGE, f"Workspace directory {ws} is not writable")

    for d in cfg.optional_paths:
        if d.is_dir():
            continue
        logger.warn(STAGE, f"{d} not found, creating...")
        try:
            d.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warn(STAGE, f"Could not create {d}: {e}")

    logger.info(STAGE, "Workspace validation completed")
    return ws
