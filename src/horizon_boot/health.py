from __future__ import annotations

import json
import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from .config import EntrypointConfig
from .errors import StartupError
from .logger import StructuredLogger
from .schemas import CheckResult, HealthReport

STAGE = "health_check"


# -------------------------
# Probes
# -------------------------

def check_command(cmd: str, description: str = "", required: bool = True) -> CheckResult:
    label = description or cmd
    path = shutil.which(cmd)
    if path:
        return CheckResult(name=cmd, ok=True, required=required, detail=f"{label} is available ({path})")
    return CheckResult(name=cmd, ok=False, required=required, detail=f"{label} is not installed or not in PATH")


def check_file(path: Path, description: str, required: bool = True) -> CheckResult:
    if path.is_file():
        if os.access(path, os.R_OK):
            return CheckResult(name=str(path), ok=True, required=required, detail=f"{description} exists and is readable")
        return CheckResult(name=str(path), ok=False, required=required, detail=f"{description} exists but is not readable")
    suffix = "" if required else " (optional)"
    return CheckResult(name=str(path), ok=False, required=required, detail=f"{description} not found at {path}{suffix}")


def check_directory(path: Path, description: str, writable: bool = False) -> CheckResult:
    if not path.is_dir():
        return CheckResult(name=str(path), ok=False, detail=f"{description} does not exist")
    if writable and not os.access(path, os.W_OK):
        return CheckResult(name=str(path), ok=False, detail=f"{description} exists but is not writable")
    return CheckResult(name=str(path), ok=True, detail=f"{description} exists and has correct permissions")


def check_json(path: Path, description: str) -> CheckResult:
    if not path.is_file():
        return CheckResult(name=str(path), ok=False, detail=f"{description} not found at {path}")
    try:
        json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        return CheckResult(name=str(path), ok=False, detail=f"{description} is not valid JSON: {e}")
    return CheckResult(name=str(path), ok=True, detail=f"{description} is valid JSON")


def probe_version(cmd: str, timeout: float) -> Optional[str]:
    """
    First line of `<cmd> --version`, or None when the command is missing,
    fails, or does not answer within `timeout` seconds.
    """
    try:
        proc = subprocess.run(
            [cmd, "--version"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if proc.returncode != 0:
        return None
    out = (proc.stdout or proc.stderr).strip()
    return out.splitlines()[0] if out else None


def check_npm_package(package: str, timeout: float) -> CheckResult:
    try:
        proc = subprocess.run(
            ["npm", "list", "-g", package],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
        ok = proc.returncode == 0
        detail = f"MCP server {package} is installed" if ok else f"MCP server {package} is not installed"
    except subprocess.TimeoutExpired:
        ok, detail = False, f"npm list timed out after {timeout}s for {package}"
    except OSError as e:
        ok, detail = False, f"npm unavailable: {e}"
    return CheckResult(name=package, ok=ok, required=False, detail=detail)


# -------------------------
# Pre-flight (entrypoint)
# -------------------------

def preflight(cfg: EntrypointConfig, logger: StructuredLogger) -> None:
    """
    All-or-nothing runtime check run before dispatch.

    Order: target executable, target config (exists, valid JSON),
    then each required runtime. Stops at the first failure.
    Raises:
    - StartupError(stage="health_check") naming the missing dependency
    """
    logger.info(STAGE, "Performing initial health check...")

    probes = [
        check_command(cfg.target_command, cfg.target_command),
        check_json(cfg.target_config_file, f"{cfg.target_command} configuration file"),
    ]
    probes += [check_command(rt, rt) for rt in cfg.required_runtimes]

    for result in probes:
        if not result.ok:
            raise StartupError(STAGE, result.detail)
        logger.debug(STAGE, result.detail)

    logger.info(STAGE, "Health check passed")


# -------------------------
# Container health check (standalone)
# -------------------------

def _record(report: HealthReport, logger: StructuredLogger, op: str, result: CheckResult) -> None:
    report.add(result)
    if result.ok:
        logger.info(op, result.detail)
    elif result.required:
        logger.error(op, result.detail)
    else:
        logger.warn(op, result.detail)


def check_environment(cfg: EntrypointConfig, env: dict) -> List[CheckResult]:
    results = []
    if env.get(cfg.api_key_var):
        results.append(CheckResult(name=cfg.api_key_var, ok=True, detail="API key is configured"))
    else:
        results.append(CheckResult(name=cfg.api_key_var, ok=False, detail=f"No API key configured ({cfg.api_key_var})"))

    if env.get(cfg.token_var):
        results.append(CheckResult(name=cfg.token_var, ok=True, required=False, detail=f"{cfg.token_var} is configured"))
    else:
        results.append(CheckResult(
            name=cfg.token_var,
            ok=False,
            required=False,
            detail=f"{cfg.token_var} is not configured (GitHub MCP and GitHub CLI will be limited)",
        ))
    return results


def run_healthcheck(
    cfg: EntrypointConfig,
    logger: StructuredLogger,
    env: Optional[dict] = None,
) -> HealthReport:
    """
    Full container health check: runs every check and aggregates.

    Required failures make the report unhealthy; optional ones
    (GitHub token, optional tools, MCP packages, AGENTS.md) only warn.
    """
    env = dict(os.environ) if env is None else env
    report = HealthReport()
    logger.info(STAGE, "Starting container health check...")

    for result in check_environment(cfg, env):
        _record(report, logger, "env_check", result)

    for cmd in [*cfg.required_runtimes, "git"]:
        _record(report, logger, "system_check", check_command(cmd))
    for tool in cfg.optional_tools:
        _record(report, logger, "system_check", check_command(tool, required=False))

    _record(report, logger, "target_check", check_command(cfg.target_command))
    _record(report, logger, "target_check", check_json(cfg.target_config_file, f"{cfg.target_command} configuration"))
    _record(report, logger, "target_check", check_directory(cfg.data_dir, "Data directory", writable=True))

    for pkg in cfg.optional_packages:
        _record(report, logger, "mcp_check", check_npm_package(pkg, cfg.probe_timeout))

    _record(report, logger, "workspace_check", check_directory(cfg.workspace_dir, "Workspace directory", writable=True))
    _record(
        report,
        logger,
        "workspace_check",
        check_file(cfg.target_config_dir / "AGENTS.md", "Global agents configuration", required=False),
    )

    if report.healthy:
        logger.info(STAGE, "Container health check PASSED")
    else:
        logger.error(STAGE, f"Container health check FAILED ({len(report.failures)} required check(s) failed)")
    return report
