"""
Shared pytest fixtures for horizon-boot tests.

This module provides:
- tmp_path-based logging/entrypoint configs
- fake executables on an isolated PATH (target, node, npm, git)
- SIGTERM/SIGINT handler restoration between tests
"""

import json
import os
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Ensure horizon_boot is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from horizon_boot.config import EntrypointConfig, LoggingConfig
from horizon_boot.logger import StructuredLogger


def make_executable(bin_dir: Path, name: str, body: str = 'echo "1.0.0"') -> Path:
    path = bin_dir / name
    path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
    path.chmod(0o755)
    return path


def read_records(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


@pytest.fixture(autouse=True)
def restore_signal_handlers():
    saved = {s: signal.getsignal(s) for s in (signal.SIGTERM, signal.SIGINT)}
    yield
    for s, handler in saved.items():
        signal.signal(s, handler)


@pytest.fixture
def log_cfg(tmp_path: Path) -> LoggingConfig:
    (tmp_path / "logs").mkdir()
    return LoggingConfig(
        log_dir=tmp_path / "logs",
        log_file="test.log",
        log_level="DEBUG",
        json_logging=True,
        console_logging=True,
    )


@pytest.fixture
def logger(log_cfg: LoggingConfig) -> StructuredLogger:
    return StructuredLogger(log_cfg)


@pytest.fixture
def bin_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """PATH containing only fake opencode/node/npm/git."""
    d = tmp_path / "bin"
    d.mkdir()
    for name in ("opencode", "node", "npm", "git"):
        make_executable(d, name)
    monkeypatch.setenv("PATH", str(d))
    return d


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def target_config(tmp_path: Path) -> Path:
    cfg_dir = tmp_path / "config" / "opencode"
    cfg_dir.mkdir(parents=True)
    path = cfg_dir / "opencode.json"
    path.write_text(json.dumps({"$schema": "https://opencode.ai/config.json", "mcp": {}}), encoding="utf-8")
    return path


@pytest.fixture
def ep_cfg(workspace: Path, target_config: Path, bin_dir: Path) -> EntrypointConfig:
    return EntrypointConfig(
        workspace_dir=workspace,
        optional_dirs=[".opencode", ".opencode/agent"],
        target_command="opencode",
        target_config_file=target_config,
        required_runtimes=["node", "npm"],
        optional_tools=["gh"],
        optional_packages=["@playwright/mcp"],
        probe_timeout=2,
    )


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch):
    for var in ("OPENROUTER_API_KEY", "GITHUB_TOKEN", "GITHUB_PERSONAL_ACCESS_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch
