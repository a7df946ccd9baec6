from __future__ import annotations

import os
from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .schemas import LogLevel


_TRUTHY = {"1", "true", "yes", "on"}

DEFAULT_PROBE_TIMEOUT = "5"

DEFAULT_OPTIONAL_PACKAGES = (
    "@playwright/mcp,"
    "@modelcontextprotocol/server-sequential-thinking,"
    "@jpisnice/shadcn-ui-mcp-server"
)


def _env_bool(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _target_config_file() -> Path:
    explicit = os.getenv("TARGET_CONFIG_FILE")
    if explicit:
        return Path(explicit).expanduser()
    config_dir = os.getenv("OPENCODE_CONFIG_DIR") or "~/.config/opencode"
    return Path(config_dir).expanduser() / "opencode.json"


class LoggingConfig(BaseModel):
    """
    Logger configuration, read from the environment once at construction.

    Notes:
    - Frozen: build one per process and pass it down.
    - LOG_LEVEL is case-insensitive; unknown names fall back to INFO.
    """
    model_config = ConfigDict(frozen=True)

    log_dir: Path = Field(default_factory=lambda: Path(os.getenv("LOG_DIR", "logs")))
    log_file: str = Field(default_factory=lambda: os.getenv("LOG_FILE", "horizon-sdlc.log"))
    log_level: LogLevel = Field(default_factory=lambda: LogLevel.parse(os.getenv("LOG_LEVEL", "INFO")))
    json_logging: bool = Field(default_factory=lambda: _env_bool("ENABLE_JSON_LOGGING"))
    console_logging: bool = Field(default_factory=lambda: _env_bool("ENABLE_CONSOLE_LOGGING"))

    @field_validator("log_level", mode="before")
    @classmethod
    def _coerce_level(cls, v):
        return LogLevel.parse(v)

    @property
    def log_path(self) -> Path:
        return self.log_dir / self.log_file


class EntrypointConfig(BaseModel):
    """
    Container entrypoint configuration.

    Relative entries in optional_dirs are resolved under workspace_dir.
    """
    model_config = ConfigDict(frozen=True)

    component_name: str = "entrypoint"
    workspace_dir: Path = Field(default_factory=lambda: Path(os.getenv("WORKSPACE_DIR", "/workspace")))
    optional_dirs: List[str] = Field(default_factory=lambda: _env_list("OPTIONAL_DIRS", ".opencode,.opencode/agent"))

    # target process
    target_command: str = Field(default_factory=lambda: os.getenv("TARGET_COMMAND", "opencode"))
    target_config_file: Path = Field(default_factory=_target_config_file)
    debug_shell: str = Field(default_factory=lambda: os.getenv("DEBUG_SHELL", "bash"))

    # health check
    required_runtimes: List[str] = Field(default_factory=lambda: _env_list("REQUIRED_RUNTIMES", "node,npm"))
    optional_tools: List[str] = Field(default_factory=lambda: _env_list("OPTIONAL_TOOLS", "gh"))
    optional_packages: List[str] = Field(
        default_factory=lambda: _env_list("OPTIONAL_NPM_PACKAGES", DEFAULT_OPTIONAL_PACKAGES)
    )
    probe_timeout: float = Field(
        default_factory=lambda: os.getenv("HEALTH_CHECK_TIMEOUT", DEFAULT_PROBE_TIMEOUT),
        gt=0,
        validate_default=True,
    )

    # credentials (reported as present/absent only)
    api_key_var: str = "OPENROUTER_API_KEY"
    token_var: str = "GITHUB_TOKEN"
    token_export_var: str = "GITHUB_PERSONAL_ACCESS_TOKEN"

    @field_validator("probe_timeout", mode="before")
    @classmethod
    def _coerce_timeout(cls, v):
        # unparseable values (e.g. "5s") fall back to the default
        try:
            return float(v)
        except (TypeError, ValueError):
            return float(DEFAULT_PROBE_TIMEOUT)

    @property
    def optional_paths(self) -> List[Path]:
        return [self.workspace_dir / d for d in self.optional_dirs]

    @property
    def data_dir(self) -> Path:
        return self.workspace_dir / ".opencode"

    @property
    def target_config_dir(self) -> Path:
        return self.target_config_file.parent
