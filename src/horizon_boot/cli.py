from __future__ import annotations

# ---- Environment bootstrap (MUST be first) ----
import os
from dotenv import load_dotenv

# Load .env once at process start
load_dotenv()

# ---- CLI imports ----
from typing import List, Optional

import typer
from pydantic import ValidationError

from .config import EntrypointConfig, LoggingConfig
from .entrypoint import Entrypoint
from .health import run_healthcheck
from .logger import StructuredLogger


entrypoint_app = typer.Typer(add_completion=False, help="Container entrypoint")
healthcheck_app = typer.Typer(add_completion=False, help="Container health check")


def _load_config(logger: StructuredLogger, component_name: str) -> EntrypointConfig:
    """EntrypointConfig from the environment; an invalid value is logged and exits 1."""
    try:
        return EntrypointConfig(component_name=component_name)
    except ValidationError as e:
        logger.setup(component_name)
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"])
            logger.error("config", f"Invalid configuration for {field}: {err['msg']}")
        logger.cleanup(component_name)
        raise typer.Exit(1)


@entrypoint_app.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
def entrypoint(
    command: Optional[List[str]] = typer.Argument(None, help="Command to exec instead of the default process"),
    debug: bool = typer.Option(False, "--debug", help="Skip startup checks and exec an interactive shell"),
    print_logs: bool = typer.Option(False, "--print-logs", help="Start the default process with --print-logs"),
):
    """
    Validate the workspace, check the runtime, then exec the target.

    Options are only read before the first positional argument; everything
    after it is passed to the command unchanged.
    """
    logger = StructuredLogger(LoggingConfig())
    ep = Entrypoint(_load_config(logger, "entrypoint"), logger, exec_fn=os.execvp)
    code = ep.run(command or [], debug=debug, print_logs=print_logs)
    raise typer.Exit(code)


@healthcheck_app.command()
def healthcheck(
    report: bool = typer.Option(False, "--report", help="Print the check results as JSON"),
):
    """
    Run every container check; exit 0 when all required checks pass.
    """
    logger = StructuredLogger(LoggingConfig())
    cfg = _load_config(logger, "healthcheck")
    logger.setup(cfg.component_name)

    result = run_healthcheck(cfg, logger)
    if report:
        typer.echo(result.model_dump_json(indent=2))

    logger.cleanup(cfg.component_name)
    raise typer.Exit(0 if result.healthy else 1)


if __name__ == "__main__":
    entrypoint_app()
