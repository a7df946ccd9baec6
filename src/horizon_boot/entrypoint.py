from __future__ import annotations

import os
import signal
import sys
from enum import Enum
from typing import Callable, MutableMapping, Optional, Sequence

from .config import EntrypointConfig
from .errors import StartupError
from .health import preflight, probe_version
from .logger import StructuredLogger
from .workspace import validate_workspace


ExecFn = Callable[[str, Sequence[str]], None]

EXIT_OK = 0
EXIT_STARTUP_FAILED = 1
EXIT_CANNOT_EXECUTE = 126
EXIT_NOT_FOUND = 127


class Stage(str, Enum):
    START = "start"
    INIT_LOGGING = "init_logging"
    VALIDATE_WORKSPACE = "validate_workspace"
    HEALTH_CHECK = "health_check"
    DISPLAY_STARTUP_INFO = "display_startup_info"
    INSTALL_SIGNAL_HANDLERS = "install_signal_handlers"
    DISPATCH = "dispatch"


class Entrypoint:
    """
    Container entrypoint (PID 1 until dispatch).

    Stages (linear; a failing stage ends the run with exit code 1):
      1) init logging
      2) validate workspace
      3) health check
      4) startup info
      5) signal handlers (SIGTERM/SIGINT -> cleanup, exit 0)
      6) dispatch: exec the target (or the given command) in place
         of this process, so it receives container signals directly
    """

    def __init__(
        self,
        cfg: EntrypointConfig,
        logger: StructuredLogger,
        exec_fn: ExecFn = os.execvp,
        env: Optional[MutableMapping[str, str]] = None,
    ):
        self.cfg = cfg
        self.logger = logger
        self.exec_fn = exec_fn
        self.env = os.environ if env is None else env
        self.stage = Stage.START

    def run(self, command: Sequence[str] = (), debug: bool = False, print_logs: bool = False) -> int:
        """
        Returns an exit code only when startup fails or exec itself fails;
        a successful os.execvp never returns.
        """
        command = list(command)

        self.stage = Stage.INIT_LOGGING
        self.logger.setup(self.cfg.component_name)
        self.logger.info("startup", "Starting container initialization...")
        self.setup_environment()

        if debug or command == ["bash"]:
            return self.debug_shell()

        try:
            self.stage = Stage.VALIDATE_WORKSPACE
            validate_workspace(self.cfg, self.logger)

            self.stage = Stage.HEALTH_CHECK
            preflight(self.cfg, self.logger)
        except StartupError as e:
            self.logger.error(e.stage, e.message)
            self.logger.cleanup(self.cfg.component_name)
            return EXIT_STARTUP_FAILED

        self.stage = Stage.DISPLAY_STARTUP_INFO
        self.display_startup_info()

        self.stage = Stage.INSTALL_SIGNAL_HANDLERS
        self.install_signal_handlers()

        self.stage = Stage.DISPATCH
        return self.dispatch(command, print_logs=print_logs)

    # ---------- stages ----------

    def setup_environment(self) -> None:
        """Re-export the GitHub token under the name MCP servers expect."""
        token = self.env.get(self.cfg.token_var, "")
        if token:
            self.env[self.cfg.token_export_var] = token
            self.logger.debug("env_setup", f"Exported {self.cfg.token_var} as {self.cfg.token_export_var}")

    def display_startup_info(self) -> None:
        timeout = self.cfg.probe_timeout
        target = self.cfg.target_command
        self.logger.info("startup_info", "Container Startup Information:")
        self.logger.info("startup_info", f"  - {target} Version: {probe_version(target, timeout) or 'Unknown'}")
        if self.cfg.required_runtimes:
            rt = self.cfg.required_runtimes[0]
            self.logger.info("startup_info", f"  - {rt} Version: {probe_version(rt, timeout) or 'Unknown'}")
        self.logger.info("startup_info", f"  - Workspace: {self.cfg.workspace_dir}")
        self.logger.info("startup_info", f"  - {target} Config: {self.cfg.target_config_dir}")
        self.logger.info("startup_info", f"  - API Key: {self._presence(self.cfg.api_key_var)}")
        self.logger.info("startup_info", f"  - GitHub Token: {self._presence(self.cfg.token_var)}")

    def _presence(self, var: str) -> str:
        return "Configured" if self.env.get(var) else "Not configured"

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self.handle_shutdown)
        signal.signal(signal.SIGINT, self.handle_shutdown)

    def handle_shutdown(self, signum, frame) -> None:
        name = signal.Signals(signum).name
        self.logger.info("shutdown", f"Received {name}, cleaning up...")
        self.logger.info("shutdown", "Cleanup completed")
        self.logger.cleanup(self.cfg.component_name)
        raise SystemExit(EXIT_OK)

    def dispatch(self, command: Sequence[str], print_logs: bool = False) -> int:
        if command:
            argv = list(command)
            if print_logs:
                self.logger.warn("dispatch", "--print-logs applies to the default process only; ignored")
            self.logger.info("dispatch", f"Executing command: {' '.join(argv)}")
        else:
            argv = [self.cfg.target_command]
            if print_logs:
                argv.append("--print-logs")
            self.logger.info("dispatch", f"Starting {' '.join(argv)}...")

        os.chdir(self.cfg.workspace_dir)
        return self._exec(argv)

    def debug_shell(self) -> int:
        self.logger.info("debug_mode", "Debug mode requested - starting interactive shell")
        self.logger.info("debug_mode", "Environment variables are configured and ready")
        self.logger.info("debug_mode", f"Use '{self.cfg.target_command}' to start it manually")
        self.logger.info("debug_mode", "Use 'exit' to leave the container")
        return self._exec([self.cfg.debug_shell])

    def _exec(self, argv: Sequence[str]) -> int:
        # exec discards unflushed stdio buffers
        sys.stdout.flush()
        sys.stderr.flush()
        try:
            self.exec_fn(argv[0], argv)
        except FileNotFoundError:
            self.logger.error("dispatch", f"Command not found: {argv[0]}")
            return EXIT_NOT_FOUND
        except OSError as e:
            self.logger.error("dispatch", f"Cannot execute {argv[0]}: {e}")
            return EXIT_CANNOT_EXECUTE
        return EXIT_OK
