"""
End-to-end tests for the container entrypoint.

Process replacement is observed through an injected exec function:
a successful run calls it exactly once and never forks.
"""

import os
import signal
from pathlib import Path

import pytest

from conftest import read_records
from horizon_boot.entrypoint import (
    EXIT_CANNOT_EXECUTE,
    EXIT_NOT_FOUND,
    EXIT_STARTUP_FAILED,
    Entrypoint,
    Stage,
)


class RecordingExec:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def __call__(self, file, argv):
        self.calls.append((file, list(argv)))
        if self.error is not None:
            raise self.error


@pytest.fixture(autouse=True)
def keep_cwd(monkeypatch, tmp_path):
    # dispatch changes into the workspace
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def exec_fn():
    return RecordingExec()


@pytest.fixture
def env():
    return {}


@pytest.fixture
def ep(ep_cfg, logger, exec_fn, env):
    return Entrypoint(ep_cfg, logger, exec_fn=exec_fn, env=env)


def errors(logger):
    return [r for r in read_records(logger.log_path) if r["level"] == "ERROR"]


class TestStartupFailures:

    def test_missing_workspace(self, ep, ep_cfg, logger, exec_fn, workspace):
        workspace.rmdir()

        assert ep.run() == EXIT_STARTUP_FAILED

        (err,) = errors(logger)
        assert err["operation"] == "workspace_validation"
        assert exec_fn.calls == []
        assert ep.stage is Stage.VALIDATE_WORKSPACE

    def test_missing_required_executable(self, ep, logger, exec_fn, bin_dir):
        (bin_dir / "opencode").unlink()

        assert ep.run() == EXIT_STARTUP_FAILED

        (err,) = errors(logger)
        assert err["operation"] == "health_check"
        assert "opencode" in err["message"]
        assert exec_fn.calls == []

    def test_undecodable_workspace_path(self, ep_cfg, logger, exec_fn, tmp_path):
        cfg = ep_cfg.model_copy(update={"workspace_dir": tmp_path / os.fsdecode(b"ws\xff")})
        ep = Entrypoint(cfg, logger, exec_fn=exec_fn, env={})

        assert ep.run() == EXIT_STARTUP_FAILED

        (err,) = errors(logger)
        assert err["operation"] == "workspace_validation"
        assert "ws\\udcff" in err["message"]
        assert exec_fn.calls == []

    def test_failure_closes_session(self, ep, logger, workspace):
        workspace.rmdir()
        ep.run()
        assert read_records(logger.log_path)[-1]["operation"] == "session_end"


class TestHealthyStartup:

    def test_optional_dir_created_then_proceeds(self, ep, logger, exec_fn, workspace):
        assert not (workspace / ".opencode").exists()

        assert ep.run() == 0

        assert (workspace / ".opencode" / "agent").is_dir()
        assert errors(logger) == []
        ops = [r["operation"] for r in read_records(logger.log_path)]
        assert ops.index("workspace_validation") < ops.index("health_check") < ops.index("dispatch")

    def test_no_arguments_execs_default_process(self, ep, exec_fn, workspace):
        ep.run()

        assert exec_fn.calls == [("opencode", ["opencode"])]
        assert Path(os.getcwd()).resolve() == workspace.resolve()
        assert ep.stage is Stage.DISPATCH

    def test_print_logs(self, ep, exec_fn):
        ep.run(print_logs=True)
        assert exec_fn.calls == [("opencode", ["opencode", "--print-logs"])]

    def test_custom_command(self, ep, exec_fn):
        ep.run(["ls", "-la", "/workspace"])
        assert exec_fn.calls == [("ls", ["ls", "-la", "/workspace"])]

    def test_print_logs_ignored_for_custom_command(self, ep, exec_fn, logger):
        ep.run(["ls"], print_logs=True)
        assert exec_fn.calls == [("ls", ["ls"])]
        assert any(r["level"] == "WARN" and r["operation"] == "dispatch" for r in read_records(logger.log_path))

    def test_startup_info_reports_presence_not_values(self, ep, logger, env):
        env["OPENROUTER_API_KEY"] = "sk-secret-value"
        ep.run()

        info = [r["message"] for r in read_records(logger.log_path) if r["operation"] == "startup_info"]
        assert "  - API Key: Configured" in info
        assert "  - GitHub Token: Not configured" in info
        assert "  - opencode Version: 1.0.0" in info
        assert not any("sk-secret-value" in m for m in info)

    def test_startup_info_shows_first_runtime_only(self, ep, logger):
        ep.run()
        info = [r["message"] for r in read_records(logger.log_path) if r["operation"] == "startup_info"]
        assert "  - node Version: 1.0.0" in info
        assert not any(m.startswith("  - npm Version") for m in info)

    def test_startup_info_without_runtimes(self, ep_cfg, logger, exec_fn):
        ep = Entrypoint(ep_cfg.model_copy(update={"required_runtimes": []}), logger, exec_fn=exec_fn, env={})
        ep.run()
        info = [r["message"] for r in read_records(logger.log_path) if r["operation"] == "startup_info"]
        assert [m for m in info if " Version: " in m] == ["  - opencode Version: 1.0.0"]

    def test_token_reexported(self, ep, env):
        env["GITHUB_TOKEN"] = "ghp_abc"
        ep.run()
        assert env["GITHUB_PERSONAL_ACCESS_TOKEN"] == "ghp_abc"

    def test_exec_failures(self, ep_cfg, logger):
        missing = Entrypoint(ep_cfg, logger, exec_fn=RecordingExec(FileNotFoundError()), env={})
        assert missing.run(["nope"]) == EXIT_NOT_FOUND

        denied = Entrypoint(ep_cfg, logger, exec_fn=RecordingExec(PermissionError()), env={})
        assert denied.run(["nope"]) == EXIT_CANNOT_EXECUTE


class TestDebugMode:

    @pytest.mark.parametrize("kwargs", [{"debug": True}, {"command": ["bash"]}])
    def test_debug_shell_skips_stages(self, ep, exec_fn, workspace, logger, env, kwargs):
        workspace.rmdir()
        env["GITHUB_TOKEN"] = "ghp_abc"

        ep.run(**kwargs)

        assert exec_fn.calls == [("bash", ["bash"])]
        assert errors(logger) == []
        assert env["GITHUB_PERSONAL_ACCESS_TOKEN"] == "ghp_abc"
        assert ep.stage is Stage.INIT_LOGGING


class TestGracefulShutdown:

    def test_sigterm_before_dispatch(self, ep_cfg, logger):
        def interrupted(file, argv):
            signal.raise_signal(signal.SIGTERM)

        ep = Entrypoint(ep_cfg, logger, exec_fn=interrupted, env={})

        with pytest.raises(SystemExit) as exc:
            ep.run()

        assert exc.value.code == 0
        records = read_records(logger.log_path)
        shutdown = [r for r in records if r["operation"] == "shutdown"]
        assert shutdown and all(r["level"] == "INFO" for r in shutdown)
        assert records[-1]["operation"] == "session_end"

    def test_handlers_installed(self, ep):
        ep.run()
        assert signal.getsignal(signal.SIGTERM) == ep.handle_shutdown
        assert signal.getsignal(signal.SIGINT) == ep.handle_shutdown

    def test_sigint_handler(self, ep, logger):
        ep.logger.setup("entrypoint")
        with pytest.raises(SystemExit) as exc:
            ep.handle_shutdown(signal.SIGINT, None)
        assert exc.value.code == 0
        assert any("SIGINT" in r["message"] for r in read_records(logger.log_path))
