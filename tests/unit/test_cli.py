from __future__ import annotations

import io
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from rich.console import Console

from servetunnel import __version__
from servetunnel.cli import create_app, run_deployment
from servetunnel.supervisor import EXIT_FAILURE, EXIT_SUCCESS

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.fixture(autouse=True)
def _work_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console(output: io.StringIO) -> Console:
    return Console(file=output, width=200, color_system=None)


def _run_app(console: Console, *args: str) -> int:
    app = create_app(console=console, error_console=console)
    try:
        app(args)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1
    else:
        return 0


class TestRunDeployment:
    def test_missing_config_file(
        self, tmp_path: Path, console: Console, output: io.StringIO
    ) -> None:
        path = tmp_path / "config" / "config.toml"

        code = run_deployment(path, console=console, error_console=console)

        assert code == EXIT_FAILURE
        assert "Configuration error" in output.getvalue()
        assert str(path) in output.getvalue()

    def test_invalid_config_reports_every_problem(
        self, tmp_path: Path, console: Console, output: io.StringIO
    ) -> None:
        path = tmp_path / "config.toml"
        _ = path.write_text('[serving]\nport = 0\n[tunnel]\nname = ""\n')

        code = run_deployment(path, console=console, error_console=console)

        text = output.getvalue()
        assert code == EXIT_FAILURE
        assert "serving.model_id_gpu" in text
        assert "tunnel.authtoken" in text
        deployment_log = (tmp_path / "logs" / "deployment.log").read_text()
        assert "configuration_invalid" in deployment_log
        assert "serving.model_id_gpu" in deployment_log
        assert not (tmp_path / "logs" / "serving.log").exists()

    def test_unreadable_config_path_is_reported(
        self, tmp_path: Path, console: Console, output: io.StringIO
    ) -> None:
        path = tmp_path / "config.toml"
        path.mkdir()

        code = run_deployment(path, console=console, error_console=console)

        assert code == EXIT_FAILURE
        assert "Failed to read configuration file" in output.getvalue()
        deployment_log = (tmp_path / "logs" / "deployment.log").read_text()
        assert "Deployment started" in deployment_log
        assert "configuration_invalid" in deployment_log

    def test_runs_supervisor_with_loaded_config(
        self,
        tmp_path: Path,
        console: Console,
        mocker: MockerFixture,
    ) -> None:
        path = tmp_path / "config.toml"
        _ = path.write_text(
            "[serving]\n"
            'model_id_gpu = "org/primary-model"\n'
            'model_id_cpu = "org/test-model"\n'
            'host = "127.0.0.1"\n'
            "port = 8000\n"
            "[tunnel]\n"
            'authtoken = "secret-token"\n'
            'name = "test-tunnel"\n'
            "[paths]\n"
            f'log_dir = "{tmp_path / "logs"}"\n'
            "[logging]\n"
            "echo = false\n"
        )
        supervisor_cls = mocker.patch("servetunnel.cli._app.Supervisor")
        run = mocker.patch("servetunnel.cli._app.anyio.run", return_value=EXIT_SUCCESS)

        code = run_deployment(path, console=console, error_console=console)

        assert code == EXIT_SUCCESS
        config = supervisor_cls.call_args.args[0]
        assert config.tunnel.name == "test-tunnel"
        run.assert_called_once_with(supervisor_cls.return_value.run)
        deployment_log = (tmp_path / "logs" / "deployment.log").read_text()
        assert "Deployment started" in deployment_log
        assert "configuration_loaded" in deployment_log
        assert "deployment_finished" in deployment_log


class TestApp:
    def test_version(self, console: Console, output: io.StringIO) -> None:
        _ = _run_app(console, "--version")

        assert __version__ in output.getvalue()

    def test_default_command_reads_working_directory_config(
        self,
        tmp_path: Path,
        console: Console,
        output: io.StringIO,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(tmp_path)

        code = _run_app(console)

        assert code == EXIT_FAILURE
        assert "config.toml" in output.getvalue()
