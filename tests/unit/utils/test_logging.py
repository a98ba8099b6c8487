"""Unit tests for logging utilities."""

from __future__ import annotations

import io
import json
import logging
import re
import weakref
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
import structlog

from servetunnel.utils import (
    create_deployment_logger,
    create_keepalive_logger,
    write_log_header,
)
from servetunnel.utils._logging import (
    _create_logger,
    _log_level_from_string,
    _TeeWriter,
)

if TYPE_CHECKING:
    from pyfakefs.fake_filesystem import FakeFilesystem


class TestCreateLogger:
    def test_creates_log_directory_if_missing(self, fs: FakeFilesystem) -> None:
        log_path = Path("/logs/test.log")
        assert not log_path.parent.exists()

        _ = _create_logger(log_path)

        assert log_path.parent.exists()

    def test_json_format(self, fs: FakeFilesystem) -> None:
        logger = _create_logger("/logs/test.log", log_format="json")

        logger.info("test_event", key="value")

        record = json.loads(Path("/logs/test.log").read_text().strip())
        assert record["event"] == "test_event"
        assert record["key"] == "value"
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_text_format(self, fs: FakeFilesystem) -> None:
        logger = _create_logger("/logs/test.log", log_format="text")

        logger.info("test_event", key="value")

        log_content = Path("/logs/test.log").read_text()
        assert "test_event" in log_content
        assert "key=value" in log_content

    def test_appends_to_existing_file(self, fs: FakeFilesystem) -> None:
        fs.create_file("/logs/test.log", contents="earlier run\n")
        logger = _create_logger("/logs/test.log")

        logger.info("later_event")

        content = Path("/logs/test.log").read_text()
        assert content.startswith("earlier run\n")
        assert "later_event" in content

    def test_filters_below_level(self, fs: FakeFilesystem) -> None:
        logger = _create_logger("/logs/test.log", log_level=logging.WARNING)

        logger.info("hidden_event")
        logger.warning("shown_event")

        content = Path("/logs/test.log").read_text()
        assert "hidden_event" not in content
        assert "shown_event" in content

    def test_echo_receives_same_lines(self, fs: FakeFilesystem) -> None:
        echo = io.StringIO()
        logger = _create_logger("/logs/test.log", echo=echo)

        logger.info("mirrored_event")

        assert echo.getvalue() == Path("/logs/test.log").read_text()

    def test_echo_writer_is_weak_referenceable(self) -> None:
        first, second = io.StringIO(), io.StringIO()
        writer = _TeeWriter(first, second)

        assert weakref.ref(writer)() is writer

        structlog.WriteLogger(writer).msg("shared line")  # pyright: ignore[reportArgumentType]

        assert first.getvalue() == second.getvalue() == "shared line\n"


class TestLogLevelFromString:
    @pytest.mark.parametrize(
        ("level", "expected"),
        [
            ("debug", logging.DEBUG),
            ("INFO", logging.INFO),
            ("warning", logging.WARNING),
            ("error", logging.ERROR),
            ("bogus", logging.INFO),
        ],
    )
    def test_maps_names(
        self, level: str, expected: int, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("SERVETUNNEL_DEBUG", raising=False)

        assert _log_level_from_string(level) == expected

    def test_debug_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SERVETUNNEL_DEBUG", "1")

        assert _log_level_from_string("error") == logging.DEBUG
        assert _log_level_from_string("error", respect_env=False) == logging.ERROR


class TestComponentLoggers:
    def test_deployment_logger_binds_component(
        self, fs: FakeFilesystem, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("SERVETUNNEL_DEBUG", raising=False)
        logger = create_deployment_logger(
            "/logs/deployment.log", log_format="json", echo=False
        )

        logger.info("state_changed")

        record = json.loads(Path("/logs/deployment.log").read_text())
        assert record["component"] == "supervisor"

    def test_deployment_logger_echoes_to_stderr(
        self, fs: FakeFilesystem, capsys: pytest.CaptureFixture[str]
    ) -> None:
        logger = create_deployment_logger("/logs/deployment.log", echo=True)

        logger.info("visible_to_operator")

        assert "visible_to_operator" in capsys.readouterr().err

    def test_keepalive_logger_writes_only_its_file(
        self, fs: FakeFilesystem, capsys: pytest.CaptureFixture[str]
    ) -> None:
        logger = create_keepalive_logger("/logs/keep_alive.log", log_format="json")

        logger.info("keepalive_sending", index=0)

        record = json.loads(Path("/logs/keep_alive.log").read_text())
        assert record["component"] == "keepalive"
        assert capsys.readouterr().err == ""


class TestWriteLogHeader:
    def test_appends_header_line(self, tmp_path: Path) -> None:
        log_file = tmp_path / "deployment.log"
        _ = log_file.write_text("old\n")

        write_log_header(log_file, "Deployment")

        lines = log_file.read_text().splitlines()
        assert lines[0] == "old"
        assert re.fullmatch(
            r"--- Deployment started at \d{4}-\d\d-\d\d \d\d:\d\d:\d\d --- PID: \d+ ---",
            lines[1],
        )
