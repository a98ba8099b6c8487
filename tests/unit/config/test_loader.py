from __future__ import annotations

# pyright: reportAny=false, reportUnknownArgumentType=false
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from servetunnel.config import (
    deep_merge,
    parse_env_value,
    parse_env_vars,
    read_toml_file,
)
from servetunnel.config._loader import set_nested_key
from servetunnel.exceptions import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigLoadError,
)

if TYPE_CHECKING:
    from pyfakefs.fake_filesystem import FakeFilesystem


class TestReadTomlFile:
    def test_parses_valid_toml(self, fs: FakeFilesystem) -> None:
        content = """
[serving]
host = "0.0.0.0"
port = 8000
"""
        path = Path("/work/config/config.toml")
        fs.create_file(path, contents=content)

        result = read_toml_file(path)

        assert result == {"serving": {"host": "0.0.0.0", "port": 8000}}

    def test_missing_file_raises_config_file_not_found(
        self, fs: FakeFilesystem
    ) -> None:
        path = Path("/work/config/config.toml")

        with pytest.raises(ConfigFileNotFoundError) as exc_info:
            read_toml_file(path)

        assert exc_info.value.path == path
        assert "config/config.example.toml" in str(exc_info.value)

    def test_missing_file_error_is_config_and_file_error(
        self, fs: FakeFilesystem
    ) -> None:
        with pytest.raises(ConfigError):
            read_toml_file(Path("/nowhere.toml"))
        with pytest.raises(FileNotFoundError):
            read_toml_file(Path("/nowhere.toml"))

    def test_invalid_toml_reports_line_and_column(self, fs: FakeFilesystem) -> None:
        content = """[serving]
host = "0.0.0.0"

[tunnel
"""
        path = Path("/work/config.toml")
        fs.create_file(path, contents=content)

        with pytest.raises(ConfigLoadError) as exc_info:
            read_toml_file(path)

        error = exc_info.value
        assert error.path == path
        assert error.line == 4
        assert error.column is not None
        assert exc_info.value.__cause__ is not None


class TestDeepMerge:
    def test_nested_tables_are_merged(self) -> None:
        base = {"serving": {"host": "0.0.0.0", "port": 8000}}
        override = {"serving": {"port": 9000}}

        result = deep_merge(base, override)

        assert result == {"serving": {"host": "0.0.0.0", "port": 9000}}

    def test_arrays_are_replaced(self) -> None:
        base = {"keepalive": {"prompts": ["a", "b"]}}
        override = {"keepalive": {"prompts": ["c"]}}

        result = deep_merge(base, override)

        assert result["keepalive"]["prompts"] == ["c"]

    def test_inputs_are_not_modified(self) -> None:
        base = {"tunnel": {"command": ["ngrok"]}}
        override = {"tunnel": {"name": "x"}}

        result = deep_merge(base, override)
        result["tunnel"]["command"].append("http")

        assert base == {"tunnel": {"command": ["ngrok"]}}
        assert override == {"tunnel": {"name": "x"}}


class TestParseEnvValue:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("true", True),
            ("FALSE", False),
            ("8000", 8000),
            ("2.5", 2.5),
            ('["ping", "pong"]', ["ping", "pong"]),
            ('{"a": 1}', {"a": 1}),
            ("Qwen/Qwen2.5-0.5B-Instruct", "Qwen/Qwen2.5-0.5B-Instruct"),
            ("[not json", "[not json"),
        ],
    )
    def test_infers_types(self, raw: str, expected: object) -> None:
        assert parse_env_value(raw) == expected


class TestSetNestedKey:
    def test_creates_intermediate_tables(self) -> None:
        d: dict[str, object] = {}

        set_nested_key(d, "tunnel.authtoken", "secret")

        assert d == {"tunnel": {"authtoken": "secret"}}

    def test_replaces_scalar_parent(self) -> None:
        d: dict[str, object] = {"tunnel": "oops"}

        set_nested_key(d, "tunnel.name", "edge")

        assert d == {"tunnel": {"name": "edge"}}


class TestParseEnvVars:
    def test_maps_double_underscore_to_sections(self) -> None:
        environ = {
            "SERVETUNNEL_TUNNEL__AUTHTOKEN": "abc",
            "SERVETUNNEL_SERVING__PORT": "9000",
            "SERVETUNNEL_KEEPALIVE__ENABLED": "true",
        }

        result = parse_env_vars(environ=environ)

        assert result == {
            "tunnel": {"authtoken": "abc"},
            "serving": {"port": 9000},
            "keepalive": {"enabled": True},
        }

    def test_ignores_unrelated_and_flag_variables(self) -> None:
        environ = {
            "PATH": "/usr/bin",
            "SERVETUNNEL_DEBUG": "1",
            "OTHER_TUNNEL__NAME": "x",
        }

        assert parse_env_vars(environ=environ) == {}
