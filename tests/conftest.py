"""Shared test fixtures for servetunnel tests."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from servetunnel.config import Config, deep_merge, merge_sources

ConfigFactory = Callable[..., Config]


def minimal_config_data(log_dir: Path) -> dict[str, Any]:
    """Return the smallest file contents that pass validation."""
    return {
        "serving": {
            "model_id_gpu": "org/primary-model",
            "model_id_cpu": "org/test-model",
            "host": "127.0.0.1",
            "port": 8000,
        },
        "tunnel": {
            "authtoken": "secret-token",
            "name": "test-tunnel",
        },
        "paths": {
            "log_dir": str(log_dir),
            "venv_dir": str(log_dir.parent / "venv"),
            "model_cache_dir": str(log_dir.parent / "models"),
        },
    }


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def config_data(tmp_path: Path) -> dict[str, Any]:
    """Return minimal valid configuration values rooted in tmp_path."""
    return minimal_config_data(tmp_path / "logs")


@pytest.fixture
def make_config(tmp_path: Path) -> ConfigFactory:
    """Return a factory building a validated Config from overrides."""

    def _make(**sections: dict[str, Any]) -> Config:
        data = deep_merge(minimal_config_data(tmp_path / "logs"), sections)
        return Config.model_validate(merge_sources(data, include_env=False))

    return _make
