import socket
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from servetunnel.config import Config, deep_merge, merge_sources

STUBS_DIR = Path(__file__).parent / "stubs"
STUB_PUBLIC_URL = "https://stub-tunnel.ngrok.example"

ConfigFactory = Callable[..., Config]


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if Path(item.path).is_relative_to(Path(__file__).parent):
            item.add_marker(pytest.mark.integration)


def free_port() -> int:
    """Return a TCP port that is currently unused on the loopback interface."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def stub_public_url() -> str:
    return STUB_PUBLIC_URL


@pytest.fixture
def stub_config(tmp_path: Path) -> ConfigFactory:
    """Return a factory for configurations wired to the stub processes.

    The serving stub becomes healthy after `healthy_after` seconds; the
    tunnel stub serves its admin API on a free port.
    """
    serving_port = free_port()
    admin_port = free_port()

    def _make(healthy_after: float = 0.5, **sections: dict[str, Any]) -> Config:
        data: dict[str, Any] = {
            "serving": {
                "model_id_gpu": "org/primary-model",
                "model_id_cpu": "org/test-model",
                "use_test_model": True,
                "host": "127.0.0.1",
                "port": serving_port,
                "command": [
                    sys.executable,
                    str(STUBS_DIR / "serving_stub.py"),
                    "--healthy-after",
                    str(healthy_after),
                ],
            },
            "readiness": {
                "initial_delay": 0,
                "max_wait": 30,
                "poll_interval": 0.2,
                "probe_timeout": 1,
            },
            "tunnel": {
                "authtoken": "stub-token",
                "name": "integration",
                "command": [
                    sys.executable,
                    str(STUBS_DIR / "tunnel_stub.py"),
                    "--admin-port",
                    str(admin_port),
                    "--public-url",
                    STUB_PUBLIC_URL,
                ],
                "admin_api_url": f"http://127.0.0.1:{admin_port}/api/tunnels",
                "discovery_delay": 1.5,
            },
            "paths": {
                "log_dir": str(tmp_path / "logs"),
                "venv_dir": str(tmp_path / "venv"),
                "model_cache_dir": str(tmp_path / "models"),
            },
            "shutdown": {"grace_period": 5},
            "logging": {"echo": False},
        }
        data = deep_merge(data, sections)
        return Config.model_validate(merge_sources(data, include_env=False))

    return _make
