"""Launch specification factories.

This module builds the ProcessSpec instances of the supervised roles, the
tunnel credential command and the example request shown to the operator.
"""

from __future__ import annotations

import shlex
from typing import TYPE_CHECKING

from servetunnel.utils import dump_json

from ._keepalive import build_payload
from ._models import ProcessSpec

if TYPE_CHECKING:
    from pathlib import Path

    from servetunnel.config import Config

SERVING_ROLE: str = "serving"
TUNNEL_ROLE: str = "tunnel"

SERVING_MODULE: str = "vllm.entrypoints.openai.api_server"


def get_venv_python(venv_dir: Path) -> Path:
    """Return the interpreter of a virtual environment."""
    return venv_dir / "bin" / "python"


def serving_launcher(config: Config) -> tuple[str, ...]:
    """Return the argv prefix that starts the serving API.

    Uses `serving.command` when set, otherwise the venv interpreter running
    the vLLM OpenAI-compatible server module.
    """
    if config.serving.command:
        return config.serving.command
    return (str(get_venv_python(config.paths.venv_dir)), "-m", SERVING_MODULE)


def build_serving_spec(config: Config) -> ProcessSpec:
    """Create the launch specification of the serving process.

    Args:
        config: Loaded configuration.

    Returns:
        ProcessSpec whose environment points the model cache at
        `paths.model_cache_dir`.
    """
    command = (
        *serving_launcher(config),
        "--model",
        config.active_model,
        "--host",
        config.serving.host,
        "--port",
        str(config.serving.port),
        "--trust-remote-code",
        *config.active_extra_args,
    )
    cache_dir = str(config.paths.model_cache_dir.absolute())

    return ProcessSpec(
        name=SERVING_ROLE,
        command=command,
        log_path=config.log_files.serving,
        env={"HF_HOME": cache_dir, "HUGGINGFACE_HUB_CACHE": cache_dir},
    )


def build_tunnel_spec(config: Config) -> ProcessSpec:
    """Create the launch specification of the tunnel process."""
    command = (
        *config.tunnel.command,
        "http",
        str(config.serving.port),
        "--log=stdout",
    )
    return ProcessSpec(
        name=TUNNEL_ROLE,
        command=command,
        log_path=config.log_files.tunnel,
    )


def build_authtoken_command(config: Config) -> list[str]:
    """Return the command registering the tunnel credentials.

    The result contains the authtoken; never log it.
    """
    return [*config.tunnel.command, "config", "add-authtoken", config.tunnel.authtoken]


def build_example_request(url: str, model: str) -> str:
    """Return a curl command calling the chat-completions API."""
    payload = build_payload(
        model,
        "Hello! Who are you?",
        temperature=0.7,
        max_tokens=50,
    )
    body = dump_json(payload).decode()
    return (
        f"curl -X POST {shlex.quote(url)} "
        f"-H 'Content-Type: application/json' "
        f"-d {shlex.quote(body)}"
    )
