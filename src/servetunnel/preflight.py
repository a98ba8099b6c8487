"""Pre-flight host checks.

Nothing here is fatal: missing tools are reported as warnings and the
launch goes ahead, failing later with a precise error if the tool really
is needed.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from servetunnel.supervisor import get_venv_python, serving_launcher

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from servetunnel.config import Config


@dataclass(frozen=True, slots=True)
class PreflightWarning:
    """A host condition that may prevent the deployment from working.

    Attributes:
        check: Short identifier of the check.
        message: Operator-facing description.
    """

    check: str
    message: str


def _executable_exists(program: str) -> bool:
    if "/" in program:
        return Path(program).exists()
    return shutil.which(program) is not None


def run_preflight(config: Config) -> list[PreflightWarning]:
    """Inspect the host for the tools the deployment will use.

    Args:
        config: Loaded configuration.

    Returns:
        Warnings for every missing tool, in check order.
    """
    warnings: list[PreflightWarning] = []

    if not config.serving.use_test_model and shutil.which("nvidia-smi") is None:
        warnings.append(
            PreflightWarning(
                "gpu",
                "nvidia-smi not found; GPU mode selected but no NVIDIA driver "
                "was detected. Set serving.use_test_model to run the CPU model.",
            )
        )

    if not config.serving.command:
        venv_python = get_venv_python(config.paths.venv_dir)
        if not venv_python.exists():
            warnings.append(
                PreflightWarning(
                    "venv",
                    f"Virtual environment interpreter {venv_python} not found; "
                    "create it and install vllm before starting.",
                )
            )
    else:
        launcher = serving_launcher(config)[0]
        if not _executable_exists(launcher):
            warnings.append(
                PreflightWarning(
                    "serving", f"Serving executable '{launcher}' not found."
                )
            )

    tunnel_binary = config.tunnel.command[0]
    if not _executable_exists(tunnel_binary):
        warnings.append(
            PreflightWarning(
                "tunnel", f"Tunnel executable '{tunnel_binary}' not found on PATH."
            )
        )

    return warnings


def log_preflight(
    warnings: list[PreflightWarning], logger: FilteringBoundLogger
) -> None:
    """Write pre-flight warnings to the deployment log."""
    if not warnings:
        logger.info("preflight_passed")
        return
    for warning in warnings:
        logger.warning(
            "preflight_warning", check=warning.check, message=warning.message
        )
