from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from ._defaults import DEFAULT_CONFIG, DEFAULT_CONFIG_PATH, ENV_PREFIX
from ._loader import deep_merge, parse_env_vars, read_toml_file
from ._models import Config
from ._validation import raise_if_validation_errors, validate_config

if TYPE_CHECKING:
    from collections.abc import Mapping


def merge_sources(
    file_values: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
    environ: Mapping[str, str] | None = None,
    *,
    include_env: bool = True,
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Layer defaults, file values and environment overrides.

    Args:
        file_values: Values parsed from the configuration file.
        environ: Environment mapping, os.environ by default.
        include_env: Whether to apply SERVETUNNEL_* overrides.

    Returns:
        The merged configuration dictionary, not yet validated.
    """
    merged = deep_merge(DEFAULT_CONFIG, file_values)
    if include_env:
        merged = deep_merge(merged, parse_env_vars(ENV_PREFIX, environ))
    return merged


def load_config(
    path: Path | str = DEFAULT_CONFIG_PATH,
    *,
    environ: Mapping[str, str] | None = None,
    include_env: bool = True,
) -> Config:
    """Load, layer and validate the configuration file.

    The file must exist. Validation is exhaustive: when anything is wrong a
    single ConfigValidationError lists every missing or invalid key.

    Args:
        path: Path to the TOML configuration file.
        environ: Environment mapping, os.environ by default.
        include_env: Whether to apply SERVETUNNEL_* overrides.

    Returns:
        The validated, immutable configuration.

    Raises:
        ConfigFileNotFoundError: If the file does not exist.
        ConfigLoadError: If the file is not valid TOML.
        ConfigValidationError: If any key is missing or invalid.
    """
    config_path = Path(path)
    merged = merge_sources(
        read_toml_file(config_path), environ, include_env=include_env
    )
    raise_if_validation_errors(validate_config(merged), source=str(config_path))
    return Config.model_validate(merged)
