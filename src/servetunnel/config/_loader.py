# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""TOML configuration file reading and layering."""

from __future__ import annotations

import json
import os
import tomllib
from typing import TYPE_CHECKING, Any

from servetunnel.exceptions import ConfigFileNotFoundError, ConfigLoadError

from ._defaults import ENV_PREFIX, EXAMPLE_CONFIG_PATH

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path


def read_toml_file(path: Path) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Read and parse a TOML configuration file.

    Args:
        path: Path to the TOML file.

    Returns:
        Parsed TOML content as dictionary.

    Raises:
        ConfigFileNotFoundError: If the file does not exist.
        ConfigLoadError: If the file cannot be read or parsed.
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        msg = (
            f"Configuration file {path} not found. "
            f"Copy {EXAMPLE_CONFIG_PATH} to {path} and customize it."
        )
        raise ConfigFileNotFoundError(msg, path=path) from e
    except tomllib.TOMLDecodeError as e:
        msg = f"Failed to parse TOML file {path}: {e}"
        raise ConfigLoadError(msg, path=path, line=e.lineno, column=e.colno) from e
    except OSError as e:
        msg = f"Failed to read configuration file {path}: {e}"
        raise ConfigLoadError(msg, path=path) from e


def copy_value(value: Any) -> Any:  # pyright: ignore[reportExplicitAny]
    """Return a deep copy of a configuration value (dicts and lists only)."""
    if isinstance(value, dict):
        return {k: copy_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [copy_value(item) for item in value]
    return value


def deep_merge(
    base: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
    override: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Deep merge two configuration dictionaries.

    Merges `override` into `base`, returning a new dictionary. Neither input
    is modified.

    Merge rules:
        - Tables are recursively merged
        - Arrays are replaced entirely (the prompt list is never concatenated)
        - Scalars are replaced with the override value
        - Missing keys in override preserve base values

    Args:
        base: Base configuration (lower precedence).
        override: Override configuration (higher precedence).

    Returns:
        Merged configuration dictionary.
    """
    result: dict[str, Any] = {k: copy_value(v) for k, v in base.items()}  # pyright: ignore[reportExplicitAny]

    for key, override_val in override.items():
        base_val = result.get(key)
        if isinstance(base_val, dict) and isinstance(override_val, dict):
            result[key] = deep_merge(base_val, override_val)
        else:
            result[key] = copy_value(override_val)

    return result


def parse_env_value(value: str) -> Any:  # pyright: ignore[reportExplicitAny]
    """Parse an environment variable value with type inference.

    Order of type inference:
        1. Boolean: true/false (case-insensitive)
        2. Integer: parseable as int
        3. Float: contains a decimal point and parses as float
        4. JSON array or object: starts with [ or {
        5. String: anything else

    Examples:
        >>> parse_env_value("true")
        True
        >>> parse_env_value("8000")
        8000
        >>> parse_env_value('["ping", "pong"]')
        ['ping', 'pong']
    """
    lower_value = value.lower()
    if lower_value in ("true", "false"):
        return lower_value == "true"

    try:
        return int(value)
    except ValueError:
        pass

    if "." in value:
        try:
            return float(value)
        except ValueError:
            pass

    if (value.startswith("[") and value.endswith("]")) or (
        value.startswith("{") and value.endswith("}")
    ):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            pass

    return value


def set_nested_key(
    d: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    key_path: str,
    value: Any,  # pyright: ignore[reportExplicitAny]
) -> None:
    """Set a value at a dotted key path, creating intermediate tables.

    Example:
        >>> d = {}
        >>> set_nested_key(d, "tunnel.authtoken", "secret")
        >>> d
        {'tunnel': {'authtoken': 'secret'}}
    """
    *parents, leaf = key_path.split(".")
    current = d
    for part in parents:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[leaf] = value


def parse_env_vars(
    prefix: str = ENV_PREFIX,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Collect configuration overrides from environment variables.

    Environment variable naming:
        - Add prefix (SERVETUNNEL_)
        - Convert to uppercase
        - Replace dots with double underscores
        - Example: tunnel.authtoken -> SERVETUNNEL_TUNNEL__AUTHTOKEN

    Variables without a section separator (such as SERVETUNNEL_DEBUG) are
    not configuration keys and are skipped.

    Args:
        prefix: Environment variable prefix.
        environ: Environment mapping to read, os.environ by default.

    Returns:
        Nested dictionary of override values.
    """
    source = os.environ if environ is None else environ
    result: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]

    for key, value in source.items():
        if not key.startswith(prefix):
            continue
        config_key = key[len(prefix) :]
        if "__" not in config_key:
            continue
        config_path = config_key.replace("__", ".").lower()
        set_nested_key(result, config_path, parse_env_value(value))

    return result
