# pyright: reportAny=false, reportExplicitAny=false
"""Exhaustive configuration validation.

Validation never stops at the first problem: every pydantic field error and
every cross-field rule violation is collected into a list of
ValidationIssue records, and a single ConfigValidationError enumerates
them all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError

from servetunnel.exceptions import ConfigValidationError

from ._models import Config

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from pydantic_core import ErrorDetails

_BOOL_ADAPTER: TypeAdapter[bool] = TypeAdapter(bool)


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """Represents a configuration validation issue.

    Attributes:
        key: Dotted path to the configuration key (e.g., "tunnel.authtoken").
        message: Human-readable description of the issue.
        expected: Description of expected value or type, if available.
        actual: The actual value that caused the issue, None when missing.
    """

    key: str
    message: str
    expected: str | None
    actual: Any

    def __str__(self) -> str:
        return f"{self.key}: {self.message}"


def _pydantic_error_to_issue(error: ErrorDetails) -> ValidationIssue:
    """Convert a pydantic error dict to a ValidationIssue.

    Args:
        error: A single error dict from ValidationError.errors().

    Returns:
        A ValidationIssue representing the validation error.
    """
    key = ".".join(str(part) for part in error.get("loc", ()))
    message = str(error.get("msg", "Validation error"))

    ctx = error.get("ctx")
    expected: str | None = None
    if ctx is not None:
        if "expected" in ctx:
            expected = str(ctx["expected"])
        elif "min_length" in ctx:
            expected = f"at least {ctx['min_length']} character(s) or item(s)"
        elif "ge" in ctx:
            expected = f">= {ctx['ge']}"
        elif "gt" in ctx:
            expected = f"> {ctx['gt']}"

    actual = None if error.get("type") == "missing" else error.get("input")
    return ValidationIssue(key=key, message=message, expected=expected, actual=actual)


def _keepalive_issues(data: Mapping[str, Any]) -> list[ValidationIssue]:
    """Check rules that span several keep-alive keys.

    The enabled flag is coerced the way the model coerces it, so "true" and 1
    from files or environment variables count as enabled.
    """
    keepalive = data.get("keepalive")
    if not isinstance(keepalive, dict):
        return []
    try:
        enabled = _BOOL_ADAPTER.validate_python(keepalive.get("enabled", False))
    except ValidationError:
        return []
    if not enabled:
        return []

    prompts = keepalive.get("prompts")
    if isinstance(prompts, (list, tuple)) and len(prompts) > 0:
        return []

    return [
        ValidationIssue(
            key="keepalive.prompts",
            message="Keep-alive is enabled but no prompts are configured",
            expected="at least one prompt",
            actual=prompts,
        )
    ]


def validate_config(data: Mapping[str, Any]) -> list[ValidationIssue]:
    """Validate a merged configuration dictionary.

    Args:
        data: The merged configuration dictionary to validate.

    Returns:
        List of ValidationIssue objects. Empty list indicates valid config.
    """
    issues: list[ValidationIssue] = []
    try:
        _ = Config.model_validate(data)
    except ValidationError as e:
        issues.extend(_pydantic_error_to_issue(err) for err in e.errors())

    issues.extend(_keepalive_issues(data))
    return issues


def format_issues(issues: Sequence[ValidationIssue]) -> str:
    """Render issues as an indented bullet list, one per line."""
    return "\n".join(f"  - {issue}" for issue in issues)


def raise_if_validation_errors(
    issues: Sequence[ValidationIssue],
    source: str | None = None,
) -> None:
    """Raise a single ConfigValidationError listing every issue.

    Args:
        issues: List of ValidationIssue objects to check.
        source: Where the configuration came from, used in the message.

    Raises:
        ConfigValidationError: If any issues exist.
    """
    if not issues:
        return

    where = f" in {source}" if source else ""
    noun = "problem" if len(issues) == 1 else "problems"
    msg = (
        f"Invalid configuration{where} ({len(issues)} {noun}):\n"
        f"{format_issues(issues)}"
    )
    raise ConfigValidationError(msg, issues=issues, source=source)
