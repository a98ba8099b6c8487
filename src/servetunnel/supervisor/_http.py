"""Shared httpx client handling for probes and requests."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@asynccontextmanager
async def http_client(
    client: httpx.AsyncClient | None,
    timeout: float,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the caller's client, or a temporary one closed on exit.

    Args:
        client: An existing client owned by the caller, or None.
        timeout: Timeout in seconds for a temporary client.
    """
    if client is not None:
        yield client
        return

    async with httpx.AsyncClient(timeout=timeout) as owned:
        yield owned


def describe_error(error: httpx.HTTPError) -> str:
    """Render a transport error for logs."""
    detail = str(error) or repr(error)
    return f"{type(error).__name__}: {detail}"
