"""Readiness probing for the serving process.

The serving process needs tens of seconds to load a model before any probe
can succeed, so probing is split into two phases: an initial sleep, then
fixed-interval HTTP GET probes until the total budget is spent. The total
wait is capped and deterministic; there is no unbounded retry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import anyio
import httpx
import structlog

from ._http import describe_error, http_client
from ._models import ReadinessResult

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger


async def probe_once(client: httpx.AsyncClient, url: str) -> str | None:
    """Issue a single health probe.

    Args:
        client: HTTP client used for the probe.
        url: Health endpoint URL.

    Returns:
        None when the endpoint answered with a 2xx status, otherwise a
        description of the failure.
    """
    try:
        response = await client.get(url)
    except httpx.HTTPError as e:
        return describe_error(e)

    if response.is_success:
        return None
    return f"HTTP {response.status_code}"


async def wait_ready(  # noqa: PLR0913
    url: str,
    *,
    max_wait: float,
    poll_interval: float,
    initial_delay: float = 0.0,
    probe_timeout: float = 5.0,
    client: httpx.AsyncClient | None = None,
    logger: FilteringBoundLogger | None = None,
) -> ReadinessResult:
    """Wait until an HTTP health endpoint reports success.

    The first probe happens after `initial_delay` (capped by the budget);
    further probes follow every `poll_interval` seconds, and a last probe
    is always issued when the budget runs out. A not-ready result is
    therefore returned after the full `max_wait`, never earlier.

    Args:
        url: Health endpoint URL.
        max_wait: Total wait budget in seconds, including the initial delay.
        poll_interval: Seconds between probes.
        initial_delay: Seconds to sleep before the first probe.
        probe_timeout: Timeout of each probe.
        client: HTTP client to use; a temporary one is created if None.
        logger: Logger for probe records.

    Returns:
        The readiness outcome with attempt count and elapsed time.
    """
    log = logger if logger is not None else structlog.get_logger()
    started = anyio.current_time()
    deadline = started + max_wait
    attempts = 0
    last_error: str | None = None

    log.info(
        "readiness_wait_started",
        url=url,
        initial_delay=initial_delay,
        max_wait=max_wait,
    )

    async with http_client(client, probe_timeout) as http:
        await anyio.sleep(min(initial_delay, max_wait))

        while True:
            attempts += 1
            last_error = await probe_once(http, url)
            now = anyio.current_time()

            if last_error is None:
                log.info("readiness_confirmed", url=url, attempts=attempts)
                return ReadinessResult(
                    ready=True, attempts=attempts, elapsed=now - started
                )

            log.debug("readiness_probe_failed", url=url, error=last_error)
            if now >= deadline:
                break
            await anyio.sleep(min(poll_interval, deadline - now))

    elapsed = anyio.current_time() - started
    log.warning(
        "readiness_budget_exhausted",
        url=url,
        attempts=attempts,
        elapsed=round(elapsed, 2),
        last_error=last_error,
    )
    return ReadinessResult(
        ready=False, attempts=attempts, elapsed=elapsed, last_error=last_error
    )
