"""Public tunnel URL discovery.

The tunnel binary assigns its public URL at runtime. It is resolved in two
steps: the tunnel's local admin API is queried first, and only when that
fails or lists no matching tunnel is the tunnel log scanned for the first
``url=https://...`` record.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar
from urllib.parse import urlsplit

import anyio
import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from servetunnel.exceptions import DiscoveryError

from ._http import describe_error, http_client
from ._models import DiscoverySource, TunnelEndpoint

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

_LOCAL_ALIASES: frozenset[str] = frozenset(
    {"localhost", "127.0.0.1", "0.0.0.0", "::1", ""}  # noqa: S104
)

_LOG_URL_PATTERN = re.compile(r"url=(https://[^\s\"]+)")


class AdminTunnelConfig(BaseModel):
    """Forwarding configuration of one tunnel."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    addr: str = ""


class AdminTunnel(BaseModel):
    """One entry of the admin API tunnel listing."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    proto: str = ""
    public_url: str = ""
    config: AdminTunnelConfig = AdminTunnelConfig()


class AdminTunnelList(BaseModel):
    """Admin API response body."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    tunnels: list[AdminTunnel] = Field(default_factory=list)


def _split_addr(addr: str) -> tuple[str, int | None]:
    """Split a forwarding address into a normalized host and a port.

    Accepts ``8000``, ``host:8000`` and ``http://host:8000`` forms.
    """
    addr = addr.strip()
    if addr.isdigit():
        return "", int(addr)
    if "://" not in addr:
        addr = f"//{addr}"
    try:
        parts = urlsplit(addr)
        port = parts.port
    except ValueError:
        return addr, None
    return (parts.hostname or "").lower(), port


def _normalize_host(host: str) -> str:
    return "localhost" if host in _LOCAL_ALIASES else host


def addr_matches(addr: str, host: str, port: int) -> bool:
    """Check whether a tunnel forwards to the given local host and port.

    Local host aliases (localhost, 127.0.0.1, 0.0.0.0, ::1) are equivalent
    and the scheme is optional.

    Args:
        addr: Forwarding address reported by the admin API.
        host: Expected host.
        port: Expected port.

    Returns:
        True if the address points at host:port.
    """
    addr_host, addr_port = _split_addr(addr)
    if addr_port != port:
        return False
    return _normalize_host(addr_host) == _normalize_host(host.strip("[]").lower())


def select_tunnel(listing: AdminTunnelList, host: str, port: int) -> str | None:
    """Return the public URL of the first https tunnel forwarding to host:port."""
    for tunnel in listing.tunnels:
        if (
            tunnel.proto == "https"
            and tunnel.public_url
            and addr_matches(tunnel.config.addr, host, port)
        ):
            return tunnel.public_url
    return None


async def query_admin_api(
    client: httpx.AsyncClient,
    admin_api_url: str,
    host: str,
    port: int,
    logger: FilteringBoundLogger,
) -> str | None:
    """Look up the public URL through the tunnel's admin API.

    Returns:
        The public URL, or None when the API is unreachable, answers with
        something unparseable, or lists no matching https tunnel.
    """
    try:
        response = await client.get(admin_api_url)
        _ = response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(
            "admin_api_unavailable", url=admin_api_url, error=describe_error(e)
        )
        return None

    try:
        listing = AdminTunnelList.model_validate_json(response.content)
    except ValidationError as e:
        logger.warning(
            "admin_api_invalid_response",
            url=admin_api_url,
            errors=e.error_count(),
        )
        return None

    public_url = select_tunnel(listing, host, port)
    if public_url is None:
        logger.warning(
            "admin_api_no_match",
            url=admin_api_url,
            tunnels=len(listing.tunnels),
            match_addr=f"{host}:{port}",
        )
    return public_url


def scan_log_for_url(path: Path) -> str | None:
    """Return the first public URL recorded in a tunnel log, if any."""
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None

    match = _LOG_URL_PATTERN.search(content)
    return match.group(1) if match else None


async def discover(  # noqa: PLR0913
    admin_api_url: str,
    fallback_log_path: Path,
    match_addr: tuple[str, int],
    *,
    client: httpx.AsyncClient | None = None,
    initial_delay: float = 0.0,
    timeout: float = 5.0,
    logger: FilteringBoundLogger | None = None,
) -> TunnelEndpoint:
    """Resolve the public URL of the tunnel.

    Args:
        admin_api_url: URL of the tunnel's admin API listing.
        fallback_log_path: Tunnel log scanned when the API yields nothing.
        match_addr: Local (host, port) the tunnel must forward to.
        client: HTTP client to use; a temporary one is created if None.
        initial_delay: Seconds to wait before the first attempt.
        timeout: Timeout of the admin API request.
        logger: Logger for discovery records.

    Returns:
        The discovered endpoint with its source.

    Raises:
        DiscoveryError: If neither the admin API nor the log has the URL.
    """
    log = logger if logger is not None else structlog.get_logger()
    host, port = match_addr

    if initial_delay > 0:
        log.info("discovery_waiting", seconds=initial_delay)
        await anyio.sleep(initial_delay)

    async with http_client(client, timeout) as http:
        public_url = await query_admin_api(http, admin_api_url, host, port, log)
    if public_url is not None:
        log.info("tunnel_url_discovered", url=public_url, source="api")
        return TunnelEndpoint(public_url=public_url, source=DiscoverySource.API)

    public_url = scan_log_for_url(fallback_log_path)
    if public_url is not None:
        log.info("tunnel_url_discovered", url=public_url, source="log")
        return TunnelEndpoint(public_url=public_url, source=DiscoverySource.LOG)

    msg = (
        f"Could not determine the public tunnel URL from {admin_api_url} "
        f"or from {fallback_log_path}"
    )
    raise DiscoveryError(msg, admin_api_url=admin_api_url, log_path=fallback_log_path)
