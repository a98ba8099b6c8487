"""Keep-alive prompting of the served model.

The scheduler stays idle for a configured threshold, then sends one
chat-completion request per interval, cycling through the configured
prompts forever. Request failures are logged and never stop the loop.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, final

import anyio
import httpx
import pendulum
import structlog

from servetunnel.utils import dump_json

from ._http import describe_error, http_client
from ._models import KeepAliveResult, KeepAliveState, TunnelEndpoint

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from servetunnel.config import Config

SYSTEM_PROMPT: str = "You are a helpful assistant."


def build_payload(
    model: str,
    prompt: str,
    *,
    temperature: float,
    max_tokens: int,
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Build a chat-completions request body for one prompt."""
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        "temperature": temperature,
        "max_tokens": max_tokens,
    }


def resolve_keepalive_target(config: Config, endpoint: TunnelEndpoint | None) -> str:
    """Pick the URL keep-alive prompts are posted to.

    An explicit `keepalive.target_endpoint` wins; otherwise the discovered
    public URL is used, and without one the local serving API.
    """
    if config.keepalive.target_endpoint:
        return config.keepalive.target_endpoint
    if endpoint is not None:
        return endpoint.url_for(config.serving.chat_path)
    return config.local_chat_url


@final
class KeepAliveScheduler:
    """Periodic prompter keeping the served model warm.

    Attributes:
        prompts: Prompts sent in order.
        model: Model identifier placed in each request.
        target: Chat-completions URL.
        state: Cursor owned by this scheduler.
    """

    __slots__ = (
        "_client",
        "_initial_delay",
        "_interval",
        "_logger",
        "_max_tokens",
        "_request_timeout",
        "_temperature",
        "model",
        "prompts",
        "state",
        "target",
    )

    def __init__(  # noqa: PLR0913
        self,
        prompts: Sequence[str],
        model: str,
        target: str,
        *,
        initial_delay: float,
        interval: float,
        temperature: float = 0.7,
        max_tokens: int = 50,
        request_timeout: float = 60.0,
        logger: FilteringBoundLogger | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            prompts: Prompts to cycle through; must not be empty.
            model: Model identifier placed in each request.
            target: Chat-completions URL.
            initial_delay: Seconds to stay idle before the first prompt.
            interval: Seconds between prompts.
            temperature: Sampling temperature.
            max_tokens: Completion length.
            request_timeout: Seconds before a request is abandoned.
            logger: Logger writing to the keep-alive log.
            client: HTTP client to use; a temporary one is created if None.

        Raises:
            ValueError: If no prompts are given.
        """
        if not prompts:
            msg = "Keep-alive needs at least one prompt"
            raise ValueError(msg)

        self.prompts = tuple(prompts)
        self.model = model
        self.target = target
        self.state = KeepAliveState()
        self._initial_delay = initial_delay
        self._interval = interval
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._request_timeout = request_timeout
        self._logger: FilteringBoundLogger = (
            logger if logger is not None else structlog.get_logger()
        )
        self._client = client

    @classmethod
    def from_config(
        cls,
        config: Config,
        target: str,
        logger: FilteringBoundLogger | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> KeepAliveScheduler:
        """Create a scheduler from the keep-alive configuration section."""
        section = config.keepalive
        return cls(
            section.prompts,
            config.keepalive_model,
            target,
            initial_delay=section.initial_delay,
            interval=section.interval,
            temperature=section.temperature,
            max_tokens=section.max_tokens,
            request_timeout=section.request_timeout,
            logger=logger,
            client=client,
        )

    def _schedule_next(self, seconds: float) -> None:
        self.state.next_fire_at = (
            pendulum.now("UTC").add(seconds=seconds).to_iso8601_string()
        )

    async def fire_once(self) -> KeepAliveResult:
        """Send the current prompt and advance the cursor.

        Returns:
            The outcome of the request. Failures are reported, not raised.
        """
        index = self.state.index
        prompt = self.prompts[index]
        payload = build_payload(
            self.model,
            prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

        self._logger.info(
            "keepalive_sending",
            index=index,
            prompt=prompt,
            model=self.model,
            target=self.target,
        )
        self._logger.debug("keepalive_payload", payload=payload)

        status_code: int | None = None
        async with http_client(self._client, self._request_timeout) as http:
            try:
                response = await http.post(
                    self.target,
                    content=dump_json(payload),
                    headers={"Content-Type": "application/json"},
                    timeout=self._request_timeout,
                )
            except httpx.HTTPError as e:
                body = describe_error(e)
            else:
                status_code = response.status_code
                body = response.text

        success = status_code == httpx.codes.OK
        if success:
            self._logger.info(
                "keepalive_succeeded", index=index, status=status_code, response=body
            )
        else:
            self._logger.error(
                "keepalive_failed", index=index, status=status_code, response=body
            )

        self.state.sent += 1
        self.state.index = (index + 1) % len(self.prompts)
        return KeepAliveResult(
            index=index,
            prompt=prompt,
            success=success,
            status_code=status_code,
            body=body,
        )

    async def run(self) -> None:
        """Prompt forever; returns only through cancellation."""
        self._logger.info(
            "keepalive_idle",
            initial_delay=self._initial_delay,
            interval=self._interval,
            target=self.target,
        )
        self._schedule_next(self._initial_delay)
        await anyio.sleep(self._initial_delay)

        self.state.active = True
        self._logger.info("keepalive_activated")

        while True:
            _ = await self.fire_once()
            self._schedule_next(self._interval)
            await anyio.sleep(self._interval)
