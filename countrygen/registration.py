# countrygen/registration.py
#
# Background registration of the interactions endpoint URL.
#
# The platform validates a new endpoint URL by sending a signed PING to it, so
# the PATCH has to happen while the server is already accepting traffic. That
# makes it a fire-and-forget task running next to request handling:
#
#   - it is started from the FastAPI lifespan, after startup completes
#   - each attempt runs the blocking HTTP call in the threadpool
#   - failures are logged and retried with exponential backoff
#   - after the last attempt the state becomes FAILED; nothing is raised
#
# The serving path never depends on this task. /healthz exposes its state.

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from fastapi.concurrency import run_in_threadpool

from .discord_api import DiscordClient

logger = logging.getLogger(__name__)


class RegistrationState(str, Enum):
    DISABLED = "disabled"
    PENDING = "pending"
    REGISTERED = "registered"
    FAILED = "failed"


class EndpointRegistration:
    def __init__(
        self,
        client: DiscordClient,
        url: str,
        max_attempts: int = 5,
        backoff_seconds: float = 2.0,
        initial_delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.url = url
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self._sleep = sleep

        self.state = RegistrationState.PENDING
        self.attempts = 0
        self.last_error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (1-based)."""
        return self.backoff_seconds * (2 ** (attempt - 1))

    async def run(self) -> RegistrationState:
        if self.initial_delay_seconds > 0:
            await self._sleep(self.initial_delay_seconds)

        for attempt in range(1, self.max_attempts + 1):
            self.attempts = attempt
            try:
                await run_in_threadpool(self.client.set_interactions_endpoint_url, self.url)
            except Exception as e:
                # Any failure here (HTTP error, DNS, timeout) is absorbed.
                self.last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    "endpoint registration attempt %d/%d failed: %s",
                    attempt,
                    self.max_attempts,
                    self.last_error,
                )
                if attempt < self.max_attempts:
                    await self._sleep(self.delay_for(attempt))
                continue

            self.state = RegistrationState.REGISTERED
            self.last_error = None
            return self.state

        self.state = RegistrationState.FAILED
        logger.error(
            "giving up on endpoint registration for %s after %d attempts",
            self.url,
            self.max_attempts,
        )
        return self.state

    def start(self) -> asyncio.Task:
        self._task = asyncio.create_task(self.run(), name="endpoint-registration")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
