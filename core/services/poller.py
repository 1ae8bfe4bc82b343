"""Generic wait-until-terminal-state polling."""

import asyncio
import inspect
import logging
from datetime import timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from core.exceptions import PollTimeoutError, ResourceFailedError, ResourceNotFoundError
from core.interfaces.progress_interface import IProgressReporter


class PollStatus(Enum):
    """Classification of one observed resource state."""
    CONTINUE = "continue"
    SUCCESS = "success"
    FAILURE = "failure"


FetchState = Callable[[], Awaitable[Optional[Any]]]
Classifier = Callable[[Any], Union[PollStatus, Awaitable[PollStatus]]]
Sleep = Callable[[float], Awaitable[None]]


class Poller:
    """Repeatedly fetch a resource until it reaches a terminal state.

    A fetch error is raised as-is and never treated as "not ready yet". A fetch
    returning ``None`` means the provider listed no matching resource.
    Cancellation propagates and is never mistaken for a terminal state.
    """

    def __init__(
        self,
        interval: float,
        progress: IProgressReporter,
        sleep: Sleep = asyncio.sleep,
    ):
        self.interval = interval
        self.progress = progress
        self._sleep = sleep
        self.logger = logging.getLogger(__name__)

    async def poll_until(
        self,
        fetch_state: FetchState,
        classify: Classifier,
        description: str,
        max_attempts: Optional[int] = None,
        tolerate_missing: bool = False,
        timeout: Optional[float] = None,
    ) -> Any:
        """Poll until ``classify`` reports SUCCESS and return the last record.

        Args:
            fetch_state: Async describe call returning the record or None
            classify: Maps a record to a PollStatus, may be async
            description: Human readable name of what is awaited
            max_attempts: Give up after this many fetches
            tolerate_missing: Keep polling while the resource is not listed yet
            timeout: Overall deadline in seconds

        Raises:
            ResourceNotFoundError: The resource vanished (or never appeared)
            ResourceFailedError: A failure terminal state was observed
            PollTimeoutError: ``max_attempts`` or ``timeout`` was exhausted
        """
        loop = self._poll(fetch_state, classify, description, max_attempts, tolerate_missing)
        if timeout is None:
            return await loop

        try:
            return await asyncio.wait_for(loop, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise PollTimeoutError(
                f"Timed out after {timedelta(seconds=timeout)} waiting for {description}"
            ) from e

    async def _poll(
        self,
        fetch_state: FetchState,
        classify: Classifier,
        description: str,
        max_attempts: Optional[int],
        tolerate_missing: bool,
    ) -> Any:
        elapsed = timedelta()
        attempt = 0

        while True:
            attempt += 1
            record = await fetch_state()

            if record is None:
                if not tolerate_missing:
                    raise ResourceNotFoundError(f"{description} not found")
                status = PollStatus.CONTINUE
                self.logger.debug(f"{description} not listed yet")
            else:
                status = classify(record)
                if inspect.isawaitable(status):
                    status = await status

            if status == PollStatus.SUCCESS:
                return record
            if status == PollStatus.FAILURE:
                raise ResourceFailedError(f"{description} reached a failed state", record)

            if max_attempts is not None and attempt >= max_attempts:
                raise PollTimeoutError(
                    f"Timed out waiting for {description} after {attempt} attempts"
                )

            self.progress.say(f"Waiting for {description} (elapsed: {elapsed})")
            await self._sleep(self.interval)
            elapsed += timedelta(seconds=self.interval)
