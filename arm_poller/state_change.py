import asyncio
from typing import Any, Awaitable, Callable, Optional

from loguru import logger

from arm_poller.errors import DeadlineExceeded, TransientTransportError, UnexpectedStateError
from arm_poller.models import Deadline

RefreshFunc = Callable[[], Awaitable[tuple[Any, Optional[str]]]]

MAX_BACKOFF = 10.0


class StateChangeConf:
    def __init__(
        self,
        refresh: RefreshFunc,
        pending: list[str],
        target: list[str],
        timeout: float,
        delay: float = 0.0,
        min_timeout: float = 0.0,
        poll_interval: float = 0.0,
        not_found_checks: int = 20,
        continuous_target_occurence: int = 1,
    ):
        self.refresh = refresh
        self.pending = pending
        self.target = target
        self.timeout = timeout
        self.delay = delay
        self.min_timeout = min_timeout
        self.poll_interval = poll_interval
        self.not_found_checks = not_found_checks
        self.continuous_target_occurence = max(1, continuous_target_occurence)
        self.logger = logger

    def _next_wait(self, wait: float) -> float:
        if self.poll_interval > 0:
            return self.poll_interval
        return max(min(wait * 2, MAX_BACKOFF), self.min_timeout)

    async def wait_for_state(self) -> Any:
        """Refresh until the state reaches a target value, returning the last result.

        Transient transport errors count as pending. Any other exception raised by
        ``refresh`` ends the wait immediately.
        """
        deadline = Deadline.after(self.timeout)
        if self.delay > 0:
            await asyncio.sleep(min(self.delay, deadline.remaining()))

        wait = 0.1
        not_found = 0
        target_occurence = 0
        last_state: Optional[str] = None

        while True:
            if deadline.expired():
                raise DeadlineExceeded(self.timeout, last_state)

            try:
                result, state = await self.refresh()
            except TransientTransportError as e:
                self.logger.warning(f"Transient error while refreshing, still pending: {e}")
                target_occurence = 0
            else:
                last_state = state
                if result is None:
                    if not self.target:
                        # waiting for the thing to disappear
                        target_occurence += 1
                        if target_occurence >= self.continuous_target_occurence:
                            return None
                    else:
                        not_found += 1
                        target_occurence = 0
                        if not_found > self.not_found_checks:
                            raise UnexpectedStateError(state, self.target)
                elif state in self.target:
                    not_found = 0
                    target_occurence += 1
                    if target_occurence >= self.continuous_target_occurence:
                        self.logger.debug(f"Reached target state {state}")
                        return result
                elif state in self.pending:
                    not_found = 0
                    target_occurence = 0
                else:
                    raise UnexpectedStateError(state, self.target)

            wait = self._next_wait(wait)
            self.logger.debug(f"Waiting {wait:.2f}s for state to become {self.target}")
            await asyncio.sleep(min(wait, deadline.remaining()))
