import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class Watchdog:
    """Run ``action`` after ``delay`` seconds unless cancelled first.

    Cancelling is idempotent, and once the action has started firing a
    cancel no longer interrupts it.
    """

    def __init__(self, delay: float, action: Callable[[], Awaitable[None]]) -> None:
        self.delay = delay
        self._action = action
        self._task: Optional[asyncio.Task] = None
        self.fired = False
        self.cancelled = False

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        if self.cancelled:
            return
        self.fired = True
        try:
            await self._action()
        except Exception:
            logger.exception("watchdog action failed after %ss", self.delay)

    @property
    def armed(self) -> bool:
        return self._task is not None and not self.fired and not self.cancelled

    def cancel(self) -> bool:
        if not self.armed:
            return False
        self.cancelled = True
        self._task.cancel()
        return True
