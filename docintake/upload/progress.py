import asyncio
from collections.abc import Callable

SIMULATED_PROGRESS_CAP = 90.0


def next_simulated_progress(current: float, cap: float = SIMULATED_PROGRESS_CAP, rate: float = 0.15) -> float:
    """One tick of simulated progress.

    Each tick covers a fixed share of the remaining distance to ``cap``, so
    the bar moves fast at first, slows down and never reaches the cap.
    """
    if current >= cap:
        return current
    return current + (cap - current) * rate


class SimulatedProgress:
    """Reports decelerating progress while a transfer is in flight.

    Use as an async context manager around the transfer; call ``complete``
    afterwards to jump to 100%.
    """

    def __init__(self, report: Callable[[float], None], tick_seconds: float) -> None:
        self._report = report
        self._tick_seconds = tick_seconds
        self._value = 0.0
        self._task: asyncio.Task[None] | None = None

    @property
    def value(self) -> float:
        return self._value

    async def __aenter__(self) -> "SimulatedProgress":
        self._report(self._value)
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def complete(self) -> None:
        self._value = 100.0
        self._report(self._value)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._tick_seconds)
            self._value = next_simulated_progress(self._value)
            self._report(self._value)
