import asyncio
from collections import deque


class UploadLimiter:
    """Caps concurrent transfers and admits waiters in FIFO order.

    A released permit is handed directly to the oldest waiter, so a newly
    arriving request can never overtake a queued one.
    """

    def __init__(self, max_active: int) -> None:
        if max_active < 1:
            raise ValueError("max_active must be at least 1")
        self._max_active = max_active
        self._active = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def active(self) -> int:
        return self._active

    @property
    def queued(self) -> int:
        return len(self._waiters)

    def has_capacity(self) -> bool:
        return self._active < self._max_active and not self._waiters

    async def acquire(self) -> None:
        if self.has_capacity():
            self._active += 1
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Permit was already handed over; pass it on.
                self.release()
            else:
                self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._active -= 1
