import asyncio
import logging
from typing import Optional


class SpecTimeout(Exception):
    def __init__(self, label: str, timeout: float):
        super().__init__(
            f"Timeout - {label} was not invoked within {timeout:g} seconds"
        )
        self.label = label
        self.timeout = timeout


class CompletionToken:
    """Single-shot signal handed to asynchronous work.

    The first call releases whoever is waiting on the token. Later calls,
    and calls arriving after the wait has timed out, are ignored.
    Calling the token with an error (or using `fail`) releases the waiter
    and records the error on `self.error`.
    """

    def __init__(self, label: str = "done"):
        self.label = label
        self.calls = 0
        self.error: Optional[str] = None
        self.expired = False
        self._fired = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._future: Optional[asyncio.Future] = None

    @property
    def fired(self) -> bool:
        return self._fired

    def __call__(self, error: object = None) -> None:
        self.calls += 1
        if self._fired or self.expired:
            logging.debug(f"Ignoring call {self.calls} of {self.label}")
            return
        self._fired = True
        if error is not None:
            self.error = str(error) or repr(error)
        if self._future is None:
            return
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is self._loop:
            self._release()
        else:
            self._loop.call_soon_threadsafe(self._release)

    def fail(self, message: str = "failed") -> None:
        self(message)

    def _release(self) -> None:
        if self._future is not None and not self._future.done():
            self._future.set_result(None)

    async def wait(self, timeout: float, interval: Optional[float] = None) -> None:
        """Suspend until the token fires; raise SpecTimeout after `timeout` seconds.

        `interval` is the configured limit named in the timeout message when
        `timeout` is only what is left of it.
        """
        if self._fired:
            return
        if self._future is not None:
            raise RuntimeError(f"{self.label} is already being waited on")
        self._loop = asyncio.get_running_loop()
        self._future = self._loop.create_future()
        try:
            await asyncio.wait_for(self._future, timeout)
        except asyncio.TimeoutError:
            self.expired = True
            raise SpecTimeout(self.label, timeout if interval is None else interval) from None
