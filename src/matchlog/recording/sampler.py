"""Background timer for periodic position sampling."""

from __future__ import annotations

import threading
from collections.abc import Callable

from loguru import logger

__all__ = ["PeriodicSampler"]


class PeriodicSampler:
    """
    Call ``callback`` every ``interval`` seconds on a daemon thread.

    The first call happens one interval after :meth:`start`. An exception
    raised by the callback is logged and the timer keeps running.

    Parameters
    ----------
    interval : float
        Seconds between calls
    callback : Callable[[], object]
        Work to run on each tick
    name : str, optional
        Thread name, by default "matchlog-sampler"

    Examples
    --------
    >>> sampler = PeriodicSampler(5.0, lambda: controller.sample_all(online()))
    >>> sampler.start()
    >>> sampler.stop()
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], object],
        name: str = "matchlog-sampler",
    ):
        if interval <= 0:
            msg = f"interval must be positive, got {interval}"
            raise ValueError(msg)
        self.interval = interval
        self.callback = callback
        self.name = name
        self.ticks = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start ticking. Calling start on a running sampler does nothing."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug(f"Started {self.name} (every {self.interval:g}s)")

    def stop(self, timeout: float | None = None) -> None:
        """
        Stop ticking and wait for an in-progress tick to finish.

        Safe to call from within the callback itself.
        """
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.debug(f"Stopped {self.name} after {self.ticks} ticks")

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.ticks += 1
            try:
                self.callback()
            except Exception:
                logger.exception(f"{self.name} tick failed")
