from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .models import RGBColor
from .store import TabularStore

LOGGER = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


def clear_highlight(store: TabularStore, color: RGBColor) -> int:
    """Reset the background of every cell currently tinted with ``color``."""

    cells = store.find_cells_with_background(color)
    if cells:
        store.set_background(cells, None)
    LOGGER.info("Cleared highlight %s from %s cell(s)", color, len(cells))
    return len(cells)


class DeferredTask:
    """One-shot timer with a single slot: scheduling replaces the pending run."""

    def __init__(self, name: str, timer_factory: TimerFactory = threading.Timer) -> None:
        self.name = name
        self._timer_factory = timer_factory
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self, delay_seconds: float, func: Callable[[], None]) -> None:
        with self._lock:
            self._cancel_locked()
            timer = self._timer_factory(delay_seconds, lambda: self._run(timer, func))
            timer.daemon = True
            self._timer = timer
        LOGGER.debug("Scheduled '%s' in %.0f seconds", self.name, delay_seconds)
        timer.start()

    def cancel(self) -> bool:
        with self._lock:
            return self._cancel_locked()

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until the pending run has finished (or ``timeout`` passes)."""

        with self._lock:
            timer = self._timer
        if timer is not None:
            timer.join(timeout)

    def _cancel_locked(self) -> bool:
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        LOGGER.debug("Cancelled pending '%s'", self.name)
        return True

    def _run(self, timer: threading.Timer, func: Callable[[], None]) -> None:
        with self._lock:
            if self._timer is not timer:
                return
        try:
            func()
        except Exception:
            LOGGER.exception("Deferred task '%s' failed", self.name)
        finally:
            with self._lock:
                if self._timer is timer:
                    self._timer = None
