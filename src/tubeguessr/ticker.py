"""Periodic elapsed-time refresh for display purposes."""

import logging
import threading
from typing import Callable, Optional

from .session import GameSessionManager, GameState

logger = logging.getLogger(__name__)


class ElapsedTimeTicker:
    """
    Calls ``on_tick`` with the current elapsed time every ``interval`` seconds
    while a round is being played.

    Best effort only: it holds no game state and can be stopped at any time.
    Each run has its own stop event, so a thread still inside a slow
    ``on_tick`` when :meth:`stop` gives up waiting exits after that tick.
    """

    def __init__(self, manager: GameSessionManager, on_tick: Callable[[float], None], interval: float = 1.0):
        self.manager = manager
        self.on_tick = on_tick
        self.interval = interval
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop_event,), name="tubeguessr-ticker", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval * 2)
            if self._thread.is_alive():
                logger.warning("Ticker thread still busy after stop; it will exit after its current tick")
        self._thread = None
        self._stop_event = None

    def tick(self) -> None:
        """Push one refresh if a round is in progress."""
        if self.manager.state != GameState.PLAYING:
            return
        try:
            self.on_tick(self.manager.elapsed_time())
        except Exception as e:
            logger.warning(f"Elapsed time refresh failed: {e}")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            self.tick()
