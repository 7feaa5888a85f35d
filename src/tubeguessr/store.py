"""Durable storage for the in-progress round, statistics and last-played date."""

import json
import logging
import os
import queue
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .clock import Clock, SystemClock
from .errors import PersistenceError, PersistenceReadError, PersistenceWriteError
from .models import GameRound, GameStats
from .stats import DEFAULT_RECENT_CAPACITY, StatsAggregator, record_completion

logger = logging.getLogger(__name__)

CURRENT_GAME_KEY = "currentGame"
STATS_KEY = "gameStats"
LAST_PLAYED_DATE_KEY = "lastPlayedDate"

# Pending-write marker meaning "remove this key"
_DELETE = object()
# Queue item telling the writer thread to exit
_STOP = object()


class StorageBackend:
    """Key-value storage of serialized payloads."""

    def read(self, key: str) -> Optional[str]:
        """Return the payload stored under ``key``, or None if absent."""
        raise NotImplementedError

    def write(self, key: str, payload: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryBackend(StorageBackend):
    """Keeps payloads in a dict; for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def write(self, key: str, payload: str) -> None:
        self.data[key] = payload

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class FileBackend(StorageBackend):
    """
    Stores each key as a JSON document in a directory.

    Writes go to a temporary file that is renamed over the target, so a key
    is never left half-written.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceReadError(key, str(e)) from e

    def write(self, key: str, payload: str) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.directory), suffix=".tmp")
        except OSError as e:
            raise PersistenceWriteError(key, str(e)) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_path, str(self._path(key)))
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise PersistenceWriteError(key, str(e)) from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceWriteError(key, str(e)) from e


class GameStore:
    """
    Owns the persisted copies of the current round, the statistics and the
    last-played date.

    The in-memory values are authoritative: every mutation updates them first
    and then queues the serialized payload. Failed writes stay queued and are
    retried on the next write. With ``background=True`` a single writer
    thread drains the queue, so writes keep their order.
    """

    def __init__(
        self,
        backend: StorageBackend,
        clock: Optional[Clock] = None,
        recent_capacity: int = DEFAULT_RECENT_CAPACITY,
        background: bool = False,
    ):
        self.backend = backend
        self.clock = clock or SystemClock()
        self.recent_capacity = recent_capacity

        self._pending: Dict[str, Any] = {}
        self._pending_lock = threading.Lock()
        self._write_lock = threading.Lock()

        self._current_game = self._load_current_game()
        self._stats = self._load_stats()
        self._last_played_date = self._load_last_played_date()
        self.aggregator = StatsAggregator(self._stats)

        self._queue: Optional[queue.Queue] = None
        self._worker: Optional[threading.Thread] = None
        if background:
            self._queue = queue.Queue()
            self._worker = threading.Thread(target=self._run_writer, name="tubeguessr-store", daemon=True)
            self._worker.start()

    # Loading

    def _read_json(self, key: str) -> Optional[Any]:
        try:
            payload = self.backend.read(key)
        except PersistenceReadError as e:
            logger.warning(f"Could not read {key}: {e}")
            return None
        if payload is None:
            return None
        try:
            return json.loads(payload)
        except ValueError as e:
            logger.warning(f"Discarding corrupt {key}: {e}")
            return None

    def _load_current_game(self) -> Optional[GameRound]:
        data = self._read_json(CURRENT_GAME_KEY)
        if data is None:
            return None
        try:
            return GameRound.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Discarding unreadable current game: {e}")
            return None

    def _load_stats(self) -> GameStats:
        data = self._read_json(STATS_KEY)
        if data is None:
            return GameStats()
        try:
            return GameStats.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Discarding unreadable stats: {e}")
            return GameStats()

    def _load_last_played_date(self) -> Optional[datetime]:
        data = self._read_json(LAST_PLAYED_DATE_KEY)
        if data is None:
            return None
        try:
            return datetime.fromisoformat(data)
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable last played date: {e}")
            return None

    # Writing

    def _persist(self, key: str, value: Any) -> None:
        """Queue a JSON-serializable value (or _DELETE) for ``key`` and flush."""
        if value is _DELETE:
            payload = _DELETE
        else:
            try:
                payload = json.dumps(value)
            except (TypeError, ValueError) as e:
                logger.warning(f"Could not serialize {key}: {e}")
                return

        with self._pending_lock:
            self._pending[key] = payload

        if self._queue is not None:
            self._queue.put(key)
        else:
            self._flush_pending()

    def _flush_pending(self) -> None:
        with self._write_lock:
            with self._pending_lock:
                snapshot = list(self._pending.items())

            for key, payload in snapshot:
                try:
                    if payload is _DELETE:
                        self.backend.delete(key)
                    else:
                        self.backend.write(key, payload)
                except PersistenceError as e:
                    logger.warning(f"Write of {key} failed, will retry on next write: {e}")
                    continue

                with self._pending_lock:
                    if self._pending.get(key) is payload:
                        del self._pending[key]

    def _run_writer(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._flush_pending()
            except Exception as e:
                logger.error(f"Background write failed: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    @property
    def pending_keys(self):
        """Keys whose latest value has not reached the backend yet."""
        with self._pending_lock:
            return sorted(self._pending)

    def flush(self) -> None:
        """Block until queued writes have been attempted."""
        if self._queue is not None:
            self._queue.join()
        else:
            self._flush_pending()

    def close(self) -> None:
        """Stop the writer thread (if any) after draining it."""
        if self._queue is not None and self._worker is not None:
            self._queue.put(_STOP)
            self._worker.join()
            self._queue = None
            self._worker = None
        self._flush_pending()

    # Current game

    @property
    def current_game(self) -> Optional[GameRound]:
        return self._current_game

    def save_current_game(self, game: GameRound) -> None:
        self._current_game = game
        self._persist(CURRENT_GAME_KEY, game.to_dict())

    def clear_current_game(self) -> None:
        self._current_game = None
        self._persist(CURRENT_GAME_KEY, _DELETE)

    # Stats

    @property
    def stats(self) -> GameStats:
        return self._stats

    def save_stats(self, stats: Optional[GameStats] = None) -> None:
        if stats is not None and stats is not self._stats:
            self._stats = stats
            self.aggregator = StatsAggregator(stats)
        self._persist(STATS_KEY, self._stats.to_dict())

    # Last played date

    def last_played_date(self) -> Optional[datetime]:
        return self._last_played_date

    def save_last_played_date(self, moment: datetime) -> None:
        self._last_played_date = moment
        self._persist(LAST_PLAYED_DATE_KEY, moment.isoformat())

    def can_play_today(self, has_unlimited_access: bool = False) -> bool:
        """
        Check the daily quota.

        Args:
            has_unlimited_access: Unlimited accounts may always play.

        Returns:
            True unless a round was already completed today.
        """
        if has_unlimited_access:
            return True
        if self._last_played_date is None:
            return True
        return not self.clock.is_today(self._last_played_date)

    def complete_game(self, game: GameRound, won: bool) -> GameRound:
        """
        Move a finished round into history and update the statistics.

        Marks the round completed, records it, stamps the last-played date and
        clears the current round.
        """
        game.is_completed = True
        game.is_win = won

        record_completion(self._stats, game, self.recent_capacity)
        self.aggregator.invalidate()

        self.save_stats()
        self.save_last_played_date(self.clock.now())
        self.clear_current_game()

        logger.info(f"Completed round {game.round_id} ({game.station.name}): {'win' if won else 'loss'}")
        return game

    def reset(self) -> None:
        """Erase all persisted progress."""
        self._last_played_date = None
        self._persist(LAST_PLAYED_DATE_KEY, _DELETE)
        self._stats = GameStats()
        self.aggregator = StatsAggregator(self._stats)
        self._persist(STATS_KEY, _DELETE)
        self.clear_current_game()
        logger.info("Reset stored game data")
