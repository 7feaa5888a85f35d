"""Statistics aggregation over completed rounds."""

import logging
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .models import GameRound, GameStats

logger = logging.getLogger(__name__)

DEFAULT_RECENT_CAPACITY = 15

HISTORY_COLUMNS = [
    "round_id",
    "date",
    "station_id",
    "station_name",
    "guess_count",
    "is_win",
    "completion_time",
    "hints_used",
]


def record_completion(stats: GameStats, game: GameRound, recent_capacity: int = DEFAULT_RECENT_CAPACITY) -> None:
    """
    Fold a completed round into the cumulative statistics.

    Updates counters and streaks, appends the round to history and its station
    to the recent-ids buffer (oldest evicted past ``recent_capacity``), and
    bumps the history version so cached averages are recomputed.
    """
    stats.total_games += 1

    if game.is_win:
        stats.total_wins += 1
        stats.current_streak += 1
        stats.max_streak = max(stats.max_streak, stats.current_streak)
    else:
        stats.current_streak = 0

    stats.total_hints_used += game.hint_count
    stats.history.append(game)

    stats.recent_station_ids.append(game.station.station_id)
    if len(stats.recent_station_ids) > recent_capacity:
        del stats.recent_station_ids[: len(stats.recent_station_ids) - recent_capacity]

    stats.history_version += 1
    logger.debug(
        f"Recorded round {game.round_id}: win={game.is_win} games={stats.total_games} streak={stats.current_streak}"
    )


class StatsAggregator:
    """
    Derived statistics over a GameStats history.

    Averages are computed from a pandas frame of the history and cached
    against the stats' history version, so appending a round invalidates them.
    """

    def __init__(self, stats: GameStats):
        self.stats = stats
        self._cache_key: Optional[Tuple[int, int, int]] = None
        self._frame: Optional[pd.DataFrame] = None
        self._averages: Dict[str, float] = {}

    def invalidate(self) -> None:
        """Drop cached values."""
        self._cache_key = None
        self._frame = None
        self._averages = {}

    def _current_key(self) -> Tuple[int, int, int]:
        return (id(self.stats), self.stats.history_version, len(self.stats.history))

    def _ensure_fresh(self) -> None:
        key = self._current_key()
        if key != self._cache_key:
            self.invalidate()
            self._cache_key = key

    def history_frame(self) -> pd.DataFrame:
        """One row per completed round, oldest first."""
        self._ensure_fresh()
        if self._frame is None:
            rows = [
                {
                    "round_id": game.round_id,
                    "date": game.date,
                    "station_id": game.station.station_id,
                    "station_name": game.station.name,
                    "guess_count": len(game.guesses),
                    "is_win": game.is_win,
                    "completion_time": game.completion_time,
                    "hints_used": game.hint_count,
                }
                for game in self.stats.history
            ]
            self._frame = pd.DataFrame(rows, columns=HISTORY_COLUMNS)
        return self._frame

    @property
    def win_rate(self) -> float:
        return self.stats.win_rate

    @property
    def average_guesses(self) -> float:
        """Mean guesses over winning rounds (0 if none)."""
        self._ensure_fresh()
        if "average_guesses" not in self._averages:
            frame = self.history_frame()
            wins = frame[frame["is_win"].astype(bool)]
            self._averages["average_guesses"] = float(wins["guess_count"].mean()) if len(wins) else 0.0
        return self._averages["average_guesses"]

    @property
    def average_completion_time(self) -> float:
        """Mean completion time over winning rounds that recorded one (0 if none)."""
        self._ensure_fresh()
        if "average_completion_time" not in self._averages:
            frame = self.history_frame()
            times = pd.to_numeric(frame.loc[frame["is_win"].astype(bool), "completion_time"], errors="coerce").dropna()
            self._averages["average_completion_time"] = float(times.mean()) if len(times) else 0.0
        return self._averages["average_completion_time"]

    def recent_history(self, limit: int = 10) -> List[GameRound]:
        """Most recent completed rounds, newest first."""
        if limit <= 0:
            return []
        return list(reversed(self.stats.history[-limit:]))

    def summary(self) -> Dict[str, Any]:
        """Headline numbers for a stats screen."""
        return {
            "total_games": self.stats.total_games,
            "total_wins": self.stats.total_wins,
            "win_rate": self.win_rate,
            "current_streak": self.stats.current_streak,
            "max_streak": self.stats.max_streak,
            "total_hints_used": self.stats.total_hints_used,
            "average_guesses": self.average_guesses,
            "average_completion_time": self.average_completion_time,
        }


def format_time(seconds: float) -> str:
    """Format seconds as MM:SS."""
    total = int(max(0.0, seconds))
    return f"{total // 60:02d}:{total % 60:02d}"


def format_try_text(guess_count: int) -> str:
    """Ordinal label for the guess that won a round, e.g. "2nd Try!"."""
    suffixes = {1: "st", 2: "nd", 3: "rd"}
    return f"{guess_count}{suffixes.get(guess_count, 'th')} Try!"
