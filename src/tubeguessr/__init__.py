"""TubeGuessr - daily guess-the-station game engine."""

__version__ = "0.1.0"

from .models import Line, Station, GameRound, GameStats
from .catalog import StationCatalog
from .matcher import normalize, is_guess_correct
from .selector import select_daily_station
from .store import GameStore, FileBackend, MemoryBackend
from .stats import StatsAggregator
from .session import GameSessionManager, GameState, GuessOutcome

__all__ = [
    "GameSessionManager",
    "GameState",
    "GuessOutcome",
    "GameStore",
    "FileBackend",
    "MemoryBackend",
    "StationCatalog",
    "StatsAggregator",
    "Line",
    "Station",
    "GameRound",
    "GameStats",
    "normalize",
    "is_guess_correct",
    "select_daily_station",
]
