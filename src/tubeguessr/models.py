"""Data models for TubeGuessr."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .matcher import normalize

MAX_GUESSES = 5


@dataclass(frozen=True)
class Line:
    """Represents a line serving one or more stations."""
    line_id: str
    name: str
    color_code: str  # Hex colour, e.g. "#DC241F"

    def to_dict(self) -> Dict[str, Any]:
        return {"line_id": self.line_id, "name": self.name, "color_code": self.color_code}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Line":
        return cls(line_id=data["line_id"], name=data["name"], color_code=data["color_code"])


@dataclass(frozen=True)
class Station:
    """Represents a station that can be the answer of a daily round."""
    name: str
    lines: Tuple[Line, ...]
    trivia: str
    location: str  # Area label, e.g. "Central London"
    normalized_name: str = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "lines", tuple(self.lines))
        object.__setattr__(self, "normalized_name", normalize(self.name))

    @property
    def station_id(self) -> str:
        """Deterministic identifier derived from the name."""
        return self.normalized_name

    @property
    def is_multi_line(self) -> bool:
        return len(self.lines) >= 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.station_id,
            "name": self.name,
            "lines": [line.to_dict() for line in self.lines],
            "trivia": self.trivia,
            "location": self.location,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Station":
        return cls(
            name=data["name"],
            lines=tuple(Line.from_dict(line) for line in data["lines"]),
            trivia=data["trivia"],
            location=data["location"],
        )


def _format_timestamp(value: datetime) -> str:
    return value.isoformat()


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


@dataclass
class GameRound:
    """One day's round: the target station and everything the player did."""
    station: Station
    date: datetime  # When the round was issued
    round_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    guesses: List[str] = field(default_factory=list)
    hints_used: bool = False  # Trivia hint
    location_hint_used: bool = False
    is_completed: bool = False
    is_win: bool = False
    completion_time: Optional[float] = None  # Seconds
    accumulated_elapsed_time: float = 0.0  # Seconds spent in the foreground

    @property
    def remaining_guesses(self) -> int:
        return max(0, MAX_GUESSES - len(self.guesses))

    @property
    def hint_count(self) -> int:
        """Number of distinct hints used in this round."""
        return int(self.hints_used) + int(self.location_hint_used)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.round_id,
            "station": self.station.to_dict(),
            "date": _format_timestamp(self.date),
            "guesses": list(self.guesses),
            "hints_used": self.hints_used,
            "location_hint_used": self.location_hint_used,
            "is_completed": self.is_completed,
            "is_win": self.is_win,
            "completion_time": self.completion_time,
            "accumulated_elapsed_time": self.accumulated_elapsed_time,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameRound":
        completion_time = data.get("completion_time")
        return cls(
            station=Station.from_dict(data["station"]),
            date=_parse_timestamp(data["date"]),
            round_id=data["id"],
            guesses=[str(guess) for guess in data.get("guesses", [])],
            hints_used=bool(data.get("hints_used", False)),
            location_hint_used=bool(data.get("location_hint_used", False)),
            is_completed=bool(data.get("is_completed", False)),
            is_win=bool(data.get("is_win", False)),
            completion_time=float(completion_time) if completion_time is not None else None,
            accumulated_elapsed_time=float(data.get("accumulated_elapsed_time", 0.0)),
        )


@dataclass
class GameStats:
    """Cumulative statistics and history of completed rounds."""
    total_games: int = 0
    total_wins: int = 0
    current_streak: int = 0
    max_streak: int = 0
    total_hints_used: int = 0
    history: List[GameRound] = field(default_factory=list)
    recent_station_ids: List[str] = field(default_factory=list)
    # Bumped whenever history changes; not persisted
    history_version: int = field(default=0, compare=False)

    @property
    def win_rate(self) -> float:
        if self.total_games <= 0:
            return 0.0
        return self.total_wins / self.total_games

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_games": self.total_games,
            "total_wins": self.total_wins,
            "current_streak": self.current_streak,
            "max_streak": self.max_streak,
            "total_hints_used": self.total_hints_used,
            "history": [game.to_dict() for game in self.history],
            "recent_station_ids": list(self.recent_station_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameStats":
        return cls(
            total_games=int(data.get("total_games", 0)),
            total_wins=int(data.get("total_wins", 0)),
            current_streak=int(data.get("current_streak", 0)),
            max_streak=int(data.get("max_streak", 0)),
            total_hints_used=int(data.get("total_hints_used", 0)),
            history=[GameRound.from_dict(game) for game in data.get("history", [])],
            recent_station_ids=[str(station_id) for station_id in data.get("recent_station_ids", [])],
        )
