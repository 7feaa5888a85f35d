"""Runtime configuration read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DATA_DIR = Path.home() / ".tubeguessr"

# Guesses required before each hint is offered
LOCATION_HINT_MIN_GUESSES = 1
TRIVIA_HINT_MIN_GUESSES = 3


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class GameConfig:
    """Tunable settings for a game session."""
    data_dir: Path = DEFAULT_DATA_DIR
    recent_capacity: int = 15  # Stations remembered to avoid repeats
    seed_multiplier: int = 1000  # Daily seed = day index * multiplier
    background_writes: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "GameConfig":
        """Build a config from ``TUBEGUESSR_*`` variables, falling back to defaults."""
        return cls(
            data_dir=Path(os.environ.get("TUBEGUESSR_DATA_DIR") or DEFAULT_DATA_DIR),
            recent_capacity=int(os.environ.get("TUBEGUESSR_RECENT_CAPACITY", "15")),
            seed_multiplier=int(os.environ.get("TUBEGUESSR_SEED_MULTIPLIER", "1000")),
            background_writes=_env_flag("TUBEGUESSR_BACKGROUND_WRITES", False),
            log_level=os.environ.get("TUBEGUESSR_LOG_LEVEL", "INFO").upper(),
        )
