"""Deterministic daily station selection."""

import logging
from typing import Iterable, List

from .models import Station

logger = logging.getLogger(__name__)

DEFAULT_SEED_MULTIPLIER = 1000

_LCG_MULTIPLIER = 1103515245
_LCG_INCREMENT = 12345
_UINT64_MASK = (1 << 64) - 1


class SeededRandomGenerator:
    """
    Linear congruential generator over unsigned 64-bit state.

    ``state = state * 1103515245 + 12345`` with wraparound. Kept bit-compatible
    with the generator that picked every previously issued daily station.
    """

    def __init__(self, seed: int):
        self.state = seed & _UINT64_MASK

    def next(self) -> int:
        self.state = (self.state * _LCG_MULTIPLIER + _LCG_INCREMENT) & _UINT64_MASK
        return self.state


def select_daily_station(
    stations: Iterable[Station],
    recent_ids: Iterable[str],
    day_index: int,
    seed_multiplier: int = DEFAULT_SEED_MULTIPLIER,
) -> Station:
    """
    Pick the station for a given day.

    Only multi-line stations are eligible. Recently played stations are
    excluded unless that would leave nothing to choose from, in which case the
    full multi-line pool is used.

    Args:
        stations: Candidate stations in catalog order.
        recent_ids: Identifiers of recently played stations.
        day_index: Day-of-year, plus any testing offset.
        seed_multiplier: Factor applied to ``day_index`` to seed the generator.

    Returns:
        The selected Station.

    Raises:
        ValueError: If no station is served by two or more lines.
    """
    multi_line: List[Station] = [station for station in stations if station.is_multi_line]
    if not multi_line:
        raise ValueError("Catalog has no multi-line stations to choose from")

    recent = set(recent_ids)
    available = [station for station in multi_line if station.station_id not in recent]
    if not available:
        logger.debug("All multi-line stations played recently; using the full pool")
        available = multi_line

    generator = SeededRandomGenerator(seed=day_index * seed_multiplier)
    index = generator.next() % len(available)

    selected = available[index]
    logger.debug(f"Day {day_index}: selected {selected.name} from {len(available)} candidates")
    return selected
