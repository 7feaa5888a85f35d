"""Static station catalog loaded from bundled CSV data."""

import csv
import io
import logging
from pathlib import Path
from typing import Dict, List

from .models import Line, Station

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
LINES_FILE = DATA_DIR / "lines.csv"
STATIONS_FILE = DATA_DIR / "stations.csv"

# Separator between line names in the stations.csv "lines" column
LINE_SEPARATOR = ";"


class StationCatalog:
    """Loads and indexes the lines and stations the game can pick from."""

    def __init__(self):
        """Initialize an empty catalog."""
        self.lines: Dict[str, Line] = {}  # line name -> Line
        self.stations: Dict[str, Station] = {}  # station_id -> Station, in load order

    @classmethod
    def default(cls) -> "StationCatalog":
        """Return a catalog populated with the bundled station data."""
        catalog = cls()
        catalog.load_default()
        return catalog

    def load_default(self) -> None:
        """Load the lines and stations shipped with the package."""
        self.load_from_files(str(LINES_FILE), str(STATIONS_FILE))

    def load_from_files(self, lines_path: str, stations_path: str) -> None:
        """Load catalog data from local CSV files."""
        logger.info("Loading station catalog from local files")
        with open(lines_path, "r", encoding="utf-8") as f:
            self._load_lines(f.read())
        with open(stations_path, "r", encoding="utf-8") as f:
            self._load_stations(f.read())
        logger.info(f"Loaded {len(self.stations)} stations and {len(self.lines)} lines")

    def _load_lines(self, csv_content: str) -> None:
        """Parse lines.csv and create Line objects."""
        reader = csv.DictReader(io.StringIO(csv_content))
        for row in reader:
            line = Line(
                line_id=row["line_id"].strip(),
                name=row["name"].strip(),
                color_code=row["color_code"].strip(),
            )
            self.lines[line.name] = line

    def _load_stations(self, csv_content: str) -> None:
        """Parse stations.csv, resolving line names against loaded lines."""
        reader = csv.DictReader(io.StringIO(csv_content))

        for row in reader:
            name = row["name"].strip()
            line_names = [part.strip() for part in row["lines"].split(LINE_SEPARATOR) if part.strip()]

            lines = []
            for line_name in line_names:
                if line_name not in self.lines:
                    raise ValueError(f"Station '{name}' references unknown line '{line_name}'")
                lines.append(self.lines[line_name])

            station = Station(
                name=name,
                lines=tuple(lines),
                trivia=row["trivia"].strip(),
                location=row["location"].strip(),
            )

            # Identifiers derive from names, so two similar names would collide
            if station.station_id in self.stations:
                logger.warning(
                    f"Skipping station '{name}': id '{station.station_id}' already used by "
                    f"'{self.stations[station.station_id].name}'"
                )
                continue

            self.stations[station.station_id] = station

        logger.debug(f"Indexed {len(self.stations)} stations")

    def add_station(self, station: Station) -> None:
        """Add a station built in code, rejecting identifier collisions."""
        if station.station_id in self.stations:
            raise ValueError(f"Station id '{station.station_id}' already in catalog")
        for line in station.lines:
            self.lines.setdefault(line.name, line)
        self.stations[station.station_id] = station

    def get_station(self, station_id: str) -> Station:
        """Get station by its identifier."""
        if station_id not in self.stations:
            raise ValueError(f"Station {station_id} not found")
        return self.stations[station_id]

    def find_stations_by_name(self, name: str) -> List[Station]:
        """Find stations by name (partial, case-insensitive match)."""
        name_lower = name.lower()
        return [station for station in self.stations.values() if name_lower in station.name.lower()]

    def all_stations(self) -> List[Station]:
        """All stations in load order."""
        return list(self.stations.values())

    def multi_line_stations(self) -> List[Station]:
        """Stations served by two or more lines, in load order."""
        return [station for station in self.stations.values() if station.is_multi_line]

    def clear(self) -> None:
        """Clear all loaded data."""
        self.lines.clear()
        self.stations.clear()
        logger.info("Cleared station catalog")

    def __len__(self) -> int:
        return len(self.stations)
