"""Rolling logs of recent eruptions and earthquakes."""

from dataclasses import dataclass, field
from typing import List

from .geology import EruptionType

ERUPTION_RETENTION_YEARS = 10
MAX_EARTHQUAKE_ENTRIES = 20


@dataclass(frozen=True)
class EruptionEvent:
    x: int
    y: int
    year: int
    eruption_type: EruptionType
    vei: int


@dataclass(frozen=True)
class EarthquakeEvent:
    x: int
    y: int
    magnitude: float
    year: int
    relief: bool = False  # partial stress-relief quake


@dataclass
class GeologyEventLog:
    """
    Recent events for renderers and sibling simulators.

    Eruptions are kept for a fixed number of years; the earthquake list is
    cleared outright once it grows past its cap.
    """

    eruptions: List[EruptionEvent] = field(default_factory=list)
    earthquakes: List[EarthquakeEvent] = field(default_factory=list)
    total_eruptions: int = 0
    total_earthquakes: int = 0

    def record_eruption(self, event: EruptionEvent) -> None:
        self.eruptions.append(event)
        self.total_eruptions += 1

    def record_earthquake(self, event: EarthquakeEvent) -> None:
        self.earthquakes.append(event)
        self.total_earthquakes += 1

    def prune(self, current_year: int) -> None:
        self.eruptions = [
            e for e in self.eruptions if current_year - e.year <= ERUPTION_RETENTION_YEARS
        ]
        if len(self.earthquakes) > MAX_EARTHQUAKE_ENTRIES:
            self.earthquakes.clear()
