"""Trip records, the caller-owned Trip Store and manual trip entry."""

import logging
import random
import string
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

MOCK_TRUCKS = [
    {"id": "TRK-101", "name": "Freightliner Cascadia"},
    {"id": "TRK-102", "name": "Kenworth T680"},
    {"id": "TRK-103", "name": "Peterbilt 579"},
    {"id": "TRK-104", "name": "Volvo VNL 860"},
]

_ID_ALPHABET = string.digits + string.ascii_lowercase

# Float noise allowed when comparing odometer and breakdown miles
MILEAGE_TOLERANCE = 1e-9


class TripValidationError(ValueError):
    """Raised when a manually entered trip cannot be stored."""


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class JurisdictionEntry:
    """Slice of one trip driven (and fuelled) in one jurisdiction."""

    state: str
    miles: float = 0.0
    fuel: float = 0.0


@dataclass(frozen=True)
class Trip:
    id: str
    date: str
    truck_id: str
    odometer_start: float
    odometer_end: float
    total_miles: float
    total_fuel: float
    breakdown: tuple[JurisdictionEntry, ...] = field(default_factory=tuple)

    @property
    def breakdown_miles(self) -> float:
        return sum(entry.miles for entry in self.breakdown)


# ---------------------------------------------------------------------------
# Trip Store
# ---------------------------------------------------------------------------

class TripStore:
    """Append-only, newest-first collection of trips.

    The store is owned by the caller (the dashboard session). Aggregation
    functions receive its snapshot and never keep a reference to it.
    """

    def __init__(self, trips: Iterable[Trip] = ()):
        self._trips: list[Trip] = list(trips)

    def add(self, trip: Trip) -> None:
        diff = mileage_mismatch(trip)
        if diff is not None:
            logger.warning(
                "Trip %s: odometer miles differ from breakdown miles by %.2f",
                trip.id, diff,
            )
        self._trips.insert(0, trip)

    @property
    def trips(self) -> tuple[Trip, ...]:
        return tuple(self._trips)

    def __len__(self) -> int:
        return len(self._trips)

    def __iter__(self) -> Iterator[Trip]:
        return iter(tuple(self._trips))


# ---------------------------------------------------------------------------
# Manual entry
# ---------------------------------------------------------------------------

def _random_trip_id(length: int = 9) -> str:
    return "".join(random.choice(_ID_ALPHABET) for _ in range(length))


def trip_mpg(breakdown: Iterable[JurisdictionEntry]) -> float:
    """Per-trip MPG preview shown in the entry form (2 decimals)."""
    entries = list(breakdown)
    miles = sum(e.miles for e in entries)
    fuel = sum(e.fuel for e in entries)
    return round(miles / fuel, 2) if fuel > 0 else 0.0


def new_manual_trip(
    date: str,
    truck_id: str,
    odometer_start: float,
    odometer_end: float,
    breakdown: Iterable[JurisdictionEntry],
) -> Trip:
    """Build a trip from the manual entry form.

    Total miles come from the odometer, total fuel from the breakdown.
    A breakdown that does not add up to the odometer distance is accepted
    (see `mileage_mismatch`).
    """
    if odometer_end <= odometer_start:
        raise TripValidationError("Odometer end must be greater than start")

    entries = tuple(breakdown)
    for entry in entries:
        if entry.miles < 0 or entry.fuel < 0:
            raise TripValidationError(
                f"Negative miles or fuel for jurisdiction {entry.state}"
            )

    return Trip(
        id=_random_trip_id(),
        date=date,
        truck_id=truck_id,
        odometer_start=odometer_start,
        odometer_end=odometer_end,
        total_miles=max(0, odometer_end - odometer_start),
        total_fuel=sum(e.fuel for e in entries),
        breakdown=entries,
    )


def miles_difference(odometer_miles: float, breakdown_miles: float) -> float | None:
    """Odometer miles minus breakdown miles, or None when they agree."""
    diff = odometer_miles - breakdown_miles
    if abs(diff) < MILEAGE_TOLERANCE:
        return None
    return diff


def mileage_mismatch(trip: Trip) -> float | None:
    """Odometer miles minus breakdown miles for a stored trip.

    Advisory only: mismatching trips are flagged in the UI and logged,
    never rejected.
    """
    odometer_miles = max(0, trip.odometer_end - trip.odometer_start)
    return miles_difference(odometer_miles, trip.breakdown_miles)
