"""Report import adapter.

Turns a mileage report and a fuel report into exactly one Trip. Document
parsing is simulated: `simulate_report_import` returns the fixed
`MOCK_MILEAGE_REPORT` / `MOCK_FUEL_REPORT` values whatever files are given.
"""

import logging
import math
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date

from trips import JurisdictionEntry, Trip

logger = logging.getLogger(__name__)


class ImportRecordError(ValueError):
    """Raised when an imported record or import request is malformed."""


def _quantity(record: Mapping, key: str) -> float:
    """Read a non-negative quantity, defaulting a missing/blank value to 0."""
    raw = record.get(key)
    if raw is None or raw == "":
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ImportRecordError(f"{key} is not a number: {raw!r}") from exc
    if not math.isfinite(value) or value < 0:
        raise ImportRecordError(f"{key} must be a non-negative number, got {raw!r}")
    return value


def _state(record: Mapping) -> str:
    if not isinstance(record, Mapping):
        raise ImportRecordError(f"Record is not a mapping: {record!r}")
    state = str(record.get("state") or "").strip().upper()
    if not state:
        raise ImportRecordError(f"Record has no jurisdiction: {dict(record)!r}")
    return state


@dataclass(frozen=True)
class MileageRecord:
    state: str
    miles: float = 0.0

    @classmethod
    def from_mapping(cls, record: Mapping) -> "MileageRecord":
        return cls(state=_state(record), miles=_quantity(record, "miles"))


@dataclass(frozen=True)
class FuelRecord:
    state: str
    fuel: float = 0.0

    @classmethod
    def from_mapping(cls, record: Mapping) -> "FuelRecord":
        return cls(state=_state(record), fuel=_quantity(record, "fuel"))


# ---------------------------------------------------------------------------
# Mock reports (ELD mileage log and fuel card statements)
# ---------------------------------------------------------------------------

MOCK_MILEAGE_REPORT = [
    {"state": "AL", "miles": 1311.17},
    {"state": "AR", "miles": 451.5},
    {"state": "IL", "miles": 660.59},
    {"state": "IN", "miles": 760.48},
    {"state": "KY", "miles": 1831.96},
    {"state": "LA", "miles": 291.82},
    {"state": "MD", "miles": 193.55},
    {"state": "MI", "miles": 4.9},
    {"state": "MO", "miles": 88.24},
    {"state": "MS", "miles": 159.15},
    {"state": "NY", "miles": 65.09},
    {"state": "OH", "miles": 1399.41},
    {"state": "PA", "miles": 844.13},
    {"state": "TN", "miles": 953.58},
    {"state": "VA", "miles": 73.63},
    {"state": "WI", "miles": 35.26},
    {"state": "WV", "miles": 348.6},
]

# Several fuel card statements per state, summed per jurisdiction
MOCK_FUEL_REPORT = [
    {"state": "AL", "fuel": 118.81 + 131.31},
    {"state": "OH", "fuel": 77.75 + 68.12 + 81.3 + 109.34},
    {"state": "IL", "fuel": 113.88},
    {"state": "MO", "fuel": 38.23},
    {"state": "LA", "fuel": 123.58},
    {"state": "KY", "fuel": 111.59 + 112.9 + 96.36 + 89.12},
    {"state": "VA", "fuel": 63.85},
    {"state": "TN", "fuel": 56.59 + 116.6 + 78.08},
    {"state": "PA", "fuel": 34.63 + 56.05},
    {"state": "WI", "fuel": 113.89},
]


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

def parse_records(records: Iterable[Mapping], record_type):
    """Coerce loose payload dicts into `record_type`, logging the rejects."""
    parsed = []
    for record in records:
        if isinstance(record, record_type):
            parsed.append(record)
            continue
        try:
            parsed.append(record_type.from_mapping(record))
        except ImportRecordError:
            logger.warning("Rejected %s record: %r", record_type.__name__, record)
            raise
    return parsed


def build_imported_trip(
    mileage: Sequence[MileageRecord | Mapping],
    fuel: Sequence[FuelRecord | Mapping],
    truck_id: str,
    today: date | None = None,
    now_ms: int | None = None,
) -> Trip:
    """Synthesize one trip from a mileage report and a fuel report.

    The breakdown covers every state found in either report, mileage states
    first. When a state appears more than once, the first record wins for the
    breakdown while the totals still count every record.
    """
    truck_id = (truck_id or "").strip()
    if not truck_id:
        raise ImportRecordError("Truck number is required")

    mileage_records = parse_records(mileage, MileageRecord)
    fuel_records = parse_records(fuel, FuelRecord)

    today = today or date.today()
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)

    total_miles = sum(m.miles for m in mileage_records)
    total_fuel = sum(f.fuel for f in fuel_records)

    states = list(dict.fromkeys(
        [m.state for m in mileage_records] + [f.state for f in fuel_records]
    ))
    first_miles: dict[str, float] = {}
    for m in mileage_records:
        first_miles.setdefault(m.state, m.miles)
    first_fuel: dict[str, float] = {}
    for f in fuel_records:
        first_fuel.setdefault(f.state, f.fuel)

    breakdown = tuple(
        JurisdictionEntry(
            state=state,
            miles=first_miles.get(state, 0.0),
            fuel=first_fuel.get(state, 0.0),
        )
        for state in states
    )
    logger.info(
        "Imported trip for %s: %d jurisdictions, %.2f mi, %.2f gal",
        truck_id, len(breakdown), total_miles, total_fuel,
    )
    return Trip(
        id=f"IMP-{now_ms}",
        date=today.isoformat(),
        truck_id=truck_id,
        odometer_start=0,
        odometer_end=total_miles,
        total_miles=total_miles,
        total_fuel=total_fuel,
        breakdown=breakdown,
    )


def simulate_report_import(
    mileage_files: Sequence[str],
    fuel_files: Sequence[str],
    truck_id: str,
) -> Trip:
    """Stand-in for document parsing: the files are only counted."""
    if not mileage_files or not fuel_files:
        raise ImportRecordError("At least one mileage report and one fuel statement are required")
    logger.info(
        "Simulating import of %d mileage and %d fuel file(s)",
        len(mileage_files), len(fuel_files),
    )
    return build_imported_trip(MOCK_MILEAGE_REPORT, MOCK_FUEL_REPORT, truck_id)
