"""IFTA tax aggregation engine.

Implements the fixed IFTA chain:

    TM -> FC -> Fleet MPG -> MJ / MPG (FJ) -> (FJ x JT) - (FPJ x JT)

Every function here is pure: it takes the caller's trips and a rate table
and returns fresh records. Nothing is cached between calls.
"""

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

from trips import Trip

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
RATES_FILE = "ifta_tax_rates_2026.json"

DEFAULT_RATE_KEY = "DEFAULT"
MPG_DECIMALS = 4

# The 48 contiguous IFTA member states, in worksheet order
US_STATES = (
    "AL", "AR", "AZ", "CA", "CO", "CT", "DE", "FL", "GA", "IA", "ID", "IL",
    "IN", "KS", "KY", "LA", "MA", "MD", "ME", "MI", "MN", "MO", "MS", "MT",
    "NC", "ND", "NE", "NH", "NJ", "NM", "NV", "NY", "OH", "OK", "OR", "PA",
    "RI", "SC", "SD", "TN", "TX", "UT", "VA", "VT", "WA", "WI", "WV", "WY",
)


class RateTableError(ValueError):
    """Raised when a jurisdiction rate table is unusable."""


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class JurisdictionTotals:
    miles: float = 0.0
    fuel_purchased: float = 0.0


@dataclass(frozen=True)
class TaxLiabilityRow:
    state: str
    miles: float             # MJ
    fuel_purchased: float    # FPJ
    fuel_consumed: float     # FJ = MJ / MPG
    tax_rate: float          # JT
    tax_due: float           # TD = FJ x JT
    tax_paid_at_pump: float  # PP = FPJ x JT
    net_tax: float           # TD - PP


@dataclass(frozen=True)
class FleetSummary:
    total_distance: float
    total_fuel: float
    average_mpg: float
    estimated_tax: float = 0.0


@dataclass(frozen=True)
class WorksheetRow:
    state: str
    active: bool
    row: TaxLiabilityRow


# ---------------------------------------------------------------------------
# Rate table
# ---------------------------------------------------------------------------

def load_json(filename: str) -> dict:
    with open(DATA_DIR / filename) as f:
        return json.load(f)


def validate_rate_table(rates: Mapping[str, float]) -> dict[str, float]:
    if DEFAULT_RATE_KEY not in rates:
        raise RateTableError(f"Rate table has no {DEFAULT_RATE_KEY} entry")
    table = {}
    for state, rate in rates.items():
        try:
            table[state] = float(rate)
        except (TypeError, ValueError) as exc:
            raise RateTableError(f"Invalid rate for {state}: {rate!r}") from exc
    return table


def load_rate_table(path: Path | None = None) -> dict[str, float]:
    """Return {state_code: rate_per_gallon} including the DEFAULT fallback."""
    if path is None:
        data = load_json(RATES_FILE)
    else:
        with open(path) as f:
            data = json.load(f)
    return validate_rate_table(data["rates"])


def rate_for(state: str, rate_table: Mapping[str, float]) -> float:
    """Jurisdiction rate, falling back to DEFAULT for unlisted codes."""
    if state in rate_table:
        return rate_table[state]
    logger.debug("No rate for %s, using %s", state, DEFAULT_RATE_KEY)
    return rate_table[DEFAULT_RATE_KEY]


# ---------------------------------------------------------------------------
# IFTA chain
# ---------------------------------------------------------------------------

def round_half_up(value: float, places: int) -> float:
    """Round the exact binary value half-up, like JavaScript toFixed()."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def aggregate_jurisdictions(trips: Iterable[Trip]) -> dict[str, JurisdictionTotals]:
    """Fold every breakdown entry into per-state miles and fuel purchased."""
    miles: dict[str, float] = {}
    fuel: dict[str, float] = {}
    for trip in trips:
        for entry in trip.breakdown:
            miles[entry.state] = miles.get(entry.state, 0) + entry.miles
            fuel[entry.state] = fuel.get(entry.state, 0) + entry.fuel
    return {
        state: JurisdictionTotals(miles=miles[state], fuel_purchased=fuel[state])
        for state in miles
    }


def reduce_fleet(trips: Iterable[Trip]) -> FleetSummary:
    """Fleet totals and the single fleet-wide MPG.

    Steps run in IFTA order: TM, then FC (diesel only), then MPG. The MPG is
    rounded to 4 decimals and that rounded value feeds every jurisdiction.
    `estimated_tax` is left at 0 here; see `compute_fleet_summary`.
    """
    trips = list(trips)
    total_distance = sum(trip.total_miles for trip in trips)
    total_fuel = sum(trip.total_fuel for trip in trips)
    raw_mpg = total_distance / total_fuel if total_fuel > 0 else 0
    average_mpg = round_half_up(raw_mpg, MPG_DECIMALS)
    logger.debug(
        "Fleet chain: TM=%s FC=%s MPG=%s (raw %s)",
        total_distance, total_fuel, average_mpg, raw_mpg,
    )
    return FleetSummary(
        total_distance=total_distance,
        total_fuel=total_fuel,
        average_mpg=average_mpg,
    )


def liability_row(
    state: str,
    totals: JurisdictionTotals,
    average_mpg: float,
    rate_table: Mapping[str, float],
) -> TaxLiabilityRow:
    rate = rate_for(state, rate_table)
    fuel_consumed = totals.miles / (average_mpg or 1)
    tax_due = fuel_consumed * rate
    tax_paid_at_pump = totals.fuel_purchased * rate
    return TaxLiabilityRow(
        state=state,
        miles=totals.miles,
        fuel_purchased=totals.fuel_purchased,
        fuel_consumed=fuel_consumed,
        tax_rate=rate,
        tax_due=tax_due,
        tax_paid_at_pump=tax_paid_at_pump,
        net_tax=tax_due - tax_paid_at_pump,
    )


def compute_tax_liability_rows(
    trips: Iterable[Trip], rate_table: Mapping[str, float],
) -> list[TaxLiabilityRow]:
    """Per-jurisdiction liability, sorted by descending miles."""
    trips = list(trips)
    mpg = reduce_fleet(trips).average_mpg
    rows = [
        liability_row(state, totals, mpg, rate_table)
        for state, totals in aggregate_jurisdictions(trips).items()
    ]
    rows.sort(key=lambda r: r.miles, reverse=True)
    return rows


def compute_fleet_summary(
    trips: Iterable[Trip], rate_table: Mapping[str, float],
) -> FleetSummary:
    """Fleet snapshot whose estimated tax is the sum of every row's net tax."""
    trips = list(trips)
    fleet = reduce_fleet(trips)
    rows = compute_tax_liability_rows(trips, rate_table)
    return FleetSummary(
        total_distance=fleet.total_distance,
        total_fuel=fleet.total_fuel,
        average_mpg=fleet.average_mpg,
        estimated_tax=sum(row.net_tax for row in rows),
    )


# ---------------------------------------------------------------------------
# Worksheet view
# ---------------------------------------------------------------------------

def worksheet_rows(
    rows: Sequence[TaxLiabilityRow],
    jurisdictions: Sequence[str] = US_STATES,
    rate_table: Mapping[str, float] | None = None,
) -> list[WorksheetRow]:
    """One line per listed jurisdiction, zero-filled where nothing happened.

    Jurisdictions with rows but outside `jurisdictions` (provinces, typos)
    follow the listed ones in row order, so the lines always add up to
    `worksheet_totals`.
    """
    by_state = {row.state: row for row in rows}
    lines = []
    for state in jurisdictions:
        row = by_state.get(state)
        if row is None:
            rate = rate_for(state, rate_table) if rate_table else 0.0
            row = TaxLiabilityRow(state, 0.0, 0.0, 0.0, rate, 0.0, 0.0, 0.0)
        active = row.miles > 0 or row.fuel_purchased > 0
        lines.append(WorksheetRow(state=state, active=active, row=row))
    listed = set(jurisdictions)
    for row in rows:
        if row.state not in listed:
            active = row.miles > 0 or row.fuel_purchased > 0
            lines.append(WorksheetRow(state=row.state, active=active, row=row))
    return lines


def worksheet_totals(rows: Sequence[TaxLiabilityRow], summary: FleetSummary) -> dict:
    fuel_consumed = (
        summary.total_distance / summary.average_mpg
        if summary.total_fuel > 0 and summary.average_mpg > 0
        else 0.0
    )
    return {
        "Total miles (TM)": summary.total_distance,
        "Fuel consumed (FJ)": fuel_consumed,
        "Tax due (TD)": sum(r.tax_due for r in rows),
        "Fuel purchased (FC)": summary.total_fuel,
        "Paid at pump (PP)": sum(r.tax_paid_at_pump for r in rows),
        "Net tax": summary.estimated_tax,
    }


def format_currency(value: float) -> str:
    """$1,234.56 for liabilities, ($1,234.56) for credits."""
    if value < 0:
        return f"(${abs(value):,.2f})"
    return f"${value:,.2f}"
