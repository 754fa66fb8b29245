"""IFTA worksheet audit trail: step-by-step recomputation with formula strings."""

from collections.abc import Mapping, Sequence

import engine
from importer import MOCK_FUEL_REPORT, MOCK_MILEAGE_REPORT, build_imported_trip
from trips import JurisdictionEntry, Trip

# Tolerances for the fiduciary comparison (USD)
MATCH_TOLERANCE = 0.01
CLOSE_TOLERANCE = 1.00


def _trip(trip_id: str, *entries: tuple[str, float, float]) -> Trip:
    breakdown = tuple(JurisdictionEntry(s, m, f) for s, m, f in entries)
    miles = sum(e.miles for e in breakdown)
    return Trip(
        id=trip_id,
        date="2026-01-15",
        truck_id="TRK-101",
        odometer_start=0,
        odometer_end=miles,
        total_miles=miles,
        total_fuel=sum(e.fuel for e in breakdown),
        breakdown=breakdown,
    )


# ---------------------------------------------------------------------------
# Pre-built test scenarios
# ---------------------------------------------------------------------------

SCENARIOS = [
    {
        "name": "A. Single state — NY",
        "cat": "Standard",
        "desc": "One trip, 100 mi / 10 gal in NY: consumed equals purchased",
        "rates": {"NY": 0.10, "DEFAULT": 0.30},
        "trips": [_trip("SC-A1", ("NY", 100, 10))],
    },
    {
        "name": "B. Rounded MPG — PA",
        "cat": "Rounding",
        "desc": "Two trips, 200 mi / 15 gal: MPG 13.3333 leaves a residual cent fraction",
        "rates": {"PA": 0.31, "DEFAULT": 0.30},
        "trips": [
            _trip("SC-B1", ("PA", 120, 9)),
            _trip("SC-B2", ("PA", 80, 6)),
        ],
    },
    {
        "name": "C. Zero-activity jurisdiction",
        "cat": "Edge",
        "desc": "A breakdown line with 0 mi / 0 gal still appears on the worksheet",
        "rates": {"OH": 0.47, "IN": 0.61, "DEFAULT": 0.30},
        "trips": [_trip("SC-C1", ("OH", 300, 50), ("IN", 0, 0))],
    },
    {
        "name": "D. Unlisted jurisdiction",
        "cat": "Edge",
        "desc": "Ontario has no rate of its own and falls back to DEFAULT",
        "rates": {"NY": 0.40, "DEFAULT": 0.30},
        "trips": [_trip("SC-D1", ("NY", 250, 40), ("ON", 150, 0))],
    },
    {
        "name": "E. Imported fuel card statements",
        "cat": "Import",
        "desc": "The mock ELD mileage log and fuel statements, 2026 rate table",
        "rates": None,
        "trips": [
            build_imported_trip(
                MOCK_MILEAGE_REPORT, MOCK_FUEL_REPORT, "TRK-101",
                now_ms=0,
            ),
        ],
    },
]


# ---------------------------------------------------------------------------
# Audit step builders
# ---------------------------------------------------------------------------

def _fmt(v: float) -> str:
    return f"{v:,.2f}"


def audit_fleet_chain(trips: Sequence[Trip]) -> list[tuple]:
    """Audit trail for TM, FC and fleet MPG."""
    total_miles = sum(t.total_miles for t in trips)
    total_fuel = sum(t.total_fuel for t in trips)

    steps = [
        ("Total miles (TM)",
         " + ".join(_fmt(t.total_miles) for t in trips) or "no trips",
         total_miles, "Step 1: sum of trip miles"),
        ("Total fuel (FC)",
         " + ".join(_fmt(t.total_fuel) for t in trips) or "no trips",
         total_fuel, "Step 2: diesel gallons only"),
    ]

    if total_fuel > 0:
        raw_mpg = total_miles / total_fuel
        steps.append(("Fleet MPG (raw)",
                      f"{_fmt(total_miles)} / {_fmt(total_fuel)}",
                      raw_mpg, "Step 3: fleet-wide, computed once"))
    else:
        raw_mpg = 0
        steps.append(("Fleet MPG (raw)",
                      "FC = 0 -> MPG = 0",
                      0.0, ""))

    mpg = engine.round_half_up(raw_mpg, engine.MPG_DECIMALS)
    steps.append(("**Fleet MPG**",
                  f"round({raw_mpg}, {engine.MPG_DECIMALS})",
                  mpg, "Used for every jurisdiction"))
    return steps


def audit_jurisdiction(row: engine.TaxLiabilityRow, average_mpg: float) -> list[tuple]:
    """Audit trail for one worksheet line."""
    divisor = average_mpg or 1
    divisor_note = f"{average_mpg}" if average_mpg else "1 (MPG = 0)"
    return [
        ("Miles (MJ)", row.state, row.miles, ""),
        ("Fuel consumed (FJ)",
         f"{_fmt(row.miles)} / {divisor_note}",
         row.miles / divisor, "FJ = MJ / MPG"),
        ("Tax rate (JT)", f"${row.tax_rate:.4f}/gal", row.tax_rate, ""),
        ("Tax due (TD)",
         f"{row.fuel_consumed:,.4f} x {row.tax_rate:.4f}",
         row.tax_due, "TD = FJ x JT"),
        ("Paid at pump (PP)",
         f"{_fmt(row.fuel_purchased)} x {row.tax_rate:.4f}",
         row.tax_paid_at_pump, "PP = FPJ x JT"),
        (f"**Net tax {row.state}**",
         f"{_fmt(row.tax_due)} - {_fmt(row.tax_paid_at_pump)}",
         row.net_tax, "positive = owed, negative = credit"),
    ]


# ---------------------------------------------------------------------------
# Scenario runner and comparison
# ---------------------------------------------------------------------------

def run_scenario(scenario: Mapping, rate_table: Mapping[str, float]) -> dict:
    """Run the engine on a scenario; its own rates win over `rate_table`."""
    rates = scenario.get("rates") or rate_table
    trips = scenario["trips"]
    rows = engine.compute_tax_liability_rows(trips, rates)
    summary = engine.compute_fleet_summary(trips, rates)
    return {
        "rows": rows,
        "summary": summary,
        "total_distance": summary.total_distance,
        "total_fuel": summary.total_fuel,
        "average_mpg": summary.average_mpg,
        "tax_due": sum(r.tax_due for r in rows),
        "paid_at_pump": sum(r.tax_paid_at_pump for r in rows),
        "estimated_tax": summary.estimated_tax,
    }


def compare_values(engine_val: float, expected: float) -> str:
    """Classify an engine value against an expected one: ok, close or diff."""
    diff = abs(engine_val - expected)
    if diff <= MATCH_TOLERANCE:
        return "ok"
    if diff <= CLOSE_TOLERANCE:
        return "close"
    return "diff"
