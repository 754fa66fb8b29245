import csv
import io

import app
import engine
from trips import JurisdictionEntry, Trip

RATES = {"NY": 0.40, "PA": 0.785, "DEFAULT": 0.30}

TRIPS = [
    Trip(
        id="t1",
        date="2026-05-04",
        truck_id="TRK-101",
        odometer_start=0,
        odometer_end=600,
        total_miles=600,
        total_fuel=100,
        breakdown=(JurisdictionEntry("NY", 400, 100), JurisdictionEntry("PA", 200, 0)),
    ),
]


def test_liability_csv_has_rows_and_total() -> None:
    rows = engine.compute_tax_liability_rows(TRIPS, RATES)
    summary = engine.compute_fleet_summary(TRIPS, RATES)
    lines = app.liability_csv(rows, summary).splitlines()

    assert lines[0].startswith("state,miles,")
    assert lines[1].startswith("NY,400.00,100.00,")
    assert lines[2].startswith("PA,200.00,0.00,")
    assert lines[-1].startswith("TOTAL,600.00,100.00,")
    assert lines[-1].endswith(f"{summary.estimated_tax:.2f}")


def test_mileage_chart_colours_liability_and_credit() -> None:
    rows = engine.compute_tax_liability_rows(TRIPS, RATES)
    fig = app.mileage_chart(rows)
    bar = fig.data[0]

    assert list(bar.x) == ["NY", "PA"]
    # NY: 66.67 gal consumed vs 100 bought -> credit; PA: owed
    assert list(bar.marker.color) == ["#1b273b", "#ef4444"]


def test_liability_table_formats_credit() -> None:
    rows = engine.compute_tax_liability_rows(TRIPS, RATES)
    table = app.liability_table(rows)
    assert table[0]["Jurisdiction"] == "NY"
    assert table[0]["Net tax"].startswith("($")
    assert table[1]["Rate (JT)"] == "$0.7850"


def test_liability_csv_quotes_awkward_state_codes() -> None:
    rates = {"DEFAULT": 0.30}
    trips = [
        Trip(
            id="t2",
            date="2026-05-04",
            truck_id="TRK-101",
            odometer_start=0,
            odometer_end=100,
            total_miles=100,
            total_fuel=10,
            breakdown=(JurisdictionEntry("N,Y", 100, 10),),
        ),
    ]
    rows = engine.compute_tax_liability_rows(trips, rates)
    summary = engine.compute_fleet_summary(trips, rates)
    parsed = list(csv.reader(io.StringIO(app.liability_csv(rows, summary))))

    assert all(len(line) == 8 for line in parsed)
    assert parsed[1][0] == "N,Y"
    assert parsed[-1][0] == "TOTAL"
