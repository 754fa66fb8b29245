from datetime import date

import pytest

from importer import (
    MOCK_FUEL_REPORT,
    MOCK_MILEAGE_REPORT,
    FuelRecord,
    ImportRecordError,
    MileageRecord,
    build_imported_trip,
    simulate_report_import,
)
from trips import JurisdictionEntry

TODAY = date(2026, 4, 1)


def test_one_trip_per_import() -> None:
    trip = build_imported_trip(
        [{"state": "NY", "miles": 100}, {"state": "PA", "miles": 50}],
        [{"state": "PA", "fuel": 20}, {"state": "NJ", "fuel": 5}],
        "  TRK-104 ",
        today=TODAY,
        now_ms=1767225600000,
    )

    assert trip.id == "IMP-1767225600000"
    assert trip.date == "2026-04-01"
    assert trip.truck_id == "TRK-104"
    assert trip.odometer_start == 0
    assert trip.odometer_end == trip.total_miles == 150
    assert trip.total_fuel == 25
    assert trip.breakdown == (
        JurisdictionEntry("NY", 100, 0),
        JurisdictionEntry("PA", 50, 20),
        JurisdictionEntry("NJ", 0, 5),
    )


def test_duplicate_state_first_record_wins_in_breakdown() -> None:
    trip = build_imported_trip(
        [{"state": "OH", "miles": 10}, {"state": "OH", "miles": 30}],
        [],
        "TRK-101",
        today=TODAY,
        now_ms=0,
    )
    assert trip.breakdown == (JurisdictionEntry("OH", 10, 0),)
    assert trip.total_miles == 40


def test_records_accept_typed_and_loose_input() -> None:
    trip = build_imported_trip(
        [MileageRecord("KY", 12.5), {"state": "tn", "miles": "7.5"}],
        [FuelRecord("KY", 3)],
        "TRK-101",
        today=TODAY,
        now_ms=0,
    )
    assert [e.state for e in trip.breakdown] == ["KY", "TN"]
    assert trip.total_miles == 20


@pytest.mark.parametrize("record", [{"state": "NY"}, {"state": "NY", "miles": None}, {"state": "NY", "miles": ""}])
def test_missing_quantity_defaults_to_zero(record) -> None:
    assert MileageRecord.from_mapping(record) == MileageRecord("NY", 0.0)


@pytest.mark.parametrize(
    "record",
    [
        {"miles": 10},
        {"state": "", "miles": 10},
        {"state": "NY", "miles": "ten"},
        {"state": "NY", "miles": -1},
        {"state": "NY", "miles": "inf"},
        {"state": "NY", "miles": 1e400},
    ],
)
def test_malformed_records_rejected(record) -> None:
    with pytest.raises(ImportRecordError):
        MileageRecord.from_mapping(record)


def test_fuel_record_from_mapping() -> None:
    assert FuelRecord.from_mapping({"state": "wi", "fuel": 113.89}) == FuelRecord("WI", 113.89)


def test_truck_number_required() -> None:
    with pytest.raises(ImportRecordError):
        build_imported_trip(MOCK_MILEAGE_REPORT, MOCK_FUEL_REPORT, "   ")


def test_simulated_import_uses_mock_reports() -> None:
    trip = simulate_report_import(["eld_q1.pdf"], ["fuel_jan.pdf", "fuel_feb.pdf"], "TRK-103")

    assert trip.id.startswith("IMP-")
    assert trip.truck_id == "TRK-103"
    assert [e.state for e in trip.breakdown] == [r["state"] for r in MOCK_MILEAGE_REPORT]
    assert trip.total_miles == pytest.approx(sum(r["miles"] for r in MOCK_MILEAGE_REPORT))
    assert trip.total_fuel == pytest.approx(sum(r["fuel"] for r in MOCK_FUEL_REPORT))
    by_state = {e.state: e for e in trip.breakdown}
    assert by_state["MD"].fuel == 0
    assert by_state["AL"].fuel == pytest.approx(250.12)


@pytest.mark.parametrize("mileage, fuel", [([], ["f.pdf"]), (["m.pdf"], [])])
def test_simulated_import_needs_both_reports(mileage, fuel) -> None:
    with pytest.raises(ImportRecordError):
        simulate_report_import(mileage, fuel, "TRK-101")


@pytest.mark.parametrize("record", [None, ("NY", 10), "NY"])
def test_non_mapping_record_rejected(record) -> None:
    with pytest.raises(ImportRecordError):
        MileageRecord.from_mapping(record)
    with pytest.raises(ImportRecordError):
        build_imported_trip([record], [], "TRK-101", today=TODAY, now_ms=0)


def test_infinite_fuel_never_reaches_the_engine() -> None:
    with pytest.raises(ImportRecordError):
        build_imported_trip(
            [{"state": "NY", "miles": 100}],
            [{"state": "NY", "fuel": "inf"}],
            "TRK-101",
            today=TODAY,
            now_ms=0,
        )
