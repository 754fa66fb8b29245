import pytest

import audit
import engine

RATES = {"NY": 0.40, "DEFAULT": 0.30}


def _scenario(prefix: str) -> dict:
    return next(s for s in audit.SCENARIOS if s["name"].startswith(prefix))


def test_fleet_chain_steps() -> None:
    steps = audit.audit_fleet_chain(_scenario("B.")["trips"])
    labels = [s[0] for s in steps]
    assert labels == ["Total miles (TM)", "Total fuel (FC)", "Fleet MPG (raw)", "**Fleet MPG**"]
    assert steps[0][2] == 200
    assert steps[1][2] == 15
    assert steps[2][2] == pytest.approx(13.333333333)
    assert steps[3][2] == 13.3333


def test_fleet_chain_without_fuel() -> None:
    trips = _scenario("D.")["trips"]
    no_fuel = [t.__class__(**{**t.__dict__, "total_fuel": 0}) for t in trips]
    steps = audit.audit_fleet_chain(no_fuel)
    assert steps[2][1] == "FC = 0 -> MPG = 0"
    assert steps[-1][2] == 0


def test_jurisdiction_steps_match_engine_row() -> None:
    result = audit.run_scenario(_scenario("B."), RATES)
    (row,) = result["rows"]
    steps = audit.audit_jurisdiction(row, result["average_mpg"])

    assert steps[1][2] == row.fuel_consumed
    assert steps[3][2] == row.tax_due
    assert steps[4][2] == row.tax_paid_at_pump
    assert steps[-1][2] == row.net_tax


def test_jurisdiction_steps_with_zero_mpg() -> None:
    row = engine.liability_row("NY", engine.JurisdictionTotals(50, 0), 0.0, RATES)
    steps = audit.audit_jurisdiction(row, 0.0)
    assert steps[1][1] == "50.00 / 1 (MPG = 0)"
    assert steps[1][2] == 50


def test_scenario_rates_override_session_table() -> None:
    result = audit.run_scenario(_scenario("A."), RATES)
    (row,) = result["rows"]
    assert row.tax_rate == 0.10
    assert result["estimated_tax"] == pytest.approx(0.0)


def test_unlisted_jurisdiction_scenario_uses_default() -> None:
    result = audit.run_scenario(_scenario("D."), RATES)
    rates = {r.state: r.tax_rate for r in result["rows"]}
    assert rates == {"NY": 0.40, "ON": 0.30}


def test_import_scenario_uses_given_rate_table() -> None:
    result = audit.run_scenario(_scenario("E."), RATES)
    assert len(result["rows"]) == 17
    assert {r.tax_rate for r in result["rows"]} == {0.40, 0.30}


@pytest.mark.parametrize("scenario", audit.SCENARIOS, ids=lambda s: s["name"][:2])
def test_every_scenario_totals_are_consistent(scenario) -> None:
    result = audit.run_scenario(scenario, RATES)
    assert result["estimated_tax"] == sum(r.net_tax for r in result["rows"])
    assert result["estimated_tax"] == pytest.approx(result["tax_due"] - result["paid_at_pump"])


@pytest.mark.parametrize(
    "engine_val, expected, verdict",
    [(100.0, 100.005, "ok"), (100.0, 100.5, "close"), (100.0, 102.0, "diff")],
)
def test_compare_values(engine_val, expected, verdict) -> None:
    assert audit.compare_values(engine_val, expected) == verdict
