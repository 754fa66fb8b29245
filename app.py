"""IFTA Fuel Tax Calculator - fleet dashboard"""

import csv
import io
import logging
from datetime import date

import plotly.graph_objects as go
import streamlit as st

import engine
from importer import ImportRecordError, simulate_report_import
from trips import (
    MOCK_TRUCKS,
    JurisdictionEntry,
    TripStore,
    TripValidationError,
    mileage_mismatch,
    miles_difference,
    new_manual_trip,
    trip_mpg,
)

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

VIEWS = ["Dashboard", "Import Reports", "Add Manual Trip"]

# ---------------------------------------------------------------------------
# Data loading
# ---------------------------------------------------------------------------

@st.cache_data
def load_rates() -> dict[str, float]:
    """Return {state_code: diesel_rate} with the DEFAULT fallback."""
    return engine.load_rate_table()


def get_store() -> TripStore:
    """The session's Trip Store; the engine only ever sees its snapshot."""
    if "trip_store" not in st.session_state:
        st.session_state.trip_store = TripStore()
    return st.session_state.trip_store


# ---------------------------------------------------------------------------
# Charts & tables
# ---------------------------------------------------------------------------

def mileage_chart(rows: list[engine.TaxLiabilityRow]) -> go.Figure:
    """Miles by jurisdiction, red where tax is owed, navy where it is a credit."""
    fig = go.Figure(
        go.Bar(
            x=[r.state for r in rows],
            y=[r.miles for r in rows],
            marker={"color": ["#ef4444" if r.net_tax > 0 else "#1b273b" for r in rows]},
            text=[engine.format_currency(r.net_tax) for r in rows],
            hovertemplate="%{x}: %{y:,.2f} mi<br>Net tax %{text}<extra></extra>",
        )
    )
    fig.update_layout(
        title="Mileage activity by jurisdiction (MJ)",
        showlegend=False,
        height=320,
        yaxis_title="Miles",
    )
    return fig


def liability_table(rows: list[engine.TaxLiabilityRow]) -> list[dict]:
    return [
        {
            "Jurisdiction": r.state,
            "Miles (MJ)": f"{r.miles:,.2f}",
            "Fuel purchased (FPJ)": f"{r.fuel_purchased:,.2f}",
            "Fuel consumed (FJ)": f"{r.fuel_consumed:.2f}",
            "Rate (JT)": f"${r.tax_rate:.4f}",
            "Tax due (TD)": f"${r.tax_due:.2f}",
            "Paid at pump (PP)": f"${r.tax_paid_at_pump:.2f}",
            "Net tax": engine.format_currency(r.net_tax),
        }
        for r in rows
    ]


def liability_csv(rows: list[engine.TaxLiabilityRow], summary: engine.FleetSummary) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow([
        "state", "miles", "fuel_purchased", "fuel_consumed", "tax_rate",
        "tax_due", "tax_paid_at_pump", "net_tax",
    ])
    for r in rows:
        writer.writerow([
            r.state, f"{r.miles:.2f}", f"{r.fuel_purchased:.2f}", f"{r.fuel_consumed:.4f}",
            f"{r.tax_rate:.4f}", f"{r.tax_due:.2f}", f"{r.tax_paid_at_pump:.2f}", f"{r.net_tax:.2f}",
        ])
    writer.writerow([
        "TOTAL", f"{summary.total_distance:.2f}", f"{summary.total_fuel:.2f}", "", "",
        f"{sum(r.tax_due for r in rows):.2f}",
        f"{sum(r.tax_paid_at_pump for r in rows):.2f}",
        f"{summary.estimated_tax:.2f}",
    ])
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

def render_dashboard(store: TripStore, rates: dict[str, float]):
    trips = store.trips
    summary = engine.compute_fleet_summary(trips, rates)
    rows = engine.compute_tax_liability_rows(trips, rates)

    st.title("IFTA Filing Summary")
    st.caption(
        "Calculations follow the standard IFTA chain: "
        "TM → FC → Fleet MPG → MJ/MPG (FJ) → (FJ×JT) − (FPJ×JT)."
    )

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Miles (TM)", f"{summary.total_distance:,.2f} mi")
    col2.metric("Total Fuel (FC)", f"{summary.total_fuel:,.2f} gal")
    col3.metric("Fleet MPG", f"{summary.average_mpg:.4f}")
    col4.metric("Net tax due / (credit)", engine.format_currency(summary.estimated_tax))

    if not trips:
        st.info("No trips yet. Import reports or add a manual trip to start the worksheet.")
        return

    st.subheader("Tax liability by jurisdiction")
    st.dataframe(liability_table(rows), use_container_width=True, hide_index=True)
    st.write(f"**Total net tax**: {engine.format_currency(summary.estimated_tax)}")

    st.plotly_chart(mileage_chart(rows), use_container_width=True)

    st.download_button(
        "Download worksheet (CSV)",
        liability_csv(rows, summary),
        file_name=f"ifta_worksheet_{date.today().isoformat()}.csv",
        mime="text/csv",
    )

    with st.expander("Spreadsheet view — all jurisdictions"):
        st.caption("IFTA member states first, then any other jurisdiction in the trip log.")
        sheet = engine.worksheet_rows(rows, rate_table=rates)
        st.dataframe(
            [
                {
                    "Jurisdiction": line.state,
                    "Active": "●" if line.active else "",
                    "Miles (MJ)": f"{line.row.miles:,.2f}",
                    "Fuel consumed (FJ)": f"{line.row.fuel_consumed:.2f}",
                    "Rate (JT)": f"${line.row.tax_rate:.4f}" if line.active else "-",
                    "Tax due (TD)": f"${line.row.tax_due:.2f}",
                    "Fuel purchased (FPJ)": f"{line.row.fuel_purchased:,.2f}",
                    "Paid at pump (PP)": f"${line.row.tax_paid_at_pump:.2f}",
                    "Net tax": engine.format_currency(line.row.net_tax),
                }
                for line in sheet
            ],
            use_container_width=True,
            hide_index=True,
        )
        for label, value in engine.worksheet_totals(rows, summary).items():
            if label in ("Tax due (TD)", "Paid at pump (PP)", "Net tax"):
                st.write(f"**{label}**: {engine.format_currency(value)}")
            else:
                st.write(f"**{label}**: {value:,.2f}")

    with st.expander(f"Trip log ({len(trips)})"):
        for trip in trips:
            diff = mileage_mismatch(trip)
            flag = "" if diff is None else f" ⚠️ breakdown off by {diff:,.2f} mi"
            st.write(
                f"**{trip.id}** · {trip.date} · {trip.truck_id} · "
                f"{trip.total_miles:,.2f} mi · {trip.total_fuel:,.2f} gal · "
                f"{len(trip.breakdown)} jurisdictions{flag}"
            )


def render_import(store: TripStore):
    st.title("Import Reports")
    st.caption(
        "Process multi-week fuel card statements and ELD mileage logs "
        "simultaneously for exact audit reconciliation."
    )
    left, right = st.columns(2)
    with left:
        mileage_files = st.file_uploader(
            "ELD mileage logs", accept_multiple_files=True, key="mileage_files",
        )
    with right:
        fuel_files = st.file_uploader(
            "Fuel card statements", accept_multiple_files=True, key="fuel_files",
        )
    truck_number = st.text_input("Truck number", placeholder="TRK-101")

    ready = bool(mileage_files) and bool(fuel_files) and bool(truck_number.strip())
    if st.button("Process reports", type="primary", disabled=not ready):
        try:
            trip = simulate_report_import(
                [f.name for f in mileage_files],
                [f.name for f in fuel_files],
                truck_number,
            )
        except ImportRecordError as exc:
            st.error(str(exc))
            return
        store.add(trip)
        st.success(
            f"Imported {trip.id}: {len(trip.breakdown)} jurisdictions, "
            f"{trip.total_miles:,.2f} mi, {trip.total_fuel:,.2f} gal."
        )


def render_add_trip(store: TripStore):
    st.title("Add Manual Trip")

    c1, c2, c3, c4 = st.columns(4)
    trip_date = c1.date_input("Date", value=date.today())
    truck_id = c2.selectbox(
        "Truck", [t["id"] for t in MOCK_TRUCKS],
        format_func=lambda tid: next(f"{t['id']} ({t['name']})" for t in MOCK_TRUCKS if t["id"] == tid),
    )
    odo_start = c3.number_input("Odometer start", min_value=0.0, value=0.0, step=1.0)
    odo_end = c4.number_input("Odometer end", min_value=0.0, value=0.0, step=1.0)
    if 0 < odo_end <= odo_start:
        st.warning("Odometer end must be greater than start")

    st.subheader("Jurisdiction breakdown")
    if "breakdown_lines" not in st.session_state:
        st.session_state.breakdown_lines = 1
    b1, b2 = st.columns([1, 5])
    if b1.button("Add jurisdiction"):
        st.session_state.breakdown_lines += 1
    if b2.button("Remove last", disabled=st.session_state.breakdown_lines <= 1):
        st.session_state.breakdown_lines -= 1

    entries = []
    for i in range(st.session_state.breakdown_lines):
        s, m, f = st.columns(3)
        default_state = "NY" if i == 0 else "PA"
        state = s.selectbox(
            "State", engine.US_STATES,
            index=engine.US_STATES.index(default_state), key=f"bd_state_{i}",
        )
        miles = m.number_input("Miles", min_value=0.0, value=0.0, key=f"bd_miles_{i}")
        fuel = f.number_input("Fuel (gal)", min_value=0.0, value=0.0, key=f"bd_fuel_{i}")
        entries.append(JurisdictionEntry(state=state, miles=miles, fuel=fuel))

    odo_miles = max(0.0, odo_end - odo_start)
    breakdown_miles = sum(e.miles for e in entries)
    m1, m2, m3 = st.columns(3)
    m1.metric("Odometer miles", f"{odo_miles:,.2f} mi")
    m2.metric("Breakdown miles", f"{breakdown_miles:,.2f} mi")
    m3.metric("Trip MPG", f"{trip_mpg(entries):.2f}")
    if miles_difference(odo_miles, breakdown_miles) is None:
        st.success("Odometer and jurisdiction miles match.")
    else:
        st.warning("Odometer miles do not match the jurisdiction breakdown. The trip can still be saved.")

    if st.button("Save trip", type="primary"):
        try:
            trip = new_manual_trip(
                trip_date.isoformat(), truck_id, odo_start, odo_end, entries,
            )
        except TripValidationError as exc:
            st.error(str(exc))
            return
        store.add(trip)
        st.success(f"Trip {trip.id} saved.")


# ---------------------------------------------------------------------------
# Streamlit UI
# ---------------------------------------------------------------------------

def main():
    st.set_page_config(page_title="IFTA Pro", layout="wide")

    try:
        rates = load_rates()
    except (OSError, engine.RateTableError) as exc:
        logger.error("Could not load rate table: %s", exc)
        st.error(f"Could not load the jurisdiction rate table: {exc}")
        return

    store = get_store()

    with st.sidebar:
        st.header("IFTA Pro")
        view = st.radio("View", VIEWS, label_visibility="collapsed")
        st.caption(f"{len(store)} trip(s) in this session")

    if view == "Import Reports":
        render_import(store)
    elif view == "Add Manual Trip":
        render_add_trip(store)
    else:
        render_dashboard(store, rates)


if __name__ == "__main__":
    main()
