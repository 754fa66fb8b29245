"""IFTA Audit & Verification — Step-by-step worksheet transparency."""

import sys
from pathlib import Path

import streamlit as st

# Allow importing from parent directory
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import app  # noqa: E402
import audit  # noqa: E402
import engine  # noqa: E402

# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------

def render_steps(steps: list[tuple], title: str, expanded: bool = True):
    """Render audit steps as a markdown table inside an expander."""
    with st.expander(title, expanded=expanded):
        header = "| # | Step | Formula | Result | Note |\n"
        header += "|--:|------|---------|-------:|------|\n"
        rows = ""
        for i, (step, formula, result, ref) in enumerate(steps, 1):
            if isinstance(result, float):
                res_str = f"{result:,.4f}"
            else:
                res_str = str(result)
            # Escape pipes in formula
            formula_safe = formula.replace("|", "\\|")
            rows += f"| {i} | {step} | {formula_safe} | {res_str} | {ref} |\n"
        st.markdown(header + rows)


def render_comparison(results: dict, key_prefix: str = ""):
    """Render comparison table with expected value inputs."""
    st.subheader("Fiduciary Comparison")
    st.caption(
        "Enter the figures from your filed return. "
        "Green = match (±0.01), Orange = close (±1.00), Red = mismatch."
    )

    comparison_keys = [
        ("Total miles (TM)", "total_distance"),
        ("Total fuel (FC)", "total_fuel"),
        ("Fleet MPG", "average_mpg"),
        ("Tax due (TD)", "tax_due"),
        ("Paid at pump (PP)", "paid_at_pump"),
        ("Net tax", "estimated_tax"),
    ]

    cols = st.columns([3, 2, 2, 2, 1])
    cols[0].markdown("**Result**")
    cols[1].markdown("**Engine**")
    cols[2].markdown("**Expected**")
    cols[3].markdown("**Diff**")
    cols[4].markdown("**OK?**")

    for label, key in comparison_keys:
        engine_val = results.get(key, 0)
        cols = st.columns([3, 2, 2, 2, 1])
        cols[0].write(label)
        cols[1].write(f"**{engine_val:,.4f}**")
        expected = cols[2].number_input(
            f"exp_{key}",
            value=0.0,
            step=0.01,
            format="%.4f",
            label_visibility="collapsed",
            key=f"{key_prefix}exp_{key}",
        )
        if expected != 0:
            cols[3].write(f"{engine_val - expected:+,.4f}")
            verdict = audit.compare_values(engine_val, expected)
            if verdict == "ok":
                cols[4].markdown(":green[OK]")
            elif verdict == "close":
                cols[4].markdown(":orange[~]")
            else:
                cols[4].markdown(":red[DIFF]")
        else:
            cols[3].write("—")
            cols[4].write("—")


# ---------------------------------------------------------------------------
# Main page
# ---------------------------------------------------------------------------

def main():
    st.set_page_config(page_title="Audit — IFTA Pro", layout="wide")
    st.title("IFTA Audit & Verification")
    st.caption("Step-by-step recomputation of the IFTA chain for each jurisdiction")

    rate_table = app.load_rates()
    store = app.get_store()

    # ---- Scenario selector ----
    scenario_names = ["Current session"] + [s["name"] for s in audit.SCENARIOS]
    chosen = st.selectbox("Scenario", scenario_names)

    if chosen == "Current session":
        scenario = {"name": chosen, "rates": None, "trips": list(store.trips)}
        if not scenario["trips"]:
            st.info("The session has no trips yet. Pick a pre-built scenario or add trips on the dashboard.")
            return
    else:
        scenario = next(s for s in audit.SCENARIOS if s["name"] == chosen)
        st.info(f"**{scenario['cat']}** — {scenario['desc']}")

    results = audit.run_scenario(scenario, rate_table)
    summary = results["summary"]

    # ---- Summary metrics ----
    st.divider()
    m1, m2, m3, m4 = st.columns(4)
    m1.metric("TM", f"{summary.total_distance:,.2f} mi")
    m2.metric("FC", f"{summary.total_fuel:,.2f} gal")
    m3.metric("Fleet MPG", f"{summary.average_mpg:.4f}")
    m4.metric("Net tax", engine.format_currency(summary.estimated_tax))

    # ---- Step-by-step audit ----
    st.divider()
    st.subheader("Step-by-step calculation")

    render_steps(audit.audit_fleet_chain(scenario["trips"]),
                 "1. Fleet chain — TM, FC, Fleet MPG")

    for i, row in enumerate(results["rows"], 2):
        render_steps(
            audit.audit_jurisdiction(row, summary.average_mpg),
            f"{i}. {row.state} — {row.miles:,.2f} mi, net {engine.format_currency(row.net_tax)}",
            expanded=False,
        )

    # ---- Comparison ----
    st.divider()
    render_comparison(results, key_prefix=f"sc_{chosen[:10]}_")

    # ---- Batch test runner ----
    st.divider()
    st.subheader("Batch test runner")

    if st.button(f"Run all {len(audit.SCENARIOS)} scenarios", type="primary"):
        rows = []
        for s in audit.SCENARIOS:
            r = audit.run_scenario(s, rate_table)
            rows.append({
                "Scenario": s["name"],
                "Status": s["cat"],
                "Jurisdictions": len(r["rows"]),
                "TM": f"{r['total_distance']:,.2f}",
                "FC": f"{r['total_fuel']:,.2f}",
                "MPG": f"{r['average_mpg']:.4f}",
                "Tax due": f"{r['tax_due']:,.2f}",
                "Paid at pump": f"{r['paid_at_pump']:,.2f}",
                "Net tax": engine.format_currency(r["estimated_tax"]),
            })
        st.dataframe(rows, use_container_width=True, hide_index=True)
        st.success(f"All {len(audit.SCENARIOS)} scenarios computed successfully.")


if __name__ == "__main__":
    main()
