"""Streamlit front-end for the fund ledger and NAV runs."""
from __future__ import annotations

import json
from typing import Sequence

import pandas as pd
import streamlit as st

from nav_ledger import (
    CalculateFundNavUseCase,
    Caller,
    NavCalculation,
    NavCalculationContext,
    NavCalculator,
)
from nav_ledger.domain.errors import LedgerError
from nav_ledger.domain.events import AuditTrail
from nav_ledger.domain.ledger import Ledger
from nav_ledger.infrastructure.repositories.sources import (
    ExcelValuationRepository,
    StaticBalanceSource,
    StaticExchangeRateSource,
    StaticValuationSource,
)
from nav_ledger.infrastructure.storage.ledger_store import ledger_from_dict, ledger_to_dict
from nav_ledger.presentation.ledger_report import (
    calculations_to_rows,
    events_to_rows,
    investors_to_rows,
    render_csv,
    render_html,
    share_classes_to_rows,
)


st.set_page_config(page_title="Fund NAV Ledger", layout="wide")
st.title("Fund NAV Ledger")


def calculations_to_dataframe(calculations: Sequence[NavCalculation]) -> pd.DataFrame:
    return pd.DataFrame(calculations_to_rows(calculations))


def run_nav(ledger: Ledger, portfolio_value: int, valuation_bytes: bytes | None, balance: int, rate: int):
    trail = AuditTrail()
    ledger.subscribe(trail)
    if valuation_bytes:
        valuation_source = ExcelValuationRepository(valuation_bytes)
    else:
        valuation_source = StaticValuationSource(portfolio_value)
    context = NavCalculationContext(
        ledger=ledger,
        calculator=NavCalculator(),
        valuation_source=valuation_source,
        balance_source=StaticBalanceSource(balance),
        exchange_rate_source=StaticExchangeRateSource(rate),
        caller=Caller(ledger.orchestrator),
    )
    response = CalculateFundNavUseCase(context).execute()
    return response, trail


if "view" not in st.session_state:
    st.session_state["view"] = "ledger"
if "result" not in st.session_state:
    st.session_state["result"] = None


if st.session_state["view"] == "ledger":
    snapshot_file = st.file_uploader("Upload ledger snapshot", type=["json"])
    if snapshot_file:
        ledger = ledger_from_dict(json.loads(snapshot_file.getvalue().decode("utf-8")))
        caller = Caller(ledger.orchestrator)

        st.subheader("Share classes")
        st.dataframe(pd.DataFrame(share_classes_to_rows(ledger.share_classes())))
        st.caption(
            f"{ledger.number_of_share_classes} classes; total share supply {ledger.total_share_supply}"
        )

        st.subheader("Investors")
        st.dataframe(pd.DataFrame(investors_to_rows(ledger, caller)))

        st.subheader("Run NAV calculation")
        col1, col2, col3 = st.columns(3)
        with col1:
            portfolio_value = st.number_input("Portfolio value (minor units)", min_value=0, step=1, value=0)
            valuation_file = st.file_uploader("...or valuation workbook", type=["xlsx", "csv"])
        with col2:
            balance = st.number_input("Liquid balance", min_value=0, step=1, value=0)
        with col3:
            rate = st.number_input("Exchange rate", min_value=0, step=1, value=0)

        run_btn = st.button("Run NAV")
        if run_btn:
            valuation_bytes = valuation_file.read() if valuation_file else None
            try:
                with st.spinner("Calculating..."):
                    response, trail = run_nav(ledger, int(portfolio_value), valuation_bytes, int(balance), int(rate))
            except (LedgerError, ValueError) as exc:
                st.error(str(exc))
            else:
                st.session_state["result"] = {
                    "response": response,
                    "events": tuple(trail),
                    "snapshot": json.dumps(ledger_to_dict(ledger), indent=2, sort_keys=True),
                }
                st.session_state["view"] = "results"
                st.rerun()
else:
    back_clicked = st.button("← Back", key="back_to_ledger")
    if back_clicked:
        st.session_state["view"] = "ledger"
        st.session_state["result"] = None
        st.rerun()

    result = st.session_state.get("result")
    if not result:
        st.info("No results available. Upload a snapshot and run a NAV calculation first.")
    else:
        response = result["response"]
        st.subheader("Summary")
        st.metric("Gross asset value", response.gross_asset_value)
        st.metric("Classes calculated", len(response.calculations))
        st.metric("Classes skipped", len(response.skipped_classes))

        tabs = st.tabs(["Calculations", "Events"])
        with tabs[0]:
            rows = calculations_to_rows(response.calculations)
            st.dataframe(calculations_to_dataframe(response.calculations))
            st.download_button(
                "Download NAV CSV",
                data=render_csv(rows),
                file_name="nav_run.csv",
                mime="text/csv",
            )
            st.download_button(
                "Download NAV HTML",
                data=render_html(rows).encode("utf-8"),
                file_name="nav_run.html",
                mime="text/html",
            )
        with tabs[1]:
            st.dataframe(pd.DataFrame(events_to_rows(result["events"])))
        st.download_button(
            "Download updated snapshot",
            data=result["snapshot"].encode("utf-8"),
            file_name="ledger.json",
            mime="application/json",
        )
