"""Tabular renderings of ledger state and NAV runs."""
from __future__ import annotations

import csv
import io
from typing import Sequence

from nav_ledger.config import SETTINGS
from nav_ledger.domain.events import LedgerEvent
from nav_ledger.domain.ledger import Ledger
from nav_ledger.domain.models import Caller, ShareClass
from nav_ledger.domain.results import NavCalculation


def format_fixed(value: int, scale: int = SETTINGS.price_scale) -> str:
    """Render a fixed-point integer with its implied decimals."""
    digits = len(str(scale)) - 1
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), scale)
    if digits == 0:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{frac:0{digits}d}"


def share_classes_to_rows(share_classes: Sequence[ShareClass]) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for share_class_id, item in enumerate(share_classes):
        rows.append(
            {
                "share_class": str(share_class_id),
                "admin_fee_bps": str(item.admin_fee_bps),
                "mgmt_fee_bps": str(item.mgmt_fee_bps),
                "perform_fee_bps": str(item.perform_fee_bps),
                "share_supply": format_fixed(item.share_supply, SETTINGS.share_scale),
                "share_nav": format_fixed(item.share_nav, SETTINGS.price_scale),
                "last_calc": item.last_calc.isoformat(),
                "accumulated_mgmt_fees": str(item.accumulated_mgmt_fees),
                "accumulated_admin_fees": str(item.accumulated_admin_fees),
                "accumulated_perform_fees": str(item.accumulated_perform_fees),
                "loss_carryforward": str(item.loss_carryforward),
            }
        )
    return rows


def investors_to_rows(ledger: Ledger, caller: Caller) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for investor_id in ledger.investor_addresses(caller):
        record = ledger.get_investor(investor_id)
        rows.append(
            {
                "investor": investor_id,
                "investor_type": record.investor_type.name,
                "share_class": str(record.share_class_id),
                "shares_owned": format_fixed(record.shares_owned, SETTINGS.share_scale),
                "pending_subscription_amount": str(record.pending_subscription_amount),
                "pending_redemption_shares": format_fixed(record.pending_redemption_shares, SETTINGS.share_scale),
                "pending_withdrawal_amount": str(record.pending_withdrawal_amount),
            }
        )
    return rows


def calculations_to_rows(calculations: Sequence[NavCalculation]) -> list[dict[str, str]]:
    return [{key: str(value) for key, value in item.summary().items()} for item in calculations]


def events_to_rows(events: Sequence[LedgerEvent]) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for event in events:
        changed = event.changed_fields()
        rows.append(
            {
                "timestamp": event.timestamp.isoformat(),
                "kind": event.kind,
                "subject": event.subject,
                "changed": ", ".join(changed),
                "before": "; ".join(f"{key}={event.before.get(key, '')}" for key in changed),
                "after": "; ".join(f"{key}={event.after.get(key, '')}" for key in changed),
                "note": event.note,
            }
        )
    return rows


def render_csv(rows: Sequence[dict[str, str]]) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(rows[0].keys()) if rows else [])
    if rows:
        writer.writeheader()
        writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def render_html(rows: Sequence[dict[str, str]], empty_message: str = "Nothing to show.") -> str:
    if not rows:
        return f"<p>{empty_message}</p>"
    header = "".join(f"<th>{col}</th>" for col in rows[0].keys())
    body_parts = []
    for row in rows:
        body_parts.append("<tr>" + "".join(f"<td>{value}</td>" for value in row.values()) + "</tr>")
    body_html = "".join(body_parts)
    return f"<table><thead><tr>{header}</tr></thead><tbody>{body_html}</tbody></table>"
