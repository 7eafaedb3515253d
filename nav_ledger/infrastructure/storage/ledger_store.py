"""JSON snapshot storage for the ledger's durable state."""
from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any

from nav_ledger.config import SETTINGS, Settings
from nav_ledger.domain.ledger import Clock, Ledger
from nav_ledger.domain.models import Caller, InvestorRecord, InvestorType, ShareClass

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def _investor_to_dict(record: InvestorRecord) -> dict[str, Any]:
    data = asdict(record)
    data["investor_type"] = record.investor_type.name
    return data


def _investor_from_dict(data: dict[str, Any]) -> InvestorRecord:
    return InvestorRecord(
        investor_type=InvestorType.parse(data.get("investor_type", "NONE")),
        pending_subscription_amount=int(data.get("pending_subscription_amount", 0)),
        shares_owned=int(data.get("shares_owned", 0)),
        share_class_id=int(data.get("share_class_id", 0)),
        pending_redemption_shares=int(data.get("pending_redemption_shares", 0)),
        pending_withdrawal_amount=int(data.get("pending_withdrawal_amount", 0)),
    )


def _share_class_to_dict(share_class: ShareClass) -> dict[str, Any]:
    data = asdict(share_class)
    data["last_calc"] = share_class.last_calc.isoformat()
    return data


def _share_class_from_dict(data: dict[str, Any]) -> ShareClass:
    return ShareClass(
        admin_fee_bps=int(data["admin_fee_bps"]),
        mgmt_fee_bps=int(data["mgmt_fee_bps"]),
        perform_fee_bps=int(data["perform_fee_bps"]),
        share_supply=int(data["share_supply"]),
        share_nav=int(data["share_nav"]),
        last_calc=datetime.fromisoformat(data["last_calc"]),
        accumulated_mgmt_fees=int(data.get("accumulated_mgmt_fees", 0)),
        accumulated_admin_fees=int(data.get("accumulated_admin_fees", 0)),
        accumulated_perform_fees=int(data.get("accumulated_perform_fees", 0)),
        loss_carryforward=int(data.get("loss_carryforward", 0)),
    )


def ledger_to_dict(ledger: Ledger) -> dict[str, Any]:
    addresses = ledger.investor_addresses(Caller(ledger.orchestrator))
    return {
        "version": FORMAT_VERSION,
        "orchestrator": ledger.orchestrator,
        "governance": sorted(ledger.governance),
        "number_of_share_classes": ledger.number_of_share_classes,
        "total_share_supply": ledger.total_share_supply,
        "investor_addresses": list(addresses),
        "investors": {address: _investor_to_dict(ledger.get_investor(address)) for address in addresses},
        "share_classes": [_share_class_to_dict(sc) for sc in ledger.share_classes()],
    }


def ledger_from_dict(
    data: dict[str, Any],
    clock: Clock | None = None,
    settings: Settings | None = None,
) -> Ledger:
    version = int(data.get("version", FORMAT_VERSION))
    if version != FORMAT_VERSION:
        raise ValueError(f"Unsupported ledger snapshot version: {version}")
    share_classes = [_share_class_from_dict(item) for item in data.get("share_classes", [])]
    if int(data.get("number_of_share_classes", len(share_classes))) != len(share_classes):
        raise ValueError("number_of_share_classes does not match stored share classes")
    investors = {str(key): _investor_from_dict(value) for key, value in (data.get("investors") or {}).items()}
    return Ledger.restore(
        orchestrator=str(data["orchestrator"]),
        governance=[str(item) for item in data.get("governance", [])],
        investors=investors,
        investor_addresses=[str(item) for item in data.get("investor_addresses", [])],
        share_classes=share_classes,
        total_share_supply=int(data.get("total_share_supply", 0)),
        clock=clock,
        settings=settings,
    )


def default_ledger_path(settings: Settings | None = None) -> Path:
    return (settings or SETTINGS).data_dir / "ledger.json"


def save_ledger(ledger: Ledger, path: Path | None = None) -> Path:
    target = path or default_ledger_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(ledger_to_dict(ledger), indent=2, sort_keys=True), encoding="utf-8")
    logger.info("Saved ledger snapshot to %s", target)
    return target


def load_ledger(
    path: Path | None = None,
    clock: Clock | None = None,
    settings: Settings | None = None,
) -> Ledger:
    source = path or default_ledger_path(settings)
    data = json.loads(source.read_text(encoding="utf-8"))
    logger.info("Loaded ledger snapshot from %s", source)
    return ledger_from_dict(data, clock=clock, settings=settings)
