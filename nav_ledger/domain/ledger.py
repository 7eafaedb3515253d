"""The fund ledger: investors, share classes and their access rules."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Sequence

from nav_ledger.config import SETTINGS, Settings

from . import events
from .errors import (
    AlreadyExistsError,
    InvalidArgumentError,
    InvalidClassError,
    InvalidTypeError,
    NonZeroBalanceError,
    NotFoundError,
    SharesOutstandingError,
    UnauthorizedError,
)
from .events import EventListener, LedgerEvent, snapshot
from .models import EMPTY_INVESTOR, Caller, InvestorRecord, InvestorType, ShareClass
from .results import NavCalculation

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


_FEE_BALANCES = (
    "accumulated_mgmt_fees",
    "accumulated_admin_fees",
    "accumulated_perform_fees",
    "loss_carryforward",
)


def _coerce_type(value: InvestorType | int | str) -> InvestorType:
    try:
        return InvestorType.parse(value)
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidTypeError(f"unknown investor type {value!r}") from exc


def _check_nav(share_nav: int) -> None:
    if share_nav <= 0:
        raise InvalidArgumentError(f"share NAV must be positive: {share_nav}")


def _check_non_negative(values: dict[str, int]) -> None:
    for name, value in values.items():
        if value < 0:
            raise InvalidArgumentError(f"{name} cannot be negative: {value}")


def _calculation_fields(share_class: ShareClass) -> dict:
    fields = {name: getattr(share_class, name) for name in _FEE_BALANCES}
    fields["share_nav"] = share_class.share_nav
    fields["last_calc"] = share_class.last_calc.isoformat()
    return fields


class Ledger:
    """Canonical record of investor positions and share classes.

    Mutations are checked against the caller first, then validated, then
    announced to listeners and applied last; a raised error never leaves
    partial state.
    """

    def __init__(
        self,
        orchestrator: str,
        governance: Iterable[str],
        clock: Clock | None = None,
        settings: Settings | None = None,
    ) -> None:
        if not orchestrator:
            raise InvalidArgumentError("orchestrator identity is required")
        self._settings = settings or SETTINGS
        self._clock = clock or (lambda: datetime.now(self._settings.timezone))
        self._orchestrator = orchestrator
        self._governance = frozenset(governance)
        self._investors: dict[str, InvestorRecord] = {}
        self._investor_addresses: list[str] = []
        self._address_positions: dict[str, int] = {}
        self._share_classes: list[ShareClass] = []
        self._total_share_supply = 0
        self._listeners: list[EventListener] = []

    # -- access control -------------------------------------------------

    @property
    def orchestrator(self) -> str:
        return self._orchestrator

    @property
    def governance(self) -> frozenset[str]:
        return self._governance

    def _deny(self, caller: Caller, operation: str) -> None:
        logger.warning("Rejected %s by %s: not authorized", operation, caller.identity)
        raise UnauthorizedError(f"{caller.identity} may not call {operation}")

    def _require_orchestrator(self, caller: Caller, operation: str) -> None:
        if caller.identity != self._orchestrator:
            self._deny(caller, operation)

    def _require_governance(self, caller: Caller, operation: str) -> None:
        if caller.identity not in self._governance:
            self._deny(caller, operation)

    def _require_governance_or_orchestrator(self, caller: Caller, operation: str) -> None:
        if caller.identity not in self._governance and caller.identity != self._orchestrator:
            self._deny(caller, operation)

    def set_orchestrator(self, caller: Caller, new_orchestrator: str) -> None:
        self._require_governance(caller, "set_orchestrator")
        if not new_orchestrator:
            raise InvalidArgumentError("orchestrator identity cannot be empty")
        if new_orchestrator == self._orchestrator:
            raise InvalidArgumentError(f"{new_orchestrator} is already the orchestrator")
        previous = self._orchestrator
        self._emit(
            events.ORCHESTRATOR_CHANGED,
            "orchestrator",
            {"identity": previous},
            {"identity": new_orchestrator},
        )
        self._orchestrator = new_orchestrator
        logger.info("Orchestrator changed from %s to %s", previous, new_orchestrator)

    def now(self) -> datetime:
        return self._clock()

    # -- notifications --------------------------------------------------

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def _emit(self, kind: str, subject: str, before: dict, after: dict, note: str = "") -> None:
        """Notify listeners of a validated change that has not been applied yet.

        A listener that raises aborts the mutation. Listeners already notified
        are not told about the abort.
        """
        event = LedgerEvent(
            kind=kind,
            subject=subject,
            before=before,
            after=after,
            timestamp=self._clock(),
            note=note,
        )
        for listener in self._listeners:
            listener(event)

    # -- investors ------------------------------------------------------

    def get_investor(self, investor_id: str) -> InvestorRecord:
        return self._investors.get(investor_id, EMPTY_INVESTOR)

    def query_investor_type(self, investor_id: str) -> InvestorType:
        return self.get_investor(investor_id).investor_type

    def contains_investor(self, investor_id: str) -> bool:
        return self.get_investor(investor_id).is_onboarded()

    def investor_addresses(self, caller: Caller) -> Sequence[str]:
        self._require_governance_or_orchestrator(caller, "investor_addresses")
        return tuple(self._investor_addresses)

    def add_investor(
        self,
        caller: Caller,
        investor_id: str,
        investor_type: InvestorType | int | str,
        share_class_id: int = 0,
    ) -> InvestorRecord:
        self._require_orchestrator(caller, "add_investor")
        if self.contains_investor(investor_id):
            raise AlreadyExistsError(f"investor {investor_id} is already onboarded")
        kind = _coerce_type(investor_type)
        if kind == InvestorType.NONE:
            raise InvalidTypeError("investor type NONE cannot be onboarded")
        self._check_class(share_class_id)

        record = InvestorRecord(investor_type=kind, share_class_id=share_class_id)
        self._emit(events.INVESTOR_ADDED, investor_id, snapshot(EMPTY_INVESTOR), snapshot(record))
        self._investors[investor_id] = record
        self._address_positions[investor_id] = len(self._investor_addresses)
        self._investor_addresses.append(investor_id)
        logger.info("Onboarded investor %s as %s in class %s", investor_id, kind.name, share_class_id)
        return record

    def remove_investor(self, caller: Caller, investor_id: str) -> None:
        self._require_orchestrator(caller, "remove_investor")
        record = self.get_investor(investor_id)
        if not record.is_onboarded():
            raise NotFoundError(f"investor {investor_id} is not onboarded")
        if record.has_balance():
            raise NonZeroBalanceError(f"investor {investor_id} still holds a balance")

        self._emit(events.INVESTOR_REMOVED, investor_id, snapshot(record), snapshot(EMPTY_INVESTOR))
        index = self._address_positions.pop(investor_id)
        last = self._investor_addresses.pop()
        if last != investor_id:
            self._investor_addresses[index] = last
            self._address_positions[last] = index
        del self._investors[investor_id]
        logger.info("Removed investor %s", investor_id)

    def modify_investor(
        self,
        caller: Caller,
        investor_id: str,
        investor_type: InvestorType | int | str,
        pending_subscription_amount: int,
        shares_owned: int,
        share_class_id: int,
        pending_redemption_shares: int,
        pending_withdrawal_amount: int,
        note: str = "",
    ) -> InvestorRecord:
        self._require_orchestrator(caller, "modify_investor")
        before = self.get_investor(investor_id)
        if not before.is_onboarded():
            raise NotFoundError(f"investor {investor_id} is not onboarded")
        kind = _coerce_type(investor_type)
        if kind == InvestorType.NONE:
            raise InvalidTypeError("use remove_investor to offboard an investor")
        self._check_class(share_class_id)
        amounts = {
            "pending_subscription_amount": pending_subscription_amount,
            "shares_owned": shares_owned,
            "pending_redemption_shares": pending_redemption_shares,
            "pending_withdrawal_amount": pending_withdrawal_amount,
        }
        _check_non_negative(amounts)

        record = InvestorRecord(investor_type=kind, share_class_id=share_class_id, **amounts)
        self._emit(events.INVESTOR_MODIFIED, investor_id, snapshot(before), snapshot(record), note=note)
        self._investors[investor_id] = record
        logger.info("Modified investor %s: %s", investor_id, note or "no note")
        return record

    # -- share classes --------------------------------------------------

    @property
    def number_of_share_classes(self) -> int:
        return len(self._share_classes)

    @property
    def total_share_supply(self) -> int:
        return self._total_share_supply

    def share_classes(self) -> Sequence[ShareClass]:
        return tuple(self._share_classes)

    def get_share_class(self, share_class_id: int) -> ShareClass:
        self._check_class(share_class_id)
        return self._share_classes[share_class_id]

    def _check_class(self, share_class_id: int) -> None:
        if not 0 <= share_class_id < len(self._share_classes):
            raise InvalidClassError(f"share class {share_class_id} does not exist")

    def _check_rates(self, *rates: int) -> None:
        for rate in rates:
            if not 0 <= rate <= self._settings.bps_denominator:
                raise InvalidArgumentError(f"fee rate out of range: {rate} bps")

    def add_share_class(self, caller: Caller, admin_fee_bps: int, mgmt_fee_bps: int, perform_fee_bps: int) -> int:
        self._require_governance(caller, "add_share_class")
        self._check_rates(admin_fee_bps, mgmt_fee_bps, perform_fee_bps)
        share_class = ShareClass(
            admin_fee_bps=admin_fee_bps,
            mgmt_fee_bps=mgmt_fee_bps,
            perform_fee_bps=perform_fee_bps,
            share_supply=0,
            share_nav=self._settings.par_share_nav,
            last_calc=self._clock(),
        )
        share_class_id = len(self._share_classes)
        self._emit(events.SHARE_CLASS_ADDED, f"class:{share_class_id}", {}, snapshot(share_class))
        self._share_classes.append(share_class)
        logger.info(
            "Added share class %s (admin=%s mgmt=%s perform=%s bps)",
            share_class_id,
            admin_fee_bps,
            mgmt_fee_bps,
            perform_fee_bps,
        )
        return share_class_id

    def modify_share_class_terms(
        self,
        caller: Caller,
        share_class_id: int,
        admin_fee_bps: int,
        mgmt_fee_bps: int,
        perform_fee_bps: int,
    ) -> ShareClass:
        self._require_governance(caller, "modify_share_class_terms")
        before = self.get_share_class(share_class_id)
        if before.share_supply != 0:
            raise SharesOutstandingError(f"share class {share_class_id} has shares outstanding")
        self._check_rates(admin_fee_bps, mgmt_fee_bps, perform_fee_bps)
        after = replace(
            before,
            admin_fee_bps=admin_fee_bps,
            mgmt_fee_bps=mgmt_fee_bps,
            perform_fee_bps=perform_fee_bps,
        )
        self._emit(
            events.SHARE_CLASS_TERMS_MODIFIED,
            f"class:{share_class_id}",
            snapshot(before.fee_schedule),
            snapshot(after.fee_schedule),
        )
        self._share_classes[share_class_id] = after
        logger.info("Modified terms of share class %s", share_class_id)
        return after

    def modify_share_count(
        self,
        caller: Caller,
        share_class_id: int,
        new_class_supply: int,
        new_total_supply: int,
    ) -> None:
        self._require_orchestrator(caller, "modify_share_count")
        before = self.get_share_class(share_class_id)
        if new_class_supply < 0 or new_total_supply < 0:
            raise InvalidArgumentError("share supply cannot be negative")
        previous_total = self._total_share_supply
        self._emit(
            events.SHARE_COUNT_MODIFIED,
            f"class:{share_class_id}",
            {"share_supply": before.share_supply, "total_share_supply": previous_total},
            {"share_supply": new_class_supply, "total_share_supply": new_total_supply},
        )
        self._share_classes[share_class_id] = replace(before, share_supply=new_class_supply)
        self._total_share_supply = new_total_supply
        logger.info(
            "Share count of class %s: %s -> %s (total %s -> %s)",
            share_class_id,
            before.share_supply,
            new_class_supply,
            previous_total,
            new_total_supply,
        )

    def update_nav(self, caller: Caller, share_class_id: int, new_nav: int) -> ShareClass:
        self._require_orchestrator(caller, "update_nav")
        before = self.get_share_class(share_class_id)
        _check_nav(new_nav)
        after = replace(before, share_nav=new_nav, last_calc=self._clock())
        self._emit(
            events.NAV_UPDATED,
            f"class:{share_class_id}",
            {"share_nav": before.share_nav, "last_calc": before.last_calc.isoformat()},
            {"share_nav": after.share_nav, "last_calc": after.last_calc.isoformat()},
        )
        self._share_classes[share_class_id] = after
        logger.info("NAV of share class %s: %s -> %s", share_class_id, before.share_nav, new_nav)
        return after

    def update_fee_state(
        self,
        caller: Caller,
        share_class_id: int,
        accumulated_mgmt_fees: int,
        accumulated_admin_fees: int,
        accumulated_perform_fees: int,
        loss_carryforward: int,
    ) -> ShareClass:
        self._require_orchestrator(caller, "update_fee_state")
        before = self.get_share_class(share_class_id)
        balances = {
            "accumulated_mgmt_fees": accumulated_mgmt_fees,
            "accumulated_admin_fees": accumulated_admin_fees,
            "accumulated_perform_fees": accumulated_perform_fees,
            "loss_carryforward": loss_carryforward,
        }
        _check_non_negative(balances)
        after = replace(before, **balances)
        self._emit(
            events.FEE_STATE_UPDATED,
            f"class:{share_class_id}",
            {name: getattr(before, name) for name in balances},
            balances,
        )
        self._share_classes[share_class_id] = after
        logger.info("Fee state of share class %s updated", share_class_id)
        return after

    def record_calculations(self, caller: Caller, calculations: Sequence[NavCalculation]) -> list[ShareClass]:
        """Write back the results of a NAV run.

        NAV, fee balances and calculation time of every class in the run are
        checked first and then replaced together, or not at all.
        """
        self._require_orchestrator(caller, "record_calculations")
        calculated_at = self._clock()
        updates: dict[int, tuple[ShareClass, ShareClass]] = {}
        for calculation in calculations:
            share_class_id = calculation.share_class_id
            if share_class_id in updates:
                raise InvalidArgumentError(f"share class {share_class_id} appears twice in one run")
            before = self.get_share_class(share_class_id)
            _check_nav(calculation.share_nav)
            after = replace(calculation.apply_to(before), last_calc=calculated_at)
            _check_non_negative({name: getattr(after, name) for name in _FEE_BALANCES})
            updates[share_class_id] = (before, after)

        for share_class_id, (before, after) in updates.items():
            self._emit(
                events.NAV_CALCULATED,
                f"class:{share_class_id}",
                _calculation_fields(before),
                _calculation_fields(after),
            )
        for share_class_id, (before, after) in updates.items():
            self._share_classes[share_class_id] = after
            logger.info("NAV of share class %s: %s -> %s", share_class_id, before.share_nav, after.share_nav)
        return [after for _, after in updates.values()]

    # -- state restore --------------------------------------------------

    @classmethod
    def restore(
        cls,
        orchestrator: str,
        governance: Iterable[str],
        investors: dict[str, InvestorRecord],
        investor_addresses: Sequence[str],
        share_classes: Sequence[ShareClass],
        total_share_supply: int,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ) -> "Ledger":
        """Rebuild a ledger from persisted state without emitting events."""
        ledger = cls(orchestrator, governance, clock=clock, settings=settings)
        if set(investor_addresses) != set(investors) or len(investor_addresses) != len(investors):
            raise InvalidArgumentError("investor index does not match investor records")
        if total_share_supply != sum(sc.share_supply for sc in share_classes):
            raise InvalidArgumentError("total share supply does not match class supplies")
        ledger._investors = dict(investors)
        ledger._investor_addresses = list(investor_addresses)
        ledger._address_positions = {investor_id: i for i, investor_id in enumerate(investor_addresses)}
        ledger._share_classes = list(share_classes)
        ledger._total_share_supply = total_share_supply
        return ledger
