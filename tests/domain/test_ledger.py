from dataclasses import replace
from datetime import datetime, timezone

import pytest

from nav_ledger.domain import events
from nav_ledger.domain.errors import (
    AlreadyExistsError,
    InvalidArgumentError,
    InvalidClassError,
    InvalidTypeError,
    NonZeroBalanceError,
    NotFoundError,
    SharesOutstandingError,
    UnauthorizedError,
)
from nav_ledger.domain.events import AuditTrail
from nav_ledger.domain.ledger import Ledger
from nav_ledger.domain.models import EMPTY_INVESTOR, Caller, InvestorType
from nav_ledger.domain.services import NavCalculator

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
FUND = Caller("fund")
GOV = Caller("manager")
STRANGER = Caller("stranger")


@pytest.fixture
def ledger() -> Ledger:
    ledger = Ledger("fund", ["manager", "exchange"], clock=lambda: NOW)
    ledger.add_share_class(GOV, 50, 200, 2000)
    return ledger


def assert_supply_consistent(ledger: Ledger) -> None:
    assert ledger.total_share_supply == sum(sc.share_supply for sc in ledger.share_classes())


def fund_investor(ledger: Ledger, investor_id: str, shares: int) -> None:
    ledger.modify_investor(FUND, investor_id, InvestorType.USD, 0, shares, 0, 0, 0, note="subscription")


def test_add_investor_initializes_empty_balances(ledger: Ledger):
    record = ledger.add_investor(FUND, "alice", InvestorType.ETH)

    assert record.investor_type == InvestorType.ETH
    assert not record.has_balance()
    assert ledger.query_investor_type("alice") == InvestorType.ETH
    assert ledger.contains_investor("alice")
    assert ledger.investor_addresses(FUND) == ("alice",)


def test_add_investor_accepts_type_names_and_codes(ledger: Ledger):
    ledger.add_investor(FUND, "alice", "usd")
    ledger.add_investor(FUND, "bob", 1)

    assert ledger.query_investor_type("alice") == InvestorType.USD
    assert ledger.query_investor_type("bob") == InvestorType.ETH


def test_add_investor_rejects_duplicates(ledger: Ledger):
    ledger.add_investor(FUND, "alice", InvestorType.ETH)

    with pytest.raises(AlreadyExistsError):
        ledger.add_investor(FUND, "alice", InvestorType.USD)

    assert ledger.query_investor_type("alice") == InvestorType.ETH


@pytest.mark.parametrize("bad_type", [InvestorType.NONE, 0, 7, "BTC", None])
def test_add_investor_rejects_invalid_types(ledger: Ledger, bad_type):
    with pytest.raises(InvalidTypeError):
        ledger.add_investor(FUND, "alice", bad_type)

    assert not ledger.contains_investor("alice")
    assert ledger.investor_addresses(FUND) == ()


def test_add_investor_requires_existing_class(ledger: Ledger):
    with pytest.raises(InvalidClassError):
        ledger.add_investor(FUND, "alice", InvestorType.USD, share_class_id=3)


def test_investor_mutations_require_orchestrator(ledger: Ledger):
    with pytest.raises(UnauthorizedError):
        ledger.add_investor(GOV, "alice", InvestorType.USD)
    ledger.add_investor(FUND, "alice", InvestorType.USD)
    with pytest.raises(UnauthorizedError):
        ledger.modify_investor(STRANGER, "alice", InvestorType.USD, 1, 0, 0, 0, 0)
    with pytest.raises(UnauthorizedError):
        ledger.remove_investor(STRANGER, "alice")

    assert ledger.get_investor("alice").pending_subscription_amount == 0
    assert ledger.contains_investor("alice")


def test_unknown_investor_reads_as_empty(ledger: Ledger):
    assert ledger.get_investor("nobody") == EMPTY_INVESTOR
    assert ledger.query_investor_type("nobody") == InvestorType.NONE
    assert not ledger.contains_investor("nobody")


def test_remove_unknown_investor(ledger: Ledger):
    with pytest.raises(NotFoundError):
        ledger.remove_investor(FUND, "nobody")


def test_remove_investor_with_balance_fails(ledger: Ledger):
    ledger.add_investor(FUND, "alice", InvestorType.USD)
    ledger.modify_investor(FUND, "alice", InvestorType.USD, 0, 0, 0, 0, 500)

    with pytest.raises(NonZeroBalanceError):
        ledger.remove_investor(FUND, "alice")

    assert ledger.investor_addresses(FUND) == ("alice",)


def test_remove_investor_swaps_last_into_place(ledger: Ledger):
    for name in ("a", "b", "c", "d"):
        ledger.add_investor(FUND, name, InvestorType.USD)

    ledger.remove_investor(FUND, "a")
    assert ledger.investor_addresses(FUND) == ("d", "b", "c")

    ledger.remove_investor(FUND, "c")
    assert ledger.investor_addresses(FUND) == ("d", "b")

    ledger.remove_investor(FUND, "d")
    ledger.add_investor(FUND, "e", InvestorType.ETH)
    ledger.remove_investor(FUND, "b")
    assert ledger.investor_addresses(FUND) == ("e",)


def test_add_then_remove_round_trip(ledger: Ledger):
    ledger.add_investor(FUND, "alice", InvestorType.USD)
    ledger.add_investor(FUND, "bob", InvestorType.USD)
    before = set(ledger.investor_addresses(FUND))

    ledger.add_investor(FUND, "carol", InvestorType.ETH)
    ledger.remove_investor(FUND, "carol")

    assert set(ledger.investor_addresses(FUND)) == before
    assert ledger.get_investor("carol").is_empty()


def test_modify_investor_overwrites_record(ledger: Ledger):
    trail = AuditTrail()
    ledger.subscribe(trail)
    ledger.add_investor(FUND, "alice", InvestorType.USD)

    record = ledger.modify_investor(FUND, "alice", InvestorType.USD, 10, 100_001, 0, 5, 7, note="settlement")

    assert record.shares_owned == 100_001
    assert ledger.get_investor("alice") == record
    modified = trail.of_kind(events.INVESTOR_MODIFIED)[0]
    assert modified.note == "settlement"
    assert modified.after["shares_owned"] == 100_001
    assert "pending_withdrawal_amount" in modified.changed_fields()


def test_modify_investor_validation(ledger: Ledger):
    with pytest.raises(NotFoundError):
        ledger.modify_investor(FUND, "nobody", InvestorType.USD, 0, 0, 0, 0, 0)
    ledger.add_investor(FUND, "alice", InvestorType.USD)
    with pytest.raises(InvalidArgumentError):
        ledger.modify_investor(FUND, "alice", InvestorType.USD, -1, 0, 0, 0, 0)
    with pytest.raises(InvalidClassError):
        ledger.modify_investor(FUND, "alice", InvestorType.USD, 0, 0, 9, 0, 0)
    with pytest.raises(InvalidTypeError):
        ledger.modify_investor(FUND, "alice", InvestorType.NONE, 0, 0, 0, 0, 0)


def test_empty_form_holds_for_every_investor(ledger: Ledger):
    ledger.add_investor(FUND, "alice", InvestorType.USD)
    fund_investor(ledger, "alice", 1_000)
    ledger.add_investor(FUND, "bob", InvestorType.ETH)

    for investor_id in ("alice", "bob", "nobody"):
        record = ledger.get_investor(investor_id)
        if record.investor_type == InvestorType.NONE:
            assert record.is_empty()
        else:
            assert record.is_onboarded()


def test_investor_addresses_access(ledger: Ledger):
    ledger.add_investor(FUND, "alice", InvestorType.USD)

    assert ledger.investor_addresses(GOV) == ("alice",)
    assert ledger.investor_addresses(Caller("exchange")) == ("alice",)
    with pytest.raises(UnauthorizedError):
        ledger.investor_addresses(STRANGER)


def test_add_share_class_starts_at_par(ledger: Ledger):
    share_class_id = ledger.add_share_class(GOV, 0, 100, 1000)

    share_class = ledger.get_share_class(share_class_id)
    assert share_class_id == 1
    assert ledger.number_of_share_classes == 2
    assert share_class.share_nav == 10_000
    assert share_class.share_supply == 0
    assert share_class.last_calc == NOW


def test_add_share_class_requires_governance(ledger: Ledger):
    with pytest.raises(UnauthorizedError):
        ledger.add_share_class(FUND, 0, 0, 0)
    with pytest.raises(InvalidArgumentError):
        ledger.add_share_class(GOV, -1, 0, 0)
    assert ledger.number_of_share_classes == 1


def test_terms_are_frozen_once_shares_exist(ledger: Ledger):
    ledger.modify_share_class_terms(GOV, 0, 0, 0, 0)
    assert ledger.get_share_class(0).perform_fee_bps == 0

    ledger.modify_share_count(FUND, 0, 1_000, 1_000)

    with pytest.raises(SharesOutstandingError):
        ledger.modify_share_class_terms(GOV, 0, 10, 10, 10)
    assert ledger.get_share_class(0).admin_fee_bps == 0


def test_modify_terms_validation(ledger: Ledger):
    with pytest.raises(InvalidClassError):
        ledger.modify_share_class_terms(GOV, 5, 0, 0, 0)
    with pytest.raises(UnauthorizedError):
        ledger.modify_share_class_terms(FUND, 0, 0, 0, 0)


def test_share_count_keeps_supply_consistent(ledger: Ledger):
    ledger.add_share_class(GOV, 0, 0, 0)

    ledger.modify_share_count(FUND, 0, 100_000, 100_000)
    assert_supply_consistent(ledger)
    ledger.modify_share_count(FUND, 1, 50_000, 150_000)
    assert_supply_consistent(ledger)
    ledger.modify_share_count(FUND, 0, 20_000, 70_000)
    assert_supply_consistent(ledger)
    assert ledger.total_share_supply == 70_000


def test_share_count_and_nav_are_orchestrator_only(ledger: Ledger):
    with pytest.raises(UnauthorizedError):
        ledger.modify_share_count(GOV, 0, 1, 1)
    with pytest.raises(UnauthorizedError):
        ledger.update_nav(GOV, 0, 10_500)
    with pytest.raises(InvalidClassError):
        ledger.modify_share_count(FUND, 2, 1, 1)
    with pytest.raises(InvalidClassError):
        ledger.update_nav(FUND, 2, 10_500)
    assert ledger.total_share_supply == 0


def test_update_nav_stamps_last_calc():
    now = [datetime(2024, 1, 1, tzinfo=timezone.utc)]
    ledger = Ledger("fund", ["manager"], clock=lambda: now[0])
    ledger.add_share_class(GOV, 0, 0, 0)
    now[0] = datetime(2024, 1, 31, tzinfo=timezone.utc)

    share_class = ledger.update_nav(FUND, 0, 10_250)

    assert share_class.share_nav == 10_250
    assert share_class.last_calc == datetime(2024, 1, 31, tzinfo=timezone.utc)


def test_update_fee_state(ledger: Ledger):
    ledger.update_fee_state(FUND, 0, 10, 20, 30, 40)

    share_class = ledger.get_share_class(0)
    assert share_class.accumulated_mgmt_fees == 10
    assert share_class.accumulated_admin_fees == 20
    assert share_class.accumulated_perform_fees == 30
    assert share_class.loss_carryforward == 40
    with pytest.raises(InvalidArgumentError):
        ledger.update_fee_state(FUND, 0, 0, 0, -1, 0)


def test_set_orchestrator(ledger: Ledger):
    with pytest.raises(UnauthorizedError):
        ledger.set_orchestrator(FUND, "fund2")
    with pytest.raises(InvalidArgumentError):
        ledger.set_orchestrator(GOV, "fund")
    with pytest.raises(InvalidArgumentError):
        ledger.set_orchestrator(GOV, "")

    ledger.set_orchestrator(GOV, "fund2")

    assert ledger.orchestrator == "fund2"
    with pytest.raises(UnauthorizedError):
        ledger.add_investor(FUND, "alice", InvestorType.USD)
    ledger.add_investor(Caller("fund2"), "alice", InvestorType.USD)


def test_every_mutation_emits_an_event(ledger: Ledger):
    trail = AuditTrail()
    ledger.subscribe(trail)

    ledger.add_investor(FUND, "alice", InvestorType.USD)
    ledger.modify_investor(FUND, "alice", InvestorType.USD, 0, 0, 0, 0, 0)
    ledger.remove_investor(FUND, "alice")
    ledger.add_share_class(GOV, 0, 0, 0)
    ledger.modify_share_class_terms(GOV, 1, 1, 1, 1)
    ledger.modify_share_count(FUND, 1, 100, 100)
    ledger.update_nav(FUND, 1, 10_100)
    ledger.update_fee_state(FUND, 1, 1, 1, 0, 0)
    ledger.set_orchestrator(GOV, "fund2")

    assert [event.kind for event in trail] == [
        events.INVESTOR_ADDED,
        events.INVESTOR_MODIFIED,
        events.INVESTOR_REMOVED,
        events.SHARE_CLASS_ADDED,
        events.SHARE_CLASS_TERMS_MODIFIED,
        events.SHARE_COUNT_MODIFIED,
        events.NAV_UPDATED,
        events.FEE_STATE_UPDATED,
        events.ORCHESTRATOR_CHANGED,
    ]
    assert all(event.timestamp == NOW for event in trail)
    nav_event = trail.of_kind(events.NAV_UPDATED)[0]
    assert nav_event.before["share_nav"] == 10_000
    assert nav_event.after["share_nav"] == 10_100


def test_failed_calls_emit_nothing(ledger: Ledger):
    trail = AuditTrail()
    ledger.subscribe(trail)

    with pytest.raises(UnauthorizedError):
        ledger.add_share_class(STRANGER, 0, 0, 0)
    with pytest.raises(NotFoundError):
        ledger.remove_investor(FUND, "nobody")

    assert len(trail) == 0


def test_restore_rejects_inconsistent_supply(ledger: Ledger):
    ledger.modify_share_count(FUND, 0, 100, 100)

    with pytest.raises(InvalidArgumentError):
        Ledger.restore(
            orchestrator="fund",
            governance=["manager"],
            investors={},
            investor_addresses=[],
            share_classes=ledger.share_classes(),
            total_share_supply=99,
        )


def test_failing_listener_leaves_ledger_unchanged(ledger: Ledger):
    def broken_log(event):
        raise OSError("disk full")

    ledger.subscribe(broken_log)

    with pytest.raises(OSError):
        ledger.modify_share_count(FUND, 0, 100_000, 100_000)
    with pytest.raises(OSError):
        ledger.add_investor(FUND, "alice", InvestorType.USD)
    with pytest.raises(OSError):
        ledger.set_orchestrator(GOV, "fund2")

    assert ledger.total_share_supply == 0
    assert ledger.get_share_class(0).share_supply == 0
    assert not ledger.contains_investor("alice")
    assert ledger.investor_addresses(FUND) == ()
    assert ledger.orchestrator == "fund"


def test_record_calculations_writes_nav_and_fee_state_together(ledger: Ledger):
    ledger.modify_share_count(FUND, 0, 100_000, 100_000)
    trail = AuditTrail()
    ledger.subscribe(trail)
    calculation = NavCalculator().compute(ledger.get_share_class(0), 101_000, 100_000, 86_400)

    (after,) = ledger.record_calculations(FUND, [calculation])

    assert after == ledger.get_share_class(0)
    assert after.share_nav == calculation.share_nav
    assert after.accumulated_mgmt_fees == calculation.accumulated_mgmt_fees
    assert after.accumulated_perform_fees == calculation.accumulated_perform_fees
    assert after.last_calc == NOW
    assert [event.kind for event in trail] == [events.NAV_CALCULATED]
    assert trail.of_kind(events.NAV_CALCULATED)[0].after["share_nav"] == calculation.share_nav


def test_record_calculations_rejects_the_whole_run(ledger: Ledger):
    ledger.add_share_class(GOV, 0, 0, 0)
    ledger.modify_share_count(FUND, 0, 100_000, 100_000)
    before = ledger.share_classes()
    good = NavCalculator().compute(before[0], 101_000, 100_000, 86_400)
    negative_fees = replace(good, share_class_id=1, accumulated_mgmt_fees=-1)
    zero_nav = replace(good, share_class_id=1, share_nav=0)

    with pytest.raises(InvalidArgumentError):
        ledger.record_calculations(FUND, [good, negative_fees])
    with pytest.raises(InvalidArgumentError):
        ledger.record_calculations(FUND, [good, zero_nav])
    with pytest.raises(InvalidArgumentError):
        ledger.record_calculations(FUND, [good, good])
    with pytest.raises(UnauthorizedError):
        ledger.record_calculations(GOV, [good])

    assert ledger.share_classes() == before
