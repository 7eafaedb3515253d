"""Domain models for the fund ledger.

Amounts are plain integers: money in the smallest currency unit, shares and
per-share prices in fixed point with two implied decimals, rates in basis
points.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum


class InvestorType(IntEnum):
    NONE = 0
    ETH = 1
    USD = 2

    @classmethod
    def parse(cls, value: object) -> "InvestorType":
        if isinstance(value, str):
            return cls[value.strip().upper()]
        return cls(int(value))


@dataclass(frozen=True)
class Caller:
    """Identity on whose behalf an operation runs."""

    identity: str


@dataclass(frozen=True)
class InvestorRecord:
    investor_type: InvestorType = InvestorType.NONE
    pending_subscription_amount: int = 0
    shares_owned: int = 0
    share_class_id: int = 0
    pending_redemption_shares: int = 0
    pending_withdrawal_amount: int = 0

    def is_onboarded(self) -> bool:
        return self.investor_type != InvestorType.NONE

    def has_balance(self) -> bool:
        return any(
            (
                self.pending_subscription_amount,
                self.shares_owned,
                self.pending_redemption_shares,
                self.pending_withdrawal_amount,
            )
        )

    def is_empty(self) -> bool:
        return self == EMPTY_INVESTOR


EMPTY_INVESTOR = InvestorRecord()


@dataclass(frozen=True)
class FeeSchedule:
    admin_fee_bps: int
    mgmt_fee_bps: int
    perform_fee_bps: int


@dataclass(frozen=True)
class ShareClass:
    """Terms and running NAV/fee state of one share class."""

    admin_fee_bps: int
    mgmt_fee_bps: int
    perform_fee_bps: int
    share_supply: int
    share_nav: int
    last_calc: datetime
    accumulated_mgmt_fees: int = 0
    accumulated_admin_fees: int = 0
    accumulated_perform_fees: int = 0
    loss_carryforward: int = 0

    @property
    def fee_schedule(self) -> FeeSchedule:
        return FeeSchedule(
            admin_fee_bps=self.admin_fee_bps,
            mgmt_fee_bps=self.mgmt_fee_bps,
            perform_fee_bps=self.perform_fee_bps,
        )


@dataclass(frozen=True)
class ExchangeRate:
    """Conversion of the fund's liquid balance into accounting currency."""

    rate: int
    divisor: int

    def convert(self, amount: int) -> int:
        return amount * self.rate // self.divisor


@dataclass(frozen=True)
class Valuation:
    """Inputs gathered for one NAV run."""

    portfolio_value: int
    liquid_balance: int
    exchange_rate: ExchangeRate

    @property
    def gross_asset_value(self) -> int:
        return self.portfolio_value + self.exchange_rate.convert(self.liquid_balance)
