"""Domain-level results of a NAV calculation."""
from __future__ import annotations

from dataclasses import dataclass, replace

from .models import ShareClass


@dataclass(frozen=True)
class FeeAccruals:
    mgmt_fee: int
    admin_fee: int
    perform_fee: int
    perform_fee_payback: int
    loss_payback: int


@dataclass(frozen=True)
class NavCalculation:
    share_class_id: int
    gross_asset_value: int
    total_share_supply: int
    elapsed_seconds: int
    share_nav_before: int
    share_nav: int
    nav_before: int
    nav_after: int
    gain_loss: int
    net_gain: int
    accruals: FeeAccruals
    accumulated_mgmt_fees: int
    accumulated_admin_fees: int
    accumulated_perform_fees: int
    loss_carryforward: int

    def apply_to(self, share_class: ShareClass) -> ShareClass:
        return replace(
            share_class,
            share_nav=self.share_nav,
            accumulated_mgmt_fees=self.accumulated_mgmt_fees,
            accumulated_admin_fees=self.accumulated_admin_fees,
            accumulated_perform_fees=self.accumulated_perform_fees,
            loss_carryforward=self.loss_carryforward,
        )

    def summary(self) -> dict[str, int]:
        return {
            "share_class_id": self.share_class_id,
            "gross_asset_value": self.gross_asset_value,
            "elapsed_seconds": self.elapsed_seconds,
            "share_nav_before": self.share_nav_before,
            "share_nav": self.share_nav,
            "nav_before": self.nav_before,
            "nav_after": self.nav_after,
            "gain_loss": self.gain_loss,
            "net_gain": self.net_gain,
            "mgmt_fee": self.accruals.mgmt_fee,
            "admin_fee": self.accruals.admin_fee,
            "perform_fee": self.accruals.perform_fee,
            "perform_fee_payback": self.accruals.perform_fee_payback,
            "loss_payback": self.accruals.loss_payback,
            "accumulated_mgmt_fees": self.accumulated_mgmt_fees,
            "accumulated_admin_fees": self.accumulated_admin_fees,
            "accumulated_perform_fees": self.accumulated_perform_fees,
            "loss_carryforward": self.loss_carryforward,
        }
