"""Domain services implementing the NAV and fee accrual rules."""
from __future__ import annotations

import logging

from nav_ledger.config import SETTINGS, Settings

from .errors import DivisionByZeroError
from .models import ShareClass
from .results import FeeAccruals, NavCalculation

logger = logging.getLogger(__name__)


def trunc_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    if denominator == 0:
        raise DivisionByZeroError("division by zero")
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


class NavCalculator:
    """Revalues one share class and rolls its fee and loss balances forward.

    The calculation is a pure function of its inputs; writing the result back
    to the ledger is the caller's job.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or SETTINGS

    def compute(
        self,
        share_class: ShareClass,
        gross_asset_value: int,
        total_share_supply: int,
        elapsed_seconds: int,
        share_class_id: int = 0,
    ) -> NavCalculation:
        if total_share_supply == 0:
            raise DivisionByZeroError(f"share class {share_class_id}: no shares outstanding")

        s = self._settings
        nav_scale = s.nav_scale
        bps = s.bps_denominator
        nav_prev = share_class.share_nav

        nav_before = trunc_div(total_share_supply * nav_prev, nav_scale)
        mgmt_fee = self._time_fee(share_class.mgmt_fee_bps, nav_prev, elapsed_seconds, total_share_supply)
        admin_fee = self._time_fee(share_class.admin_fee_bps, nav_prev, elapsed_seconds, total_share_supply)

        gav_net = gross_asset_value - share_class.accumulated_mgmt_fees - share_class.accumulated_admin_fees
        gain_loss = gav_net - nav_before - mgmt_fee - admin_fee

        accumulated_perform = share_class.accumulated_perform_fees
        if accumulated_perform > 0 and gain_loss < 0:
            perform_fee_payback = min(accumulated_perform, -gain_loss)
        else:
            perform_fee_payback = 0

        loss_carryforward = share_class.loss_carryforward
        loss_payback = min(gain_loss, loss_carryforward) if gain_loss > 0 else 0
        gain_after_payback = gain_loss - loss_payback

        if gain_after_payback > 0:
            perform_fee = trunc_div(gain_after_payback * share_class.perform_fee_bps, bps)
        else:
            perform_fee = 0

        net_gain = gain_after_payback + loss_payback - perform_fee
        nav_after = nav_before + net_gain + perform_fee_payback
        if net_gain < 0:
            loss_carryforward += -net_gain

        share_nav = trunc_div(nav_after * nav_scale, total_share_supply)

        # Clawed-back performance fees release the gain they were charged on.
        reversal = 0
        if share_class.perform_fee_bps > 0:
            reversal = trunc_div(perform_fee_payback * bps, share_class.perform_fee_bps)
        loss_carryforward = max(0, loss_carryforward - loss_payback - reversal)

        logger.debug(
            "class %s: nav_before=%s gain_loss=%s mgmt=%s admin=%s perform=%s payback=%s loss_payback=%s",
            share_class_id,
            nav_before,
            gain_loss,
            mgmt_fee,
            admin_fee,
            perform_fee,
            perform_fee_payback,
            loss_payback,
        )

        return NavCalculation(
            share_class_id=share_class_id,
            gross_asset_value=gross_asset_value,
            total_share_supply=total_share_supply,
            elapsed_seconds=elapsed_seconds,
            share_nav_before=nav_prev,
            share_nav=share_nav,
            nav_before=nav_before,
            nav_after=nav_after,
            gain_loss=gain_loss,
            net_gain=net_gain,
            accruals=FeeAccruals(
                mgmt_fee=mgmt_fee,
                admin_fee=admin_fee,
                perform_fee=perform_fee,
                perform_fee_payback=perform_fee_payback,
                loss_payback=loss_payback,
            ),
            accumulated_mgmt_fees=share_class.accumulated_mgmt_fees + mgmt_fee + perform_fee - perform_fee_payback,
            accumulated_admin_fees=share_class.accumulated_admin_fees + admin_fee,
            accumulated_perform_fees=accumulated_perform + perform_fee - perform_fee_payback,
            loss_carryforward=loss_carryforward,
        )

    def _time_fee(self, fee_bps: int, nav_prev: int, elapsed_seconds: int, total_share_supply: int) -> int:
        s = self._settings
        numerator = nav_prev * fee_bps * elapsed_seconds * total_share_supply
        return trunc_div(numerator, s.bps_denominator * s.seconds_per_year * s.nav_scale)
