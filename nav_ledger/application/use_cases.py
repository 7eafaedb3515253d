"""Application services orchestrating NAV runs against the ledger."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from nav_ledger.application.dto import NavRunResponse
from nav_ledger.domain.errors import InvalidArgumentError
from nav_ledger.domain.ledger import Ledger
from nav_ledger.domain.models import Caller, Valuation
from nav_ledger.domain.repositories import (
    BalanceSource,
    ExchangeRateSource,
    ValuationSource,
)
from nav_ledger.domain.results import NavCalculation
from nav_ledger.domain.services import NavCalculator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class NavCalculationContext:
    ledger: Ledger
    calculator: NavCalculator
    valuation_source: ValuationSource
    balance_source: BalanceSource
    exchange_rate_source: ExchangeRateSource
    caller: Caller


def gather_valuation(context: NavCalculationContext) -> Valuation:
    valuation = Valuation(
        portfolio_value=context.valuation_source.current_portfolio_value(),
        liquid_balance=context.balance_source.current_balance(),
        exchange_rate=context.exchange_rate_source.current_rate(),
    )
    if valuation.gross_asset_value < 0:
        raise InvalidArgumentError(f"gross asset value cannot be negative: {valuation.gross_asset_value}")
    return valuation


class CalculateNavUseCase:
    """Runs the NAV engine for one share class and records the result."""

    def __init__(self, context: NavCalculationContext) -> None:
        self._context = context

    def calculate(self, share_class_id: int, valuation: Valuation) -> NavCalculation:
        """Compute the roll-forward for one class without touching the ledger."""
        context = self._context
        if valuation.gross_asset_value < 0:
            raise InvalidArgumentError(f"gross asset value cannot be negative: {valuation.gross_asset_value}")
        ledger = context.ledger
        share_class = ledger.get_share_class(share_class_id)

        elapsed = int((ledger.now() - share_class.last_calc).total_seconds())
        if elapsed < 0:
            raise InvalidArgumentError(f"share class {share_class_id} was calculated in the future")

        return context.calculator.compute(
            share_class,
            gross_asset_value=valuation.gross_asset_value,
            total_share_supply=ledger.total_share_supply,
            elapsed_seconds=elapsed,
            share_class_id=share_class_id,
        )

    def execute(self, share_class_id: int, valuation: Valuation | None = None) -> NavCalculation:
        context = self._context
        valuation = valuation or gather_valuation(context)
        calculation = self.calculate(share_class_id, valuation)
        context.ledger.record_calculations(context.caller, [calculation])
        _log_calculation(calculation)
        return calculation


class CalculateFundNavUseCase:
    """Runs the NAV engine for every share class holding shares."""

    def __init__(self, context: NavCalculationContext) -> None:
        self._context = context
        self._single = CalculateNavUseCase(context)

    def execute(self) -> NavRunResponse:
        context = self._context
        valuation = gather_valuation(context)
        calculated_at = context.ledger.now()
        calculations: list[NavCalculation] = []
        skipped: list[int] = []
        for share_class_id, share_class in enumerate(context.ledger.share_classes()):
            if share_class.share_supply == 0:
                logger.info("Skipping share class %s: no shares outstanding", share_class_id)
                skipped.append(share_class_id)
                continue
            calculations.append(self._single.calculate(share_class_id, valuation))
        context.ledger.record_calculations(context.caller, calculations)
        for calculation in calculations:
            _log_calculation(calculation)
        return NavRunResponse(
            valuation=valuation,
            calculated_at=calculated_at,
            calculations=tuple(calculations),
            skipped_classes=tuple(skipped),
        )


def _log_calculation(calculation: NavCalculation) -> None:
    logger.info(
        "NAV run for class %s: %s -> %s over %ss (GAV %s)",
        calculation.share_class_id,
        calculation.share_nav_before,
        calculation.share_nav,
        calculation.elapsed_seconds,
        calculation.gross_asset_value,
    )
