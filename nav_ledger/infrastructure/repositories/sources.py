"""Valuation, balance and exchange-rate sources for NAV runs."""
from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from nav_ledger.config import SETTINGS
from nav_ledger.domain.models import ExchangeRate
from nav_ledger.domain.repositories import (
    BalanceSource,
    ExchangeRateSource,
    ValuationSource,
)
from nav_ledger.infrastructure.parsing.utils import ensure_bytes
from nav_ledger.infrastructure.parsing.valuation import (
    DEFAULT_SHEET_NAME,
    PortfolioValuation,
    parse_portfolio_valuation,
)


class ExcelValuationRepository(ValuationSource):
    def __init__(
        self,
        source: BytesIO | Path | bytes,
        value_column: str | None = None,
        sheet_name: str = DEFAULT_SHEET_NAME,
    ) -> None:
        self._source = ensure_bytes(source)
        self._value_column = value_column
        self._sheet_name = sheet_name

    def load(self) -> PortfolioValuation:
        return parse_portfolio_valuation(
            BytesIO(self._source),
            value_column=self._value_column,
            sheet_name=self._sheet_name,
        )

    def current_portfolio_value(self) -> int:
        return self.load().minor_units


@dataclass
class StaticValuationSource(ValuationSource):
    value: int

    def current_portfolio_value(self) -> int:
        return self.value


@dataclass
class StaticBalanceSource(BalanceSource):
    balance: int = 0

    def current_balance(self) -> int:
        return self.balance


@dataclass
class StaticExchangeRateSource(ExchangeRateSource):
    rate: int
    divisor: int = SETTINGS.exchange_rate_divisor

    def current_rate(self) -> ExchangeRate:
        return ExchangeRate(rate=self.rate, divisor=self.divisor)
