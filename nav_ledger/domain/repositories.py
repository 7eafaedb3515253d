"""Interfaces of the collaborators feeding the NAV engine."""
from __future__ import annotations

from typing import Protocol

from .models import ExchangeRate


class ValuationSource(Protocol):
    """Provides the current portfolio valuation in accounting currency units."""

    def current_portfolio_value(self) -> int:
        ...


class ExchangeRateSource(Protocol):
    """Provides the rate converting the fund's liquid balance."""

    def current_rate(self) -> ExchangeRate:
        ...


class BalanceSource(Protocol):
    """Provides the fund's own liquid balance in its native unit."""

    def current_balance(self) -> int:
        ...
