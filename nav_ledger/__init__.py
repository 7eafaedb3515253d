"""Fund ledger and NAV/fee accrual engine."""
from nav_ledger.application.use_cases import (
    CalculateFundNavUseCase,
    CalculateNavUseCase,
    NavCalculationContext,
)
from nav_ledger.domain.ledger import Ledger
from nav_ledger.domain.models import Caller, InvestorRecord, InvestorType, ShareClass
from nav_ledger.domain.results import NavCalculation
from nav_ledger.domain.services import NavCalculator

__all__ = [
    "CalculateFundNavUseCase",
    "CalculateNavUseCase",
    "NavCalculationContext",
    "Ledger",
    "Caller",
    "InvestorRecord",
    "InvestorType",
    "ShareClass",
    "NavCalculation",
    "NavCalculator",
]
