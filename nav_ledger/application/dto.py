"""Application-level DTOs for NAV runs."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from nav_ledger.domain.models import Valuation
from nav_ledger.domain.results import NavCalculation


@dataclass(slots=True, frozen=True)
class NavRunResponse:
    valuation: Valuation
    calculated_at: datetime
    calculations: Sequence[NavCalculation] = field(default_factory=tuple)
    skipped_classes: Sequence[int] = field(default_factory=tuple)

    @property
    def gross_asset_value(self) -> int:
        return self.valuation.gross_asset_value
