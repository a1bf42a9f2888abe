"""
Matcher schemas.
"""

from pydantic import BaseModel, Field, computed_field
from typing import Any, Optional
from enum import Enum


class MatchType(str, Enum):
    """Which scoring rule produced a match."""
    EXACT_SKU = "exact_sku"
    PARTIAL_SKU = "partial_sku"
    NAME = "name"
    NAME_BRAND = "name_brand"


class MatchRecord(BaseModel):
    """
    Side of a match: a vendor record or a local product reduced to the
    fields the matcher looks at.
    """

    id: str
    sku: Optional[str] = None
    name: Optional[str] = None
    brand: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict, exclude=True)


class MatchCandidate(BaseModel):
    """Best pairing found for one vendor record."""

    record: MatchRecord
    product: MatchRecord
    score: float = Field(..., ge=0, le=1)
    match_type: MatchType


class ReconciliationReport(BaseModel):
    """Outcome of matching Airtable records against local products."""

    matches: list[MatchCandidate] = Field(default_factory=list)
    unmatched_ids: list[str] = Field(default_factory=list)
    updated: int = 0
    dry_run: bool = True

    @computed_field
    @property
    def total(self) -> int:
        return len(self.matches) + len(self.unmatched_ids)

    @computed_field
    @property
    def match_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return round(len(self.matches) / self.total, 4)
