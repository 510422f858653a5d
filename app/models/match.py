# app/models/match.py

from typing import Optional, Literal
from pydantic import BaseModel, Field


# ============================================
# Confidence Scoring
# ============================================

MatchType = Literal["amount", "customer", "reference", "combined"]


class ConfidenceBreakdown(BaseModel):
    """Breakdown of how an invoice candidate was scored."""

    amount_score: int = Field(ge=0, le=50, description="0-50 points for amount proximity")
    reference_score: int = Field(ge=0, le=40, description="0-40 points for invoice number in description")
    name_score: int = Field(ge=0, le=30, description="0-30 points for payer/client name similarity")
    date_score: int = Field(ge=0, le=10, description="0-10 points for issue date proximity")
    total: int = Field(ge=0, le=130, description="Total points")
    match_type: MatchType = "amount"
    factors: list[str] = Field(default_factory=list, description="Human-readable factors")

    @property
    def confidence(self) -> float:
        """Points converted to [0, 1]. Never reports certainty."""
        return min(self.total / 100, 0.99)


class MatchResult(BaseModel):
    """Best invoice candidate for an income transaction."""

    invoice_id: str
    invoice_number: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)
    match_type: MatchType = "amount"
    breakdown: Optional[ConfidenceBreakdown] = None


class OperationResult(BaseModel):
    """Result of a mark-paid or create-invoice call."""

    success: bool
    invoice_id: Optional[str] = None
    error: Optional[str] = None
