# app/core/confidence.py

"""
Confidence scoring for invoice matching.

Scoring breakdown (points, confidence = min(total / 100, 0.99)):
- Amount match:      25-50 points (outside 5% the candidate is discarded)
- Invoice number:    0-40 points
- Payer name:        0-30 points
- Date proximity:    0-10 points
"""

from datetime import date
from typing import Optional
import re

import Levenshtein

from app.core.normalizers import normalize_customer_name, normalize_string, parse_amount, parse_date
from app.models import ConfidenceBreakdown, MatchType, RawTransaction

FUZZY_NAME_THRESHOLD = 0.85


def calculate_confidence(transaction: RawTransaction, invoice: dict) -> Optional[ConfidenceBreakdown]:
    """
    Score an open invoice against an income transaction.

    Returns None when the amounts are too far apart to be the same payment.
    """
    factors: list[str] = []
    description = transaction.description

    # ============================================
    # Amount scoring (25-50 points)
    # ============================================
    amount_score = _score_amount(transaction.amount, parse_amount(invoice.get("total")), factors)
    if amount_score is None:
        return None

    # ============================================
    # Invoice number scoring (0-40 points)
    # ============================================
    reference_score = _score_reference(description, invoice.get("invoice_number"), factors)

    # ============================================
    # Payer name scoring (0-30 points)
    # ============================================
    customer = invoice.get("customers") or {}
    name_score = _score_name(
        description,
        [customer.get("full_name"), customer.get("company_name")],
        factors,
    )

    # ============================================
    # Date scoring (0-10 points)
    # ============================================
    issue_date = parse_date(invoice.get("issue_date"))
    date_score = _score_date(transaction.transaction_date, issue_date, factors)

    total = amount_score + reference_score + name_score + date_score

    return ConfidenceBreakdown(
        amount_score=amount_score,
        reference_score=reference_score,
        name_score=name_score,
        date_score=date_score,
        total=total,
        match_type=_get_match_type(reference_score, name_score),
        factors=factors,
    )


def _score_amount(transaction_amount: float, invoice_total: float, factors: list[str]) -> Optional[int]:
    """Score based on amount match (25-50 points), None if beyond 5%."""
    received = abs(transaction_amount)
    expected = abs(invoice_total)
    if expected == 0:
        return None

    diff = abs(received - expected)
    diff_percent = diff / expected * 100

    if diff < 0.01:
        factors.append("Exact amount match")
        return 50
    elif diff_percent < 1:
        factors.append(f"Amount within 1% ({diff:,.2f} difference)")
        return 40
    elif diff_percent < 5:
        factors.append(f"Amount within 5% ({diff:,.2f} difference)")
        return 25
    return None


def _score_reference(description: str, invoice_number: Optional[str], factors: list[str]) -> int:
    """Score if the invoice number appears in the narration (0-40 points)."""
    if not invoice_number:
        return 0

    if invoice_number.lower() in description.lower():
        factors.append(f"Invoice number {invoice_number} in description")
        return 40

    # Banks often drop separators: "INV-0042" arrives as "INV0042"
    compact_number = re.sub(r"[^a-z0-9]", "", invoice_number.lower())
    compact_description = re.sub(r"[^a-z0-9]", "", description.lower())
    if len(compact_number) >= 4 and compact_number in compact_description:
        factors.append(f"Invoice number {invoice_number} in description")
        return 40

    return 0


def _score_name(description: str, names: list[Optional[str]], factors: list[str]) -> int:
    """Score based on payer name appearing in the narration (0-30 points)."""
    normalized_description = normalize_string(description)
    description_words = normalized_description.split()
    best = 0

    for name in names:
        normalized_name = normalize_string(normalize_customer_name(name))
        if not normalized_name:
            continue

        # Full name present
        if f" {normalized_name} " in f" {normalized_description} ":
            factors.append(f"Customer name '{name}' in description")
            return 30

        # Misspelt or truncated name
        similarity = _best_window_similarity(normalized_name, description_words)
        if similarity >= FUZZY_NAME_THRESHOLD:
            if best < 20:
                factors.append(f"Customer name similar to '{name}' ({similarity:.0%})")
            best = max(best, 20)
            continue

        # Any meaningful name part
        parts = [p for p in normalized_name.split() if len(p) > 2]
        if best < 15 and any(part in description_words for part in parts):
            factors.append(f"Customer name partial match '{name}'")
            best = 15

    return best


def _score_date(transaction_date: date, issue_date: Optional[date], factors: list[str]) -> int:
    """Score based on invoice issue date proximity (0-10 points)."""
    if issue_date is None:
        return 0

    days_diff = abs((transaction_date - issue_date).days)

    if days_diff <= 7:
        factors.append(f"Issued {days_diff} days from payment")
        return 10
    elif days_diff <= 30:
        factors.append(f"Issued {days_diff} days from payment (within month)")
        return 5
    return 0


def _get_match_type(reference_score: int, name_score: int) -> MatchType:
    if reference_score and name_score >= 20:
        return "combined"
    if reference_score:
        return "reference"
    if name_score >= 20:
        return "customer"
    return "amount"


def _best_window_similarity(name: str, words: list[str]) -> float:
    """Best Levenshtein ratio of the name against same-length word windows."""
    size = len(name.split())
    if not words or size == 0:
        return 0.0

    best = 0.0
    for start in range(0, max(len(words) - size + 1, 1)):
        window = " ".join(words[start:start + size])
        best = max(best, Levenshtein.ratio(name, window))
    return best
