# app/core/categorizer.py

"""
Transaction categorization.

Rule-based and pure: the type comes from transfer markers or the sign of
the amount, the category from the first rule of the same type whose
keywords appear in the description.
"""

from typing import NamedTuple, Optional
import re

from app.models import CategorizedTransaction, RawTransaction, TransactionType

# Rule confidence
TRANSFER_CONFIDENCE = 0.85
RULE_CONFIDENCE = 0.8
SIGN_ONLY_CONFIDENCE = 0.5
UNKNOWN_CONFIDENCE = 0.3

VENDOR_MAX_LENGTH = 100


class CategoryRule(NamedTuple):
    pattern: re.Pattern
    category: str
    type: TransactionType


def _words(*keywords: str) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(keywords) + r")\b", re.IGNORECASE)


def _rule(category: str, type: TransactionType, *keywords: str) -> CategoryRule:
    return CategoryRule(_words(*keywords), category, type)


EXPENSE = TransactionType.EXPENSE
INCOME = TransactionType.INCOME

# First match wins, so specific rules sit above broad ones
CATEGORY_RULES: list[CategoryRule] = [
    # ============================================
    # Expenses
    # ============================================
    _rule("Payroll", EXPENSE, "payroll", "salary", "salaries", "wages?", "staff pay", "stipend"),
    _rule("Bank Charges & Fees", EXPENSE,
          "bank charges?", "charges?", "fees?", "commission", "vat", "stamp duty",
          "sms alert", "cot", "account maintenance", "maint fee", "levy"),
    _rule("Travel & Transport", EXPENSE,
          "uber", "bolt", "taxi", "transport", "cab", "bus", "flight", "airline", "air peace",
          "hotel", "fuel", "petrol", "diesel", "filling station", "gas station"),
    _rule("Utilities", EXPENSE,
          "electricity", "power", "nepa", "ekedc", "ikedc", "aedc", "phed", "water",
          "airtime", "mtn", "glo", "airtel", "9mobile", "data", "internet", "wifi"),
    _rule("Rent & Facilities", EXPENSE, "rent", "lease", "accommodation", "office space", "facility"),
    _rule("Software & Tools", EXPENSE,
          "software", "subscriptions?", "saas", "licen[cs]e", "hosting", "domain",
          "netflix", "spotify", "dstv", "gotv", "cable", "google", "microsoft", "aws", "zoom"),
    _rule("Office Supplies", EXPENSE, "office", "stationery", "supplies", "paper", "printer", "toner"),
    _rule("Marketing & Advertising", EXPENSE,
          "marketing", r"advert\w*", "promotion", "campaign", "ads", "facebook", "instagram"),
    _rule("Training & Development", EXPENSE, "training", "course", "seminar", "workshop", "conference"),
    _rule("Equipment & Hardware", EXPENSE,
          "equipment", "hardware", "laptop", "computer", "phone", "device", "generator"),
    _rule("Repairs & Maintenance", EXPENSE, "maintenance", "repairs?", "servicing", "fixing"),
    _rule("Insurance", EXPENSE, "insurance", "hmo", "health plan", "premium"),
    _rule("Cash Withdrawals", EXPENSE, "pos", "atm", "cash withdrawal", "withdrawal"),

    # ============================================
    # Income
    # ============================================
    _rule("Interest Income", INCOME, "interest", r"int\.? credit"),
    _rule("Refunds & Reversals", INCOME, "refund", "reversal", "reversed", "chargeback"),
    _rule("Deposits", INCOME, "deposit", "lodgement", "cash dep"),
    _rule("Customer Payments", INCOME,
          "payment received", "credit alert", "inward", "transfer from", "tfr from", "trf from",
          "frm", "payment from", "invoice", "inv"),
]

TRANSFER_PATTERN = _words(
    "transfer to own", "self transfer", "same name", "inter account", "inter-account",
    "between accounts", "own account",
)

# ============================================
# Vendor extraction
# ============================================

_VENDOR_NOISE = [
    re.compile(r"\bref(?:erence)?\s*[:#.]?\s*\S+", re.IGNORECASE),
    re.compile(r"\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}"),
    re.compile(r"\d{4}-\d{2}-\d{2}"),
    re.compile(r"\d{6,}"),
    _words("pos", "atm", "web", "nip", "trf", "tfr", "trsf", "mc", "nibss", "ussd", "mob",
           "transfer", "purchase", "payment", "pmt", "received", "credit alert", "debit"),
    _words("to", "from", "frm", "for", "by", "via", "at", "in", "on", "of"),
    re.compile(r"[/\\|:;#*_\-]+"),
]


def extract_vendor_name(description: str) -> Optional[str]:
    """
    Best-effort counterparty name from a statement narration.

    "POS PURCHASE - SHOPRITE LEKKI REF:883921" -> "Shoprite Lekki"
    """
    if not description:
        return None

    raw = re.sub(r"\s+", " ", description).strip()
    cleaned = raw
    for pattern in _VENDOR_NOISE:
        cleaned = pattern.sub(" ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip(" .,")

    if len(cleaned) < 3:
        return raw[:VENDOR_MAX_LENGTH] or None

    return cleaned.title()[:VENDOR_MAX_LENGTH]


# ============================================
# Categorization
# ============================================

def classify_type(transaction: RawTransaction) -> TransactionType:
    if transaction.amount == 0:
        return TransactionType.UNKNOWN
    if TRANSFER_PATTERN.search(transaction.description):
        return TransactionType.TRANSFER
    return TransactionType.EXPENSE if transaction.amount < 0 else TransactionType.INCOME


def find_category(description: str, transaction_type: TransactionType) -> Optional[str]:
    for rule in CATEGORY_RULES:
        if rule.type == transaction_type and rule.pattern.search(description):
            return rule.category
    return None


def categorize_transaction(transaction: RawTransaction) -> CategorizedTransaction:
    transaction_type = classify_type(transaction)
    category = None

    if transaction_type == TransactionType.UNKNOWN:
        confidence = UNKNOWN_CONFIDENCE
    elif transaction_type == TransactionType.TRANSFER:
        confidence = TRANSFER_CONFIDENCE
    else:
        category = find_category(transaction.description, transaction_type)
        confidence = RULE_CONFIDENCE if category else SIGN_ONLY_CONFIDENCE

    return CategorizedTransaction(
        **transaction.model_dump(),
        type=transaction_type,
        category=category,
        vendor_name=extract_vendor_name(transaction.description),
        confidence=confidence,
    )


def categorize_transactions(transactions: list[RawTransaction]) -> list[CategorizedTransaction]:
    """Categorize a whole statement, preserving source order."""
    return [categorize_transaction(t) for t in transactions]


def summarize_categories(transactions: list[CategorizedTransaction]) -> dict:
    """
    Totals and counts per type and per category.

    Returns:
        {
            "by_type": {"expense": {"count": 2, "total": 150.0}, ...},
            "by_category": {"Utilities": {"count": 1, "total": 100.0}, "Uncategorized": ...},
        }
    """
    by_type: dict[str, dict] = {}
    by_category: dict[str, dict] = {}

    for t in transactions:
        type_entry = by_type.setdefault(t.type.value, {"count": 0, "total": 0.0})
        type_entry["count"] += 1
        type_entry["total"] = round(type_entry["total"] + abs(t.amount), 2)

        category_entry = by_category.setdefault(t.category or "Uncategorized", {"count": 0, "total": 0.0})
        category_entry["count"] += 1
        category_entry["total"] = round(category_entry["total"] + abs(t.amount), 2)

    return {"by_type": by_type, "by_category": by_category}
