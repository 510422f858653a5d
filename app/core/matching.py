# app/core/matching.py

"""
Invoice matching for income transactions.

For every inflow the matcher scores the user's open invoices. A confident
match is marked paid; anything else becomes a new paid invoice so the
income is still recorded.
"""

from datetime import timedelta
from typing import Optional
import logging
import re
import time

from app.config import Settings, get_settings
from app.core.confidence import calculate_confidence
from app.core.exceptions import StoreError
from app.core.normalizers import parse_amount
from app.models import BatchAction, MatchResult, OperationResult, RawTransaction

logger = logging.getLogger(__name__)

OPEN_INVOICE_STATUSES = ["draft", "sent", "overdue"]
DEFAULT_CUSTOMER_NAME = "Bank Import Customer"

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"

_CUSTOMER_PATTERNS = [
    re.compile(r"from\s+([A-Z][A-Za-z\s]+?)(?:\s+(?:ltd|limited|plc|inc|corp))?(?:\s|$)", re.IGNORECASE),
    re.compile(r"payment\s+(?:from|by)\s+([A-Z][A-Za-z\s]+)", re.IGNORECASE),
    re.compile(r"([A-Z][A-Za-z]+(?:\s+[A-Z][A-Za-z]+)+)"),
]


# ============================================
# Matching
# ============================================

def find_matching_invoice(
    store,
    transaction: RawTransaction,
    user_id: str,
    settings: Optional[Settings] = None,
) -> Optional[MatchResult]:
    """
    Best open invoice for an income transaction.

    Candidates are draft/sent/overdue invoices issued within the configured
    window around the payment (60 days before, 7 after by default). Ties go
    to the smaller amount difference.
    """
    if transaction.amount <= 0:
        return None

    settings = settings or get_settings()
    start = transaction.transaction_date - timedelta(days=settings.invoice_search_days_before)
    end = transaction.transaction_date + timedelta(days=settings.invoice_search_days_after)
    invoices = store.get_open_invoices(user_id, OPEN_INVOICE_STATUSES, start, end)

    best: Optional[MatchResult] = None
    best_diff = 0.0

    for invoice in invoices:
        breakdown = calculate_confidence(transaction, invoice)
        if breakdown is None or breakdown.total < settings.invoice_candidate_min_score:
            continue

        diff = abs(parse_amount(invoice.get("total")) - transaction.amount)
        if best is None or breakdown.total > best.breakdown.total or (
            breakdown.total == best.breakdown.total and diff < best_diff
        ):
            best = MatchResult(
                invoice_id=invoice["id"],
                invoice_number=invoice.get("invoice_number"),
                confidence=breakdown.confidence,
                match_type=breakdown.match_type,
                breakdown=breakdown,
            )
            best_diff = diff

    return best


def should_mark_paid(match: Optional[MatchResult], threshold: Optional[float] = None) -> bool:
    """Mark-paid decision rule. Below the threshold a new invoice is created instead."""
    if threshold is None:
        threshold = get_settings().invoice_match_threshold
    return match is not None and match.confidence >= threshold


# ============================================
# Persistence
# ============================================

def mark_invoice_as_paid(
    store,
    invoice_id: str,
    user_id: str,
    transaction: Optional[RawTransaction] = None,
    batch_id: Optional[str] = None,
) -> OperationResult:
    """
    Set an invoice to paid and stamp the payment.

    The previous state is logged before the update so undo can restore it.
    """
    try:
        invoice = store.get_invoice(invoice_id, user_id)
        if invoice is None:
            return OperationResult(success=False, invoice_id=invoice_id, error="Invoice not found")

        if batch_id:
            store.record_action(BatchAction(
                batch_id=batch_id,
                user_id=user_id,
                action="invoice_marked_paid",
                record_id=invoice_id,
                previous_state={
                    "status": invoice.get("status"),
                    "paid_date": invoice.get("paid_date"),
                    "bank_transaction_id": invoice.get("bank_transaction_id"),
                    "import_batch_id": invoice.get("import_batch_id"),
                },
            ))

        updates = {"status": "paid", "import_batch_id": batch_id}
        if transaction is not None:
            updates["paid_date"] = transaction.transaction_date.isoformat()
            updates["bank_transaction_id"] = transaction.reference
        store.update_invoice(invoice_id, user_id, updates)
    except StoreError as e:
        logger.warning("Could not mark invoice %s as paid: %s", invoice_id, e.message)
        return OperationResult(success=False, invoice_id=invoice_id, error=e.message)

    return OperationResult(success=True, invoice_id=invoice_id)


def create_invoice_from_transaction(
    store,
    transaction: RawTransaction,
    user_id: str,
    currency: str,
    batch_id: Optional[str] = None,
) -> OperationResult:
    """
    Record an unmatched inflow as a new paid invoice with one line item.

    The customer is looked up by name from the narration, or created.
    If a write fails before the invoice is logged, the invoice and any
    customer created here are removed again, so a failed row leaves nothing
    behind. The line item is best-effort: undo removes it with the invoice.
    """
    amount = abs(transaction.amount)
    issue_date = transaction.transaction_date.isoformat()
    customer_name = extract_customer_name(transaction.description) or DEFAULT_CUSTOMER_NAME
    created_customer_id: Optional[str] = None

    try:
        customer = store.find_customer_by_name(user_id, customer_name)
        if customer is None:
            customer = store.create_customer({
                "user_id": user_id,
                "full_name": customer_name,
                "notes": "Auto-created from bank statement import",
            })
            created_customer_id = customer["id"]
            if batch_id:
                store.record_action(BatchAction(
                    batch_id=batch_id,
                    user_id=user_id,
                    action="customer_created",
                    record_id=customer["id"],
                ))

        invoice = store.create_invoice({
            "user_id": user_id,
            "client_id": customer["id"],
            "invoice_number": generate_invoice_number(),
            "title": f"Payment - {transaction.description[:50]}",
            "status": "paid",
            "issue_date": issue_date,
            "due_date": issue_date,
            "paid_date": issue_date,
            "currency": currency,
            "subtotal": amount,
            "tax_rate": 0,
            "tax_amount": 0,
            "total": amount,
            "notes": f"Auto-created from bank statement import.\nOriginal description: {transaction.description}",
            "bank_transaction_id": transaction.reference,
            "import_batch_id": batch_id,
        })
        if batch_id:
            try:
                store.record_action(BatchAction(
                    batch_id=batch_id,
                    user_id=user_id,
                    action="invoice_created",
                    record_id=invoice["id"],
                ))
            except StoreError:
                _discard(store.delete_invoice, invoice["id"], user_id)
                raise
    except StoreError as e:
        logger.warning("Could not create invoice from bank transaction: %s", e.message)
        if created_customer_id:
            _discard(store.delete_customer, created_customer_id, user_id)
        return OperationResult(success=False, error=e.message)

    try:
        store.create_invoice_item({
            "invoice_id": invoice["id"],
            "description": transaction.description,
            "quantity": 1,
            "unit_price": amount,
            "amount": amount,
            "sort_order": 0,
        })
    except StoreError as e:
        logger.warning("Invoice %s created without a line item: %s", invoice["id"], e.message)

    return OperationResult(success=True, invoice_id=invoice["id"])


def _discard(delete, record_id: str, user_id: str) -> None:
    """Remove a record written by a failed step."""
    try:
        delete(record_id, user_id)
    except StoreError as e:
        logger.warning("Could not remove %s after a failed import step: %s", record_id, e.message)


# ============================================
# Helpers
# ============================================

def extract_customer_name(description: str) -> Optional[str]:
    """
    Guess the payer's name from a narration.

    Rejects all-caps hits, which are usually bank codes rather than names.
    """
    for pattern in _CUSTOMER_PATTERNS:
        match = pattern.search(description or "")
        if not match:
            continue
        name = match.group(1).strip()
        if 2 <= len(name) <= 50 and name != name.upper():
            return name
    return None


def generate_invoice_number() -> str:
    """INV-<base36 timestamp>, microsecond resolution."""
    value = time.time_ns() // 1000
    digits = ""
    while value:
        value, remainder = divmod(value, 36)
        digits = _BASE36[remainder] + digits
    return f"INV-{digits or '0'}"
