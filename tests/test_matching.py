# tests/test_matching.py

"""
Tests for the invoice matching engine.
"""

import re
import pytest
from datetime import date

from app.config import get_settings
from app.core.confidence import calculate_confidence
from app.core.matching import (
    DEFAULT_CUSTOMER_NAME,
    create_invoice_from_transaction,
    extract_customer_name,
    find_matching_invoice,
    generate_invoice_number,
    mark_invoice_as_paid,
    should_mark_paid,
)
from app.models import MatchResult, RawTransaction


# ============================================
# Test Data
# ============================================

def make_income(
    amount: float,
    txn_date: date,
    description: str = "Transfer from John Okafor",
    reference: str = None,
) -> RawTransaction:
    return RawTransaction(
        transaction_date=txn_date,
        description=description,
        amount=amount,
        reference=reference,
    )


def make_invoice(
    total: float,
    issue_date: date,
    invoice_number: str = "INV-2001",
    full_name: str = "Zeta Holdings",
    company_name: str = None,
) -> dict:
    return {
        "id": "inv-1",
        "invoice_number": invoice_number,
        "total": total,
        "status": "sent",
        "issue_date": issue_date.isoformat(),
        "customers": {"full_name": full_name, "company_name": company_name},
    }


def make_match(confidence: float) -> MatchResult:
    return MatchResult(invoice_id="inv-1", confidence=confidence)


# ============================================
# Confidence Scoring Tests
# ============================================

class TestConfidenceScoring:
    """Test the invoice confidence scoring algorithm."""

    def test_everything_matches(self):
        """Exact amount, invoice number, payer and date caps at 0.99."""
        txn = make_income(200, date(2024, 1, 16), "Payment from Acme Stores INV-1001")
        invoice = make_invoice(200, date(2024, 1, 10), "INV-1001", "Acme Stores")

        breakdown = calculate_confidence(txn, invoice)

        assert breakdown.amount_score == 50
        assert breakdown.reference_score == 40
        assert breakdown.name_score == 30
        assert breakdown.date_score == 10
        assert breakdown.total == 130
        assert breakdown.confidence == 0.99
        assert breakdown.match_type == "combined"

    @pytest.mark.parametrize("received,expected_score", [
        (200.00, 50),
        (199.00, 40),
        (195.00, 25),
    ])
    def test_amount_bands(self, received, expected_score):
        txn = make_income(received, date(2024, 3, 1))
        invoice = make_invoice(200, date(2024, 1, 1))

        assert calculate_confidence(txn, invoice).amount_score == expected_score

    def test_amount_too_far_discards_candidate(self):
        txn = make_income(180, date(2024, 1, 2))
        invoice = make_invoice(200, date(2024, 1, 1))

        assert calculate_confidence(txn, invoice) is None

    def test_invoice_number_without_separators(self):
        txn = make_income(200, date(2024, 3, 1), "NIP TRF INV0042 RECEIVED")
        invoice = make_invoice(200, date(2024, 1, 1), "INV-0042")

        breakdown = calculate_confidence(txn, invoice)

        assert breakdown.reference_score == 40
        assert breakdown.match_type == "reference"

    def test_misspelt_customer_name(self):
        txn = make_income(200, date(2024, 3, 1), "Transfer from Chinedu Okonkow")
        invoice = make_invoice(200, date(2024, 1, 1), full_name="Chinedu Okonkwo")

        breakdown = calculate_confidence(txn, invoice)

        assert breakdown.name_score == 20
        assert breakdown.match_type == "customer"

    def test_partial_customer_name(self):
        txn = make_income(200, date(2024, 3, 1), "TRF FROM TUNDE")
        invoice = make_invoice(200, date(2024, 1, 1), full_name="Tunde Bakare")

        assert calculate_confidence(txn, invoice).name_score == 15

    def test_company_name_counts(self):
        txn = make_income(200, date(2024, 3, 1), "Payment from Bluewave Ltd")
        invoice = make_invoice(200, date(2024, 1, 1), full_name="Ada Obi", company_name="Bluewave Limited")

        assert calculate_confidence(txn, invoice).name_score == 30

    @pytest.mark.parametrize("days,expected_score", [(0, 10), (7, 10), (20, 5), (45, 0)])
    def test_date_bands(self, days, expected_score):
        txn = make_income(200, date(2024, 3, 1))
        invoice = make_invoice(200, date.fromordinal(date(2024, 3, 1).toordinal() - days))

        assert calculate_confidence(txn, invoice).date_score == expected_score


# ============================================
# Decision Rule Tests
# ============================================

class TestShouldMarkPaid:

    def test_threshold_is_inclusive(self):
        assert should_mark_paid(make_match(0.60))
        assert not should_mark_paid(make_match(0.59))

    def test_no_match(self):
        assert not should_mark_paid(None)

    def test_custom_threshold(self):
        assert not should_mark_paid(make_match(0.75), threshold=0.8)


# ============================================
# Candidate Search Tests
# ============================================

class TestFindMatchingInvoice:

    def test_picks_best_scoring_invoice(self, store):
        acme = store.add_customer("user-1", "Acme Stores")
        other = store.add_customer("user-1", "Zeta Holdings")
        store.add_invoice("user-1", "INV-9", 200, date(2024, 1, 10), customer=other)
        best = store.add_invoice("user-1", "INV-1001", 200, date(2024, 1, 10), customer=acme)

        match = find_matching_invoice(store, make_income(200, date(2024, 1, 16), "Payment from Acme Stores"), "user-1")

        assert match.invoice_id == best["id"]
        assert match.match_type == "customer"

    def test_tie_goes_to_closer_amount(self, store):
        store.add_invoice("user-1", "INV-A", 202, date(2024, 1, 14))
        closer = store.add_invoice("user-1", "INV-B", 199, date(2024, 1, 14))

        match = find_matching_invoice(store, make_income(200, date(2024, 1, 16)), "user-1")

        assert match.invoice_id == closer["id"]
        assert match.confidence == 0.5

    def test_below_candidate_minimum(self, store):
        # Within 5% (25) plus a close date (10) is not enough to be a candidate
        store.add_invoice("user-1", "INV-1", 205, date(2024, 1, 14))

        assert find_matching_invoice(store, make_income(200, date(2024, 1, 16)), "user-1") is None

    def test_only_open_invoices_in_window(self, store):
        store.add_invoice("user-1", "INV-PAID", 200, date(2024, 1, 14), status="paid")
        store.add_invoice("user-1", "INV-OLD", 200, date(2023, 10, 1))
        store.add_invoice("user-1", "INV-FUTURE", 200, date(2024, 2, 1))
        store.add_invoice("user-2", "INV-OTHER", 200, date(2024, 1, 14))

        assert find_matching_invoice(store, make_income(200, date(2024, 1, 16)), "user-1") is None

    def test_outflows_never_match(self, store):
        store.add_invoice("user-1", "INV-1", 200, date(2024, 1, 14))

        assert find_matching_invoice(store, make_income(-200, date(2024, 1, 16)), "user-1") is None

    def test_candidate_minimum_from_settings(self, store):
        # Exact amount (50) plus a close date (10)
        store.add_invoice("user-1", "INV-1", 200, date(2024, 1, 14))
        strict = get_settings().model_copy(update={"invoice_candidate_min_score": 70})

        assert find_matching_invoice(store, make_income(200, date(2024, 1, 16)), "user-1") is not None
        assert find_matching_invoice(store, make_income(200, date(2024, 1, 16)), "user-1", strict) is None

    def test_search_window_from_settings(self, store):
        store.add_invoice("user-1", "INV-1", 200, date(2024, 1, 6))
        narrow = get_settings().model_copy(update={"invoice_search_days_before": 7})

        assert find_matching_invoice(store, make_income(200, date(2024, 1, 16)), "user-1", narrow) is None


# ============================================
# Persistence Tests
# ============================================

class TestMarkInvoiceAsPaid:

    def test_marks_paid_and_logs_previous_state(self, store):
        invoice = store.add_invoice("user-1", "INV-1", 200, date(2024, 1, 10))
        txn = make_income(200, date(2024, 1, 16), reference="FT900")

        result = mark_invoice_as_paid(store, invoice["id"], "user-1", txn, "batch-1")

        assert result.success
        stored = store.invoice(invoice["id"])
        assert stored["status"] == "paid"
        assert stored["paid_date"] == "2024-01-16"
        assert stored["bank_transaction_id"] == "FT900"
        assert stored["import_batch_id"] == "batch-1"

        action = store.actions[0]
        assert action.action == "invoice_marked_paid"
        assert action.record_id == invoice["id"]
        assert action.previous_state["status"] == "sent"
        assert action.previous_state["paid_date"] is None

    def test_missing_invoice(self, store):
        result = mark_invoice_as_paid(store, "inv-missing", "user-1")

        assert not result.success
        assert result.error == "Invoice not found"

    def test_store_failure_is_reported(self, store):
        invoice = store.add_invoice("user-1", "INV-1", 200, date(2024, 1, 10))
        store.fail_on.add("update_invoice")

        result = mark_invoice_as_paid(store, invoice["id"], "user-1")

        assert not result.success
        assert store.invoice(invoice["id"])["status"] == "sent"


class TestCreateInvoiceFromTransaction:

    def test_creates_customer_invoice_and_item(self, store):
        txn = make_income(5000, date(2024, 1, 16), "Payment from Acme", reference="FT1")

        result = create_invoice_from_transaction(store, txn, "user-1", "NGN", "batch-1")

        assert result.success
        invoice = store.invoice(result.invoice_id)
        assert invoice["status"] == "paid"
        assert invoice["total"] == 5000
        assert invoice["paid_date"] == "2024-01-16"
        assert invoice["currency"] == "NGN"
        assert invoice["bank_transaction_id"] == "FT1"
        assert invoice["import_batch_id"] == "batch-1"
        assert invoice["invoice_number"].startswith("INV-")

        assert store.customers[0]["full_name"] == "Acme"
        assert invoice["client_id"] == store.customers[0]["id"]
        assert store.invoice_items[0]["invoice_id"] == invoice["id"]
        assert store.invoice_items[0]["amount"] == 5000

        assert [a.action for a in store.actions] == ["customer_created", "invoice_created"]

    def test_reuses_existing_customer(self, store):
        existing = store.add_customer("user-1", "Acme")

        result = create_invoice_from_transaction(
            store, make_income(100, date(2024, 1, 16), "Payment from acme"), "user-1", "NGN", "batch-1",
        )

        assert store.invoice(result.invoice_id)["client_id"] == existing["id"]
        assert len(store.customers) == 1
        assert [a.action for a in store.actions] == ["invoice_created"]

    def test_default_customer_for_unreadable_narration(self, store):
        create_invoice_from_transaction(
            store, make_income(100, date(2024, 1, 16), "NIP/0123/XYZ"), "user-1", "NGN",
        )

        assert store.customers[0]["full_name"] == DEFAULT_CUSTOMER_NAME

    def test_store_failure_is_reported(self, store):
        store.fail_on.add("create_invoice")

        result = create_invoice_from_transaction(
            store, make_income(100, date(2024, 1, 16)), "user-1", "NGN", "batch-1",
        )

        assert not result.success
        assert "create_invoice failed" in result.error
        # The customer created for this row is removed again
        assert store.customers == []

    def test_unlogged_invoice_is_removed(self, store):
        store.add_customer("user-1", "Acme")
        store.fail_on.add("record_action")

        result = create_invoice_from_transaction(
            store, make_income(100, date(2024, 1, 16), "Payment from Acme"), "user-1", "NGN", "batch-1",
        )

        assert not result.success
        assert store.invoices == []
        assert len(store.customers) == 1

    def test_unlogged_customer_is_removed(self, store):
        store.fail_on.add("record_action")

        result = create_invoice_from_transaction(
            store, make_income(100, date(2024, 1, 16), "Payment from Acme"), "user-1", "NGN", "batch-1",
        )

        assert not result.success
        assert store.customers == []
        assert store.invoices == []

    def test_line_item_failure_keeps_invoice(self, store):
        store.fail_on.add("create_invoice_item")

        result = create_invoice_from_transaction(
            store, make_income(100, date(2024, 1, 16), "Payment from Acme"), "user-1", "NGN", "batch-1",
        )

        assert result.success
        assert store.invoice(result.invoice_id) is not None
        assert store.invoice_items == []
        assert [a.action for a in store.actions] == ["customer_created", "invoice_created"]


# ============================================
# Helper Tests
# ============================================

class TestHelpers:

    def test_customer_name_after_from(self):
        assert extract_customer_name("Payment from Acme") == "Acme"

    def test_all_caps_names_rejected(self):
        assert extract_customer_name("TRANSFER FROM JOHN OKAFOR") is None

    def test_capitalized_words(self):
        assert extract_customer_name("Lodgement Chika Obi") == "Lodgement Chika Obi"

    def test_invoice_number_format(self):
        assert re.fullmatch(r"INV-[0-9A-Z]+", generate_invoice_number())
