# app/core/importer.py

"""
Bank statement import orchestration.

One call to ImportOrchestrator.run is one batch: validate, parse,
categorize, then commit each transaction in source order. Per-transaction
store failures are recorded on that transaction's outcome and the batch
carries on; anything else fails the batch.

Every write is logged to the compensation log so undo can reverse it.
"""

from typing import Optional
import logging

from app.config import Settings, get_settings
from app.core.categorizer import categorize_transactions
from app.core.duplicates import DuplicateWindow
from app.core.exceptions import (
    BatchFatalError,
    BatchNotFound,
    ParseFailure,
    StoreError,
    UndoRejected,
)
from app.core.matching import (
    create_invoice_from_transaction,
    find_matching_invoice,
    mark_invoice_as_paid,
    should_mark_paid,
)
from app.core.parsers import parse_statement, validate_statement
from app.models import (
    BatchAction,
    BatchStatus,
    CategorizedTransaction,
    FileType,
    ImportBatch,
    ImportDetail,
    ImportHistory,
    ImportResult,
    ImportSummary,
    StatementFile,
    TransactionType,
    UndoResult,
)

logger = logging.getLogger(__name__)

SKIP_TRANSFER = "Skipped: Internal transfer"
SKIP_UNKNOWN = "Skipped: Unknown or zero amount"
SKIP_DUPLICATE = "Skipped: Duplicate transaction"


class ImportOrchestrator:
    """Drives one statement file through the pipeline and owns its batch."""

    def __init__(self, store, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    # ============================================
    # Import
    # ============================================

    def run(
        self,
        user_id: str,
        statement: StatementFile,
        bank_hint: Optional[str] = None,
    ) -> ImportResult:
        """
        Import a statement file.

        Raises:
            FileTypeUnsupported / FileTooLarge: before any batch exists
            ParseFailure: batch marked failed, nothing committed
            BatchFatalError: batch marked failed, earlier writes stay (undo is not possible)
        """
        file_type = validate_statement(statement)
        currency = self.store.get_default_currency(user_id) or self.settings.default_currency

        batch = self.store.create_batch(ImportBatch(
            user_id=user_id,
            file_name=statement.file_name,
            file_type=file_type.value,
            file_size=statement.size,
        ))
        logger.info("Created import batch %s for %s (%s)", batch.id, statement.file_name, file_type.value)

        try:
            return self._process(batch, statement, file_type, bank_hint, currency)
        except ParseFailure:
            raise
        except Exception as e:
            logger.exception("Import batch %s failed", batch.id)
            message = str(e) or type(e).__name__
            self._fail(batch, message)
            raise BatchFatalError(message, batch_id=batch.id) from e

    def _process(
        self,
        batch: ImportBatch,
        statement: StatementFile,
        file_type: FileType,
        bank_hint: Optional[str],
        currency: str,
    ) -> ImportResult:
        parsed = parse_statement(statement, bank_hint, file_type)
        if not parsed.success:
            message = parsed.error or "Failed to parse statement"
            logger.info("Import batch %s could not be parsed: %s", batch.id, message)
            self._fail(batch, message)
            raise ParseFailure(message, batch_id=batch.id, details={"warnings": parsed.warnings})

        logger.info(
            "Parsed %d transactions from %s (%s)",
            len(parsed.transactions), statement.file_name, parsed.bank_name,
        )

        batch.bank_name = parsed.bank_name
        batch.account_number = parsed.account_number
        batch.period_start = parsed.period_start
        batch.period_end = parsed.period_end
        batch.total_transactions = len(parsed.transactions)
        self.store.update_batch(
            batch,
            "bank_name", "account_number", "period_start", "period_end", "total_transactions",
        )

        transactions = categorize_transactions(parsed.transactions)
        window = DuplicateWindow.load(
            self.store,
            batch.user_id,
            self.settings.duplicate_window_size,
            self.settings.detect_in_batch_duplicates,
        )

        summary = ImportSummary(total_transactions=len(transactions))
        outcomes: list[CategorizedTransaction] = []
        errors: list[str] = []

        for transaction in transactions:
            try:
                outcome = self._import_transaction(transaction, batch, window, currency)
            except StoreError as e:
                logger.warning(
                    "Import batch %s: could not import '%s': %s",
                    batch.id, transaction.description, e.message,
                )
                outcome = transaction.skipped(e.message)
                errors.append(f"{transaction.transaction_date.isoformat()} {transaction.description[:50]}: {e.message}")

            _tally(summary, outcome)
            outcomes.append(outcome)

        batch.imported_expenses = summary.imported_expenses
        batch.imported_income = summary.imported_income
        batch.skipped_transactions = summary.skipped_transactions
        batch.complete()
        self.store.update_batch(
            batch,
            "imported_expenses", "imported_income", "skipped_transactions", "status", "completed_at",
        )

        logger.info(
            "Import batch %s completed: %d expenses, %d income, %d skipped",
            batch.id, summary.imported_expenses, summary.imported_income, summary.skipped_transactions,
        )

        return ImportResult(
            success=True,
            batch_id=batch.id,
            summary=summary,
            transactions=outcomes,
            errors=errors,
            warnings=parsed.warnings,
        )

    def _import_transaction(
        self,
        transaction: CategorizedTransaction,
        batch: ImportBatch,
        window: DuplicateWindow,
        currency: str,
    ) -> CategorizedTransaction:
        if transaction.type == TransactionType.TRANSFER:
            return transaction.skipped(SKIP_TRANSFER)

        if transaction.type == TransactionType.UNKNOWN or transaction.amount == 0:
            return transaction.skipped(SKIP_UNKNOWN)

        if window.contains(transaction):
            return transaction.skipped(SKIP_DUPLICATE)

        if transaction.type == TransactionType.EXPENSE:
            record = self.store.create_expense(self._expense_record(transaction, batch, currency))
            # Undo deletes expenses by batch id, so the log entry is optional
            try:
                self.store.record_action(BatchAction(
                    batch_id=batch.id,
                    user_id=batch.user_id,
                    action="expense_created",
                    record_id=record["id"],
                ))
            except StoreError as e:
                logger.warning("Could not log expense %s for batch %s: %s", record["id"], batch.id, e.message)
            window.remember(transaction, record["id"])
            return transaction.with_outcome(imported=True, imported_record_id=record["id"])

        match = find_matching_invoice(self.store, transaction, batch.user_id, self.settings)

        if should_mark_paid(match, self.settings.invoice_match_threshold):
            result = mark_invoice_as_paid(self.store, match.invoice_id, batch.user_id, transaction, batch.id)
            if not result.success:
                raise StoreError(f"Could not mark invoice {match.invoice_number} as paid: {result.error}")
            window.remember(transaction, match.invoice_id)
            return transaction.with_outcome(
                imported=True,
                imported_record_id=match.invoice_id,
                matched_invoice_id=match.invoice_id,
            )

        result = create_invoice_from_transaction(self.store, transaction, batch.user_id, currency, batch.id)
        if not result.success:
            raise StoreError(f"Could not create invoice: {result.error}")
        window.remember(transaction, result.invoice_id)
        return transaction.with_outcome(imported=True, imported_record_id=result.invoice_id)

    @staticmethod
    def _expense_record(transaction: CategorizedTransaction, batch: ImportBatch, currency: str) -> dict:
        return {
            "user_id": batch.user_id,
            "description": transaction.description,
            "amount": abs(transaction.amount),
            "currency": currency,
            "category": transaction.category,
            "expense_date": transaction.transaction_date.isoformat(),
            "vendor_name": transaction.vendor_name,
            "status": "approved",
            "import_batch_id": batch.id,
            "bank_transaction_id": transaction.reference,
            "bank_description": transaction.description,
            "is_tax_deductible": False,
            "is_recurring": False,
        }

    def _fail(self, batch: ImportBatch, message: str) -> None:
        batch.fail(message)
        try:
            self.store.update_batch(batch, "status", "error_message", "completed_at")
        except StoreError as e:
            logger.error("Could not mark import batch %s as failed: %s", batch.id, e.message)

    # ============================================
    # Undo
    # ============================================

    def undo(self, batch_id: str, user_id: str) -> UndoResult:
        """
        Reverse a completed import.

        Restores invoices marked paid, deletes invoices, line items and
        customers the batch created, deletes its expenses, then moves the
        batch to undone. Rejected requests touch nothing.
        """
        batch = self.store.get_batch(batch_id)
        if batch is None:
            raise UndoRejected("Import not found", reason="not_found", details={"batch_id": batch_id})
        if batch.user_id != user_id:
            raise UndoRejected("Import not found", reason="forbidden", details={"batch_id": batch_id})
        if not batch.can_transition(BatchStatus.UNDONE):
            raise UndoRejected(
                f"Cannot undo an import with status '{batch.status.value}'",
                reason="invalid_state",
                details={"batch_id": batch_id, "status": batch.status.value},
            )

        actions = list(reversed(self.store.get_actions(batch_id)))
        reverted_invoices = 0
        deleted_invoices = 0

        for action in actions:
            if action.action != "invoice_marked_paid":
                continue
            previous = action.previous_state
            self.store.update_invoice(action.record_id, user_id, {
                "status": previous.get("status") or "sent",
                "paid_date": previous.get("paid_date"),
                "bank_transaction_id": previous.get("bank_transaction_id"),
                "import_batch_id": previous.get("import_batch_id"),
            })
            reverted_invoices += 1

        for action in actions:
            if action.action == "invoice_created" and self.store.delete_invoice(action.record_id, user_id):
                deleted_invoices += 1

        # Customers last: only those left without invoices go
        for action in actions:
            if action.action != "customer_created":
                continue
            if self.store.count_customer_invoices(action.record_id, user_id) == 0:
                self.store.delete_customer(action.record_id, user_id)

        deleted_expenses = self.store.delete_expenses_by_batch(batch_id, user_id)

        batch.mark_undone()
        self.store.update_batch(batch, "status", "undone_at")

        logger.info(
            "Import batch %s undone: %d expenses deleted, %d invoices reverted, %d invoices deleted",
            batch_id, deleted_expenses, reverted_invoices, deleted_invoices,
        )

        return UndoResult(
            success=True,
            batch_id=batch_id,
            deleted_expenses=deleted_expenses,
            reverted_invoices=reverted_invoices,
            deleted_invoices=deleted_invoices,
            message=f"Import undone. Removed {deleted_expenses} expenses and {deleted_invoices} invoices.",
        )

    # ============================================
    # History
    # ============================================

    def get_import(self, batch_id: str, user_id: str) -> ImportDetail:
        batch = self.store.get_batch(batch_id)
        if batch is None or batch.user_id != user_id:
            raise BatchNotFound("Import not found", details={"batch_id": batch_id})
        return ImportDetail(batch=batch, expenses=self.store.get_expenses_by_batch(batch_id, user_id))

    def list_imports(self, user_id: str, limit: int = 20, offset: int = 0) -> ImportHistory:
        imports, total = self.store.list_batches(user_id, limit, offset)
        return ImportHistory(imports=imports, total=total, limit=limit, offset=offset)


def _tally(summary: ImportSummary, outcome: CategorizedTransaction) -> None:
    if not outcome.imported:
        summary.skipped_transactions += 1
    elif outcome.type == TransactionType.EXPENSE:
        summary.imported_expenses += 1
    else:
        summary.imported_income += 1
        if outcome.matched_invoice_id:
            summary.invoices_marked_paid += 1
        else:
            summary.new_invoices_created += 1
