# app/core/duplicates.py

"""
Duplicate detection against already committed records.

A transaction is a duplicate when its bank reference matches a stored
bank_transaction_id, or when a record on the same date carries the same
absolute amount (within a cent).
"""

from datetime import date
from typing import Iterable, Optional

from pydantic import BaseModel

from app.core.normalizers import parse_amount, parse_date
from app.models import RawTransaction

AMOUNT_TOLERANCE = 0.01


class CommittedRecord(BaseModel):
    """The slice of a stored expense or income record used for comparison."""

    record_date: date
    amount: float
    bank_transaction_id: Optional[str] = None
    record_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict, date_field: str, amount_field: str) -> Optional["CommittedRecord"]:
        record_date = parse_date(row.get(date_field))
        if record_date is None:
            return None
        return cls(
            record_date=record_date,
            amount=parse_amount(row.get(amount_field)),
            bank_transaction_id=row.get("bank_transaction_id"),
            record_id=row.get("id"),
        )


def is_duplicate(transaction: RawTransaction, existing_records: Iterable[CommittedRecord]) -> bool:
    reference = (transaction.reference or "").strip()
    amount = abs(transaction.amount)

    for record in existing_records:
        if reference and record.bank_transaction_id == reference:
            return True
        if (
            record.record_date == transaction.transaction_date
            and abs(abs(record.amount) - amount) < AMOUNT_TOLERANCE
        ):
            return True

    return False


class DuplicateWindow:
    """
    Recent committed records, fetched once per batch.

    Expense transactions are compared with expense records and income
    transactions with bank-imported income records. With track_in_batch,
    records committed earlier in the same batch are visible too.
    """

    def __init__(
        self,
        expenses: Optional[list[CommittedRecord]] = None,
        income: Optional[list[CommittedRecord]] = None,
        track_in_batch: bool = True,
    ):
        self.expenses: list[CommittedRecord] = list(expenses or [])
        self.income: list[CommittedRecord] = list(income or [])
        self.track_in_batch = track_in_batch

    @classmethod
    def load(cls, store, user_id: str, limit: int, track_in_batch: bool = True) -> "DuplicateWindow":
        expenses = [
            CommittedRecord.from_row(row, "expense_date", "amount")
            for row in store.get_recent_expenses(user_id, limit)
        ]
        income = [
            CommittedRecord.from_row(row, "paid_date", "total")
            for row in store.get_recent_bank_income(user_id, limit)
        ]
        return cls(
            expenses=[r for r in expenses if r is not None],
            income=[r for r in income if r is not None],
            track_in_batch=track_in_batch,
        )

    def __len__(self) -> int:
        return len(self.expenses) + len(self.income)

    def records_for(self, transaction: RawTransaction) -> list[CommittedRecord]:
        return self.expenses if transaction.amount < 0 else self.income

    def contains(self, transaction: RawTransaction) -> bool:
        return is_duplicate(transaction, self.records_for(transaction))

    def remember(self, transaction: RawTransaction, record_id: Optional[str] = None) -> None:
        """Make a record committed by this batch visible to later rows."""
        if not self.track_in_batch:
            return
        self.records_for(transaction).append(CommittedRecord(
            record_date=transaction.transaction_date,
            amount=abs(transaction.amount),
            bank_transaction_id=transaction.reference or None,
            record_id=record_id,
        ))
