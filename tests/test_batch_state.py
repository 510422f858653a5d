# tests/test_batch_state.py

"""
Tests for the import batch status machine.
"""

import pytest

from app.core.exceptions import InvalidBatchTransition
from app.models import BatchStatus, ImportBatch


def make_batch(status: BatchStatus = BatchStatus.PROCESSING) -> ImportBatch:
    return ImportBatch(
        id="batch-1",
        user_id="user-1",
        file_name="statement.csv",
        file_type="csv",
        status=status,
    )


class TestBatchTransitions:

    def test_new_batch_is_processing(self):
        assert make_batch().status == BatchStatus.PROCESSING

    def test_complete(self):
        batch = make_batch()

        batch.complete()

        assert batch.status == BatchStatus.COMPLETED
        assert batch.completed_at is not None

    def test_fail_records_message(self):
        batch = make_batch()

        batch.fail("No transactions found in statement")

        assert batch.status == BatchStatus.FAILED
        assert batch.error_message == "No transactions found in statement"

    def test_undo_completed(self):
        batch = make_batch(BatchStatus.COMPLETED)

        batch.mark_undone()

        assert batch.status == BatchStatus.UNDONE
        assert batch.undone_at is not None

    @pytest.mark.parametrize("start,target", [
        (BatchStatus.PROCESSING, BatchStatus.UNDONE),
        (BatchStatus.COMPLETED, BatchStatus.FAILED),
        (BatchStatus.COMPLETED, BatchStatus.PROCESSING),
        (BatchStatus.FAILED, BatchStatus.UNDONE),
        (BatchStatus.FAILED, BatchStatus.COMPLETED),
        (BatchStatus.UNDONE, BatchStatus.COMPLETED),
        (BatchStatus.UNDONE, BatchStatus.UNDONE),
    ])
    def test_illegal_transitions(self, start, target):
        batch = make_batch(start)

        with pytest.raises(InvalidBatchTransition):
            batch.transition(target)

        assert batch.status == start


class TestBatchCounts:

    def test_consistent_counts(self):
        batch = make_batch()
        batch.total_transactions = 5
        batch.imported_expenses = 2
        batch.imported_income = 1
        batch.skipped_transactions = 2

        assert batch.is_consistent

    def test_inconsistent_counts(self):
        batch = make_batch()
        batch.total_transactions = 5
        batch.imported_expenses = 2

        assert not batch.is_consistent

    def test_record_drops_id(self):
        record = make_batch().to_record()

        assert "id" not in record
        assert record["status"] == "processing"

    def test_record_subset(self):
        assert make_batch().to_record("status") == {"status": "processing"}
