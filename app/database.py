# app/database.py

from datetime import date
from functools import lru_cache
from typing import Any, Optional
import re

from postgrest.exceptions import APIError
from supabase import create_client, Client

from app.config import get_settings
from app.core.exceptions import StoreError
from app.models import BatchAction, ImportBatch

IMPORTS_TABLE = "bank_statement_imports"
ACTIONS_TABLE = "bank_import_actions"

INVOICE_CANDIDATE_COLUMNS = (
    "id, invoice_number, total, status, issue_date, due_date, client_id, "
    "customers:client_id (full_name, company_name)"
)


@lru_cache()
def get_admin_client() -> Client:
    """Admin client (bypasses RLS - use carefully). Created on first use."""
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key
    )


def _execute(query, operation: str):
    try:
        return query.execute()
    except APIError as e:
        raise StoreError(
            f"{operation} failed: {e.message}",
            details={"code": e.code, "hint": e.hint},
        ) from e


def _escape_like(value: str) -> str:
    """Match a LIKE pattern literally: escape backslash, % and _."""
    return re.sub(r"([\\%_])", r"\\\1", value)


def _first(response) -> Optional[dict]:
    return response.data[0] if response.data else None


# ============================================
# Batch row mapping
# ============================================

def _batch_to_row(batch: ImportBatch, *fields: str) -> dict[str, Any]:
    row = batch.to_record(*fields)
    if "period_start" in row:
        row["statement_period_start"] = row.pop("period_start")
    if "period_end" in row:
        row["statement_period_end"] = row.pop("period_end")
    return row


def _row_to_batch(row: dict) -> ImportBatch:
    data = dict(row)
    data["period_start"] = data.pop("statement_period_start", None)
    data["period_end"] = data.pop("statement_period_end", None)
    return ImportBatch.model_validate(data)


class SupabaseStore:
    """
    Every read and write the import pipeline makes.

    All methods are synchronous and raise StoreError on a failed request.
    """

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_admin_client()
        return self._client

    def table(self, name: str):
        return self.client.table(name)

    # ============================================
    # Profiles
    # ============================================

    def get_default_currency(self, user_id: str) -> Optional[str]:
        response = _execute(
            self.table("profiles").select("default_currency").eq("id", user_id).limit(1),
            "Fetch profile",
        )
        profile = _first(response)
        return profile.get("default_currency") if profile else None

    # ============================================
    # Import batches
    # ============================================

    def create_batch(self, batch: ImportBatch) -> ImportBatch:
        response = _execute(self.table(IMPORTS_TABLE).insert(_batch_to_row(batch)), "Create import record")
        row = _first(response)
        if row is None:
            raise StoreError("Create import record failed: no row returned")
        return _row_to_batch(row)

    def update_batch(self, batch: ImportBatch, *fields: str) -> None:
        _execute(
            self.table(IMPORTS_TABLE).update(_batch_to_row(batch, *fields)).eq("id", batch.id),
            "Update import record",
        )

    def get_batch(self, batch_id: str) -> Optional[ImportBatch]:
        """Fetch without an owner filter; callers check ownership."""
        response = _execute(
            self.table(IMPORTS_TABLE).select("*").eq("id", batch_id).limit(1),
            "Fetch import record",
        )
        row = _first(response)
        return _row_to_batch(row) if row else None

    def list_batches(self, user_id: str, limit: int = 20, offset: int = 0) -> tuple[list[ImportBatch], int]:
        response = _execute(
            self.table(IMPORTS_TABLE)
            .select("*", count="exact")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1),
            "List import records",
        )
        return [_row_to_batch(row) for row in response.data], response.count or 0

    # ============================================
    # Compensation log
    # ============================================

    def record_action(self, action: BatchAction) -> None:
        _execute(
            self.table(ACTIONS_TABLE).insert(action.model_dump(mode="json", exclude={"id", "created_at"})),
            "Record import action",
        )

    def get_actions(self, batch_id: str) -> list[BatchAction]:
        response = _execute(
            self.table(ACTIONS_TABLE).select("*").eq("batch_id", batch_id).order("created_at"),
            "Fetch import actions",
        )
        return [BatchAction.model_validate(row) for row in response.data]

    # ============================================
    # Expenses
    # ============================================

    def create_expense(self, data: dict) -> dict:
        response = _execute(self.table("expenses").insert(data), "Create expense")
        row = _first(response)
        if row is None:
            raise StoreError("Create expense failed: no row returned")
        return row

    def get_recent_expenses(self, user_id: str, limit: int) -> list[dict]:
        response = _execute(
            self.table("expenses")
            .select("id, amount, expense_date, bank_transaction_id")
            .eq("user_id", user_id)
            .order("expense_date", desc=True)
            .limit(limit),
            "Fetch recent expenses",
        )
        return response.data

    def get_expenses_by_batch(self, batch_id: str, user_id: str) -> list[dict]:
        response = _execute(
            self.table("expenses")
            .select("*")
            .eq("import_batch_id", batch_id)
            .eq("user_id", user_id)
            .order("expense_date", desc=True),
            "Fetch batch expenses",
        )
        return response.data

    def delete_expenses_by_batch(self, batch_id: str, user_id: str) -> int:
        response = _execute(
            self.table("expenses").delete().eq("import_batch_id", batch_id).eq("user_id", user_id),
            "Delete batch expenses",
        )
        return len(response.data) if response.data else 0

    # ============================================
    # Invoices
    # ============================================

    def get_recent_bank_income(self, user_id: str, limit: int) -> list[dict]:
        """Invoices paid by a bank import, newest first. paid_date falls back to issue_date."""
        response = _execute(
            self.table("invoices")
            .select("id, total, paid_date, issue_date, bank_transaction_id")
            .eq("user_id", user_id)
            .not_.is_("import_batch_id", "null")
            .order("issue_date", desc=True)
            .limit(limit),
            "Fetch recent bank income",
        )
        rows = []
        for row in response.data:
            row = dict(row)
            row["paid_date"] = row.get("paid_date") or row.get("issue_date")
            rows.append(row)
        return rows

    def get_open_invoices(self, user_id: str, statuses: list[str], start: date, end: date) -> list[dict]:
        response = _execute(
            self.table("invoices")
            .select(INVOICE_CANDIDATE_COLUMNS)
            .eq("user_id", user_id)
            .in_("status", statuses)
            .gte("issue_date", start.isoformat())
            .lte("issue_date", end.isoformat())
            .order("total", desc=True),
            "Fetch open invoices",
        )
        return response.data

    def get_invoice(self, invoice_id: str, user_id: str) -> Optional[dict]:
        response = _execute(
            self.table("invoices").select("*").eq("id", invoice_id).eq("user_id", user_id).limit(1),
            "Fetch invoice",
        )
        return _first(response)

    def update_invoice(self, invoice_id: str, user_id: str, updates: dict) -> None:
        _execute(
            self.table("invoices").update(updates).eq("id", invoice_id).eq("user_id", user_id),
            "Update invoice",
        )

    def create_invoice(self, data: dict) -> dict:
        response = _execute(self.table("invoices").insert(data), "Create invoice")
        row = _first(response)
        if row is None:
            raise StoreError("Create invoice failed: no row returned")
        return row

    def create_invoice_item(self, data: dict) -> dict:
        response = _execute(self.table("invoice_items").insert(data), "Create invoice item")
        return _first(response) or {}

    def delete_invoice(self, invoice_id: str, user_id: str) -> bool:
        """Delete an invoice and its line items."""
        _execute(
            self.table("invoice_items").delete().eq("invoice_id", invoice_id),
            "Delete invoice items",
        )
        response = _execute(
            self.table("invoices").delete().eq("id", invoice_id).eq("user_id", user_id),
            "Delete invoice",
        )
        return bool(response.data)

    # ============================================
    # Customers
    # ============================================

    def find_customer_by_name(self, user_id: str, name: str) -> Optional[dict]:
        response = _execute(
            self.table("customers")
            .select("id, full_name")
            .eq("user_id", user_id)
            .ilike("full_name", _escape_like(name))
            .limit(1),
            "Find customer",
        )
        return _first(response)

    def create_customer(self, data: dict) -> dict:
        response = _execute(self.table("customers").insert(data), "Create customer")
        row = _first(response)
        if row is None:
            raise StoreError("Create customer failed: no row returned")
        return row

    def count_customer_invoices(self, customer_id: str, user_id: str) -> int:
        response = _execute(
            self.table("invoices").select("id", count="exact").eq("client_id", customer_id).eq("user_id", user_id),
            "Count customer invoices",
        )
        return response.count or 0

    def delete_customer(self, customer_id: str, user_id: str) -> bool:
        response = _execute(
            self.table("customers").delete().eq("id", customer_id).eq("user_id", user_id),
            "Delete customer",
        )
        return bool(response.data)
