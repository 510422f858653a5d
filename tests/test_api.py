# tests/test_api.py

"""
HTTP tests for the bank import routes.

Auth and the store are swapped through FastAPI dependency overrides.
"""

import pytest
from fastapi.testclient import TestClient

from app.dependencies import get_current_user, get_store
from app.main import app

CSV_CONTENT = (
    b"Date,Description,Amount,Reference\n"
    b"15/01/2024,SUPPLIES,-50.00,REF001\n"
    b"17/01/2024,Payment from Kola,75.00,REF003\n"
)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_current_user] = lambda: "user-1"
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload(
    client,
    content: bytes = CSV_CONTENT,
    file_name: str = "statement.csv",
    content_type: str = "text/csv",
    bank: str = None,
):
    data = {"bank": bank} if bank else {}
    return client.post(
        "/bank-import/upload",
        files={"file": (file_name, content, content_type)},
        data=data,
    )


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["service"] == "statement-reconciler"

    def test_ready_reports_ai_disabled(self, client):
        assert client.get("/ready").json()["checks"]["ai_pdf_extraction"] == "disabled"


class TestUpload:

    def test_upload_statement(self, client, store):
        response = upload(client)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["summary"]["imported_expenses"] == 1
        assert body["summary"]["imported_income"] == 1
        assert body["summary"]["new_invoices_created"] == 1
        assert body["batch_id"] in store.batches

    def test_unsupported_file(self, client, store):
        response = upload(client, b"\x00\x01\x02", "statement.bin", "application/octet-stream")

        assert response.status_code == 400
        assert store.batches == {}

    def test_unparseable_statement(self, client, store):
        response = upload(client, b"Date,Description,Amount\n15/01/2024,ZERO,0\n")

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "No transactions found in statement"
        assert detail["batch_id"] in store.batches

    def test_fatal_error(self, client, store):
        store.explode_on.add("get_open_invoices")

        response = upload(client)

        assert response.status_code == 500
        assert response.json()["detail"]["error"].startswith("Import failed:")

    def test_requires_auth(self, store):
        app.dependency_overrides[get_store] = lambda: store
        try:
            response = TestClient(app).post(
                "/bank-import/upload",
                files={"file": ("statement.csv", CSV_CONTENT, "text/csv")},
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code in (401, 403)


class TestHistoryRoutes:

    def test_list_imports(self, client):
        upload(client)

        response = client.get("/bank-import", params={"limit": 1})

        body = response.json()
        assert response.status_code == 200
        assert len(body["imports"]) == 1
        assert body["pagination"] == {"total": 1, "limit": 1, "offset": 0, "has_more": False}

    def test_limit_bounds(self, client):
        assert client.get("/bank-import", params={"limit": 500}).status_code == 422

    def test_get_import(self, client):
        batch_id = upload(client).json()["batch_id"]

        response = client.get(f"/bank-import/{batch_id}")

        body = response.json()
        assert response.status_code == 200
        assert body["import"]["id"] == batch_id
        assert len(body["expenses"]) == 1

    def test_get_missing_import(self, client):
        assert client.get("/bank-import/batch-missing").status_code == 404


class TestUndoRoute:

    def test_undo(self, client, store):
        batch_id = upload(client).json()["batch_id"]

        response = client.delete(f"/bank-import/{batch_id}")

        assert response.status_code == 200
        assert response.json()["deleted_expenses"] == 1
        assert store.expenses == []

    def test_undo_twice_is_rejected(self, client):
        batch_id = upload(client).json()["batch_id"]
        client.delete(f"/bank-import/{batch_id}")

        assert client.delete(f"/bank-import/{batch_id}").status_code == 400

    def test_undo_other_users_import(self, client, store):
        batch_id = upload(client).json()["batch_id"]
        app.dependency_overrides[get_current_user] = lambda: "user-2"

        assert client.delete(f"/bank-import/{batch_id}").status_code == 404
        assert len(store.expenses) == 1

    def test_undo_missing_import(self, client):
        assert client.delete("/bank-import/batch-missing").status_code == 404
