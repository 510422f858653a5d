# tests/test_database.py

"""
Tests for the Supabase store's query building, with a mocked client.
"""

from unittest.mock import MagicMock

from app.database import SupabaseStore, _escape_like


def make_store(rows: list = None) -> tuple[SupabaseStore, MagicMock]:
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value
    query.ilike.return_value.limit.return_value.execute.return_value.data = rows or []
    return SupabaseStore(client=client), client


class TestEscapeLike:

    def test_plain_name_unchanged(self):
        assert _escape_like("Acme Stores") == "Acme Stores"

    def test_wildcards_escaped(self):
        assert _escape_like("100% Foods_Ltd") == "100\\% Foods\\_Ltd"

    def test_backslash_escaped(self):
        assert _escape_like("A\\B") == "A\\\\B"


class TestFindCustomerByName:

    def test_wildcards_match_literally(self):
        store, client = make_store()

        assert store.find_customer_by_name("user-1", "J_hn%") is None

        client.table.assert_called_once_with("customers")
        query = client.table.return_value.select.return_value.eq.return_value
        query.ilike.assert_called_once_with("full_name", "J\\_hn\\%")

    def test_returns_first_row(self):
        store, _ = make_store([{"id": "cust-1", "full_name": "Acme"}])

        assert store.find_customer_by_name("user-1", "acme") == {"id": "cust-1", "full_name": "Acme"}
