from __future__ import annotations

import pytest

from couchdb_http.errors import NotFoundError
from mcp_servers import couchdb_server as server


class FakeCouchDBClient:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.closed = False

    def __enter__(self) -> FakeCouchDBClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.closed = True

    def get_all_databases(self) -> list[str]:
        self.calls.append(("get_all_databases",))
        return ["_users", "movies"]

    def get_database(self, db: str) -> dict:
        self.calls.append(("get_database", db))
        if db == "missing":
            raise NotFoundError("Client error: 404", 404, error="not_found", reason="Database does not exist.")
        return {"db_name": db, "doc_count": 2}

    def get_document(self, db: str, docid: str, params=None) -> dict:
        self.calls.append(("get_document", db, docid, params))
        return {"_id": docid, "_rev": "1-a"}

    def find_documents(self, db: str, query: dict) -> dict:
        self.calls.append(("find_documents", db, query))
        return {"docs": [{"_id": "a"}]}

    def get_database_changes(self, db: str, params=None) -> dict:
        self.calls.append(("get_database_changes", db, params))
        return {"results": [], "last_seq": "0"}


@pytest.fixture
def fake_client(monkeypatch) -> FakeCouchDBClient:
    client = FakeCouchDBClient()
    monkeypatch.setattr(server.CouchDBClient, "from_settings", classmethod(lambda cls: client))
    return client


def test_list_databases(fake_client):
    payload = server.list_databases()

    assert payload == {"count": 2, "databases": ["_users", "movies"]}
    assert fake_client.closed is True


def test_database_info(fake_client):
    assert server.database_info("movies") == {"db_name": "movies", "doc_count": 2}


def test_client_errors_become_payloads(fake_client):
    payload = server.database_info("missing")

    assert payload == {
        "error": "not_found",
        "status_code": 404,
        "message": "Client error: 404",
        "couchdb_error": "not_found",
        "reason": "Database does not exist.",
    }
    assert fake_client.closed is True


def test_get_document_passes_revs_flag(fake_client):
    server.get_document("movies", "a")
    server.get_document("movies", "a", include_revs=True)

    assert fake_client.calls == [
        ("get_document", "movies", "a", None),
        ("get_document", "movies", "a", {"revs": "true"}),
    ]


def test_find_documents_bounds_limit_and_adds_fields(fake_client):
    result = server.find_documents("movies", {"year": {"$gt": 2000}}, fields=["_id"], limit=5000)

    assert result == {"docs": [{"_id": "a"}]}
    assert fake_client.calls[-1] == (
        "find_documents",
        "movies",
        {"selector": {"year": {"$gt": 2000}}, "limit": 500, "fields": ["_id"]},
    )


def test_database_changes_bounds_limit(fake_client):
    server.database_changes("movies", since="now", limit=0)

    assert fake_client.calls[-1] == ("get_database_changes", "movies", {"since": "now", "limit": 1})
