from __future__ import annotations

"""MCP server exposing read-oriented CouchDB tools.

Connection settings come from ``COUCHDB_*`` environment variables. Client
errors are returned as structured payloads instead of failing the tool call.
"""

import sys
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

# Ensure project root is importable when server is executed as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from couchdb_http.client import CouchDBClient
from couchdb_http.errors import CouchDBError

mcp = FastMCP("couchdb-http")


def _with_client(fn):
    """Execute a function with a managed ``CouchDBClient`` lifecycle."""

    try:
        with CouchDBClient.from_settings() as client:
            return fn(client)
    except CouchDBError as exc:
        return exc.to_dict()


@mcp.tool()
def list_databases() -> dict[str, Any]:
    """List all databases on the server."""

    def _run(client: CouchDBClient) -> dict[str, Any]:
        databases = client.get_all_databases()
        return {"count": len(databases), "databases": databases}

    return _with_client(_run)


@mcp.tool()
def database_info(db: str) -> dict[str, Any]:
    """Get database metadata (document count, sizes, update sequence)."""

    return _with_client(lambda client: client.get_database(db))


@mcp.tool()
def get_document(db: str, doc_id: str, include_revs: bool = False) -> dict[str, Any]:
    """Get a document by id."""

    params = {"revs": "true"} if include_revs else None
    return _with_client(lambda client: client.get_document(db, doc_id, params))


@mcp.tool()
def find_documents(
    db: str,
    selector: dict[str, Any],
    fields: list[str] | None = None,
    limit: int = 100,
) -> dict[str, Any]:
    """Run a Mango query with a JSON selector."""

    query: dict[str, Any] = {"selector": selector, "limit": max(1, min(limit, 500))}
    if fields:
        query["fields"] = fields
    return _with_client(lambda client: client.find_documents(db, query))


@mcp.tool()
def database_changes(db: str, since: str = "0", limit: int = 50) -> dict[str, Any]:
    """List document changes since a sequence checkpoint."""

    params = {"since": since, "limit": max(1, min(limit, 500))}
    return _with_client(lambda client: client.get_database_changes(db, params))


if __name__ == "__main__":
    """Run the MCP server over stdio transport."""

    mcp.run(transport="stdio")
