from __future__ import annotations

"""Example MCP client script for exercising the CouchDB tools."""

import asyncio
import json
import os
from pathlib import Path

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client


def _extract_text(result) -> str:
    """Concatenate text fragments from MCP tool call results."""

    parts: list[str] = []
    for item in getattr(result, "content", []):
        text = getattr(item, "text", None)
        if text:
            parts.append(text)
    return "\n".join(parts)


async def main() -> None:
    """Connect to local MCP server script and run a small tool sequence."""

    server_script = Path(__file__).resolve().parents[1] / "mcp_servers" / "couchdb_server.py"
    params = StdioServerParameters(
        command="python",
        args=[str(server_script)],
        env={
            **os.environ,
            "COUCHDB_HOST": os.getenv("COUCHDB_HOST", "localhost"),
            "COUCHDB_PORT": os.getenv("COUCHDB_PORT", "5984"),
        },
    )

    async with stdio_client(params) as (read, write):
        async with ClientSession(read, write) as session:
            await session.initialize()

            tools = await session.list_tools()
            tool_names = [tool.name for tool in tools.tools]
            print("Available MCP tools:", ", ".join(tool_names))

            listed = await session.call_tool("list_databases", arguments={})
            listed_text = _extract_text(listed)
            print("\nlist_databases result:")
            print(listed_text)

            payload = json.loads(listed_text) if listed_text else {}
            databases = [name for name in payload.get("databases", []) if not name.startswith("_")]
            if not databases:
                print("\nNo user databases found.")
                return

            info = await session.call_tool("database_info", arguments={"db": databases[0]})
            print(f"\ndatabase_info({databases[0]}) result:")
            print(_extract_text(info))

            changes = await session.call_tool(
                "database_changes",
                arguments={"db": databases[0], "limit": 5},
            )
            print("\ndatabase_changes result (truncated to 900 chars):")
            print(_extract_text(changes)[:900])


if __name__ == "__main__":
    """Execute demo flow when run as a script."""

    asyncio.run(main())
