"""MCP server entry point for Source Engine RCON.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport. Connection
defaults come from the ``RCON_*`` environment variables.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import RconClient
from .config import RconSettings
from .protocol.commands import AUTH_REQUEST_ID, MAX_COMMAND_ID, MIN_COMMAND_ID
from .protocol.errors import RconError
from .protocol.packet import MAX_BODY_LENGTH, PacketKind

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "source-rcon",
    instructions="MCP server for Source Engine RCON game server consoles",
)

# Global client state
_client: RconClient | None = None


def _get_client() -> RconClient:
    """Get the authenticated RCON client, raising if not connected."""
    if _client is None or not _client.connected:
        raise RuntimeError(
            "Not connected to an RCON server. Use the 'connect' tool first."
        )
    return _client


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    host: str | None = None,
    port: int | None = None,
    password: str | None = None,
) -> dict[str, Any]:
    """Open an authenticated RCON session to a game server.

    Omitted arguments fall back to RCON_HOST, RCON_PORT and RCON_PASSWORD.

    Args:
        host: Server address.
        port: RCON port (0-65535).
        password: RCON password.
    """
    global _client
    if _client is not None and _client.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "endpoint": str(_client.connection.endpoint),
        }
    if port is not None and not 0 <= port <= 0xFFFF:
        return {"error": "Port must be 0-65535"}

    client = RconClient(RconSettings.from_env())
    try:
        endpoint = client.connect(host=host, port=port, password=password)
    except (RconError, TimeoutError) as e:
        client.close()
        return {"connected": False, "error": str(e)}

    _client = client
    return {"connected": True, "endpoint": str(endpoint)}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the RCON session."""
    global _client
    if _client is None:
        return {"disconnected": True}
    _client.close()
    _client = None
    return {"disconnected": True}


@mcp.tool()
def get_status() -> dict[str, Any]:
    """Report the RCON connection state."""
    if _client is None:
        return {"connected": False, "state": "disconnected"}

    conn = _client.connection
    return {
        "connected": _client.connected,
        "state": conn.state.value,
        "endpoint": str(conn.endpoint) if conn.endpoint else None,
        "send_null_packet": conn.send_null_packet,
    }


@mcp.tool()
def set_send_null_packet(enabled: bool) -> dict[str, Any]:
    """Turn multi-packet reply merging on or off.

    When enabled, each command is followed by an empty trailer packet and
    long replies split across several packets are returned as one.

    Args:
        enabled: Whether to send the trailer packet.
    """
    client = _get_client()
    client.connection.send_null_packet = enabled
    return {"send_null_packet": enabled}


# ─── COMMAND TOOLS ───────────────────────────────────────────────────

@mcp.tool()
def execute(command: str, timeout: float | None = None) -> dict[str, Any]:
    """Run a console command on the server and return its output.

    Args:
        command: Console command line, ASCII only (e.g. "status").
        timeout: Seconds to wait for the reply (default RCON_TIMEOUT).
    """
    if not command.strip():
        return {"error": "Command must not be empty"}
    if timeout is not None and timeout <= 0:
        return {"error": "Timeout must be positive"}

    client = _get_client()
    try:
        output = client.execute(command, timeout=timeout)
    except (RconError, TimeoutError) as e:
        return {"command": command, "error": str(e)}

    return {"command": command, "output": output}


@mcp.tool()
def execute_batch(commands: list[str], timeout: float | None = None) -> dict[str, Any]:
    """Run several console commands in order.

    Stops at the first command that fails.

    Args:
        commands: Console command lines.
        timeout: Seconds to wait for each reply.
    """
    client = _get_client()
    results = []
    for command in commands:
        try:
            output = client.execute(command, timeout=timeout)
        except (RconError, TimeoutError) as e:
            results.append({"command": command, "error": str(e)})
            break
        results.append({"command": command, "output": output})
    return {"results": results}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("rcon://connection/status")
def resource_connection_status() -> str:
    """Connection state and endpoint."""
    return json.dumps(get_status())


@mcp.resource("rcon://protocol/packet-types")
def resource_packet_types() -> str:
    """RCON packet types with their wire values."""
    kinds = [
        {"name": kind.name, "label": kind.label, "wire_value": kind.wire_value}
        for kind in PacketKind
    ]
    return json.dumps({
        "packet_types": kinds,
        "max_body_length": MAX_BODY_LENGTH,
        "auth_request_id": AUTH_REQUEST_ID,
        "command_request_ids": [MIN_COMMAND_ID, MAX_COMMAND_ID],
    })


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def server_status() -> str:
    """Summarize the game server's current state."""
    return """Run the "status" command using the execute tool.
Summarize:
- Server name, map and player count
- Connected players with their ping and connection time
- Anything unusual (high ping, many bots, empty server)

Use get_status first if you are not sure the session is connected."""


@mcp.prompt()
def change_map(map_name: str) -> str:
    """Switch the server to another map safely.

    Args:
        map_name: Map to load (e.g. "de_dust2").
    """
    return f"""Prepare to change the map to {map_name}.
1. Run "status" with the execute tool and report how many players are on.
2. Run "say Changing map to {map_name}" to warn them.
3. Run "changelevel {map_name}".
4. Run "status" again and confirm the new map is loaded."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
