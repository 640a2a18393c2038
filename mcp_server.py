#!/usr/bin/env python3
"""MCP server wrapper for android-agent-runner.

Exposes the Android agent as tools callable by an MCP client over stdio.

Sample client config:

    {
      "mcpServers": {
        "android-agent": {
          "command": "/path/to/android-agent-runner/.venv/bin/python",
          "args": ["/path/to/android-agent-runner/mcp_server.py"],
          "cwd": "/path/to/android-agent-runner"
        }
      }
    }

Run standalone:  python mcp_server.py
"""

import dataclasses
import json
import sys

from mcp.server.fastmcp import FastMCP

from droidrunner import adbwrap, agent_loop, doctor, snapshot
from droidrunner.history import HistoryStore
from droidrunner.host import StatusBoard
from droidrunner.settings import load_settings

# ---------------------------------------------------------------------------
# Lazy device connection
# ---------------------------------------------------------------------------

_hosts: dict[str, adbwrap.AdbHost] = {}
_status = StatusBoard()
_runner: agent_loop.CommandRunner | None = None


def _get_host(serial: str = "") -> adbwrap.AdbHost:
    """Create the adb host for a serial on first use."""
    host = _hosts.get(serial)
    if host is None:
        host = adbwrap.AdbHost(serial=serial or None)
        _hosts[serial] = host
    return host


# ---------------------------------------------------------------------------
# MCP server
# ---------------------------------------------------------------------------

mcp = FastMCP(
    "android-agent",
    instructions="Android device automation: run natural-language commands, dump the screen tree, read command history",
)


@mcp.tool()
async def android_run_command(command: str, max_steps: int = 0, serial: str = "") -> str:
    """Run a natural-language command on the device until done, failed, or out of steps."""
    global _runner
    settings = load_settings()
    if max_steps > 0:
        settings = dataclasses.replace(settings, max_steps_per_command=max_steps)
    # MCP callers cannot answer a y/N prompt, so plans always auto-execute here.
    settings = dataclasses.replace(settings, auto_execute=True)

    if _runner is not None and _runner.busy:
        return json.dumps({"error": "a command is already running", "command": command}, indent=2)

    loop = agent_loop.create_loop(settings, _get_host(serial), status=_status)
    _runner = agent_loop.CommandRunner(loop)
    result = await _runner.submit(command)
    if result is None:
        return json.dumps({"error": "a command is already running", "command": command}, indent=2)
    return json.dumps(result.to_dict(), indent=2)


@mcp.tool()
def android_dump_screen(serial: str = "", structured: bool = False) -> str:
    """Capture the current screen as a compact indexed tree."""
    raw = _get_host(serial).snapshot()
    snap = snapshot.capture(raw)
    if snap is None:
        return json.dumps({"error": "Unable to read screen content"}, indent=2)
    if structured:
        return json.dumps(snap.to_dict(), indent=2)
    return json.dumps({"node_count": snap.node_count, "tree": snap.to_compact_string()}, indent=2)


@mcp.tool()
def android_history(limit: int = 20) -> str:
    """List recent command history, newest first."""
    records = HistoryStore().recent(limit=limit)
    return json.dumps([r.to_dict() for r in records], indent=2)


@mcp.tool()
def android_runtime_health() -> str:
    """Report adb/device availability, provider key presence and effective settings."""
    checks = doctor.collect_checks()
    return json.dumps({
        "python": sys.version.split()[0],
        "ok": checks["ok"],
        "status": _status.status.value,
        "foreground_package": _status.foreground_package,
        "adb": checks["tools"]["adb"],
        "devices": checks["tools"]["devices"],
        "keys": checks["keys"],
        "problems": checks["problems"],
    }, indent=2)


if __name__ == "__main__":
    mcp.run()
