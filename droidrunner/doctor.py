#!/usr/bin/env python3
"""Environment checks for android-agent-runner.

Read-only diagnostic covering what a run needs:
1) adb on the machine and at least one device in the `device` state
2) an API key for the selected reasoning provider (presence only, never values)
3) the settings that will be in effect
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

from droidrunner import adbwrap
from droidrunner.settings import API_KEY_ENV, load_settings, settings_path


_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _run(cmd: list[str], timeout: int = 10) -> dict:
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(_PROJECT_ROOT),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return {
            "ok": proc.returncode == 0,
            "returncode": proc.returncode,
            "stdout": (proc.stdout or "").strip(),
            "stderr": (proc.stderr or "").strip(),
        }
    except (OSError, subprocess.TimeoutExpired) as exc:
        return {"ok": False, "error": str(exc), "returncode": -1, "stdout": "", "stderr": ""}


def _check_env(keys: list[str]) -> dict[str, bool]:
    return {k: bool(os.getenv(k)) for k in keys}


def _check_adb() -> dict:
    adb = adbwrap.find_adb()
    if not adb:
        return {"ok": False, "error": "adb not found (PATH, $ADB, $ANDROID_HOME/platform-tools)"}
    res = _run([adb, "version"])
    version = res.get("stdout", "").splitlines()[0] if res.get("stdout") else ""
    return {"ok": bool(res.get("ok")), "path": adb, "version": version}


def _check_devices() -> dict:
    serials = adbwrap.list_devices()
    return {"ok": bool(serials), "serials": serials}


def collect_checks() -> dict:
    settings = load_settings()
    checks: dict = {
        "project_root": str(_PROJECT_ROOT),
        "python": {"executable": sys.executable, "version": sys.version.split()[0]},
        "keys": _check_env(list(API_KEY_ENV.values())),
        "settings": {"path": str(settings_path()), "effective": settings.redacted()},
        "tools": {"adb": _check_adb(), "devices": _check_devices()},
        "hints": {
            "enable_usb_debugging": "Settings -> Developer options -> USB debugging, then accept the host key prompt",
            "select_device": "With several devices attached, pass --serial or set ANDROID_SERIAL",
        },
    }

    checks["ok"] = True
    problems: list[str] = []

    if not checks["tools"]["adb"]["ok"]:
        checks["ok"] = False
        problems.append("adb not found or not runnable (install Android platform-tools)")
    elif not checks["tools"]["devices"]["ok"]:
        problems.append("no device in `device` state (check cable/authorization)")

    if not settings.api_key:
        checks["ok"] = False
        problems.append(f"missing {API_KEY_ENV[settings.provider]} for provider {settings.provider}")

    checks["problems"] = problems
    return checks


def main() -> int:
    payload = collect_checks()
    print(json.dumps(payload, indent=2))
    return 0 if payload.get("ok") else 1


if __name__ == "__main__":
    raise SystemExit(main())
