"""adbwrap.py - UI host backed by the adb CLI (uiautomator dump + input events)."""

import asyncio
import os
import re
import shutil
import subprocess
import sys
import xml.etree.ElementTree as ET

from droidrunner import host as primitives
from droidrunner.actions import SystemButton
from droidrunner.snapshot import read_value

DUMP_PATH = "/sdcard/window_dump.xml"
LONG_PRESS_MS = 800
SCROLL_MS = 300

KEYCODE_HOME = 3
KEYCODE_BACK = 4
KEYCODE_DEL = 67
KEYCODE_MOVE_END = 123
KEYCODE_APP_SWITCH = 187

_BUTTON_KEYCODES = {
    SystemButton.BACK: KEYCODE_BACK,
    SystemButton.HOME: KEYCODE_HOME,
    SystemButton.RECENTS: KEYCODE_APP_SWITCH,
}

_FOCUS_RE = re.compile(r"mCurrentFocus=Window\{[^}]*?\s([A-Za-z0-9_.]+)/")
_FOCUSED_APP_RE = re.compile(r"mFocusedApp=.*?\s([A-Za-z0-9_.]+)/")
_ACTIVITY_RE = re.compile(r"^\s*([A-Za-z0-9_.]+)/\S+\s*$")

# Characters the device shell would otherwise interpret inside `input text`.
_SHELL_SPECIAL = set("()<>|;&*\\~\"'`$?#[]{}!")

_BOOL_ATTRS = ("clickable", "scrollable", "checkable", "checked", "focusable", "enabled")


def _log(msg: str) -> None:
    print(f"[adb] {msg}", file=sys.stderr)


def find_adb() -> str | None:
    """Locate adb: ADB env var, PATH, then the Android SDK platform-tools."""
    explicit = os.environ.get("ADB")
    if explicit and os.path.isfile(explicit) and os.access(explicit, os.X_OK):
        return explicit
    on_path = shutil.which("adb")
    if on_path:
        return on_path
    for var in ("ANDROID_HOME", "ANDROID_SDK_ROOT"):
        sdk = os.environ.get(var)
        if not sdk:
            continue
        candidate = os.path.join(sdk, "platform-tools", "adb")
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate
    return None


def _run(cmd: list[str], timeout: int = 30) -> tuple[str, str, int]:
    """Run a subprocess command and return (stdout, stderr, returncode)."""
    _log(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        _log(f"timed out after {timeout}s")
        return "", f"timed out after {timeout}s", 124
    if result.returncode != 0:
        _log(f"stderr: {result.stderr.strip()}")
    return result.stdout, result.stderr, result.returncode


# ---------------------------------------------------------------------------
# uiautomator XML
# ---------------------------------------------------------------------------


def _element_to_node(element: ET.Element) -> dict:
    attrs = element.attrib
    node: dict = {
        "class": attrs.get("class", ""),
        "text": attrs.get("text", ""),
        "content-desc": attrs.get("content-desc", ""),
        "resource-id": attrs.get("resource-id", ""),
        "package": attrs.get("package", ""),
        "bounds": attrs.get("bounds", ""),
        "children": [_element_to_node(child) for child in element if child.tag == "node"],
    }
    for name in _BOOL_ATTRS:
        if name in attrs:
            node[name] = attrs[name]
    node["editable"] = "EditText" in node["class"] or attrs.get("password") == "true"
    return node


def parse_ui_xml(xml_text: str) -> dict | None:
    """Parse a uiautomator dump into nested dict nodes.

    A hierarchy with several top-level windows is wrapped in one synthetic
    root so the tree always has a single root.
    """
    start = xml_text.find("<")
    if start < 0:
        return None
    try:
        root = ET.fromstring(xml_text[start:].strip())
    except ET.ParseError as exc:
        _log(f"could not parse uiautomator dump: {exc}")
        return None
    if root.tag == "node":
        return _element_to_node(root)
    windows = [_element_to_node(child) for child in root if child.tag == "node"]
    if not windows:
        return None
    if len(windows) == 1:
        return windows[0]
    return {"class": "hierarchy", "package": windows[0].get("package", ""), "children": windows}


def escape_input_text(text: str) -> str:
    """Escape text for `adb shell input text`."""
    out = []
    for ch in text:
        if ch == " ":
            out.append("%s")
        elif ch in _SHELL_SPECIAL:
            out.append("\\" + ch)
        else:
            out.append(ch)
    return "".join(out)


def parse_foreground_package(dumpsys: str) -> str | None:
    for pattern in (_FOCUS_RE, _FOCUSED_APP_RE):
        m = pattern.search(dumpsys)
        if m:
            return m.group(1)
    return None


def parse_launcher_activities(output: str) -> list[tuple[str, str]]:
    """(label, package) pairs from `cmd package query-activities --brief`."""
    seen: dict[str, str] = {}
    for line in output.splitlines():
        m = _ACTIVITY_RE.match(line)
        if not m:
            continue
        package = m.group(1)
        seen.setdefault(package, package.rsplit(".", 1)[-1])
    return [(label, package) for package, label in seen.items()]


# ---------------------------------------------------------------------------
# Host
# ---------------------------------------------------------------------------


class AdbHost:
    """UI host talking to one device over adb."""

    def __init__(self, serial: str | None = None, adb_path: str | None = None):
        self.serial = serial
        self.adb_path = adb_path or find_adb()

    def _adb(self, *args: str, timeout: int = 30) -> tuple[str, str, int]:
        if not self.adb_path:
            _log("adb not found")
            return "", "adb not found", 127
        cmd = [self.adb_path]
        if self.serial:
            cmd += ["-s", self.serial]
        return _run(cmd + list(args), timeout=timeout)

    def _shell(self, *args: str, timeout: int = 30) -> tuple[str, str, int]:
        return self._adb("shell", *args, timeout=timeout)

    def is_available(self) -> bool:
        stdout, _, rc = self._adb("get-state", timeout=10)
        return rc == 0 and stdout.strip() == "device"

    def snapshot(self) -> dict | None:
        _, stderr, rc = self._shell("uiautomator", "dump", DUMP_PATH)
        if rc != 0:
            _log(f"uiautomator dump failed: {stderr.strip()}")
            return None
        stdout, stderr, rc = self._adb("exec-out", "cat", DUMP_PATH)
        if rc != 0:
            _log(f"reading dump failed: {stderr.strip()}")
            return None
        return parse_ui_xml(stdout)

    def current_foreground_package(self) -> str | None:
        stdout, _, rc = self._shell("dumpsys", "window")
        if rc != 0:
            return None
        return parse_foreground_package(stdout)

    def tap(self, x: int, y: int) -> bool:
        _, _, rc = self._shell("input", "tap", str(x), str(y))
        return rc == 0

    def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int) -> bool:
        _, _, rc = self._shell("input", "swipe", str(x1), str(y1), str(x2), str(y2), str(duration_ms))
        return rc == 0

    def keyevent(self, *codes: int) -> bool:
        _, _, rc = self._shell("input", "keyevent", *(str(c) for c in codes))
        return rc == 0

    def type_text(self, text: str) -> bool:
        if not text:
            return True
        if not text.isascii():
            _log("input text only supports ASCII; non-ASCII characters may be dropped")
        _, _, rc = self._shell("input", "text", escape_input_text(text))
        return rc == 0

    def perform(self, handle, kind: str, **args) -> bool:
        bounds = read_value(handle, "bounds")
        x, y = bounds.center_x, bounds.center_y
        if kind in (primitives.CLICK, primitives.FOCUS):
            return self.tap(x, y)
        if kind == primitives.LONG_CLICK:
            return self.swipe(x, y, x, y, LONG_PRESS_MS)
        if kind == primitives.SET_TEXT:
            current = read_value(handle, "text") or ""
            if current:
                self.keyevent(KEYCODE_MOVE_END)
                self.keyevent(*([KEYCODE_DEL] * len(current)))
            return self.type_text(args.get("text", ""))
        if kind in (primitives.SCROLL_FORWARD, primitives.SCROLL_BACKWARD):
            low = bounds.top + bounds.height * 3 // 4
            high = bounds.top + bounds.height // 4
            if kind == primitives.SCROLL_FORWARD:
                return self.swipe(x, low, x, high, SCROLL_MS)
            return self.swipe(x, high, x, low, SCROLL_MS)
        _log(f"unsupported primitive {kind!r}")
        return False

    def global_action(self, button: SystemButton) -> bool:
        if button is SystemButton.NOTIFICATIONS:
            _, _, rc = self._shell("cmd", "statusbar", "expand-notifications")
            return rc == 0
        return self.keyevent(_BUTTON_KEYCODES[button])

    def launch_app(self, package: str) -> bool:
        stdout, stderr, rc = self._shell(
            "monkey", "-p", package, "-c", "android.intent.category.LAUNCHER", "1"
        )
        if rc != 0 or "No activities found" in stdout:
            _log(f"Failed to launch {package}: {(stderr or stdout).strip()}")
            return False
        _log(f"Launched {package}")
        return True

    def installed_apps(self) -> list[tuple[str, str]]:
        stdout, _, rc = self._shell(
            "cmd", "package", "query-activities", "--brief",
            "-a", "android.intent.action.MAIN",
            "-c", "android.intent.category.LAUNCHER",
        )
        if rc != 0:
            return []
        return parse_launcher_activities(stdout)

    async def dispatch_gesture(self, path: list[tuple[int, int]], duration_ms: int) -> bool:
        if len(path) < 2:
            return False
        (x1, y1), (x2, y2) = path[0], path[-1]
        return await asyncio.to_thread(self.swipe, x1, y1, x2, y2, duration_ms)


def list_devices() -> list[str]:
    """Serials of devices in the `device` state."""
    adb = find_adb()
    if not adb:
        return []
    stdout, _, rc = _run([adb, "devices"], timeout=10)
    if rc != 0:
        return []
    serials = []
    for line in stdout.splitlines()[1:]:
        parts = line.split()
        if len(parts) >= 2 and parts[1] == "device":
            serials.append(parts[0])
    return serials
