"""plan_parser.py - Turn raw reasoning-service text into a Plan.

parse_plan never raises. Per-action problems drop that action; a response
that cannot be read as a JSON object at all becomes a plan holding a single
Error action with is_complete set.
"""

import json
import math
import sys
from typing import Any

from droidrunner.actions import (
    Action,
    ClearText,
    Click,
    Done,
    Error,
    LongClick,
    OpenApp,
    Plan,
    PressSystemButton,
    Scroll,
    ScrollDirection,
    SetText,
    Swipe,
    SystemButton,
    TargetHint,
    TypeText,
    Wait,
)


def _log(msg: str) -> None:
    print(f"[parser] {msg}", file=sys.stderr)


def strip_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) fence."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json"):]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _as_str(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except (ValueError, OverflowError):
            return None
    return None


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return default


def _target(data: dict) -> TargetHint:
    return TargetHint(
        index=_as_int(data.get("nodeIndex")),
        text=_as_str(data.get("nodeText")),
        resource_id=_as_str(data.get("nodeId")),
        description=_as_str(data.get("nodeDescription")),
    )


def _text(data: dict) -> str:
    return _as_str(data.get("text")) or ""


def _scroll(data: dict) -> Scroll:
    raw = (_as_str(data.get("direction")) or "down").strip().lower()
    try:
        direction = ScrollDirection(raw)
    except ValueError:
        direction = ScrollDirection.DOWN
    return Scroll(direction=direction, target=_target(data))


def _press(data: dict) -> PressSystemButton:
    raw = (_as_str(data.get("button")) or "BACK").strip().upper()
    try:
        button = SystemButton(raw)
    except ValueError:
        button = SystemButton.BACK
    return PressSystemButton(button=button)


def _wait(data: dict) -> Wait:
    ms = _as_int(data.get("milliseconds"))
    return Wait(duration_ms=ms if ms is not None and ms >= 0 else 1000)


def _swipe(data: dict) -> Swipe:
    duration = _as_int(data.get("duration"))
    return Swipe(
        start_x=_as_int(data.get("startX")) or 0,
        start_y=_as_int(data.get("startY")) or 0,
        end_x=_as_int(data.get("endX")) or 0,
        end_y=_as_int(data.get("endY")) or 0,
        duration_ms=duration if duration is not None and duration > 0 else 300,
    )


_BUILDERS = {
    "click": lambda d: Click(target=_target(d)),
    "longclick": lambda d: LongClick(target=_target(d)),
    "typetext": lambda d: TypeText(text=_text(d), target=_target(d)),
    "settext": lambda d: SetText(text=_text(d), target=_target(d)),
    "cleartext": lambda d: ClearText(target=_target(d)),
    "scroll": _scroll,
    "presssystembutton": _press,
    "pressbutton": _press,
    "openapp": lambda d: OpenApp(
        package_name=_as_str(d.get("packageName")) or None,
        app_name=_as_str(d.get("appName")) or None,
    ),
    "wait": _wait,
    "swipe": _swipe,
    "done": lambda d: Done(message=_as_str(d.get("message")) or "Task completed"),
    "error": lambda d: Error(reason=_as_str(d.get("reason")) or "Unknown error"),
}


def parse_action(data: Any) -> Action | None:
    """Build one action from its wire object, or None if it can't be used."""
    if not isinstance(data, dict):
        return None
    kind = _as_str(data.get("action")) or _as_str(data.get("type"))
    if not kind:
        return None
    builder = _BUILDERS.get(kind.strip().lower())
    if builder is None:
        _log(f"dropping unknown action type {kind!r}")
        return None
    return builder(data)


def error_plan(message: str) -> Plan:
    return Plan(
        reasoning=f"Failed to parse AI response: {message}",
        actions=(Error(reason=f"Failed to parse AI response: {message}"),),
        requires_refresh=False,
        is_complete=True,
        error_message=message,
    )


def parse_plan(raw: Any) -> Plan:
    """Parse a raw model response into a Plan. Never raises."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        raw = "" if raw is None else str(raw)

    try:
        data = json.loads(strip_fences(raw))
    except (ValueError, RecursionError) as exc:
        return error_plan(str(exc) or type(exc).__name__)
    if not isinstance(data, dict):
        return error_plan(f"expected a JSON object, got {type(data).__name__}")

    reasoning = _as_str(data.get("reasoning")) or ""
    is_complete = _as_bool(data.get("isComplete"), False)
    raw_actions = data.get("actions")
    actions = []
    if isinstance(raw_actions, list):
        for entry in raw_actions:
            action = parse_action(entry)
            if action is not None:
                actions.append(action)

    if not actions:
        return Plan(reasoning=reasoning, actions=(), requires_refresh=True, is_complete=is_complete)
    return Plan(
        reasoning=reasoning,
        actions=tuple(actions),
        requires_refresh=_as_bool(data.get("requiresScreenRefresh"), True),
        is_complete=is_complete,
    )
