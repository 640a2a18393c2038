"""snapshot.py - Capture a live UI tree into an immutable, compact snapshot.

A raw tree is whatever the UI host hands back: nested dicts (the adb host
parses `uiautomator dump` XML into them). Every property read goes through
a single mapping table so that an unreadable or malformed value falls back
to a known safe default instead of aborting the capture.
"""

import re
import sys
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple


_PREFIX = "[snapshot]"

TRUNCATION_MARKER = "\n... (truncated)"


def _log(msg: str) -> None:
    print(f"{_PREFIX} {msg}", file=sys.stderr)


@dataclass(frozen=True)
class CaptureLimits:
    """Tunable bounds for capture, serialization and prompt context."""

    max_depth: int = 12
    max_nodes: int = 500
    max_field_chars: int = 100
    max_prompt_chars: int = 6000
    digest_chars: int = 500
    conversation_window: int = 5


DEFAULT_LIMITS = CaptureLimits()


# ---------------------------------------------------------------------------
# Bounds
# ---------------------------------------------------------------------------

_BOUNDS_BRACKET_RE = re.compile(r"\[(-?\d+),(-?\d+)\]\[(-?\d+),(-?\d+)\]")


@dataclass(frozen=True)
class Bounds:
    left: int = 0
    top: int = 0
    right: int = 0
    bottom: int = 0

    @property
    def center_x(self) -> int:
        return (self.left + self.right) // 2

    @property
    def center_y(self) -> int:
        return (self.top + self.bottom) // 2

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @staticmethod
    def normalized(left: int, top: int, right: int, bottom: int) -> "Bounds":
        """Build bounds with left<=right and top<=bottom."""
        return Bounds(min(left, right), min(top, bottom), max(left, right), max(top, bottom))


def _coerce_bounds(value: Any) -> Bounds:
    if isinstance(value, Bounds):
        return Bounds.normalized(value.left, value.top, value.right, value.bottom)
    if isinstance(value, str):
        m = _BOUNDS_BRACKET_RE.search(value)
        if not m:
            raise ValueError(f"unparseable bounds {value!r}")
        return Bounds.normalized(*(int(g) for g in m.groups()))
    if isinstance(value, Mapping):
        return Bounds.normalized(
            int(value["left"]), int(value["top"]), int(value["right"]), int(value["bottom"])
        )
    if isinstance(value, (list, tuple)) and len(value) == 4:
        return Bounds.normalized(*(int(v) for v in value))
    raise TypeError(f"unsupported bounds type {type(value).__name__}")


# ---------------------------------------------------------------------------
# Fallible property reads
# ---------------------------------------------------------------------------


class FieldRead(NamedTuple):
    """Outcome of reading one property off a raw node."""

    value: Any
    ok: bool
    error: str | None = None


def _coerce_str(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"expected string, got {type(value).__name__}")
    return value or None


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise TypeError(f"expected boolean, got {value!r}")


def _coerce_children(value: Any) -> tuple:
    if isinstance(value, (list, tuple)):
        return tuple(value)
    raise TypeError(f"expected child list, got {type(value).__name__}")


# field -> (raw keys tried in order, coercer, safe default)
FIELD_TABLE: dict[str, tuple[tuple[str, ...], Callable[[Any], Any], Any]] = {
    "class_name": (("class", "className"), _coerce_str, None),
    "text": (("text",), _coerce_str, None),
    "description": (("content-desc", "contentDescription", "description"), _coerce_str, None),
    "resource_id": (("resource-id", "resourceId", "viewIdResourceName"), _coerce_str, None),
    "package": (("package", "packageName"), _coerce_str, None),
    "clickable": (("clickable",), _coerce_bool, False),
    "scrollable": (("scrollable",), _coerce_bool, False),
    "editable": (("editable",), _coerce_bool, False),
    "checkable": (("checkable",), _coerce_bool, False),
    "checked": (("checked",), _coerce_bool, False),
    "focusable": (("focusable",), _coerce_bool, False),
    "enabled": (("enabled",), _coerce_bool, True),
    "bounds": (("bounds",), _coerce_bounds, Bounds()),
    "children": (("children",), _coerce_children, ()),
}


def read_field(node: Any, name: str) -> FieldRead:
    """Read one named property from a raw node, defaulting on any failure."""
    keys, coerce, default = FIELD_TABLE[name]
    if not isinstance(node, Mapping):
        return FieldRead(default, False, f"node is {type(node).__name__}, not a mapping")
    for key in keys:
        if key not in node:
            continue
        try:
            return FieldRead(coerce(node[key]), True)
        except (TypeError, ValueError, KeyError) as exc:
            return FieldRead(default, False, str(exc))
    return FieldRead(default, True)


def read_value(node: Any, name: str) -> Any:
    return read_field(node, name).value


def is_relevant(node: Any) -> bool:
    """Default relevance predicate for retaining a node in a snapshot."""
    text = read_value(node, "text")
    desc = read_value(node, "description")
    return bool(
        (text and text.strip())
        or (desc and desc.strip())
        or read_value(node, "resource_id") is not None
        or read_value(node, "clickable")
        or read_value(node, "scrollable")
        or read_value(node, "editable")
        or read_value(node, "checkable")
        or read_value(node, "children")
    )


# ---------------------------------------------------------------------------
# Snapshot model
# ---------------------------------------------------------------------------


def _oneline(value: str) -> str:
    return value.replace("\r", " ").replace("\n", " ")


@dataclass(frozen=True)
class SnapshotNode:
    index: int
    class_name: str | None = None
    text: str | None = None
    description: str | None = None
    resource_id: str | None = None
    clickable: bool = False
    scrollable: bool = False
    editable: bool = False
    checkable: bool = False
    checked: bool = False
    focusable: bool = False
    enabled: bool = True
    bounds: Bounds = field(default_factory=Bounds)
    package: str | None = None
    children: tuple["SnapshotNode", ...] = ()

    @property
    def short_type(self) -> str:
        if not self.class_name:
            return "Unknown"
        return self.class_name.rsplit(".", 1)[-1]

    def capability_tags(self) -> list[str]:
        tags = []
        if self.clickable:
            tags.append("clickable")
        if self.scrollable:
            tags.append("scrollable")
        if self.editable:
            tags.append("editable")
        if self.checkable:
            tags.append("checkable")
        if self.checked:
            tags.append("checked")
        if not self.enabled:
            tags.append("disabled")
        return tags

    def compact_line(self) -> str:
        """One-line summary: [index]Type text="" desc="" id="" {caps}."""
        parts = [f"[{self.index}]{self.short_type}"]
        if self.text and self.text.strip():
            parts.append(f'text="{_oneline(self.text)}"')
        if self.description and self.description.strip():
            parts.append(f'desc="{_oneline(self.description)}"')
        if self.resource_id:
            parts.append(f'id="{self.resource_id.rsplit("/", 1)[-1]}"')
        tags = self.capability_tags()
        if tags:
            parts.append("{" + ",".join(tags) + "}")
        return " ".join(parts)

    def to_dict(self) -> dict:
        entry: dict = {"index": self.index, "type": self.short_type}
        for key in ("text", "description", "resource_id", "package"):
            value = getattr(self, key)
            if value:
                entry[key] = value
        tags = self.capability_tags()
        if tags:
            entry["caps"] = tags
        b = self.bounds
        entry["bounds"] = [b.left, b.top, b.right, b.bottom]
        if self.children:
            entry["children"] = [child.to_dict() for child in self.children]
        return entry


@dataclass(frozen=True)
class Snapshot:
    """One immutable observation of the UI tree."""

    root: SnapshotNode
    node_count: int

    def walk(self) -> Iterator[tuple[SnapshotNode, int]]:
        """Yield (node, depth) in pre-order."""
        stack = [(self.root, 0)]
        while stack:
            node, depth = stack.pop()
            yield node, depth
            for child in reversed(node.children):
                stack.append((child, depth + 1))

    def nodes(self) -> list[SnapshotNode]:
        return [node for node, _ in self.walk()]

    def find(self, index: int) -> SnapshotNode | None:
        for node, _ in self.walk():
            if node.index == index:
                return node
        return None

    def to_compact_string(self) -> str:
        return "\n".join("  " * depth + node.compact_line() for node, depth in self.walk())

    def prompt_text(self, limit: int = DEFAULT_LIMITS.max_prompt_chars) -> str:
        """Compact form hard-truncated to `limit` characters plus a marker."""
        text = self.to_compact_string()
        if len(text) > limit:
            return text[:limit] + TRUNCATION_MARKER
        return text

    def digest(self, limit: int = DEFAULT_LIMITS.digest_chars) -> str:
        return self.to_compact_string()[:limit]

    def to_dict(self) -> dict:
        return {"node_count": self.node_count, "root": self.root.to_dict()}


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


@dataclass
class _Pending:
    raw: Any
    depth: int
    children: list[int] = field(default_factory=list)


def _retained_children(
    raw: Any, relevant: Callable[[Any], bool]
) -> list[Any]:
    """Relevant children, with an irrelevant child's relevant children promoted."""
    retained = []
    for child in read_value(raw, "children"):
        if relevant(child):
            retained.append(child)
            continue
        for grandchild in read_value(child, "children"):
            if relevant(grandchild):
                retained.append(grandchild)
    return retained


def _build_node(raw: Any, index: int, children: tuple, limits: CaptureLimits) -> SnapshotNode:
    text = read_value(raw, "text")
    desc = read_value(raw, "description")
    return SnapshotNode(
        index=index,
        class_name=read_value(raw, "class_name"),
        text=text[: limits.max_field_chars] if text else None,
        description=desc[: limits.max_field_chars] if desc else None,
        resource_id=read_value(raw, "resource_id"),
        clickable=read_value(raw, "clickable"),
        scrollable=read_value(raw, "scrollable"),
        editable=read_value(raw, "editable"),
        checkable=read_value(raw, "checkable"),
        checked=read_value(raw, "checked"),
        focusable=read_value(raw, "focusable"),
        enabled=read_value(raw, "enabled"),
        bounds=read_value(raw, "bounds"),
        package=read_value(raw, "package"),
        children=children,
    )


def capture_indexed(
    root: Any,
    limits: CaptureLimits = DEFAULT_LIMITS,
    relevant: Callable[[Any], bool] = is_relevant,
) -> tuple[Snapshot | None, list[Any]]:
    """Capture a snapshot and the raw node behind each assigned index.

    Returns (snapshot, raw_nodes) where raw_nodes[i] is the raw node that
    received index i, or (None, []) when there is no root.
    """
    if root is None:
        return None, []

    pending: list[_Pending] = []
    stack: list[tuple[Any, int, int | None]] = [(root, 0, None)]
    while stack and len(pending) < limits.max_nodes:
        raw, depth, parent = stack.pop()
        position = len(pending)
        pending.append(_Pending(raw, depth))
        if parent is not None:
            pending[parent].children.append(position)
        if depth >= limits.max_depth or len(pending) >= limits.max_nodes:
            continue
        for child in reversed(_retained_children(raw, relevant)):
            stack.append((child, depth + 1, position))

    built: list[SnapshotNode | None] = [None] * len(pending)
    for position in range(len(pending) - 1, -1, -1):
        entry = pending[position]
        children = tuple(built[c] for c in entry.children)
        built[position] = _build_node(entry.raw, position, children, limits)

    if len(pending) >= limits.max_nodes:
        _log(f"node budget reached ({limits.max_nodes}), remaining nodes skipped")
    return Snapshot(root=built[0], node_count=len(pending)), [entry.raw for entry in pending]


def capture(
    root: Any,
    limits: CaptureLimits = DEFAULT_LIMITS,
    relevant: Callable[[Any], bool] = is_relevant,
) -> Snapshot | None:
    """Capture an immutable snapshot of a raw tree (None when there is no root)."""
    snapshot, _ = capture_indexed(root, limits, relevant)
    return snapshot
