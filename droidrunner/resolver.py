"""resolver.py - Find the live node a TargetHint refers to.

Resolution always re-reads the live tree; the snapshot the plan was made
from may already be stale. Strategy order for a general target:

  1. resource id (retried as "<package>:id/<name>" when unqualified)
  2. exact text, preferring a clickable match, then a clickable ancestor
  3. case-insensitive description substring
  4. snapshot index, using the capture numbering on the fresh tree

Editable targets run the same order restricted to editable nodes and fall
back to the first editable node on screen.
"""

import sys
from dataclasses import dataclass
from typing import Any, NamedTuple

from droidrunner.actions import TargetHint
from droidrunner.snapshot import DEFAULT_LIMITS, CaptureLimits, capture_indexed, read_value


_CLICKABLE_ANCESTOR_HOPS = 5
_LIVE_NODE_CAP = 5000


def _log(msg: str) -> None:
    print(f"[resolver] {msg}", file=sys.stderr)


@dataclass
class LiveNode:
    handle: Any
    parent: "LiveNode | None"
    text: str | None
    description: str | None
    resource_id: str | None
    clickable: bool
    editable: bool
    scrollable: bool


class Resolution(NamedTuple):
    node: LiveNode
    strategy: str


class LiveTree:
    """Flat pre-order view of one fresh read of the host tree."""

    def __init__(self, root: Any, limits: CaptureLimits = DEFAULT_LIMITS):
        self.root_package: str | None = read_value(root, "package")
        self.nodes: list[LiveNode] = []
        self._by_handle: dict[int, LiveNode] = {}

        stack: list[tuple[Any, LiveNode | None]] = [(root, None)]
        while stack and len(self.nodes) < _LIVE_NODE_CAP:
            raw, parent = stack.pop()
            node = LiveNode(
                handle=raw,
                parent=parent,
                text=read_value(raw, "text"),
                description=read_value(raw, "description"),
                resource_id=read_value(raw, "resource_id"),
                clickable=read_value(raw, "clickable"),
                editable=read_value(raw, "editable"),
                scrollable=read_value(raw, "scrollable"),
            )
            self.nodes.append(node)
            self._by_handle[id(raw)] = node
            for child in reversed(read_value(raw, "children")):
                stack.append((child, node))

        _, self._indexed = capture_indexed(root, limits)

    def by_id(self, resource_id: str) -> list[LiveNode]:
        return [n for n in self.nodes if n.resource_id == resource_id]

    def by_text(self, text: str) -> list[LiveNode]:
        wanted = text.strip()
        return [n for n in self.nodes if n.text is not None and n.text.strip() == wanted]

    def by_description(self, fragment: str) -> list[LiveNode]:
        wanted = fragment.lower()
        return [n for n in self.nodes if n.description and wanted in n.description.lower()]

    def at_index(self, index: int) -> LiveNode | None:
        if index < 0 or index >= len(self._indexed):
            return None
        return self._by_handle.get(id(self._indexed[index]))

    def first_editable(self) -> LiveNode | None:
        return next((n for n in self.nodes if n.editable), None)

    def first_scrollable(self) -> LiveNode | None:
        return next((n for n in self.nodes if n.scrollable), None)


def clickable_ancestor(node: LiveNode, max_hops: int = _CLICKABLE_ANCESTOR_HOPS) -> LiveNode | None:
    current = node.parent
    hops = 0
    while current is not None and hops < max_hops:
        if current.clickable:
            return current
        current = current.parent
        hops += 1
    return None


class NodeResolver:
    def __init__(self, host, limits: CaptureLimits = DEFAULT_LIMITS):
        self.host = host
        self.limits = limits

    def live_tree(self) -> LiveTree | None:
        root = self.host.snapshot()
        if root is None:
            return None
        return LiveTree(root, self.limits)

    def _package(self, tree: LiveTree) -> str | None:
        return self.host.current_foreground_package() or tree.root_package

    def _id_matches(self, tree: LiveTree, resource_id: str) -> list[LiveNode]:
        matches = tree.by_id(resource_id)
        if matches or ":id/" in resource_id:
            return matches
        package = self._package(tree)
        if not package:
            return []
        return tree.by_id(f"{package}:id/{resource_id}")

    def resolve(self, hint: TargetHint, tree: LiveTree | None = None) -> Resolution | None:
        """Resolve a general target, or None when nothing matches."""
        tree = tree or self.live_tree()
        if tree is None:
            _log("no live tree to resolve against")
            return None

        if hint.resource_id:
            matches = self._id_matches(tree, hint.resource_id)
            if matches:
                return Resolution(matches[0], "id")

        if hint.text:
            matches = tree.by_text(hint.text)
            if matches:
                clickable = next((n for n in matches if n.clickable), None)
                if clickable is not None:
                    return Resolution(clickable, "text")
                ancestor = next(
                    (a for a in map(clickable_ancestor, matches) if a is not None), None
                )
                if ancestor is not None:
                    return Resolution(ancestor, "text-ancestor")
                return Resolution(matches[0], "text")

        if hint.description:
            matches = tree.by_description(hint.description)
            if matches:
                return Resolution(matches[0], "description")

        if hint.index is not None:
            node = tree.at_index(hint.index)
            if node is not None:
                return Resolution(node, "index")

        _log(f"no node for {hint}")
        return None

    def resolve_editable(self, hint: TargetHint, tree: LiveTree | None = None) -> Resolution | None:
        """Resolve an editable target, falling back to the first editable node."""
        tree = tree or self.live_tree()
        if tree is None:
            _log("no live tree to resolve against")
            return None

        if hint.resource_id:
            node = next((n for n in self._id_matches(tree, hint.resource_id) if n.editable), None)
            if node is not None:
                return Resolution(node, "id")

        if hint.text:
            node = next((n for n in tree.by_text(hint.text) if n.editable), None)
            if node is not None:
                return Resolution(node, "text")

        if hint.description:
            node = next((n for n in tree.by_description(hint.description) if n.editable), None)
            if node is not None:
                return Resolution(node, "description")

        if hint.index is not None:
            node = tree.at_index(hint.index)
            if node is not None and node.editable:
                return Resolution(node, "index")

        node = tree.first_editable()
        if node is not None:
            return Resolution(node, "first-editable")
        _log(f"no editable node for {hint}")
        return None

    def first_scrollable(self, tree: LiveTree | None = None) -> Resolution | None:
        tree = tree or self.live_tree()
        if tree is None:
            return None
        node = tree.first_scrollable()
        return Resolution(node, "first-scrollable") if node is not None else None
