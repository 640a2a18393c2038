"""host.py - What the agent needs from a UI host, plus the shared status board."""

import threading
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

from droidrunner.actions import SystemButton


# Primitive kinds accepted by UIHost.perform().
CLICK = "click"
LONG_CLICK = "long_click"
FOCUS = "focus"
SET_TEXT = "set_text"
SCROLL_FORWARD = "scroll_forward"
SCROLL_BACKWARD = "scroll_backward"

PRIMITIVES = (CLICK, LONG_CLICK, FOCUS, SET_TEXT, SCROLL_FORWARD, SCROLL_BACKWARD)


class UIHost(Protocol):
    """A live UI tree plus the primitives that act on it.

    Raw nodes are mappings readable by snapshot.read_field; a node returned
    from snapshot() doubles as the handle passed back into perform().
    """

    def is_available(self) -> bool: ...

    def snapshot(self) -> Any | None: ...

    def current_foreground_package(self) -> str | None: ...

    def perform(self, handle: Any, kind: str, **args) -> bool: ...

    def global_action(self, button: SystemButton) -> bool: ...

    def launch_app(self, package: str) -> bool: ...

    def installed_apps(self) -> list[tuple[str, str]]: ...

    async def dispatch_gesture(self, path: list[tuple[int, int]], duration_ms: int) -> bool: ...


class ServiceStatus(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    PROCESSING = "processing"


class StatusBoard:
    """Process-wide status and foreground package, safe to share across threads."""

    def __init__(self, status: ServiceStatus = ServiceStatus.DISCONNECTED):
        self._lock = threading.Lock()
        self._status = status
        self._package: str | None = None
        self._subscribers: list[Callable[[ServiceStatus, str | None], None]] = []

    @property
    def status(self) -> ServiceStatus:
        with self._lock:
            return self._status

    @property
    def foreground_package(self) -> str | None:
        with self._lock:
            return self._package

    def set_status(self, status: ServiceStatus) -> None:
        with self._lock:
            changed = status != self._status
            self._status = status
            package = self._package
            subscribers = list(self._subscribers)
        if changed:
            for callback in subscribers:
                callback(status, package)

    def set_foreground_package(self, package: str | None) -> None:
        with self._lock:
            changed = package != self._package
            self._package = package
            status = self._status
            subscribers = list(self._subscribers)
        if changed:
            for callback in subscribers:
                callback(status, package)

    def subscribe(self, callback: Callable[[ServiceStatus, str | None], None]) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe
