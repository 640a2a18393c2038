"""executor.py - Perform one action against the live UI host."""

import asyncio
import sys

from droidrunner import host as primitives
from droidrunner.actions import (
    Action,
    ClearText,
    Click,
    Done,
    Error,
    ExecutionResult,
    LongClick,
    OpenApp,
    PressSystemButton,
    Scroll,
    SetText,
    Swipe,
    TypeText,
    Wait,
    describe,
)
from droidrunner.app_lookup import resolve_package
from droidrunner.resolver import NodeResolver


GESTURE_TIMEOUT_S = 5.0


def _log(msg: str) -> None:
    print(f"[executor] {msg}", file=sys.stderr)


class ActionExecutor:
    """Executes actions one at a time.

    Returns ExecutionResult(success=False) for anything the host reports as
    not done (no node found, primitive refused, gesture timed out). An
    exception raised by the host itself propagates to the caller.
    """

    def __init__(self, host, resolver: NodeResolver | None = None, sleep=asyncio.sleep,
                 gesture_timeout_s: float = GESTURE_TIMEOUT_S):
        self.host = host
        self.resolver = resolver or NodeResolver(host)
        self.sleep = sleep
        self.gesture_timeout_s = gesture_timeout_s
        self._handlers = {
            Click: self._click,
            LongClick: self._long_click,
            TypeText: self._type_text,
            SetText: self._set_text,
            ClearText: self._clear_text,
            Scroll: self._scroll,
            PressSystemButton: self._press,
            OpenApp: self._open_app,
            Wait: self._wait,
            Swipe: self._swipe,
            Done: self._terminal,
            Error: self._terminal,
        }

    async def execute(self, action: Action) -> ExecutionResult:
        handler = self._handlers.get(type(action))
        if handler is None:
            _log(f"unsupported action {action!r}")
            return ExecutionResult(action, False, describe(action))
        success = bool(await handler(action))
        if not success:
            _log(f"failed: {describe(action)}")
        return ExecutionResult(action, success, describe(action))

    # -- node actions -------------------------------------------------------

    async def _click(self, action: Click) -> bool:
        found = self.resolver.resolve(action.target)
        if found is None:
            return False
        return self.host.perform(found.node.handle, primitives.CLICK)

    async def _long_click(self, action: LongClick) -> bool:
        found = self.resolver.resolve(action.target)
        if found is None:
            return False
        return self.host.perform(found.node.handle, primitives.LONG_CLICK)

    async def _type_text(self, action: TypeText) -> bool:
        found = self.resolver.resolve_editable(action.target)
        if found is None:
            return False
        handle = found.node.handle
        self.host.perform(handle, primitives.FOCUS)
        self.host.perform(handle, primitives.CLICK)
        current = found.node.text or ""
        return self.host.perform(handle, primitives.SET_TEXT, text=current + action.text)

    async def _set_text(self, action: SetText) -> bool:
        found = self.resolver.resolve_editable(action.target)
        if found is None:
            return False
        handle = found.node.handle
        self.host.perform(handle, primitives.FOCUS)
        return self.host.perform(handle, primitives.SET_TEXT, text=action.text)

    async def _clear_text(self, action: ClearText) -> bool:
        found = self.resolver.resolve_editable(action.target)
        if found is None:
            return False
        handle = found.node.handle
        self.host.perform(handle, primitives.FOCUS)
        return self.host.perform(handle, primitives.SET_TEXT, text="")

    async def _scroll(self, action: Scroll) -> bool:
        tree = self.resolver.live_tree()
        if tree is None:
            return False
        found = None
        if not action.target.is_empty():
            found = self.resolver.resolve(action.target, tree)
        if found is None:
            found = self.resolver.first_scrollable(tree)
        if found is None:
            return False
        kind = primitives.SCROLL_FORWARD if action.direction.is_forward else primitives.SCROLL_BACKWARD
        return self.host.perform(found.node.handle, kind)

    # -- global actions -----------------------------------------------------

    async def _press(self, action: PressSystemButton) -> bool:
        return self.host.global_action(action.button)

    async def _open_app(self, action: OpenApp) -> bool:
        package = action.package_name
        if not package and action.app_name:
            package = resolve_package(action.app_name, self.host.installed_apps)
        if not package:
            _log(f"no package for app name {action.app_name!r}")
            return False
        return self.host.launch_app(package)

    async def _wait(self, action: Wait) -> bool:
        await self.sleep(max(action.duration_ms, 0) / 1000)
        return True

    async def _swipe(self, action: Swipe) -> bool:
        path = [(action.start_x, action.start_y), (action.end_x, action.end_y)]
        try:
            return await asyncio.wait_for(
                self.host.dispatch_gesture(path, action.duration_ms),
                timeout=self.gesture_timeout_s,
            )
        except asyncio.TimeoutError:
            _log(f"gesture did not complete within {self.gesture_timeout_s}s")
            return False

    async def _terminal(self, action) -> bool:
        return True
