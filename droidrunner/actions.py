"""actions.py - The closed action vocabulary, plans, and execution results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class ScrollDirection(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    @property
    def is_forward(self) -> bool:
        return self in (ScrollDirection.DOWN, ScrollDirection.RIGHT)


class SystemButton(Enum):
    BACK = "BACK"
    HOME = "HOME"
    RECENTS = "RECENTS"
    NOTIFICATIONS = "NOTIFICATIONS"


@dataclass(frozen=True)
class TargetHint:
    """Partial description of a node; every field is optional."""

    index: int | None = None
    text: str | None = None
    resource_id: str | None = None
    description: str | None = None

    def is_empty(self) -> bool:
        return self.index is None and not self.text and not self.resource_id and not self.description

    def label(self) -> str:
        if self.text:
            return self.text
        if self.description:
            return self.description
        if self.resource_id:
            return self.resource_id
        if self.index is not None:
            return f"element #{self.index}"
        return "element"


@dataclass(frozen=True)
class Click:
    target: TargetHint = field(default_factory=TargetHint)


@dataclass(frozen=True)
class LongClick:
    target: TargetHint = field(default_factory=TargetHint)


@dataclass(frozen=True)
class TypeText:
    """Append text to the current contents of an editable node."""

    text: str = ""
    target: TargetHint = field(default_factory=TargetHint)


@dataclass(frozen=True)
class SetText:
    """Replace the contents of an editable node."""

    text: str = ""
    target: TargetHint = field(default_factory=TargetHint)


@dataclass(frozen=True)
class ClearText:
    target: TargetHint = field(default_factory=TargetHint)


@dataclass(frozen=True)
class Scroll:
    direction: ScrollDirection = ScrollDirection.DOWN
    target: TargetHint = field(default_factory=TargetHint)


@dataclass(frozen=True)
class PressSystemButton:
    button: SystemButton = SystemButton.BACK


@dataclass(frozen=True)
class OpenApp:
    package_name: str | None = None
    app_name: str | None = None


@dataclass(frozen=True)
class Wait:
    duration_ms: int = 1000


@dataclass(frozen=True)
class Swipe:
    start_x: int = 0
    start_y: int = 0
    end_x: int = 0
    end_y: int = 0
    duration_ms: int = 300


@dataclass(frozen=True)
class Done:
    message: str = "Task completed"


@dataclass(frozen=True)
class Error:
    reason: str = "Unknown error"


Action = Union[
    Click, LongClick, TypeText, SetText, ClearText, Scroll,
    PressSystemButton, OpenApp, Wait, Swipe, Done, Error,
]

TERMINAL_ACTIONS = (Done, Error)


def is_terminal(action: Action) -> bool:
    return isinstance(action, TERMINAL_ACTIONS)


def until_terminal(actions) -> tuple[list, Action | None]:
    """Split a plan's actions at the first terminal action.

    Returns (actions to execute, terminal action or None). Anything after
    the first Done/Error is dropped.
    """
    runnable = []
    for action in actions:
        if is_terminal(action):
            return runnable, action
        runnable.append(action)
    return runnable, None


def describe(action: Action) -> str:
    """Human-readable one-liner for an action."""
    if isinstance(action, Click):
        return f'Clicked "{action.target.text}"' if action.target.text else f"Clicked {action.target.label()}"
    if isinstance(action, LongClick):
        return f"Long-clicked {action.target.label()}"
    if isinstance(action, TypeText):
        return f'Typed text: "{action.text}"'
    if isinstance(action, SetText):
        return f'Set text: "{action.text}"'
    if isinstance(action, ClearText):
        return "Cleared input field"
    if isinstance(action, Scroll):
        return f"Scrolled {action.direction.value}"
    if isinstance(action, PressSystemButton):
        return f"Pressed {action.button.value}"
    if isinstance(action, OpenApp):
        return f"Opened app {action.app_name or action.package_name or '?'}"
    if isinstance(action, Wait):
        return f"Waited {action.duration_ms}ms"
    if isinstance(action, Swipe):
        return f"Swiped ({action.start_x},{action.start_y})->({action.end_x},{action.end_y})"
    if isinstance(action, Done):
        return f"Done: {action.message}"
    if isinstance(action, Error):
        return f"Error: {action.reason}"
    return type(action).__name__


@dataclass(frozen=True)
class Plan:
    """The reasoning service's answer for one step."""

    reasoning: str = ""
    actions: tuple = ()
    requires_refresh: bool = True
    is_complete: bool = False
    error_message: str | None = None


@dataclass(frozen=True)
class ExecutionResult:
    action: Action
    success: bool
    description: str

    def history_line(self) -> str:
        return self.description if self.success else f"{self.description} [FAILED]"
