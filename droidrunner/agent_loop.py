"""agent_loop.py - Autonomous observe/plan/execute loop for Android UI automation.

Give it a goal in plain English and it reads the screen, asks the reasoning
service for a plan, runs the plan's actions, reads again, and loops until
the goal is done, fails, or the step budget runs out.

Every run ends with exactly one history record, whichever way it ends.
"""

import asyncio
import inspect
import sys
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from droidrunner import history as history_mod
from droidrunner.actions import Done, Error, ExecutionResult, Plan, Wait, until_terminal
from droidrunner.executor import ActionExecutor
from droidrunner.host import ServiceStatus, StatusBoard
from droidrunner.plan_parser import parse_plan
from droidrunner.reasoning import ReasoningError, build_service, user_message
from droidrunner.snapshot import DEFAULT_LIMITS, CaptureLimits, Snapshot, capture

SYSTEM_PROMPT = """\
You are an Android automation agent controlling a real phone through its accessibility tree.

Each turn you receive the user's command, the actions already performed, the
current foreground package and a compact screen tree. Every line of the tree is:
  [index]Type text="..." desc="..." id="..." {capabilities}
Indentation shows nesting.

Respond with ONE JSON object and nothing else:
{
  "reasoning": "short explanation of what you see and why you act",
  "actions": [ ... ],
  "requiresScreenRefresh": true,
  "isComplete": false
}

Available actions (target a node by nodeId, nodeText, nodeDescription or nodeIndex):
- {"action": "click", "nodeIndex": 5, "nodeText": "Send", "nodeId": "send_button", "nodeDescription": "Send"}
- {"action": "longClick", "nodeIndex": 5}
- {"action": "typeText", "text": "hello", "nodeIndex": 3}   appends to the field's current text
- {"action": "setText", "text": "hello", "nodeIndex": 3}    replaces the field's text
- {"action": "clearText", "nodeIndex": 3}
- {"action": "scroll", "direction": "up|down|left|right", "nodeIndex": 7}
- {"action": "pressButton", "button": "BACK|HOME|RECENTS|NOTIFICATIONS"}
- {"action": "openApp", "packageName": "com.whatsapp", "appName": "WhatsApp"}
- {"action": "wait", "milliseconds": 1000}
- {"action": "swipe", "startX": 540, "startY": 1500, "endX": 540, "endY": 500, "duration": 300}
- {"action": "done", "message": "what was accomplished"}
- {"action": "error", "reason": "why the command cannot be completed"}

Guidelines:
- Prefer using setText over typeText unless you really need to append.
- Prefer nodeId or nodeText over nodeIndex; indexes change when the screen changes.
- Return a few actions at a time, then look at the screen again.
- Set "isComplete": true and add a "done" action as soon as the goal is achieved.
- Use "error" only when the command truly cannot be completed.

Common package names:
- com.whatsapp: WhatsApp
- org.telegram.messenger: Telegram
- com.android.chrome: Chrome
- com.google.android.youtube: YouTube
- com.instagram.android: Instagram
- com.vkontakte.android: VK
- com.google.android.gm: Gmail
- com.android.camera2: Camera
- com.android.settings: Settings
- com.google.android.apps.maps: Maps
- com.google.android.calendar: Calendar
- com.google.android.calculator: Calculator
- com.google.android.deskclock: Clock
"""

NO_SCREEN = "no screen"


def _log(msg: str) -> None:
    print(f"[agent] {msg}", file=sys.stderr)


class RunOutcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    EXHAUSTED = "exhausted"


_HISTORY_STATUS = {
    RunOutcome.SUCCEEDED: history_mod.SUCCESS,
    RunOutcome.FAILED: history_mod.FAILED,
    RunOutcome.EXHAUSTED: history_mod.PARTIAL,
}


@dataclass
class LoopState:
    """Mutable state owned by one run."""

    window: int = DEFAULT_LIMITS.conversation_window
    step_count: int = 0
    is_complete: bool = False
    outcome: RunOutcome | None = None
    last_error: str | None = None
    last_message: str | None = None
    previous_actions: list[str] = field(default_factory=list)
    conversation: deque = field(init=False)

    def __post_init__(self):
        self.conversation = deque(maxlen=self.window)

    def remember(self, screen_digest: str, reasoning: str) -> None:
        self.conversation.append((screen_digest or NO_SCREEN, reasoning))

    def record(self, result: ExecutionResult) -> None:
        self.previous_actions.append(result.history_line())

    def finish(self, outcome: RunOutcome, message: str) -> None:
        self.is_complete = True
        self.outcome = outcome
        self.last_message = message
        if outcome is RunOutcome.FAILED:
            self.last_error = message


@dataclass(frozen=True)
class RunResult:
    outcome: RunOutcome
    steps: int
    message: str
    duration_ms: int
    actions: tuple[str, ...] = ()
    record_id: str | None = None

    @property
    def success(self) -> bool:
        return self.outcome is RunOutcome.SUCCEEDED

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "status": self.outcome.value,
            "steps": self.steps,
            "message": self.message,
            "duration_ms": self.duration_ms,
            "actions": list(self.actions),
            "record_id": self.record_id,
        }


def build_messages(
    goal: str,
    conversation,
    previous_actions: list[str],
    package: str | None,
    screen: str | None,
) -> list[dict]:
    """Conversation window as user/assistant pairs, then this step's context."""
    messages: list[dict] = []
    for digest, reasoning in conversation:
        messages.append({"role": "user", "content": f"Screen: {digest}"})
        messages.append({"role": "assistant", "content": reasoning or "(no reasoning given)"})

    lines = [f"USER COMMAND: {goal}", ""]
    if previous_actions:
        lines.append("ACTIONS ALREADY PERFORMED:")
        lines.extend(f"{i}. {desc}" for i, desc in enumerate(previous_actions, 1))
        lines.append("")
    lines.append(f"CURRENT PACKAGE: {package or 'unknown'}")
    lines.append("")
    if screen:
        lines.append("CURRENT SCREEN TREE:")
        lines.append(screen)
    else:
        lines.append("CURRENT SCREEN: Unable to read screen content")
    lines.append("")
    lines.append("What actions should be taken next? Respond with JSON only.")
    messages.append({"role": "user", "content": "\n".join(lines)})
    return messages


class ControlLoop:
    """Runs one command at a time against a UI host."""

    def __init__(
        self,
        host,
        service,
        settings,
        history,
        status: StatusBoard | None = None,
        executor: ActionExecutor | None = None,
        confirm=None,
        sleep=asyncio.sleep,
        clock=time.monotonic,
        limits: CaptureLimits = DEFAULT_LIMITS,
    ):
        self.host = host
        self.service = service
        self.settings = settings
        self.history = history
        self.status = status or StatusBoard()
        self.executor = executor or ActionExecutor(host, sleep=sleep)
        self.confirm = confirm
        self.sleep = sleep
        self.clock = clock
        self.limits = limits

    def _debug(self, msg: str) -> None:
        if self.settings.show_debug_info:
            _log(msg)

    def _on_status(self, status: ServiceStatus, package: str | None) -> None:
        self._debug(f"status={status.value} package={package or '-'}")

    def _precondition_error(self) -> str | None:
        if not self.settings.api_key:
            return "API key is not configured. Add it in settings."
        if not self._host_available():
            return "UI host is not available. Connect a device and enable access first."
        return None

    def _host_available(self) -> bool:
        try:
            return bool(self.host.is_available())
        except Exception as exc:
            _log(f"host availability check failed: {exc}")
            return False

    def _observe(self) -> tuple[Snapshot | None, str | None]:
        snapshot = None
        try:
            snapshot = capture(self.host.snapshot(), self.limits)
        except Exception as exc:
            _log(f"screen capture failed: {exc}")
        package = None
        try:
            package = self.host.current_foreground_package()
        except Exception as exc:
            _log(f"foreground package read failed: {exc}")
        if package:
            self.status.set_foreground_package(package)
        return snapshot, package

    async def _approved(self, plan: Plan) -> bool:
        if self.settings.auto_execute or self.confirm is None:
            return True
        answer = self.confirm(plan)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    async def _step(self, state: LoopState, goal: str) -> None:
        snapshot, package = self._observe()
        screen = snapshot.prompt_text(self.limits.max_prompt_chars) if snapshot else None
        messages = build_messages(goal, state.conversation, state.previous_actions, package, screen)

        try:
            raw = await self.service.complete(SYSTEM_PROMPT, messages)
        except ReasoningError as exc:
            _log(f"reasoning failed: {exc.kind.value}: {exc.message}")
            state.finish(RunOutcome.FAILED, user_message(exc.kind, exc.message))
            return

        plan = parse_plan(raw)
        self._debug(f"step {state.step_count} reasoning: {plan.reasoning}")
        state.remember(snapshot.digest(self.limits.digest_chars) if snapshot else NO_SCREEN, plan.reasoning)

        runnable, terminal = until_terminal(plan.actions)
        if runnable and not await self._approved(plan):
            state.finish(RunOutcome.FAILED, "Plan rejected by user")
            return

        for position, action in enumerate(runnable):
            try:
                result = await self.executor.execute(action)
            except Exception as exc:
                _log(f"execution error on {action!r}: {exc}")
                state.finish(RunOutcome.FAILED, f"Execution error: {exc}")
                return
            state.record(result)
            if not result.success:
                # Abandon the rest of this plan; the next step re-observes.
                return
            if position < len(runnable) - 1:
                if isinstance(action, Wait):
                    await self.sleep(max(action.duration_ms, 0) / 1000)
                else:
                    await self.sleep(self.settings.action_delay_ms / 1000)

        if terminal is not None:
            state.record(await self.executor.execute(terminal))
            if isinstance(terminal, Done):
                state.finish(RunOutcome.SUCCEEDED, terminal.message)
            elif isinstance(terminal, Error):
                state.finish(RunOutcome.FAILED, terminal.reason)
            return
        if plan.is_complete:
            state.finish(RunOutcome.SUCCEEDED, plan.reasoning or "Task completed")

    def _finalize(self, state: LoopState, goal: str, started: float) -> str | None:
        duration_ms = int((self.clock() - started) * 1000)
        record = history_mod.CommandSummary(
            command=goal,
            status=_HISTORY_STATUS[state.outcome or RunOutcome.FAILED],
            steps_completed=state.step_count,
            total_steps=self.settings.max_steps_per_command,
            result_message=state.last_message or "",
            duration_ms=duration_ms,
        )
        try:
            self.history.append(record)
        except OSError as exc:
            _log(f"failed to write history: {exc}")
            return None
        return record.id

    async def run(self, goal: str, cancel: asyncio.Event | None = None) -> RunResult:
        started = self.clock()
        state = LoopState(window=self.limits.conversation_window)
        record_id = None
        self.status.set_status(ServiceStatus.PROCESSING)
        unsubscribe = self.status.subscribe(self._on_status)
        _log(f"goal: {goal!r}")
        try:
            problem = self._precondition_error()
            if problem:
                state.finish(RunOutcome.FAILED, problem)
            max_steps = self.settings.max_steps_per_command
            while not state.is_complete and state.step_count < max_steps:
                if cancel is not None and cancel.is_set():
                    state.finish(RunOutcome.FAILED, "Cancelled")
                    break
                state.step_count += 1
                if state.step_count > 1:
                    await self.sleep(self.settings.action_delay_ms / 1000)
                _log(f"step {state.step_count}/{max_steps}")
                await self._step(state, goal)
            if not state.is_complete:
                state.outcome = RunOutcome.EXHAUSTED
                state.last_message = f"Step limit reached ({max_steps}) before the command completed"
        except Exception as exc:
            _log(f"unexpected error: {exc}")
            state.finish(RunOutcome.FAILED, f"Unexpected error: {exc}")
        finally:
            if state.outcome is None:
                state.finish(RunOutcome.FAILED, "Cancelled")
            record_id = self._finalize(state, goal, started)
            unsubscribe()
            available = self._host_available()
            self.status.set_status(ServiceStatus.CONNECTED if available else ServiceStatus.DISCONNECTED)

        _log(f"finished: {state.outcome.value} after {state.step_count} step(s): {state.last_message}")
        return RunResult(
            outcome=state.outcome,
            steps=state.step_count,
            message=state.last_message or "",
            duration_ms=int((self.clock() - started) * 1000),
            actions=tuple(state.previous_actions),
            record_id=record_id,
        )


class CommandRunner:
    """Admits one command at a time; extra submissions are ignored."""

    def __init__(self, loop: ControlLoop):
        self.loop = loop
        self._cancel: asyncio.Event | None = None

    @property
    def busy(self) -> bool:
        return self._cancel is not None

    async def submit(self, goal: str) -> RunResult | None:
        if self._cancel is not None:
            _log(f"ignoring {goal!r}: a command is already running")
            return None
        self._cancel = asyncio.Event()
        try:
            return await self.loop.run(goal, cancel=self._cancel)
        finally:
            self._cancel = None

    def cancel(self) -> bool:
        """Ask the running command to stop before its next step."""
        if self._cancel is None:
            return False
        self._cancel.set()
        return True


def create_loop(settings, host, history=None, status=None, confirm=None, service=None) -> ControlLoop:
    """Wire a ControlLoop with the configured reasoning service."""
    return ControlLoop(
        host=host,
        service=service or build_service(settings),
        settings=settings,
        history=history or history_mod.HistoryStore(),
        status=status,
        confirm=confirm,
    )
