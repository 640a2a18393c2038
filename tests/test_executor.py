import asyncio

import pytest

from fakes import FakeHost, SleepRecorder, node

from droidrunner.actions import (
    ClearText,
    Click,
    Done,
    Error,
    LongClick,
    OpenApp,
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
from droidrunner.executor import ActionExecutor


def _screen():
    return node("android.widget.FrameLayout", children=[
        node("android.widget.Button", text="Send", clickable=True),
        node("android.widget.EditText", text="Hello", rid="com.example:id/entry", editable=True),
        node("androidx.recyclerview.widget.RecyclerView", rid="com.example:id/list", scrollable=True),
        node("android.widget.ScrollView", rid="com.example:id/other", scrollable=True),
    ])


def _executor(host=None, **kwargs):
    host = host or FakeHost(root=_screen())
    sleep = SleepRecorder()
    return ActionExecutor(host, sleep=sleep, **kwargs), host, sleep


def _run(executor, action):
    return asyncio.run(executor.execute(action))


def test_click_by_text():
    executor, host, _ = _executor()
    result = _run(executor, Click(TargetHint(text="Send")))

    assert result.success is True
    assert result.description == 'Clicked "Send"'
    assert host.kinds() == ["click"]
    assert host.calls[0][1]["text"] == "Send"


def test_click_without_match_fails_without_host_calls():
    executor, host, _ = _executor()
    result = _run(executor, Click(TargetHint(text="Missing")))

    assert result.success is False
    assert host.calls == []


def test_long_click():
    executor, host, _ = _executor()
    assert _run(executor, LongClick(TargetHint(text="Send"))).success is True
    assert host.kinds() == ["long_click"]


def test_type_text_appends_to_current_text():
    executor, host, _ = _executor()
    result = _run(executor, TypeText(text=" world", target=TargetHint(resource_id="entry")))

    assert result.success is True
    assert host.kinds() == ["focus", "click", "set_text"]
    assert host.calls[-1][2] == {"text": "Hello world"}


def test_set_text_replaces_current_text():
    executor, host, _ = _executor()
    result = _run(executor, SetText(text="Bye", target=TargetHint(resource_id="entry")))

    assert result.success is True
    assert host.calls[-1][2] == {"text": "Bye"}


def test_clear_text_sets_empty():
    executor, host, _ = _executor()
    assert _run(executor, ClearText()).success is True
    assert host.calls[-1][0] == "set_text"
    assert host.calls[-1][2] == {"text": ""}


def test_text_actions_fail_without_editable():
    root = node("android.widget.FrameLayout", children=[node("android.widget.TextView", text="x")])
    executor, host, _ = _executor(FakeHost(root=root))
    assert _run(executor, SetText(text="y")).success is False
    assert host.calls == []


def test_scroll_maps_direction_and_defaults_to_first_scrollable():
    executor, host, _ = _executor()

    assert _run(executor, Scroll(ScrollDirection.DOWN)).success is True
    assert _run(executor, Scroll(ScrollDirection.LEFT)).success is True
    assert host.kinds() == ["scroll_forward", "scroll_backward"]
    assert host.calls[0][1]["resource-id"] == "com.example:id/list"


def test_scroll_targets_resolved_node():
    executor, host, _ = _executor()
    _run(executor, Scroll(ScrollDirection.UP, TargetHint(resource_id="other")))
    assert host.calls[0][1]["resource-id"] == "com.example:id/other"
    assert host.kinds() == ["scroll_backward"]


def test_scroll_without_scrollable_fails():
    root = node("android.widget.FrameLayout", children=[node("android.widget.TextView", text="x")])
    executor, _, _ = _executor(FakeHost(root=root))
    assert _run(executor, Scroll()).success is False


def test_press_system_button():
    executor, host, _ = _executor()
    result = _run(executor, PressSystemButton(SystemButton.RECENTS))
    assert result.success is True
    assert host.buttons == [SystemButton.RECENTS]


def test_open_app_by_alias_skips_installed_lookup():
    executor, host, _ = _executor()
    result = _run(executor, OpenApp(app_name="WhatsApp"))

    assert result.success is True
    assert host.launched == ["com.whatsapp"]
    assert host.app_queries == 0


def test_open_app_by_installed_label():
    host = FakeHost(root=_screen(), apps=[("Signal", "org.thoughtcrime.securesms"), ("Slack", "com.Slack")])
    executor, _, _ = _executor(host)

    assert _run(executor, OpenApp(app_name="signal")).success is True
    assert host.launched == ["org.thoughtcrime.securesms"]


def test_open_app_prefers_package_name():
    executor, host, _ = _executor()
    _run(executor, OpenApp(package_name="com.android.chrome", app_name="WhatsApp"))
    assert host.launched == ["com.android.chrome"]


def test_open_app_unknown_name_fails():
    executor, host, _ = _executor()
    assert _run(executor, OpenApp(app_name="zzzz-not-an-app")).success is False
    assert host.launched == []


def test_wait_suspends_for_duration():
    executor, _, sleep = _executor()
    result = _run(executor, Wait(1500))
    assert result.success is True
    assert sleep.durations == [1.5]


def test_swipe_dispatches_gesture():
    executor, host, _ = _executor()
    result = _run(executor, Swipe(540, 1500, 540, 500, 250))

    assert result.success is True
    assert host.gestures == [([(540, 1500), (540, 500)], 250)]


def test_swipe_times_out_as_failure():
    host = FakeHost(root=_screen())
    host.gesture_delay = 5
    executor, _, _ = _executor(host, gesture_timeout_s=0.01)
    assert _run(executor, Swipe(0, 0, 10, 10)).success is False


def test_terminal_actions_are_noops():
    executor, host, _ = _executor()
    assert _run(executor, Done("ok")).success is True
    assert _run(executor, Error("no")).success is True
    assert host.calls == []


def test_primitive_refusal_is_failure():
    executor, host, _ = _executor()
    host.perform_result = False
    assert _run(executor, Click(TargetHint(text="Send"))).success is False


def test_host_exception_propagates():
    executor, host, _ = _executor()
    host.perform_error = RuntimeError("device gone")
    with pytest.raises(RuntimeError, match="device gone"):
        _run(executor, Click(TargetHint(text="Send")))
