from droidrunner.actions import (
    ClearText,
    Click,
    Done,
    Error,
    ExecutionResult,
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
    describe,
    until_terminal,
)


def test_until_terminal_stops_at_first_terminal():
    actions = [Click(TargetHint(text="A")), Done("first"), Error("second"), Click()]
    runnable, terminal = until_terminal(actions)

    assert runnable == [Click(TargetHint(text="A"))]
    assert terminal == Done("first")


def test_until_terminal_without_terminal():
    runnable, terminal = until_terminal([Wait(10), Scroll()])
    assert len(runnable) == 2
    assert terminal is None


def test_descriptions():
    assert describe(Click(TargetHint(text="Send"))) == 'Clicked "Send"'
    assert describe(Click(TargetHint(index=5))) == "Clicked element #5"
    assert describe(TypeText(text="hello")) == 'Typed text: "hello"'
    assert describe(SetText(text="hello")) == 'Set text: "hello"'
    assert describe(ClearText()) == "Cleared input field"
    assert describe(Scroll(ScrollDirection.DOWN)) == "Scrolled down"
    assert describe(PressSystemButton(SystemButton.BACK)) == "Pressed BACK"
    assert describe(OpenApp(app_name="WhatsApp")) == "Opened app WhatsApp"
    assert describe(OpenApp(package_name="com.whatsapp")) == "Opened app com.whatsapp"
    assert describe(Wait(1000)) == "Waited 1000ms"
    assert describe(Swipe(540, 1500, 540, 500)) == "Swiped (540,1500)->(540,500)"
    assert describe(Done("sent")) == "Done: sent"
    assert describe(Error("stuck")) == "Error: stuck"


def test_failed_result_history_line():
    ok = ExecutionResult(Wait(5), True, "Waited 5ms")
    failed = ExecutionResult(Click(TargetHint(text="X")), False, 'Clicked "X"')
    assert ok.history_line() == "Waited 5ms"
    assert failed.history_line() == 'Clicked "X" [FAILED]'


def test_scroll_direction_mapping():
    assert ScrollDirection.DOWN.is_forward
    assert ScrollDirection.RIGHT.is_forward
    assert not ScrollDirection.UP.is_forward
    assert not ScrollDirection.LEFT.is_forward
