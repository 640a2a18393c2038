import json

import pytest

from droidrunner.actions import (
    Click,
    Done,
    Error,
    OpenApp,
    PressSystemButton,
    Scroll,
    ScrollDirection,
    SetText,
    Swipe,
    SystemButton,
    TypeText,
    Wait,
)
from droidrunner.plan_parser import parse_action, parse_plan, strip_fences


def test_parses_envelope_and_actions():
    raw = json.dumps({
        "reasoning": "Open WhatsApp first",
        "actions": [
            {"action": "openApp", "appName": "WhatsApp"},
            {"action": "click", "nodeText": "Anna", "nodeIndex": 4},
            {"action": "setText", "text": "hi", "nodeId": "entry"},
        ],
        "requiresScreenRefresh": False,
        "isComplete": False,
    })
    plan = parse_plan(raw)

    assert plan.reasoning == "Open WhatsApp first"
    assert plan.requires_refresh is False
    assert plan.is_complete is False
    assert plan.error_message is None
    assert plan.actions[0] == OpenApp(app_name="WhatsApp")
    assert isinstance(plan.actions[1], Click)
    assert plan.actions[1].target.text == "Anna"
    assert plan.actions[1].target.index == 4
    assert plan.actions[2] == SetText(text="hi", target=plan.actions[2].target)
    assert plan.actions[2].target.resource_id == "entry"


def test_action_discriminator_with_type_alias():
    raw = json.dumps({
        "actions": [
            {"action": "click", "nodeText": "Send"},
            {"type": "wait", "milliseconds": 300},
            {"action": "done", "message": "sent"},
        ],
        "isComplete": True,
    })
    plan = parse_plan(raw)

    assert isinstance(plan.actions[0], Click)
    assert plan.actions[0].target.text == "Send"
    assert plan.actions[1] == Wait(duration_ms=300)
    assert plan.actions[2] == Done(message="sent")


def test_strips_markdown_fences():
    body = '{"reasoning": "ok", "actions": [{"action": "done", "message": "fin"}], "isComplete": true}'
    assert strip_fences(f"```json\n{body}\n```") == body
    assert strip_fences(f"```\n{body}\n```") == body

    plan = parse_plan(f"```json\n{body}\n```")
    assert plan.actions == (Done(message="fin"),)
    assert plan.is_complete is True


def test_missing_fields_take_defaults():
    plan = parse_plan("{}")
    assert plan.reasoning == ""
    assert plan.actions == ()
    assert plan.requires_refresh is True
    assert plan.is_complete is False


def test_unknown_and_malformed_actions_are_dropped():
    raw = json.dumps({
        "actions": [
            {"action": "teleport", "where": "moon"},
            "click",
            {"no_type": True},
            {"action": "pressButton", "button": "home"},
        ]
    })
    plan = parse_plan(raw)
    assert plan.actions == (PressSystemButton(button=SystemButton.HOME),)


@pytest.mark.parametrize("raw", ["not json at all", "", "   ", "```", "[1, 2, 3]", "42", "null", b"\xff\xfe"])
def test_unreadable_responses_become_error_plans(raw):
    plan = parse_plan(raw)

    assert plan.is_complete is True
    assert plan.requires_refresh is False
    assert plan.error_message
    assert plan.reasoning.startswith("Failed to parse AI response: ")
    assert len(plan.actions) == 1
    assert isinstance(plan.actions[0], Error)


def test_parse_plan_accepts_none():
    assert parse_plan(None).error_message


def test_numeric_strings_and_bad_numbers():
    assert parse_action({"action": "wait", "milliseconds": "1500"}) == Wait(duration_ms=1500)
    assert parse_action({"action": "wait", "milliseconds": "soon"}) == Wait(duration_ms=1000)
    assert parse_action({"action": "wait", "milliseconds": 1e999}) == Wait(duration_ms=1000)
    assert parse_action({"action": "click", "nodeIndex": "7"}).target.index == 7
    assert parse_action({"action": "click", "nodeIndex": True}).target.index is None

    swipe = parse_action({"action": "swipe", "startX": "540", "startY": 1500.0, "endX": 540, "endY": 500})
    assert swipe == Swipe(start_x=540, start_y=1500, end_x=540, end_y=500, duration_ms=300)


def test_kind_defaults():
    assert parse_action({"action": "scroll"}).direction is ScrollDirection.DOWN
    assert parse_action({"action": "scroll", "direction": "UP"}).direction is ScrollDirection.UP
    assert parse_action({"action": "scroll", "direction": "sideways"}) == Scroll()
    assert parse_action({"action": "pressSystemButton", "button": "nope"}).button is SystemButton.BACK
    assert parse_action({"action": "typeText"}) == TypeText(text="")
    assert parse_action({"action": "done"}) == Done(message="Task completed")
    assert parse_action({"action": "error"}) == Error(reason="Unknown error")


def test_non_boolean_flags_default():
    plan = parse_plan('{"isComplete": "yes", "requiresScreenRefresh": 0, "actions": [{"action": "wait"}]}')
    assert plan.is_complete is False
    assert plan.requires_refresh is True

    plan = parse_plan('{"isComplete": "true", "actions": []}')
    assert plan.is_complete is True


def test_non_string_reasoning_is_tolerated():
    assert parse_plan('{"reasoning": {"nested": 1}}').reasoning == ""
    assert parse_plan('{"reasoning": 12}').reasoning == "12"
