import json
import sys

import main
from droidrunner.actions import Click, Plan, TargetHint
from droidrunner.history import CommandSummary, HistoryStore


def test_history_flag_prints_recent_records(tmp_path, monkeypatch, capsys):
    store = HistoryStore(tmp_path / "history.jsonl")
    store.append(CommandSummary(command="first", status="FAILED"))
    store.append(CommandSummary(command="second", status="SUCCESS"))
    monkeypatch.setattr(main, "HistoryStore", lambda: store)
    monkeypatch.setattr(sys, "argv", ["main.py", "--history", "1"])

    assert main.main() == 0
    payload = json.loads(capsys.readouterr().out)
    assert [r["command"] for r in payload] == ["second"]


def test_no_flags_prints_help(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["main.py"])
    assert main.main() == 1
    assert "usage" in capsys.readouterr().out.lower()


def test_confirm_plan_reads_answer(monkeypatch):
    plan = Plan(reasoning="tap send", actions=(Click(TargetHint(text="Send")),))
    monkeypatch.setattr("builtins.input", lambda prompt: "y")
    assert main.confirm_plan(plan) is True
    monkeypatch.setattr("builtins.input", lambda prompt: "")
    assert main.confirm_plan(plan) is False
