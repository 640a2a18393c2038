#!/usr/bin/env python3
"""Android Agent Runner - CLI for driving an Android device with an LLM agent.

Usage:
    python main.py --goal "open whatsapp and message Anna hi"
    python main.py --dump-tree [--json]
    python main.py --history 10
    python main.py --doctor
"""

import argparse
import asyncio
import dataclasses
import json
import sys

from droidrunner import adbwrap, agent_loop, doctor, snapshot
from droidrunner.actions import describe
from droidrunner.history import HistoryStore
from droidrunner.settings import load_settings


def log(msg: str) -> None:
    print(f"[main] {msg}", file=sys.stderr)


def confirm_plan(plan) -> bool:
    """Interactive y/N prompt used when auto-execute is off."""
    print(f"\nReasoning: {plan.reasoning}", file=sys.stderr)
    for i, action in enumerate(plan.actions, 1):
        print(f"  {i}. {describe(action)}", file=sys.stderr)
    try:
        answer = input("Execute these actions? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def do_dump_tree(host: adbwrap.AdbHost, as_json: bool) -> int:
    log("Dumping screen tree...")
    snap = snapshot.capture(host.snapshot())
    if snap is None:
        print("WARNING: Unable to read screen content", file=sys.stderr)
        return 1
    log(f"Captured {snap.node_count} nodes")
    if as_json:
        print(json.dumps(snap.to_dict(), indent=2))
    else:
        print(snap.to_compact_string())
    return 0


def do_history(limit: int) -> int:
    records = HistoryStore().recent(limit=limit)
    print(json.dumps([r.to_dict() for r in records], indent=2))
    return 0


def do_goal(host: adbwrap.AdbHost, settings, goal: str) -> int:
    loop = agent_loop.create_loop(settings, host, confirm=confirm_plan)
    result = asyncio.run(agent_loop.CommandRunner(loop).submit(goal))
    status = result.outcome.value.upper()
    print(f"\n{'=' * 60}", file=sys.stderr)
    print(f"AGENT {status} in {result.steps} steps", file=sys.stderr)
    print(f"Summary: {result.message}", file=sys.stderr)
    print(f"{'=' * 60}", file=sys.stderr)
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Android Agent Runner - device automation via adb + an LLM planner"
    )
    parser.add_argument(
        "--goal",
        type=str,
        help="Natural language command; runs the autonomous agent loop",
    )
    parser.add_argument(
        "--dump-tree",
        action="store_true",
        help="Print the compact screen tree of the current screen",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="With --dump-tree, print the structured tree as JSON",
    )
    parser.add_argument(
        "--history",
        type=int,
        nargs="?",
        const=20,
        help="List the N most recent commands (default: 20)",
    )
    parser.add_argument(
        "--doctor",
        action="store_true",
        help="Run environment diagnostics",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        help="Override the max agent loop iterations from settings",
    )
    parser.add_argument(
        "--serial",
        type=str,
        help="adb device serial (default: the only connected device)",
    )

    args = parser.parse_args()

    if args.doctor:
        return doctor.main()
    if args.history is not None:
        return do_history(args.history)

    if not any([args.goal, args.dump_tree]):
        parser.print_help()
        return 1

    host = adbwrap.AdbHost(serial=args.serial)
    if args.dump_tree:
        if not host.is_available():
            print("FATAL: no Android device available over adb", file=sys.stderr)
            return 1
        return do_dump_tree(host, args.json)

    settings = load_settings()
    if args.max_steps:
        settings = dataclasses.replace(settings, max_steps_per_command=max(1, args.max_steps))
    return do_goal(host, settings, args.goal)


if __name__ == "__main__":
    sys.exit(main())
