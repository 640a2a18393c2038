"""Command history persistence (JSON lines under _artifacts/)."""

import json
import sys
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_HISTORY_PATH = _PROJECT_ROOT / "_artifacts" / "history.jsonl"

SUCCESS = "SUCCESS"
FAILED = "FAILED"
PARTIAL = "PARTIAL"
IN_PROGRESS = "IN_PROGRESS"

STATUSES = (SUCCESS, FAILED, PARTIAL, IN_PROGRESS)


def _log(msg: str) -> None:
    print(f"[history] {msg}", file=sys.stderr)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_record_id() -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"cmd_{stamp}_{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class CommandSummary:
    command: str
    status: str
    steps_completed: int = 0
    total_steps: int = 0
    result_message: str = ""
    duration_ms: int = 0
    timestamp: str = field(default_factory=_now_iso)
    id: str = field(default_factory=new_record_id)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CommandSummary":
        return cls(
            command=str(data["command"]),
            status=str(data.get("status", FAILED)),
            steps_completed=int(data.get("steps_completed", 0)),
            total_steps=int(data.get("total_steps", 0)),
            result_message=str(data.get("result_message", "")),
            duration_ms=int(data.get("duration_ms", 0)),
            timestamp=str(data.get("timestamp", "")),
            id=str(data.get("id") or new_record_id()),
        )


class HistoryStore:
    """Append-mostly store of CommandSummary records."""

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path) if path is not None else _HISTORY_PATH

    def _read(self) -> list[CommandSummary]:
        if not self.path.exists():
            return []
        records = []
        for line in self.path.read_text().splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                records.append(CommandSummary.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                continue
        return records

    def _rewrite(self, records: list[CommandSummary]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("".join(json.dumps(r.to_dict()) + "\n" for r in records))

    def append(self, record: CommandSummary) -> CommandSummary:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a") as f:
            f.write(json.dumps(record.to_dict()) + "\n")
        _log(f"{record.status} {record.command!r} ({record.steps_completed} steps)")
        return record

    def all(self) -> list[CommandSummary]:
        """All records, newest first."""
        return list(reversed(self._read()))

    def recent(self, limit: int = 50) -> list[CommandSummary]:
        return self.all()[: max(1, limit)]

    def get(self, record_id: str) -> CommandSummary | None:
        return next((r for r in self._read() if r.id == record_id), None)

    def update(self, record: CommandSummary) -> bool:
        records = self._read()
        for i, existing in enumerate(records):
            if existing.id == record.id:
                records[i] = record
                self._rewrite(records)
                return True
        return False

    def delete(self, record_id: str) -> bool:
        records = self._read()
        kept = [r for r in records if r.id != record_id]
        if len(kept) == len(records):
            return False
        self._rewrite(kept)
        return True

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
