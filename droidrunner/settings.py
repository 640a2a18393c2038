"""settings.py - Runtime settings: .env, persisted JSON file, then env overrides."""

import json
import os
import sys
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path

from dotenv import load_dotenv

from droidrunner.reasoning import default_model

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SETTINGS_PATH = _PROJECT_ROOT / "_artifacts" / "settings.json"

PROVIDERS = ("anthropic", "groq", "openai")

API_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "groq": "GROQ_API_KEY",
    "openai": "OPENAI_API_KEY",
}

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _log(msg: str) -> None:
    print(f"[settings] {msg}", file=sys.stderr)


@dataclass(frozen=True)
class Settings:
    provider: str = "anthropic"
    api_key: str = ""
    model: str = ""
    base_url: str | None = None
    auto_execute: bool = True
    max_steps_per_command: int = 20
    action_delay_ms: int = 500
    show_debug_info: bool = False
    request_timeout_s: float = 60

    def redacted(self) -> dict:
        data = asdict(self)
        data["api_key"] = "set" if self.api_key else ""
        return data


def settings_path() -> Path:
    override = os.environ.get("DROIDRUNNER_SETTINGS")
    return Path(override) if override else _SETTINGS_PATH


def _parse_bool(raw: str, default: bool) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    _log(f"ignoring unparseable boolean {raw!r}")
    return default


def _parse_int(raw, default: int) -> int:
    try:
        return int(str(raw).strip())
    except ValueError:
        _log(f"ignoring unparseable integer {raw!r}")
        return default


def _read_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        _log(f"{path} is not valid JSON ({exc}); using defaults")
        return {}
    if not isinstance(data, dict):
        return {}
    known = {f.name for f in fields(Settings)}
    return {k: v for k, v in data.items() if k in known and k != "api_key"}


def _normalize(settings: Settings) -> Settings:
    provider = str(settings.provider).strip().lower()
    if provider not in PROVIDERS:
        _log(f"unknown provider {settings.provider!r}; falling back to anthropic")
        provider = "anthropic"
    return replace(
        settings,
        provider=provider,
        model=settings.model or default_model(provider),
        max_steps_per_command=max(1, _parse_int(settings.max_steps_per_command, 20)),
        action_delay_ms=max(0, _parse_int(settings.action_delay_ms, 500)),
    )


def load_settings(path: Path | str | None = None, env: dict | None = None, load_env_files: bool = True) -> Settings:
    """Build Settings from defaults, the settings file and the environment."""
    if load_env_files:
        load_dotenv(_PROJECT_ROOT / ".env")
        load_dotenv(Path.home() / ".env")
    env = os.environ if env is None else env

    values = _read_file(Path(path) if path is not None else settings_path())

    if env.get("DROIDRUNNER_PROVIDER"):
        values["provider"] = env["DROIDRUNNER_PROVIDER"]
    if env.get("DROIDRUNNER_MODEL"):
        values["model"] = env["DROIDRUNNER_MODEL"]
    if env.get("DROIDRUNNER_BASE_URL"):
        values["base_url"] = env["DROIDRUNNER_BASE_URL"]
    if env.get("DROIDRUNNER_MAX_STEPS"):
        values["max_steps_per_command"] = _parse_int(env["DROIDRUNNER_MAX_STEPS"], 20)
    if env.get("DROIDRUNNER_ACTION_DELAY_MS"):
        values["action_delay_ms"] = _parse_int(env["DROIDRUNNER_ACTION_DELAY_MS"], 500)
    if env.get("DROIDRUNNER_AUTO_EXECUTE"):
        values["auto_execute"] = _parse_bool(env["DROIDRUNNER_AUTO_EXECUTE"], True)
    if env.get("DROIDRUNNER_SHOW_DEBUG"):
        values["show_debug_info"] = _parse_bool(env["DROIDRUNNER_SHOW_DEBUG"], False)

    settings = _normalize(Settings(**values))
    api_key = env.get(API_KEY_ENV[settings.provider], "")
    return replace(settings, api_key=api_key.strip())


def save_settings(settings: Settings, path: Path | str | None = None) -> Path:
    """Persist everything except the API key, which stays in the environment."""
    target = Path(path) if path is not None else settings_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    data = asdict(settings)
    data.pop("api_key", None)
    target.write_text(json.dumps(data, indent=2))
    return target
