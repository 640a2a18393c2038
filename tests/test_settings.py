import json

from droidrunner import settings as settings_mod
from droidrunner.settings import Settings, load_settings, save_settings


def _load(tmp_path, env, payload=None):
    path = tmp_path / "settings.json"
    if payload is not None:
        path.write_text(json.dumps(payload))
    return load_settings(path=path, env=env, load_env_files=False)


def test_defaults(tmp_path):
    loaded = _load(tmp_path, {})

    assert loaded.provider == "anthropic"
    assert loaded.api_key == ""
    assert loaded.model == "claude-sonnet-4-5-20250929"
    assert loaded.auto_execute is True
    assert loaded.max_steps_per_command == 20
    assert loaded.action_delay_ms == 500
    assert loaded.show_debug_info is False


def test_file_values_then_env_overrides(tmp_path):
    env = {
        "DROIDRUNNER_PROVIDER": "groq",
        "GROQ_API_KEY": " gsk-test ",
        "DROIDRUNNER_MAX_STEPS": "7",
        "DROIDRUNNER_AUTO_EXECUTE": "no",
    }
    loaded = _load(tmp_path, env, {"provider": "openai", "action_delay_ms": 250, "show_debug_info": True})

    assert loaded.provider == "groq"
    assert loaded.api_key == "gsk-test"
    assert loaded.model == "llama-3.3-70b-versatile"
    assert loaded.max_steps_per_command == 7
    assert loaded.auto_execute is False
    assert loaded.action_delay_ms == 250
    assert loaded.show_debug_info is True


def test_invalid_values_are_clamped_or_ignored(tmp_path):
    env = {"DROIDRUNNER_MAX_STEPS": "0", "DROIDRUNNER_ACTION_DELAY_MS": "soon", "DROIDRUNNER_PROVIDER": "mystery"}
    loaded = _load(tmp_path, env)

    assert loaded.max_steps_per_command == 1
    assert loaded.action_delay_ms == 500
    assert loaded.provider == "anthropic"


def test_corrupt_or_foreign_file_is_ignored(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{broken")
    assert load_settings(path=path, env={}, load_env_files=False) == load_settings(
        path=tmp_path / "absent.json", env={}, load_env_files=False
    )

    loaded = _load(tmp_path, {}, {"unknown_field": 1, "api_key": "from-file"})
    assert loaded.api_key == ""


def test_save_round_trip_never_writes_key(tmp_path):
    path = tmp_path / "out" / "settings.json"
    save_settings(Settings(provider="openai", api_key="secret", model="gpt-4o-mini", max_steps_per_command=5), path)

    assert "secret" not in path.read_text()
    loaded = load_settings(path=path, env={"OPENAI_API_KEY": "k"}, load_env_files=False)
    assert loaded.provider == "openai"
    assert loaded.max_steps_per_command == 5
    assert loaded.api_key == "k"


def test_settings_path_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("DROIDRUNNER_SETTINGS", str(tmp_path / "custom.json"))
    assert settings_mod.settings_path() == tmp_path / "custom.json"


def test_redacted_hides_key():
    assert Settings(api_key="secret").redacted()["api_key"] == "set"
    assert Settings().redacted()["api_key"] == ""
