from pathlib import Path

import pytest

tomllib = pytest.importorskip("tomllib")

_ROOT = Path(__file__).resolve().parent.parent


def test_project_metadata_declares_runtime_stack():
    project = tomllib.loads((_ROOT / "pyproject.toml").read_text())["project"]

    assert "readme" not in project
    names = {dep.split(">")[0].split("=")[0] for dep in project["dependencies"]}
    assert names == {"anthropic", "openai", "python-dotenv", "thefuzz", "mcp"}
