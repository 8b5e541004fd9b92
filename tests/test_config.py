import json
from pathlib import Path

import pytest

from paleocore.config import Settings, load_settings
from paleocore.errors import ValidationError


def test_defaults():
    s = load_settings(env={})
    assert s == Settings()
    assert s.api_key is None and s.model == "gemini-2.5-flash"


def test_file_env_then_overrides(tmp_path: Path):
    cfg = tmp_path / "paleocore.json"
    cfg.write_text(json.dumps({"db_path": "from_file.db", "user_id": "alice", "model": "m-file"}))
    env = {"PALEOCORE_USER": "bob", "GEMINI_API_KEY": "k1", "PALEOCORE_GEMINI_API_KEY": "k2"}
    s = load_settings(cfg, env=env, model="m-cli", db_path=None)
    assert s.db_path == "from_file.db"
    assert s.user_id == "bob"
    assert s.api_key == "k1"
    assert s.model == "m-cli"


def test_unknown_keys_rejected(tmp_path: Path):
    cfg = tmp_path / "bad.json"
    cfg.write_text(json.dumps({"db_path": "x", "colour": "red"}))
    with pytest.raises(ValidationError, match="colour"):
        load_settings(cfg, env={})
    cfg.write_text("[1, 2]")
    with pytest.raises(ValidationError):
        load_settings(cfg, env={})


def test_environment_is_read_by_default(monkeypatch):
    monkeypatch.setenv("PALEOCORE_LOG_LEVEL", "DEBUG")
    assert load_settings().log_level == "DEBUG"
