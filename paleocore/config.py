from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional
import json
import os

from .ai import DEFAULT_MODEL
from .errors import ValidationError

# env var -> Settings field; the first key found wins for api_key
ENV_VARS = (
    ("PALEOCORE_DB", "db_path"),
    ("GEMINI_API_KEY", "api_key"),
    ("PALEOCORE_GEMINI_API_KEY", "api_key"),
    ("PALEOCORE_MODEL", "model"),
    ("PALEOCORE_USER", "user_id"),
    ("PALEOCORE_LOG_LEVEL", "log_level"),
)


@dataclass
class Settings:
    db_path: str = "paleocore.sqlite3"
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    user_id: str = "local"
    log_level: str = "WARNING"

    @classmethod
    def from_file(cls, path: str | Path) -> "Settings":
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValidationError(f"{path}: expected a JSON object")
        return cls().merged(data, source=str(path))

    def merged(self, values: Mapping[str, Any], source: str = "settings") -> "Settings":
        known = {f.name for f in fields(self)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValidationError(f"{source}: unknown setting(s) {', '.join(unknown)}")
        return replace(self, **{k: v for k, v in values.items() if v is not None})

    def with_env(self, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        values: dict = {}
        for var, name in ENV_VARS:
            v = env.get(var)
            if v and name not in values:
                values[name] = v
        return self.merged(values, source="environment")


def load_settings(
    config_path: Optional[str | Path] = None,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> Settings:
    """File, then environment, then explicit overrides (``None`` is ignored)."""
    s = Settings.from_file(config_path) if config_path else Settings()
    return s.with_env(env).merged(overrides, source="command line")


__all__ = ["Settings", "load_settings", "ENV_VARS"]
