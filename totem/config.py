import json
import os
from dataclasses import dataclass, fields
from pathlib import Path

DEFAULT_CONFIG_FILE = "totem_config.json"

_ENV_PREFIX = "TOTEM_"
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class Settings:
    difficulty: int = 2
    chain_path: str = "chain.json"
    host: str = "0.0.0.0"
    port: int = 8000
    auto_mine: bool = True
    log_level: str = "INFO"
    api_url: str = "http://127.0.0.1:8000"
    wallet_path: str = "wallets.json"

    def __post_init__(self):
        if self.difficulty < 0:
            raise ValueError("difficulty must be >= 0")


def _coerce(name, kind, raw):
    if kind is bool:
        if isinstance(raw, bool):
            return raw
        value = str(raw).strip().lower()
        if value in _TRUE:
            return True
        if value in _FALSE:
            return False
        raise ValueError(f"{name} must be a boolean, got {raw!r}")
    if kind is int:
        if isinstance(raw, bool):
            raise ValueError(f"{name} must be an integer, got {raw!r}")
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    return str(raw)


def load_settings(config_file=None, environ=None) -> Settings:
    """Defaults, then the JSON config file (if any), then TOTEM_* env vars."""
    environ = os.environ if environ is None else environ
    config_file = config_file or environ.get("TOTEM_CONFIG") or DEFAULT_CONFIG_FILE

    values = {}
    path = Path(config_file)
    if path.exists():
        with open(path, encoding="utf-8") as f:
            values.update(json.load(f))

    types = {"difficulty": int, "port": int, "auto_mine": bool}
    for field in fields(Settings):
        env_value = environ.get(_ENV_PREFIX + field.name.upper())
        if env_value is not None:
            values[field.name] = env_value

    known = {field.name for field in fields(Settings)}
    kwargs = {
        name: _coerce(name, types.get(name, str), raw)
        for name, raw in values.items()
        if name in known
    }
    return Settings(**kwargs)
