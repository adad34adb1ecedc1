"""reqpick core - config loading and path resolution."""

import os
import re
from pathlib import Path

import yaml
from dotenv import dotenv_values

from reqpick.errors import ConfigError

GLOBAL_DIR = Path.home() / ".reqpick"
GLOBAL_CONFIG = GLOBAL_DIR / "config.yaml"

CWD_CONFIG_CANDIDATES = [
    ".reqpick.yaml",
    ".reqpick.yml",
    "reqpick.yaml",
    "reqpick.yml",
]

DEFAULT_MAX_HISTORY = 1000

# Settings holding filesystem paths; these get $VAR and ~ expansion
PATH_SETTINGS = ("definitions_dir", "environments_dir", "history_file", "log_file")

TIMEOUT_SETTINGS = ("timeout", "connect_timeout", "read_timeout")

KNOWN_SETTINGS = set(PATH_SETTINGS) | set(TIMEOUT_SETTINGS) | {
    "max_history_items",
    "env_file",
    "log_level",
    "colors",
}


def default_config() -> dict:
    return {
        "definitions_dir": GLOBAL_DIR / "definitions",
        "environments_dir": GLOBAL_DIR / "environments",
        "history_file": Path.home() / ".reqpick_history.csv",
        "max_history_items": DEFAULT_MAX_HISTORY,
        "timeout": None,
        "connect_timeout": None,
        "read_timeout": None,
        "log_file": None,
        "log_level": "INFO",
        "colors": {},
        "_config_dir": None,
    }


def resolve_path(
    candidates: list[Path],
    default: Path | None = None,
) -> Path | None:
    """Return the first existing path from candidates, else default."""
    for p in candidates:
        if p.exists():
            return p.resolve()
    return default


def resolve_config_path(config_file: str | None) -> Path | None:
    """Find the config file to use.

    Resolution order:
      1. Explicit -c flag (must exist)
      2. .reqpick.yaml (variants) in CWD
      3. ~/.reqpick/config.yaml
    """
    if config_file:
        found = resolve_path([Path(config_file).expanduser()])
        if found is None:
            raise ConfigError(f"Config file not found: {config_file}")
        return found
    return resolve_path([Path(c) for c in CWD_CONFIG_CANDIDATES] + [GLOBAL_CONFIG])


def load_env(env_file: str | None, base_dir: str | Path = ".") -> dict[str, str]:
    """Load a .env file merged over os.environ (.env values win)."""
    env = dict(os.environ)
    if env_file:
        dotenv_path = Path(base_dir) / Path(env_file).expanduser()
        if dotenv_path.exists():
            dotenv_vars = dotenv_values(str(dotenv_path))
            env.update({k: v for k, v in dotenv_vars.items() if v is not None})
    return env


def resolve_value(value: str | None, env: dict[str, str]) -> str | None:
    """Resolve $VAR and ${VAR} references; unknown names are left as is."""
    if value is None:
        return None
    if not isinstance(value, str):
        return value

    def _replace(m: re.Match) -> str:
        var_name = m.group(1) or m.group(2)
        return env.get(var_name, m.group(0))

    return re.sub(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)", _replace, value)


def _resolve_setting_path(value, env: dict[str, str], config_dir: Path | None) -> Path:
    p = Path(resolve_value(str(value), env)).expanduser()
    if not p.is_absolute() and config_dir:
        p = config_dir / p
    return p


def _optional_number(data: dict, key: str, *, integer: bool = False):
    value = data.get(key)
    if value is None:
        return None
    kind = int if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, kind) or value < 0:
        expected = "a non-negative integer" if integer else "a non-negative number"
        raise ConfigError(f"'{key}' must be {expected}, got {value!r}")
    return value


def load_config(config_path: str | Path | None) -> dict:
    """Load the YAML config, filling in defaults for anything missing.

    Path settings may use $VAR references (from os.environ and the
    optional env_file) and ~; relative paths resolve against the
    config file's directory. Stores '_config_dir' in the result.
    """
    config = default_config()
    if config_path is None:
        return config
    path = Path(config_path)
    if not path.exists():
        return config

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not load config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    config_dir = path.resolve().parent
    config["_config_dir"] = config_dir
    env = load_env(data.get("env_file"), config_dir)

    for key in PATH_SETTINGS:
        if data.get(key):
            config[key] = _resolve_setting_path(data[key], env, config_dir)

    for key in TIMEOUT_SETTINGS:
        config[key] = _optional_number(data, key)

    if "max_history_items" in data:
        config["max_history_items"] = _optional_number(data, "max_history_items", integer=True)

    if data.get("log_level"):
        config["log_level"] = str(data["log_level"]).upper()

    colors = data.get("colors") or {}
    if not isinstance(colors, dict):
        raise ConfigError("'colors' must be a mapping of element name to style")
    config["colors"] = colors

    config["_unknown"] = sorted(set(data) - KNOWN_SETTINGS)
    return config
