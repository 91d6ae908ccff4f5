"""tapi core - config loading, storage paths, environment files, logging."""

import logging
import os
import re
from pathlib import Path

import yaml
from dotenv import dotenv_values

from tapi.errors import StorageError
from tapi.models import Environment

GLOBAL_DIR = Path.home() / ".tapi"
GLOBAL_CONFIG = GLOBAL_DIR / "config.yaml"

CWD_CONFIG_CANDIDATES = [
    ".tapi.yaml",
    ".tapi.yml",
]

DEFAULT_TIMEOUT = 30
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

DEFAULT_CONFIG = {
    "timeout": DEFAULT_TIMEOUT,
    "default_headers": {},
    "log_file": None,
    "log_level": "INFO",
}

logger = logging.getLogger(__name__)


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
      1. Explicit -c flag (hard, no fallthrough if missing)
      2. .tapi.yaml / .tapi.yml in CWD
      3. ~/.tapi/config.yaml
    """
    if config_file:
        return resolve_path([Path(config_file)])
    return resolve_path([Path(c) for c in CWD_CONFIG_CANDIDATES] + [GLOBAL_CONFIG])


def resolve_value(value: str | None, env: dict[str, str] | None = None) -> str | None:
    """Resolve $VAR and ${VAR} references in a string value.

    Unknown variables are left as written.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    env = env if env is not None else dict(os.environ)

    def _replace(m: re.Match) -> str:
        var_name = m.group(1) or m.group(2)
        return env.get(var_name, m.group(0))

    return re.sub(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)", _replace, value)


def load_config(config_path: str | Path | None) -> dict:
    """Load the YAML config file over the defaults.

    Keys present in the file override the defaults, everything else keeps
    its default. A missing or unparseable file gives the defaults.
    """
    config = {**DEFAULT_CONFIG, "default_headers": {}}
    if config_path is None:
        return config
    path = Path(config_path)
    if not path.exists():
        return config
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return config
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level is not a mapping", path)
        return config

    for key in DEFAULT_CONFIG:
        if data.get(key) is not None:
            config[key] = data[key]

    headers = config["default_headers"]
    if not isinstance(headers, dict):
        headers = {}
    config["default_headers"] = {
        str(k): resolve_value(str(v)) for k, v in headers.items()
    }
    if isinstance(config["log_file"], str):
        config["log_file"] = resolve_value(config["log_file"])
    return config


def timeout_seconds(config: dict) -> int:
    """Configured timeout, falling back to 30s for missing or bad values."""
    try:
        timeout = int(config.get("timeout") or 0)
    except (TypeError, ValueError):
        return DEFAULT_TIMEOUT
    return timeout if timeout > 0 else DEFAULT_TIMEOUT


def load_environment_file(path: str | Path) -> Environment:
    """Load an environment from a .env file or a YAML environment record.

    .env files are named after the file; YAML records carry their own name.
    """
    path = Path(path)
    if not path.is_file():
        raise StorageError(f"environment file {str(path)!r} not found")
    if path.name.startswith(".env") or path.suffix == ".env":
        values = dotenv_values(str(path))
        return Environment(
            name=path.stem if path.suffix == ".env" else path.name,
            variables={k: v for k, v in values.items() if v is not None},
        )
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise StorageError(f"failed to read environment file {str(path)!r}: {e}") from e
    env = Environment.from_dict(data)
    if not env.name:
        env.name = path.stem
    return env


def setup_logging(config: dict) -> Path | None:
    """Send the tapi loggers to a file.

    Defaults to ~/.tapi/tapi.log. Returns the log path, or None when the
    file could not be opened (logging then stays unconfigured).
    """
    log_path = Path(config.get("log_file") or GLOBAL_DIR / "tapi.log").expanduser()
    level = logging.getLevelName(str(config.get("log_level", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger("tapi")
    root.setLevel(level)
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_path.resolve():
            return log_path

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to init file logging: %s", e)
        return None
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    logger.debug("Logging to %s", log_path)
    return log_path
