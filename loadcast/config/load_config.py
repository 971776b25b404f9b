"""
Configuration and logging bootstrap for loadcast.

Settings live in a sectioned YAML file (config/config.yaml). String values
may reference the environment as ${VAR} or ${VAR:-default}; a .env file in
the working directory is read first so it can supply those variables.
"""

import os
import re
import logging
import logging.handlers
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv


load_dotenv()

CONFIG_ENV_VAR = "LOADCAST_CONFIG"

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_PLACEHOLDER = re.compile(r"\$\{(?P<name>\w+)(?::-(?P<default>[^}]*))?\}")


def _resolve_config_path(config_path: Optional[str]) -> Path:
    """
    Work out which config.yaml to read.

    Order: explicit argument, LOADCAST_CONFIG environment variable,
    config/config.yaml at the project root, config/config.yaml in the
    current working directory.
    """
    if config_path is not None:
        return Path(config_path)

    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)

    candidate = Path(__file__).resolve().parents[2] / "config" / "config.yaml"
    if candidate.exists():
        return candidate

    return Path.cwd() / "config" / "config.yaml"


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Read the YAML configuration and expand environment placeholders.

    Args:
        config_path: Path to a config file. If None, it is resolved from
            LOADCAST_CONFIG or the default locations.

    Returns:
        Configuration dictionary (empty for an empty file)

    Raises:
        FileNotFoundError: If the resolved file does not exist
        yaml.YAMLError: If the file is not valid YAML
    """
    path = _resolve_config_path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, 'r') as f:
        raw = yaml.safe_load(f) or {}

    return _substitute_env_vars(raw)


def _expand_placeholder(match: 're.Match[str]') -> str:
    value = os.getenv(match.group('name'))
    if value is not None:
        return value
    if match.group('default') is not None:
        return match.group('default')
    return match.group(0)  # unresolved placeholders stay visible


def _substitute_env_vars(config: Any) -> Any:
    """
    Expand ${VAR} and ${VAR:-default} in every string of a nested config.

    Placeholders may appear anywhere inside a string. A variable that is
    unset and has no default leaves its placeholder untouched.
    """
    if isinstance(config, dict):
        return {k: _substitute_env_vars(v) for k, v in config.items()}
    if isinstance(config, list):
        return [_substitute_env_vars(item) for item in config]
    if isinstance(config, str):
        return _PLACEHOLDER.sub(_expand_placeholder, config)
    return config


def _resolve_log_level(name: Any) -> int:
    level = logging.getLevelName(str(name).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name!r}")
    return level


def _build_handlers(log_config: Dict[str, Any]) -> List[logging.Handler]:
    """Console handler, plus a rotating file handler when log_file is set."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    log_file = log_config.get("log_file", "logs/loadcast.log")
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        rotation = log_config.get("rotation", {})
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=rotation.get("max_bytes", 10 * 1024 * 1024),
            backupCount=rotation.get("backup_count", 5)
        ))

    return handlers


def setup_logging(config: Optional[Dict[str, Any]] = None) -> None:
    """
    Configure the root logger from the 'logging' config section.

    The LOG_LEVEL environment variable overrides the configured level.
    Existing root handlers are replaced.

    Args:
        config: Configuration dictionary. If None, loads from default location.

    Raises:
        ValueError: If the log level is not a known logging level name
    """
    if config is None:
        config = load_config()

    log_config = config.get("logging", {})
    level = _resolve_log_level(os.getenv("LOG_LEVEL") or log_config.get("level", "INFO"))
    formatter = logging.Formatter(
        log_config.get("format", DEFAULT_LOG_FORMAT),
        datefmt=log_config.get("date_format", DEFAULT_DATE_FORMAT)
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    for handler in _build_handlers(log_config):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    root_logger.info(f"Logging initialized at {logging.getLevelName(level)}")


_config_instance: Optional[Dict[str, Any]] = None


def get_config() -> Dict[str, Any]:
    """Process-wide configuration, loaded (and logging set up) on first use."""
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
        setup_logging(_config_instance)
    return _config_instance


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config_instance
    _config_instance = None
