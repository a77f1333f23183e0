"""
config.py
- Defines global configuration values derived from environment variables.
- Builds the MirrorSettings used by the runner: CLI flags > environment > config.yml > defaults.
- Configures loguru for every entrypoint.
"""

import os
import sys
from dataclasses import dataclass

from loguru import logger

from labelmirror.core.config_loader import load_yaml
from labelmirror.core.constants import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_DRAIN_ATTEMPTS,
    DEFAULT_HEALTH_PORT,
    DEFAULT_LABEL_PREFIX,
    DEFAULT_RESUBSCRIBE_ATTEMPTS,
    DEFAULT_STORE_PATH,
    DEFAULT_WATCH_TIMEOUT,
)
from labelmirror.core.errors import ConfigFault
from labelmirror.core.models import BootstrapPolicy, PersistPolicy

# --- Runtime Behavior Flags ---
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# --- Logging ---
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "false").lower() == "true"
LOG_FILE = os.getenv("LOG_FILE", "/var/log/label-mirror/label-mirror.log")
LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# --- Config Paths ---
CONFIG_FILE = os.getenv("CONFIG_FILE", DEFAULT_CONFIG_FILE)

SOURCES = ("kubernetes", "swarm")
STORES = ("configmap", "file")

TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class MirrorSettings:
    namespace: str
    name: str
    prefix: str = DEFAULT_LABEL_PREFIX
    source: str = "kubernetes"
    store: str = "configmap"
    store_path: str = DEFAULT_STORE_PATH
    kubeconfig: str = None
    persist_policy: PersistPolicy = PersistPolicy.DRAIN
    bootstrap_policy: BootstrapPolicy = BootstrapPolicy.REBUILD
    resubscribe_attempts: int = DEFAULT_RESUBSCRIBE_ATTEMPTS
    drain_attempts: int = DEFAULT_DRAIN_ATTEMPTS
    watch_timeout: int = DEFAULT_WATCH_TIMEOUT
    run_once: bool = False
    dry_run: bool = False
    debug: bool = False
    health_port: int = DEFAULT_HEALTH_PORT


# setting name -> environment variable
ENV_KEYS = {
    "namespace": "MIRROR_NAMESPACE",
    "name": "MIRROR_NAME",
    "prefix": "LABEL_PREFIX",
    "source": "NODE_SOURCE",
    "store": "DOCUMENT_STORE",
    "store_path": "STORE_PATH",
    "kubeconfig": "KUBECONFIG",
    "persist_policy": "PERSIST_POLICY",
    "bootstrap_policy": "BOOTSTRAP_POLICY",
    "resubscribe_attempts": "RESUBSCRIBE_ATTEMPTS",
    "drain_attempts": "DRAIN_ATTEMPTS",
    "watch_timeout": "WATCH_TIMEOUT",
    "run_once": "RUN_ONCE",
    "dry_run": "DRY_RUN",
    "debug": "DEBUG",
    "health_port": "HEALTH_PORT",
}

INT_KEYS = {"resubscribe_attempts", "drain_attempts", "watch_timeout", "health_port"}
BOOL_KEYS = {"run_once", "dry_run", "debug"}


def _coerce(key, value):
    if key in BOOL_KEYS:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in TRUTHY
    if key in INT_KEYS:
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ConfigFault(f"{key} must be an integer, got {value!r}")
        if number < 0 or (key != "health_port" and number == 0):
            raise ConfigFault(f"{key} must be positive, got {number}")
        return number
    if key == "persist_policy":
        try:
            return PersistPolicy(str(value).lower())
        except ValueError:
            raise ConfigFault(f"Unknown persist policy {value!r} (expected drain or write-through)")
    if key == "bootstrap_policy":
        try:
            return BootstrapPolicy(str(value).lower())
        except ValueError:
            raise ConfigFault(f"Unknown bootstrap policy {value!r} (expected rebuild or adopt)")
    return str(value).strip()


def resolve_config_file(config_file=None, env=None):
    """Path of the YAML config actually used: explicit argument, then CONFIG_FILE, then the default."""
    env = os.environ if env is None else env
    return config_file or env.get("CONFIG_FILE", CONFIG_FILE)


def load_settings(overrides=None, env=None, config_file=None):
    """
    Merge all configuration layers into a validated MirrorSettings.

    Args:
        overrides (dict): Values from CLI flags; None entries are ignored.
        env (Mapping): Environment to read from (defaults to os.environ).
        config_file (str): YAML file whose `mirror:` section supplies defaults.

    Returns:
        MirrorSettings

    Raises:
        ConfigFault: When the namespace or document name is missing, or a value is invalid.
    """
    env = os.environ if env is None else env
    config_file = resolve_config_file(config_file, env)

    merged = {}
    file_config = load_yaml(config_file).get("mirror", {}) or {}
    for key in ENV_KEYS:
        if file_config.get(key) is not None:
            merged[key] = file_config[key]
    for key, var in ENV_KEYS.items():
        if env.get(var) not in (None, ""):
            merged[key] = env[var]
    for key, value in (overrides or {}).items():
        if key in ENV_KEYS and value is not None:
            merged[key] = value

    values = {key: _coerce(key, value) for key, value in merged.items()}

    if not values.get("namespace"):
        raise ConfigFault("Failed to determine namespace where the mirror document should live")
    if not values.get("name"):
        raise ConfigFault("Failed to determine the mirror document name")
    if "source" in values and values["source"] not in SOURCES:
        raise ConfigFault(f"Unknown node source {values['source']!r} (expected one of {', '.join(SOURCES)})")
    if "store" in values and values["store"] not in STORES:
        raise ConfigFault(f"Unknown document store {values['store']!r} (expected one of {', '.join(STORES)})")

    return MirrorSettings(**values)


def configure_logging(debug=DEBUG, log_to_file=LOG_TO_FILE):
    """Replace loguru's default sink with the project format."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if debug else "INFO",
        colorize=True,
        format=LOG_FORMAT,
    )
    if log_to_file:
        logger.add(LOG_FILE, level="DEBUG" if debug else "INFO", rotation="10 MB", retention=5, format=LOG_FORMAT)
