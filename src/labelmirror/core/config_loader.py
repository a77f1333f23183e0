"""
config_loader.py
- Loads and previews the optional YAML configuration file (config.yml).
- The file is a convenience layer under environment variables and CLI flags.
"""

import os
import yaml
from loguru import logger


def load_yaml(path):
    """Safely load a YAML file and return a parsed dict. Returns {} when absent or unreadable."""
    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"[load_yaml] Failed to load {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"[load_yaml] Ignoring {path}: top level is not a mapping")
        return {}
    return data


def preview_yaml(path, name=None):
    """
    Log a human-readable preview of the YAML file contents for debugging.
    Typically used during startup to verify config presence and structure.
    """
    if not path or not os.path.exists(path):
        logger.debug(f"[config] File not found: {path}")
        return

    try:
        with open(path, "r") as f:
            contents = f.read()
        logger.info(f"\n📄 Loaded {name or path}:\n" + "\n".join(f"│ {line}" for line in contents.strip().splitlines()))
    except OSError as e:
        logger.error(f"[config] Could not preview {path}: {e}")
