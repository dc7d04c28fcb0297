"""YAML configuration loader.

Reads the main configuration file and, when a ``kvconf/`` directory sits
next to it, one extra file per group (``kvconf/<group>.yaml``).
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from cachekv.config.resolver import ConfigResolver
from cachekv.config.schemas import ResolvedConfig
from cachekv.core.config import Settings
from cachekv.core.errors import ConfigError
from cachekv.core.logging import get_logger

logger = get_logger(__name__)

GROUP_CONFIG_DIR = "kvconf"
YAML_SUFFIXES = (".yaml", ".yml")


def _read_yaml(path: Path) -> Any:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}", path=str(path))
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file has a syntax error: {path}. Error: {e}", path=str(path)) from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {path}. Error: {e}", path=str(path)) from e


def load_raw_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Read the configuration tree, merging per-group files from ``kvconf/``.

    Args:
        config_path: Path to the main YAML file.

    Returns:
        The nested configuration mapping.

    Raises:
        ConfigError: If a file is missing, unreadable or not a mapping.
    """
    path = Path(config_path)
    raw = _read_yaml(path)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(
            f"Config file must contain a mapping, got {type(raw).__name__}: {path}",
            path=str(path),
        )

    group_dir = path.parent / GROUP_CONFIG_DIR
    if not group_dir.is_dir():
        return raw

    group_files = sorted(p for p in group_dir.iterdir() if p.suffix in YAML_SUFFIXES)
    if not group_files:
        return raw

    groups = dict(raw.get("groups") or {})
    for group_file in group_files:
        group_block = _read_yaml(group_file)
        if not isinstance(group_block, dict):
            raise ConfigError(
                f"Group config file must contain a mapping, got {type(group_block).__name__}: {group_file}",
                path=str(group_file),
            )
        groups[group_file.stem] = group_block
        logger.debug(f"Loaded group '{group_file.stem}' from {group_file}")

    logger.info(f"Loaded {len(group_files)} group files from {group_dir}")
    return {**raw, "groups": groups}


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    settings: Optional[Settings] = None,
) -> ResolvedConfig:
    """Load and resolve the configuration file.

    Args:
        config_path: Path to the YAML file. Defaults to ``settings.config_path``.
        settings: Process settings; a fresh ``Settings()`` when omitted.
    """
    settings = settings or Settings()
    config_path = config_path or settings.config_path
    if not config_path:
        raise ConfigError("No configuration path given and CACHEKV_CONFIG_PATH is not set")

    raw = load_raw_config(config_path)
    return ConfigResolver(settings).resolve(raw)
