"""Declarative configuration: policy schemas, inheritance resolver and loader."""

from cachekv.config.schemas import (
    GroupDefinition,
    KeyDefinition,
    PolicyConfig,
    PolicyOverride,
    ResolvedConfig,
    merge_policies,
)
from cachekv.config.resolver import ConfigResolver
from cachekv.config.loader import load_config, load_raw_config

__all__ = [
    "GroupDefinition",
    "KeyDefinition",
    "PolicyConfig",
    "PolicyOverride",
    "ResolvedConfig",
    "merge_policies",
    "ConfigResolver",
    "load_config",
    "load_raw_config",
]
