"""Configuration schemas for key templates and cache policies."""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

PLACEHOLDER_PATTERN = re.compile(r"\{([^{}]+)\}")


class PolicyConfig(BaseModel):
    """Fully merged caching behaviour for one key. Immutable once resolved."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    ttl: int = Field(default=3600, ge=0, description="Cache TTL in seconds")
    enable_null_cache: bool = Field(default=True, description="Cache the null sentinel for empty results")
    null_cache_ttl: int = Field(default=300, ge=0, description="TTL for the null sentinel")
    ttl_random_range: int = Field(default=0, ge=0, description="Upper bound of random TTL jitter")
    enable_stats: bool = Field(default=True, description="Record hit/miss statistics")
    hot_key_auto_renewal: bool = Field(default=True, description="Extend TTL of frequently read keys")
    hot_key_threshold: int = Field(default=100, ge=0, description="Access count that makes a key hot")
    hot_key_extend_ttl: int = Field(default=7200, ge=0, description="TTL applied to a hot key")
    hot_key_max_ttl: int = Field(default=86400, ge=0, description="Ceiling for hot key renewal")
    tag_prefix: str = Field(default="tag:", description="Prefix for tag index keys")


class PolicyOverride(BaseModel):
    """A partial policy block from the global, group or key level."""

    model_config = ConfigDict(extra="ignore")

    ttl: Optional[int] = Field(default=None, ge=0)
    enable_null_cache: Optional[bool] = None
    null_cache_ttl: Optional[int] = Field(default=None, ge=0)
    ttl_random_range: Optional[int] = Field(default=None, ge=0)
    enable_stats: Optional[bool] = None
    hot_key_auto_renewal: Optional[bool] = None
    hot_key_threshold: Optional[int] = Field(default=None, ge=0)
    hot_key_extend_ttl: Optional[int] = Field(default=None, ge=0)
    hot_key_max_ttl: Optional[int] = Field(default=None, ge=0)
    tag_prefix: Optional[str] = None

    def explicit_fields(self) -> Dict[str, object]:
        """Fields this layer sets explicitly."""
        return {
            name: getattr(self, name)
            for name in PolicyConfig.model_fields
            if getattr(self, name) is not None
        }


def merge_policies(base: PolicyConfig, *layers: Optional[PolicyOverride]) -> PolicyConfig:
    """Overlay partial policies on ``base``, later layers winning field by field."""
    values = {name: getattr(base, name) for name in PolicyConfig.model_fields}
    for layer in layers:
        if layer is not None:
            values.update(layer.explicit_fields())
    return PolicyConfig(**values)


@dataclass(frozen=True)
class KeyDefinition:
    """One named key template inside a group.

    ``policy`` is ``None`` for unmanaged keys: they can be rendered but get
    no policy-driven cache behaviour.
    """

    group_name: str
    key_name: str
    template: str
    description: Optional[str] = None
    policy: Optional[PolicyConfig] = None
    placeholders: Tuple[str, ...] = ()

    @property
    def full_name(self) -> str:
        return f"{self.group_name}.{self.key_name}"

    @property
    def managed(self) -> bool:
        return self.policy is not None


@dataclass(frozen=True)
class GroupDefinition:
    """A named group of key templates sharing a storage prefix and version."""

    name: str
    storage_prefix: str
    version: str
    description: Optional[str] = None
    policy: Optional[PolicyOverride] = None
    keys: Dict[str, KeyDefinition] = field(default_factory=dict)

    def get_key(self, key_name: str) -> Optional[KeyDefinition]:
        return self.keys.get(key_name)


@dataclass(frozen=True)
class ResolvedConfig:
    """The whole configuration tree after validation and policy merging."""

    global_policy: PolicyConfig
    groups: Dict[str, GroupDefinition]
    app_prefix: str = "app"
    separator: str = ":"
    stats_prefix: str = "cachekv:stats:"
    stats_ttl: int = 604800

    def get_group(self, group_name: str) -> Optional[GroupDefinition]:
        return self.groups.get(group_name)


def extract_placeholders(template: str) -> Tuple[str, ...]:
    """Placeholder names in order of first appearance."""
    seen = []
    for name in PLACEHOLDER_PATTERN.findall(template):
        if name not in seen:
            seen.append(name)
    return tuple(seen)
