"""Configuration inheritance resolver.

Turns the declarative configuration tree (global defaults, named groups and
named keys within groups) into immutable definitions. Policies are merged
once, here, and cached on each ``KeyDefinition``:

    effective = global <- group <- key

where each layer overrides only the fields it sets explicitly.
"""

from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from cachekv.config.schemas import (
    PLACEHOLDER_PATTERN,
    GroupDefinition,
    KeyDefinition,
    PolicyConfig,
    PolicyOverride,
    ResolvedConfig,
    extract_placeholders,
    merge_policies,
)
from cachekv.core.config import Settings
from cachekv.core.errors import ConfigError
from cachekv.core.logging import get_logger

logger = get_logger(__name__)

KV_SECTION = "kv"
OTHER_SECTION = "other"

# Glob metacharacters; fixed key segments are used verbatim in scan patterns.
GLOB_CHARS = frozenset("*?[]\\")


class ConfigResolver:
    """Validates a raw configuration tree and merges per-key policies."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize resolver.

        Args:
            settings: Supplies defaults for app prefix, separator and stats
                storage when the tree does not set them.
        """
        self.settings = settings or Settings()

    def resolve(self, raw: Any) -> ResolvedConfig:
        """Build a ``ResolvedConfig`` from a nested mapping.

        Raises:
            ConfigError: If a required field is missing or malformed.
        """
        if not isinstance(raw, Mapping):
            raise ConfigError(f"Configuration must be a mapping, got {type(raw).__name__}")

        app_prefix = self._require_segment(raw.get("app_prefix", self.settings.app_prefix), "app_prefix")
        separator = self._require_segment(
            raw.get("separator", self.settings.separator), "separator", allow_empty=False
        )

        global_block = self._mapping(raw.get("global"), "global")
        global_policy = merge_policies(PolicyConfig(), self._parse_policy(global_block, "global"))

        stats_prefix = self._require_segment(
            global_block.get("stats_prefix", self.settings.stats_prefix),
            "global.stats_prefix",
            allow_empty=False,
        )
        stats_ttl = global_block.get("stats_ttl", self.settings.stats_ttl)
        if not isinstance(stats_ttl, int) or isinstance(stats_ttl, bool) or stats_ttl < 0:
            raise ConfigError("'stats_ttl' must be a non-negative integer", path="global.stats_ttl")

        groups: Dict[str, GroupDefinition] = {}
        for group_name, group_block in self._mapping(raw.get("groups"), "groups").items():
            groups[group_name] = self._resolve_group(group_name, group_block, global_policy)

        key_count = sum(len(group.keys) for group in groups.values())
        logger.info(f"Resolved cache configuration: {len(groups)} groups, {key_count} keys")

        return ResolvedConfig(
            global_policy=global_policy,
            groups=groups,
            app_prefix=app_prefix,
            separator=separator,
            stats_prefix=stats_prefix,
            stats_ttl=stats_ttl,
        )

    def _resolve_group(
        self,
        group_name: Any,
        block: Any,
        global_policy: PolicyConfig,
    ) -> GroupDefinition:
        path = f"groups.{group_name}"
        if not isinstance(group_name, str) or not group_name:
            raise ConfigError("Group names must be non-empty strings", path=path)
        if "." in group_name:
            raise ConfigError(f"Group name '{group_name}' must not contain '.'", path=path)

        block = self._mapping(block, path)
        for required in ("prefix", "version"):
            if block.get(required) is None:
                raise ConfigError(
                    f"Missing required '{required}' in group '{group_name}'",
                    path=f"{path}.{required}",
                )
            self._require_segment(str(block[required]), f"{path}.{required}", allow_empty=False)

        group_policy = self._parse_policy(block.get("cache"), f"{path}.cache")

        keys: Dict[str, KeyDefinition] = {}
        keys_block = self._mapping(block.get("keys"), f"{path}.keys")
        if self._is_sectioned(keys_block):
            sections = (
                (KV_SECTION, True),
                (OTHER_SECTION, False),
            )
            for section, managed in sections:
                section_path = f"{path}.keys.{section}"
                for key_name, key_block in self._mapping(keys_block.get(section), section_path).items():
                    keys[key_name] = self._resolve_key(
                        group_name, key_name, key_block, f"{section_path}.{key_name}",
                        global_policy, group_policy, managed=managed,
                    )
        else:
            for key_name, key_block in keys_block.items():
                keys[key_name] = self._resolve_key(
                    group_name, key_name, key_block, f"{path}.keys.{key_name}",
                    global_policy, group_policy, managed=None,
                )

        return GroupDefinition(
            name=group_name,
            storage_prefix=str(block["prefix"]),
            version=str(block["version"]),
            description=block.get("description"),
            policy=group_policy,
            keys=keys,
        )

    def _resolve_key(
        self,
        group_name: str,
        key_name: Any,
        block: Any,
        path: str,
        global_policy: PolicyConfig,
        group_policy: Optional[PolicyOverride],
        managed: Optional[bool],
    ) -> KeyDefinition:
        if not isinstance(key_name, str) or not key_name:
            raise ConfigError("Key names must be non-empty strings", path=path)

        block = self._mapping(block, path)
        template = block.get("template")
        if template is None:
            raise ConfigError(
                f"Missing required 'template' for key '{key_name}' in group '{group_name}'",
                path=f"{path}.template",
            )
        if not isinstance(template, str) or not template:
            raise ConfigError("'template' must be a non-empty string", path=f"{path}.template")
        self._require_segment(PLACEHOLDER_PATTERN.sub("", template), f"{path}.template")

        cache_block = block.get("cache")
        if managed is False:
            policy = None
        elif cache_block is None and managed is None:
            # No policy block: the key is unmanaged.
            policy = None
        else:
            key_policy = self._parse_policy(cache_block, f"{path}.cache")
            policy = merge_policies(global_policy, group_policy, key_policy)

        return KeyDefinition(
            group_name=group_name,
            key_name=key_name,
            template=template,
            description=block.get("description"),
            policy=policy,
            placeholders=extract_placeholders(template),
        )

    @staticmethod
    def _is_sectioned(keys_block: Mapping[str, Any]) -> bool:
        """True when keys are split into ``kv``/``other`` sections."""
        if not keys_block:
            return False
        for name, value in keys_block.items():
            if name not in (KV_SECTION, OTHER_SECTION):
                return False
            if isinstance(value, Mapping) and "template" in value:
                return False
        return True

    @staticmethod
    def _parse_policy(block: Any, path: str) -> Optional[PolicyOverride]:
        if block is None:
            return None
        if not isinstance(block, Mapping):
            raise ConfigError(f"Policy block must be a mapping, got {type(block).__name__}", path=path)
        try:
            return PolicyOverride.model_validate(dict(block))
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ConfigError(f"Invalid policy values ({fields}) at '{path}'", path=path) from e

    @staticmethod
    def _mapping(value: Any, path: str) -> Mapping[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ConfigError(f"Expected a mapping, got {type(value).__name__}", path=path)
        return value

    @staticmethod
    def _require_str(value: Any, path: str) -> str:
        if not isinstance(value, str):
            raise ConfigError(f"'{path}' must be a string", path=path)
        return value

    @classmethod
    def _require_segment(cls, value: Any, path: str, allow_empty: bool = True) -> str:
        """A string usable as a fixed part of storage keys and scan patterns."""
        value = cls._require_str(value, path)
        if not value and not allow_empty:
            raise ConfigError(f"'{path}' must not be empty", path=path)
        bad = sorted(GLOB_CHARS.intersection(value))
        if bad:
            raise ConfigError(
                f"'{path}' must not contain glob characters ({''.join(bad)})", path=path
            )
        return value
