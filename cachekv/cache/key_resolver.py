"""Cache key resolution.

Renders ``group.key`` templates into fully-qualified storage keys:

    {app_prefix}{sep}{group_prefix}{sep}{group_version}{sep}{rendered_template}

Examples (separator ":"):
    app:usr:v1:profile:123
    app:usr:v1:avatar:123:large
    app:goods:v2:search:5d41402abc4b2a76b9719d911017c592
"""

import dataclasses
import hashlib
import json
import re
from collections.abc import Mapping as MappingABC
from enum import Enum
from functools import cached_property, lru_cache
from typing import Any, Dict, Iterable, Mapping, Optional

from pydantic import BaseModel

from cachekv.cache.key_registry import KeyTemplateRegistry
from cachekv.config.schemas import (
    PLACEHOLDER_PATTERN,
    GroupDefinition,
    KeyDefinition,
    PolicyConfig,
)
from cachekv.core.errors import MissingParameterError

WILDCARD = "*"
SCALAR_TYPES = (str, int, float)
FRAGMENT_HASH_LENGTH = 8


def _canonicalize(value: Any) -> Any:
    """Reduce a composite value to JSON-compatible data with stable ordering."""
    if value is None or isinstance(value, (bool,) + SCALAR_TYPES):
        return value
    if isinstance(value, Enum):
        return _canonicalize(value.value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, BaseModel):
        return _canonicalize(value.model_dump())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _canonicalize(dataclasses.asdict(value))
    if isinstance(value, MappingABC):
        return {str(k): _canonicalize(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        items = [_canonicalize(v) for v in value]
        return sorted(items, key=lambda item: json.dumps(item, sort_keys=True))
    if isinstance(value, (list, tuple)):
        return [_canonicalize(v) for v in value]
    if hasattr(value, "__dict__"):
        return {"__type__": type(value).__qualname__, **_canonicalize(vars(value))}
    return str(value)


def hash_composite(value: Any) -> str:
    """Deterministic hash of a composite parameter value."""
    canonical = json.dumps(_canonicalize(value), sort_keys=True, separators=(",", ":"))
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


def _is_composite(value: Any) -> bool:
    if isinstance(value, (MappingABC, list, tuple, set, frozenset, BaseModel)):
        return True
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return True
    return hasattr(value, "__dict__")


def coerce_param(value: Any) -> str:
    """Render one parameter value as a key fragment (before sanitizing).

    Composites become a hash; any other scalar (UUID, Decimal, datetime...)
    uses ``str()``.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, Enum):
        return coerce_param(value.value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, SCALAR_TYPES) or not _is_composite(value):
        return str(value)
    return hash_composite(value)


class ResolvedCacheKey:
    """A template plus parameters, bound to its key definition.

    Created per request. The storage string is rendered on first access and
    defines equality and hashing.
    """

    def __init__(
        self,
        group: GroupDefinition,
        definition: KeyDefinition,
        params: Mapping[str, Any],
        app_prefix: str,
        separator: str,
    ):
        self.group = group
        self.definition = definition
        self.params = dict(params)
        self._app_prefix = app_prefix
        self._separator = separator

    @property
    def group_name(self) -> str:
        return self.definition.group_name

    @property
    def key_name(self) -> str:
        return self.definition.key_name

    @property
    def template_name(self) -> str:
        return self.definition.full_name

    @property
    def policy(self) -> Optional[PolicyConfig]:
        return self.definition.policy

    @property
    def is_managed(self) -> bool:
        return self.definition.policy is not None

    @property
    def stats_enabled(self) -> bool:
        policy = self.definition.policy
        return policy is not None and policy.enable_stats

    @cached_property
    def rendered(self) -> str:
        body = render_template(self.definition.template, self.params, self._separator, self.template_name)
        return self._separator.join(
            (self._app_prefix, self.group.storage_prefix, self.group.version, body)
        )

    def __str__(self) -> str:
        return self.rendered

    def __repr__(self) -> str:
        return f"ResolvedCacheKey({self.template_name!r}, {self.rendered!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResolvedCacheKey):
            return NotImplemented
        return self.rendered == other.rendered

    def __hash__(self) -> int:
        return hash(self.rendered)

    def to_dict(self) -> Dict[str, Any]:
        """Debug view of the key and its policy."""
        return {
            "group_name": self.group_name,
            "key_name": self.key_name,
            "params": self.params,
            "full_key": self.rendered,
            "template": self.definition.template,
            "policy": self.policy.model_dump() if self.policy else None,
        }


@lru_cache(maxsize=None)
def _unsafe_chars(separator: str) -> "re.Pattern[str]":
    # \w covers Unicode letters and digits as well as ASCII.
    return re.compile(r"[^\w\-" + re.escape(separator) + r"]")


def render_fragment(value: Any, separator: str) -> str:
    """Coerce a parameter and make it safe for use inside a key.

    Characters outside letters, digits, ``_``, ``-`` and the separator become
    ``_``. When that changes the fragment, a short hash of the original text
    is appended so distinct values keep distinct keys.
    """
    text = coerce_param(value)
    safe = _unsafe_chars(separator).sub("_", text)
    if safe == text:
        return safe
    digest = hashlib.md5(text.encode("utf-8")).hexdigest()[:FRAGMENT_HASH_LENGTH]
    return f"{safe}_{digest}"


def render_template(
    template: str,
    params: Mapping[str, Any],
    separator: str,
    template_name: Optional[str] = None,
) -> str:
    """Substitute every ``{name}`` placeholder.

    Raises:
        MissingParameterError: If a placeholder has no entry in ``params``.
    """
    def replace(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name not in params:
            raise MissingParameterError(name, template_name)
        return render_fragment(params[name], separator)

    return PLACEHOLDER_PATTERN.sub(replace, template)


class CacheKeyResolver:
    """Turns ``group.key`` plus parameters into ``ResolvedCacheKey`` objects.

    Rendering is pure: the same template and parameters always produce the
    same string. Parameters the template does not use are ignored.

    Usage:
        resolver = CacheKeyResolver(registry)
        key = resolver.render("user.profile", {"id": 123})
        str(key)  # "app:usr:v1:profile:123"
    """

    def __init__(self, registry: KeyTemplateRegistry):
        self.registry = registry

    def render(self, template: str, params: Optional[Mapping[str, Any]] = None) -> ResolvedCacheKey:
        """Resolve one key.

        Raises:
            UnknownTemplateError: Unknown group or key.
            MissingParameterError: A placeholder has no value.
        """
        params = params or {}
        group, definition = self.registry.lookup(template)
        for name in definition.placeholders:
            if name not in params:
                raise MissingParameterError(name, template)
        return ResolvedCacheKey(
            group,
            definition,
            params,
            self.registry.app_prefix,
            self.registry.separator,
        )

    def render_many(
        self,
        template: str,
        params_list: Iterable[Any],
    ) -> Dict[str, ResolvedCacheKey]:
        """Resolve one key per parameter map, keyed by rendered string.

        Entries that are not mappings are skipped.
        """
        keys: Dict[str, ResolvedCacheKey] = {}
        for params in params_list or ():
            if not isinstance(params, MappingABC):
                continue
            key = self.render(template, params)
            keys[key.rendered] = key
        return keys

    def make_key(self, template: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Rendered storage string for a template."""
        return self.render(template, params).rendered

    def build_pattern(self, template: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Glob pattern matching every key of a template.

        Bound placeholders are rendered; unbound ones become ``*``. A pattern
        with no wildcard gets a trailing ``*`` so it matches as a prefix.
        """
        params = params or {}
        group, definition = self.registry.lookup(template)
        separator = self.registry.separator

        def replace(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name in params:
                return render_fragment(params[name], separator)
            return WILDCARD

        body = PLACEHOLDER_PATTERN.sub(replace, definition.template)
        pattern = separator.join((self.registry.app_prefix, group.storage_prefix, group.version, body))
        if WILDCARD not in pattern:
            pattern += WILDCARD
        return pattern
