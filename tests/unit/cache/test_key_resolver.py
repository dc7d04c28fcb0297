"""Tests for template rendering and key resolution."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

import pytest

from cachekv.cache.key_resolver import (
    ResolvedCacheKey,
    coerce_param,
    hash_composite,
    render_fragment,
)
from cachekv.core.errors import ConfigError, MissingParameterError, UnknownTemplateError


class Color(Enum):
    RED = "red"


@dataclass
class Filter:
    category: str
    page: int


class TestRender:
    """Tests for rendering single keys."""

    def test_round_trip_shape(self, resolver):
        """Test app:group-prefix:version:template layout."""
        key = resolver.render("user.profile", {"id": 123})
        assert key.rendered == "app:usr:v1:profile:123"
        assert str(key) == "app:usr:v1:profile:123"

    def test_multiple_placeholders(self, resolver):
        """Test every placeholder is substituted."""
        key = resolver.render("user.avatar", {"id": 7, "size": "large"})
        assert key.rendered == "app:usr:v1:avatar:7:large"

    def test_missing_parameter(self, resolver):
        """Test a missing placeholder value names the parameter."""
        with pytest.raises(MissingParameterError) as exc_info:
            resolver.render("user.profile", {})
        assert exc_info.value.parameter == "id"

    def test_unknown_group(self, resolver):
        """Test an unknown group fails."""
        with pytest.raises(UnknownTemplateError) as exc_info:
            resolver.render("ghost.key", {"id": 1})
        assert "unknown group" in str(exc_info.value)

    def test_unknown_key(self, resolver):
        """Test an unknown key in a known group fails as a ConfigError."""
        with pytest.raises(ConfigError) as exc_info:
            resolver.render("user.ghost", {"id": 1})
        assert "unknown key" in str(exc_info.value)

    def test_malformed_template_name(self, resolver):
        """Test names without a dot fail."""
        with pytest.raises(UnknownTemplateError):
            resolver.render("profile", {"id": 1})

    def test_extra_params_ignored(self, resolver):
        """Test unused parameters do not change the key."""
        plain = resolver.render("user.profile", {"id": 5})
        extra = resolver.render("user.profile", {"z": 1, "id": 5, "a": [1, 2]})
        assert plain == extra
        assert hash(plain) == hash(extra)

    def test_deterministic(self, resolver):
        """Test rendering twice gives the same string."""
        first = resolver.render("goods.search", {"query": {"b": 2, "a": [1, 2, 3]}}).rendered
        second = resolver.render("goods.search", {"query": {"a": [1, 2, 3], "b": 2}}).rendered
        assert first == second

    def test_key_carries_policy(self, resolver):
        """Test the resolved key exposes the merged policy."""
        key = resolver.render("user.profile", {"id": 1})
        assert key.policy.ttl == 10800
        assert key.is_managed
        assert key.stats_enabled

    def test_unmanaged_key(self, resolver):
        """Test unmanaged keys still render but have no policy."""
        key = resolver.render("user.session", {"token": "abc"})
        assert key.rendered == "app:usr:v1:session:abc"
        assert key.policy is None
        assert not key.stats_enabled

    def test_equality_by_rendered_string(self, resolver):
        """Test keys with equal strings are equal and hash the same."""
        a = resolver.render("user.profile", {"id": 1})
        b = resolver.render("user.profile", {"id": "1"})
        c = resolver.render("user.profile", {"id": 2})
        assert a == b
        assert a != c
        assert len({a, b, c}) == 2

    def test_to_dict(self, resolver):
        """Test the debug view contains the rendered key."""
        data = resolver.render("user.profile", {"id": 1}).to_dict()
        assert data["full_key"] == "app:usr:v1:profile:1"
        assert data["policy"]["ttl"] == 10800


class TestCoercion:
    """Tests for parameter value coercion."""

    def test_booleans(self):
        """Test booleans render as 1/0."""
        assert coerce_param(True) == "1"
        assert coerce_param(False) == "0"

    def test_none(self):
        """Test None renders as null."""
        assert coerce_param(None) == "null"

    def test_scalars(self):
        """Test scalars use their natural form."""
        assert coerce_param(42) == "42"
        assert coerce_param("abc") == "abc"
        assert coerce_param(Color.RED) == "red"

    def test_composites_hash(self):
        """Test composites render as a stable hash."""
        value = {"b": 1, "a": [1, 2]}
        assert coerce_param(value) == hash_composite({"a": [1, 2], "b": 1})
        assert len(coerce_param(value)) == 32
        assert coerce_param([1, 2]) != coerce_param([2, 1])

    def test_sets_are_order_independent(self):
        """Test equal sets hash equally."""
        assert hash_composite({3, 1, 2}) == hash_composite({1, 2, 3})

    def test_dataclass_hashes_like_dict(self):
        """Test dataclasses hash by field values."""
        assert hash_composite(Filter("books", 2)) == hash_composite({"category": "books", "page": 2})

    def test_other_scalars_use_str(self):
        """Test scalars without a dedicated rule render via str()."""
        uid = UUID("12345678-1234-5678-1234-567812345678")
        assert coerce_param(uid) == "12345678-1234-5678-1234-567812345678"
        assert coerce_param(Decimal("12")) == "12"
        assert coerce_param(date(2024, 5, 1)) == "2024-05-01"

    def test_other_scalars_in_keys(self, resolver):
        """Test a UUID parameter appears verbatim in the storage key."""
        uid = UUID("12345678-1234-5678-1234-567812345678")
        key = resolver.render("user.profile", {"id": uid})
        assert key.rendered == "app:usr:v1:profile:12345678-1234-5678-1234-567812345678"

    def test_safe_fragment_unchanged(self):
        """Test fragments inside the safe set are kept as-is."""
        assert render_fragment("x:y-z_1", ":") == "x:y-z_1"
        assert render_fragment("ünï", ":") == "ünï"
        assert render_fragment("张三", ":") == "张三"

    def test_unsafe_characters_replaced(self):
        """Test unsafe characters become underscores plus a short digest."""
        fragment = render_fragment("a b/c*d", ":")
        assert fragment.startswith("a_b_c_d_")
        assert len(fragment) == len("a_b_c_d_") + 8
        assert "*" not in fragment

    def test_sanitized_values_stay_distinct(self):
        """Test values differing only in unsafe characters keep distinct fragments."""
        assert render_fragment("a b", ":") != render_fragment("a/b", ":")
        assert render_fragment("a b", ":") != render_fragment("a_b", ":")
        assert render_fragment("a b", ":") == render_fragment("a b", ":")

    def test_non_ascii_values_do_not_collide(self, resolver):
        """Test distinct CJK identifiers render to distinct keys."""
        first = resolver.render("user.profile", {"id": "张三"}).rendered
        second = resolver.render("user.profile", {"id": "李四"}).rendered
        assert first == "app:usr:v1:profile:张三"
        assert second == "app:usr:v1:profile:李四"

    def test_separator_is_safe(self):
        """Test the configured separator is kept."""
        assert render_fragment("a|b", "|") == "a|b"
        assert render_fragment("a|b", ":").startswith("a_b_")


class TestRenderMany:
    """Tests for batch key rendering."""

    def test_render_many(self, resolver):
        """Test keys are returned by rendered string."""
        keys = resolver.render_many("user.profile", [{"id": 1}, {"id": 2}])
        assert list(keys) == ["app:usr:v1:profile:1", "app:usr:v1:profile:2"]
        assert all(isinstance(k, ResolvedCacheKey) for k in keys.values())

    def test_skips_non_mappings(self, resolver):
        """Test invalid entries are skipped."""
        keys = resolver.render_many("user.profile", [{"id": 1}, None, "id=2", 3])
        assert list(keys) == ["app:usr:v1:profile:1"]

    def test_empty_input(self, resolver):
        """Test empty input yields an empty map."""
        assert resolver.render_many("user.profile", []) == {}

    def test_duplicates_collapse(self, resolver):
        """Test equal parameter maps produce one entry."""
        keys = resolver.render_many("user.profile", [{"id": 1}, {"id": 1}])
        assert len(keys) == 1


class TestBuildPattern:
    """Tests for prefix-delete patterns."""

    def test_unbound_placeholders_become_wildcards(self, resolver):
        """Test unbound placeholders match anything."""
        assert resolver.build_pattern("user.avatar", {"id": 7}) == "app:usr:v1:avatar:7:*"
        assert resolver.build_pattern("user.avatar") == "app:usr:v1:avatar:*:*"

    def test_fully_bound_gets_trailing_wildcard(self, resolver):
        """Test a fully bound template matches as a prefix."""
        assert resolver.build_pattern("user.profile", {"id": 1}) == "app:usr:v1:profile:1*"
