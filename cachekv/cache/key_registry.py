"""Registry of key templates, addressed by ``group.key`` names."""

from typing import Any, Dict, List, Tuple

from cachekv.config.schemas import GroupDefinition, KeyDefinition, ResolvedConfig
from cachekv.core.errors import UnknownTemplateError


class KeyTemplateRegistry:
    """Holds, per group, the storage prefix, version and key definitions.

    Built once from a ``ResolvedConfig`` and read-only afterwards.
    """

    def __init__(self, config: ResolvedConfig):
        self._config = config

    @property
    def config(self) -> ResolvedConfig:
        return self._config

    @property
    def app_prefix(self) -> str:
        return self._config.app_prefix

    @property
    def separator(self) -> str:
        return self._config.separator

    @staticmethod
    def split_template(template: str) -> Tuple[str, str]:
        """Split ``group.key`` on the first dot.

        Raises:
            UnknownTemplateError: If the name is not in ``group.key`` form.
        """
        if not isinstance(template, str) or "." not in template:
            raise UnknownTemplateError(str(template), reason="invalid template format, expected 'group.key'")
        group_name, key_name = template.split(".", 1)
        if not group_name or not key_name:
            raise UnknownTemplateError(template, reason="invalid template format, expected 'group.key'")
        return group_name, key_name

    def get_group(self, group_name: str) -> GroupDefinition:
        group = self._config.get_group(group_name)
        if group is None:
            raise UnknownTemplateError(group_name, group=group_name, reason="unknown group")
        return group

    def lookup(self, template: str) -> Tuple[GroupDefinition, KeyDefinition]:
        """Find the group and key definition for a ``group.key`` name.

        Raises:
            UnknownTemplateError: Unknown group or unknown key.
        """
        group_name, key_name = self.split_template(template)
        group = self._config.get_group(group_name)
        if group is None:
            raise UnknownTemplateError(template, group=group_name, key=key_name, reason="unknown group")
        definition = group.get_key(key_name)
        if definition is None:
            raise UnknownTemplateError(template, group=group_name, key=key_name, reason="unknown key")
        return group, definition

    def has_template(self, template: str) -> bool:
        try:
            self.lookup(template)
        except UnknownTemplateError:
            return False
        return True

    def list_templates(self) -> List[str]:
        """All ``group.key`` names, sorted."""
        return sorted(
            definition.full_name
            for group in self._config.groups.values()
            for definition in group.keys.values()
        )

    def describe(self) -> Dict[str, Any]:
        """Per-group summary of prefixes, templates and merged policies."""
        described: Dict[str, Any] = {}
        for group_name, group in sorted(self._config.groups.items()):
            described[group_name] = {
                "prefix": group.storage_prefix,
                "version": group.version,
                "description": group.description,
                "keys": {
                    key_name: {
                        "template": definition.template,
                        "full_template": definition.full_name,
                        "description": definition.description,
                        "parameters": list(definition.placeholders),
                        "policy": definition.policy.model_dump() if definition.policy else None,
                    }
                    for key_name, definition in sorted(group.keys.items())
                },
            }
        return described
