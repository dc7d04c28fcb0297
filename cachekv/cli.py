"""cachekv command-line tool.

    cachekv validate config.yaml
    cachekv templates config.yaml
    cachekv render config.yaml user.profile id=123
    cachekv describe config.yaml
"""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional, Sequence

import yaml

from cachekv.cache.key_registry import KeyTemplateRegistry
from cachekv.cache.key_resolver import CacheKeyResolver
from cachekv.config.loader import load_config
from cachekv.config.schemas import ResolvedConfig
from cachekv.core.config import Settings
from cachekv.core.errors import CacheKVError
from cachekv.core.logging import configure_logging


def parse_params(pairs: Sequence[str]) -> Dict[str, Any]:
    """Turn ``name=value`` pairs into a parameter map.

    Values are read as YAML scalars, so ``flag=true`` is a boolean and
    ``id=123`` an integer.
    """
    params: Dict[str, Any] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"Expected name=value, got '{pair}'")
        try:
            params[name] = yaml.safe_load(value) if value else ""
        except yaml.YAMLError:
            params[name] = value
    return params


def _load(args: argparse.Namespace) -> ResolvedConfig:
    return load_config(args.config, Settings())


def cmd_validate(args: argparse.Namespace) -> int:
    config = _load(args)
    key_count = sum(len(g.keys) for g in config.groups.values())
    print(f"OK: {len(config.groups)} groups, {key_count} keys")
    return 0


def cmd_templates(args: argparse.Namespace) -> int:
    registry = KeyTemplateRegistry(_load(args))
    for template in registry.list_templates():
        _, definition = registry.lookup(template)
        marker = "" if definition.managed else "  (unmanaged)"
        print(f"{template}  {definition.template}{marker}")
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    resolver = CacheKeyResolver(KeyTemplateRegistry(_load(args)))
    key = resolver.render(args.template, parse_params(args.params))
    if args.verbose:
        print(json.dumps(key.to_dict(), indent=2, default=str))
    else:
        print(key.rendered)
    return 0


def cmd_describe(args: argparse.Namespace) -> int:
    registry = KeyTemplateRegistry(_load(args))
    print(json.dumps(registry.describe(), indent=2, default=str))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser("cachekv", description="Inspect cachekv key configuration")
    p.add_argument("--log-level", default="WARNING", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    sub = p.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate", help="Load and validate a configuration file")
    validate.add_argument("config", help="Path to the YAML configuration")
    validate.set_defaults(func=cmd_validate)

    templates = sub.add_parser("templates", help="List every group.key template")
    templates.add_argument("config", help="Path to the YAML configuration")
    templates.set_defaults(func=cmd_templates)

    render = sub.add_parser("render", help="Render a template to its storage key")
    render.add_argument("config", help="Path to the YAML configuration")
    render.add_argument("template", help="Template name, e.g. user.profile")
    render.add_argument("params", nargs="*", help="Parameters as name=value")
    render.add_argument("-v", "--verbose", action="store_true", help="Show the key's policy as JSON")
    render.set_defaults(func=cmd_render)

    describe = sub.add_parser("describe", help="Dump groups, templates and merged policies as JSON")
    describe.add_argument("config", help="Path to the YAML configuration")
    describe.set_defaults(func=cmd_describe)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    try:
        return args.func(args)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    except CacheKVError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
