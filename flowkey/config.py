"""
Extension files for the key-name catalog and function registry.

An extension file is YAML:

    key_names:
      - name: tcpsourceport
        description: TCP source port
    functions:
      - name: prefix
        arity: {exact: 2}
        args: [key, literal]
      - name: range
        arity: {at_least: 2}
        args: [key]
        trailing_labels: true

Loading returns new catalog/registry objects; the defaults are never mutated.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import yaml

from .catalog import DEFAULT_CATALOG, KeyNameCatalog
from .errors import ConfigError
from .key_ast import KeyNameToken
from .lexer import is_identifier_char
from .registry import DEFAULT_REGISTRY, ArgKind, Arity, FunctionRegistry, FunctionShape

logger = logging.getLogger(__name__)


def _check_name(name: Any, where: str) -> str:
    if not isinstance(name, str) or not name or not all(is_identifier_char(c) for c in name):
        raise ConfigError(f"{where}: invalid name {name!r}")
    return name


def _parse_arity(value: Any, where: str) -> Arity:
    if not isinstance(value, dict) or len(value) != 1:
        raise ConfigError(f"{where}: arity must be {{exact: n}} or {{at_least: n}}")
    (form, count), = value.items()
    if not isinstance(count, int) or isinstance(count, bool) or count < 1:
        raise ConfigError(f"{where}: arity count must be a positive integer, got {count!r}")
    if form == 'exact':
        return Arity.exact(count)
    if form == 'at_least':
        return Arity.at_least(count)
    raise ConfigError(f"{where}: unknown arity form {form!r}")


def _parse_arg_kinds(value: Any, where: str) -> Tuple[ArgKind, ...]:
    if not isinstance(value, list) or not value:
        raise ConfigError(f"{where}: args must be a non-empty list")
    kinds = []
    for item in value:
        try:
            kinds.append(ArgKind(item))
        except ValueError:
            allowed = ", ".join(k.value for k in ArgKind)
            raise ConfigError(f"{where}: unknown argument kind {item!r} (expected {allowed})") from None
    return tuple(kinds)


def parse_key_names(entries: Any) -> List[KeyNameToken]:
    if not isinstance(entries, list):
        raise ConfigError("key_names must be a list")
    tokens = []
    for index, entry in enumerate(entries):
        where = f"key_names[{index}]"
        if isinstance(entry, str):
            entry = {'name': entry}
        if not isinstance(entry, dict):
            raise ConfigError(f"{where}: expected a mapping or a name")
        name = _check_name(entry.get('name'), where)
        tokens.append(KeyNameToken(name, str(entry.get('description', ''))))
    return tokens


def parse_functions(entries: Any) -> List[FunctionShape]:
    if not isinstance(entries, list):
        raise ConfigError("functions must be a list")
    shapes = []
    for index, entry in enumerate(entries):
        where = f"functions[{index}]"
        if not isinstance(entry, dict):
            raise ConfigError(f"{where}: expected a mapping")
        name = _check_name(entry.get('name'), where)
        where = f"function {name!r}"
        trailing_labels = entry.get('trailing_labels', False)
        if not isinstance(trailing_labels, bool):
            raise ConfigError(f"{where}: trailing_labels must be true or false, got {trailing_labels!r}")
        try:
            shapes.append(FunctionShape(
                name=name,
                arity=_parse_arity(entry.get('arity'), where),
                arg_kinds=_parse_arg_kinds(entry.get('args'), where),
                trailing_labels=trailing_labels,
                description=str(entry.get('description', '')),
            ))
        except ValueError as e:
            raise ConfigError(f"{where}: {e}") from e
    return shapes


def apply_extensions(data: Dict[str, Any], catalog: KeyNameCatalog = None,
                     registry: FunctionRegistry = None) -> Tuple[KeyNameCatalog, FunctionRegistry]:
    """Extend a catalog and registry with already-loaded extension data."""
    catalog = catalog if catalog is not None else DEFAULT_CATALOG
    registry = registry if registry is not None else DEFAULT_REGISTRY

    if not isinstance(data, dict):
        raise ConfigError("extension file must contain a mapping")
    unknown = set(data) - {'key_names', 'functions'}
    if unknown:
        raise ConfigError(f"unknown section(s): {', '.join(sorted(unknown))}")

    try:
        if 'key_names' in data:
            tokens = parse_key_names(data['key_names'])
            catalog = catalog.extended(tokens)
            logger.debug("Added %d key name(s): %s", len(tokens), ", ".join(t.name for t in tokens))
        if 'functions' in data:
            shapes = parse_functions(data['functions'])
            registry = registry.extended(shapes)
            logger.debug("Added %d function(s): %s", len(shapes), ", ".join(s.name for s in shapes))
    except ValueError as e:
        # duplicate names
        raise ConfigError(str(e)) from e

    return catalog, registry


def load_extensions(path, catalog: KeyNameCatalog = None,
                    registry: FunctionRegistry = None) -> Tuple[KeyNameCatalog, FunctionRegistry]:
    """Load a YAML extension file and return the extended catalog and registry."""
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"{path}: {e.strerror}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: invalid YAML: {e}") from e

    logger.debug("Loading extensions from %s", path)
    try:
        return apply_extensions(data if data is not None else {}, catalog, registry)
    except ConfigError as e:
        raise ConfigError(f"{path}: {e}") from e


def load_all_extensions(paths: Iterable, catalog: KeyNameCatalog = None,
                        registry: FunctionRegistry = None) -> Tuple[KeyNameCatalog, FunctionRegistry]:
    """Apply several extension files in order."""
    catalog = catalog if catalog is not None else DEFAULT_CATALOG
    registry = registry if registry is not None else DEFAULT_REGISTRY
    for path in paths:
        catalog, registry = load_extensions(path, catalog, registry)
    return catalog, registry
