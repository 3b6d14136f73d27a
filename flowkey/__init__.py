"""
Flow key definitions - parser for the flow key DSL.

This package provides:
- parser: the parse() entry point (hand-written recursive descent)
- peg_parser: an equivalent parser driven by the Lark grammar
- key_ast: immutable AST nodes
- catalog / registry: the open tables of key names and key functions
- errors: the typed diagnostics raised by both parsers
"""

from .errors import (
    ParseError,
    KeySyntaxError,
    UnknownKeyName,
    UnknownKeyFunction,
    ArityMismatch,
    EmptyDefinition,
    ConfigError,
)

from .key_ast import (
    KeyDefinition,
    KeyName,
    KeyNameToken,
    KeyFunction,
    FunctionCall,
    GroupCall,
    CountryCall,
    Literal,
    Nested,
)

from .catalog import KeyNameCatalog, DEFAULT_CATALOG
from .registry import ArgKind, Arity, FunctionShape, FunctionRegistry, DEFAULT_REGISTRY
from .parser import parse
from .converter import to_text, to_dict, format_tree
from .config import load_extensions

__all__ = [
    # Errors
    "ParseError",
    "KeySyntaxError",
    "UnknownKeyName",
    "UnknownKeyFunction",
    "ArityMismatch",
    "EmptyDefinition",
    "ConfigError",
    # AST
    "KeyDefinition",
    "KeyName",
    "KeyNameToken",
    "KeyFunction",
    "FunctionCall",
    "GroupCall",
    "CountryCall",
    "Literal",
    "Nested",
    # Tables
    "KeyNameCatalog",
    "DEFAULT_CATALOG",
    "ArgKind",
    "Arity",
    "FunctionShape",
    "FunctionRegistry",
    "DEFAULT_REGISTRY",
    # Parsing and conversion
    "parse",
    "to_text",
    "to_dict",
    "format_tree",
    "load_extensions",
]
