"""
AST conversion utilities.

Provides:
- to_text(): render an AST node back to DSL text (reparses to an equal AST)
- to_dict(): convert an AST to plain dicts/lists for YAML or JSON output
- format_tree(): indented structural pretty-print
"""

from typing import Any, Dict, List

from .key_ast import FunctionCall, KeyDefinition, KeyFunction, KeyName, Literal, Nested


KEY_SEPARATOR = ','
ARG_SEPARATOR = ':'
NEST_OPEN = '['
NEST_CLOSE = ']'


def to_text(node) -> str:
    """Render a KeyDefinition, key, function call or argument as DSL text."""
    if isinstance(node, KeyDefinition):
        return KEY_SEPARATOR.join(to_text(key) for key in node.keys)
    elif isinstance(node, KeyName):
        return node.name
    elif isinstance(node, KeyFunction):
        return to_text(node.call)
    elif isinstance(node, FunctionCall):
        return ARG_SEPARATOR.join([node.name] + [to_text(arg) for arg in node.args])
    elif isinstance(node, Nested):
        return f"{NEST_OPEN}{to_text(node.call)}{NEST_CLOSE}"
    elif isinstance(node, Literal):
        return node.value
    raise TypeError(f"Cannot render {type(node).__name__} as key definition text")


def _call_to_dict(call: FunctionCall) -> Dict[str, Any]:
    return {
        'function': call.name,
        'args': [_arg_to_dict(arg) for arg in call.args],
    }


def _arg_to_dict(arg) -> Dict[str, Any]:
    if isinstance(arg, Literal):
        return {'literal': arg.value}
    elif isinstance(arg, KeyName):
        return {'key': arg.name}
    elif isinstance(arg, Nested):
        return {'call': _call_to_dict(arg.call)}
    raise TypeError(f"Unknown argument type: {type(arg).__name__}")


def key_to_dict(key) -> Dict[str, Any]:
    if isinstance(key, KeyName):
        return {'key': key.name}
    elif isinstance(key, KeyFunction):
        return {'call': _call_to_dict(key.call)}
    raise TypeError(f"Unknown key type: {type(key).__name__}")


def to_dict(definition: KeyDefinition) -> Dict[str, Any]:
    """Convert a KeyDefinition to plain data."""
    return {'keys': [key_to_dict(key) for key in definition.keys]}


def _format_call(call: FunctionCall, depth: int, lines: List[str]):
    pad = "  " * depth
    lines.append(f"{pad}{type(call).__name__} {call.name}")
    for arg in call.args:
        if isinstance(arg, Nested):
            lines.append(f"{pad}  Nested")
            _format_call(arg.call, depth + 2, lines)
        elif isinstance(arg, KeyName):
            lines.append(f"{pad}  KeyName {arg.name}")
        else:
            lines.append(f"{pad}  Literal {arg.value}")


def format_tree(definition: KeyDefinition) -> str:
    """Indented tree view of a KeyDefinition, one node per line."""
    lines = [f"KeyDefinition ({len(definition)} key{'s' if len(definition) != 1 else ''})"]
    for key in definition.keys:
        if isinstance(key, KeyName):
            lines.append(f"  KeyName {key.name}")
        else:
            lines.append("  KeyFunction")
            _format_call(key.call, 2, lines)
    return "\n".join(lines)
