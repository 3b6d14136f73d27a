"""
Grammar-based parser for flow key definitions using Lark.

Uses the formal grammar in key_grammar.lark and Lark's LALR parser, then
builds the same AST as the hand-written parser in flowkey.parser, consulting
the same catalog and registry. Both parsers must accept the same inputs,
produce equal trees, and reject bad input with the same error kind at the
same offset.

The line is lexed in full first, then fed to an interactive LALR parser one
token at a time. KeyChecker sees each token just before the parser does and
performs the name, argument kind, arity and nesting checks in source order,
so a lookup failure early in the line wins over a syntax error later on.
"""

from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import List, Optional

from lark import Lark, Token, v_args
from lark.exceptions import (
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedInput,
    UnexpectedToken,
    VisitError,
)
from lark.visitors import Transformer_NonRecursive

from .catalog import DEFAULT_CATALOG, KeyNameCatalog
from .errors import (
    ArityMismatch, EmptyDefinition, KeySyntaxError, UnknownKeyFunction, UnknownKeyName,
)
from .key_ast import FunctionCall, KeyDefinition, KeyFunction, KeyName, Literal, Nested
from .parser import MAX_NESTING_DEPTH
from .registry import DEFAULT_REGISTRY, ArgKind, FunctionRegistry, FunctionShape
from .validate import find_similar


GRAMMAR_PATH = Path(__file__).parent / "key_grammar.lark"

# Readable names for the grammar's terminals
TERMINAL_NAMES = {
    'NAME': "identifier",
    'COLON': "':'",
    'COMMA': "','",
    'LSQB': "'['",
    'RSQB': "']'",
    '$END': "end of input",
}


class _State(Enum):
    KEY = auto()             # a key must start here
    KEY_NAME = auto()        # identifier read where a key starts
    AFTER_KEY = auto()       # ',' or end of input
    CALL_NAME = auto()       # function name after '['
    NESTED_NAME = auto()     # identifier read after '['
    ARGUMENT = auto()        # argument after ':'
    AFTER_ARGUMENT = auto()  # ':' or the end of the current call


@dataclass
class _CallFrame:
    shape: FunctionShape
    name: Token
    nested: bool
    args: int = 0


class KeyChecker:
    """Source-order semantic checks run alongside the LALR parser.

    check() is called with every token, including the final '$END', before
    it is fed to the parser. Tokens the grammar rejects are left alone; the
    parser raises for those.
    """

    def __init__(self, catalog: KeyNameCatalog, registry: FunctionRegistry, base_offset: int = 0):
        self.catalog = catalog
        self.registry = registry
        self.base_offset = base_offset
        self.state = _State.KEY
        self.frames: List[_CallFrame] = []
        self.depth = 0
        self.pending: Optional[Token] = None
        self.previous: Optional[Token] = None

    def check(self, token: Token):
        handler = getattr(self, "_on_" + self.state.name.lower())
        handler(token)
        self.previous = token

    def _offset(self, token: Token) -> int:
        return self.base_offset + token.start_pos

    def _key_name(self, token: Token):
        if self.catalog.lookup(str(token)) is None:
            raise UnknownKeyName(
                str(token), self._offset(token), find_similar(str(token), self.catalog.names())
            )

    def _open_call(self, name: Token, nested: bool):
        shape = self.registry.lookup(str(name))
        if shape is None:
            raise UnknownKeyFunction(
                str(name), self._offset(name), find_similar(str(name), self.registry.names())
            )
        self.frames.append(_CallFrame(shape, name, nested))
        self.state = _State.AFTER_ARGUMENT

    # =========================================================================
    # Top-level keys
    # =========================================================================

    def _on_key(self, token: Token):
        if token.type == 'NAME':
            self.pending = token
            self.state = _State.KEY_NAME
        elif token.type == '$END' and self.previous is not None and self.previous.type == 'COMMA':
            raise KeySyntaxError(self._offset(self.previous), "key after ','")

    def _on_key_name(self, token: Token):
        if token.type == 'COLON':
            self._open_call(self.pending, nested=False)
            self._on_after_argument(token)
        else:
            self._key_name(self.pending)
            self.state = _State.AFTER_KEY
            self._on_after_key(token)

    def _on_after_key(self, token: Token):
        if token.type == 'COMMA':
            self.state = _State.KEY

    # =========================================================================
    # Function calls
    # =========================================================================

    def _on_call_name(self, token: Token):
        if token.type == 'NAME':
            self.pending = token
            self.state = _State.NESTED_NAME

    def _on_nested_name(self, token: Token):
        if token.type == 'COLON':
            self._open_call(self.pending, nested=True)
            self._on_after_argument(token)

    def _on_argument(self, token: Token):
        frame = self.frames[-1]
        kind = frame.shape.kind_at(frame.args)

        if token.type == 'LSQB':
            if kind == ArgKind.LITERAL:
                raise KeySyntaxError(self._offset(token), "literal argument", "[")
            if self.depth >= MAX_NESTING_DEPTH:
                raise KeySyntaxError(
                    self._offset(token), f"at most {MAX_NESTING_DEPTH} nested function calls"
                )
            self.depth += 1
            frame.args += 1
            self.state = _State.CALL_NAME
        elif token.type == 'NAME':
            frame.args += 1
            if kind == ArgKind.KEY:
                self._key_name(token)
            self.state = _State.AFTER_ARGUMENT
        elif token.type == '$END':
            raise KeySyntaxError(self._offset(self.previous), "argument after ':'")

    def _on_after_argument(self, token: Token):
        if token.type == 'COLON':
            self.state = _State.ARGUMENT
            return

        frame = self.frames.pop()
        if not frame.shape.arity.accepts(frame.args):
            raise ArityMismatch(
                frame.shape.name, frame.shape.arity, frame.args, self._offset(frame.name)
            )
        if not frame.nested:
            self.state = _State.AFTER_KEY
            self._on_after_key(token)
        elif token.type == 'RSQB':
            self.depth -= 1


@v_args(inline=True)
class KeyTransformer(Transformer_NonRecursive):
    """Transform a checked Lark parse tree into KeyDefinition AST nodes."""

    def __init__(self, catalog: KeyNameCatalog, registry: FunctionRegistry):
        super().__init__()
        self.catalog = catalog
        self.registry = registry

    def start(self, *keys):
        return KeyDefinition(tuple(
            KeyFunction(key) if isinstance(key, FunctionCall) else key
            for key in keys
        ))

    def key_name(self, name):
        return KeyName(self.catalog.lookup(str(name)))

    def function_call(self, name, *args):
        shape = self.registry.lookup(str(name))
        built = []
        for index, arg in enumerate(args):
            if isinstance(arg, Nested):
                built.append(arg)
            elif shape.kind_at(index) == ArgKind.KEY:
                built.append(KeyName(self.catalog.lookup(str(arg))))
            else:
                built.append(Literal(str(arg)))
        return shape.build(built)

    def nested(self, call):
        return Nested(call)


# Create parser instance
_parser = None


def get_parser() -> Lark:
    """Get or create the Lark parser instance."""
    global _parser
    if _parser is None:
        with open(GRAMMAR_PATH) as f:
            grammar = f.read()
        _parser = Lark(
            grammar,
            parser='lalr',
            lexer='basic',
            propagate_positions=True,
        )
    return _parser


def _expected(names) -> str:
    readable = sorted(TERMINAL_NAMES.get(name, name) for name in names)
    return " or ".join(readable) if readable else "valid input"


def _convert_lark_error(error: UnexpectedInput, text: str, base: int) -> KeySyntaxError:
    """Map a Lark exception onto a positioned KeySyntaxError."""
    if isinstance(error, UnexpectedCharacters):
        return KeySyntaxError(
            base + error.pos_in_stream, "identifier or one of ':', ',', '[', ']'", error.char
        )
    if isinstance(error, UnexpectedToken):
        token = error.token
        found: Optional[str] = None if token.type == '$END' else str(token)
        start = token.start_pos if token.start_pos is not None else len(text)
        return KeySyntaxError(base + start, _expected(error.expected), found)
    if isinstance(error, UnexpectedEOF):
        return KeySyntaxError(base + len(text), _expected(error.expected))
    return KeySyntaxError(base + max(error.pos_in_stream or 0, 0), "valid input")


def parse(text: str, catalog: KeyNameCatalog = None,
          registry: FunctionRegistry = None) -> KeyDefinition:
    """Parse one line of DSL text into a KeyDefinition using the Lark grammar."""
    stripped = text.strip()
    if not stripped:
        raise EmptyDefinition()
    base = len(text) - len(text.lstrip())
    catalog = catalog if catalog is not None else DEFAULT_CATALOG
    registry = registry if registry is not None else DEFAULT_REGISTRY

    lark_parser = get_parser()
    checker = KeyChecker(catalog, registry, base)
    try:
        # Lex everything first so a bad character anywhere wins
        tokens = list(lark_parser.lex(stripped))
        tokens.append(Token('$END', '', len(stripped)))
        interactive = lark_parser.parse_interactive()
        for token in tokens:
            checker.check(token)
            tree = interactive.feed_token(token)
    except UnexpectedInput as e:
        raise _convert_lark_error(e, stripped, base) from e

    try:
        return KeyTransformer(catalog, registry).transform(tree)
    except VisitError as e:
        # Lark wraps exceptions from transformer methods in VisitError
        raise e.orig_exc from e
