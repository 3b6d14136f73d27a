"""
Parser for flow key definitions.

Recursive descent over the token stream produced by flowkey.lexer:

    KeyDefinition := Key (',' Key)*
    Key           := FunctionCall | KeyName
    FunctionCall  := Identifier ':' Argument (':' Argument)*
    Argument      := Literal | '[' FunctionCall ']'
    KeyName       := Identifier              -- only when not followed by ':'

An identifier followed by ':' is always a function call. Function shapes
come from the FunctionRegistry, key names from the KeyNameCatalog, so the
grammar itself knows nothing about individual functions.
"""

from typing import List, Optional

from .catalog import DEFAULT_CATALOG, KeyNameCatalog
from .errors import (
    ArityMismatch, EmptyDefinition, KeySyntaxError, UnknownKeyFunction, UnknownKeyName,
)
from .key_ast import (
    Argument, FunctionCall, Key, KeyDefinition, KeyFunction, KeyName, Literal, Nested,
)
from .lexer import Token, TokenType, tokenize
from .registry import DEFAULT_REGISTRY, ArgKind, FunctionRegistry
from .validate import find_similar


# Deepest allowed [nested] function call
MAX_NESTING_DEPTH = 64


def _describe(token: Token) -> Optional[str]:
    if token.type == TokenType.EOF:
        return None
    return token.value


class Parser:
    """Recursive descent parser for one line of the flow key DSL."""

    def __init__(self, tokens: List[Token], catalog: KeyNameCatalog = None,
                 registry: FunctionRegistry = None):
        self.tokens = tokens
        self.pos = 0
        self.catalog = catalog if catalog is not None else DEFAULT_CATALOG
        self.registry = registry if registry is not None else DEFAULT_REGISTRY
        self._nesting_depth = 0

    def parse(self) -> KeyDefinition:
        """Parse the token stream into a KeyDefinition."""
        if self._at_end():
            raise EmptyDefinition()

        keys = [self._parse_key()]
        while self._check(TokenType.COMMA):
            comma = self._advance()
            if self._at_end():
                raise KeySyntaxError(comma.offset, "key after ','")
            keys.append(self._parse_key())

        if not self._at_end():
            token = self._peek()
            if token.type == TokenType.RBRACKET:
                raise KeySyntaxError(token.offset, "',' or end of input (unmatched ']')", token.value)
            raise KeySyntaxError(token.offset, "',' or end of input", token.value)

        return KeyDefinition(tuple(keys))

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self) -> Token:
        if self.pos >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self._peek()
        if not self._at_end():
            self.pos += 1
        return token

    def _check(self, token_type: TokenType) -> bool:
        return self._peek().type == token_type

    def _expect(self, token_type: TokenType, expected: str) -> Token:
        if self._check(token_type):
            return self._advance()
        token = self._peek()
        raise KeySyntaxError(token.offset, expected, _describe(token))

    # =========================================================================
    # Keys
    # =========================================================================

    def _parse_key(self) -> Key:
        name = self._expect(TokenType.IDENTIFIER, "key name or key function")
        if self._check(TokenType.COLON):
            return KeyFunction(self._parse_call_arguments(name))
        return self._key_name(name)

    def _key_name(self, token: Token) -> KeyName:
        key_token = self.catalog.lookup(token.value)
        if key_token is None:
            raise UnknownKeyName(
                token.value, token.offset, find_similar(token.value, self.catalog.names())
            )
        return KeyName(key_token)

    # =========================================================================
    # Function calls
    # =========================================================================

    def _parse_function_call(self) -> FunctionCall:
        name = self._expect(TokenType.IDENTIFIER, "function name")
        if not self._check(TokenType.COLON):
            token = self._peek()
            raise KeySyntaxError(token.offset, "':' after function name", _describe(token))
        return self._parse_call_arguments(name)

    def _parse_call_arguments(self, name: Token) -> FunctionCall:
        shape = self.registry.lookup(name.value)
        if shape is None:
            raise UnknownKeyFunction(
                name.value, name.offset, find_similar(name.value, self.registry.names())
            )

        args: List[Argument] = []
        while self._check(TokenType.COLON):
            separator = self._advance()
            args.append(self._parse_argument(shape.kind_at(len(args)), separator))

        if not shape.arity.accepts(len(args)):
            raise ArityMismatch(shape.name, shape.arity, len(args), name.offset)
        return shape.build(args)

    def _parse_argument(self, kind: Optional[ArgKind], separator: Token) -> Argument:
        token = self._peek()

        if token.type == TokenType.LBRACKET:
            if kind == ArgKind.LITERAL:
                raise KeySyntaxError(token.offset, "literal argument", token.value)
            return Nested(self._parse_nested())

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            if kind == ArgKind.KEY:
                return self._key_name(token)
            return Literal(token.value)

        if token.type == TokenType.EOF:
            raise KeySyntaxError(separator.offset, "argument after ':'")
        raise KeySyntaxError(token.offset, "argument", token.value)

    def _parse_nested(self) -> FunctionCall:
        open_bracket = self._advance()
        if self._nesting_depth >= MAX_NESTING_DEPTH:
            raise KeySyntaxError(
                open_bracket.offset, f"at most {MAX_NESTING_DEPTH} nested function calls"
            )
        self._nesting_depth += 1
        call = self._parse_function_call()
        self._expect(TokenType.RBRACKET, "']' to close '['")
        self._nesting_depth -= 1
        return call


def parse(text: str, catalog: KeyNameCatalog = None,
          registry: FunctionRegistry = None) -> KeyDefinition:
    """Parse one line of DSL text into a KeyDefinition.

    Raises a ParseError subclass on any failure; nothing is returned for a
    partially valid line.
    """
    return Parser(tokenize(text), catalog, registry).parse()
