"""
Lexer for flow key definitions.

Tokenizes a single line into identifiers and structural punctuation.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import List

from .errors import KeySyntaxError


class TokenType(Enum):
    IDENTIFIER = auto()
    COLON = auto()       # :
    COMMA = auto()       # ,
    LBRACKET = auto()    # [
    RBRACKET = auto()    # ]
    EOF = auto()


@dataclass
class Token:
    type: TokenType
    value: str
    offset: int

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, {self.offset})"


SINGLE_CHAR_TOKENS = {
    ':': TokenType.COLON,
    ',': TokenType.COMMA,
    '[': TokenType.LBRACKET,
    ']': TokenType.RBRACKET,
}

# Characters allowed in identifiers besides letters and digits
IDENTIFIER_EXTRA_CHARS = '_'


def is_identifier_char(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char in IDENTIFIER_EXTRA_CHARS)


class Lexer:
    """Tokenizer for one line of the flow key DSL.

    Leading and trailing whitespace around the line is skipped; offsets
    always refer to the original, untrimmed text.
    """

    def __init__(self, source: str):
        self.source = source
        self.end = len(source.rstrip())
        self.pos = len(source) - len(source.lstrip())
        self.tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        """Tokenize the line and return the tokens, ending with EOF."""
        while not self._at_end():
            self._scan_token()

        self.tokens.append(Token(TokenType.EOF, '', max(self.pos, self.end)))
        return self.tokens

    def _at_end(self) -> bool:
        return self.pos >= self.end

    def _peek(self) -> str:
        if self._at_end():
            return '\0'
        return self.source[self.pos]

    def _scan_token(self):
        start = self.pos
        char = self.source[self.pos]

        if char in SINGLE_CHAR_TOKENS:
            self.pos += 1
            self.tokens.append(Token(SINGLE_CHAR_TOKENS[char], char, start))
            return

        if is_identifier_char(char):
            while not self._at_end() and is_identifier_char(self._peek()):
                self.pos += 1
            self.tokens.append(Token(TokenType.IDENTIFIER, self.source[start:self.pos], start))
            return

        raise KeySyntaxError(start, "identifier or one of ':', ',', '[', ']'", char)


def tokenize(source: str) -> List[Token]:
    """Convenience function to tokenize a line."""
    return Lexer(source).tokenize()
