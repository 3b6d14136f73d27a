"""
Diagnostics for flow key definitions.

Every parse failure is one of the ParseError subclasses below. Callers branch
on the exception type, never on the message text.
"""

from typing import Optional, Sequence, Tuple

from .validate import format_alternatives


class ParseError(Exception):
    """Base class for all flow key definition parse failures."""

    def __init__(self, message: str, offset: Optional[int] = None):
        self.offset = offset
        self.detail = message
        if offset is None:
            super().__init__(message)
        else:
            super().__init__(f"column {offset}: {message}")

    @property
    def kind(self) -> str:
        return type(self).__name__


class KeySyntaxError(ParseError):
    """No valid token or grammar production at `offset`."""

    def __init__(self, offset: int, expected: str, found: Optional[str] = None):
        self.expected = expected
        self.found = found
        if found is None:
            message = f"expected {expected}"
        else:
            message = f"expected {expected}, found {found!r}"
        super().__init__(message, offset)


def _with_suggestions(message: str, suggestions: Sequence[str]) -> str:
    if not suggestions:
        return message
    return f"{message} (did you mean {format_alternatives(suggestions)}?)"


class UnknownKeyName(ParseError):
    """A bare identifier that is not in the key-name catalog."""

    def __init__(self, name: str, offset: int, suggestions: Sequence[str] = ()):
        self.name = name
        self.suggestions: Tuple[str, ...] = tuple(suggestions)
        super().__init__(
            _with_suggestions(f"unknown key name {name!r}", self.suggestions),
            offset,
        )


class UnknownKeyFunction(ParseError):
    """An identifier followed by ':' that is not in the function registry."""

    def __init__(self, name: str, offset: int, suggestions: Sequence[str] = ()):
        self.name = name
        self.suggestions: Tuple[str, ...] = tuple(suggestions)
        super().__init__(
            _with_suggestions(f"unknown key function {name!r}", self.suggestions),
            offset,
        )


class ArityMismatch(ParseError):
    """A function call whose argument count does not fit the registered arity."""

    def __init__(self, function: str, expected, got: int, offset: int):
        self.function = function
        self.expected = expected
        self.got = got
        super().__init__(
            f"function {function!r} takes {expected} argument(s), got {got}",
            offset,
        )


class EmptyDefinition(ParseError):
    """The input contained no keys at all."""

    def __init__(self):
        super().__init__("key definition is empty")


class ConfigError(Exception):
    """Raised when an extension file cannot be loaded."""
