"""
AST node definitions for flow key definitions.

All nodes are immutable; a KeyDefinition owns its whole tree.
"""

from dataclasses import dataclass, field
from typing import Iterator, Tuple, Union


# =============================================================================
# Key names
# =============================================================================

@dataclass(frozen=True)
class KeyNameToken:
    """A key name known to the catalog, e.g. ip6source."""
    name: str
    description: str = field(default="", compare=False, repr=False)

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class KeyName:
    """A single catalog-recognized key."""
    token: KeyNameToken

    @property
    def name(self) -> str:
        return self.token.name


# =============================================================================
# Function calls and arguments
# =============================================================================

@dataclass(frozen=True)
class Literal:
    """Bare token passed as a function argument (label, parameter, ...)."""
    value: str


@dataclass(frozen=True)
class FunctionCall:
    """Function application: name:arg1:arg2:..."""
    name: str
    args: Tuple['Argument', ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'args', tuple(self.args))


@dataclass(frozen=True)
class Nested:
    """Function call used as an argument, written [name:args]."""
    call: FunctionCall


# Union type for function arguments
Argument = Union[Literal, Nested, KeyName]


@dataclass(frozen=True)
class KeyFunction:
    """Top-level key computed by a function."""
    call: FunctionCall

    @property
    def name(self) -> str:
        return self.call.name


# Union type for keys
Key = Union[KeyName, KeyFunction]


def argument_as_key(arg: Argument) -> Key:
    """View a key-valued argument as a Key."""
    if isinstance(arg, Nested):
        return KeyFunction(arg.call)
    if isinstance(arg, KeyName):
        return arg
    raise TypeError(f"literal argument {arg.value!r} is not a key")


# =============================================================================
# Built-in function call shapes
# =============================================================================

@dataclass(frozen=True)
class GroupCall(FunctionCall):
    """group:<key>:<label>:<label>...

    Classifies the wrapped key's value into one of the declared labels. Label
    order is significant.
    """

    @property
    def key(self) -> Key:
        return argument_as_key(self.args[0])

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(arg.value for arg in self.args[1:])


@dataclass(frozen=True)
class CountryCall(FunctionCall):
    """country:<address key> - resolves an address to a country code."""

    @property
    def argument(self) -> str:
        return self.args[0].value


# =============================================================================
# Definition
# =============================================================================

@dataclass(frozen=True)
class KeyDefinition:
    """Ordered, non-empty list of keys forming one flow key."""
    keys: Tuple[Key, ...]

    def __post_init__(self):
        object.__setattr__(self, 'keys', tuple(self.keys))
        if not self.keys:
            raise ValueError("KeyDefinition requires at least one key")

    def __len__(self) -> int:
        return len(self.keys)

    def __iter__(self) -> Iterator[Key]:
        return iter(self.keys)

    def __getitem__(self, index: int) -> Key:
        return self.keys[index]
