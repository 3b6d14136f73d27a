"""
Function registry.

Describes the argument shape of every supported key function so the parser
can validate and build calls without any per-function code. Registering a
new function means adding a FunctionShape, optionally with its own
FunctionCall subclass as constructor.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

from .key_ast import Argument, CountryCall, FunctionCall, GroupCall


class ArgKind(Enum):
    """What an argument position accepts."""
    LITERAL = "literal"                  # bare identifier only
    KEY = "key"                          # catalog key name or [nested call]
    KEY_OR_LITERAL = "key_or_literal"    # bare literal or [nested call]


@dataclass(frozen=True)
class Arity:
    """Exact argument count, or a minimum for variadic functions."""
    minimum: int
    variadic: bool = False

    @classmethod
    def exact(cls, n: int) -> 'Arity':
        return cls(n, False)

    @classmethod
    def at_least(cls, n: int) -> 'Arity':
        return cls(n, True)

    @property
    def maximum(self) -> Optional[int]:
        return None if self.variadic else self.minimum

    def accepts(self, count: int) -> bool:
        if self.variadic:
            return count >= self.minimum
        return count == self.minimum

    def __str__(self):
        if self.variadic:
            return f"at least {self.minimum}"
        return f"exactly {self.minimum}"


Constructor = Callable[[str, Tuple[Argument, ...]], FunctionCall]


@dataclass(frozen=True)
class FunctionShape:
    """Registry entry for one key function."""
    name: str
    arity: Arity
    arg_kinds: Tuple[ArgKind, ...]
    trailing_labels: bool = False
    constructor: Constructor = field(default=FunctionCall, compare=False)
    description: str = field(default="", compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'arg_kinds', tuple(self.arg_kinds))
        if not self.arg_kinds:
            raise ValueError(f"Function {self.name!r} must declare at least one argument kind")
        if self.arity.minimum < 1:
            raise ValueError(f"Function {self.name!r} must take at least one argument")
        if self.trailing_labels and not self.arity.variadic:
            raise ValueError(f"Function {self.name!r} has trailing labels but a fixed arity")

    def kind_at(self, index: int) -> Optional[ArgKind]:
        """Kind expected at argument position `index`, None if past the arity."""
        if index < len(self.arg_kinds):
            return self.arg_kinds[index]
        if self.trailing_labels:
            return ArgKind.LITERAL
        if self.arity.variadic:
            return self.arg_kinds[-1]
        if index < self.arity.minimum:
            return self.arg_kinds[-1]
        return None

    def build(self, args: Sequence[Argument]) -> FunctionCall:
        return self.constructor(self.name, tuple(args))


# =============================================================================
# Built-in functions
# =============================================================================

BUILTIN_FUNCTIONS = (
    FunctionShape(
        name="group",
        arity=Arity.at_least(2),
        arg_kinds=(ArgKind.KEY,),
        trailing_labels=True,
        constructor=GroupCall,
        description="classify a key's value into one of the listed groups",
    ),
    FunctionShape(
        name="country",
        arity=Arity.exact(1),
        arg_kinds=(ArgKind.LITERAL,),
        constructor=CountryCall,
        description="country code of an address key",
    ),
    FunctionShape(
        name="asn",
        arity=Arity.exact(1),
        arg_kinds=(ArgKind.LITERAL,),
        description="autonomous system number of an address key",
    ),
    FunctionShape(
        name="or",
        arity=Arity.at_least(2),
        arg_kinds=(ArgKind.KEY,),
        description="first of the keys that has a value",
    ),
    FunctionShape(
        name="null",
        arity=Arity.exact(2),
        arg_kinds=(ArgKind.KEY, ArgKind.LITERAL),
        description="a key's value, or the given default when it has none",
    ),
)


class FunctionRegistry:
    """Read-only table of key functions. Lookup is case-sensitive."""

    def __init__(self, shapes: Iterable[FunctionShape] = ()):
        table = {}
        for shape in shapes:
            if shape.name in table:
                raise ValueError(f"Duplicate function in registry: {shape.name!r}")
            table[shape.name] = shape
        self._shapes = MappingProxyType(table)

    def lookup(self, name: str) -> Optional[FunctionShape]:
        return self._shapes.get(name)

    def names(self) -> List[str]:
        return list(self._shapes)

    def extended(self, shapes: Iterable[FunctionShape]) -> 'FunctionRegistry':
        """Return a new registry with `shapes` added."""
        return FunctionRegistry(list(self._shapes.values()) + list(shapes))

    def __contains__(self, name: object) -> bool:
        return name in self._shapes

    def __iter__(self) -> Iterator[FunctionShape]:
        return iter(self._shapes.values())

    def __len__(self) -> int:
        return len(self._shapes)

    def __repr__(self):
        return f"FunctionRegistry({', '.join(self._shapes)})"


DEFAULT_REGISTRY = FunctionRegistry(BUILTIN_FUNCTIONS)
