"""
Semantic checks for parsed key definitions.

Parsing already rejects everything the downstream flow engine cannot use.
These checks only report suspicious but valid definitions as warnings, plus
the name-similarity helpers used for "did you mean" hints.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .key_ast import (
    FunctionCall, GroupCall, Key, KeyDefinition, KeyFunction, KeyName, Nested,
)


@dataclass
class ValidationWarning:
    """A suspicious but valid construct, positioned by key index when possible."""
    message: str
    key_index: Optional[int] = None

    def __str__(self):
        loc = f"key {self.key_index}" if self.key_index is not None else "definition"
        return f"{loc}: {self.message}"


@dataclass
class ValidationResult:
    """Result of validation."""
    warnings: List[ValidationWarning] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def add_warning(self, message: str, key_index: Optional[int] = None):
        self.warnings.append(ValidationWarning(message, key_index))

    def merge(self, other: 'ValidationResult'):
        self.warnings.extend(other.warnings)

    def __str__(self):
        return "\n".join(str(item) for item in self.warnings)


# =============================================================================
# Similar-name suggestions
# =============================================================================

def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def find_similar(name: str, candidates: Iterable[str], max_distance: int = 3,
                 limit: int = 3) -> List[str]:
    """Candidates within `max_distance` edits of `name`, closest first."""
    scored = []
    for candidate in candidates:
        if candidate == name:
            continue
        distance = levenshtein_distance(name.lower(), candidate.lower())
        if distance <= max_distance:
            scored.append((distance, candidate))
    scored.sort()
    return [candidate for _, candidate in scored[:limit]]


def format_alternatives(names: Sequence[str]) -> str:
    if not names:
        return ""
    if len(names) == 1:
        return f"'{names[0]}'"
    return ", ".join(f"'{n}'" for n in names[:-1]) + f" or '{names[-1]}'"


# =============================================================================
# Definition checks
# =============================================================================

def _iter_calls(call: FunctionCall):
    yield call
    for arg in call.args:
        if isinstance(arg, Nested):
            yield from _iter_calls(arg.call)


def _key_calls(key: Key):
    if isinstance(key, KeyFunction):
        yield from _iter_calls(key.call)


def validate_group_labels(call: GroupCall, key_index: int) -> ValidationResult:
    result = ValidationResult()
    seen = set()
    for label in call.labels:
        if label in seen:
            result.add_warning(f"group label {label!r} is listed more than once", key_index)
        seen.add(label)
    return result


def validate_definition(definition: KeyDefinition) -> ValidationResult:
    """Report duplicated keys and duplicated group labels."""
    result = ValidationResult()
    seen_keys = {}

    for index, key in enumerate(definition.keys):
        if key in seen_keys:
            label = key.name if isinstance(key, KeyName) else f"{key.name}:..."
            result.add_warning(
                f"key {label!r} repeats key {seen_keys[key]}", index
            )
        else:
            seen_keys[key] = index

        for call in _key_calls(key):
            if isinstance(call, GroupCall):
                result.merge(validate_group_labels(call, index))

    return result
