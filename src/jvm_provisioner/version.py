"""Java version numbers and version constraints.

Versions are compared component-wise: ``1.8.0_252`` splits into
``(1, 8, 0, 252)`` and ``1.8.9`` ranks below ``1.8.10``. Constraints follow
the notation launchers already use in descriptors:

- ``11.0.2``  -- exact version
- ``1.8*``    -- prefix: any ``1.8.x``
- ``11+``     -- the given version or newer
- ``*``       -- any version
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from functools import total_ordering
from typing import Any, Union

from .errors import InvalidVersionFormat

_SEPARATORS = re.compile(r"[._\-+]")
_FORBIDDEN = re.compile(r"[\s*]")

# (rank, number, text): numeric components rank above textual ones.
_Component = tuple[int, int, str]
_ZERO: _Component = (1, 0, "")


def _component(token: str) -> _Component:
    if token.isdigit():
        return (1, int(token), "")
    return (0, 0, token)


@total_ordering
class Version:
    """A parsed dotted version string."""

    __slots__ = ("text", "parts")

    def __init__(self, text: str):
        if not isinstance(text, str):
            raise InvalidVersionFormat(repr(text), "expected a string")
        stripped = text.strip()
        if not stripped:
            raise InvalidVersionFormat(text, "empty version")
        if _FORBIDDEN.search(stripped) or stripped.endswith("+"):
            raise InvalidVersionFormat(text, "not a plain version")
        tokens = _SEPARATORS.split(stripped)
        if any(token == "" for token in tokens):
            raise InvalidVersionFormat(text, "empty component")
        self.text = stripped
        self.parts: tuple[_Component, ...] = tuple(_component(t) for t in tokens)

    @classmethod
    def parse(cls, value: "Version | str") -> "Version":
        if isinstance(value, Version):
            return value
        return cls(value)

    def _normalized(self) -> tuple[_Component, ...]:
        parts = list(self.parts)
        while len(parts) > 1 and parts[-1] == _ZERO:
            parts.pop()
        return tuple(parts)

    def _padded(self, length: int) -> tuple[_Component, ...]:
        return self.parts + (_ZERO,) * (length - len(self.parts))

    def startswith(self, prefix: "Version") -> bool:
        """True if this version's leading components equal all of *prefix*'s."""
        if len(self.parts) < len(prefix.parts):
            return False
        return self.parts[: len(prefix.parts)] == prefix.parts

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._normalized() == other._normalized()

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        length = max(len(self.parts), len(other.parts))
        return self._padded(length) < other._padded(length)

    def __hash__(self) -> int:
        return hash(self._normalized())

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"Version({self.text!r})"

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> Any:
        from pydantic_core import core_schema

        return core_schema.no_info_plain_validator_function(
            cls.parse,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )


class SpecKind(IntEnum):
    """Constraint kinds, ordered by specificity."""

    ANY = 0
    AT_LEAST = 1
    PREFIX = 2
    EXACT = 3


@dataclass(frozen=True)
class VersionSpec:
    """An immutable version constraint."""

    kind: SpecKind
    base: Version | None
    raw: str

    @classmethod
    def parse(cls, text: str) -> "VersionSpec":
        """Parse a constraint, raising InvalidVersionFormat when malformed."""
        if not isinstance(text, str):
            raise InvalidVersionFormat(repr(text), "expected a string")
        stripped = text.strip()
        if not stripped:
            raise InvalidVersionFormat(text, "empty version constraint")
        if stripped == "*" or stripped.lower() == "any":
            return cls(SpecKind.ANY, None, "*")
        if stripped.endswith("*"):
            body = stripped[:-1].rstrip("._-")
            if not body:
                raise InvalidVersionFormat(text, "missing prefix before wildcard")
            return cls(SpecKind.PREFIX, Version(body), f"{body}*")
        if stripped.endswith("+"):
            body = stripped[:-1]
            if not body:
                raise InvalidVersionFormat(text, "missing version before '+'")
            return cls(SpecKind.AT_LEAST, Version(body), f"{body}+")
        return cls(SpecKind.EXACT, Version(stripped), stripped)

    @classmethod
    def any(cls) -> "VersionSpec":
        return cls(SpecKind.ANY, None, "*")

    def matches(self, candidate: Union[Version, str]) -> bool:
        version = Version.parse(candidate)
        if self.kind is SpecKind.ANY:
            return True
        assert self.base is not None
        if self.kind is SpecKind.EXACT:
            return version == self.base
        if self.kind is SpecKind.PREFIX:
            return version.startswith(self.base)
        return version >= self.base

    def match_specificity(self, candidate: Union[Version, str]) -> SpecKind:
        """How precisely *candidate* satisfies this constraint.

        A match is as specific as the constraint that made it, so ``17``
        under ``17*`` is a prefix hit and does not outrank ``17.0.8``.
        Returns ANY for candidates the constraint rejects.
        """
        if not self.matches(candidate):
            return SpecKind.ANY
        return self.kind

    def compare_specificity(self, other: "VersionSpec") -> int:
        """Return 1 if this constraint is more specific than *other*, -1 if less, else 0."""
        return (self.kind > other.kind) - (self.kind < other.kind)

    def __str__(self) -> str:
        return self.raw
