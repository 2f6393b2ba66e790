"""Allow/deny matching of request actions against configured patterns.

Patterns form a closed set of kinds:

- ``*`` matches every action, the empty string included;
- ``prefix*`` matches any action starting with ``prefix``;
- anything else must equal the action exactly (case-sensitive).

A ``*`` anywhere but the end raises :class:`InvalidPatternError`.

:meth:`ActionMatcher.matches` answers whether CSRF enforcement applies: the
action must match some allow pattern and no deny pattern. Deny wins on
overlap.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

WILDCARD = "*"

__all__ = ["ActionMatcher", "InvalidPatternError", "Pattern", "WILDCARD", "compile_patterns"]


class InvalidPatternError(ValueError):
    """A pattern uses ``*`` anywhere other than its last character."""


@dataclass(frozen=True)
class Pattern:
    """A single compiled action pattern."""

    raw: str
    prefix: Optional[str] = None

    @classmethod
    def parse(cls, raw: str) -> "Pattern":
        if WILDCARD in raw[:-1]:
            raise InvalidPatternError(
                f"Invalid action pattern {raw!r}: '*' is only allowed as the last character"
            )
        if raw == WILDCARD:
            return cls(raw=raw, prefix="")
        if raw.endswith(WILDCARD):
            return cls(raw=raw, prefix=raw[: -len(WILDCARD)])
        return cls(raw=raw)

    @property
    def is_wildcard(self) -> bool:
        return self.prefix is not None

    def match(self, action: str) -> bool:
        if self.prefix is None:
            return action == self.raw
        return action.startswith(self.prefix)


def compile_patterns(raw_patterns: Iterable[str] | None) -> Tuple[Pattern, ...]:
    """Compile ``raw_patterns``, skipping blank entries."""

    compiled = []
    for raw in raw_patterns or ():
        if raw is None:
            continue
        value = str(raw).strip()
        if value:
            compiled.append(Pattern.parse(value))
    return tuple(compiled)


@dataclass(frozen=True)
class ActionMatcher:
    allow: Tuple[Pattern, ...] = field(default_factory=lambda: (Pattern.parse(WILDCARD),))
    deny: Tuple[Pattern, ...] = ()

    @classmethod
    def from_lists(
        cls,
        allow: Iterable[str] | None = None,
        deny: Iterable[str] | None = None,
    ) -> "ActionMatcher":
        """Build a matcher; an empty allow list behaves as ``["*"]``."""

        allow_patterns = compile_patterns(allow)
        if not allow_patterns:
            allow_patterns = (Pattern.parse(WILDCARD),)
        return cls(allow=allow_patterns, deny=compile_patterns(deny))

    def allowed(self, action: str) -> bool:
        return any(pattern.match(action) for pattern in self.allow)

    def denied(self, action: str) -> bool:
        return any(pattern.match(action) for pattern in self.deny)

    def matches(self, action: str) -> bool:
        """Return ``True`` when ``action`` requires a CSRF check."""

        if self.denied(action):
            return False
        return self.allowed(action)
