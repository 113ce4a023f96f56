"""
Interning table for integration range names.

Cache keys compare range names by token, never by string content, so two
textually equal names must always resolve to the same :class:`RangeToken`.
``None`` stands for "no range" (the variable's full domain) and is never
interned.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

__all__ = ["RangeToken", "NameRegistry", "intern_range", "default_registry"]


@dataclass(frozen=True)
class RangeToken:
    ident: int
    name: str

    def __str__(self) -> str:
        return self.name


class NameRegistry:
    def __init__(self):
        self._tokens: Dict[str, RangeToken] = {}
        self._names: List[str] = []

    def intern(self, name: Optional[str]) -> Optional[RangeToken]:
        if name is None:
            return None
        key = name.name if isinstance(name, RangeToken) else str(name)
        token = self._tokens.get(key)
        if token is None:
            token = RangeToken(ident=len(self._names) + 1, name=key)
            self._tokens[key] = token
            self._names.append(key)
        return token

    def lookup(self, name: str) -> Optional[RangeToken]:
        return self._tokens.get(name)

    def name_of(self, ident: int) -> str:
        if ident < 1 or ident > len(self._names):
            raise KeyError(f"Unknown range token {ident}")
        return self._names[ident - 1]

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._tokens


_DEFAULT = NameRegistry()


def default_registry() -> NameRegistry:
    return _DEFAULT


def intern_range(name: Optional[str]) -> Optional[RangeToken]:
    """Resolve ``name`` to its process-wide token (``None`` stays ``None``)."""

    return _DEFAULT.intern(name)
