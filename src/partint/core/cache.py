"""
Slot cache for partial-integral lists.

Each slot is addressed by a never-reused integer index and keyed by the
normalized names of two variable sets plus an interned range token. A slot
may be sterilized: its element is dropped while the key and the persisted
name descriptors survive, so the owner can rebuild the element into the same
slot later.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .exceptions import CacheError
from .names import RangeToken, intern_range
from .terms import RealTerm, Term, as_term_tuple

__all__ = [
    "CacheElement",
    "CacheManager",
    "cache_fingerprint",
    "cache_key_from_fingerprint",
    "name_set",
]

logger = logging.getLogger(__name__)


def name_set(variables: Optional[Iterable[Term]]) -> Tuple[str, ...]:
    if variables is None:
        return ()
    return tuple(sorted({var.name for var in as_term_tuple(variables)}))


@dataclass
class CacheElement:
    """
    Terms to multiply for one partial integral.

    ``product_list`` holds every factor in multiplication order. ``owned_list``
    holds only the factors synthesized for this element (sub-products and
    integral objects); they live exactly as long as the element.
    """

    product_list: List[RealTerm] = field(default_factory=list)
    owned_list: List[RealTerm] = field(default_factory=list)

    def add(self, term: RealTerm, *, owned: bool = False) -> None:
        self.product_list.append(term)
        if owned:
            self.own(term)

    def own(self, term: RealTerm) -> None:
        if not any(item is term for item in self.owned_list):
            self.owned_list.append(term)

    def contained_args(self) -> List[RealTerm]:
        return list(self.owned_list)

    def release(self) -> None:
        self.product_list.clear()
        self.owned_list.clear()


@dataclass
class _Slot:
    key: str
    name_set1: Tuple[str, ...]
    name_set2: Tuple[str, ...]
    range: Optional[RangeToken]
    element: Optional[CacheElement]
    last_used: int = 0


def cache_fingerprint(
    nset1: Optional[Iterable[Term]],
    nset2: Optional[Iterable[Term]] = None,
    range_name: Any = None,
) -> Dict[str, Any]:
    token = intern_range(range_name)
    return {
        "nset1": list(name_set(nset1)),
        "nset2": list(name_set(nset2)),
        "range": token.ident if token is not None else None,
    }


def cache_key_from_fingerprint(fingerprint: Dict[str, Any]) -> str:
    canonical = json.dumps(fingerprint, sort_keys=True, separators=(",", ":"), default=str).encode(
        "utf-8"
    )
    return hashlib.sha256(canonical).hexdigest()


class CacheManager:
    def __init__(self, max_size: int = 10, owner: Optional[str] = None):
        if int(max_size) <= 0:
            raise CacheError(f"Cache size must be positive; received {max_size}")
        self.max_size = int(max_size)
        self.owner = owner or "<anonymous>"
        self._slots: List[_Slot] = []
        self._index: Dict[str, int] = {}
        self._clock = 0
        self._last_index = -1

    # Lookup ------------------------------------------------------------------
    def get_obj(
        self,
        nset1: Optional[Iterable[Term]],
        nset2: Optional[Iterable[Term]] = None,
        range_name: Any = None,
    ) -> Tuple[Optional[CacheElement], Optional[int]]:
        """Return ``(element, sterile_index)``.

        ``sterile_index`` is set when the key is known but its slot has been
        sterilized; pass it back to :meth:`set_obj` to revive that slot.
        """

        key = cache_key_from_fingerprint(cache_fingerprint(nset1, nset2, range_name))
        index = self._index.get(key)
        if index is None:
            return None, None
        slot = self._slots[index]
        if slot.element is None:
            return None, index
        self._touch(slot)
        self._last_index = index
        return slot.element, None

    @property
    def last_index(self) -> int:
        return self._last_index

    def get_obj_by_index(self, index: int) -> Optional[CacheElement]:
        slot = self._slot(index)
        if slot.element is not None:
            self._touch(slot)
        return slot.element

    def name_set_by_index(self, index: int) -> Tuple[str, ...]:
        return self._slot(index).name_set1

    def name_set2_by_index(self, index: int) -> Tuple[str, ...]:
        return self._slot(index).name_set2

    def range_by_index(self, index: int) -> Optional[RangeToken]:
        return self._slot(index).range

    # Mutation ----------------------------------------------------------------
    def set_obj(
        self,
        nset1: Optional[Iterable[Term]],
        nset2: Optional[Iterable[Term]],
        element: CacheElement,
        range_name: Any = None,
        sterile_index: Optional[int] = None,
    ) -> int:
        fingerprint = cache_fingerprint(nset1, nset2, range_name)
        key = cache_key_from_fingerprint(fingerprint)
        index = self._index.get(key)
        if sterile_index is not None and sterile_index != index:
            raise CacheError(
                f"{self.owner}: sterile slot {sterile_index} does not hold key {fingerprint}"
            )
        if index is not None:
            slot = self._slots[index]
            if slot.element is not None:
                raise CacheError(f"{self.owner}: slot {index} for {fingerprint} is already filled")
            self._make_room()
            slot.element = element
            self._touch(slot)
            logger.debug("%s: revived cache slot %d for %s", self.owner, index, fingerprint)
        else:
            self._make_room()
            index = len(self._slots)
            slot = _Slot(
                key=key,
                name_set1=tuple(fingerprint["nset1"]),
                name_set2=tuple(fingerprint["nset2"]),
                range=intern_range(range_name),
                element=element,
            )
            self._touch(slot)
            self._slots.append(slot)
            self._index[key] = index
        self._last_index = index
        return index

    def sterilize(self) -> None:
        """Drop every cached element, keeping keys so slots can be revived."""

        count = 0
        for slot in self._slots:
            if slot.element is not None:
                slot.element.release()
                slot.element = None
                count += 1
        if count:
            logger.info("%s: sterilized %d cache slot(s)", self.owner, count)

    def sterilize_index(self, index: int) -> None:
        slot = self._slot(index)
        if slot.element is not None:
            slot.element.release()
            slot.element = None
            logger.info("%s: sterilized cache slot %d", self.owner, index)

    # Introspection -----------------------------------------------------------
    def __len__(self) -> int:
        return len(self._slots)

    def live_count(self) -> int:
        return sum(1 for slot in self._slots if slot.element is not None)

    def is_sterile(self, index: int) -> bool:
        return self._slot(index).element is None

    # Helpers -----------------------------------------------------------------
    def _slot(self, index: int) -> _Slot:
        if not isinstance(index, int) or index < 0 or index >= len(self._slots):
            raise CacheError(f"{self.owner}: unknown cache index {index!r}")
        return self._slots[index]

    def _touch(self, slot: _Slot) -> None:
        self._clock += 1
        slot.last_used = self._clock

    def _make_room(self) -> None:
        live = [(slot.last_used, idx) for idx, slot in enumerate(self._slots) if slot.element is not None]
        while len(live) >= self.max_size:
            live.sort()
            _, victim = live.pop(0)
            self.sterilize_index(victim)
