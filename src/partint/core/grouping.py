"""
Partition product terms into independently integrable groups.

A group pairs a set of integration variables with the product terms depending
on at least one of them. Groups whose term sets overlap are merged until the
groups form the connected components of the (variable, term) incidence graph.
Terms that depend on none of the integration variables form one extra group
with an empty variable set, emitted first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from .exceptions import GroupingError
from .terms import RealTerm, Term, as_term_tuple

__all__ = ["Group", "group_product_terms", "find_overlap", "format_groups", "same_partition"]


@dataclass
class Group:
    variables: List[Term] = field(default_factory=list)
    terms: List[RealTerm] = field(default_factory=list)

    def overlaps(self, other: "Group") -> bool:
        mine = {id(term) for term in self.terms}
        return any(id(term) in mine for term in other.terms)

    def absorb(self, other: "Group") -> None:
        _extend_unique(self.variables, other.variables)
        _extend_unique(self.terms, other.terms)

    @property
    def is_integrated(self) -> bool:
        return bool(self.variables)

    def variable_names(self) -> Tuple[str, ...]:
        return tuple(var.name for var in self.variables)

    def term_names(self) -> Tuple[str, ...]:
        return tuple(term.name for term in self.terms)


def _extend_unique(target: List, items: Iterable) -> None:
    seen = {id(item) for item in target}
    for item in items:
        if id(item) not in seen:
            seen.add(id(item))
            target.append(item)


def find_overlap(groups: Sequence[Group]) -> Optional[Tuple[int, int]]:
    """First pair ``(i, j)`` with ``i < j`` whose term sets overlap."""

    # Quadratic in the number of groups; products are small.
    for i in range(len(groups)):
        for j in range(i + 1, len(groups)):
            if groups[i].overlaps(groups[j]):
                return i, j
    return None


def group_product_terms(
    terms: Sequence[RealTerm],
    integration_vars: Iterable[Term],
) -> List[Group]:
    all_vars = as_term_tuple(integration_vars)
    groups: List[Group] = []

    independent = [term for term in terms if not term.depends_on(all_vars)]
    if independent:
        groups.append(Group(variables=[], terms=independent))

    for var in all_vars:
        groups.append(
            Group(variables=[var], terms=[term for term in terms if term.depends_on(var)])
        )

    while True:
        pair = find_overlap(groups)
        if pair is None:
            break
        first, second = pair
        groups[first].absorb(groups[second])
        del groups[second]

    n_vars = sum(len(group.variables) for group in groups)
    n_terms = sum(len(group.terms) for group in groups)
    if n_vars != len(all_vars) or n_terms != len(terms):
        raise GroupingError(
            f"Inconsistent term grouping {format_groups(groups)}: "
            f"{n_vars} of {len(all_vars)} variables and "
            f"{n_terms} of {len(terms)} terms accounted for"
        )
    return groups


def format_groups(groups: Sequence[Group]) -> str:
    parts = [
        f"({','.join(group.variable_names())}) -> ({','.join(group.term_names())})"
        for group in groups
    ]
    return f"[ {' , '.join(parts)} ]"


def same_partition(left: Sequence[Group], right: Sequence[Group]) -> bool:
    """True when both groupings contain the same (variables, terms) cells."""

    def cells(groups: Sequence[Group]):
        return sorted(
            (
                tuple(sorted(group.variable_names())),
                tuple(sorted(group.term_names())),
            )
            for group in groups
        )

    return cells(left) == cells(right)
