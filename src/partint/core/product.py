from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .cache import CacheElement, CacheManager
from .config import IntegrationConfig
from .exceptions import CacheError, ConfigurationError, IntegrationError
from .grouping import Group, format_groups, group_product_terms
from .integral import RangeVolume
from .names import intern_range
from .terms import CategoryTerm, RangeName, RealTerm, Term, as_term_tuple

__all__ = ["Product"]

logger = logging.getLogger(__name__)


class Product(RealTerm):
    """
    Product of real and category terms.

    The value multiplies every real term (evaluated under the product's
    normalization set) and the current index of every category term.

    Integration over a set of variables is factorized: terms are grouped by
    shared dependence on the integration variables and every group is
    integrated on its own. The resulting list of factors is cached per
    (variables, range) and addressed by an integer code, see
    :meth:`get_analytical_integral` and :meth:`analytical_integral`.
    """

    def __init__(
        self,
        name: str,
        terms: Iterable[Term],
        *,
        config: Optional[IntegrationConfig] = None,
        title: Optional[str] = None,
    ):
        if not name:
            raise ConfigurationError("Product requires a non-empty name")
        real_terms: List[RealTerm] = []
        category_terms: List[CategoryTerm] = []
        seen: Dict[str, Term] = {}
        for term in terms:
            if isinstance(term, RealTerm):
                bucket = real_terms
            elif isinstance(term, CategoryTerm):
                bucket = category_terms
            else:
                raise ConfigurationError(
                    f"Product '{name}': component {term!r} is neither a real nor a category term"
                )
            previous = seen.get(term.name)
            if previous is not None:
                if previous is term:
                    continue
                raise ConfigurationError(
                    f"Product '{name}': duplicate component name '{term.name}'"
                )
            seen[term.name] = term
            bucket.append(term)
        super().__init__(
            name,
            servers=tuple(real_terms) + tuple(category_terms),
            title=title,
        )
        self.config = (config or IntegrationConfig()).normalized()
        self.real_terms: Tuple[RealTerm, ...] = tuple(real_terms)
        self.category_terms: Tuple[CategoryTerm, ...] = tuple(category_terms)
        self.normalization_set: Optional[Tuple[Term, ...]] = None
        self.cache = CacheManager(self.config.cache_size, owner=f"Product({self.name})")
        self._integration_vars: Dict[str, Term] = {}

    # Evaluation ----------------------------------------------------------------
    def get_value(self, nset: Optional[Sequence[Term]] = None) -> float:
        return self._product_value(nset if nset is not None else self.normalization_set)

    def evaluate(self) -> float:
        return self._product_value(self.normalization_set)

    def _product_value(self, nset: Optional[Sequence[Term]]) -> float:
        prod = 1.0
        for term in self.real_terms:
            prod *= term.get_value(nset)
        return prod * self._category_factor()

    def _category_factor(self) -> float:
        prod = 1.0
        for term in self.category_terms:
            prod *= term.index
        return prod

    @staticmethod
    def calculate(partial_terms: Iterable[RealTerm]) -> float:
        val = 1.0
        for term in partial_terms:
            val *= term.get_value()
        return val

    def variables(self) -> Tuple[Term, ...]:
        return self.leaves()

    # Grouping ------------------------------------------------------------------
    def groups(self, integration_vars: Union[Term, Iterable[Term]]) -> List[Group]:
        return group_product_terms(self.real_terms, as_term_tuple(integration_vars))

    def describe_groups(self, integration_vars: Union[Term, Iterable[Term]]) -> str:
        return format_groups(self.groups(integration_vars))

    # Analytic integration --------------------------------------------------------
    def force_analytical_integral(self, var: Term) -> bool:
        return any(term.depends_on(var) for term in self.real_terms)

    def get_analytical_integral(
        self,
        all_vars: Sequence[Term],
        range_name: RangeName = None,
        nset: Optional[Sequence[Term]] = None,
    ) -> Tuple[int, Tuple[Term, ...]]:
        if self.config.force_numeric:
            return 0, ()
        if nset:
            raise ConfigurationError(
                f"Product '{self.name}' does not support normalized analytic integrals"
            )
        anal_vars = as_term_tuple(all_vars)
        code = self.get_partial_integral_list(anal_vars, range_name) + 1
        if code == 0:
            return 0, ()
        return code, anal_vars

    def analytical_integral(self, code: int, range_name: RangeName = None) -> float:
        # The range is encoded in the code; see get_partial_integral_list.
        if not isinstance(code, int) or code < 1:
            raise IntegrationError(f"Product '{self.name}': invalid integration code {code!r}")
        element = self.cache.get_obj_by_index(code - 1)
        if element is None:
            names = set(self.cache.name_set_by_index(code - 1))
            token = self.cache.range_by_index(code - 1)
            iset = tuple(
                var for name, var in sorted(self._integration_vars.items()) if name in names
            )
            logger.debug(
                "Product(%s) cache slot %d was sterilized, reviving for %s range %s",
                self.name,
                code - 1,
                sorted(names),
                token,
            )
            code2 = self.get_partial_integral_list(iset, token) + 1
            if code2 != code:
                raise CacheError(
                    f"Product '{self.name}': revival of code {code} produced code {code2}"
                )
            return self.analytical_integral(code2, range_name)
        # Category terms are never integrated; they scale every partial list.
        return self.calculate(element.product_list) * self._category_factor()

    def get_partial_integral_list(
        self,
        iset: Union[Term, Iterable[Term]],
        range_name: RangeName = None,
    ) -> int:
        """Return the 0-based cache code for the factorized integral, or -1.

        -1 means fewer than two groups were found, so factorizing gains
        nothing and nothing is cached.
        """

        iset = as_term_tuple(iset)
        token = intern_range(range_name)
        element, sterile_index = self.cache.get_obj(iset, iset, token)
        if element is not None:
            return self.cache.last_index

        groups = group_product_terms(self.real_terms, iset)
        logger.debug("Product(%s) grouped product terms %s", self.name, format_groups(groups))

        if len(groups) < 2:
            return -1

        element = self._build_partial_integrals(groups, token)
        code = self.cache.set_obj(iset, iset, element, token, sterile_index=sterile_index)
        for var in iset:
            self._integration_vars.setdefault(var.name, var)
        logger.debug(
            "Product(%s) created list %s with code %d for iset=%s range: %s",
            self.name,
            [term.name for term in element.product_list],
            code + 1,
            [var.name for var in iset],
            token if token is not None else "<none>",
        )
        return code

    def _build_partial_integrals(self, groups: Sequence[Group], range_name: RangeName) -> CacheElement:
        element = CacheElement()
        for group in groups:
            if not group.terms:
                # No term depends on these variables: integrating 1 gives the volume.
                term: RealTerm = RangeVolume(
                    f"VOLUME_{'_X_'.join(sorted(group.variable_names()))}",
                    group.variables,
                    range_name,
                )
                element.add(term, owned=True)
                logger.debug("Product(%s) adding volume factor %s", self.name, term.name)
                continue
            if len(group.terms) > 1:
                name = self.sub_product_name(group.terms)
                term = Product(name, group.terms, config=self.config)
                element.own(term)
                logger.debug("Product(%s) created subexpression %s", self.name, term.name)
            else:
                term = group.terms[0]

            if not group.variables:
                element.add(term)
                logger.debug("Product(%s) adding simple factor %s", self.name, term.name)
                continue

            integral = term.create_integral(group.variables, range_name, config=self.config)
            if integral is None:
                raise IntegrationError(
                    f"Product '{self.name}': '{term.name}' cannot be integrated over "
                    f"{list(group.variable_names())}"
                )
            element.add(integral, owned=True)
            logger.debug(
                "Product(%s) adding integral for %s : %s", self.name, term.name, integral.name
            )
        return element

    def sub_product_name(self, terms: Iterable[Term]) -> str:
        return self.config.name_prefix + "_X_".join(sorted(term.name for term in terms))

    def sterilize(self) -> None:
        self.cache.sterilize()
