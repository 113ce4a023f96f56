from __future__ import annotations

import itertools
import logging
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import IntegrationConfig
from .exceptions import ConfigurationError, IntegrationError
from .names import intern_range
from .terms import RangeName, RealTerm, RealVariable, Term, as_term_tuple

__all__ = ["Integral", "RangeVolume", "gauss_legendre_rule"]

logger = logging.getLogger(__name__)


def gauss_legendre_rule(lo: float, hi: float, points: int) -> Tuple[np.ndarray, np.ndarray]:
    """Nodes and weights of a ``points``-node Gauss-Legendre rule on ``[lo, hi]``."""

    nodes, weights = np.polynomial.legendre.leggauss(int(points))
    half = 0.5 * (hi - lo)
    mid = 0.5 * (hi + lo)
    return half * nodes + mid, half * weights


def _integration_variables(
    owner: str,
    variables: Union[Term, Iterable[Term]],
    range_name: RangeName,
) -> Tuple[RealVariable, ...]:
    result = as_term_tuple(variables)
    if not result:
        raise ConfigurationError(f"Integral of '{owner}' requires at least one variable")
    for var in result:
        if not isinstance(var, RealVariable):
            raise ConfigurationError(
                f"Cannot integrate '{owner}' over {var!r}: not a real variable"
            )
        if not var.has_range(range_name):
            raise ConfigurationError(
                f"Variable '{var.name}' has no range named '{range_name}'"
            )
    return result  # type: ignore[return-value]


def _integral_name(base: str, variables: Sequence[Term], range_name: RangeName) -> str:
    name = f"{base}_Int[{','.join(var.name for var in variables)}]"
    if range_name is not None:
        name = f"{name}_{range_name}"
    return name


class RangeVolume(RealTerm):
    """Product of the range widths of ``variables``: the integral of ``1``."""

    def __init__(self, name: str, variables: Sequence[Term], range_name: RangeName = None):
        super().__init__(name)
        self.variables = _integration_variables(name, variables, range_name)
        self.range = intern_range(range_name)

    def evaluate(self) -> float:
        volume = 1.0
        for var in self.variables:
            volume *= var.width(self.range)
        return volume


class Integral(RealTerm):
    """
    Integral of a real term over a set of real variables.

    Construction asks the integrand for an analytic integration code covering
    the variables it depends on. Variables left over are integrated with a
    tensor Gauss-Legendre rule, evaluating the analytic partial integral (if
    any) at each node. Variables the integrand does not depend on contribute
    their range width.
    """

    def __init__(
        self,
        integrand: RealTerm,
        variables: Union[Term, Iterable[Term]],
        range_name: RangeName = None,
        *,
        config: Optional[IntegrationConfig] = None,
        name: Optional[str] = None,
    ):
        int_vars = _integration_variables(integrand.name, variables, range_name)
        super().__init__(
            name or _integral_name(integrand.name, int_vars, range_name),
            servers=(integrand,),
        )
        self.config = (config or IntegrationConfig()).normalized()
        self.integrand = integrand
        self.variables = int_vars
        self.range = intern_range(range_name)

        dependent = [var for var in int_vars if integrand.depends_on(var)]
        self.factorized = tuple(var for var in int_vars if not integrand.depends_on(var))

        code, anal_vars = (0, ())
        if dependent:
            code, anal_vars = integrand.get_analytical_integral(dependent, self.range)
        anal_vars = as_term_tuple(anal_vars)
        if code == 0:
            anal_vars = ()
        stray = [var.name for var in anal_vars if not any(var is d for d in dependent)]
        if stray:
            raise IntegrationError(
                f"'{integrand.name}' claimed analytic integration over unrequested "
                f"variables {stray}"
            )
        self.analytic_code = int(code)
        self.analytic_vars = anal_vars
        self.numeric_vars: Tuple[RealVariable, ...] = tuple(
            var for var in dependent if not any(var is a for a in anal_vars)
        )
        if self.numeric_vars and not self.config.allow_numeric:
            raise IntegrationError(
                f"No analytic integral of '{integrand.name}' over "
                f"{[var.name for var in self.numeric_vars]} and numeric integration is disabled"
            )
        logger.debug(
            "Integral(%s) analytic code %d over %s, numeric over %s, factorized %s",
            self.name,
            self.analytic_code,
            [var.name for var in self.analytic_vars],
            [var.name for var in self.numeric_vars],
            [var.name for var in self.factorized],
        )

    def dependents(self) -> Tuple[Term, ...]:
        nodes = (self.integrand,) + self.integrand.dependents()
        return tuple(node for node in nodes if not any(node is var for var in self.variables))

    def evaluate(self) -> float:
        volume = 1.0
        for var in self.factorized:
            volume *= var.width(self.range)
        if not self.numeric_vars:
            return volume * self._inner()
        return volume * self._quadrature()

    def _inner(self) -> float:
        if self.analytic_code:
            return float(self.integrand.analytical_integral(self.analytic_code, self.range))
        return self.integrand.get_value()

    def _quadrature(self) -> float:
        rules: List[Tuple[np.ndarray, np.ndarray]] = []
        for var in self.numeric_vars:
            lo, hi = var.get_range(self.range)
            if not (np.isfinite(lo) and np.isfinite(hi)):
                raise IntegrationError(
                    f"Cannot integrate '{self.integrand.name}' numerically over "
                    f"unbounded variable '{var.name}'"
                )
            rules.append(gauss_legendre_rule(lo, hi, self.config.quadrature_points))

        saved = [var.value for var in self.numeric_vars]
        total = 0.0
        try:
            for point in itertools.product(*(range(len(nodes)) for nodes, _ in rules)):
                weight = 1.0
                for var, (nodes, weights), idx in zip(self.numeric_vars, rules, point):
                    var.value = nodes[idx]
                    weight *= weights[idx]
                total += weight * self._inner()
        finally:
            for var, value in zip(self.numeric_vars, saved):
                var.value = value
        return float(total)
