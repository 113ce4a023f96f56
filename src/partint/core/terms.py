"""
Term model and dependency oracle.

Every quantity that can appear in a product is a :class:`Term`. Real-valued
terms derive from :class:`RealTerm`, discrete ones from :class:`CategoryTerm`.
Leaf variables (:class:`RealVariable`, :class:`Category`) are the only terms
whose :meth:`Term.leaves` contain themselves; everything else depends on the
leaves of its servers.
"""

from __future__ import annotations

import math
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterable,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import numpy as np

from .exceptions import ConfigurationError, IntegrationError
from .names import RangeToken

if TYPE_CHECKING:
    from .config import IntegrationConfig
    from .integral import Integral

__all__ = [
    "Term",
    "RealTerm",
    "CategoryTerm",
    "RealVariable",
    "Category",
    "Constant",
    "Polynomial",
    "Exponential",
    "Function",
    "as_term_tuple",
]

RangeName = Union[str, RangeToken, None]


def as_term_tuple(target: Union["Term", Iterable["Term"]]) -> Tuple["Term", ...]:
    if isinstance(target, Term):
        return (target,)
    ordered: Dict[int, Term] = {}
    for item in target:
        if not isinstance(item, Term):
            raise ConfigurationError(f"Expected a term, received {item!r}")
        ordered.setdefault(id(item), item)
    return tuple(ordered.values())


def _range_key(range_name: RangeName) -> Optional[str]:
    if range_name is None:
        return None
    return str(range_name)


class Term:
    is_variable = False

    def __init__(self, name: str, servers: Sequence["Term"] = (), title: Optional[str] = None):
        if not name:
            raise ConfigurationError(f"{type(self).__name__} requires a non-empty name")
        self.name = str(name)
        self.title = title or self.name
        self.servers: Tuple[Term, ...] = tuple(servers)

    def dependents(self) -> Tuple["Term", ...]:
        """Every term this term's value is computed from, in first-seen order."""

        if self.is_variable:
            return (self,)
        ordered: Dict[int, Term] = {}
        for server in self.servers:
            ordered.setdefault(id(server), server)
            for node in server.dependents():
                ordered.setdefault(id(node), node)
        return tuple(ordered.values())

    def leaves(self) -> Tuple["Term", ...]:
        """Leaf variables this term depends on, in first-seen order."""

        return tuple(node for node in self.dependents() if node.is_variable)

    def depends_on(self, target: Union["Term", Iterable["Term"]]) -> bool:
        targets = as_term_tuple(target)
        node_ids = {id(node) for node in self.dependents()}
        return any(item is self or id(item) in node_ids for item in targets)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class RealTerm(Term):
    def evaluate(self) -> float:
        raise NotImplementedError

    def get_value(self, nset: Optional[Sequence[Term]] = None) -> float:
        return float(self.evaluate())

    def force_analytical_integral(self, var: Term) -> bool:
        return False

    def get_analytical_integral(
        self,
        all_vars: Sequence[Term],
        range_name: RangeName = None,
    ) -> Tuple[int, Tuple[Term, ...]]:
        """Return ``(code, analytic_vars)``; code ``0`` means nothing analytic."""

        return 0, ()

    def analytical_integral(self, code: int, range_name: RangeName = None) -> float:
        raise IntegrationError(
            f"{type(self).__name__} '{self.name}' has no analytic integral for code {code}"
        )

    def create_integral(
        self,
        variables: Union[Term, Iterable[Term]],
        range_name: RangeName = None,
        *,
        config: Optional["IntegrationConfig"] = None,
    ) -> Optional["Integral"]:
        from .integral import Integral

        return Integral(self, variables, range_name, config=config)


class CategoryTerm(Term):
    @property
    def index(self) -> int:
        raise NotImplementedError

    @property
    def label(self) -> str:
        raise NotImplementedError


class RealVariable(RealTerm):
    is_variable = True

    def __init__(
        self,
        name: str,
        value: float,
        minimum: float,
        maximum: float,
        title: Optional[str] = None,
    ):
        super().__init__(name, title=title)
        self._default_range = _checked_range(self.name, minimum, maximum)
        self._ranges: Dict[str, Tuple[float, float]] = {}
        self.value = value

    @property
    def value(self) -> float:
        return self._value

    @value.setter
    def value(self, value: float) -> None:
        self._value = float(value)

    def set_range(self, range_name: str, minimum: float, maximum: float) -> None:
        key = _range_key(range_name)
        if not key:
            raise ConfigurationError(f"Range on '{self.name}' requires a name")
        self._ranges[key] = _checked_range(self.name, minimum, maximum)

    def has_range(self, range_name: RangeName) -> bool:
        key = _range_key(range_name)
        return key is None or key in self._ranges

    def get_range(self, range_name: RangeName = None) -> Tuple[float, float]:
        key = _range_key(range_name)
        if key is None:
            return self._default_range
        try:
            return self._ranges[key]
        except KeyError:
            raise ConfigurationError(
                f"Variable '{self.name}' has no range named '{key}'"
            ) from None

    def width(self, range_name: RangeName = None) -> float:
        lo, hi = self.get_range(range_name)
        return hi - lo

    def evaluate(self) -> float:
        return self._value

    def get_analytical_integral(self, all_vars, range_name=None):
        if any(var is self for var in as_term_tuple(all_vars)):
            return 1, (self,)
        return 0, ()

    def analytical_integral(self, code, range_name=None):
        if code != 1:
            return super().analytical_integral(code, range_name)
        lo, hi = self.get_range(range_name)
        return 0.5 * (hi * hi - lo * lo)


def _checked_range(name: str, minimum: float, maximum: float) -> Tuple[float, float]:
    lo = float(minimum)
    hi = float(maximum)
    if math.isnan(lo) or math.isnan(hi) or lo >= hi:
        raise ConfigurationError(
            f"Invalid range [{minimum}, {maximum}] for variable '{name}'"
        )
    return lo, hi


class Category(CategoryTerm):
    is_variable = True

    def __init__(
        self,
        name: str,
        states: Union[Mapping[str, int], Sequence[str]],
        label: Optional[str] = None,
        title: Optional[str] = None,
    ):
        super().__init__(name, title=title)
        if isinstance(states, Mapping):
            table = {str(k): int(v) for k, v in states.items()}
        else:
            table = {str(label_): idx for idx, label_ in enumerate(states)}
        if not table:
            raise ConfigurationError(f"Category '{self.name}' requires at least one state")
        if len(set(table.values())) != len(table):
            raise ConfigurationError(f"Category '{self.name}' has duplicate state indices")
        self.states: Dict[str, int] = table
        self._label = label if label is not None else next(iter(table))
        if self._label not in table:
            raise ConfigurationError(f"Unknown state '{label}' for category '{self.name}'")

    @property
    def index(self) -> int:
        return self.states[self._label]

    @property
    def label(self) -> str:
        return self._label

    @label.setter
    def label(self, value: str) -> None:
        if value not in self.states:
            raise ConfigurationError(f"Unknown state '{value}' for category '{self.name}'")
        self._label = value

    def set_index(self, index: int) -> None:
        for label, idx in self.states.items():
            if idx == int(index):
                self._label = label
                return
        raise ConfigurationError(f"Unknown index {index} for category '{self.name}'")


class Constant(RealTerm):
    def __init__(self, name: str, value: float, title: Optional[str] = None):
        super().__init__(name, title=title)
        self.value = float(value)

    def evaluate(self) -> float:
        return self.value


class Polynomial(RealTerm):
    """``sum_k c_k x**k`` with an analytic integral over ``x``."""

    def __init__(
        self,
        name: str,
        x: RealTerm,
        coefficients: Sequence[float],
        title: Optional[str] = None,
    ):
        super().__init__(name, servers=(x,), title=title)
        coefs = np.asarray(coefficients, dtype=np.float64)
        if coefs.ndim != 1 or coefs.size == 0:
            raise ConfigurationError(f"Polynomial '{self.name}' requires a 1-D coefficient list")
        self.x = x
        self.coefficients = coefs

    def evaluate(self) -> float:
        return float(np.polynomial.polynomial.polyval(self.x.get_value(), self.coefficients))

    def get_analytical_integral(self, all_vars, range_name=None):
        if isinstance(self.x, RealVariable) and any(v is self.x for v in as_term_tuple(all_vars)):
            return 1, (self.x,)
        return 0, ()

    def analytical_integral(self, code, range_name=None):
        if code != 1:
            return super().analytical_integral(code, range_name)
        lo, hi = self.x.get_range(range_name)
        anti = np.polynomial.polynomial.polyint(self.coefficients)
        return float(
            np.polynomial.polynomial.polyval(hi, anti)
            - np.polynomial.polynomial.polyval(lo, anti)
        )


class Exponential(RealTerm):
    """``exp(c * x)``; ``c`` may be a number or another real term."""

    def __init__(
        self,
        name: str,
        x: RealTerm,
        c: Union[float, RealTerm],
        title: Optional[str] = None,
    ):
        if not isinstance(c, RealTerm):
            c = Constant(f"{name}_c", float(c))
        super().__init__(name, servers=(x, c), title=title)
        self.x = x
        self.c = c

    def evaluate(self) -> float:
        return math.exp(self.c.get_value() * self.x.get_value())

    def get_analytical_integral(self, all_vars, range_name=None):
        wanted = as_term_tuple(all_vars)
        if (
            isinstance(self.x, RealVariable)
            and any(v is self.x for v in wanted)
            and not self.c.depends_on(self.x)
        ):
            return 1, (self.x,)
        return 0, ()

    def analytical_integral(self, code, range_name=None):
        if code != 1:
            return super().analytical_integral(code, range_name)
        lo, hi = self.x.get_range(range_name)
        c = self.c.get_value()
        if c == 0.0:
            return hi - lo
        return (math.exp(c * hi) - math.exp(c * lo)) / c


class Function(RealTerm):
    """
    Real term backed by a Python callable.

    ``func`` receives one keyword argument per entry of ``reals`` (current
    float value) and ``categories`` (current integer index).
    ``antiderivatives`` maps a real argument name to a callable with the same
    signature returning the antiderivative in that argument; each provides one
    analytic integration code, numbered in mapping order starting at 1.
    """

    def __init__(
        self,
        name: str,
        func: Callable[..., float],
        reals: Mapping[str, RealTerm],
        categories: Optional[Mapping[str, CategoryTerm]] = None,
        antiderivatives: Optional[Mapping[str, Callable[..., float]]] = None,
        title: Optional[str] = None,
    ):
        categories = dict(categories or {})
        reals = dict(reals)
        for arg, term in reals.items():
            if not isinstance(term, RealTerm):
                raise ConfigurationError(
                    f"Argument '{arg}' of '{name}' must be a real term, received {term!r}"
                )
        for arg, term in categories.items():
            if not isinstance(term, CategoryTerm):
                raise ConfigurationError(
                    f"Argument '{arg}' of '{name}' must be a category term, received {term!r}"
                )
        clash = set(reals) & set(categories)
        if clash:
            raise ConfigurationError(
                f"Arguments of '{name}' used as both real and category: {sorted(clash)}"
            )
        super().__init__(
            name,
            servers=tuple(reals.values()) + tuple(categories.values()),
            title=title,
        )
        self.func = func
        self.reals = reals
        self.categories = categories
        self.antiderivatives: Dict[str, Callable[..., float]] = {}
        for arg, anti in (antiderivatives or {}).items():
            if arg not in reals:
                raise ConfigurationError(
                    f"Antiderivative given for unknown real argument '{arg}' of '{name}'"
                )
            self.antiderivatives[arg] = anti

    def _arguments(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {arg: term.get_value() for arg, term in self.reals.items()}
        kwargs.update({arg: term.index for arg, term in self.categories.items()})
        return kwargs

    def evaluate(self) -> float:
        return float(self.func(**self._arguments()))

    def get_analytical_integral(self, all_vars, range_name=None):
        wanted = as_term_tuple(all_vars)
        for code, arg in enumerate(self.antiderivatives, start=1):
            term = self.reals[arg]
            if not isinstance(term, RealVariable) or not any(v is term for v in wanted):
                continue
            # Another argument sharing the variable would make the antiderivative wrong.
            if any(
                other.depends_on(term)
                for name, other in self.reals.items()
                if name != arg
            ):
                continue
            return code, (term,)
        return 0, ()

    def analytical_integral(self, code, range_name=None):
        names = list(self.antiderivatives)
        if code < 1 or code > len(names):
            return super().analytical_integral(code, range_name)
        arg = names[code - 1]
        lo, hi = self.reals[arg].get_range(range_name)
        kwargs = self._arguments()
        anti = self.antiderivatives[arg]
        upper = float(anti(**{**kwargs, arg: hi}))
        lower = float(anti(**{**kwargs, arg: lo}))
        return upper - lower
