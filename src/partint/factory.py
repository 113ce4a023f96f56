"""
In-process factory for new real term types.

A generated type is a :class:`~partint.core.terms.Function` subclass with a
fixed argument signature: instances take the term name followed by one term
per real argument and then one per category argument, in declaration order.
Analytic integrals are given per real argument, either as a mapping of
callables or as a ``var:expr;var:expr`` string whose ``expr`` tokens name
callables registered in the factory namespace.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Type, Union

from .core.exceptions import ConfigurationError
from .core.spec_parser import parse_arg_list, parse_integral_spec
from .core.terms import CategoryTerm, Function, RealTerm, Term

__all__ = ["ClassFactory"]

logger = logging.getLogger(__name__)

ArgNames = Union[str, Sequence[str]]
IntegralsArg = Union[str, Mapping[str, Callable[..., float]], None]


def _arg_names(value: Optional[ArgNames]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return parse_arg_list(value)
    return parse_arg_list(",".join(str(item) for item in value))


class ClassFactory:
    def __init__(self, namespace: Optional[Mapping[str, Callable[..., float]]] = None):
        self.namespace: Dict[str, Callable[..., float]] = dict(namespace or {})
        self.classes: Dict[str, Type[Function]] = {}

    def register(self, name: str, func: Callable[..., float]) -> None:
        self.namespace[name] = func

    def make_function(
        self,
        class_name: str,
        real_args: ArgNames,
        cat_args: Optional[ArgNames],
        expression: Callable[..., float],
        integrals: IntegralsArg = None,
    ) -> Type[Function]:
        if not class_name:
            raise ConfigurationError("A class name must be given")
        if not class_name.isidentifier():
            raise ConfigurationError(f"Class name '{class_name}' is not a valid identifier")
        reals = _arg_names(real_args)
        cats = _arg_names(cat_args)
        if not reals:
            raise ConfigurationError(
                f"{class_name}: a list of real input argument names must be given"
            )
        clash = sorted(set(reals) & set(cats))
        if clash:
            raise ConfigurationError(
                f"{class_name}: arguments used as both real and category: {clash}"
            )
        if not callable(expression):
            raise ConfigurationError(f"{class_name}: expression must be callable")
        antiderivatives, spec_text = self._resolve_integrals(class_name, reals, integrals)

        real_names = tuple(reals)
        cat_names = tuple(cats)

        def __init__(self, name: str, *args: Term, title: Optional[str] = None):
            expected = len(real_names) + len(cat_names)
            if len(args) != expected:
                raise ConfigurationError(
                    f"{type(self).__name__} takes {expected} argument terms "
                    f"({', '.join(real_names + cat_names)}); received {len(args)}"
                )
            Function.__init__(
                self,
                name,
                expression,
                dict(zip(real_names, args[: len(real_names)])),
                dict(zip(cat_names, args[len(real_names) :])),
                antiderivatives,
                title=title,
            )

        cls = type(
            class_name,
            (Function,),
            {
                "__init__": __init__,
                "__doc__": f"Generated real term {class_name}({', '.join(real_names + cat_names)}).",
                "real_arg_names": real_names,
                "category_arg_names": cat_names,
                "integral_spec": spec_text,
                "source_summary": classmethod(_source_summary),
            },
        )
        if class_name in self.classes:
            logger.info("ClassFactory replacing previously generated class %s", class_name)
        self.classes[class_name] = cls
        logger.debug("ClassFactory generated %s", cls.source_summary())
        return cls

    def make_function_instance(
        self,
        name: str,
        expression: Callable[..., float],
        terms: Sequence[Term],
        integrals: IntegralsArg = None,
    ) -> Function:
        if not name:
            raise ConfigurationError("An instance name must be given")
        reals: List[RealTerm] = []
        cats: List[CategoryTerm] = []
        for term in terms:
            if isinstance(term, RealTerm):
                reals.append(term)
            elif isinstance(term, CategoryTerm):
                cats.append(term)
            else:
                raise ConfigurationError(
                    f"Input argument {term!r} is neither a real nor a category term"
                )
        class_name = f"{name[0].upper()}{name[1:]}Func"
        cls = self.make_function(
            class_name,
            [term.name for term in reals],
            [term.name for term in cats],
            expression,
            integrals,
        )
        return cls(name, *reals, *cats)

    def _resolve_integrals(
        self,
        class_name: str,
        reals: Sequence[str],
        integrals: IntegralsArg,
    ):
        if integrals is None:
            return {}, None
        if isinstance(integrals, str):
            resolved: Dict[str, Callable[..., float]] = {}
            for spec in parse_integral_spec(integrals):
                func = self.namespace.get(spec.expression)
                if func is None:
                    raise ConfigurationError(
                        f"{class_name}: integral expression '{spec.expression}' for "
                        f"'{spec.variable}' is not a registered callable"
                    )
                resolved[spec.variable] = func
            spec_text = integrals
        else:
            resolved = dict(integrals)
            spec_text = ";".join(
                f"{var}:{getattr(func, '__name__', repr(func))}" for var, func in resolved.items()
            )
        unknown = sorted(var for var in resolved if var not in reals)
        if unknown:
            raise ConfigurationError(
                f"{class_name}: analytic integral given for unknown real arguments {unknown}"
            )
        return resolved, spec_text


def _source_summary(cls) -> str:
    reals = ",".join(cls.real_arg_names)
    cats = ",".join(cls.category_arg_names) or "-"
    integrals = cls.integral_spec or "-"
    return f"{cls.__name__} reals[{reals}] categories[{cats}] integrals[{integrals}]"
