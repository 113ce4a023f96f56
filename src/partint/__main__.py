from __future__ import annotations

import argparse
import sys
from typing import Dict, List, Optional, Tuple

from .core.exceptions import PartIntError
from .core.product import Product
from .core.spec_parser import parse_arg_list
from .core.terms import Function, RealVariable


def _parse_term(text: str) -> Tuple[str, List[str]]:
    name, sep, deps = text.partition(":")
    if not sep or not name.strip():
        raise ValueError(f"Expected NAME:dep1,dep2 but received '{text}'")
    return name.strip(), parse_arg_list(deps)


def _build_product(term_specs: List[str]) -> Tuple[Product, Dict[str, RealVariable]]:
    variables: Dict[str, RealVariable] = {}
    terms = []
    for spec in term_specs:
        name, deps = _parse_term(spec)
        reals = {}
        for dep in deps:
            if dep not in variables:
                variables[dep] = RealVariable(dep, 0.5, 0.0, 1.0)
            reals[dep] = variables[dep]
        terms.append(Function(name, lambda **_: 1.0, reals))
    return Product("cli_product", terms), variables


def _groups(term_specs: List[str], integrate: str) -> str:
    product, variables = _build_product(term_specs)
    iset = []
    for name in parse_arg_list(integrate):
        if name not in variables:
            variables[name] = RealVariable(name, 0.5, 0.0, 1.0)
        iset.append(variables[name])
    groups = product.groups(iset)
    verdict = "factorizable" if len(groups) >= 2 else "not factorizable"
    return f"{product.describe_groups(iset)}\n# {len(groups)} group(s): {verdict}"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="partint command line utilities")
    subparsers = parser.add_subparsers(dest="cmd")

    groups_parser = subparsers.add_parser(
        "groups", help="Show how product terms group for an integral"
    )
    groups_parser.add_argument(
        "terms",
        nargs="+",
        help="Product terms as NAME:dep1,dep2 (use NAME: for a constant term)",
    )
    groups_parser.add_argument(
        "--integrate",
        required=True,
        help="Comma separated integration variables",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "groups":
        try:
            print(_groups(args.terms, args.integrate))
        except (PartIntError, ValueError) as exc:
            parser.error(str(exc))
        return

    parser.print_help()


if __name__ == "__main__":  # pragma: no cover
    main(sys.argv[1:])
