from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import List

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import LarkError, UnexpectedInput, VisitError

from .exceptions import SpecParseError

__all__ = ["IntegralSpec", "parse_arg_list", "parse_integral_spec"]

GRAMMAR_PATH = Path(__file__).with_name("spec_grammar.lark")


@lru_cache(maxsize=1)
def _build_lark() -> Lark:
    grammar = GRAMMAR_PATH.read_text()
    return Lark(
        grammar,
        parser="lalr",
        start=["arg_list", "integral_spec"],
        propagate_positions=True,
        maybe_placeholders=False,
    )


@dataclass(frozen=True)
class IntegralSpec:
    variable: str
    expression: str
    line: int
    column: int


class SpecTransformer(Transformer):
    def __init__(self, text: str, kind: str):
        super().__init__()
        self.kind = kind
        self.text = text
        self.lines = text.splitlines()

    def _line_text(self, line: int) -> str:
        if 1 <= line <= len(self.lines):
            return self.lines[line - 1]
        return ""

    def _error_token(self, token: Token, message: str) -> None:
        raise SpecParseError(
            message,
            kind=self.kind,
            line=token.line,
            column=token.column,
            line_text=self._line_text(token.line),
        )

    def arg_list(self, items) -> List[str]:
        names: List[str] = []
        for tok in items:
            if tok.value in names:
                self._error_token(tok, f"Duplicate argument '{tok.value}'")
            names.append(tok.value)
        return names

    @v_args(meta=True)
    def integral_item(self, meta, items) -> IntegralSpec:
        name_tok, expr_tok = items
        expression = expr_tok.value.strip()
        if not expression:
            self._error_token(expr_tok, f"Empty integral expression for '{name_tok.value}'")
        return IntegralSpec(
            variable=name_tok.value,
            expression=expression,
            line=meta.line,
            column=meta.column,
        )

    def integral_spec(self, items) -> List[IntegralSpec]:
        specs: List[IntegralSpec] = []
        seen = set()
        for spec in items:
            if spec.variable in seen:
                raise SpecParseError(
                    f"Duplicate integral for variable '{spec.variable}'",
                    kind=self.kind,
                    line=spec.line,
                    column=spec.column,
                    line_text=self._line_text(spec.line),
                )
            seen.add(spec.variable)
            specs.append(spec)
        return specs


def _parse(text: str, start: str, what: str):
    parser = _build_lark()
    lines = text.splitlines()
    try:
        tree = parser.parse(text, start=start)
    except UnexpectedInput as exc:
        line = exc.line if exc.line and exc.line > 0 else 1
        column = exc.column if exc.column and exc.column > 0 else 1
        line_text = ""
        if 1 <= line <= len(lines):
            line_text = lines[line - 1]
        raise SpecParseError(
            "Syntax error",
            kind=what,
            line=line,
            column=column,
            line_text=line_text,
        ) from exc
    except LarkError as exc:  # pragma: no cover - defensive
        raise SpecParseError(str(exc), kind=what) from exc
    try:
        return SpecTransformer(text, what).transform(tree)
    except VisitError as exc:
        if isinstance(exc.orig_exc, SpecParseError):
            raise exc.orig_exc from None
        raise


def parse_arg_list(text: str) -> List[str]:
    """Split a comma separated argument list, rejecting empty tokens.

    An empty (or blank) string yields an empty list.
    """

    return _parse(text, "arg_list", "argument list")


def parse_integral_spec(text: str) -> List[IntegralSpec]:
    """Parse ``var:expr;var:expr;...`` into ordered :class:`IntegralSpec` items."""

    if not text.strip():
        raise SpecParseError("Empty input", kind="integral specification")
    return _parse(text, "integral_spec", "integral specification")

