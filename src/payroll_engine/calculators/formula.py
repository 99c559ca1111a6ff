"""Formula evaluation for jurisdiction-configured personal deductions.

Formulas are short arithmetic expressions authored by jurisdiction
administrators, for example::

    MAX(1560000, {annualGross} * 0.333)
    IF({dependents} > 2, 120000, 60000)

Evaluation happens in two steps:

1. Every ``{name}`` placeholder is replaced with the numeric value of
   ``variables[name]``. Unknown placeholders are left in place.
2. The resulting text is parsed by a small recursive-descent parser.

Grammar (function names are case-insensitive)::

    expr       := term (('+' | '-') term)*
    term       := unary (('*' | '/') unary)*
    unary      := ('+' | '-')* primary
    primary    := NUMBER | '(' expr ')' | call
    call       := MAX '(' expr (',' expr)* ')'
                | MIN '(' expr (',' expr)* ')'
                | ROUND '(' expr ')'
                | IF '(' comparison ',' expr ',' expr ')'
    comparison := expr ('>' | '<' | '>=' | '<=' | '==' | '!=') expr

No general-purpose code execution is involved. Nesting is limited to
``MAX_NESTING_DEPTH`` levels of parentheses and calls. Any failure (bad
syntax, unresolved placeholder, division by zero, nesting too deep)
evaluates to 0 so one broken formula degrades to "no deduction" instead
of stopping a payroll run. Failures are logged and passed to the optional
``on_error`` callback.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from payroll_engine.calculators.rounding import to_decimal

logger = logging.getLogger(__name__)

FormulaErrorHandler = Callable[[str, Exception], None]

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

_TOKEN = re.compile(
    r"""
    \s*(?:
        (?P<number>\d+(?:\.\d*)?|\.\d+)
      | (?P<name>[A-Za-z_]\w*)
      | (?P<op>>=|<=|==|!=|[-+*/(),<>])
    )
    """,
    re.VERBOSE,
)

_COMPARISONS: dict[str, Callable[[Decimal, Decimal], bool]] = {
    ">": lambda a, b: a > b,
    "<": lambda a, b: a < b,
    ">=": lambda a, b: a >= b,
    "<=": lambda a, b: a <= b,
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
}

HALF = Decimal("0.5")
MAX_NESTING_DEPTH = 50


class FormulaError(ValueError):
    """Raised when a formula cannot be parsed or evaluated."""


@dataclass(frozen=True)
class _Token:
    kind: str  # "number", "name", "op"
    text: str
    pos: int


def substitute_variables(formula: str, variables: Mapping[str, int | float | Decimal]) -> str:
    """Replace ``{name}`` placeholders with the variables' numeric values."""

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return format(to_decimal(variables[name]), "f")

    return _PLACEHOLDER.sub(_replace, formula)


def tokenize(expression: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    end = len(expression.rstrip())
    while pos < end:
        match = _TOKEN.match(expression, pos)
        if match is None:
            raise FormulaError(
                f"Unexpected character {expression[pos:].strip()[:1]!r} at position {pos}"
            )
        kind = match.lastgroup
        if kind is None:
            raise FormulaError(f"Unexpected input at position {pos}")
        tokens.append(_Token(kind, match.group(kind), match.start(kind)))
        pos = match.end()
    return tokens


class _Parser:
    """Recursive-descent evaluator over a token list."""

    def __init__(self, tokens: list[_Token]):
        self.tokens = tokens
        self.index = 0
        self.depth = 0

    def parse(self) -> Decimal:
        if not self.tokens:
            raise FormulaError("Empty formula")
        value = self._expr()
        if self.index < len(self.tokens):
            token = self.tokens[self.index]
            raise FormulaError(f"Unexpected token {token.text!r} at position {token.pos}")
        return value

    def _peek(self) -> _Token | None:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise FormulaError("Unexpected end of formula")
        self.index += 1
        return token

    def _accept(self, *ops: str) -> str | None:
        token = self._peek()
        if token is not None and token.kind == "op" and token.text in ops:
            self.index += 1
            return token.text
        return None

    def _expect(self, op: str) -> None:
        token = self._next()
        if token.kind != "op" or token.text != op:
            raise FormulaError(f"Expected {op!r} at position {token.pos}, got {token.text!r}")

    def _expr(self) -> Decimal:
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise FormulaError(f"Formula is nested deeper than {MAX_NESTING_DEPTH} levels")
        try:
            value = self._term()
            while (op := self._accept("+", "-")) is not None:
                right = self._term()
                value = value + right if op == "+" else value - right
            return value
        finally:
            self.depth -= 1

    def _term(self) -> Decimal:
        value = self._unary()
        while (op := self._accept("*", "/")) is not None:
            right = self._unary()
            if op == "*":
                value = value * right
            else:
                if right == 0:
                    raise FormulaError("Division by zero")
                value = value / right
        return value

    def _unary(self) -> Decimal:
        negate = False
        while (op := self._accept("+", "-")) is not None:
            if op == "-":
                negate = not negate
        value = self._primary()
        return -value if negate else value

    def _primary(self) -> Decimal:
        token = self._next()
        if token.kind == "number":
            return Decimal(token.text)
        if token.kind == "op" and token.text == "(":
            value = self._expr()
            self._expect(")")
            return value
        if token.kind == "name":
            return self._call(token)
        raise FormulaError(f"Unexpected token {token.text!r} at position {token.pos}")

    def _call(self, token: _Token) -> Decimal:
        name = token.text.upper()
        self._expect("(")

        if name == "IF":
            condition = self._comparison()
            self._expect(",")
            when_true = self._expr()
            self._expect(",")
            when_false = self._expr()
            self._expect(")")
            return when_true if condition else when_false

        args = [self._expr()]
        while self._accept(","):
            args.append(self._expr())
        self._expect(")")

        if name == "MAX":
            return max(args)
        if name == "MIN":
            return min(args)
        if name == "ROUND":
            if len(args) != 1:
                raise FormulaError("ROUND takes exactly one argument")
            # Ties round towards positive infinity.
            return (args[0] + HALF).to_integral_value(rounding=ROUND_FLOOR)
        raise FormulaError(f"Unknown function {token.text!r} at position {token.pos}")

    def _comparison(self) -> bool:
        left = self._expr()
        token = self._next()
        if token.kind != "op" or token.text not in _COMPARISONS:
            raise FormulaError(f"Expected comparison operator at position {token.pos}")
        right = self._expr()
        return _COMPARISONS[token.text](left, right)


class FormulaEvaluator:
    """Evaluates deduction formulas with a fail-safe zero result.

    Args:
        on_error: Optional callback receiving ``(formula, exception)`` for
            every formula that evaluated to 0 because of an error.
    """

    def __init__(self, on_error: FormulaErrorHandler | None = None):
        self.on_error = on_error

    def evaluate(
        self,
        formula: str,
        variables: Mapping[str, int | float | Decimal] | None = None,
    ) -> Decimal:
        expression = substitute_variables(formula, variables or {})
        try:
            return _Parser(tokenize(expression)).parse()
        except (FormulaError, ArithmeticError) as e:
            logger.warning("Formula %r evaluated to 0: %s", formula, e)
            if self.on_error is not None:
                self.on_error(formula, e)
            return Decimal("0")


def evaluate_formula(
    formula: str,
    variables: Mapping[str, int | float | Decimal] | None = None,
    on_error: FormulaErrorHandler | None = None,
) -> Decimal:
    """Evaluate a formula, returning 0 on any parse or evaluation failure."""
    return FormulaEvaluator(on_error=on_error).evaluate(formula, variables)
