"""
Expression Engine
Evaluates arithmetic formulas over metric series, instant by instant.

A formula combines metric names, decimal constants, + - * / and parentheses:

    Compaction_Write_GB_default_Sum / (Flush_GB_default_Sum + Add_GB_default_Sum)

Inputs are folded per (time, name) with duplicates summed. With variables, a
formula is evaluated only at instants where every variable is present; a
constant formula is evaluated at every distinct input time. Division by zero
and any non-finite result evaluate to 0.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Union

from logscope.core.schema import Metric, RecordCategory, format_time

logger = logging.getLogger(__name__)

OPERATORS = "+-*/"
PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2}

_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(r"[0-9]*\.?[0-9]*")


class ExpressionError(Exception):
    """Base error for formula compilation and evaluation."""


class ExpressionSyntaxError(ExpressionError):
    """The formula could not be tokenized or parsed."""


class ExpressionEvaluationError(ExpressionError):
    """The formula could not be evaluated against an environment."""


@dataclass(frozen=True)
class Token:
    kind: str  # "num", "name", "op", "(", ")"
    text: str
    value: float = 0.0


def tokenize(formula: str) -> List[Token]:
    """Split a formula into tokens. Whitespace is skipped."""
    tokens: List[Token] = []
    i = 0
    n = len(formula)

    while i < n:
        ch = formula[i]
        if ch in " \t\r\n":
            i += 1
            continue
        if ch in OPERATORS:
            tokens.append(Token("op", ch))
            i += 1
            continue
        if ch in "()":
            tokens.append(Token(ch, ch))
            i += 1
            continue

        m = _NAME_RE.match(formula, i)
        if m:
            tokens.append(Token("name", m.group(0)))
            i = m.end()
            continue

        if ch.isdigit() or ch == ".":
            m = _NUMBER_RE.match(formula, i)
            text = m.group(0)
            try:
                value = float(text)
            except ValueError:
                raise ExpressionSyntaxError(f"invalid number '{text}' at {i}") from None
            tokens.append(Token("num", text, value))
            i = m.end()
            continue

        raise ExpressionSyntaxError(f"unexpected character '{ch}' at {i}")

    return tokens


def _to_rpn(tokens: List[Token]) -> List[Token]:
    """Shunting-yard conversion to postfix; all operators are left associative."""
    output: List[Token] = []
    stack: List[Token] = []

    for tok in tokens:
        if tok.kind in ("num", "name"):
            output.append(tok)
        elif tok.kind == "op":
            while stack and stack[-1].kind == "op" and PRECEDENCE[stack[-1].text] >= PRECEDENCE[tok.text]:
                output.append(stack.pop())
            stack.append(tok)
        elif tok.kind == "(":
            stack.append(tok)
        else:
            while stack and stack[-1].kind != "(":
                output.append(stack.pop())
            if not stack:
                raise ExpressionSyntaxError("mismatched parentheses")
            stack.pop()

    while stack:
        tok = stack.pop()
        if tok.kind == "(":
            raise ExpressionSyntaxError("mismatched parentheses")
        output.append(tok)

    return output


def _check_arity(rpn: List[Token]) -> None:
    """A valid postfix form leaves exactly one value on the stack."""
    depth = 0
    for tok in rpn:
        if tok.kind == "op":
            if depth < 2:
                raise ExpressionSyntaxError(f"operator '{tok.text}' is missing an operand")
            depth -= 1
        else:
            depth += 1
    if depth != 1:
        raise ExpressionSyntaxError("expression does not reduce to a single value")


def _apply(op: str, a: float, b: float) -> float:
    if op == "+":
        return a + b
    if op == "-":
        return a - b
    if op == "*":
        return a * b
    if b == 0:
        return 0.0
    return a / b


@dataclass
class CompiledExpression:
    """A parsed formula ready for repeated evaluation."""

    formula: str
    rpn: List[Token]
    variables: List[str] = field(default_factory=list)

    def evaluate(self, env: Dict[str, float]) -> float:
        """
        Evaluate against a name -> value mapping.

        Raises:
            ExpressionEvaluationError: if a variable is missing from env.
        """
        stack: List[float] = []
        for tok in self.rpn:
            if tok.kind == "num":
                stack.append(tok.value)
            elif tok.kind == "name":
                if tok.text not in env:
                    raise ExpressionEvaluationError(f"missing variable: {tok.text}")
                stack.append(float(env[tok.text]))
            else:
                b = stack.pop()
                a = stack.pop()
                stack.append(_apply(tok.text, a, b))

        result = stack[0]
        if not math.isfinite(result):
            return 0.0
        return result


def compile_expression(formula: str) -> CompiledExpression:
    """
    Parse a formula.

    Raises:
        ExpressionSyntaxError: on an empty or malformed formula.
    """
    if not formula or not formula.strip():
        raise ExpressionSyntaxError("empty formula")

    rpn = _to_rpn(tokenize(formula))
    _check_arity(rpn)

    variables: List[str] = []
    for tok in rpn:
        if tok.kind == "name" and tok.text not in variables:
            variables.append(tok.text)

    return CompiledExpression(formula=formula.strip(), rpn=rpn, variables=variables)


class ExpressionEngine:
    """Computes a derived series from a formula over metric series."""

    def compute(self, metrics: List[Metric], formula: Union[str, CompiledExpression], out_name: str = "") -> List[Metric]:
        """
        Evaluate `formula` at every eligible instant.

        Returns:
            One EXPR metric per instant, ascending by time, named `out_name`
            (or the formula text when empty).

        Raises:
            ExpressionSyntaxError: if the formula does not compile.
            ExpressionEvaluationError: if evaluation fails at any instant; no
                partial result is returned.
        """
        compiled = formula if isinstance(formula, CompiledExpression) else compile_expression(formula)

        folded: Dict[datetime, Dict[str, float]] = {}
        for metric in metrics:
            if metric.time is None:
                continue
            env = folded.setdefault(metric.time, {})
            env[metric.name] = env.get(metric.name, 0.0) + metric.value

        if compiled.variables:
            times = [t for t, env in folded.items() if all(v in env for v in compiled.variables)]
        else:
            times = list(folded)
        times.sort()

        name = out_name or compiled.formula
        out: List[Metric] = []
        for t in times:
            try:
                value = compiled.evaluate(folded[t])
            except ExpressionEvaluationError as e:
                raise ExpressionEvaluationError(f"evaluate at {format_time(t)}: {e}") from e
            out.append(Metric(source_category=RecordCategory.EXPR, time=t, name=name, value=value))

        logger.debug(f"Expression {name!r}: {len(out)} points from {len(folded)} instants")
        return out


def compute_expression(metrics: List[Metric], formula: str, out_name: str = "") -> List[Metric]:
    """Convenience wrapper around ExpressionEngine.compute."""
    return ExpressionEngine().compute(metrics, formula, out_name)
