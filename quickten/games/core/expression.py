# quickten/games/core/expression.py
"""
Expression checking for a Quick Ten hand.

validate() runs, in order:
  1. usage check    - the expression's digits are exactly the challenge digits
  2. alphabet check - only digits, + - * / ( ) and spaces
  3. evaluation     - a restricted walk over the Python AST
  4. target check   - result equals the target within TOLERANCE

Failures in 1-3 come back as error verdicts, a miss in 4 as an `incorrect`
verdict. Nothing here raises past validate().
"""
from __future__ import annotations
import ast
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

DIGITS = "0123456789"
OPERATORS = "+-*/"
PARENS = "()"
ALLOWED_CHARS = frozenset(DIGITS + OPERATORS + PARENS + " ")
TOLERANCE = 1e-9

CORRECT = "correct"
INCORRECT = "incorrect"


class ExpressionError(ValueError):
    kind = "error"


class WrongDigitsError(ExpressionError):
    kind = "wrong_digits"


class ExpressionSyntaxError(ExpressionError):
    kind = "syntax"


class ExpressionArithmeticError(ExpressionError):
    kind = "arithmetic"


ERROR_KINDS = (WrongDigitsError.kind, ExpressionSyntaxError.kind, ExpressionArithmeticError.kind)


@dataclass(frozen=True)
class Verdict:
    status: str                      # 'correct'|'incorrect'|'wrong_digits'|'syntax'|'arithmetic'
    value: Optional[float] = None
    reason: str = ""

    @property
    def correct(self) -> bool:
        return self.status == CORRECT

    @property
    def is_error(self) -> bool:
        return self.status in ERROR_KINDS

    def to_payload(self) -> Dict[str, Any]:
        return {
            "ok": self.correct,
            "kind": self.status,
            "value": self.value,
            "reason": self.reason,
        }


# ============================================================
# Usage / alphabet checks
# ============================================================

def extract_digits(expr: str) -> List[int]:
    return [int(ch) for ch in (expr or "") if ch in DIGITS]


def check_usage(digits: Sequence[int], challenge: Sequence[int]) -> None:
    """Each challenge digit must be used exactly once (order irrelevant)."""
    if len(digits) != len(challenge):
        raise WrongDigitsError("use each of the four numbers exactly once")
    pool = list(challenge)
    for d in digits:
        if d not in pool:
            raise WrongDigitsError("use each of the four numbers exactly once")
        pool.remove(d)


def check_alphabet(expr: str) -> None:
    bad = sorted({ch for ch in (expr or "") if ch not in ALLOWED_CHARS})
    if bad:
        raise ExpressionSyntaxError(f"invalid characters: {''.join(bad)!r}")


# ============================================================
# Restricted evaluation
# ============================================================

_BINOPS = (ast.Add, ast.Sub, ast.Mult, ast.Div)


def evaluate(expr: str) -> float:
    """
    Evaluate + - * / with parentheses; precedence and left associativity
    come from the Python grammar. Unary signs, powers, floor division,
    empty parentheses and calls are rejected as syntax errors.
    """
    s = (expr or "").strip()
    if not s:
        raise ExpressionSyntaxError("empty expression")
    check_alphabet(s)
    try:
        node = ast.parse(s, mode="eval")
    except (SyntaxError, ValueError, MemoryError, RecursionError) as e:
        raise ExpressionSyntaxError("could not parse expression") from e
    try:
        return _rec(node)
    except RecursionError as e:
        raise ExpressionSyntaxError("expression nested too deeply") from e


def _rec(n: ast.AST) -> float:
    if isinstance(n, ast.Expression):
        return _rec(n.body)
    if isinstance(n, ast.Constant):
        if isinstance(n.value, int) and not isinstance(n.value, bool):
            return float(n.value)
        raise ExpressionSyntaxError("constant must be a whole number")
    if isinstance(n, ast.BinOp) and isinstance(n.op, _BINOPS):
        a = _rec(n.left)
        b = _rec(n.right)
        if isinstance(n.op, ast.Add):
            return a + b
        if isinstance(n.op, ast.Sub):
            return a - b
        if isinstance(n.op, ast.Mult):
            return a * b
        if b == 0:
            raise ExpressionArithmeticError("division by zero")
        return a / b
    raise ExpressionSyntaxError(f"disallowed: {type(n).__name__}")


# ============================================================
# Public entry point
# ============================================================

def validate(expr: str, challenge: Sequence[int], target: int = 10) -> Verdict:
    try:
        check_usage(extract_digits(expr), challenge)
        check_alphabet(expr)
        value = evaluate(expr)
    except ExpressionError as e:
        return Verdict(e.kind, reason=str(e))

    if abs(value - float(target)) < TOLERANCE:
        return Verdict(CORRECT, value=value)
    return Verdict(INCORRECT, value=value, reason=f"answer is not {target}, result was {value:g}")
