# quickten/games/core/puzzle.py
from __future__ import annotations
from fractions import Fraction
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple
import logging
import random

logger = logging.getLogger(__name__)

Challenge = Tuple[int, ...]

DIGIT_MIN = 1
DIGIT_MAX = 9
CHALLENGE_SIZE = 4


# ============================================================
# Challenge generation
# ============================================================

def generate_challenge(
    rng: Optional[random.Random] = None,
    *,
    solvable_only: bool = False,
    target: int = 10,
    max_tries: int = 60,
) -> Challenge:
    """
    Draw 4 pairwise-distinct digits in [1, 9].

    Rejection sampling: repeated digits are redrawn until 4 distinct ones
    are held. The tuple keeps draw order (the challenge itself is unordered).
    With solvable_only, redraw until the hand reaches `target`; after
    max_tries we return the last draw anyway.
    """
    rng = rng or random
    chosen: Challenge = ()
    for _ in range(max(1, max_tries)):
        picked: List[int] = []
        while len(picked) < CHALLENGE_SIZE:
            d = rng.randint(DIGIT_MIN, DIGIT_MAX)
            if d not in picked:
                picked.append(d)
        chosen = tuple(picked)
        if not solvable_only or solve_one(chosen, target) is not None:
            return chosen
    logger.warning("no solvable challenge after %d draws; using %s", max_tries, chosen)
    return chosen


def challenge_key(values: Sequence[int]) -> str:
    """
    Stable key for a hand of digits, e.g. (4, 1, 3, 2) -> "1-2-3-4".
    """
    return "-".join(str(int(x)) for x in sorted(values or []))


# ============================================================
# Exact solver (+ - * / over Fractions)
# ============================================================

_OPS = [
    ("+", lambda a, b: a + b),
    ("-", lambda a, b: a - b),
    ("*", lambda a, b: a * b),
    ("/", lambda a, b: a / b if b != 0 else None),
]


def _combos(nums, exps):
    n = len(nums)
    for i in range(n):
        for j in range(n):
            if i == j:
                continue
            a, b = nums[i], nums[j]
            ea, eb = exps[i], exps[j]
            restn = [nums[k] for k in range(n) if k not in (i, j)]
            reste = [exps[k] for k in range(n) if k not in (i, j)]
            for sym, fn in _OPS:
                # + and * are commutative; only try them once per pair
                if sym in ("+", "*") and i > j:
                    continue
                res = fn(a, b)
                if res is None:
                    continue
                yield tuple(restn + [res]), tuple(reste + [f"({ea}{sym}{eb})"])


def solve_one(values: Sequence[int], target: int = 10) -> Optional[str]:
    """Return one infix solution string or None."""
    nums = tuple(Fraction(int(x)) for x in values)
    exps = tuple(str(int(x)) for x in values)
    return _search_one(nums, exps, Fraction(int(target)))


@lru_cache(maxsize=4096)
def _search_one(nums, exps, target):
    if len(nums) == 1:
        return _strip_outer(exps[0]) if nums[0] == target else None
    for restn, reste in _combos(nums, exps):
        out = _search_one(restn, reste, target)
        if out:
            return out
    return None


def enumerate_solutions(values: Sequence[int], target: int = 10, limit: int = 50) -> List[str]:
    """Return up to `limit` unique infix solutions."""
    goal = Fraction(int(target))
    sols: List[str] = []
    seen = set()

    def dfs(nums, exps):
        if len(sols) >= limit:
            return
        if len(nums) == 1:
            if nums[0] == goal:
                s = _strip_outer(exps[0])
                if s not in seen:
                    seen.add(s)
                    sols.append(s)
            return
        for restn, reste in _combos(nums, exps):
            dfs(restn, reste)
            if len(sols) >= limit:
                return

    dfs(tuple(Fraction(int(x)) for x in values), tuple(str(int(x)) for x in values))
    return sols


def _strip_outer(expr: str) -> str:
    if expr.startswith("(") and expr.endswith(")"):
        depth = 0
        for i, ch in enumerate(expr):
            depth += 1 if ch == "(" else -1 if ch == ")" else 0
            if depth == 0 and i < len(expr) - 1:
                return expr
        return expr[1:-1]
    return expr
