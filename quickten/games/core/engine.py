# quickten/games/core/engine.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional
import logging
import random
import uuid

from .expression import Verdict, INCORRECT, validate
from .puzzle import Challenge, generate_challenge

logger = logging.getLogger(__name__)

# phases
RUNNING = "running"
WARNING = "warning"   # cosmetic sub-state of running; scoring is unchanged
ENDED = "ended"

# outcome signals for the UI layer (sound/haptics/ads hang off these)
SIGNAL_CORRECT = "correct"
SIGNAL_INCORRECT = "incorrect"
SIGNAL_ERROR = "error"
SIGNAL_WARNING_ENTERED = "warning_entered"
SIGNAL_ROUND_ENDED = "round_ended"
SIGNAL_ROUND_ABORTED = "round_aborted"

OPERATOR_TOKENS = ("+", "-", "*", "/", "(", ")")
_GLYPHS = {"×": "*", "x": "*", "÷": "/", "−": "-", "–": "-"}


@dataclass(frozen=True)
class RoundRules:
    round_seconds: int = 60
    warning_seconds: int = 10
    reward_seconds: int = 15
    target: int = 10
    solvable_only: bool = False

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "RoundRules":
        return cls(
            round_seconds=int(cfg.get("ROUND_SECONDS", 60)),
            warning_seconds=int(cfg.get("WARNING_SECONDS", 10)),
            reward_seconds=int(cfg.get("REWARD_SECONDS", 15)),
            target=int(cfg.get("TARGET", 10)),
            solvable_only=bool(cfg.get("SOLVABLE_ONLY", False)),
        )


@dataclass(frozen=True)
class Signal:
    kind: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {"kind": self.kind, **self.data}


class RoundEngine:
    """
    One timed round of Quick Ten.

    Events: tick, press_digit, press_operator, clear, submit, abort.
    Every event delivered after the round has ended is a no-op.
    Outcome signals go to subscribers and to a queue (drain_signals());
    watchers get a snapshot after every transition.

    score_sink receives the final score on a natural time-out only; an
    aborted round never reaches it. It is called synchronously from the
    ending tick(), so a slow sink delays that tick's caller (the web layer
    holds the round lock through it).
    """

    def __init__(
        self,
        rules: Optional[RoundRules] = None,
        rng: Optional[random.Random] = None,
        score_sink: Optional[Callable[[int], Any]] = None,
        generator: Callable[..., Challenge] = generate_challenge,
    ):
        self.rules = rules or RoundRules()
        self.rng = rng or random.Random()
        self.score_sink = score_sink
        self.generator = generator
        self._subscribers: List[Callable[[Signal], Any]] = []
        self._watchers: List[Callable[[Dict[str, Any]], Any]] = []
        self._pending: List[Signal] = []
        self.start()

    # ---- lifecycle ----
    def start(self) -> None:
        self.round_id = uuid.uuid4().hex
        self.time_remaining = self.rules.round_seconds
        self.score = 0
        self.attempts = 0
        self.challenge = self._new_challenge()
        self.used_digits: List[int] = []
        self.expression = ""
        self.phase = RUNNING
        self.aborted = False
        self._warned = False
        logger.debug("round %s started: challenge=%s", self.round_id, self.challenge)
        self._changed()

    @property
    def is_over(self) -> bool:
        return self.phase == ENDED

    # ---- events ----
    def tick(self) -> None:
        if self.is_over:
            return
        self.time_remaining = max(0, self.time_remaining - 1)

        if not self._warned and self.time_remaining <= self.rules.warning_seconds:
            self._warned = True
            self.phase = WARNING
            self._emit(SIGNAL_WARNING_ENTERED, time_remaining=self.time_remaining)

        if self.time_remaining == 0:
            self._finish()
            return
        self._changed()

    def press_digit(self, digit: int) -> bool:
        if self.is_over:
            return False
        d = int(digit)
        if self.used_digits.count(d) >= self.challenge.count(d):
            return False
        self.used_digits.append(d)
        self.expression += str(d)
        self._changed()
        return True

    def press_operator(self, op: str) -> bool:
        if self.is_over:
            return False
        token = _GLYPHS.get(op, op)
        if token not in OPERATOR_TOKENS:
            return False
        self.expression += token
        self._changed()
        return True

    def clear(self) -> bool:
        if self.is_over:
            return False
        self._reset_buffers()
        self._changed()
        return True

    def submit(self) -> Optional[Verdict]:
        if self.is_over:
            return None
        expr = self.expression
        verdict = validate(expr, self.challenge, self.rules.target)
        self.attempts += 1
        self._reset_buffers()

        if verdict.correct:
            self.score += 1
            self.time_remaining += self.rules.reward_seconds
            self.challenge = self._new_challenge()
            logger.debug("round %s: correct %r -> score=%d", self.round_id, expr, self.score)
            self._emit(SIGNAL_CORRECT, expression=expr, score=self.score,
                       time_remaining=self.time_remaining, reward=self.rules.reward_seconds)
        elif verdict.status == INCORRECT:
            self._emit(SIGNAL_INCORRECT, expression=expr, value=verdict.value, reason=verdict.reason)
        else:
            self._emit(SIGNAL_ERROR, expression=expr, error=verdict.status, reason=verdict.reason)
        self._changed()
        return verdict

    def abort(self) -> bool:
        if self.is_over:
            return False
        self.phase = ENDED
        self.aborted = True
        logger.info("round %s aborted at score=%d", self.round_id, self.score)
        self._emit(SIGNAL_ROUND_ABORTED, score=self.score)
        self._changed()
        return True

    # ---- observers ----
    def subscribe(self, fn: Callable[[Signal], Any]) -> None:
        self._subscribers.append(fn)

    def watch(self, fn: Callable[[Dict[str, Any]], Any]) -> None:
        self._watchers.append(fn)

    def drain_signals(self) -> List[Signal]:
        out, self._pending = self._pending, []
        return out

    def snapshot(self) -> Dict[str, Any]:
        return {
            "round_id": self.round_id,
            "time_remaining": self.time_remaining,
            "score": self.score,
            "challenge": list(self.challenge),
            "used_digits": list(self.used_digits),
            "expression": self.expression,
            "phase": self.phase,
            "aborted": self.aborted,
            "attempts": self.attempts,
            "target": self.rules.target,
        }

    # ---- internals ----
    def _new_challenge(self) -> Challenge:
        return tuple(self.generator(self.rng, solvable_only=self.rules.solvable_only,
                                    target=self.rules.target))

    def _reset_buffers(self) -> None:
        self.expression = ""
        self.used_digits = []

    def _finish(self) -> None:
        self.phase = ENDED
        logger.info("round %s ended: score=%d attempts=%d", self.round_id, self.score, self.attempts)
        self._emit(SIGNAL_ROUND_ENDED, score=self.score)
        self._changed()
        if self.score_sink is not None:
            try:
                self.score_sink(self.score)
            except Exception:
                # round stays ended; hand-off failures are only logged
                logger.exception("score hand-off failed for round %s", self.round_id)

    def _emit(self, kind: str, **data: Any) -> None:
        sig = Signal(kind, data)
        self._pending.append(sig)
        for fn in list(self._subscribers):
            fn(sig)

    def _changed(self) -> None:
        if not self._watchers:
            return
        snap = self.snapshot()
        for fn in list(self._watchers):
            fn(snap)
