# quickten/games/core/rounds.py
from __future__ import annotations
from typing import Any, Callable, Dict, Optional
import logging
import threading
import time

from flask import current_app

from .engine import RoundEngine
from ...registry import get_component
from ...scores.sync import ScoreSynchronizer, SyncOutcome

logger = logging.getLogger(__name__)

IDLE_ROUND_TTL_SEC = 3600


class RoundHandle:
    """
    A live round for one player (and optionally one browser tab).

    Ticks are derived from wall-clock time: advance() fires one Tick per
    whole second elapsed since the round started that has not been fired
    yet. Natural round end hands the score to the synchronizer.
    """

    def __init__(
        self,
        engine: RoundEngine,
        player_id: str,
        synchronizer: Optional[ScoreSynchronizer] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.engine = engine
        self.player_id = player_id
        self.synchronizer = synchronizer
        self.clock = clock
        self.lock = threading.RLock()
        self.sync_result: Optional[SyncOutcome] = None
        self.started_at = clock()
        self.touched_at = self.started_at
        self._ticks = 0
        engine.score_sink = self._hand_off

    def _hand_off(self, score: int) -> None:
        if self.synchronizer is None:
            return
        self.sync_result = self.synchronizer.save_round(score, self.player_id)
        if not self.sync_result.ok:
            logger.warning("could not save round for player=%s: %s",
                           self.player_id, self.sync_result.error)

    def restart(self) -> None:
        self.engine.start()
        self.started_at = self.clock()
        self.touched_at = self.started_at
        self._ticks = 0
        self.sync_result = None

    def advance(self) -> int:
        """Fire the ticks that are due; returns how many fired."""
        now = self.clock()
        self.touched_at = now
        due = int(now - self.started_at) - self._ticks
        fired = 0
        while due > 0 and not self.engine.is_over:
            self.engine.tick()
            self._ticks += 1
            due -= 1
            fired += 1
        return fired

    def payload(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "ok": True,
            "state": self.engine.snapshot(),
            "signals": [s.to_payload() for s in self.engine.drain_signals()],
        }
        if self.sync_result is not None:
            out["sync"] = self.sync_result.to_payload()
            if not self.sync_result.ok:
                out["sync"]["reason"] = "could not save"
        return out


class RoundRegistry:
    """
    In-memory live rounds for this server process.
    key: player id + optional client id -> RoundHandle
    """

    def __init__(self, clock: Callable[[], float] = time.time, idle_ttl: int = IDLE_ROUND_TTL_SEC):
        self.clock = clock
        self.idle_ttl = idle_ttl
        self._lock = threading.Lock()
        self._rounds: Dict[str, RoundHandle] = {}

    def get(self, key: str) -> Optional[RoundHandle]:
        with self._lock:
            return self._rounds.get(key)

    def put(self, key: str, handle: RoundHandle) -> None:
        with self._lock:
            self._prune()
            self._rounds[key] = handle

    def discard(self, key: str) -> None:
        with self._lock:
            self._rounds.pop(key, None)

    def __len__(self) -> int:
        return len(self._rounds)

    def _prune(self) -> None:
        """
        Drop rounds nobody has touched for idle_ttl seconds. Overdue rounds
        are advanced first, so an abandoned round still ends and hands its
        score off before it is dropped.
        """
        now = self.clock()
        stale = []
        for k, h in self._rounds.items():
            with h.lock:
                idle = now - h.touched_at
                h.advance()
                if h.engine.is_over and idle > self.idle_ttl:
                    stale.append(k)
        for k in stale:
            del self._rounds[k]
        if stale:
            logger.debug("pruned %d idle rounds", len(stale))


def round_key(player_id: str, req) -> str:
    """
    Round key = player id, optionally suffixed with ':<client_id>'
    (arg/body/header) so two tabs can play separate rounds.
    """
    client = req.args.get("client_id")
    if not client and req.is_json:
        j = req.get_json(silent=True) or {}
        client = j.get("client_id")
    if not client:
        client = req.headers.get("X-Client-Session")
    if client:
        return f"{player_id}:{str(client)[:64]}"
    return player_id


# --------- accessors (registry and clock live on current_app) ----------
def round_clock() -> Callable[[], float]:
    return current_app.extensions.get("quickten_clock", time.time)


def get_round_registry() -> RoundRegistry:
    return get_component("quickten_rounds", lambda: RoundRegistry(clock=round_clock()))
