# quickten/scores/sync.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

from flask import current_app

from ..auth.identity import IdentityProvider, SessionIdentityProvider
from ..registry import get_component
from .store import (
    CREATED, UPDATED,
    MemoryScoreStore, NotAuthenticatedError, ScoreStore, SqlScoreStore, StoreError, SyncError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncOutcome:
    """Value-or-error result; synchronizer failures never raise."""
    value: Any = None
    error: Optional[SyncError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_payload(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "value": self.value}
        return {"ok": False, "error": self.error.reason, "reason": str(self.error) or self.error.reason}


class ScoreSynchronizer:
    """
    Best-score persistence for a player.

    player_id defaults to the identity provider's current identity; with
    neither, calls fail with NotAuthenticatedError.
    """

    def __init__(self, store: ScoreStore, identity: Optional[IdentityProvider] = None):
        self.store = store
        self.identity = identity

    def _player(self, player_id: Optional[str]) -> str:
        pid = player_id
        if not pid and self.identity is not None:
            pid = self.identity.current_identity()
        if not pid:
            raise NotAuthenticatedError("no player identity available")
        return pid

    def commit_if_best(self, candidate: int, player_id: Optional[str] = None) -> SyncOutcome:
        candidate = int(candidate)
        if candidate < 0:
            raise ValueError("score must be >= 0")
        try:
            pid = self._player(player_id)
            result = self.store.commit_if_best(pid, candidate)
        except SyncError as e:
            logger.warning("commit_if_best(%s) failed: %s", candidate, e)
            return SyncOutcome(error=e)
        return SyncOutcome(value=result in (CREATED, UPDATED))

    def fetch_best(self, player_id: Optional[str] = None) -> SyncOutcome:
        try:
            pid = self._player(player_id)
            entry = self.store.get(pid)
        except SyncError as e:
            logger.warning("fetch_best failed: %s", e)
            return SyncOutcome(error=e)
        return SyncOutcome(value=entry.best_score if entry else None)

    def fetch_top_ranking(self, limit: int = 10) -> SyncOutcome:
        try:
            entries = self.store.top(max(0, int(limit)))
        except StoreError as e:
            logger.warning("fetch_top_ranking failed: %s", e)
            return SyncOutcome(error=e)
        return SyncOutcome(value=entries)

    def save_round(self, score: int, player_id: Optional[str] = None) -> SyncOutcome:
        """Commit a finished round, then re-read the stored best."""
        committed = self.commit_if_best(score, player_id)
        if not committed.ok:
            return committed
        best = self.fetch_best(player_id)
        if not best.ok:
            return best
        return SyncOutcome(value={
            "saved": True,
            "is_best": bool(committed.value),
            "best_score": best.value,
            "score": int(score),
        })


# --------- accessor (synchronizer lives on current_app) ----------
def _build_synchronizer() -> ScoreSynchronizer:
    kind = (current_app.config.get("SCORE_STORE") or "sql").strip().lower()
    store: ScoreStore = MemoryScoreStore() if kind == "memory" else SqlScoreStore()
    logger.info("score store: %s", type(store).__name__)
    return ScoreSynchronizer(store, SessionIdentityProvider())


def get_synchronizer() -> ScoreSynchronizer:
    return get_component("quickten_sync", _build_synchronizer)
