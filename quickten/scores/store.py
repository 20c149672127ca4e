# quickten/scores/store.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging
import threading

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..db import db
from ..models import ScoreRecord, utcnow

logger = logging.getLogger(__name__)

# commit outcomes
CREATED = "created"
UPDATED = "updated"
KEPT = "kept"


class SyncError(Exception):
    reason = "sync_failed"


class NotAuthenticatedError(SyncError):
    reason = "not_authenticated"


class StoreError(SyncError):
    """Transport/storage failure; the caller may retry."""
    reason = "store_unavailable"


@dataclass(frozen=True)
class RankingEntry:
    player_id: str
    best_score: int
    updated_at: Optional[datetime] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "best_score": self.best_score,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ScoreStore:
    """
    Keyed best-score storage.

    commit_if_best must be atomic per player: read, compare and write happen
    as one unit so two racing commits can never leave the lower score stored.
    """

    def commit_if_best(self, player_id: str, candidate: int, now: Optional[datetime] = None) -> str:
        raise NotImplementedError

    def get(self, player_id: str) -> Optional[RankingEntry]:
        raise NotImplementedError

    def top(self, limit: int) -> List[RankingEntry]:
        raise NotImplementedError

    def reset(self, player_id: Optional[str] = None) -> int:
        raise NotImplementedError


# ============================================================
# SQL store (Flask-SQLAlchemy)
# ============================================================

class SqlScoreStore(ScoreStore):
    """
    commit_if_best is a conditional UPDATE (compare-and-set on best_score).
    The first record goes through INSERT; when two first commits race, the
    loser hits the unique constraint, rolls back and retries the UPDATE.
    """

    def __init__(self, max_attempts: int = 5):
        self.max_attempts = max_attempts

    def commit_if_best(self, player_id: str, candidate: int, now: Optional[datetime] = None) -> str:
        now = now or utcnow()
        try:
            for attempt in range(1, self.max_attempts + 1):
                res = db.session.execute(
                    update(ScoreRecord)
                    .where(ScoreRecord.player_id == player_id, ScoreRecord.best_score < candidate)
                    .values(best_score=candidate, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                if res.rowcount == 1:
                    db.session.commit()
                    logger.info("score raised: player=%s best=%d", player_id, candidate)
                    return UPDATED

                exists = db.session.execute(
                    select(ScoreRecord.id).where(ScoreRecord.player_id == player_id)
                ).first()
                if exists is not None:
                    db.session.commit()
                    return KEPT

                db.session.add(ScoreRecord(player_id=player_id, best_score=candidate,
                                           created_at=now, updated_at=now))
                try:
                    db.session.commit()
                    logger.info("score record created: player=%s best=%d", player_id, candidate)
                    return CREATED
                except IntegrityError:
                    db.session.rollback()
                    logger.info("concurrent first commit for player=%s (attempt %d); retrying",
                                player_id, attempt)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("commit_if_best failed for player=%s", player_id)
            raise StoreError(str(e)) from e
        raise StoreError(f"could not commit score for {player_id} after {self.max_attempts} attempts")

    def get(self, player_id: str) -> Optional[RankingEntry]:
        try:
            rec = db.session.execute(
                select(ScoreRecord).where(ScoreRecord.player_id == player_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("get failed for player=%s", player_id)
            raise StoreError(str(e)) from e
        if rec is None:
            return None
        return RankingEntry(rec.player_id, int(rec.best_score), rec.updated_at)

    def top(self, limit: int) -> List[RankingEntry]:
        try:
            rows = db.session.execute(
                select(ScoreRecord)
                .order_by(ScoreRecord.best_score.desc(),
                          ScoreRecord.updated_at.asc(),
                          ScoreRecord.player_id.asc())
                .limit(limit)
            ).scalars().all()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("ranking query failed")
            raise StoreError(str(e)) from e
        return [RankingEntry(r.player_id, int(r.best_score), r.updated_at) for r in rows]

    def reset(self, player_id: Optional[str] = None) -> int:
        stmt = delete(ScoreRecord)
        if player_id:
            stmt = stmt.where(ScoreRecord.player_id == player_id)
        try:
            res = db.session.execute(stmt.execution_options(synchronize_session=False))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("reset failed")
            raise StoreError(str(e)) from e
        return int(res.rowcount or 0)


# ============================================================
# In-process store (single server process / tests)
# ============================================================

class MemoryScoreStore(ScoreStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._rows: Dict[str, Dict[str, Any]] = {}

    def commit_if_best(self, player_id: str, candidate: int, now: Optional[datetime] = None) -> str:
        now = now or utcnow()
        with self._lock:
            row = self._rows.get(player_id)
            if row is None:
                self._rows[player_id] = {"best_score": candidate, "created_at": now, "updated_at": now}
                return CREATED
            if candidate > row["best_score"]:
                row["best_score"] = candidate
                row["updated_at"] = now
                return UPDATED
            return KEPT

    def get(self, player_id: str) -> Optional[RankingEntry]:
        with self._lock:
            row = self._rows.get(player_id)
            if row is None:
                return None
            return RankingEntry(player_id, row["best_score"], row["updated_at"])

    def top(self, limit: int) -> List[RankingEntry]:
        with self._lock:
            items = sorted(self._rows.items(),
                           key=lambda kv: (-kv[1]["best_score"], kv[1]["updated_at"], kv[0]))
            return [RankingEntry(pid, row["best_score"], row["updated_at"]) for pid, row in items[:limit]]

    def reset(self, player_id: Optional[str] = None) -> int:
        with self._lock:
            if player_id:
                return 1 if self._rows.pop(player_id, None) is not None else 0
            n = len(self._rows)
            self._rows.clear()
            return n
