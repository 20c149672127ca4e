# quickten/models.py
from datetime import datetime, timezone
from flask_login import UserMixin
from .db import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Player(UserMixin, db.Model):
    """Anonymous player identity; the id is an opaque uuid4 hex string."""
    __tablename__ = "players"

    id           = db.Column(db.String(64), primary_key=True)
    created_at   = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_seen_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def __repr__(self):
        return f"<Player id={self.id!r}>"


class ScoreRecord(db.Model):
    __tablename__ = "scores"

    id          = db.Column(db.Integer, primary_key=True)
    player_id   = db.Column(db.String(64), nullable=False, unique=True)   # one record per player
    best_score  = db.Column(db.Integer, nullable=False, default=0)
    created_at  = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at  = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        db.CheckConstraint("best_score >= 0", name="ck_scores_best_nonneg"),
        db.Index("ix_scores_best_score", "best_score"),
    )

    def __repr__(self):
        return f"<ScoreRecord player_id={self.player_id!r} best={self.best_score}>"
