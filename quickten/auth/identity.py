# quickten/auth/identity.py
from __future__ import annotations
from typing import Optional
import logging
import uuid

from flask_login import current_user, login_user
from sqlalchemy.exc import SQLAlchemyError

from ..db import db
from ..models import Player, utcnow
from ..scores.store import StoreError

logger = logging.getLogger(__name__)


def new_player_id() -> str:
    return uuid.uuid4().hex


class IdentityProvider:
    def ensure_identity(self) -> str:
        """Return the player id, creating one on first use.

        Raises StoreError when the id cannot be persisted.
        """
        raise NotImplementedError

    def current_identity(self) -> Optional[str]:
        """Return the player id if one exists, without creating it."""
        raise NotImplementedError


class AnonymousIdentityProvider(IdentityProvider):
    """One opaque id, cached for the lifetime of this object."""

    def __init__(self, player_id: Optional[str] = None):
        self._player_id = player_id

    def ensure_identity(self) -> str:
        if self._player_id is None:
            self._player_id = new_player_id()
        return self._player_id

    def current_identity(self) -> Optional[str]:
        return self._player_id


class SessionIdentityProvider(IdentityProvider):
    """
    Anonymous sign-in through Flask-Login: the first call in a browser
    session creates a Player row and logs it in; later calls reuse it.
    """

    def ensure_identity(self) -> str:
        try:
            if current_user.is_authenticated:
                current_user.last_seen_at = utcnow()
                db.session.commit()
                return str(current_user.get_id())
            player = Player(id=new_player_id())
            db.session.add(player)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("could not sign in anonymous player")
            raise StoreError(str(e)) from e
        login_user(player, remember=True)
        logger.info("anonymous player created: %s", player.id)
        return player.id

    def current_identity(self) -> Optional[str]:
        if current_user and current_user.is_authenticated:
            return str(current_user.get_id())
        return None


def load_player(player_id: str) -> Optional[Player]:
    return db.session.get(Player, str(player_id))
