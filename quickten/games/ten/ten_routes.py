# quickten/games/ten/ten_routes.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, current_app, jsonify, request

from quickten import limiter
from quickten.auth.identity import SessionIdentityProvider
from quickten.games.core.engine import RoundEngine, RoundRules
from quickten.games.core.rounds import RoundHandle, get_round_registry, round_clock, round_key
from quickten.scores.store import StoreError
from quickten.scores.sync import get_synchronizer

logger = logging.getLogger(__name__)
bp = Blueprint("quickten", __name__, url_prefix="/games/quickten")

identity = SessionIdentityProvider()


# -----------------------------------------------------------------------------
# Small per-request helpers
# -----------------------------------------------------------------------------
def _rules() -> RoundRules:
    return RoundRules.from_config(current_app.config)

def _body() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}

def _bad(reason: str, status: int = 400):
    return jsonify({"ok": False, "reason": reason}), status

def _current() -> Tuple[Optional[RoundHandle], Any]:
    """(handle, None) for the caller's live round, else (None, error response)."""
    pid = identity.current_identity()
    if not pid:
        return None, _bad("start a round first", 401)
    handle = get_round_registry().get(round_key(pid, request))
    if handle is None:
        return None, _bad("no round for this player", 404)
    return handle, None


# -----------------------------------------------------------------------------
# API: Start (new round; any live round for this key is abandoned)
# -----------------------------------------------------------------------------
@bp.post("/api/start")
def api_start():
    try:
        pid = identity.ensure_identity()
    except StoreError as e:
        return jsonify({"ok": False, "error": e.reason, "reason": "could not sign in"}), 503
    key = round_key(pid, request)
    rounds = get_round_registry()
    handle = rounds.get(key)

    if handle is not None and handle.engine.rules == _rules():
        with handle.lock:
            if not handle.engine.is_over:
                handle.engine.abort()
            handle.engine.drain_signals()
            handle.restart()
    else:
        if handle is not None:
            with handle.lock:
                handle.engine.abort()   # rules changed under a live round
        engine = RoundEngine(rules=_rules())
        handle = RoundHandle(engine, pid, synchronizer=get_synchronizer(), clock=round_clock())
        rounds.put(key, handle)

    logger.info("round %s started for player=%s key=%s", handle.engine.round_id, pid, key)
    with handle.lock:
        return jsonify({**handle.payload(), "player_id": pid}), 200


# -----------------------------------------------------------------------------
# API: State (fires due ticks, returns snapshot + signals)
# -----------------------------------------------------------------------------
@bp.get("/api/state")
def api_state():
    handle, err = _current()
    if err:
        return err
    with handle.lock:
        handle.advance()
        return jsonify(handle.payload()), 200


# -----------------------------------------------------------------------------
# API: Input events
# -----------------------------------------------------------------------------
@bp.post("/api/digit")
def api_digit():
    raw = _body().get("digit")
    if isinstance(raw, bool):
        return _bad("digit must be an integer 0-9")
    try:
        digit = int(raw)
    except (TypeError, ValueError):
        return _bad("digit must be an integer 0-9")
    if not 0 <= digit <= 9:
        return _bad("digit must be an integer 0-9")

    handle, err = _current()
    if err:
        return err
    with handle.lock:
        handle.advance()
        accepted = handle.engine.press_digit(digit)
        return jsonify({**handle.payload(), "accepted": accepted}), 200

@bp.post("/api/operator")
def api_operator():
    op = _body().get("op")
    if not isinstance(op, str) or not op:
        return _bad("op must be one of + - * / ( )")

    handle, err = _current()
    if err:
        return err
    with handle.lock:
        handle.advance()
        accepted = handle.engine.press_operator(op.strip())
        return jsonify({**handle.payload(), "accepted": accepted}), 200

@bp.post("/api/clear")
def api_clear():
    handle, err = _current()
    if err:
        return err
    with handle.lock:
        handle.advance()
        accepted = handle.engine.clear()
        return jsonify({**handle.payload(), "accepted": accepted}), 200

@bp.post("/api/submit")
@limiter.limit(lambda: current_app.config.get("RATELIMIT_SUBMIT", "60 per minute"))
def api_submit():
    handle, err = _current()
    if err:
        return err
    with handle.lock:
        handle.advance()
        verdict = handle.engine.submit()
        logger.info("submit round=%s verdict=%s", handle.engine.round_id,
                    verdict.status if verdict else "ignored")
        return jsonify({
            **handle.payload(),
            "verdict": verdict.to_payload() if verdict else None,
        }), 200

@bp.post("/api/abort")
def api_abort():
    handle, err = _current()
    if err:
        return err
    with handle.lock:
        handle.advance()
        accepted = handle.engine.abort()
        return jsonify({**handle.payload(), "accepted": accepted}), 200
