# quickten/leaderboard/routes.py
from flask import Blueprint, current_app, jsonify, request

from quickten.auth.identity import SessionIdentityProvider
from quickten.games.core.rounds import get_round_registry, round_key
from quickten.scores.store import NotAuthenticatedError
from quickten.scores.sync import get_synchronizer

leaderboard_bp = Blueprint("leaderboard", __name__, url_prefix="/leaderboard")

identity = SessionIdentityProvider()


def _limit():
    raw = request.args.get("limit")
    if raw in (None, ""):
        return int(current_app.config.get("RANKING_LIMIT", 10))
    limit = int(raw)   # ValueError -> 400 below
    return max(1, min(limit, int(current_app.config.get("RANKING_MAX_LIMIT", 100))))


def _settle_own_round():
    """Let an overdue round of the caller end (and save) before reading the best."""
    pid = identity.current_identity()
    if not pid:
        return
    handle = get_round_registry().get(round_key(pid, request))
    if handle is not None:
        with handle.lock:
            handle.advance()


@leaderboard_bp.get("/api/top")
def top():
    """Top-N players by best score."""
    try:
        limit = _limit()
    except ValueError:
        return jsonify({"ok": False, "reason": "limit must be an integer"}), 400

    outcome = get_synchronizer().fetch_top_ranking(limit)
    if not outcome.ok:
        return jsonify({**outcome.to_payload(), "reason": "could not load ranking"}), 503

    me = identity.current_identity()
    leaderboard = []
    for rank, entry in enumerate(outcome.value, start=1):
        leaderboard.append({
            **entry.to_payload(),
            "rank": rank,
            "is_me": entry.player_id == me,
        })
    return jsonify({"ok": True, "limit": limit, "leaderboard": leaderboard}), 200


@leaderboard_bp.get("/api/me")
def my_best():
    """Current player's stored best score (null if never saved)."""
    _settle_own_round()
    outcome = get_synchronizer().fetch_best()
    if not outcome.ok:
        status = 401 if isinstance(outcome.error, NotAuthenticatedError) else 503
        return jsonify(outcome.to_payload()), status
    return jsonify({
        "ok": True,
        "player_id": identity.current_identity(),
        "best_score": outcome.value,
    }), 200
