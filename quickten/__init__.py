# quickten/__init__.py
from __future__ import annotations
import logging
import click
from flask import Flask

from .db import db
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from config import Config

# --- extensions ---
migrate = Migrate()
login_manager = LoginManager()
# dev-friendly in-memory limiter; swap for redis in prod
limiter = Limiter(get_remote_address, storage_uri="memory://")

_LOGGERS = ("quickten", "quickten.games", "quickten.scores", "quickten.auth", "werkzeug")


def create_app(config_class=Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)

    # ---------------------------
    # Config
    # ---------------------------
    app.config.from_object(config_class)
    app.config.from_pyfile("config.py", silent=True)  # instance/config.py (optional)

    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        raise RuntimeError(
            "Missing SQLALCHEMY_DATABASE_URI (or DATABASE_URL). "
            "Set it via env or instance/config.py."
        )
    if not app.config.get("SECRET_KEY"):
        raise RuntimeError("Missing SECRET_KEY; anonymous sign-in needs signed sessions.")

    # ---------------------------
    # Logging
    # ---------------------------
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    app.logger.setLevel(level)
    for name in _LOGGERS:
        logging.getLogger(name).setLevel(level)

    # ---------------------------
    # Extensions init
    # ---------------------------
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    from .auth.identity import load_player

    @login_manager.user_loader
    def _load_player(player_id):
        return load_player(player_id)

    # ---------------------------
    # Blueprints
    # ---------------------------
    from .games.ten.ten_routes import bp as quickten_bp
    app.register_blueprint(quickten_bp)

    from .leaderboard.routes import leaderboard_bp
    app.register_blueprint(leaderboard_bp)

    # ---------------------------
    # Tables
    # ---------------------------
    with app.app_context():
        if app.config.get("AUTO_CREATE_TABLES", True):
            from . import models  # noqa: F401
            db.create_all()
            app.logger.info("tables ensured on %s", db.engine.url.render_as_string(hide_password=True))

    # ---------------------------
    # CLI commands
    # ---------------------------
    @app.cli.command("quickten-reset-scores")
    @click.option("--player", "player_id", default=None, help="Only reset this player id.")
    def reset_scores(player_id):
        """Delete stored best scores (all players, or one)."""
        from .scores.sync import get_synchronizer
        n = get_synchronizer().store.reset(player_id)
        click.echo(f"Deleted {n} score record(s).")

    @app.cli.command("quickten-ranking")
    @click.option("--limit", default=10, show_default=True, type=int)
    def ranking(limit):
        """Print the top-N leaderboard."""
        from .scores.sync import get_synchronizer
        outcome = get_synchronizer().fetch_top_ranking(limit)
        if not outcome.ok:
            raise click.ClickException(f"could not load ranking: {outcome.error}")
        if not outcome.value:
            click.echo("No scores yet.")
        for rank, e in enumerate(outcome.value, start=1):
            click.echo(f"{rank:>3}. {e.player_id}  {e.best_score}")

    @app.cli.command("quickten-solve")
    @click.argument("digits", nargs=4, type=click.IntRange(1, 9))
    @click.option("--target", default=None, type=int, help="Defaults to the TARGET config value.")
    @click.option("--all", "show_all", is_flag=True, help="List every solution found.")
    def solve(digits, target, show_all):
        """Solve a hand, e.g. `flask quickten-solve 1 2 3 4`."""
        from .games.core.puzzle import enumerate_solutions, solve_one
        goal = target if target is not None else int(app.config.get("TARGET", 10))
        sols = enumerate_solutions(digits, goal) if show_all else [s for s in [solve_one(digits, goal)] if s]
        if not sols:
            click.echo(f"No solution for {goal}.")
        for s in sols:
            click.echo(f"{s} = {goal}")

    # ---------------------------
    # Security headers
    # ---------------------------
    @app.after_request
    def set_security_headers(resp):
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return resp

    return app
