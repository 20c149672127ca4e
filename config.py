import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///quickten.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = _env_bool("SQLALCHEMY_ECHO", False)
    AUTO_CREATE_TABLES = _env_bool("AUTO_CREATE_TABLES", True)

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    RATELIMIT_DEFAULT = os.environ.get("RATELIMIT_DEFAULT", "600 per hour; 120 per minute")
    RATELIMIT_SUBMIT = os.environ.get("RATELIMIT_SUBMIT", "60 per minute")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Round rules
    ROUND_SECONDS = int(os.environ.get("ROUND_SECONDS", "60"))
    WARNING_SECONDS = int(os.environ.get("WARNING_SECONDS", "10"))
    REWARD_SECONDS = int(os.environ.get("REWARD_SECONDS", "15"))
    TARGET = int(os.environ.get("TARGET", "10"))
    SOLVABLE_ONLY = _env_bool("SOLVABLE_ONLY", False)  # you can turn this on later

    # Leaderboard
    SCORE_STORE = os.environ.get("SCORE_STORE", "sql")   # "sql" | "memory"
    RANKING_LIMIT = int(os.environ.get("RANKING_LIMIT", "10"))
    RANKING_MAX_LIMIT = 100
