import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _default_sqlite_uri() -> str:
    instance_path = BASE_DIR / "instance"
    instance_path.mkdir(exist_ok=True)
    return f"sqlite:///{instance_path / 'storyforge.db'}"


class Config:
    """Base configuration shared across environments."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", _default_sqlite_uri())
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_TIME_LIMIT = None
    # CSRF is enforced manually so bearer-token requests can skip it.
    WTF_CSRF_CHECK_DEFAULT = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    ACCESS_TOKEN_TTL_SECONDS = int(os.environ.get("ACCESS_TOKEN_TTL_SECONDS", "3600"))

    LLM_GATEWAY_URL = os.environ.get("LLM_GATEWAY_URL", "https://ai.gateway.lovable.dev/v1")
    LLM_GATEWAY_API_KEY = os.environ.get("LLM_GATEWAY_API_KEY")
    GENERATION_MODEL = os.environ.get("GENERATION_MODEL", "google/gemini-2.5-flash")
    GENERATION_TIMEOUT = float(os.environ.get("GENERATION_TIMEOUT", "60"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LLM_GATEWAY_API_KEY = None
