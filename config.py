import os
from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, ".env"))


def _env_bool(name, default):
    return os.environ.get(name, str(default)).lower() in ['true', 'on', '1']


class Config:
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or "sqlite:///" + os.path.join(basedir, "crm.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.environ.get("SECRET_KEY") or "a-dev-secret-key-that-is-not-so-secret"
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY") or SECRET_KEY

    CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "console")  # console / json

    # Automation engine
    AUTOMATION_ENABLED = _env_bool("AUTOMATION_ENABLED", True)
    AUTOMATION_MAX_CHAIN_DEPTH = int(os.environ.get("AUTOMATION_MAX_CHAIN_DEPTH", 5))
    AUTOMATION_SYSTEM_USER_ID = os.environ.get("AUTOMATION_SYSTEM_USER_ID", "system")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret"
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-for-hs256"
    LOG_LEVEL = "INFO"
    AUTOMATION_ENABLED = True
    AUTOMATION_MAX_CHAIN_DEPTH = 5
