import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'threadclip.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    DEFAULT_STORAGE_LIMIT = int(os.environ.get("DEFAULT_STORAGE_LIMIT", "1000"))

    CANONICAL_POST_HOST = os.environ.get("CANONICAL_POST_HOST", "www.threads.net")
    PREVIEW_ENDPOINT = os.environ.get(
        "PREVIEW_ENDPOINT", "https://www.threads.com/api/oembed"
    )
    PREVIEW_USER_AGENT = os.environ.get("PREVIEW_USER_AGENT", "ThreadClip/1.0")
    PREVIEW_TIMEOUT = float(os.environ.get("PREVIEW_TIMEOUT", "5"))

    IDENTITY_ASSERTION_MAX_AGE = int(
        os.environ.get("IDENTITY_ASSERTION_MAX_AGE", "300")
    )
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "")
    ADMIN_TOKEN_MAX_AGE = int(os.environ.get("ADMIN_TOKEN_MAX_AGE", "43200"))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    DEFAULT_STORAGE_LIMIT = 1000
    LOG_LEVEL = "WARNING"
    ADMIN_EMAIL = "admin@threadclip.test"
    ADMIN_PASSWORD = "admin-secret"
