import os
from datetime import timedelta

class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=int(os.environ.get("JWT_ACCESS_TOKEN_EXPIRES_DAYS", "7")))
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///expenses.db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Bearer tokens only, no cookies to protect
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    DEFAULT_PAGE_SIZE = 50
    MAX_PAGE_SIZE = 100

class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "testing-secret-key-with-enough-length-for-hs256"
    JWT_SECRET_KEY = SECRET_KEY
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOG_LEVEL = "WARNING"
