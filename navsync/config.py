import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    WEBHOOK_SECRET = os.environ.get("WEBHOOK_SECRET", "")
    WEBHOOK_BRANCH = os.environ.get("WEBHOOK_BRANCH", "")
    BOOKMARKS_SOURCE_URL = os.environ.get("BOOKMARKS_SOURCE_URL", "")
    BOOKMARKS_SOURCE_TOKEN = os.environ.get("BOOKMARKS_SOURCE_TOKEN", "")
    BOOKMARKS_SOURCE_PATH = os.environ.get("BOOKMARKS_SOURCE_PATH", "bookmarks.html")
    STORE_BACKEND = os.environ.get("STORE_BACKEND", "local")
    STORE_LOCAL_DIR = os.environ.get("STORE_LOCAL_DIR", str(BASE_DIR / "site"))
    GITHUB_TOKEN = os.environ.get("GITHUB_TOKEN", "")
    GITHUB_REPO = os.environ.get("GITHUB_REPO", "")
    GITHUB_BRANCH = os.environ.get("GITHUB_BRANCH", "main")
    GITHUB_API_URL = os.environ.get("GITHUB_API_URL", "https://api.github.com")
    STORE_PATH = os.environ.get("STORE_PATH", "src/data/mock_data.js")
    STORE_TITLE = os.environ.get("STORE_TITLE", "My Navigation")
    ICON_DIR = os.environ.get("ICON_DIR", "public/sitelogo")
    ICON_URL_PREFIX = os.environ.get("ICON_URL_PREFIX", "/sitelogo")
    RULES_PATH = os.environ.get("RULES_PATH", "")
    ICON_FETCH_TIMEOUT = float(os.environ.get("ICON_FETCH_TIMEOUT", "10"))
    UPSTREAM_TIMEOUT = float(os.environ.get("UPSTREAM_TIMEOUT", "20"))
    SYNC_MAX_ATTEMPTS = int(os.environ.get("SYNC_MAX_ATTEMPTS", "3"))
    SYNC_RETRY_BACKOFF_SECONDS = float(
        os.environ.get("SYNC_RETRY_BACKOFF_SECONDS", "1.0")
    )
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") == "1"
    SYNC_INTERVAL_MINUTES = int(os.environ.get("SYNC_INTERVAL_MINUTES", "0"))


class TestConfig(Config):
    TESTING = True
    WEBHOOK_SECRET = "test-secret"
    WEBHOOK_BRANCH = ""
    BOOKMARKS_SOURCE_URL = ""
    STORE_BACKEND = "local"
    RULES_PATH = ""
    SYNC_RETRY_BACKOFF_SECONDS = 0.0
    SCHEDULER_ENABLED = False
