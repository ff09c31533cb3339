"""Pytest configuration and shared fixtures for the test suite."""

import copy

import pytest

from auth.token_store import TokenStore
from settings import DEFAULTS


@pytest.fixture(autouse=True)
def google_client_env(monkeypatch):
    """Google client credentials for every test."""
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "test-client-secret")
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


@pytest.fixture
def config():
    """Default configuration with an in-memory token store and a GitHub user."""
    cfg = copy.deepcopy(DEFAULTS)
    cfg["worker"]["token_store"] = ":memory:"
    cfg["github"]["username"] = "octocat"
    cfg["reddit"]["subreddits"] = ["programming"]
    cfg["links"] = [
        {"name": "GitHub", "url": "https://github.com"},
        {"name": "CCB", "url": "https://ccb.belgium.be"},
    ]
    cfg["quotes"] = [{"text": "Talk is cheap. Show me the code.", "author": "Linus Torvalds"}]
    return cfg


@pytest.fixture
def store():
    """In-memory token store."""
    return TokenStore()


@pytest.fixture
def worker_client(config, store):
    """Flask test client for the token worker."""
    from delivery.token_worker import create_app

    app = create_app(config, store)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def dashboard_client(config, store):
    """Flask test client for the dashboard."""
    from delivery.dashboard import create_app

    app = create_app(config, store)
    app.config["TESTING"] = True
    return app.test_client()
