"""
Configuration loading for the dashboard and the token worker.
Non-secret settings live in config.yaml; secrets come from the environment (.env).
"""

import copy
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

load_dotenv()

CONFIG_PATH = Path(__file__).parent / "config.yaml"

DEFAULTS = {
    "timezone": "Europe/Brussels",
    "dashboard": {
        "title": "DAEMON",
        "host": "127.0.0.1",
        "port": 8080,
        "search_url": "https://duckduckgo.com/?q=",
        "token_worker_url": "http://localhost:8787",
    },
    "worker": {
        "host": "127.0.0.1",
        "port": 8787,
        "public_url": None,
        "token_store": "~/.daemon_dashboard_tokens.json",
        "allowed_origins": [
            "https://b3.wtf",
            "https://berthuygens.github.io",
            "http://localhost:8080",
            "http://127.0.0.1:8080",
        ],
        "allowed_feeds": [
            "https://ccb.belgium.be/advisories.xml",
        ],
    },
    "github": {
        "username": None,
        "max_items": 5,
    },
    "calendar": {
        "calendar_id": "primary",
        "days_ahead": 1,
    },
    "reddit": {
        "subreddits": ["programming", "netsec"],
        "max_posts": 5,
    },
    "advisories": {
        "feed_url": "https://ccb.belgium.be/advisories.xml",
        "max_items": 8,
    },
    "links": [],
    "quotes": [],
}


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path=None) -> dict:
    """Load config.yaml merged over DEFAULTS. A missing file yields the defaults."""
    config_path = Path(path or os.environ.get("DASHBOARD_CONFIG", CONFIG_PATH)).expanduser()
    if not config_path.exists():
        return copy.deepcopy(DEFAULTS)
    with open(config_path) as f:
        return _merge(DEFAULTS, yaml.safe_load(f) or {})
