"""
Token lifecycle for the single dashboard user.
Keeps the refresh token and a cached access token in the TokenStore,
refreshes through Google when the cached token is about to expire,
and issues single-use state values for the authorization redirect.
"""

import json
import logging
import secrets
import time

from auth.google_oauth import OAuthError, refresh_access_token

log = logging.getLogger(__name__)

REFRESH_TOKEN_KEY = "refresh_token"
TOKEN_DATA_KEY = "token_data"
STATE_PREFIX = "oauth_state:"

STATE_TTL = 600
EXPIRY_MARGIN = 300


class NotAuthenticatedError(RuntimeError):
    """No refresh token stored; the user has to go through /auth first."""


def issue_state(store) -> str:
    state = secrets.token_urlsafe(32)
    store.put(STATE_PREFIX + state, "1", ttl=STATE_TTL)
    return state


def consume_state(store, state: str) -> bool:
    """True exactly once for a state issued by issue_state and not yet expired."""
    if not state:
        return False
    return store.pop(STATE_PREFIX + state) is not None


def save_tokens(store, tokens: dict, now: float = None):
    now = time.time() if now is None else now
    if tokens.get("refresh_token"):
        store.put(REFRESH_TOKEN_KEY, tokens["refresh_token"])
    token_data = {
        "access_token": tokens["access_token"],
        "expires_at": now + int(tokens.get("expires_in", 0)),
    }
    store.put(TOKEN_DATA_KEY, json.dumps(token_data))


def _cached_token(store):
    raw = store.get(TOKEN_DATA_KEY)
    if not raw:
        return None
    try:
        cached = json.loads(raw)
    except ValueError:
        cached = None
    if (not isinstance(cached, dict)
            or not {"access_token", "expires_at"} <= cached.keys()
            or not isinstance(cached["expires_at"], (int, float))):
        log.warning("Discarding unreadable cached token data.")
        return None
    return cached


def get_access_token(store, now: float = None) -> dict:
    """
    Return {"access_token", "expires_in"}, refreshing when the cached token
    has less than EXPIRY_MARGIN seconds left.
    """
    refresh_token = store.get(REFRESH_TOKEN_KEY)
    if not refresh_token:
        raise NotAuthenticatedError("No refresh token stored. Please authenticate first.")

    now = time.time() if now is None else now
    cached = _cached_token(store)
    if cached and cached["expires_at"] > now + EXPIRY_MARGIN:
        return {
            "access_token": cached["access_token"],
            "expires_in": int(cached["expires_at"] - now),
        }

    log.info("Refreshing Google access token.")
    try:
        tokens = refresh_access_token(refresh_token)
    except OAuthError as e:
        if e.error == "invalid_grant":
            log.warning("Refresh token rejected by Google, clearing stored tokens.")
            clear_tokens(store)
        raise

    save_tokens(store, tokens, now=now)
    return {
        "access_token": tokens["access_token"],
        "expires_in": tokens.get("expires_in"),
    }


def is_authenticated(store) -> bool:
    return bool(store.get(REFRESH_TOKEN_KEY))


def clear_tokens(store):
    store.delete(REFRESH_TOKEN_KEY)
    store.delete(TOKEN_DATA_KEY)


def token_status(store, now: float = None) -> dict:
    now = time.time() if now is None else now
    cached = _cached_token(store)
    expires_in = None
    if cached:
        expires_in = max(0, int(cached["expires_at"] - now))
    return {"authenticated": is_authenticated(store), "access_token_expires_in": expires_in}
