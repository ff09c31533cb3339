"""Tests for the token lifecycle: state values, caching, refresh, invalid grants."""

import json
import threading
import time
from urllib.parse import parse_qs

import pytest
import responses

from auth import token_manager
from auth.google_oauth import GOOGLE_TOKEN_URL, OAuthError
from auth.token_manager import (
    REFRESH_TOKEN_KEY,
    TOKEN_DATA_KEY,
    NotAuthenticatedError,
    clear_tokens,
    consume_state,
    get_access_token,
    is_authenticated,
    issue_state,
    save_tokens,
    token_status,
)
from auth.token_store import TokenStore

NOW = 1_700_000_000.0


class TestState:
    def test_issued_state_is_accepted_once(self, store) -> None:
        state = issue_state(store)

        assert consume_state(store, state) is True
        assert consume_state(store, state) is False

    def test_unknown_state_is_rejected(self, store) -> None:
        issue_state(store)
        assert consume_state(store, "forged-state") is False

    def test_empty_state_is_rejected(self, store) -> None:
        assert consume_state(store, "") is False
        assert consume_state(store, None) is False

    def test_expired_state_is_rejected(self, store, monkeypatch) -> None:
        state = issue_state(store)

        later = time.time() + token_manager.STATE_TTL + 1
        monkeypatch.setattr("auth.token_store.time.time", lambda: later)

        assert consume_state(store, state) is False

    def test_states_are_unique(self, store) -> None:
        assert issue_state(store) != issue_state(store)

    @pytest.mark.parametrize("file_backed", [False, True])
    def test_concurrent_callbacks_accept_state_once(self, tmp_path, file_backed) -> None:
        store = TokenStore(tmp_path / "tokens.json") if file_backed else TokenStore()
        state = issue_state(store)
        barrier = threading.Barrier(8)
        results = []

        def callback():
            barrier.wait()
            results.append(consume_state(store, state))

        threads = [threading.Thread(target=callback) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert results.count(False) == 7


class TestSaveTokens:
    def test_stores_refresh_token_and_expiry(self, store) -> None:
        save_tokens(store, {"access_token": "at", "refresh_token": "rt", "expires_in": 3600}, now=NOW)

        assert store.get(REFRESH_TOKEN_KEY) == "rt"
        assert json.loads(store.get(TOKEN_DATA_KEY)) == {"access_token": "at", "expires_at": NOW + 3600}

    def test_keeps_existing_refresh_token_when_none_returned(self, store) -> None:
        store.put(REFRESH_TOKEN_KEY, "original")
        save_tokens(store, {"access_token": "at", "expires_in": 3600}, now=NOW)

        assert store.get(REFRESH_TOKEN_KEY) == "original"


class TestGetAccessToken:
    def test_not_authenticated_without_refresh_token(self, store) -> None:
        with pytest.raises(NotAuthenticatedError, match="Please authenticate first"):
            get_access_token(store)

    def test_returns_cached_token_while_valid(self, store) -> None:
        save_tokens(store, {"access_token": "cached", "refresh_token": "rt", "expires_in": 3600}, now=NOW)

        result = get_access_token(store, now=NOW + 600)

        assert result == {"access_token": "cached", "expires_in": 3000}

    @responses.activate
    def test_refreshes_inside_expiry_margin(self, store) -> None:
        save_tokens(store, {"access_token": "old", "refresh_token": "rt", "expires_in": 3600}, now=NOW)
        responses.add(
            responses.POST,
            GOOGLE_TOKEN_URL,
            json={"access_token": "fresh", "expires_in": 3599},
            status=200,
        )

        # 4 minutes left: below the 5 minute margin
        result = get_access_token(store, now=NOW + 3600 - 240)

        assert result == {"access_token": "fresh", "expires_in": 3599}
        assert parse_qs(responses.calls[0].request.body)["refresh_token"] == ["rt"]
        cached = json.loads(store.get(TOKEN_DATA_KEY))
        assert cached["access_token"] == "fresh"
        assert cached["expires_at"] == NOW + 3600 - 240 + 3599

    @responses.activate
    def test_refreshes_without_cached_token(self, store) -> None:
        store.put(REFRESH_TOKEN_KEY, "rt")
        responses.add(responses.POST, GOOGLE_TOKEN_URL, json={"access_token": "fresh", "expires_in": 3599})

        assert get_access_token(store, now=NOW)["access_token"] == "fresh"

    @responses.activate
    def test_stores_rotated_refresh_token(self, store) -> None:
        store.put(REFRESH_TOKEN_KEY, "rt")
        responses.add(
            responses.POST,
            GOOGLE_TOKEN_URL,
            json={"access_token": "fresh", "expires_in": 3599, "refresh_token": "rt-2"},
        )

        get_access_token(store, now=NOW)

        assert store.get(REFRESH_TOKEN_KEY) == "rt-2"

    @responses.activate
    def test_invalid_grant_clears_tokens(self, store) -> None:
        save_tokens(store, {"access_token": "old", "refresh_token": "rt", "expires_in": 10}, now=NOW)
        responses.add(
            responses.POST,
            GOOGLE_TOKEN_URL,
            json={"error": "invalid_grant", "error_description": "Token has been expired or revoked."},
            status=400,
        )

        with pytest.raises(OAuthError):
            get_access_token(store, now=NOW)

        assert store.get(REFRESH_TOKEN_KEY) is None
        assert store.get(TOKEN_DATA_KEY) is None

    @responses.activate
    def test_other_errors_keep_tokens(self, store) -> None:
        store.put(REFRESH_TOKEN_KEY, "rt")
        responses.add(
            responses.POST,
            GOOGLE_TOKEN_URL,
            json={"error": "invalid_client"},
            status=401,
        )

        with pytest.raises(OAuthError):
            get_access_token(store, now=NOW)

        assert store.get(REFRESH_TOKEN_KEY) == "rt"

    def test_unreadable_cache_triggers_refresh(self, store, monkeypatch) -> None:
        store.put(REFRESH_TOKEN_KEY, "rt")
        store.put(TOKEN_DATA_KEY, "{not json")
        monkeypatch.setattr(
            token_manager,
            "refresh_access_token",
            lambda rt: {"access_token": "fresh", "expires_in": 3599},
        )

        assert get_access_token(store, now=NOW)["access_token"] == "fresh"

    @pytest.mark.parametrize("cached", [
        ["not", "a", "dict"],
        {"access_token": "stale"},
        {"expires_at": NOW + 3600},
        {"access_token": "stale", "expires_at": "tomorrow"},
    ])
    def test_malformed_cache_triggers_refresh(self, store, monkeypatch, cached) -> None:
        store.put(REFRESH_TOKEN_KEY, "rt")
        store.put(TOKEN_DATA_KEY, json.dumps(cached))
        monkeypatch.setattr(
            token_manager,
            "refresh_access_token",
            lambda rt: {"access_token": "fresh", "expires_in": 3599},
        )

        assert get_access_token(store, now=NOW)["access_token"] == "fresh"
        assert token_status(store, now=NOW)["access_token_expires_in"] == 3599


class TestStatus:
    def test_clear_tokens(self, store) -> None:
        save_tokens(store, {"access_token": "at", "refresh_token": "rt", "expires_in": 3600}, now=NOW)
        assert is_authenticated(store) is True

        clear_tokens(store)

        assert is_authenticated(store) is False
        assert store.get(TOKEN_DATA_KEY) is None

    def test_token_status_reports_remaining_lifetime(self, store) -> None:
        save_tokens(store, {"access_token": "at", "refresh_token": "rt", "expires_in": 3600}, now=NOW)

        assert token_status(store, now=NOW + 100) == {
            "authenticated": True,
            "access_token_expires_in": 3500,
        }

    def test_token_status_when_disconnected(self, store) -> None:
        assert token_status(store) == {"authenticated": False, "access_token_expires_in": None}
