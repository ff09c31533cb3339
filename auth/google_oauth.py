"""
Google OAuth2 authorization-code flow with refresh tokens.
Builds the consent URL, exchanges the callback code, refreshes access tokens.
"""

import os
from urllib.parse import urlencode

import requests

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

SCOPES = [
    "https://www.googleapis.com/auth/calendar.readonly",
]

REQUEST_TIMEOUT = 10


class OAuthError(RuntimeError):
    """Error body returned by the Google token endpoint."""

    def __init__(self, error: str, description: str = None):
        self.error = error
        self.description = description
        super().__init__(description or error)


def _client_credentials() -> tuple[str, str]:
    return os.environ["GOOGLE_CLIENT_ID"], os.environ["GOOGLE_CLIENT_SECRET"]


def _post_token(data: dict) -> dict:
    client_id, client_secret = _client_credentials()
    r = requests.post(
        GOOGLE_TOKEN_URL,
        data={"client_id": client_id, "client_secret": client_secret, **data},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        timeout=REQUEST_TIMEOUT,
    )
    try:
        tokens = r.json()
    except ValueError:
        raise OAuthError("invalid_response", f"Token endpoint returned HTTP {r.status_code}")
    if "error" in tokens:
        raise OAuthError(tokens["error"], tokens.get("error_description"))
    return tokens


def build_authorization_url(redirect_uri: str, state: str) -> str:
    """Consent screen URL. offline + consent makes Google issue a refresh token."""
    client_id, _ = _client_credentials()
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def exchange_code(code: str, redirect_uri: str) -> dict:
    """Exchange an authorization code for access and refresh tokens."""
    return _post_token({
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": redirect_uri,
    })


def refresh_access_token(refresh_token: str) -> dict:
    """Get a fresh access token. Google may rotate the refresh token."""
    return _post_token({
        "refresh_token": refresh_token,
        "grant_type": "refresh_token",
    })
