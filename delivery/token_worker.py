#!/usr/bin/env python3
"""
DAEMON token worker — Flask app that manages Google OAuth tokens for the dashboard.

/auth      redirect to the Google consent screen
/callback  exchange the authorization code, store the refresh token
/token     return a fresh access token using the stored refresh token
/logout    remove stored tokens
/status    report whether a refresh token is stored
/rss       fetch an allow-listed RSS feed for the browser (CORS)
"""

import logging
import sys
from pathlib import Path

import requests
from flask import Flask, Response, jsonify, redirect, render_template_string, request
from werkzeug.exceptions import HTTPException

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from auth import token_manager
from auth.google_oauth import OAuthError, build_authorization_url, exchange_code
from auth.token_store import TokenStore
from settings import load_config

log = logging.getLogger(__name__)

RSS_USER_AGENT = "DAEMON Dashboard RSS Fetcher"
RSS_TIMEOUT = 10


def create_app(config=None, store=None) -> Flask:
    config = config or load_config()
    worker_config = config["worker"]
    allowed_origins = list(worker_config["allowed_origins"])
    allowed_feeds = list(worker_config["allowed_feeds"])

    app = Flask(__name__)
    app.config["TOKEN_STORE"] = store or TokenStore.from_config(config)

    def _store() -> TokenStore:
        return app.config["TOKEN_STORE"]

    def _cors_origin() -> str:
        origin = request.headers.get("Origin")
        return origin if origin in allowed_origins else allowed_origins[0]

    def _cors(response, methods="GET, POST, OPTIONS"):
        response.headers["Access-Control-Allow-Origin"] = _cors_origin()
        response.headers["Access-Control-Allow-Methods"] = methods
        if "POST" in methods:
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
        return response

    def _json(data, status=200):
        return _cors(jsonify(data)), status

    def _redirect_uri() -> str:
        base = worker_config.get("public_url") or request.host_url
        return f"{base.rstrip('/')}/callback"

    def _failure_page(title, message, status=200, auto_close=False):
        html = render_template_string(
            FAILURE_TEMPLATE, title=title, message=message, auto_close=auto_close
        )
        return Response(html, status=status, mimetype="text/html")

    @app.before_request
    def preflight():
        if request.method == "OPTIONS":
            return _cors(Response(status=200))

    @app.route("/auth")
    def auth():
        state = token_manager.issue_state(_store())
        return redirect(build_authorization_url(_redirect_uri(), state), code=302)

    @app.route("/callback")
    def callback():
        error = request.args.get("error")
        if error:
            log.warning(f"Authorization denied: {error}")
            return _failure_page("Authorization Failed", f"Error: {error}", auto_close=True)

        code = request.args.get("code")
        if not code:
            return _failure_page("Authorization Failed", "No authorization code received")

        if not token_manager.consume_state(_store(), request.args.get("state")):
            log.warning("Rejected OAuth callback with invalid or expired state.")
            return _failure_page("Authorization Failed", "Invalid or expired state", status=400)

        try:
            tokens = exchange_code(code, _redirect_uri())
        except OAuthError as e:
            log.warning(f"Token exchange failed: {e.error}")
            return _failure_page("Token Exchange Failed", f"Error: {e.description or e.error}")

        token_manager.save_tokens(_store(), tokens)
        log.info("Google Calendar connected.")

        message = {
            "type": "oauth-success",
            "accessToken": tokens["access_token"],
            "expiresIn": tokens.get("expires_in"),
        }
        html = render_template_string(
            SUCCESS_TEMPLATE, message=message, allowed_origins=allowed_origins
        )
        return Response(html, mimetype="text/html")

    @app.route("/token", methods=["GET", "POST"])
    def token():
        try:
            return _json(token_manager.get_access_token(_store()))
        except token_manager.NotAuthenticatedError as e:
            return _json({"error": "not_authenticated", "message": str(e)}, 401)
        except OAuthError as e:
            return _json({
                "error": e.error,
                "message": e.description or "Token refresh failed",
            }, 401)

    @app.route("/logout", methods=["GET", "POST"])
    def logout():
        token_manager.clear_tokens(_store())
        log.info("Stored tokens removed.")
        return _json({"success": True})

    @app.route("/status", methods=["GET", "POST"])
    def status():
        return _json({"authenticated": token_manager.is_authenticated(_store())})

    @app.route("/rss")
    def rss():
        feed_url = request.args.get("url")
        if not feed_url:
            return _json({"error": "Missing url parameter"}, 400)
        if feed_url not in allowed_feeds:
            return _json({"error": "Feed not allowed"}, 403)

        try:
            r = requests.get(feed_url, headers={"User-Agent": RSS_USER_AGENT}, timeout=RSS_TIMEOUT)
        except requests.RequestException as e:
            log.warning(f"RSS fetch failed for {feed_url}: {e}")
            return _json({"error": "Failed to fetch feed"}, 502)

        if not r.ok:
            return _json({"error": f"Feed returned {r.status_code}"}, 502)

        response = Response(r.content, status=200, content_type="application/xml")
        response.headers["Cache-Control"] = "public, max-age=300"
        return _cors(response, methods="GET, OPTIONS")

    @app.route("/health")
    def health():
        return _json({"status": "healthy", "service": "daemon-token-worker"})

    @app.errorhandler(404)
    def not_found(e):
        return _json({"error": "Not found"}, 404)

    @app.errorhandler(Exception)
    def internal_error(e):
        if isinstance(e, HTTPException):
            return _json({"error": e.description}, e.code)
        log.error(f"Worker error: {e}", exc_info=True)
        return _json({"error": str(e)}, 500)

    return app


FAILURE_TEMPLATE = """<!DOCTYPE html>
<html>
<head><title>{{ title }}</title></head>
<body>
    <h1>{{ title }}</h1>
    <p>{{ message }}</p>
    {% if auto_close %}<script>setTimeout(() => window.close(), 3000);</script>{% endif %}
</body>
</html>
"""

SUCCESS_TEMPLATE = """<!DOCTYPE html>
<html>
<head><title>Authorization Successful</title></head>
<body style="font-family: system-ui; display: flex; justify-content: center; align-items: center; height: 100vh; margin: 0; background: #0d1117; color: #e6edf3;">
    <div style="text-align: center;">
        <h1 style="color: #3fb950;">Connected!</h1>
        <p>Google Calendar is now connected.</p>
        <p style="color: #8b949e;">This window will close automatically...</p>
    </div>
    <script>
        // Only the opener whose origin matches receives the message.
        const allowedOrigins = {{ allowed_origins|tojson }};
        const message = {{ message|tojson }};
        if (window.opener) {
            allowedOrigins.forEach(origin => {
                try {
                    window.opener.postMessage(message, origin);
                } catch (e) {}
            });
        }
        setTimeout(() => window.close(), 2000);
    </script>
</body>
</html>
"""


if __name__ == "__main__":
    config = load_config()
    port = config["worker"]["port"]
    print(f"Starting DAEMON token worker on http://localhost:{port}")
    create_app(config).run(host=config["worker"]["host"], port=port, debug=False)
