"""
DAEMON Dashboard — entry point.
Serves the dashboard or the token worker, and inspects or clears stored Google tokens.
"""

import argparse
import logging
import sys
from pathlib import Path

from settings import load_config

log = logging.getLogger(__name__)


def setup_logging():
    log_path = Path("~/.local/state/daemon-dashboard/dashboard.log").expanduser()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_path),
            logging.StreamHandler(sys.stdout),
        ],
    )


def serve_dashboard(config: dict, port: int = None):
    from delivery.dashboard import create_app
    port = port or config["dashboard"]["port"]
    log.info(f"Starting DAEMON Dashboard on http://localhost:{port}")
    create_app(config).run(host=config["dashboard"]["host"], port=port, debug=False)


def serve_worker(config: dict, port: int = None):
    from delivery.token_worker import create_app
    port = port or config["worker"]["port"]
    log.info(f"Starting DAEMON token worker on http://localhost:{port}")
    create_app(config).run(host=config["worker"]["host"], port=port, debug=False)


def show_status(config: dict):
    from auth.token_manager import token_status
    from auth.token_store import TokenStore
    status = token_status(TokenStore.from_config(config))
    if not status["authenticated"]:
        print("✗ Google Calendar not connected. Open the token worker's /auth to connect.")
        return
    print("✓ Google Calendar connected.")
    if status["access_token_expires_in"]:
        print(f"  Cached access token valid for {status['access_token_expires_in'] // 60} more minutes.")
    else:
        print("  No valid cached access token; the next request will refresh it.")


def logout(config: dict):
    from auth.token_manager import clear_tokens
    from auth.token_store import TokenStore
    clear_tokens(TokenStore.from_config(config))
    print("✓ Stored tokens removed.")


def main(argv=None):
    parser = argparse.ArgumentParser(description="DAEMON developer dashboard")
    sub = parser.add_subparsers(dest="command", required=True)
    for name in ("dashboard", "worker"):
        p = sub.add_parser(name)
        p.add_argument("--port", type=int)
    sub.add_parser("status")
    sub.add_parser("logout")
    args = parser.parse_args(argv)

    setup_logging()
    try:
        config = load_config()
        if args.command == "dashboard":
            serve_dashboard(config, args.port)
        elif args.command == "worker":
            serve_worker(config, args.port)
        elif args.command == "status":
            show_status(config)
        else:
            logout(config)
    except Exception as e:
        log.error(f"{args.command} failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
