#!/usr/bin/env python3
"""
DAEMON Dashboard — Flask web app serving a single-page developer dashboard.
Shows GitHub work, today's Google Calendar events, Reddit posts,
security advisories, quick links and a quote of the day.
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from flask import Flask, jsonify, render_template_string

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from auth.token_manager import get_access_token, is_authenticated
from auth.token_store import TokenStore
from settings import load_config
from sources.advisories import get_advisories
from sources.github import get_github_items
from sources.google_calendar import get_todays_events
from sources.quotes import quote_of_the_day
from sources.reddit import get_subreddit_posts

log = logging.getLogger(__name__)

# === PANEL BUILDERS ===


def get_github_panel(config: dict) -> dict:
    username = config["github"].get("username")
    if not username:
        return {"success": False, "error": "No GitHub username configured"}
    try:
        items = get_github_items(
            username,
            token=os.environ.get("GITHUB_TOKEN"),
            limit=config["github"]["max_items"],
        )
        return {"success": True, "items": items}
    except Exception as e:
        log.warning(f"GitHub panel failed: {e}")
        return {"success": False, "error": str(e)}


def mark_event_progress(events: list[dict], now: datetime):
    """Flag past events and the current one (in progress, else the next to start)."""
    found_current = False
    for event in events:
        event["is_past"] = False
        event["is_current"] = False
        if event["is_all_day"]:
            continue
        if event["end_dt"] <= now:
            event["is_past"] = True
        elif not found_current:
            event["is_current"] = True
            found_current = True


def get_calendar_events(config: dict, store: TokenStore, now: datetime = None) -> dict:
    """Fetch today's calendar events with error handling."""
    if not is_authenticated(store):
        return {"success": True, "connected": False, "events": []}

    tz = ZoneInfo(config["timezone"])
    try:
        token = get_access_token(store)["access_token"]
        events = get_todays_events(
            token,
            calendar_id=config["calendar"]["calendar_id"],
            days_ahead=config["calendar"]["days_ahead"],
            tz=tz,
        )
    except Exception as e:
        log.warning(f"Calendar panel failed: {e}")
        return {"success": False, "connected": is_authenticated(store), "error": str(e)}

    mark_event_progress(events, now or datetime.now(tz))
    return {"success": True, "connected": True, "events": events}


def get_reddit_panel(config: dict) -> dict:
    try:
        posts = get_subreddit_posts(
            config["reddit"]["subreddits"],
            limit=config["reddit"]["max_posts"],
        )
        return {"success": True, "posts": posts}
    except Exception as e:
        log.warning(f"Reddit panel failed: {e}")
        return {"success": False, "error": str(e)}


def get_advisories_panel(config: dict) -> dict:
    try:
        advisories = get_advisories(
            config["advisories"]["feed_url"],
            limit=config["advisories"]["max_items"],
        )
        return {"success": True, "advisories": advisories}
    except Exception as e:
        log.warning(f"Advisories panel failed: {e}")
        return {"success": False, "error": str(e)}


def _serializable_calendar(panel: dict) -> dict:
    events = [
        {**e, "start_dt": e["start_dt"].isoformat(), "end_dt": e["end_dt"].isoformat()}
        for e in panel.get("events", [])
    ]
    return {**panel, "events": events}


# === FLASK APP ===


def create_app(config=None, store=None) -> Flask:
    config = config or load_config()

    app = Flask(__name__)
    app.config["TOKEN_STORE"] = store or TokenStore.from_config(config)

    def _store() -> TokenStore:
        return app.config["TOKEN_STORE"]

    @app.route("/")
    def dashboard():
        """Render the dashboard."""
        now = datetime.now(ZoneInfo(config["timezone"]))
        return render_template_string(
            TEMPLATE,
            title=config["dashboard"]["title"],
            current_date=now.strftime("%A, %B %-d, %Y"),
            refresh_time=now.strftime("%H:%M"),
            search_url=config["dashboard"]["search_url"],
            worker_url=config["dashboard"]["token_worker_url"].rstrip("/"),
            links=config["links"],
            quote=quote_of_the_day(config["quotes"], now.date()),
            github=get_github_panel(config),
            calendar_data=get_calendar_events(config, _store(), now),
            reddit=get_reddit_panel(config),
            advisories=get_advisories_panel(config),
        )

    @app.route("/api/github")
    def api_github():
        return jsonify(get_github_panel(config))

    @app.route("/api/calendar")
    def api_calendar():
        return jsonify(_serializable_calendar(get_calendar_events(config, _store())))

    @app.route("/api/reddit")
    def api_reddit():
        return jsonify(get_reddit_panel(config))

    @app.route("/api/advisories")
    def api_advisories():
        return jsonify(get_advisories_panel(config))

    @app.route("/health")
    def health():
        return jsonify({"status": "healthy", "service": "daemon-dashboard"})

    return app


TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }}</title>
    <style>
        * {
            margin: 0;
            padding: 0;
            box-sizing: border-box;
        }

        body {
            font-family: -apple-system, BlinkMacSystemFont, 'SF Pro Display', 'Segoe UI', sans-serif;
            background: #ffffff;
            color: #1f2937;
            line-height: 1.5;
            padding: 20px;
        }

        body.dark {
            background: #0d1117;
            color: #e6edf3;
        }

        a {
            color: inherit;
            text-decoration: none;
        }

        a:hover {
            text-decoration: underline;
        }

        .header {
            display: flex;
            justify-content: space-between;
            align-items: center;
            margin-bottom: 8px;
            padding-bottom: 12px;
            border-bottom: 1px solid #e5e7eb;
        }

        body.dark .header {
            border-bottom-color: #30363d;
        }

        .header-left {
            font-size: 20px;
            font-weight: 600;
            letter-spacing: 0.1em;
        }

        .header-right {
            display: flex;
            align-items: center;
            gap: 16px;
        }

        .clock {
            font-size: 20px;
            font-variant-numeric: tabular-nums;
        }

        .current-date {
            font-size: 14px;
            color: #6b7280;
        }

        .btn {
            background: #3b82f6;
            color: white;
            border: none;
            padding: 6px 16px;
            border-radius: 6px;
            cursor: pointer;
            font-size: 13px;
            font-weight: 500;
        }

        .btn:hover {
            background: #2563eb;
        }

        .btn.secondary {
            background: #6b7280;
        }

        .refresh-time {
            font-size: 12px;
            color: #9ca3af;
            margin-bottom: 16px;
        }

        .search {
            margin-bottom: 16px;
        }

        .search input {
            width: 100%;
            padding: 10px 14px;
            font-size: 15px;
            border: 1px solid #d1d5db;
            border-radius: 8px;
            background: transparent;
            color: inherit;
        }

        .links {
            display: flex;
            flex-wrap: wrap;
            gap: 8px;
            margin-bottom: 16px;
        }

        .link {
            padding: 6px 12px;
            border: 1px solid #e5e7eb;
            border-radius: 6px;
            font-size: 13px;
            cursor: grab;
        }

        body.dark .link {
            border-color: #30363d;
        }

        .link.dragging {
            opacity: 0.4;
        }

        .quote {
            font-style: italic;
            color: #6b7280;
            margin-bottom: 16px;
        }

        .dashboard {
            display: grid;
            grid-template-columns: repeat(4, 1fr);
            gap: 1px;
            background: #e5e7eb;
            border: 1px solid #e5e7eb;
        }

        body.dark .dashboard {
            background: #30363d;
            border-color: #30363d;
        }

        .column {
            background: white;
            padding: 20px;
            min-height: 60vh;
            max-height: 75vh;
            overflow-y: auto;
        }

        body.dark .column {
            background: #161b22;
        }

        .column-header {
            font-size: 11px;
            font-weight: 600;
            text-transform: uppercase;
            letter-spacing: 0.05em;
            color: #6b7280;
            margin-bottom: 16px;
            padding-bottom: 8px;
            border-bottom: 1px solid #f3f4f6;
        }

        .item {
            margin-bottom: 12px;
            font-size: 13px;
        }

        .item-meta {
            font-size: 11px;
            color: #9ca3af;
        }

        .tag {
            display: inline-block;
            font-size: 10px;
            font-weight: 600;
            text-transform: uppercase;
            padding: 1px 6px;
            border-radius: 4px;
            background: #eff6ff;
            color: #2563eb;
            margin-right: 4px;
        }

        .event.past {
            opacity: 0.45;
        }

        .event.current {
            border-left: 3px solid #3fb950;
            padding-left: 8px;
        }

        .error {
            font-size: 12px;
            color: #dc2626;
        }

        .empty {
            font-size: 12px;
            color: #9ca3af;
        }

        @media (max-width: 1000px) {
            .dashboard {
                grid-template-columns: 1fr;
            }
        }
    </style>
</head>
<body>
    <div class="header">
        <div class="header-left">{{ title }}</div>
        <div class="header-right">
            <span class="current-date">{{ current_date }}</span>
            <span class="clock" id="clock"></span>
            <button class="btn secondary" id="dark-toggle">Dark mode</button>
            <button class="btn" onclick="location.reload()">Refresh</button>
        </div>
    </div>
    <div class="refresh-time">Last refreshed {{ refresh_time }}</div>

    <form class="search" id="search-form">
        <input type="text" id="search" placeholder="Search (press / to focus)" autocomplete="off">
    </form>

    <div class="links" id="links">
        {% for link in links %}
        <a class="link" href="{{ link.url }}" data-url="{{ link.url }}" draggable="true">{{ link.name }}</a>
        {% endfor %}
    </div>

    {% if quote %}
    <div class="quote">“{{ quote.text }}”{% if quote.author %} — {{ quote.author }}{% endif %}</div>
    {% endif %}

    <div class="dashboard">
        <div class="column">
            <div class="column-header">GitHub</div>
            {% if not github.success %}
                <div class="error">{{ github.error }}</div>
            {% elif not github['items'] %}
                <div class="empty">Nothing open.</div>
            {% else %}
                {% for item in github['items'] %}
                <div class="item">
                    <span class="tag">{{ item.type }}</span>
                    <a href="{{ item.url }}" target="_blank">{{ item.title }}</a>
                    <div class="item-meta">{{ item.repository }}#{{ item.number }} · {{ item.updated }}</div>
                </div>
                {% endfor %}
            {% endif %}
        </div>

        <div class="column">
            <div class="column-header">Calendar</div>
            {% if not calendar_data.connected %}
                <button class="btn" id="connect-calendar">Connect Google Calendar</button>
            {% elif not calendar_data.success %}
                <div class="error">{{ calendar_data.error }}</div>
            {% elif not calendar_data.events %}
                <div class="empty">No events today.</div>
            {% else %}
                {% for event in calendar_data.events %}
                <div class="item event{% if event.is_past %} past{% endif %}{% if event.is_current %} current{% endif %}">
                    <div class="item-meta">{{ event.start }}{% if event.end %} – {{ event.end }}{% endif %}</div>
                    {% if event.link %}<a href="{{ event.link }}" target="_blank">{{ event.title }}</a>{% else %}{{ event.title }}{% endif %}
                    {% if event.location %}<div class="item-meta">{{ event.location }}</div>{% endif %}
                </div>
                {% endfor %}
            {% endif %}
        </div>

        <div class="column">
            <div class="column-header">Reddit</div>
            {% if not reddit.success %}
                <div class="error">{{ reddit.error }}</div>
            {% elif not reddit.posts %}
                <div class="empty">No posts.</div>
            {% else %}
                {% for post in reddit.posts %}
                <div class="item">
                    <a href="{{ post.url }}" target="_blank">{{ post.title }}</a>
                    <div class="item-meta">r/{{ post.subreddit }} · {{ post.score }} points · {{ post.comments }} comments</div>
                </div>
                {% endfor %}
            {% endif %}
        </div>

        <div class="column">
            <div class="column-header">Security Advisories</div>
            {% if not advisories.success %}
                <div class="error">{{ advisories.error }}</div>
            {% elif not advisories.advisories %}
                <div class="empty">No advisories.</div>
            {% else %}
                {% for adv in advisories.advisories %}
                <div class="item">
                    <a href="{{ adv.link }}" target="_blank">{{ adv.title }}</a>
                    <div class="item-meta">{{ adv.published }}</div>
                </div>
                {% endfor %}
            {% endif %}
        </div>
    </div>

    <script>
        const SEARCH_URL = {{ search_url|tojson }};
        const WORKER_URL = {{ worker_url|tojson }};

        function tick() {
            const now = new Date();
            document.getElementById('clock').textContent =
                now.toLocaleTimeString([], { hour: '2-digit', minute: '2-digit', second: '2-digit' });
        }
        tick();
        setInterval(tick, 1000);

        // Dark mode
        function applyDarkMode(on) {
            document.body.classList.toggle('dark', on);
            document.getElementById('dark-toggle').textContent = on ? 'Light mode' : 'Dark mode';
        }
        applyDarkMode(localStorage.getItem('darkMode') === '1');
        document.getElementById('dark-toggle').addEventListener('click', () => {
            const on = !document.body.classList.contains('dark');
            localStorage.setItem('darkMode', on ? '1' : '0');
            applyDarkMode(on);
        });

        // Search
        const search = document.getElementById('search');
        document.getElementById('search-form').addEventListener('submit', (event) => {
            event.preventDefault();
            const q = search.value.trim();
            if (q) window.location = SEARCH_URL + encodeURIComponent(q);
        });
        document.addEventListener('keydown', (event) => {
            if (event.key === '/' && document.activeElement !== search) {
                event.preventDefault();
                search.focus();
            } else if (event.key === 'Escape') {
                search.blur();
            }
        });

        // Link order (drag and drop, saved in localStorage)
        const linksEl = document.getElementById('links');
        function restoreLinkOrder() {
            let order = [];
            try {
                order = JSON.parse(localStorage.getItem('linkOrder') || '[]');
            } catch (e) {}
            order.forEach(url => {
                const link = linksEl.querySelector(`[data-url="${CSS.escape(url)}"]`);
                if (link) linksEl.appendChild(link);
            });
            // Links added to the config since the order was saved go last
            Array.from(linksEl.children)
                .filter(link => !order.includes(link.dataset.url))
                .forEach(link => linksEl.appendChild(link));
        }
        function saveLinkOrder() {
            const order = Array.from(linksEl.children).map(link => link.dataset.url);
            localStorage.setItem('linkOrder', JSON.stringify(order));
        }
        let dragged = null;
        linksEl.addEventListener('dragstart', (event) => {
            dragged = event.target.closest('.link');
            if (dragged) dragged.classList.add('dragging');
        });
        linksEl.addEventListener('dragover', (event) => {
            event.preventDefault();
            const target = event.target.closest('.link');
            if (!dragged || !target || target === dragged) return;
            const rect = target.getBoundingClientRect();
            const after = event.clientX > rect.left + rect.width / 2;
            linksEl.insertBefore(dragged, after ? target.nextSibling : target);
        });
        linksEl.addEventListener('dragend', () => {
            if (dragged) dragged.classList.remove('dragging');
            dragged = null;
            saveLinkOrder();
        });
        restoreLinkOrder();

        // Google Calendar connection via the token worker popup
        const connectBtn = document.getElementById('connect-calendar');
        if (connectBtn) {
            connectBtn.addEventListener('click', () => {
                window.open(WORKER_URL + '/auth', 'daemon-oauth', 'width=500,height=650');
            });
        }
        window.addEventListener('message', (event) => {
            if (event.origin !== new URL(WORKER_URL).origin) return;
            if (event.data && event.data.type === 'oauth-success') location.reload();
        });
    </script>
</body>
</html>
"""

if __name__ == "__main__":
    config = load_config()
    port = config["dashboard"]["port"]
    print(f"Starting DAEMON Dashboard on http://localhost:{port}")
    create_app(config).run(host=config["dashboard"]["host"], port=port, debug=False)
