"""
Fetches open GitHub work for one user via the issue search API:
review requests, assigned issues, and the user's own open pull requests.
"""

import logging
from datetime import datetime, timezone

import requests

log = logging.getLogger(__name__)

SEARCH_URL = "https://api.github.com/search/issues"
REQUEST_TIMEOUT = 10

QUERIES = [
    ("Review Requested", "review-requested:{user} is:open is:pr"),
    ("Issue Assigned", "assignee:{user} is:open is:issue"),
    ("My PR", "author:{user} is:open is:pr"),
]


def _ago(iso: str, now: datetime = None) -> str:
    """'3d ago' style age for a GitHub timestamp."""
    if not iso:
        return ""
    then = datetime.fromisoformat(iso.replace("Z", "+00:00"))
    seconds = int(((now or datetime.now(timezone.utc)) - then).total_seconds())
    if seconds < 3600:
        return f"{max(seconds // 60, 0)}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def _search(query: str, headers: dict, limit: int) -> list[dict]:
    r = requests.get(
        SEARCH_URL,
        headers=headers,
        params={"q": query, "sort": "updated", "order": "desc", "per_page": limit},
        timeout=REQUEST_TIMEOUT,
    )
    r.raise_for_status()
    return r.json().get("items", [])


def get_github_items(username: str, token: str = None, limit: int = 5) -> list[dict]:
    headers = {"Accept": "application/vnd.github+json"}
    if token:
        headers["Authorization"] = f"token {token}"

    items = []
    seen = set()
    for kind, template in QUERIES:
        for issue in _search(template.format(user=username), headers, limit):
            url = issue.get("html_url", "")
            if url in seen:
                continue
            seen.add(url)
            # repository_url: https://api.github.com/repos/{owner}/{name}
            repo_parts = issue.get("repository_url", "").split("/")
            items.append({
                "type": kind,
                "title": issue.get("title", ""),
                "repository": "/".join(repo_parts[-2:]) if len(repo_parts) >= 2 else "",
                "number": issue.get("number"),
                "url": url,
                "updated": _ago(issue.get("updated_at")),
                "labels": [label.get("name", "") for label in issue.get("labels", [])],
            })

    log.debug(f"GitHub: {len(items)} items for {username}.")
    return items
