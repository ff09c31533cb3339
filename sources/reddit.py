"""
Hot posts from a list of subreddits via Reddit's public JSON listings.
"""

import logging

import requests

log = logging.getLogger(__name__)

REDDIT_BASE = "https://www.reddit.com"
USER_AGENT = "DAEMON Dashboard/1.0"
REQUEST_TIMEOUT = 10


def _hot(subreddit: str, limit: int) -> list[dict]:
    r = requests.get(
        f"{REDDIT_BASE}/r/{subreddit}/hot.json",
        headers={"User-Agent": USER_AGENT},
        # Stickied posts count against the limit, so ask for a few more.
        params={"limit": limit + 2, "raw_json": 1},
        timeout=REQUEST_TIMEOUT,
    )
    r.raise_for_status()

    posts = []
    for child in r.json().get("data", {}).get("children", []):
        p = child.get("data", {})
        if p.get("stickied"):
            continue
        posts.append({
            "title": p.get("title", ""),
            "subreddit": p.get("subreddit", subreddit),
            "score": p.get("score", 0),
            "comments": p.get("num_comments", 0),
            "url": f"{REDDIT_BASE}{p.get('permalink', '')}",
            "author": p.get("author", ""),
            "link": p.get("url", ""),
        })
    return posts[:limit]


def get_subreddit_posts(subreddits: list[str], limit: int = 5) -> list[dict]:
    """Posts from every subreddit, in config order. A failing subreddit is skipped."""
    posts = []
    for subreddit in subreddits:
        try:
            posts.extend(_hot(subreddit, limit))
        except requests.RequestException as e:
            log.warning(f"Reddit r/{subreddit} failed: {e}")
    return posts
