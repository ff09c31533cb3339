"""
Fetches today's events from the Google Calendar REST API.
The access token comes from auth.token_manager (shared with the token worker).
"""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import requests

CALENDAR_BASE = "https://www.googleapis.com/calendar/v3"
REQUEST_TIMEOUT = 10


def _parse_dt(s: str, tz: ZoneInfo) -> datetime:
    """Parse RFC 3339 datetimes from the Calendar API into local time."""
    return datetime.fromisoformat(s.replace("Z", "+00:00")).astimezone(tz)


def _parse_day(s: str, tz: ZoneInfo) -> datetime:
    return datetime.combine(date.fromisoformat(s), datetime.min.time(), tzinfo=tz)


def get_todays_events(access_token: str, calendar_id: str = "primary",
                      days_ahead: int = 1, tz: ZoneInfo = None) -> list[dict]:
    """Fetch events from local midnight until days_ahead days later, ordered by start."""
    tz = tz or ZoneInfo("UTC")
    now = datetime.now(tz)
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=days_ahead)

    r = requests.get(
        f"{CALENDAR_BASE}/calendars/{calendar_id}/events",
        headers={"Authorization": f"Bearer {access_token}"},
        params={
            "timeMin": start.isoformat(),
            "timeMax": end.isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": 50,
        },
        timeout=REQUEST_TIMEOUT,
    )
    r.raise_for_status()

    events = []
    for e in r.json().get("items", []):
        if e.get("status") == "cancelled":
            continue
        is_all_day = "date" in e.get("start", {})
        if is_all_day:
            start_dt = _parse_day(e["start"]["date"], tz)
            end_dt = _parse_day(e["end"]["date"], tz)
        else:
            start_dt = _parse_dt(e["start"]["dateTime"], tz)
            end_dt = _parse_dt(e["end"]["dateTime"], tz)

        events.append({
            "title": e.get("summary", "(no title)"),
            "start": "All day" if is_all_day else start_dt.strftime("%H:%M"),
            "end": "" if is_all_day else end_dt.strftime("%H:%M"),
            "start_dt": start_dt,
            "end_dt": end_dt,
            "location": e.get("location", ""),
            "is_all_day": is_all_day,
            "link": e.get("htmlLink", ""),
        })

    return sorted(events, key=lambda x: (not x["is_all_day"], x["start_dt"]))
