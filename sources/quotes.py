"""
Quote of the day from the quotes configured in config.yaml.
"""

from datetime import date


def quote_of_the_day(quotes: list, today: date = None):
    """Same quote all day, next one tomorrow. Entries are {text, author} dicts or plain strings."""
    if not quotes:
        return None
    quote = quotes[(today or date.today()).toordinal() % len(quotes)]
    if isinstance(quote, str):
        return {"text": quote, "author": ""}
    return {"text": quote.get("text", ""), "author": quote.get("author", "")}
