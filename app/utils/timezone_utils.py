"""
Timezone utility functions for the MNF Pick'em application
"""

from datetime import datetime, timezone

import pytz
from flask import current_app


def get_app_timezone():
    """Get the application's configured timezone"""
    try:
        timezone_name = current_app.config.get("TIMEZONE", "UTC")
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        # Fallback to UTC if timezone is invalid
        return pytz.UTC


def get_utc_time():
    """Get current time in UTC"""
    return datetime.now(timezone.utc)


def ensure_utc(dt):
    """Treat naive datetimes (as stored by SQLite) as UTC"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def convert_to_app_timezone(dt):
    """Convert a datetime to the application's timezone"""
    if dt is None:
        return None
    return ensure_utc(dt).astimezone(get_app_timezone())


def format_game_time(dt, format_str="%a %m/%d at %I:%M %p"):
    """Format a game time in the application's timezone"""
    if dt is None:
        return "TBD"

    app_time = convert_to_app_timezone(dt)
    return app_time.strftime(format_str)


def countdown(start_time, now=None):
    """Time left until kickoff, e.g. '2d 3h 15m', '3h 5m', '12m'"""
    if start_time is None:
        return ""
    now = now or get_utc_time()
    remaining = ensure_utc(start_time) - now
    seconds = int(remaining.total_seconds())
    if seconds <= 0:
        return "Game started"

    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes = seconds // 60

    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
