from datetime import date, datetime, timezone


def normalize_date(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        value_text = value.strip()
        if not value_text:
            return None
        try:
            return date.fromisoformat(value_text)
        except ValueError:
            try:
                return datetime.fromisoformat(value_text).date()
            except ValueError:
                return None
    return None


def days_between(start, end):
    """Whole calendar days from ``start`` to ``end`` (negative when end is earlier)."""
    start_date = normalize_date(start)
    end_date = normalize_date(end)
    if start_date is None or end_date is None:
        return None
    return (end_date - start_date).days


def start_of_month(value):
    value_date = normalize_date(value)
    if value_date is None:
        return None
    return value_date.replace(day=1)


def reference_now(now=None):
    """``now`` as given, or the current local time (timezone-aware)."""
    if now is None:
        return datetime.now().astimezone()
    return now


def date_in_frame(value, now):
    """Calendar date of a stored timestamp, seen from the timezone of ``now``.

    Naive timestamps are UTC, matching how they are written. An aware
    ``now`` sets the frame; a naive ``now`` or a plain date means UTC.
    """
    if not isinstance(value, datetime):
        return normalize_date(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    frame = timezone.utc
    if isinstance(now, datetime) and now.tzinfo is not None:
        frame = now.tzinfo
    return value.astimezone(frame).date()
