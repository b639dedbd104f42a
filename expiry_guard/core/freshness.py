from datetime import date

from expiry_guard.core.constants import (
    EXPIRING_SOON_DAYS,
    STATUS_EXPIRED,
    STATUS_EXPIRING_SOON,
    STATUS_FRESH,
)
from expiry_guard.core.dates import days_between


def days_until_expiry(expiry_date, now=None):
    if now is None:
        now = date.today()
    return days_between(now, expiry_date)


def classify_days(days_remaining):
    if days_remaining < 0:
        return STATUS_EXPIRED
    if days_remaining <= EXPIRING_SOON_DAYS:
        return STATUS_EXPIRING_SOON
    return STATUS_FRESH


def classify(expiry_date, now=None):
    days_remaining = days_until_expiry(expiry_date, now)
    if days_remaining is None:
        raise ValueError("Invalid expiry date: {!r}".format(expiry_date))
    return classify_days(days_remaining)


def classify_batches(batches, now=None):
    """Status of a product from its batches sorted by expiry; no batches is FRESH."""
    if not batches:
        return STATUS_FRESH
    return classify(batches[0].expiry_date, now)
