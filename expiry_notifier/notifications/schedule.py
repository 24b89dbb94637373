"""Trigger-day arithmetic shared by the dispatcher and the upcoming view."""

from typing import Optional, Sequence

from expiry_notifier.config.models import DEFAULT_TRIGGER_DAYS


def is_trigger_day(days_remaining: int, trigger_days: Sequence[int] = DEFAULT_TRIGGER_DAYS) -> bool:
    """True only when days_remaining equals one of the trigger days exactly."""
    return days_remaining in set(trigger_days)


def next_notification_day(
    days_remaining: int, trigger_days: Sequence[int] = DEFAULT_TRIGGER_DAYS
) -> Optional[int]:
    """Largest trigger day at or below days_remaining, or None if none is left.

    Example:
        >>> next_notification_day(45)
        30
        >>> next_notification_day(60)
        60
        >>> next_notification_day(0) is None
        True
    """
    candidates = [day for day in trigger_days if day <= days_remaining]
    return max(candidates) if candidates else None


def days_until_next_notification(
    days_remaining: int, trigger_days: Sequence[int] = DEFAULT_TRIGGER_DAYS
) -> Optional[int]:
    """Days from now until the next trigger day fires (0 means today)."""
    next_day = next_notification_day(days_remaining, trigger_days)
    if next_day is None:
        return None
    return days_remaining - next_day
