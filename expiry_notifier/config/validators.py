"""Soft checks on a validated configuration.

These never reject a configuration; they point out settings that are
legal but probably not what the operator meant.
"""

import warnings
from typing import List

from .models import AppConfig


def check_config_warnings(config: AppConfig) -> List[str]:
    """
    Inspect a validated configuration and return warning messages.

    Args:
        config: Validated application configuration

    Returns:
        List of warning messages (empty when nothing looks off)
    """
    messages = []
    notifications = config.notifications

    # A tier is only ever used if some trigger day lands in its band.
    bands = []
    upper = None
    for bp in notifications.tier_breakpoints:
        bands.append((bp.tier, bp.min_days, upper))
        upper = bp.min_days
    bands.append((notifications.fallback_tier, 0, upper))

    for tier, low, high in bands:
        reachable = any(
            day >= low and (high is None or day < high)
            for day in notifications.trigger_days
        )
        if not reachable:
            tier_name = getattr(tier, "value", tier)
            messages.append(
                f"Contact tier '{tier_name}' is never selected by the configured trigger_days"
            )

    if max(notifications.trigger_days) < notifications.lookahead_days:
        messages.append(
            f"lookahead_days ({notifications.lookahead_days}) exceeds the largest trigger day "
            f"({max(notifications.trigger_days)}); items beyond it are listed but never notified"
        )

    if config.check_interval_seconds and config.check_interval_seconds > 86400:
        messages.append(
            f"check_interval ({config.check_interval}) is longer than a day; "
            "trigger days falling between runs will be missed"
        )

    if config.email.max_retries == 0:
        messages.append("email.max_retries is 0; transient SMTP errors fail the item immediately")

    return messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit warning messages using Python's warnings module."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
