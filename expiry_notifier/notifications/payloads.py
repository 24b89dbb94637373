"""Template context for expiry alert emails."""

from typing import Any, Dict, Optional

from expiry_notifier.domain.models import ExpiringItem, ItemType

# Accent colours per item type: (primary, secondary, panel background)
_THEMES = {
    ItemType.CERTIFICATE: ("#2563eb", "#1e40af", "#eff6ff"),
    ItemType.SERVICE_ID: ("#7c3aed", "#5b21b6", "#f5f3ff"),
}

_LABELS = {
    ItemType.CERTIFICATE: "Certificate",
    ItemType.SERVICE_ID: "Service ID",
}


def item_label(item_type: ItemType) -> str:
    """Human label for an item type: "Certificate" or "Service ID"."""
    return _LABELS[ItemType(item_type)]


def build_notification_context(
    item: ExpiringItem,
    urgent_threshold_days: int = 30,
    team_name: Optional[str] = None,
    subject_prefix: str = "",
) -> Dict[str, Any]:
    """Build the variables consumed by the expiry_alert_* templates.

    Keys:
        item_id, item_name, item_type, item_label, item_label_lower
        is_certificate: selects the blue certificate or purple service ID theme
        expiry_date: YYYY-MM-DD; expiry_date_long: e.g. "March 04, 2026"
        days_remaining, day_word ("day"/"days")
        is_urgent: days_remaining <= urgent_threshold_days
        status_label: "Urgent" or "Active"
        primary_color, secondary_color, panel_color
        team_name (may be None), subject_prefix
    """
    item_type = ItemType(item.type)
    primary, secondary, panel = _THEMES[item_type]
    label = item_label(item_type)
    is_urgent = item.days_remaining <= urgent_threshold_days

    return {
        "item_id": item.id,
        "item_name": item.name,
        "item_type": item_type.value,
        "item_label": label,
        "item_label_lower": label[0].lower() + label[1:],
        "is_certificate": item_type == ItemType.CERTIFICATE,
        "expiry_date": item.expiry_date.strftime("%Y-%m-%d"),
        "expiry_date_long": item.expiry_date.strftime("%B %d, %Y"),
        "days_remaining": item.days_remaining,
        "day_word": "day" if item.days_remaining == 1 else "days",
        "is_urgent": is_urgent,
        "status_label": "Urgent" if is_urgent else "Active",
        "primary_color": primary,
        "secondary_color": secondary,
        "panel_color": panel,
        "team_name": team_name,
        "subject_prefix": subject_prefix,
    }
