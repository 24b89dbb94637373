"""Contact resolution: which of a team's addresses get an expiry alert.

The tier depends only on days_remaining. With the default breakpoints:

    days_remaining >= 60   -> alert3
    30 <= d < 60           -> alert2
    10 <= d < 30           -> alert1
    d < 10                 -> escalation
"""

from typing import List, Optional, Sequence

from email_validator import EmailNotValidError

from expiry_notifier.config.models import NotificationsConfig, TierBreakpoint
from expiry_notifier.domain.models import ContactTier, Team
from expiry_notifier.logging import get_logger
from expiry_notifier.utils.addresses import check_address
from expiry_notifier.persistence.repositories import TeamRepository

logger = get_logger(__name__, component="contacts")


def parse_contact_list(raw: Optional[str]) -> List[str]:
    """Split a comma-delimited contact string into valid addresses.

    Entries are trimmed; blanks are dropped; duplicates (case-insensitive)
    keep their first position. Malformed addresses are dropped with a warning.

    Example:
        >>> parse_contact_list(" a@x.com, ,b@x.com,A@x.com,not-an-email")
        ['a@x.com', 'b@x.com']
    """
    if not raw:
        return []

    contacts: List[str] = []
    seen = set()
    for entry in raw.split(","):
        address = entry.strip()
        if not address:
            continue
        key = address.lower()
        if key in seen:
            continue
        try:
            check_address(address)
        except EmailNotValidError as e:
            logger.warning(
                f"Dropping invalid contact address '{address}': {e}",
                extra={"event": "contacts.invalid_address", "address": address},
            )
            continue
        seen.add(key)
        contacts.append(address)
    return contacts


def select_tier(
    days_remaining: int,
    breakpoints: Sequence[TierBreakpoint],
    fallback: ContactTier = ContactTier.ESCALATION,
) -> ContactTier:
    """First tier whose min_days is <= days_remaining, scanning high to low."""
    for bp in sorted(breakpoints, key=lambda b: b.min_days, reverse=True):
        if days_remaining >= bp.min_days:
            return ContactTier(bp.tier)
    return ContactTier(fallback)


def select_contacts(
    team: Optional[Team],
    days_remaining: int,
    tier_rules: Optional[NotificationsConfig] = None,
) -> List[str]:
    """Addresses in the team slot that applies at days_remaining.

    Pure: a missing team or an empty slot yields [].
    """
    if team is None:
        return []
    rules = tier_rules or NotificationsConfig()
    tier = select_tier(days_remaining, rules.tier_breakpoints, rules.fallback_tier)
    return parse_contact_list(team.contacts_for(tier))


class ContactResolver:
    """Looks up a team and selects its contacts for a days_remaining value."""

    def __init__(self, team_repo: TeamRepository, tier_rules: Optional[NotificationsConfig] = None):
        self.team_repo = team_repo
        self.tier_rules = tier_rules or NotificationsConfig()

    def tier_for(self, days_remaining: int) -> ContactTier:
        return select_tier(
            days_remaining, self.tier_rules.tier_breakpoints, self.tier_rules.fallback_tier
        )

    def team_name(self, team_id: Optional[str]) -> Optional[str]:
        """Display name of the team, or None when unassigned or unknown."""
        if not team_id:
            return None
        team = self.team_repo.get_by_id(team_id)
        return team.team_name if team else None

    def resolve_contacts(self, team_id: Optional[str], days_remaining: int) -> List[str]:
        if not team_id:
            return []

        team = self.team_repo.get_by_id(team_id)
        if team is None:
            logger.warning(
                f"Team {team_id} not found while resolving contacts",
                extra={"event": "contacts.team_missing", "team_id": team_id},
            )
            return []

        contacts = select_contacts(team, days_remaining, self.tier_rules)
        logger.debug(
            f"Resolved {len(contacts)} contact(s) for team {team.team_name}",
            extra={
                "event": "contacts.resolved",
                "team_id": team_id,
                "tier": self.tier_for(days_remaining).value,
                "days_remaining": days_remaining,
                "contact_count": len(contacts),
            },
        )
        return contacts
