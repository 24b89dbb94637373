"""Team contact selection by escalation tier."""

from .resolver import ContactResolver, parse_contact_list, select_contacts, select_tier

__all__ = ["ContactResolver", "parse_contact_list", "select_contacts", "select_tier"]
