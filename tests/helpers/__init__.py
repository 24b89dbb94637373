"""Test helper utilities for Expiry Notifier tests."""

from .inventory import RecordingSMTPClient, load_inventory, seed_inventory

__all__ = ["RecordingSMTPClient", "load_inventory", "seed_inventory"]
