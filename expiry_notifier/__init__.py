"""Expiry Notifier: certificate and service ID expiry notifications."""

__version__ = "1.0.0"
