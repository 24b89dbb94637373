"""Syntax checks for contact and sender email addresses.

Alerts go to corporate mailboxes, which often live on intranet domains:
dotless relay hosts (pki@mailhost), mDNS-style names (ops@corp.local) and
private suffixes (sec@team.internal). Only addresses that are
syntactically impossible are rejected; nothing is looked up in DNS.
"""

import email_validator
from email_validator import EmailNotValidError, validate_email

# Special-use names that still route inside a corporate network
INTRANET_DOMAIN_NAMES = ("local", "localhost")

for _name in INTRANET_DOMAIN_NAMES:
    if _name in email_validator.SPECIAL_USE_DOMAIN_NAMES:
        email_validator.SPECIAL_USE_DOMAIN_NAMES.remove(_name)


def check_address(address: str) -> str:
    """Validate one address and return it unchanged.

    Raises:
        EmailNotValidError: If the address cannot be an email address
    """
    validate_email(address, check_deliverability=False, globally_deliverable=False)
    return address


def is_valid_address(address: str) -> bool:
    try:
        check_address(address)
    except EmailNotValidError:
        return False
    return True
