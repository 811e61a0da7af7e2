"""Operator input validators."""

import re

# Four dot-separated groups of 1-3 digits. Octet values are not range checked,
# so 999.999.999.999 is accepted and left to the operator.
DOTTED_QUAD_PATTERN = re.compile(r"[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}")

NETWORK_ID_LENGTH = 16


def is_dotted_quad(value: str) -> bool:
    """Check if value looks like an IPv4 address."""
    return bool(DOTTED_QUAD_PATTERN.fullmatch(value))


def is_network_id(value: str) -> bool:
    """Check if value has the length of a ZeroTier network ID.

    Only the length is checked, not the character class.
    """
    return len(value) == NETWORK_ID_LENGTH


def is_token(value: str) -> bool:
    """Check if an API token was entered."""
    return bool(value)
