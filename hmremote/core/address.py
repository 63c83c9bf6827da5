"""Hardware address parsing."""

from __future__ import annotations

import re

from hmremote.core.errors import InvalidAddressError

_MAC_RE = re.compile(r"^[0-9A-F]{2}(?::[0-9A-F]{2}){5}$", re.IGNORECASE)


def parse_address(value: str) -> str:
    """Validate a colon-separated hardware address and return it upper-cased."""
    normalized = value.strip().upper()
    if not _MAC_RE.match(normalized):
        raise InvalidAddressError(
            f"Invalid address '{value}': expected six colon-separated hex octets"
        )
    return normalized


def same_address(left: str, right: str) -> bool:
    return left.upper() == right.upper()
