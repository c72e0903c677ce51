"""
Address Classifier

Private IPv4 detection over raw 4-byte buffers, plus dotted-quad helpers.
"""

import ipaddress
from typing import Sequence

from .exceptions import InvalidAddressFormat


def is_private(ip_bytes: Sequence[int]) -> bool:
    """True for 10.0.0.0/8, 192.168.0.0/16 and 172.16.0.0/12 buffers."""
    if len(ip_bytes) != 4:
        return False

    return (
        ip_bytes[0] == 10 or
        (ip_bytes[0] == 192 and ip_bytes[1] == 168) or
        (ip_bytes[0] == 172 and 16 <= ip_bytes[1] <= 31)
    )


def format_address(ip_bytes: Sequence[int]) -> str:
    """Dotted form of an address buffer (any length, for diagnostics)."""
    return ".".join(str(b) for b in ip_bytes)


def parse_address(address: str) -> bytes:
    """
    Parse a dotted-quad IPv4 address into 4 bytes.

    Raises:
        InvalidAddressFormat: not four dot-separated decimal octets in 0-255
    """
    if not isinstance(address, str):
        raise InvalidAddressFormat(address)

    try:
        return ipaddress.IPv4Address(address.strip()).packed
    except ValueError:
        raise InvalidAddressFormat(address)
