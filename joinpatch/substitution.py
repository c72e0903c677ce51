"""
Address Substitution Engine

Rewrites private connection-entry addresses to a public one, in place.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .addresses import format_address, is_private, parse_address
from .model import JoinPayload

logger = logging.getLogger(__name__)


@dataclass
class SubstitutionResult:
    """Outcome of a substitution pass. `replaced=False` is a successful no-op."""
    payload: JoinPayload
    replaced: bool = False
    original_address: Optional[str] = None
    port: Optional[int] = None


def substitute(payload: JoinPayload, new_address: str) -> SubstitutionResult:
    """
    Replace every private entry address with `new_address`.

    The first private entry's address and port are reported for diagnostics.

    Raises:
        InvalidAddressFormat: new_address is not a dotted quad
    """
    octets = parse_address(new_address)
    result = SubstitutionResult(payload=payload)

    for entry in payload.entries():
        if not is_private(entry.address.data):
            continue

        if result.original_address is None:
            result.original_address = format_address(entry.address.data)
            result.port = entry.port

        entry.overwrite_address(octets)
        result.replaced = True

    if result.replaced:
        logger.info(f"[SUBST] Replaced {result.original_address} with "
                    f"{format_address(octets)} (port {result.port})")
    else:
        logger.debug("[SUBST] No private address in payload")

    return result
