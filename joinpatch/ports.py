"""
Port Inference Engine

Best-effort recovery of the game service port from raw MessagePack bytes.
Results are advisory (port-forwarding hints), never authoritative: every
strategy can produce false positives.

Strategies, first hit wins:
    1. proximity - 16-bit values 4..15 bytes after a private-address marker
    2. marker    - uint8/uint16/int16 MessagePack integers
    3. brute     - any 16-bit window inside a known service-port band
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .model import JoinPayload

logger = logging.getLogger(__name__)


# Written at the host boundary when no port could be inferred
PORT_NOT_FOUND = -1

# Empirical service-port bands, checked in this order
DEFAULT_PORT_BANDS: List[Tuple[int, int]] = [
    (7000, 8000),
    (27000, 28000),
    (5000, 6000),
]

# MessagePack integer markers
MP_UINT8 = 0xCC
MP_UINT16 = 0xCD
MP_INT16 = 0xD1

PROXIMITY_MIN_OFFSET = 4
PROXIMITY_MAX_OFFSET = 16


def is_plausible_port(value: int) -> bool:
    """Unprivileged port range used by every strategy."""
    return 1023 < value < 65536


@dataclass
class PortMatch:
    """Inferred port and the strategy that found it."""
    port: int
    strategy: str
    offset: int = -1


class PortInference:
    """Runs the inference strategies with a configurable band list."""

    def __init__(self, bands: Optional[Sequence[Tuple[int, int]]] = None):
        self.bands = [tuple(b) for b in (bands or DEFAULT_PORT_BANDS)]

    def infer(self, raw: bytes, payload: Optional[JoinPayload] = None) -> Optional[PortMatch]:
        """
        Infer the service port.

        Args:
            raw: Raw MessagePack bytes
            payload: Decoded payload; a plausible schema port wins if present

        Returns:
            PortMatch, or None when no port was inferred
        """
        if payload is not None:
            match = self.from_schema(payload)
            if match:
                return match

        for strategy in (self.find_after_address, self.find_by_markers, self.brute_force):
            match = strategy(raw)
            if match:
                logger.debug(f"[PORTS] {match.strategy} strategy found "
                             f"{match.port} at offset {match.offset}")
                return match
            logger.debug(f"[PORTS] {strategy.__name__} found nothing in {len(raw)} bytes")

        return None

    def from_schema(self, payload: JoinPayload) -> Optional[PortMatch]:
        entry = payload.first_entry()
        if entry is not None and is_plausible_port(entry.port):
            return PortMatch(entry.port, "schema")
        return None

    def find_after_address(self, data: bytes) -> Optional[PortMatch]:
        """Look for a port shortly after a private-address marker."""
        for i in range(len(data) - PROXIMITY_MIN_OFFSET - 1):
            if not ((data[i] == 0xC0 and data[i + 1] == 0xA8) or  # 192.168.x.x
                    data[i] == 0x0A or  # 10.x.x.x
                    (data[i] == 0xAC and 0x10 <= data[i + 1] <= 0x1F)):  # 172.16-31.x.x
                continue

            offset = PROXIMITY_MIN_OFFSET
            while offset < PROXIMITY_MAX_OFFSET and i + offset + 1 < len(data):
                pos = i + offset
                big = (data[pos] << 8) | data[pos + 1]
                if is_plausible_port(big):
                    return PortMatch(big, "proximity", pos)

                little = data[pos] | (data[pos + 1] << 8)
                if is_plausible_port(little):
                    return PortMatch(little, "proximity", pos)
                offset += 1

        return None

    def find_by_markers(self, data: bytes) -> Optional[PortMatch]:
        """Look for MessagePack small/medium integers holding a port."""
        for i in range(len(data) - 3):
            marker = data[i]
            if marker == MP_UINT8:
                value = data[i + 1]
            elif marker in (MP_UINT16, MP_INT16):
                value = (data[i + 1] << 8) | data[i + 2]
            else:
                continue

            if is_plausible_port(value):
                return PortMatch(value, "marker", i)

        return None

    def brute_force(self, data: bytes) -> Optional[PortMatch]:
        """Slide a 2-byte window looking for a value in a service-port band."""
        for i in range(len(data) - 1):
            big = (data[i] << 8) | data[i + 1]
            if self.in_band(big):
                return PortMatch(big, "brute", i)

            little = data[i] | (data[i + 1] << 8)
            if self.in_band(little):
                return PortMatch(little, "brute", i)

        return None

    def in_band(self, value: int) -> bool:
        return any(low <= value <= high for low, high in self.bands)


_default_inference = PortInference()


def infer_port(raw: bytes, payload: Optional[JoinPayload] = None) -> Optional[int]:
    """Inferred port, or None for "no port inferred" (never port 0)."""
    match = _default_inference.infer(raw, payload)
    return match.port if match else None
