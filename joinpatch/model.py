"""
Binary Object Model

Minimal tagged value tree for MessagePack join payloads. Only the types
needed to reach connection entries are modelled; every other value is kept
as its original encoding so it re-serializes byte for byte.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Union


# Root slots of a join payload (the host serializes a 6-key array object)
JOIN_PAYLOAD_ARITY = 6
SLOT_CONNECTION_GROUPS = 0
SLOT_SESSION_TOKEN = 3
SLOT_FLAGS = 5

# Entry layout: [address bin, port int, ...]
ENTRY_ADDRESS = 0
ENTRY_PORT = 1


@dataclass
class BinaryList:
    """MessagePack array."""
    items: List["BinaryValue"] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index: int) -> "BinaryValue":
        return self.items[index]

    def __iter__(self) -> Iterator["BinaryValue"]:
        return iter(self.items)


@dataclass
class ByteBuffer:
    """MessagePack bin value. The only leaf that may be mutated in place."""
    data: bytearray

    def __post_init__(self):
        if not isinstance(self.data, bytearray):
            self.data = bytearray(self.data)

    def __len__(self) -> int:
        return len(self.data)


@dataclass
class Integer:
    """MessagePack int of any width."""
    value: int


@dataclass
class Opaque:
    """Unmodelled value, stored as its exact original encoding."""
    raw: bytes


BinaryValue = Union[BinaryList, ByteBuffer, Integer, Opaque]


class ConnectionEntry:
    """View over one `[address, port, ...]` entry of a connection group."""

    def __init__(self, node: BinaryList):
        self.node = node

    @property
    def address(self) -> ByteBuffer:
        return self.node.items[ENTRY_ADDRESS]

    @property
    def port(self) -> int:
        return self.node.items[ENTRY_PORT].value

    def overwrite_address(self, octets: bytes) -> None:
        """Overwrite the address bytes in place; the length never changes."""
        buf = self.address.data
        if len(octets) != len(buf):
            raise ValueError(
                f"Replacement is {len(octets)} bytes, buffer holds {len(buf)}"
            )
        buf[:] = octets

    def __repr__(self) -> str:
        return f"ConnectionEntry(address={bytes(self.address.data)!r}, port={self.port})"


@dataclass
class JoinPayload:
    """
    Decoded join payload.

    Wraps the root array; slot 0 holds the connection groups, the remaining
    slots are carried through untouched.
    """
    root: BinaryList

    @property
    def connection_groups(self) -> List[List[ConnectionEntry]]:
        groups = self.root.items[SLOT_CONNECTION_GROUPS]
        return [
            [ConnectionEntry(entry) for entry in group.items]
            for group in groups.items
        ]

    def entries(self) -> Iterator[ConnectionEntry]:
        """Iterate every entry of every group, in payload order."""
        for group in self.connection_groups:
            yield from group

    def first_entry(self):
        for entry in self.entries():
            return entry
        return None

    def slot(self, index: int) -> BinaryValue:
        return self.root.items[index]
