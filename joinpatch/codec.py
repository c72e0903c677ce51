"""
Join Payload Codec

Decodes URL-safe, unpadded base64 into the binary object model and back.

The reader is a small recursive descent over msgpack.Unpacker: arrays, bin
buffers and integers are modelled, anything else is skipped and captured as
its raw encoding so re-encoding reproduces it exactly.
"""

import base64
import binascii
import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

import msgpack

from .addresses import format_address
from .exceptions import InvalidPaddingError, MalformedBinaryError
from .model import (
    JOIN_PAYLOAD_ARITY,
    SLOT_CONNECTION_GROUPS,
    ENTRY_ADDRESS,
    ENTRY_PORT,
    BinaryList,
    BinaryValue,
    ByteBuffer,
    Integer,
    JoinPayload,
    Opaque,
)

logger = logging.getLogger(__name__)


# MessagePack type bytes
_ARRAY16 = 0xDC
_ARRAY32 = 0xDD
_BIN_TYPES = (0xC4, 0xC5, 0xC6)
_INT_TYPES = (0xCC, 0xCD, 0xCE, 0xCF, 0xD0, 0xD1, 0xD2, 0xD3)

MAX_DEPTH = 32


# ============================================================
# BASE64
# ============================================================

def normalize_base64(text: str) -> str:
    """Convert URL-safe base64 to the standard alphabet and restore padding."""
    b64 = text.strip().replace('-', '+').replace('_', '/')
    while len(b64) % 4:
        b64 += '='
    return b64


def decode_bytes(text: str) -> bytes:
    """Decode URL-safe base64 text to raw bytes."""
    try:
        return base64.b64decode(normalize_base64(text), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidPaddingError(f"Invalid base64 payload ({len(text)} chars): {e}")


def to_web_safe_base64(data: bytes) -> str:
    """Encode bytes as URL-safe base64 with the padding stripped."""
    standard = base64.b64encode(data).decode('ascii')
    return standard.replace('+', '-').replace('/', '_').rstrip('=')


# ============================================================
# BINARY READER / WRITER
# ============================================================

def _is_array(type_byte: int) -> bool:
    return 0x90 <= type_byte <= 0x9F or type_byte in (_ARRAY16, _ARRAY32)


def _is_int(type_byte: int) -> bool:
    return type_byte <= 0x7F or type_byte >= 0xE0 or type_byte in _INT_TYPES


def _read(unpacker: msgpack.Unpacker, data: bytes, depth: int) -> BinaryValue:
    if depth > MAX_DEPTH:
        raise MalformedBinaryError("Nesting too deep", offset=unpacker.tell())

    start = unpacker.tell()
    if start >= len(data):
        raise MalformedBinaryError("Unexpected end of data", offset=start)
    type_byte = data[start]

    if _is_array(type_byte):
        count = unpacker.read_array_header()
        return BinaryList([_read(unpacker, data, depth + 1) for _ in range(count)])

    if type_byte in _BIN_TYPES:
        return ByteBuffer(bytearray(unpacker.unpack()))

    if _is_int(type_byte):
        return Integer(unpacker.unpack())

    unpacker.skip()
    return Opaque(bytes(data[start:unpacker.tell()]))


def read_value(data: bytes) -> BinaryValue:
    """Parse exactly one value from `data`; trailing bytes are an error."""
    unpacker = msgpack.Unpacker(raw=False, strict_map_key=False)
    unpacker.feed(data)
    try:
        value = _read(unpacker, data, 0)
    except msgpack.OutOfData:
        raise MalformedBinaryError("Truncated MessagePack data", offset=len(data))
    except ValueError as e:
        raise MalformedBinaryError(f"Invalid MessagePack data: {e}")

    if unpacker.tell() != len(data):
        raise MalformedBinaryError(
            f"{len(data) - unpacker.tell()} trailing byte(s)",
            offset=unpacker.tell(),
        )
    return value


def _write(value: BinaryValue, packer: msgpack.Packer, out: bytearray) -> None:
    if isinstance(value, BinaryList):
        out += packer.pack_array_header(len(value.items))
        for item in value.items:
            _write(item, packer, out)
    elif isinstance(value, ByteBuffer):
        out += packer.pack(bytes(value.data))
    elif isinstance(value, Integer):
        out += packer.pack(value.value)
    elif isinstance(value, Opaque):
        out += value.raw
    else:
        raise TypeError(f"Not a binary value: {type(value).__name__}")


def write_value(value: BinaryValue) -> bytes:
    """Serialize a value tree to MessagePack."""
    packer = msgpack.Packer(use_bin_type=True)
    out = bytearray()
    _write(value, packer, out)
    return bytes(out)


# ============================================================
# JOIN PAYLOAD
# ============================================================

def _check_shape(root: BinaryValue) -> JoinPayload:
    if not isinstance(root, BinaryList):
        raise MalformedBinaryError("Root value is not an array")
    if len(root) != JOIN_PAYLOAD_ARITY:
        raise MalformedBinaryError(
            f"Root array has {len(root)} items, expected {JOIN_PAYLOAD_ARITY}"
        )

    groups = root.items[SLOT_CONNECTION_GROUPS]
    if not isinstance(groups, BinaryList):
        raise MalformedBinaryError("Connection groups are not an array")

    for g, group in enumerate(groups.items):
        if not isinstance(group, BinaryList):
            raise MalformedBinaryError(f"Connection group {g} is not an array")
        for e, entry in enumerate(group.items):
            if (not isinstance(entry, BinaryList) or len(entry) < 2
                    or not isinstance(entry.items[ENTRY_ADDRESS], ByteBuffer)
                    or not isinstance(entry.items[ENTRY_PORT], Integer)):
                raise MalformedBinaryError(
                    f"Entry {g}/{e} is not an [address, port] pair"
                )

    return JoinPayload(root)


def decode(text: str) -> JoinPayload:
    """
    Decode a URL-safe base64 join payload.

    Raises:
        InvalidPaddingError: text is not base64 even after normalization
        MalformedBinaryError: bytes are not a join payload
    """
    data = decode_bytes(text)
    payload = _check_shape(read_value(data))
    logger.debug(f"[CODEC] Decoded {len(data)} bytes, "
                 f"{len(payload.connection_groups)} connection group(s)")
    return payload


def encode(payload: JoinPayload) -> str:
    """Encode a join payload as URL-safe, unpadded base64."""
    data = write_value(payload.root)
    logger.debug(f"[CODEC] Encoded {len(data)} bytes")
    return to_web_safe_base64(data)


# ============================================================
# JSON DUMP
# ============================================================

def _value_to_json(value: BinaryValue) -> Any:
    if isinstance(value, BinaryList):
        return [_value_to_json(item) for item in value.items]
    if isinstance(value, ByteBuffer):
        return {"bin": bytes(value.data).hex()}
    if isinstance(value, Integer):
        return value.value
    return {"raw": value.raw.hex()}


def payload_to_dict(payload: JoinPayload) -> Dict[str, Any]:
    """Human-readable view of a join payload."""
    groups = []
    for group in payload.connection_groups:
        groups.append([
            {
                "address": format_address(entry.address.data),
                "port": entry.port,
            }
            for entry in group
        ])

    return {
        "connection_groups": groups,
        "slots": [
            _value_to_json(payload.slot(i))
            for i in range(1, len(payload.root))
        ],
    }


def dump_to_json(payload: JoinPayload, path: Union[str, Path]) -> Path:
    """Write the human-readable view of `payload` to `path`."""
    path = Path(path)
    path.write_text(json.dumps(payload_to_dict(payload), indent=2))
    return path
