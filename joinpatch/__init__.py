"""
joinpatch - Join Payload Address Rewriting

Re-points peer-to-peer join payloads (MessagePack, URL-safe base64) that
embed a LAN address at the host's public address, so a QR join code works
from outside the local network.

Components:
    - codec: join payload decode/encode over a minimal binary object model
    - addresses: private IPv4 classification
    - ports: best-effort service port inference
    - substitution: in-place address rewriting
    - resolver: external address lookup with provider fallback and caching
    - bridge: host entry points (rewrite_join_payload, rewrite_join_url)
"""

__version__ = "1.0.0"

from .config import JoinPatchConfig, load_config
from .model import BinaryList, ByteBuffer, Integer, Opaque, ConnectionEntry, JoinPayload
from .codec import decode, encode, dump_to_json, payload_to_dict
from .addresses import is_private, parse_address, format_address
from .ports import PortInference, PortMatch, infer_port, PORT_NOT_FOUND
from .substitution import substitute, SubstitutionResult
from .resolver import ExternalAddressCache, ExternalAddressResolver, get_default_resolver
from .bridge import (
    BridgeResult,
    JoinRewriter,
    analyze_join_data,
    build_join_url,
    rewrite_join_payload,
    rewrite_join_url,
)
from .exceptions import (
    JoinPatchError,
    DecodeError,
    InvalidPaddingError,
    MalformedBinaryError,
    InvalidAddressFormat,
    ResolverExhausted,
)

__all__ = [
    # Config
    "JoinPatchConfig",
    "load_config",
    # Model
    "BinaryList",
    "ByteBuffer",
    "Integer",
    "Opaque",
    "ConnectionEntry",
    "JoinPayload",
    # Codec
    "decode",
    "encode",
    "dump_to_json",
    "payload_to_dict",
    # Addresses
    "is_private",
    "parse_address",
    "format_address",
    # Ports
    "PortInference",
    "PortMatch",
    "infer_port",
    "PORT_NOT_FOUND",
    # Substitution
    "substitute",
    "SubstitutionResult",
    # Resolver
    "ExternalAddressCache",
    "ExternalAddressResolver",
    "get_default_resolver",
    # Host boundary
    "BridgeResult",
    "JoinRewriter",
    "analyze_join_data",
    "build_join_url",
    "rewrite_join_payload",
    "rewrite_join_url",
    # Errors
    "JoinPatchError",
    "DecodeError",
    "InvalidPaddingError",
    "MalformedBinaryError",
    "InvalidAddressFormat",
    "ResolverExhausted",
]
