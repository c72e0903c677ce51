"""
joinpatch Custom Exceptions

Failure kinds raised inside the rewrite path. All of them are caught at the
host boundary (see bridge.JoinRewriter) and collapsed into "return the
original payload".
"""

from typing import Optional


class JoinPatchError(Exception):
    """Base exception for join payload rewriting errors."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code or 'joinpatch_error'
        super().__init__(self.message)


class DecodeError(JoinPatchError):
    """Raised when a join payload cannot be decoded."""

    def __init__(self, message: str = "Failed to decode join payload", code: str = "decode_error"):
        super().__init__(message, code)


class InvalidPaddingError(DecodeError):
    """Raised when the padded text is still not valid base64."""

    def __init__(self, message: str = "Invalid base64 payload", code: str = "invalid_padding"):
        super().__init__(message, code)


class MalformedBinaryError(DecodeError):
    """Raised when decoded bytes do not have the join payload shape."""

    def __init__(
        self,
        message: str = "Malformed join payload",
        code: str = "malformed_binary",
        offset: Optional[int] = None,
    ):
        self.offset = offset
        if offset is not None:
            message = f"{message} (at byte {offset})"
        super().__init__(message, code)


class InvalidAddressFormat(JoinPatchError):
    """Raised when a replacement address is not four octets in 0-255."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Invalid IPv4 address: {address!r}", "invalid_address")


class ResolverExhausted(JoinPatchError):
    """Raised when no address-lookup provider returned a usable address."""

    def __init__(self, providers_tried: int = 0):
        self.providers_tried = providers_tried
        super().__init__(
            f"No external address from {providers_tried} provider(s)",
            "resolver_exhausted",
        )
