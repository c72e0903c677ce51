"""
Verbose Diagnostics

Developer-mode logging for the rewrite path. Everything except the address
replacement line is suppressed unless verbose mode is on.
"""

import re
import base64
import binascii
import logging
import traceback
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from .config import LoggingConfig

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
SEPARATOR = "=" * 50
PREVIEW_BYTES = 64
PREVIEW_CHARS = 50


def setup_logging(config: Optional[LoggingConfig] = None, verbose: bool = False) -> None:
    """Configure root logging from config; verbose forces DEBUG."""
    config = config or LoggingConfig()
    level = logging.DEBUG if verbose else getattr(logging, config.level.upper(), logging.INFO)

    handlers = [logging.StreamHandler()]
    if config.file:
        handlers.append(logging.FileHandler(config.file, encoding="utf-8"))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


class Diagnostics:
    """Verbose-gated diagnostic reporter."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    @contextmanager
    def operation(self, name: str):
        """Log STARTING/COMPLETED boundaries around an operation."""
        if self.verbose:
            logger.info(SEPARATOR)
            logger.info(f"STARTING: {name} - {datetime.now():%Y-%m-%d %H:%M:%S.%f}")
        try:
            yield
        finally:
            if self.verbose:
                logger.info(f"COMPLETED: {name} - {datetime.now():%Y-%m-%d %H:%M:%S.%f}")
                logger.info(SEPARATOR)

    def log_exception(self, operation: str, exc: BaseException) -> None:
        if not self.verbose:
            return

        logger.error(f"=== Error in {operation} ===")
        logger.error(f"Exception: {type(exc).__module__}.{type(exc).__name__}")
        logger.error(f"Message: {exc}")

        code = getattr(exc, "code", None)
        if code:
            logger.error(f"Code: {code}")

        frames = traceback.format_tb(exc.__traceback__)
        if frames:
            logger.error("Stack trace (last 5 frames):")
            for frame in frames[-5:]:
                logger.error(f"  {frame.strip()}")

        cause = exc.__cause__ or exc.__context__
        if cause is not None:
            logger.error(f"Inner exception: {type(cause).__name__}: {cause}")

    def log_base64(self, operation: str, text: str, web_safe: bool = True) -> None:
        """Report length, preview and validity of a base64 string."""
        if not self.verbose:
            return

        logger.info(f"=== {operation} ===")
        if not text:
            logger.warning("Base64 string is empty")
            return

        preview = text if len(text) <= PREVIEW_CHARS else text[:PREVIEW_CHARS] + "..."
        logger.info(f"Base64 string ({len(text)} chars): {preview}")

        normalized = text.replace('-', '+').replace('_', '/') if web_safe else text
        if len(normalized) % 4:
            logger.warning(f"Base64 length ({len(normalized)}) is not a multiple of 4, "
                           f"padding added")
            normalized += "=" * (4 - len(normalized) % 4)

        try:
            decoded = base64.b64decode(normalized, validate=True)
            logger.info(f"Base64 string is valid. Decoded to {len(decoded)} bytes.")
        except binascii.Error as e:
            logger.error(f"Invalid Base64 string: {e}")
            allowed = r"[A-Za-z0-9\-_=]" if web_safe else r"[A-Za-z0-9+/=]"
            invalid = re.sub(allowed, "", text)
            if invalid:
                logger.error(f"Found invalid Base64 characters: {invalid!r}")

    def log_data(self, operation: str, data: bytes, context: Optional[str] = None) -> None:
        """Hex and base64 preview of the first bytes of a buffer."""
        if not self.verbose:
            return

        logger.info(f"=== {operation} ===")
        if data:
            head = bytes(data[:PREVIEW_BYTES])
            logger.info(f"Raw data ({len(data)} bytes, hex, first {len(head)}): "
                        f"{head.hex(' ')}")
            logger.info(f"Raw data (base64, first {len(head)}): "
                        f"{base64.b64encode(head).decode('ascii')}")
        if context:
            logger.info(f"Context: {context}")

    def log_replacement(self, original: str, replacement: str, port: Optional[int]) -> None:
        """Always logged: the host operator needs this to forward the port."""
        port_text = port if port is not None and port >= 0 else "unknown"
        logger.info(f"IP replaced: {original} -> {replacement} (port {port_text})")
