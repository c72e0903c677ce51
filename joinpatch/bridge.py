"""
Host Boundary

Entry points called by the host's intercepted QR/join methods. The host
hands over a join payload (or a join URL) and gets back either a rewritten
one or, on any failure, exactly what it passed in.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs, urlsplit

from . import codec
from .addresses import format_address
from .config import DEFAULT_JOIN_HOST, JoinPatchConfig
from .diagnostics import Diagnostics
from .exceptions import JoinPatchError
from .ports import PORT_NOT_FOUND, PortInference
from .resolver import ExternalAddressResolver, get_default_resolver
from .substitution import substitute

logger = logging.getLogger(__name__)

JOIN_URL_TEMPLATE = "https://{host}/?join={payload}&p=2"

# Rendering sink: receives the join URL (QR image generation lives outside)
RenderSink = Callable[[str], None]


def build_join_url(payload: str, host: str = None) -> str:
    """Join URL handed to the QR rendering sink."""
    return JOIN_URL_TEMPLATE.format(host=host or DEFAULT_JOIN_HOST, payload=payload)


@dataclass
class BridgeResult:
    """Tagged result of one rewrite attempt."""
    success: bool
    modified_payload: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    detected_port: int = PORT_NOT_FOUND
    replaced: bool = False
    original_address: Optional[str] = None
    port_strategy: Optional[str] = None


class JoinRewriter:
    """
    Rewrites join payloads for the host.

    All failure handling for the rewrite path lives in `rewrite()`; the
    lower layers raise JoinPatchError subclasses and never recover.
    """

    def __init__(self, config: JoinPatchConfig = None,
                 resolver: ExternalAddressResolver = None,
                 sink: RenderSink = None):
        self.config = config or JoinPatchConfig()
        self.resolver = resolver or get_default_resolver()
        self.sink = sink
        self.ports = PortInference(self.config.ports.bands)
        self.diagnostics = Diagnostics(self.config.dev_mode_verbose)

    def process_join_parameter(self, payload: str, external_address: str) -> BridgeResult:
        """
        Substitute `external_address` into `payload`.

        Only re-encodes when something was replaced, so a no-op returns the
        input string untouched.
        """
        try:
            join_data = codec.decode(payload)
            result = substitute(join_data, external_address)
            modified = codec.encode(join_data) if result.replaced else payload
        except JoinPatchError as e:
            self.diagnostics.log_exception("process_join_parameter", e)
            return BridgeResult(success=False, error=e.message, error_code=e.code)

        if result.replaced:
            self.diagnostics.log_replacement(
                result.original_address, external_address, result.port
            )

        raw = codec.decode_bytes(modified)
        self.diagnostics.log_data("Rewritten payload", raw,
                                  f"{len(payload)} -> {len(modified)} chars")
        match = self.ports.infer(raw, join_data)
        if match is None:
            self.diagnostics.log_data(
                "Port inference failed", raw,
                "schema, proximity, marker and brute strategies found nothing",
            )

        return BridgeResult(
            success=True,
            modified_payload=modified,
            detected_port=match.port if match else PORT_NOT_FOUND,
            replaced=result.replaced,
            original_address=result.original_address,
            port_strategy=match.strategy if match else None,
        )

    def rewrite(self, payload: str) -> str:
        """Rewritten payload, or `payload` itself if anything goes wrong."""
        if not payload or not payload.strip():
            return payload
        if not self.config.patch_enabled:
            return payload

        with self.diagnostics.operation("rewrite_join_payload"):
            self.diagnostics.log_base64("Input payload", payload)
            try:
                external_address = self.resolver.resolve_or_raise()
                result = self.process_join_parameter(payload, external_address)
            except JoinPatchError as e:
                logger.warning(f"[BRIDGE] Rewrite skipped: {e.message}")
                self.diagnostics.log_exception("rewrite_join_payload", e)
                return payload
            except Exception as e:
                logger.error(f"[BRIDGE] Rewrite failed: {e}")
                self.diagnostics.log_exception("rewrite_join_payload", e)
                return payload

            if not result.success:
                logger.warning(f"[BRIDGE] Payload processing failed: {result.error}")
                return payload

            if result.replaced:
                if result.detected_port != PORT_NOT_FOUND:
                    logger.info(f"[BRIDGE] IP address for connections "
                                f"{external_address}:{result.detected_port}")
                self._render(result.modified_payload)

            return result.modified_payload

    def rewrite_url(self, url: str) -> str:
        """Rewrite the `join` parameter; `url` comes back as is unless it changed."""
        if not url or not url.strip():
            return url

        try:
            query = parse_qs(urlsplit(url).query)
        except ValueError as e:
            logger.warning(f"[BRIDGE] Unparseable join URL: {e}")
            return url

        join = query.get("join", [""])[0]
        if not join.strip():
            return url

        rewritten = self.rewrite(join)
        if rewritten == join:
            return url

        return build_join_url(rewritten, self.config.join_host)

    def _render(self, payload: str) -> None:
        if not self.config.qr_image_generation_enabled or self.sink is None:
            return

        url = build_join_url(payload, self.config.join_host)
        try:
            self.sink(url)
        except Exception as e:
            logger.error(f"[BRIDGE] QR sink failed: {e}")

    def analyze(self, payload: str) -> Dict[str, Any]:
        """
        Summarize a join payload: local address, external address, ports.

        Raises:
            DecodeError: payload cannot be decoded
        """
        join_data = codec.decode(payload)
        raw = codec.decode_bytes(payload)
        entry = join_data.first_entry()
        match = self.ports.infer(raw)

        return {
            "connection_groups": len(join_data.connection_groups),
            "local_address": format_address(entry.address.data) if entry else None,
            "schema_port": entry.port if entry else None,
            "external_address": self.resolver.resolve(),
            "inferred_port": match.port if match else PORT_NOT_FOUND,
            "port_strategy": match.strategy if match else None,
            "payload_bytes": len(raw),
        }


def rewrite_join_payload(payload: str,
                         config: JoinPatchConfig = None,
                         resolver: ExternalAddressResolver = None,
                         sink: RenderSink = None) -> str:
    """
    Host entry point.

    Returns the payload with private addresses replaced by the external one,
    or the original payload on any failure.
    """
    return JoinRewriter(config, resolver, sink).rewrite(payload)


def rewrite_join_url(url: str,
                     config: JoinPatchConfig = None,
                     resolver: ExternalAddressResolver = None,
                     sink: RenderSink = None) -> str:
    """Host entry point for hooks that see the full join URL."""
    return JoinRewriter(config, resolver, sink).rewrite_url(url)


def analyze_join_data(payload: str,
                      config: JoinPatchConfig = None,
                      resolver: ExternalAddressResolver = None) -> Dict[str, Any]:
    return JoinRewriter(config, resolver).analyze(payload)
