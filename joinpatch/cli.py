"""
joinpatch command line

Usage:
    python -m joinpatch rewrite <payload> [--address 203.0.113.9]
    python -m joinpatch url <payload-or-url>
    python -m joinpatch analyze <payload>
    python -m joinpatch dump <payload> [-o out.json]
    python -m joinpatch ports <payload>
    python -m joinpatch resolve
"""

import argparse
import json
import logging
import sys

from . import codec
from .bridge import JoinRewriter, build_join_url
from .config import load_config
from .diagnostics import setup_logging
from .exceptions import JoinPatchError
from .ports import PORT_NOT_FOUND
from .resolver import configure_default_resolver
from .substitution import substitute

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="joinpatch",
        description="Rewrite LAN addresses in join payloads to the public address",
    )
    parser.add_argument("--config", "-c", help="Path to config file")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable verbose diagnostics")

    sub = parser.add_subparsers(dest="command", required=True)

    rewrite = sub.add_parser("rewrite", help="Rewrite a join payload")
    rewrite.add_argument("payload")
    rewrite.add_argument("--address", "-a", help="Replacement address (default: resolve)")

    url = sub.add_parser("url", help="Print the rewritten join URL")
    url.add_argument("payload", help="Join payload or full join URL")

    analyze = sub.add_parser("analyze", help="Summarize a join payload")
    analyze.add_argument("payload")

    dump = sub.add_parser("dump", help="Dump a decoded join payload as JSON")
    dump.add_argument("payload")
    dump.add_argument("--output", "-o", help="Write to file instead of stdout")

    ports = sub.add_parser("ports", help="Infer the service port")
    ports.add_argument("payload")

    sub.add_parser("resolve", help="Print the external address")

    return parser


def main(argv=None) -> int:
    """Main entry point for standalone execution."""
    args = _build_parser().parse_args(argv)

    config = load_config(args.config)
    if args.debug:
        config.dev_mode_verbose = True
    setup_logging(config.logging, verbose=config.dev_mode_verbose)

    resolver = configure_default_resolver(
        providers=config.resolver.providers,
        timeout=config.resolver.timeout_s,
        ttl_s=config.resolver.cache_ttl_s,
    )
    rewriter = JoinRewriter(config=config, resolver=resolver)

    try:
        if args.command == "rewrite":
            if args.address:
                join_data = codec.decode(args.payload)
                result = substitute(join_data, args.address)
                print(codec.encode(join_data) if result.replaced else args.payload)
            else:
                print(rewriter.rewrite(args.payload))

        elif args.command == "url":
            if args.payload.startswith(("http://", "https://")):
                print(rewriter.rewrite_url(args.payload))
            else:
                print(build_join_url(rewriter.rewrite(args.payload), config.join_host))

        elif args.command == "analyze":
            print(json.dumps(rewriter.analyze(args.payload), indent=2))

        elif args.command == "dump":
            join_data = codec.decode(args.payload)
            if args.output:
                path = codec.dump_to_json(join_data, args.output)
                logger.info(f"Wrote {path}")
            else:
                print(json.dumps(codec.payload_to_dict(join_data), indent=2))

        elif args.command == "ports":
            join_data = codec.decode(args.payload)
            match = rewriter.ports.infer(codec.decode_bytes(args.payload), join_data)
            if match is None:
                print(PORT_NOT_FOUND)
                return 1
            print(f"{match.port} ({match.strategy})")

        elif args.command == "resolve":
            address = resolver.resolve()
            if address is None:
                logger.error("No provider returned an external address")
                return 1
            print(address)

    except JoinPatchError as e:
        logger.error(f"{args.command} failed: {e.message}")
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
