#!/usr/bin/env python3
"""
LibreNMS extends command line front end

Flow:
- parse common flags plus the extend's own flags
- load the extend's config file (collector default unless -c is given)
- collect once, wrap the result in the {data, version, error, errorString} envelope
- optionally write <prefix>.json / <prefix>.snmp cache files (-w)
- print the envelope (compact, pretty with -p, gzip+base64 with -b) unless -q
- exit with the envelope's error code

snmpd.conf usage:
    extend postgres /usr/local/bin/librenms-postgres -b
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Type

from dotenv import load_dotenv

from .collectors.base import Extend
from .config import load_config
from .envelope import Envelope
from .errors import ConfigError

logger = logging.getLogger("extends.cli")


def build_parser(extend_cls: Type[Extend], prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description=f"{extend_cls.description or extend_cls.name} extend for LibreNMS",
    )
    parser.add_argument("-p", "--pretty", action="store_true",
                        help="pretty print the JSON (ignored with -b)")
    parser.add_argument("-b", "--compress", action="store_true",
                        help="gzip+base64 the output for SNMP")
    parser.add_argument("-c", "--config", type=Path,
                        help=f"config file (default: {extend_cls.default_config or 'none'})")
    parser.add_argument("-w", "--write", action="store_true",
                        help="write <cache>.json and <cache>.snmp cache files")
    parser.add_argument("--cache", type=Path,
                        help="cache file prefix used with -w")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="do not print the result to stdout")
    parser.add_argument("-v", "--version", action="store_true",
                        help="print the extend version and exit")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="logging level (stderr)")
    extend_cls.add_arguments(parser)
    return parser


def execute(extend_cls: Type[Extend], args: argparse.Namespace) -> Envelope:
    """Load config, build the extend and run it. Config problems become error 1 envelopes."""
    config_path = args.config
    if config_path is None and extend_cls.default_config:
        config_path = Path(extend_cls.default_config)

    try:
        config = load_config(extend_cls.config_model, config_path, required=args.config is not None)
        extend = extend_cls(config)
        extend.apply_args(args)
    except ConfigError as e:
        logger.error(f"{extend_cls.name} config error: {e}")
        return Envelope(version=extend_cls.version, error=e.code, errorString=str(e))

    envelope = extend.run()

    if args.write:
        cache = args.cache or extend.cache_prefix()
        try:
            envelope.write_cache(cache)
        except OSError as e:
            logger.error(f"failed to write cache files {cache}: {e}")
            if envelope.ok:
                envelope.error = 2
                envelope.errorString = f"failed to write cache files {cache}: {e}"

    return envelope


def run_extend(extend_cls: Type[Extend], argv: Optional[List[str]] = None, prog: Optional[str] = None) -> int:
    """Run one extend end to end. Returns the process exit code."""
    parser = build_parser(extend_cls, prog)
    args = parser.parse_args(argv)

    if args.version:
        print(f"{extend_cls.description or extend_cls.name} extend {extend_cls.version}")
        return 0

    logging.basicConfig(level=getattr(logging, args.log_level), stream=sys.stderr,
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    load_dotenv()

    envelope = execute(extend_cls, args)

    if not args.quiet:
        compress = args.compress or (extend_cls.compress_by_default and not getattr(args, "no_compress", False))
        sys.stdout.write(envelope.render(pretty=args.pretty, compress=compress))
        sys.stdout.flush()

    return envelope.error


def main(argv: Optional[List[str]] = None) -> int:
    """librenms-extend <name> [flags] dispatcher"""
    from .manager import ExtendManager

    argv = list(sys.argv[1:] if argv is None else argv)
    names = ExtendManager.names()

    if not argv or argv[0] in ("-h", "--help"):
        print("usage: librenms-extend {list," + ",".join(names) + "} [flags]")
        return 0 if argv else 2

    name, rest = argv[0], argv[1:]
    if name == "list":
        for extend_name, available in ExtendManager.availability().items():
            print(f"{extend_name:20s} {'available' if available else 'not available'}")
        return 0

    try:
        extend_cls = ExtendManager.get(name)
    except KeyError:
        print(f"unknown extend '{name}', choose from: {', '.join(names)}", file=sys.stderr)
        return 2

    return run_extend(extend_cls, rest, prog=f"librenms-extend {name}")


if __name__ == "__main__":
    raise SystemExit(main())
