"""
Command line application for pingmany.

Reads a list of IP addresses, sweeps them with ICMP echo requests and
prints which of them replied in time.
"""
import argparse
import logging
import sys
from typing import List, Optional

from . import __version__, configuration
from .network import ICMPTransport, TransportError
from .parsing import TargetParser
from .report import format_report
from .sweep import SweepEngine, TransportFactory

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pingmany",
        description="Ping many IP addresses in short time.",
    )
    parser.add_argument("file", nargs="?", help="file with IP addresses, one per line (default: stdin)")
    parser.add_argument("-d", "--delay", help="delay between successive pings, e.g. 100ms (default from config)")
    parser.add_argument("-t", "--timeout", help="timeout for response, e.g. 3s (default from config)")
    parser.add_argument("-u", "--show-unreachable", action="store_true", help="show only unreachable addresses")
    parser.add_argument("-r", "--show-reachable", action="store_true", help="show only reachable addresses")
    parser.add_argument("-c", "--config", help=f"YAML config file (default: {configuration.DEFAULT_CONFIG_PATH} if present)")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every probe and reply to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def read_input(path: Optional[str]) -> str:
    """Reads the address list from a file or stdin. Raises OSError when unreadable."""
    if path is None:
        return sys.stdin.read()
    with open(path, 'r') as f:
        return f.read()


def _setup_logging(level_name: str) -> bool:
    level = getattr(logging, str(level_name).upper(), None)
    if not isinstance(level, int):
        print(f"FATAL: Unknown log_level '{level_name}'", file=sys.stderr)
        return False
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger("pingmany").setLevel(level)
    return True


def main(argv: Optional[List[str]] = None, transport_factory: TransportFactory = ICMPTransport.open) -> int:
    """The main entry point; returns the process exit code."""
    args = build_arg_parser().parse_args(argv)

    config = configuration.load_config(args.config)
    if args.delay is not None:
        config['delay'] = args.delay
    if args.timeout is not None:
        config['timeout'] = args.timeout
    if args.show_reachable:
        config['show_reachable'] = True
    if args.show_unreachable:
        config['show_unreachable'] = True
    if args.verbose:
        config['log_level'] = 'DEBUG'

    if not _setup_logging(config['log_level']):
        return 1

    try:
        settings = configuration.SweepSettings.from_config(config)
        max_expansion = int(config['max_expansion'])
    except (TypeError, ValueError) as e:
        logger.critical("Invalid configuration: %s", e)
        return 1

    try:
        text = read_input(args.file)
    except OSError as e:
        logger.critical("Cannot read input: %s", e)
        return 1

    targets = TargetParser(max_expansion=max_expansion).parse(text)
    if not targets:
        logger.info("No valid addresses given.")
        return 0

    engine = SweepEngine(targets, settings, transport_factory=transport_factory)
    try:
        result = engine.run()
    except TransportError as e:
        logger.critical("%s", e)
        return 1

    for line in format_report(result, bool(config['show_reachable']), bool(config['show_unreachable'])):
        print(line)
    return 0
