import argparse
import socket
import sys

from . import __version__
from .config import (DEFAULT_BACKLOG, DEFAULT_LOG_FILE, DEFAULT_LOG_LEVEL, MAX_PORTS,
                     BouncerConfig)
from .listener import ListenerError, ListenerSet
from .logger import LEVELS, setup_logger
from .server import Bouncer


class BouncerArgumentParser(argparse.ArgumentParser):
    """Argument errors exit with status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: {message}\n")


def port_number(value):
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port number: '{value}'") from None
    if not 0 < port <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range (1-65535): {port}")
    return port


def build_parser():
    p = BouncerArgumentParser(
        prog="net-bouncer",
        description="Honeypot that logs connection attempts and refuses them.",
    )
    p.add_argument("-p", dest="ports", metavar="port", type=port_number, action="append",
                   help="Listen on the specified port; this option may appear multiple times.")
    p.add_argument("-l", dest="log_file", metavar="log_file", default=DEFAULT_LOG_FILE,
                   help="Path to the log file; if omitted, the log will be output to 'stderr'.")
    family = p.add_mutually_exclusive_group()
    family.add_argument("-4", dest="family", action="store_const", const=socket.AF_INET,
                        help="Listen for IPv4 connections (any address); this is the default.")
    family.add_argument("-6", dest="family", action="store_const", const=socket.AF_INET6,
                        help="Listen for IPv6 connections (any address).")
    p.add_argument("--log-level", default=DEFAULT_LOG_LEVEL, type=str.upper, choices=list(LEVELS),
                   help="Minimum severity written to the log (default: %(default)s).")
    p.add_argument("--max-ports", type=int, default=MAX_PORTS,
                   help="Maximum number of -p options accepted (default: %(default)s).")
    p.add_argument("--backlog", type=int, default=DEFAULT_BACKLOG,
                   help="Pending connection queue size per port (default: %(default)s).")
    p.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    p.set_defaults(family=socket.AF_INET)
    return p


def parse_args(argv=None):
    """Parse the command line into a BouncerConfig; exits with 1 on bad input."""
    p = build_parser()
    args = p.parse_args(argv)
    if not args.ports:
        p.error("missing port number")
    try:
        return BouncerConfig(args.ports, family=args.family, log_file=args.log_file,
                             level=args.log_level, backlog=args.backlog,
                             max_ports=args.max_ports)
    except ValueError as e:
        p.error(str(e))


def main(argv=None):
    config = parse_args(argv)

    try:
        logger = setup_logger(log_file=config.log_file, level=config.level)
    except OSError as e:
        logger = setup_logger(level=config.level)
        logger.error(f"Unable to open log file '{config.log_file}'")
        logger.error(f"IO error: {e.strerror or e}")
        return 1

    logger.info(f"net-bouncer {__version__}")

    listeners = ListenerSet.from_config(config)
    try:
        listeners.open()
    except ListenerError as e:
        logger.error(f"Unable to create socket server: {e}")
        return 1

    bouncer = Bouncer(listeners, logger)
    bouncer.install_signal_handlers()
    try:
        return bouncer.run()
    finally:
        bouncer.restore_signal_handlers()
