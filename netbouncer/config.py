import logging
import os
import socket

from .logger import parse_level

MAX_PORTS = 50
DEFAULT_BACKLOG = 50

FAMILIES = {
    4: socket.AF_INET,
    6: socket.AF_INET6,
}

# --- Defaults (overridable by env or CLI) ---
DEFAULT_LOG_FILE = os.environ.get("NET_BOUNCER_LOG_FILE") or None
DEFAULT_LOG_LEVEL = os.environ.get("NET_BOUNCER_LOG_LEVEL", "INFO")


def valid_port(port):
    return isinstance(port, int) and not isinstance(port, bool) and 0 < port <= 65535


class BouncerConfig:
    """Startup settings shared by the logger, the listeners and the loop."""

    def __init__(self, ports, family=socket.AF_INET, log_file=None, level=logging.INFO,
                 backlog=DEFAULT_BACKLOG, max_ports=MAX_PORTS):
        ports = tuple(ports)
        if not ports:
            raise ValueError("missing port number")
        if len(ports) > max_ports:
            raise ValueError(f"too many ports; you must specify at most {max_ports} ports")
        for port in ports:
            if not valid_port(port):
                raise ValueError(f"invalid port number: {port!r}")
        if family not in FAMILIES.values():
            raise ValueError(f"unsupported address family: {family!r}")
        if isinstance(level, str):
            level = parse_level(level)

        self.ports = ports
        self.family = family
        self.log_file = log_file
        self.level = level
        self.backlog = backlog
        self.max_ports = max_ports

    def __repr__(self):
        return (f"BouncerConfig(ports={self.ports!r}, family={self.family!r}, "
                f"log_file={self.log_file!r}, level={logging.getLevelName(self.level)})")
