"""net-bouncer: log connection attempts on honeypot ports and refuse them."""

__version__ = "0.1.0"
