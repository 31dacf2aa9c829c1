import logging
import socket

from .config import DEFAULT_BACKLOG, valid_port

logger = logging.getLogger('netbouncer.listener')

MIN_BACKLOG = 5


class ListenerError(Exception):
    """A requested port could not be bound or put in listening mode."""

    def __init__(self, port, error):
        super().__init__(f"port {port}: {error.strerror or error}")
        self.port = port
        self.error = error


def wildcard_address(family, port):
    if family == socket.AF_INET6:
        return ('::', port, 0, 0)
    return ('0.0.0.0', port)


def create_server(port, family=socket.AF_INET, backlog=DEFAULT_BACKLOG):
    """Open a non-blocking listening TCP socket on the wildcard address.

    Raises ValueError for a bad port or family and OSError when the socket
    cannot be created, bound or put in listening mode.
    """
    if not valid_port(port):
        raise ValueError(f"invalid port number: {port!r}")
    if family not in (socket.AF_INET, socket.AF_INET6):
        raise ValueError(f"unsupported address family: {family!r}")
    if backlog <= 0:
        backlog = MIN_BACKLOG

    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    except OSError as e:
        logger.warning(f"Unable to make the address reusable; {e.strerror or e}")

    try:
        sock.bind(wildcard_address(family, port))
        sock.listen(backlog)
        sock.setblocking(False)
    except OSError:
        sock.close()
        raise
    return sock


class Listener:
    def __init__(self, port, family, sock):
        self.port = port
        self.family = family
        self.sock = sock
        self.closed = False

    def fileno(self):
        return self.sock.fileno()

    def accept(self):
        return self.sock.accept()

    def close(self):
        if not self.closed:
            self.closed = True
            self.sock.close()

    def __repr__(self):
        return f"<Listener port={self.port} family={socket.AddressFamily(self.family).name} closed={self.closed}>"


class ListenerSet:
    """One listener per configured port, opened together and closed together."""

    def __init__(self, ports, family=socket.AF_INET, backlog=DEFAULT_BACKLOG):
        self.ports = tuple(ports)
        self.family = family
        self.backlog = backlog
        self.listeners = []

    @classmethod
    def from_config(cls, config):
        return cls(config.ports, config.family, config.backlog)

    def open(self):
        for port in self.ports:
            try:
                sock = create_server(port, self.family, self.backlog)
            except OSError as e:
                self.close()
                raise ListenerError(port, e) from e
            self.listeners.append(Listener(port, self.family, sock))
            logger.info(f"Listening to any address on the port {port}")
        return self

    def close(self):
        for listener in self.listeners:
            listener.close()

    def __enter__(self):
        return self.open()

    def __exit__(self, *exc):
        self.close()

    def __iter__(self):
        return iter(self.listeners)

    def __len__(self):
        return len(self.listeners)

    def __getitem__(self, index):
        return self.listeners[index]
