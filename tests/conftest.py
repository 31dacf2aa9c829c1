import logging
import socket
import threading
import time

import pytest

from netbouncer.logger import setup_logger


def free_port(family=socket.AF_INET, host='127.0.0.1'):
    with socket.socket(family, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]


def wait_for(predicate, timeout=5.0, interval=0.02):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def read_lines(path):
    try:
        with open(path, encoding='utf-8') as f:
            return f.read().splitlines()
    except FileNotFoundError:
        return []


def count_matching(path, text):
    return sum(1 for line in read_lines(path) if text in line)


def knock(port, host='127.0.0.1', family=socket.AF_INET):
    """Connect and hang up straight away, like a port scanner."""
    with socket.socket(family, socket.SOCK_STREAM) as s:
        s.settimeout(5)
        s.connect((host, port))


class BackgroundBouncer:
    def __init__(self, bouncer):
        self.bouncer = bouncer
        self.exit_code = None
        self.thread = threading.Thread(target=self._run, daemon=True)

    def _run(self):
        self.exit_code = self.bouncer.run()

    def start(self):
        self.thread.start()
        return self

    def stop(self, timeout=5.0):
        self.bouncer.stop()
        self.thread.join(timeout)
        return self.exit_code


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / 'net-bouncer.log'


@pytest.fixture
def logger(log_path):
    return setup_logger(log_file=str(log_path), level=logging.DEBUG)


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    log = logging.getLogger('netbouncer')
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()
    log.setLevel(logging.NOTSET)
    log.propagate = True
