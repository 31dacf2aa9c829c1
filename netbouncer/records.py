"""Read a net-bouncer log back: parse records and list the connections seen."""
import argparse
import re
from collections import Counter, deque, namedtuple
from datetime import datetime

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S.%f'

LINE_RE = re.compile(
    r'^(?P<timestamp>\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}) '
    r'\[(?P<level>[A-Z]+)\] (?P<message>.*)$'
)
CONNECTION_RE = re.compile(r'Connection from (?P<address>\S+) on port (?P<port>\d+)')

LogLine = namedtuple('LogLine', 'timestamp level message')
Connection = namedtuple('Connection', 'timestamp address port')


def parse_line(line):
    """Return a LogLine for a record line, None for anything else."""
    m = LINE_RE.match(line.rstrip('\r\n'))
    if not m:
        return None
    timestamp = datetime.strptime(m.group('timestamp'), TIMESTAMP_FORMAT)
    return LogLine(timestamp, m.group('level'), m.group('message'))


def parse_connection(message):
    m = CONNECTION_RE.search(message)
    if not m:
        return None
    return m.group('address'), int(m.group('port'))


def read_connections(path):
    with open(path, encoding='utf-8', errors='replace') as f:
        for line in f:
            record = parse_line(line)
            if record is None:
                continue
            conn = parse_connection(record.message)
            if conn:
                yield Connection(record.timestamp, *conn)


def main(argv=None):
    p = argparse.ArgumentParser(prog="net-bouncer-logs",
                                description="Summarize connections recorded in a net-bouncer log.")
    p.add_argument("log_file")
    p.add_argument("-n", "--limit", type=int, default=50, help="Connections to list (default: %(default)s)")
    p.add_argument("--top", type=int, default=10, help="Addresses to rank (default: %(default)s)")
    args = p.parse_args(argv)

    last = deque(maxlen=max(args.limit, 0))
    by_address = Counter()
    by_port = Counter()
    try:
        for conn in read_connections(args.log_file):
            last.append(conn)
            by_address[conn.address] += 1
            by_port[conn.port] += 1
    except OSError as e:
        p.error(f"cannot read log file '{args.log_file}': {e.strerror or e}")

    print("\n=== CONNECTIONS ===\n")
    for conn in reversed(last):
        print(f"  {conn.timestamp:%Y-%m-%d %H:%M:%S} | {conn.address:39} | {conn.port:5}")

    print("\n=== TOP ADDRESSES ===\n")
    for address, count in by_address.most_common(args.top):
        print(f"  {address:39} | {count}")

    print("\n=== PORTS ===\n")
    for port, count in sorted(by_port.items()):
        print(f"  {port:5} | {count}")
    return 0
