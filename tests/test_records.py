from datetime import datetime

import pytest

from netbouncer.records import main, parse_connection, parse_line, read_connections

SAMPLE = """\
2024-05-01 10:00:00.001 [INFO] net-bouncer 0.1.0
2024-05-01 10:00:00.002 [INFO] Listening to any address on the port 22
2024-05-01 10:00:05.250 [INFO] Connection from 203.0.113.9 on port 22
2024-05-01 10:00:06.000 [INFO] Connection from 2001:db8::7 on port 22
garbage that is not a record
2024-05-01 10:00:07.999 [INFO] Connection from 203.0.113.9 on port 23
2024-05-01 10:01:00.000 [WARNING] Caught signal SIGINT (2)!
"""


def test_parse_line():
    record = parse_line("2024-05-01 10:00:05.250 [INFO] Connection from 203.0.113.9 on port 22\n")
    assert record.timestamp == datetime(2024, 5, 1, 10, 0, 5, 250000)
    assert record.level == 'INFO'
    assert record.message == "Connection from 203.0.113.9 on port 22"


def test_parse_line_rejects_other_text():
    assert parse_line("garbage") is None
    assert parse_line("") is None
    assert parse_line("2024-05-01 10:00:05 [INFO] no milliseconds") is None


def test_parse_connection():
    assert parse_connection("Connection from ::1 on port 2222") == ('::1', 2222)
    assert parse_connection("Listening to any address on the port 22") is None


def test_read_connections(tmp_path):
    path = tmp_path / 'net-bouncer.log'
    path.write_text(SAMPLE, encoding='utf-8')
    conns = list(read_connections(path))
    assert [(c.address, c.port) for c in conns] == [
        ('203.0.113.9', 22),
        ('2001:db8::7', 22),
        ('203.0.113.9', 23),
    ]


def test_main_summary(tmp_path, capsys):
    path = tmp_path / 'net-bouncer.log'
    path.write_text(SAMPLE, encoding='utf-8')
    assert main([str(path), '-n', '2']) == 0
    out = capsys.readouterr().out
    listed = out.split("=== TOP ADDRESSES ===")[0]
    assert "2001:db8::7" in listed
    assert listed.count("203.0.113.9") == 1
    top = out.split("=== TOP ADDRESSES ===")[1].split("=== PORTS ===")[0]
    assert top.strip().splitlines()[0].split('|')[1].strip() == '2'


def test_main_missing_log_file(tmp_path, capsys):
    missing = tmp_path / 'absent.log'
    with pytest.raises(SystemExit) as info:
        main([str(missing)])
    assert info.value.code == 2
    err = capsys.readouterr().err
    assert f"cannot read log file '{missing}': No such file or directory" in err
