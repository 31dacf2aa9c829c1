import logging
import sys
import time

LEVELS = {
    'ERROR': logging.ERROR,
    'WARNING': logging.WARNING,
    'INFO': logging.INFO,
    'DEBUG': logging.DEBUG,
}

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class BouncerFormatter(logging.Formatter):
    """Renders asctime as YYYY-MM-DD HH:MM:SS.mmm in local time."""
    default_time_format = DATE_FORMAT
    default_msec_format = '%s.%03d'

    def formatTime(self, record, datefmt=None):
        # records carrying an event_time are stamped with it instead of created
        created = getattr(record, 'event_time', None)
        if created is None:
            return super().formatTime(record, datefmt)
        ct = self.converter(created)
        if datefmt:
            return time.strftime(datefmt, ct)
        stamp = time.strftime(self.default_time_format, ct)
        return self.default_msec_format % (stamp, int(created * 1000) % 1000)


def parse_level(name):
    try:
        return LEVELS[name.upper()]
    except KeyError:
        raise ValueError(f"unknown log level '{name}'; expected one of {', '.join(LEVELS)}") from None


def setup_logger(name='netbouncer', log_file=None, level=logging.INFO):
    """Configure the bouncer log destination.

    Records go to ``log_file`` (opened once, in append mode) or to stderr when
    no file is given. Calling it again replaces the previous destination.
    Raises OSError when the log file cannot be opened.
    """
    if log_file:
        handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(BouncerFormatter(LOG_FORMAT))

    logger = logging.getLogger(name)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.setLevel(level)
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def log_connection(logger, address, port, level=logging.INFO, timestamp=None):
    """Log the line the external log-watcher matches on.

    ``timestamp`` (seconds since the epoch) is the time the connection was
    accepted; the record is stamped with it when given.
    """
    extra = {'event_time': timestamp} if timestamp is not None else None
    logger.log(level, f"Connection from {address} on port {port}", extra=extra)
