import errno
import logging
import selectors
import signal
import socket
import time
from collections import namedtuple

from .logger import log_connection

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGABRT)

# Departs on purpose from treating every accept error as fatal: these (and
# BlockingIOError, handled in _bounce) only mean the peer went away between
# readiness and accept, so they are logged and skipped.
SKIPPABLE_ACCEPT_ERRORS = (errno.ECONNABORTED,)

ConnectionEvent = namedtuple('ConnectionEvent', 'address remote_port port timestamp')


def signal_name(signum):
    try:
        return signal.Signals(signum).name
    except ValueError:
        return str(signum)


class Bouncer:
    """Accept, log and close connections on every listener until stopped.

    A single thread waits on all listeners at once. ``stop()`` is safe to call
    from a signal handler: it clears the running flag and pokes a wake-up
    socket that is part of the same wait, so the loop returns at once.
    """

    def __init__(self, listeners, logger=None):
        self.listeners = listeners
        self.logger = logger or logging.getLogger('netbouncer.server')
        self.is_running = True
        self.caught_signal = None
        self._previous_handlers = {}
        self._wakeup_recv, self._wakeup_send = socket.socketpair()
        self._wakeup_recv.setblocking(False)
        self._wakeup_send.setblocking(False)

    def install_signal_handlers(self, signals=SHUTDOWN_SIGNALS):
        for signum in signals:
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)

    def restore_signal_handlers(self):
        while self._previous_handlers:
            signum, handler = self._previous_handlers.popitem()
            signal.signal(signum, handler)

    def _handle_signal(self, signum, frame):
        self.stop(signum)

    def stop(self, signum=None):
        if signum is not None and self.caught_signal is None:
            self.caught_signal = signum
        self.is_running = False
        if self._wakeup_send.fileno() == -1:
            return
        try:
            self._wakeup_send.send(b'\0')
        except BlockingIOError:
            # a wake-up is already pending
            pass

    def run(self):
        """Serve until stopped. Returns 0 on a clean stop and 1 on a runtime error."""
        selector = selectors.DefaultSelector()
        selector.register(self._wakeup_recv, selectors.EVENT_READ, None)
        for index, listener in enumerate(self.listeners):
            selector.register(listener.sock, selectors.EVENT_READ, index)

        exit_code = 0
        try:
            while self.is_running:
                try:
                    events = selector.select()
                except OSError as e:
                    self.logger.error(f"Error waiting connection: {e}")
                    exit_code = 1
                    break

                ready = sorted(key.data for key, _ in events if key.data is not None)
                if len(ready) < len(events):
                    self._drain_wakeup()
                if not self.is_running:
                    break

                for index in ready:
                    if not self._bounce(self.listeners[index]):
                        exit_code = 1
                        self.is_running = False
                        break
        finally:
            selector.close()
            if self.caught_signal is not None:
                self.logger.warning(
                    f"Caught signal {signal_name(self.caught_signal)} ({int(self.caught_signal)})!")
            self.logger.info("Shutting down")
            self.listeners.close()
            self.close()
        return exit_code

    def close(self):
        """Release the wake-up socket pair. run() calls it on the way out."""
        self._wakeup_recv.close()
        self._wakeup_send.close()

    def _drain_wakeup(self):
        try:
            while self._wakeup_recv.recv(64):
                pass
        except BlockingIOError:
            pass

    def _bounce(self, listener):
        """Accept one pending client on ``listener``, log it and hang up.

        Returns False when the accept failure should stop the loop.
        """
        try:
            client, addr = listener.accept()
        except BlockingIOError:
            self.logger.debug(f"No pending connection on port {listener.port}")
            return True
        except OSError as e:
            if e.errno in SKIPPABLE_ACCEPT_ERRORS:
                self.logger.warning(f"Connection aborted before accept on port {listener.port}: {e}")
                return True
            self.logger.error(f"Error accepting connection: {e}")
            return False

        try:
            event = ConnectionEvent(addr[0], addr[1], listener.port, time.time())
            self.on_connection(event)
        finally:
            client.close()
        return True

    def on_connection(self, event):
        log_connection(self.logger, event.address, event.port, timestamp=event.timestamp)
        self.logger.debug(f"Closed {event.address} source port {event.remote_port}")
