"""
cancellation.py
- One-shot cancellation token handed to the reconciler instead of a global interrupt handler.
- Signal wiring: SIGINT/SIGTERM cancel the token, SIGHUP requests a node resync.
"""

import signal
import threading

from loguru import logger


class CancellationToken:
    """
    Cooperative, one-shot cancellation signal.

    Callbacks registered with add_callback run exactly once, on the thread
    that calls cancel() (or immediately if the token is already cancelled).
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks = []
        self.reason = None

    @property
    def cancelled(self):
        return self._event.is_set()

    def cancel(self, reason="requested"):
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def wait(self, timeout=None):
        """Block until cancelled or the timeout elapses. Returns True if cancelled."""
        return self._event.wait(timeout)

    def add_callback(self, callback):
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()


def install_signal_handlers(token, on_resync=None):
    """
    Bind process signals to the token. Only possible from the main thread;
    elsewhere this logs and returns False.
    """
    if threading.current_thread() is not threading.main_thread():
        logger.debug("[signals] Not on the main thread, skipping signal handlers")
        return False

    def handle_exit(signum, frame):
        name = signal.Signals(signum).name
        logger.info(f"📴 Received {name}. Draining label mirror...")
        token.cancel(reason=name)

    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)

    if on_resync is not None and hasattr(signal, "SIGHUP"):
        def handle_hup(signum, frame):
            logger.info("[signals] SIGHUP received, forcing node resync")
            on_resync()

        signal.signal(signal.SIGHUP, handle_hup)

    return True
