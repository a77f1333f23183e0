"""Tests for the cancellation token and signal wiring."""

import signal
import threading

from labelmirror.core.cancellation import CancellationToken, install_signal_handlers


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_cancel_sets_flag_and_reason(self):
        token = CancellationToken()

        token.cancel(reason="SIGTERM")

        assert token.cancelled is True
        assert token.reason == "SIGTERM"
        assert token.wait(0) is True

    def test_callbacks_run_once(self):
        token = CancellationToken()
        calls = []
        token.add_callback(lambda: calls.append("x"))

        token.cancel()
        token.cancel()

        assert calls == ["x"]

    def test_callback_after_cancel_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        calls = []

        token.add_callback(lambda: calls.append("late"))

        assert calls == ["late"]

    def test_wait_times_out(self):
        assert CancellationToken().wait(0.01) is False


class TestSignalHandlers:
    """Tests for install_signal_handlers."""

    def test_sigterm_cancels_token(self):
        token = CancellationToken()
        previous = signal.getsignal(signal.SIGTERM), signal.getsignal(signal.SIGINT)
        try:
            assert install_signal_handlers(token) is True
            signal.getsignal(signal.SIGTERM)(signal.SIGTERM, None)
        finally:
            signal.signal(signal.SIGTERM, previous[0])
            signal.signal(signal.SIGINT, previous[1])

        assert token.cancelled is True
        assert token.reason == "SIGTERM"

    def test_sighup_requests_resync(self):
        token = CancellationToken()
        resyncs = []
        saved = {sig: signal.getsignal(sig) for sig in (signal.SIGTERM, signal.SIGINT, signal.SIGHUP)}
        try:
            install_signal_handlers(token, on_resync=lambda: resyncs.append(1))
            signal.getsignal(signal.SIGHUP)(signal.SIGHUP, None)
        finally:
            for sig, handler in saved.items():
                signal.signal(sig, handler)

        assert resyncs == [1]
        assert token.cancelled is False

    def test_off_main_thread_is_skipped(self):
        results = []
        thread = threading.Thread(target=lambda: results.append(install_signal_handlers(CancellationToken())))
        thread.start()
        thread.join()

        assert results == [False]
