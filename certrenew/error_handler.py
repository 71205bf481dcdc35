"""Cleanup of staged validation material on errors and signals.

Validation plugins publish proof material (files, DNS records, proof
certificates, listening sockets) that must be withdrawn however the
authorization ends. `ExitHandler` runs the registered cleanup on every
exit from its block; `ErrorHandler` only when the block fails.

"""
import functools
import logging
import os
import signal
import traceback

from certrenew import errors

logger = logging.getLogger(__name__)


# terminating signals that could arrive while proof material is staged
_SIGNALS = (signal.SIGTERM, signal.SIGHUP, signal.SIGQUIT,
            signal.SIGXCPU, signal.SIGXFSZ)


class ErrorHandler(object):
    """Calls registered cleanup functions when its block fails.

    ::

        with ErrorHandler(plugin.cleanup):
            plugin.prepare_challenge(achall)

    An exception leaving the block runs the cleanup and propagates.
    A signal received inside the block interrupts it, runs the cleanup
    and is then re-delivered to the handler that was installed before.

    Cleanup functions run at most once, most recently registered first;
    one that raises is logged and does not stop the others.

    """
    cleanup_on_success = False

    def __init__(self, func=None, *args, **kwargs):
        self.funcs = []
        self.prev_handlers = {}
        self.received_signals = []
        self.body_executed = False
        if func is not None:
            self.register(func, *args, **kwargs)

    def register(self, func, *args, **kwargs):
        """Add ``func(*args, **kwargs)`` to the cleanup functions."""
        self.funcs.append(functools.partial(func, *args, **kwargs))

    def call_registered(self):
        """Run and forget every cleanup function."""
        logger.debug("Running %d cleanup function(s)", len(self.funcs))
        while self.funcs:
            func = self.funcs.pop()
            try:
                func()
            except Exception:  # pylint: disable=broad-except
                logger.error("Cleanup function %r failed", func.func,
                             exc_info=True)

    def __enter__(self):
        self.body_executed = False
        self._install_signal_handlers()
        return self

    def __exit__(self, exc_type, exc_value, trace):
        self.body_executed = True
        try:
            if exc_type is errors.SignalExit:
                logger.debug("Interrupted by signal(s) %s",
                             self.received_signals)
                self.call_registered()
                self._redeliver_signals()
                return True
            # forked children leave through SystemExit without exec
            if exc_type is not None and exc_type is not SystemExit:
                logger.debug("Cleaning up after:\n%s", "".join(
                    traceback.format_exception(exc_type, exc_value, trace)))
                self.call_registered()
            elif exc_type is None and self.cleanup_on_success:
                self.call_registered()
            return False
        finally:
            self._restore_signal_handlers()

    def _install_signal_handlers(self):
        for signum in _SIGNALS:
            previous = signal.getsignal(signum)
            # None: installed outside of Python, leave it alone
            if previous is None:
                continue
            self.prev_handlers[signum] = previous
            signal.signal(signum, self._on_signal)

    def _restore_signal_handlers(self):
        for signum, previous in self.prev_handlers.items():
            signal.signal(signum, previous)
        self.prev_handlers.clear()

    def _on_signal(self, signum, unused_frame):
        self.received_signals.append(signum)
        if not self.body_executed:
            raise errors.SignalExit

    def _redeliver_signals(self):
        for signum in self.received_signals:
            logger.debug("Re-delivering signal %s", signum)
            signal.signal(signum, self.prev_handlers[signum])
            os.kill(os.getpid(), signum)


class ExitHandler(ErrorHandler):
    """Calls registered cleanup functions however its block ends."""
    cleanup_on_success = True
