"""Messages shown to the user when a run ends."""
import collections
import logging
import os
import sys
import textwrap

import zope.interface

from certrenew import interfaces
from certrenew import util


logger = logging.getLogger(__name__)

_Message = collections.namedtuple('_Message', 'priority counter text on_crash')


@zope.interface.implementer(interfaces.IReporter)
class Reporter(object):
    """Collects messages and prints them at exit.

    Messages are printed by priority, then in the order they were added.

    :ivar list messages: pending messages

    """

    HIGH_PRIORITY = 0
    MEDIUM_PRIORITY = 1
    LOW_PRIORITY = 2

    def __init__(self, config):
        self.config = config
        self.messages = []
        self._counter = 0

    def add_message(self, msg, priority, on_crash=True):
        """Queue ``msg``.

        :param str msg: Message to be displayed to the user.
        :param int priority: One of `HIGH_PRIORITY`, `MEDIUM_PRIORITY`,
            or `LOW_PRIORITY`.
        :param bool on_crash: Print even if the program exits abnormally.

        """
        assert self.HIGH_PRIORITY <= priority <= self.LOW_PRIORITY
        self._counter += 1
        self.messages.append(_Message(priority, self._counter, msg, on_crash))
        logger.info("Reporting to user: %s", msg)

    def report_renewal(self, renewal, result):
        """Queue the outcome of one renewal attempt.

        :param .ScheduledRenewal renewal: the renewal that was processed
        :param .RenewResult result: its outcome

        """
        if result.success:
            self.add_message(
                "Certificate for {0} renewed (thumbprint {1}), next renewal "
                "after {2}".format(renewal.binding, result.thumbprint,
                                   renewal.due_date.strftime("%Y-%m-%d")),
                self.MEDIUM_PRIORITY, on_crash=False)
        else:
            self.add_message("Renewal of {0} failed: {1}".format(
                renewal.binding, result.error_message), self.HIGH_PRIORITY)

    def atexit_print_messages(self, pid=None):
        """Print messages, but only in the process that created us.

        :param int pid: Process ID that created the reporter

        """
        if pid is None or pid == os.getpid():
            self.print_messages()

    def _printable(self, crashed):
        for msg in sorted(self.messages):
            if self.config.quiet and not (
                    msg.priority == self.HIGH_PRIORITY and msg.on_crash):
                continue
            if crashed and not msg.on_crash:
                continue
            yield msg

    def print_messages(self):
        """Print the queued messages and forget them.

        After an unhandled exception only ``on_crash`` messages are
        printed; with ``--quiet`` only high priority ones, without header.

        """
        printable = list(self._printable(sys.exc_info()[0] is not None))
        del self.messages[:]
        if not printable:
            return
        bold = sys.stdout.isatty() and not self.config.quiet
        if not self.config.quiet:
            if bold:
                print(util.ANSI_SGR_BOLD)
            print('IMPORTANT NOTES:')
        first = textwrap.TextWrapper(initial_indent=' - ',
                                     subsequent_indent=' ' * 3)
        rest = textwrap.TextWrapper(initial_indent=' ' * 3,
                                    subsequent_indent=' ' * 3)
        for msg in printable:
            # only high priority messages are bold
            if bold and msg.priority > self.HIGH_PRIORITY:
                sys.stdout.write(util.ANSI_SGR_RESET)
                bold = False
            lines = msg.text.splitlines() or [""]
            print(first.fill(lines[0]))
            for line in lines[1:]:
                print(rest.fill(line))
        if bold:
            sys.stdout.write(util.ANSI_SGR_RESET)
