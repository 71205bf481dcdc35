"""Logging for certrenew runs.

Logging is set up in two steps. `pre_arg_parse_setup` attaches a quiet
terminal handler so failures while parsing the command line still
reach the user. `post_arg_parse_setup` then applies ``-v``/``-q`` to
that handler and starts a fresh debug log in ``--logs-dir`` for every
run, which is where unattended renewals leave their trace.

"""
import functools
import logging
import logging.handlers
import os
import sys
import traceback

from acme import messages

from certrenew import constants
from certrenew import errors
from certrenew import util

CLI_FMT = "%(message)s"
FILE_FMT = "%(asctime)s:%(levelname)s:%(name)s:%(message)s"

# each run starts a new file, the previous runs are kept as .1 to .10
LOG_MAX_BYTES = 2 ** 20
LOG_BACKUPS = 10

logger = logging.getLogger(__name__)


def pre_arg_parse_setup():
    """Log warnings and errors to the terminal until options are known.

    Also makes sure handlers are flushed at exit and that fatal
    exceptions go through `except_hook`.

    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(_terminal_handler(constants.QUIET_LOGGING_LEVEL))

    util.atexit_register(logging.shutdown)
    sys.excepthook = functools.partial(except_hook, log_path=None)


def post_arg_parse_setup(config):
    """Finish logging setup from the parsed command line.

    :param certrenew.interfaces.IConfig config: Configuration object

    """
    root_logger = logging.getLogger()
    terminal = next((handler for handler in root_logger.handlers
                     if isinstance(handler, ColoredStreamHandler)), None)
    if terminal is None:
        terminal = _terminal_handler(logging.NOTSET)
        root_logger.addHandler(terminal)
    terminal.setLevel(_terminal_level(config))

    file_handler, log_file = setup_log_file_handler(
        config, constants.LOG_FILENAME, FILE_FMT)
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)

    logger.debug("Terminal logging level set to %d", terminal.level)
    logger.info("Saving debug log to %s", log_file)
    sys.excepthook = functools.partial(
        except_hook, log_path=os.path.dirname(log_file))


def _terminal_handler(level):
    handler = ColoredStreamHandler()
    handler.setFormatter(logging.Formatter(CLI_FMT))
    handler.setLevel(level)
    return handler


def _terminal_level(config):
    if config.quiet:
        return constants.QUIET_LOGGING_LEVEL
    # verbose_count starts negative, each -v lowers the level by 10
    return -config.verbose_count * 10


def setup_log_file_handler(config, logfile, fmt):
    """Open ``logfile`` in the logs directory for debug logging.

    The file is rolled over immediately so every run gets its own log.

    :param certrenew.interfaces.IConfig config: Configuration object
    :param str logfile: basename of the log file
    :param str fmt: logging format string

    :returns: the handler and the absolute path of the log file
    :rtype: tuple

    :raises errors.Error: if the log file cannot be opened

    """
    util.set_up_core_dir(config.logs_dir, 0o700, lock_it=False)
    path = os.path.join(config.logs_dir, logfile)
    try:
        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS)
    except IOError as error:
        raise errors.Error(util.PERM_ERR_FMT.format(error))
    handler.doRollover()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt=fmt))
    return handler, path


class ColoredStreamHandler(logging.StreamHandler):
    """Stream handler printing serious records in red on a terminal.

    :ivar bool colored: whether the stream is a tty
    :ivar int red_level: lowest level printed in red

    """
    def __init__(self, stream=None):
        super(ColoredStreamHandler, self).__init__(stream)
        self.colored = self.stream.isatty()
        self.red_level = logging.WARNING

    def format(self, record):
        text = super(ColoredStreamHandler, self).format(record)
        if not self.colored or record.levelno < self.red_level:
            return text
        return util.ANSI_SGR_RED + text + util.ANSI_SGR_RESET


def except_hook(exc_type, exc_value, trace, log_path):
    """Report an exception nobody caught, then exit nonzero.

    Certrenew errors are expected failures (lock held, bad settings,
    unreachable server): their message alone is shown. Anything else is
    a bug and is printed with its type so it can be reported. The full
    traceback always goes to the debug log.

    :param type exc_type: type of the raised exception
    :param BaseException exc_value: raised exception
    :param traceback trace: where it was raised
    :param str log_path: directory holding the debug log, if any

    """
    exc_info = (exc_type, exc_value, trace)
    if not issubclass(exc_type, Exception):
        # KeyboardInterrupt and friends
        logger.error("Exiting abnormally:", exc_info=exc_info)
        exit_with_log_path(log_path)

    logger.debug("Exiting abnormally:", exc_info=exc_info)
    if issubclass(exc_type, errors.Error):
        sys.exit(exc_value)

    logger.error("An unexpected error occurred:")
    if messages.is_acme_error(exc_value):
        logger.error(str(exc_value).partition(":: ")[2])
    else:
        traceback.print_exception(exc_type, exc_value, None)
    exit_with_log_path(log_path)


def exit_with_log_path(log_path):
    """Exit with status 1, pointing at ``log_path`` when known."""
    if log_path is None:
        sys.exit(1)
    sys.exit("Please see the logfiles in {0} for more details.".format(
        log_path))
