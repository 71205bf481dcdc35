"""Filesystem, process and naming helpers shared by certrenew."""
import atexit
import collections
import errno
import logging
import os
import re
import stat
import subprocess
import tempfile

from certrenew import errors
from certrenew import lock


logger = logging.getLogger(__name__)


# ANSI SGR escape codes
ANSI_SGR_BOLD = '\033[1m'
ANSI_SGR_RED = "\033[31m"
ANSI_SGR_RESET = "\033[0m"


PERM_ERR_FMT = os.linesep.join((
    "The following error was encountered:", "{0}",
    "Either run as root, or set --config-dir and "
    "--logs-dir to writeable paths."))


# atexit callbacks only run in the process that imported this module
_INITIAL_PID = os.getpid()
# directory -> LockFile, released (and the lock file deleted) at exit
_LOCKS = collections.OrderedDict()


def run_script(params, env=None, log=logger.error):
    """Run an external command to completion.

    Used by the script installation and DNS plugins, which hand the
    certificate or challenge details over in ``env``.

    :param list params: command and arguments
    :param dict env: variables added to the inherited environment
    :param log: called with the message when the command fails

    :returns: ``(stdout, stderr)``
    :rtype: tuple

    :raises .errors.SubprocessError: if the command cannot be started
        or exits nonzero

    """
    command = " ".join(params)
    child_env = dict(os.environ, **env) if env else None
    try:
        proc = subprocess.Popen(params, stdout=subprocess.PIPE,
                                stderr=subprocess.PIPE, env=child_env,
                                universal_newlines=True)
    except (OSError, ValueError):
        msg = "Unable to run the command: {0}".format(command)
        log(msg)
        raise errors.SubprocessError(msg)

    stdout, stderr = proc.communicate()
    if proc.returncode:
        msg = "{0} exited with status {1}.\n{2}\n{3}".format(
            command, proc.returncode, stdout, stderr)
        log(msg)
        raise errors.SubprocessError(msg)
    return stdout, stderr


def lock_dir_until_exit(dir_path):
    """Hold the lock on ``dir_path`` for the rest of the process.

    :raises errors.LockError: if another process holds it

    """
    if not _LOCKS:
        atexit_register(_release_locks)
    if dir_path not in _LOCKS:
        _LOCKS[dir_path] = lock.lock_dir(dir_path)


def _release_locks():
    while _LOCKS:
        _, dir_lock = _LOCKS.popitem(last=False)
        try:
            dir_lock.release()
        except Exception:  # pylint: disable=broad-except
            logger.debug("Could not release %r", dir_lock, exc_info=True)


def set_up_core_dir(directory, mode, lock_it=True):
    """Create the config or logs directory, locking it if asked.

    :raises .errors.LockError: if the directory is locked elsewhere
    :raises .errors.Error: if the directory cannot be created

    """
    try:
        make_or_verify_dir(directory, mode)
        if lock_it:
            lock_dir_until_exit(directory)
    except OSError as error:
        logger.debug("Could not set up %s", directory, exc_info=True)
        raise errors.Error(PERM_ERR_FMT.format(error))


def make_or_verify_dir(directory, mode=0o755, uid=None, strict=False):
    """Create ``directory`` (and its parents) with ``mode``.

    An existing directory is accepted as is, unless ``strict`` is set:
    then it must have exactly ``mode`` and belong to ``uid`` (the
    effective user by default).

    :raises .errors.Error: if a strict check fails
    :raises OSError: if the directory cannot be created

    """
    try:
        os.makedirs(directory, mode)
        return
    except OSError as exception:
        if exception.errno != errno.EEXIST:
            raise
    if not strict:
        return
    uid = os.geteuid() if uid is None else uid
    existing = os.stat(directory)
    if stat.S_IMODE(existing.st_mode) != mode or existing.st_uid != uid:
        raise errors.Error(
            "{0} exists, but it should be owned by user {1} with "
            "permissions {2}".format(directory, uid, oct(mode)))


def atomic_write(path, data, chmod=0o600):
    """Replace the file at ``path`` with ``data`` in one step.

    The data is written to a temporary file in the same directory which
    is then renamed over ``path``, so readers never see a partial write.

    :param str path: Destination path.
    :param data: Text or bytes to write.
    :param int chmod: Mode of the resulting file.

    """
    directory = os.path.dirname(os.path.abspath(path))
    binary = isinstance(data, bytes)
    fd, temp_path = tempfile.mkstemp(
        dir=directory, prefix="." + os.path.basename(path), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb" if binary else "w") as temp_file:
            temp_file.write(data)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.chmod(temp_path, chmod)
        os.replace(temp_path, path)
    except OSError:
        safely_remove(temp_path)
        raise


def safely_remove(path):
    """Remove a file that may not exist."""
    try:
        os.remove(path)
    except OSError as err:
        if err.errno != errno.ENOENT:
            raise


def remove_empty_dirs(path, stop):
    """Remove ``path`` and its parents while they are empty.

    :param str path: Innermost directory to remove.
    :param str stop: Directory at which to stop; it is never removed.

    """
    stop = os.path.abspath(stop)
    path = os.path.abspath(path)
    while path != stop and path.startswith(stop + os.path.sep):
        try:
            os.rmdir(path)
        except OSError:
            # not empty, or already gone
            return
        path = os.path.dirname(path)


# Domain names are restricted to the LDH subset with at most 63 octets per
# label; wildcards are not supported.
_LABEL_REGEX = re.compile(r"^(?!-)[a-zA-Z0-9-]{1,63}(?<!-)$")


def enforce_domain_sanity(domain):
    """Method which validates domain value and errors out if
    the requirements are not met.

    :param str domain: Domain to check
    :raises ConfigurationError: for invalid domains

    :returns: The domain, lower-cased and without a trailing dot
    :rtype: str

    """
    if domain.startswith("*."):
        raise errors.ConfigurationError(
            "Wildcard domains are not supported: {0}".format(domain))
    try:
        domain.encode('ascii')
    except UnicodeError:
        raise errors.ConfigurationError(
            "Non-ASCII domain names not supported. "
            "To issue for an Internationalized Domain Name, use Punycode.")

    domain = domain.lower().rstrip(".")
    if len(domain) > 253:
        raise errors.ConfigurationError(
            "Requested domain {0} is too long".format(domain))
    labels = domain.split(".")
    if len(labels) < 2 or not all(_LABEL_REGEX.match(label) for label in labels):
        raise errors.ConfigurationError(
            "Requested name {0} is not a valid domain name".format(domain))
    return domain


def atexit_register(func, *args, **kwargs):
    """Call ``func(*args, **kwargs)`` when this process exits.

    Forked children inherit atexit callbacks; they skip them.

    """
    atexit.register(_atexit_call, func, *args, **kwargs)


def _atexit_call(func, *args, **kwargs):
    if os.getpid() == _INITIAL_PID:
        func(*args, **kwargs)
