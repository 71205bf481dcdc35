"""Keeps two certrenew processes from working on the same directory."""
import errno
import fcntl
import logging
import os

from certrenew import errors

logger = logging.getLogger(__name__)

LOCK_FILENAME = ".certrenew.lock"


def lock_dir(dir_path):
    """Lock the certrenew directory ``dir_path``.

    :returns: held lock
    :rtype: LockFile

    :raises errors.LockError: if another process holds it

    """
    return LockFile(os.path.join(dir_path, LOCK_FILENAME))


class LockFile(object):
    """Exclusive ``lockf`` lock on a file that only exists while held.

    Other processes, not other threads, are kept out. The operating
    system drops the lock if the process dies without releasing it.

    """
    def __init__(self, path):
        self._path = path
        self._fd = None
        self.acquire()

    @property
    def acquired(self):
        """Is the lock currently held by this object?"""
        return self._fd is not None

    def acquire(self):
        """Take the lock, retrying while the file is swapped under us.

        :raises errors.LockError: if the lock is held elsewhere
        :raises OSError: if the file cannot be opened or inspected

        """
        while not self.acquired:
            self._fd = self._open_and_lock()

    def _open_and_lock(self):
        fd = os.open(self._path, os.O_CREAT | os.O_WRONLY, 0o600)
        locked = False
        try:
            try:
                fcntl.lockf(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except OSError as err:
                if err.errno not in (errno.EACCES, errno.EAGAIN):
                    raise
                logger.debug("%s is locked by another process", self._path)
                raise errors.LockError(
                    "Another instance of certrenew is already running.")
            # a releasing process removes the file after we opened it
            locked = self._still_linked(fd)
        finally:
            if not locked:
                os.close(fd)
        return fd if locked else None

    def _still_linked(self, fd):
        try:
            on_disk = os.stat(self._path)
        except OSError as err:
            if err.errno == errno.ENOENT:
                return False
            raise
        opened = os.fstat(fd)
        return (on_disk.st_dev, on_disk.st_ino) == (opened.st_dev,
                                                    opened.st_ino)

    def release(self):
        """Delete the file, then drop the lock."""
        # deleting after unlocking would let a newcomer lock a file
        # that is about to vanish
        try:
            os.remove(self._path)
        finally:
            fd, self._fd = self._fd, None
            os.close(fd)

    def __repr__(self):
        return '{0}({1}) <{2}>'.format(
            type(self).__name__, self._path,
            'acquired' if self.acquired else 'released')
