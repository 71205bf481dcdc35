"""Tests for certrenew.util."""
import os
import shutil
import stat
import tempfile
import unittest

import mock

from certrenew import errors
from certrenew.tests import util as test_util


class RunScriptTest(unittest.TestCase):
    """Tests for certrenew.util.run_script."""

    def setUp(self):
        patcher = mock.patch("certrenew.util.subprocess.Popen")
        self.popen = patcher.start()
        self.addCleanup(patcher.stop)
        self.proc = self.popen.return_value
        self.proc.returncode = 0
        self.proc.communicate.return_value = ("installed\n", "")
        self.logged = []

    def _call(self, env=None):
        from certrenew.util import run_script
        return run_script(["/usr/local/bin/deploy", "example.com"],
                          env=env, log=self.logged.append)

    def test_output_returned(self):
        self.assertEqual(self._call(), ("installed\n", ""))
        self.assertTrue(self.popen.call_args[1]["env"] is None)
        self.assertEqual(self.logged, [])

    def test_env_extends_environment(self):
        self._call(env={"CERTRENEW_HOST": "example.com"})
        env = self.popen.call_args[1]["env"]
        self.assertEqual(env["CERTRENEW_HOST"], "example.com")
        self.assertEqual(env.get("PATH"), os.environ.get("PATH"))

    def test_not_started(self):
        self.popen.side_effect = OSError("no such file")
        self.assertRaises(errors.SubprocessError, self._call)
        self.assertTrue("/usr/local/bin/deploy example.com" in self.logged[0])

    def test_nonzero_exit(self):
        self.proc.returncode = 3
        self.proc.communicate.return_value = ("", "certificate rejected")
        self.assertRaises(errors.SubprocessError, self._call)
        self.assertTrue("status 3" in self.logged[0])
        self.assertTrue("certificate rejected" in self.logged[0])


class MakeOrVerifyDirTest(test_util.TempDirTestCase):
    """Tests for certrenew.util.make_or_verify_dir.

    A wrong owner cannot be tested without running as root.

    """

    def setUp(self):
        super(MakeOrVerifyDirTest, self).setUp()
        self.accounts = os.path.join(self.tempdir, "accounts")
        os.mkdir(self.accounts, 0o700)

    def _call(self, directory, mode, strict=True):
        from certrenew.util import make_or_verify_dir
        return make_or_verify_dir(directory, mode, os.getuid(), strict=strict)

    def _mode(self, path):
        return stat.S_IMODE(os.stat(path).st_mode)

    def test_creates_parents(self):
        path = os.path.join(self.tempdir, "pem", "example.com")
        self._call(path, 0o750)
        self.assertEqual(self._mode(path), 0o750)

    def test_existing_matches(self):
        self._call(self.accounts, 0o700)
        self.assertEqual(self._mode(self.accounts), 0o700)

    def test_existing_wrong_mode(self):
        self.assertRaises(errors.Error, self._call, self.accounts, 0o755)
        self._call(self.accounts, 0o755, strict=False)
        self.assertEqual(self._mode(self.accounts), 0o700)

    def test_other_errors_propagate(self):
        with mock.patch("certrenew.util.os.makedirs") as mock_makedirs:
            mock_makedirs.side_effect = OSError("read-only file system")
            self.assertRaises(OSError, self._call, self.accounts, 0o700)


class SetUpCoreDirTest(test_util.TempDirTestCase):
    """Tests for certrenew.util.set_up_core_dir."""

    def _call(self, *args, **kwargs):
        from certrenew.util import set_up_core_dir
        return set_up_core_dir(*args, **kwargs)

    def test_locked(self):
        from certrenew import util
        path = os.path.join(self.tempdir, "config")
        self._call(path, 0o755)
        self.assertTrue(path in util._LOCKS)  # pylint: disable=protected-access
        self.assertTrue(os.path.exists(os.path.join(path, ".certrenew.lock")))

    def test_unlocked(self):
        from certrenew import util
        path = os.path.join(self.tempdir, "logs")
        self._call(path, 0o700, lock_it=False)
        self.assertTrue(os.path.isdir(path))
        self.assertFalse(path in util._LOCKS)  # pylint: disable=protected-access

    @mock.patch("certrenew.util.make_or_verify_dir")
    def test_permission_error(self, mock_make):
        mock_make.side_effect = OSError("denied")
        self.assertRaises(errors.Error, self._call, self.tempdir, 0o755)


class AtomicWriteTest(test_util.TempDirTestCase):
    """Tests for certrenew.util.atomic_write."""

    def setUp(self):
        super(AtomicWriteTest, self).setUp()
        self.path = os.path.join(self.tempdir, "renewals.json")

    def _call(self, data, chmod=0o600):
        from certrenew.util import atomic_write
        atomic_write(self.path, data, chmod=chmod)

    def test_text_replaces_file(self):
        self._call("old")
        self._call("new", chmod=0o644)
        with open(self.path) as written:
            self.assertEqual(written.read(), "new")
        self.assertEqual(stat.S_IMODE(os.stat(self.path).st_mode), 0o644)
        self.assertEqual(os.listdir(self.tempdir), ["renewals.json"])

    def test_bytes(self):
        self._call(b"\x00\x01")
        with open(self.path, "rb") as written:
            self.assertEqual(written.read(), b"\x00\x01")

    @mock.patch("certrenew.util.os.replace")
    def test_failure_leaves_nothing_behind(self, mock_replace):
        mock_replace.side_effect = OSError("disk full")
        self.assertRaises(OSError, self._call, "data")
        self.assertEqual(os.listdir(self.tempdir), [])


class SafelyRemoveTest(test_util.TempDirTestCase):
    """Tests for certrenew.util.safely_remove."""

    def setUp(self):
        super(SafelyRemoveTest, self).setUp()
        self.path = os.path.join(self.tempdir, "foo")

    def _call(self):
        from certrenew.util import safely_remove
        return safely_remove(self.path)

    def test_exists(self):
        with open(self.path, "w"):
            pass  # just create the file
        self._call()
        self.assertFalse(os.path.exists(self.path))

    def test_missing(self):
        self._call()
        self.assertFalse(os.path.exists(self.path))

    @mock.patch("certrenew.util.os.remove")
    def test_other_error_passthrough(self, mock_remove):
        mock_remove.side_effect = OSError
        self.assertRaises(OSError, self._call)


class RemoveEmptyDirsTest(test_util.TempDirTestCase):
    """Tests for certrenew.util.remove_empty_dirs."""

    def _call(self, path):
        from certrenew.util import remove_empty_dirs
        remove_empty_dirs(path, self.tempdir)

    def test_removes_up_to_stop(self):
        path = os.path.join(self.tempdir, "a", "b", "c")
        os.makedirs(path)
        self._call(path)
        self.assertEqual(os.listdir(self.tempdir), [])
        self.assertTrue(os.path.isdir(self.tempdir))

    def test_keeps_non_empty(self):
        path = os.path.join(self.tempdir, "a", "b")
        os.makedirs(path)
        with open(os.path.join(self.tempdir, "a", "keep"), "w"):
            pass
        self._call(path)
        self.assertEqual(os.listdir(os.path.join(self.tempdir, "a")),
                         ["keep"])

    def test_outside_stop(self):
        other = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, other, True)
        self._call(other)
        self.assertTrue(os.path.isdir(other))


class EnforceDomainSanityTest(unittest.TestCase):
    """Test enforce_domain_sanity."""

    def _call(self, domain):
        from certrenew.util import enforce_domain_sanity
        return enforce_domain_sanity(domain)

    def test_normalized(self):
        self.assertEqual(self._call("WWW.Example.com."), "www.example.com")

    def test_wildcard(self):
        self.assertRaises(errors.ConfigurationError, self._call,
                          "*.example.com")

    def test_nonascii(self):
        self.assertRaises(errors.ConfigurationError, self._call,
                          u"eichhörnchen.example.com")

    def test_invalid_labels(self):
        for domain in ("..", "hello_world.example.com", "-a.example.com",
                       "a-.example.com", "com", "a" * 64 + ".com"):
            self.assertRaises(errors.ConfigurationError, self._call, domain)

    def test_too_long(self):
        domain = ".".join(["a" * 60] * 5)
        self.assertRaises(errors.ConfigurationError, self._call, domain)


class AtexitRegisterTest(unittest.TestCase):
    """Tests for certrenew.util.atexit_register."""
    def setUp(self):
        self.func = mock.MagicMock()
        self.args = ("hello",)
        self.kwargs = {"answer": 42}

    @classmethod
    def _call(cls, *args, **kwargs):
        from certrenew.util import atexit_register
        return atexit_register(*args, **kwargs)

    def test_called(self):
        self._test_common(os.getpid())
        self.func.assert_called_with(*self.args, **self.kwargs)

    def test_not_called(self):
        self._test_common(initial_pid=-1)
        self.assertFalse(self.func.called)

    def _test_common(self, initial_pid):
        with mock.patch("certrenew.util._INITIAL_PID", initial_pid):
            with mock.patch("certrenew.util.atexit") as mock_atexit:
                self._call(self.func, *self.args, **self.kwargs)

            # _INITIAL_PID must be mocked when calling atexit_func
            self.assertTrue(mock_atexit.register.called)
            args, kwargs = mock_atexit.register.call_args
            atexit_func = args[0]
            atexit_func(*args[1:], **kwargs)


if __name__ == "__main__":
    unittest.main()  # pragma: no cover
