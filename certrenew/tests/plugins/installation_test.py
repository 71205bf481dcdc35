"""Tests for certrenew.plugins.installation."""
import unittest

import mock

from certrenew import errors
from certrenew import storage
from certrenew import target as target_mod
from certrenew.tests import util as test_util


class NullInstallationTest(test_util.ConfigTestCase):
    """Tests for certrenew.plugins.installation.NullInstallation."""

    def test_install(self):
        from certrenew.plugins.installation import NullInstallationFactory
        factory = NullInstallationFactory()
        self.assertTrue(factory.noop)
        renewal = storage.ScheduledRenewal(
            target_mod.Target(host="example.com"))
        self.assertTrue(factory.can_install(renewal))
        self.assertTrue(factory.default(renewal, self.config) is renewal)
        factory.create(self.config, renewal).install(mock.MagicMock(), None)


class ScriptTest(test_util.ConfigTestCase):
    """Tests for certrenew.plugins.installation.Script."""

    def setUp(self):
        super(ScriptTest, self).setUp()
        from certrenew.plugins.installation import Script
        self.renewal = storage.ScheduledRenewal(
            target_mod.Target(host="example.com"),
            script="/usr/local/bin/install-cert",
            script_parameters="--host {host} '{cert_path}' {thumbprint} {old_thumbprint}")
        self.plugin = Script(self.config, self.renewal)
        self.new = mock.MagicMock(thumbprint="NEW", path="/srv/my certs/NEW")
        self.old = mock.MagicMock(thumbprint="OLD")
        self.mock_run = mock.patch(
            "certrenew.plugins.installation.util.run_script",
            return_value=("installed", "")).start()
        self.addCleanup(mock.patch.stopall)

    def test_arguments(self):
        self.assertEqual(self.plugin.arguments(self.new, self.old), [
            "/usr/local/bin/install-cert", "--host", "example.com",
            "/srv/my certs/NEW", "NEW", "OLD"])

    def test_arguments_without_old(self):
        self.new.path = None
        self.assertEqual(self.plugin.arguments(self.new, None), [
            "/usr/local/bin/install-cert", "--host", "example.com",
            "", "NEW", ""])

    def test_arguments_without_parameters(self):
        self.renewal.script_parameters = None
        self.assertEqual(self.plugin.arguments(self.new, self.old),
                         ["/usr/local/bin/install-cert"])

    def test_unknown_placeholder(self):
        self.renewal.script_parameters = "{password}"
        self.assertRaises(errors.PluginError, self.plugin.arguments,
                          self.new, self.old)
        self.renewal.script_parameters = "{0}"
        self.assertRaises(errors.PluginError, self.plugin.arguments,
                          self.new, self.old)

    def test_unbalanced_quotes(self):
        self.renewal.script_parameters = "'{host}"
        self.assertRaises(errors.PluginError, self.plugin.arguments,
                          self.new, self.old)

    def test_install(self):
        self.plugin.install(self.new, self.old)
        self.mock_run.assert_called_once_with(
            self.plugin.arguments(self.new, self.old))

    def test_install_failure(self):
        self.mock_run.side_effect = errors.SubprocessError("exit status 2")
        self.assertRaises(errors.PluginError, self.plugin.install,
                          self.new, self.old)

    def test_install_without_script(self):
        self.renewal.script = None
        self.assertRaises(errors.PluginError, self.plugin.install,
                          self.new, self.old)
        self.assertFalse(self.mock_run.called)


class ScriptFactoryTest(test_util.ConfigTestCase):
    """Tests for certrenew.plugins.installation.ScriptFactory."""

    def setUp(self):
        super(ScriptFactoryTest, self).setUp()
        from certrenew.plugins.installation import ScriptFactory
        self.factory = ScriptFactory()
        self.renewal = storage.ScheduledRenewal(
            target_mod.Target(host="example.com"))

    def test_can_install(self):
        self.assertFalse(self.factory.can_install(self.renewal))
        self.renewal.script = "/bin/true"
        self.assertTrue(self.factory.can_install(self.renewal))

    def test_default(self):
        self.config.script = "/usr/local/bin/install-cert"
        self.config.script_parameters = "{host}"
        self.factory.default(self.renewal, self.config)
        self.assertEqual(self.renewal.script, "/usr/local/bin/install-cert")
        self.assertEqual(self.renewal.script_parameters, "{host}")

    def test_default_keeps_script(self):
        self.renewal.script = "/bin/true"
        self.config.script = "/bin/false"
        self.factory.default(self.renewal, self.config)
        self.assertEqual(self.renewal.script, "/bin/true")

    def test_default_without_script(self):
        self.assertRaises(errors.MisconfigurationError, self.factory.default,
                          self.renewal, self.config)

    def test_acquire(self):
        input_service = mock.MagicMock()
        input_service.request_string.side_effect = [
            "/usr/local/bin/install-cert", "{host} {thumbprint}"]
        self.factory.acquire(self.renewal, self.config, input_service)
        self.assertEqual(self.renewal.script, "/usr/local/bin/install-cert")
        self.assertEqual(self.renewal.script_parameters, "{host} {thumbprint}")


if __name__ == "__main__":
    unittest.main()  # pragma: no cover
