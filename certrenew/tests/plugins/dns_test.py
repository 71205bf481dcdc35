"""Tests for certrenew.plugins.dns."""
import unittest

import mock

from certrenew import achallenges
from certrenew import constants
from certrenew import errors
from certrenew import target as target_mod
from certrenew.tests import util as test_util


class ScriptTest(test_util.ConfigTestCase):
    """Tests for certrenew.plugins.dns.Script."""

    def setUp(self):
        super(ScriptTest, self).setUp()
        self.options = target_mod.DnsScriptOptions(
            create_script="/usr/local/bin/create-txt",
            delete_script="/usr/local/bin/delete-txt")
        self.achall = achallenges.AnnotatedChallenge(
            typ=constants.DNS01, identifier="example.com", token="token",
            key_authorization="token.thumbprint", validation="digest")
        self.mock_run = mock.patch(
            "certrenew.plugins.dns.util.run_script",
            return_value=("", "")).start()
        self.addCleanup(mock.patch.stopall)

    def _plugin(self, options):
        from certrenew.plugins.dns import Script
        return Script(self.config, mock.MagicMock(test=False),
                      target_mod.Target(host="example.com",
                                        dns_script_options=options),
                      "example.com")

    def test_prepare_and_cleanup(self):
        plugin = self._plugin(self.options)
        plugin.prepare_challenge(self.achall)
        env = {
            "CERTRENEW_DOMAIN": "example.com",
            "CERTRENEW_RECORD_NAME": "_acme-challenge.example.com",
            "CERTRENEW_VALIDATION": "digest",
        }
        self.mock_run.assert_called_once_with(
            ["/usr/local/bin/create-txt"], env=env)

        plugin.cleanup()
        self.assertEqual(self.mock_run.call_args,
                         mock.call(["/usr/local/bin/delete-txt"], env=env))

        plugin.cleanup()
        self.assertEqual(self.mock_run.call_count, 2)

    def test_without_delete_script(self):
        plugin = self._plugin(self.options.update(delete_script=None))
        plugin.prepare_challenge(self.achall)
        plugin.cleanup()
        self.assertEqual(self.mock_run.call_count, 1)

    def test_script_failure(self):
        self.mock_run.side_effect = errors.SubprocessError("exit status 1")
        plugin = self._plugin(self.options)
        self.assertRaises(errors.PluginError, plugin.prepare_challenge,
                          self.achall)
        self.assertRaises(errors.PluginError, plugin.cleanup)
        # the environment is dropped even though deletion failed
        plugin.cleanup()
        self.assertEqual(self.mock_run.call_count, 2)


class ScriptFactoryTest(test_util.ConfigTestCase):
    """Tests for certrenew.plugins.dns.ScriptFactory."""

    def setUp(self):
        super(ScriptFactoryTest, self).setUp()
        from certrenew.plugins.dns import ScriptFactory
        self.factory = ScriptFactory()
        self.target = target_mod.Target(host="example.com")

    def test_can_validate(self):
        self.assertFalse(self.factory.can_validate(self.target))
        self.assertTrue(self.factory.can_validate(self.target.update(
            dns_script_options=target_mod.DnsScriptOptions(
                create_script="create"))))

    def test_default(self):
        self.config.dns_create_script = "create"
        self.config.dns_delete_script = "delete"
        target = self.factory.default(self.target, self.config)
        self.assertEqual(target.validation_plugin, "dns-01.Script")
        self.assertEqual(target.dns_script_options.create_script, "create")
        self.assertEqual(target.dns_script_options.delete_script, "delete")

    def test_default_without_script(self):
        self.assertRaises(errors.MisconfigurationError,
                          self.factory.default, self.target, self.config)

    def test_acquire(self):
        input_service = mock.MagicMock()
        input_service.request_string.side_effect = ["create", ""]
        target = self.factory.acquire(self.target, self.config, input_service)
        self.assertEqual(target.dns_script_options.create_script, "create")
        self.assertTrue(target.dns_script_options.delete_script is None)


if __name__ == "__main__":
    unittest.main()  # pragma: no cover
