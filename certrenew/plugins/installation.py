"""Certificate installation plugins."""
import logging
import shlex

import zope.interface

from certrenew import constants
from certrenew import errors
from certrenew import interfaces
from certrenew import util
from certrenew.plugins import common

logger = logging.getLogger(__name__)


@zope.interface.implementer(interfaces.IInstallationPlugin)
class NullInstallation(object):
    """Leaves the certificate where the store put it."""

    def __init__(self, config, renewal):
        self.config = config
        self.renewal = renewal

    def install(self, new_certificate, old_certificate):  # pylint: disable=missing-docstring,unused-argument
        logger.debug("No installation steps for %s", self.renewal.binding.host)


@zope.interface.implementer(interfaces.IInstallationPluginFactory)
class NullInstallationFactory(common.InstallationPluginFactory):
    """Do-nothing installation plugin."""
    name = constants.NULL_INSTALLATION
    description = "Do not run any installation steps"
    noop = True
    plugin_class = NullInstallation


@zope.interface.implementer(interfaces.IInstallationPlugin)
class Script(object):
    """Runs a user script after a certificate was issued and stored.

    The parameters are a shell-style string in which ``{host}``,
    ``{thumbprint}``, ``{old_thumbprint}`` and ``{cert_path}`` are
    replaced before the script runs.

    """

    def __init__(self, config, renewal):
        self.config = config
        self.renewal = renewal

    def arguments(self, new_certificate, old_certificate):
        """Command line for the script.

        :raises .errors.PluginError: on an unknown placeholder

        """
        values = {
            "host": self.renewal.binding.host,
            "thumbprint": new_certificate.thumbprint,
            "old_thumbprint": (old_certificate.thumbprint
                               if old_certificate is not None else ""),
            "cert_path": new_certificate.path or "",
        }
        try:
            params = [param.format(**values) for param in
                      shlex.split(self.renewal.script_parameters or "")]
        except (KeyError, IndexError, ValueError) as error:
            raise errors.PluginError(
                "Invalid script parameters {0!r}: {1}".format(
                    self.renewal.script_parameters, error))
        return [self.renewal.script] + params

    def install(self, new_certificate, old_certificate):  # pylint: disable=missing-docstring
        if not self.renewal.script:
            raise errors.PluginError("No installation script configured")
        command = self.arguments(new_certificate, old_certificate)
        logger.info("Running installation script %s", command[0])
        try:
            stdout, _ = util.run_script(command)
        except errors.SubprocessError as error:
            raise errors.PluginError(str(error))
        if stdout:
            logger.debug("Script output:\n%s", stdout)


@zope.interface.implementer(interfaces.IInstallationPluginFactory)
class ScriptFactory(common.InstallationPluginFactory):
    """Script installation plugin."""
    name = "Script"
    description = "Run an external script"
    plugin_class = Script

    def can_install(self, renewal):
        return bool(renewal.script)

    def default(self, renewal, config):
        if not renewal.script:
            if not config.script:
                raise errors.MisconfigurationError(
                    "Script installation requires --script")
            renewal.script = config.script
            renewal.script_parameters = config.script_parameters
        return renewal

    def acquire(self, renewal, config, input_service):
        if not renewal.script and not config.script:
            renewal.script = input_service.request_string(
                "Full path to the script to run after renewal")
            renewal.script_parameters = input_service.request_string(
                "Parameters for the script, e.g. {host} {thumbprint}")
        return self.default(renewal, config)
