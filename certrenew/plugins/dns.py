"""dns-01 validation through user supplied scripts."""
import logging

import zope.interface

from certrenew import constants
from certrenew import errors
from certrenew import interfaces
from certrenew import target as target_mod
from certrenew import util
from certrenew.plugins import common

logger = logging.getLogger(__name__)


@zope.interface.implementer(interfaces.IValidationPlugin)
class Script(common.ValidationPlugin):
    """Creates and deletes the TXT record by running scripts.

    Both scripts receive the ``CERTRENEW_DOMAIN``,
    ``CERTRENEW_RECORD_NAME`` and ``CERTRENEW_VALIDATION`` environment
    variables.

    """

    def __init__(self, *args, **kwargs):
        super(Script, self).__init__(*args, **kwargs)
        self._env = None

    @property
    def options(self):  # pylint: disable=missing-docstring
        return self.target.dns_script_options

    def prepare_challenge(self, achall):
        self._env = {
            "CERTRENEW_DOMAIN": achall.identifier,
            "CERTRENEW_RECORD_NAME": achall.dns01_record_name,
            "CERTRENEW_VALIDATION": achall.validation,
        }
        logger.info("Creating TXT record %s", achall.dns01_record_name)
        self._run(self.options.create_script)

    def cleanup(self):
        if self._env is None:
            return
        try:
            if self.options.delete_script:
                logger.info("Deleting TXT record %s",
                            self._env["CERTRENEW_RECORD_NAME"])
                self._run(self.options.delete_script)
        finally:
            self._env = None

    def _run(self, script):
        try:
            util.run_script([script], env=self._env)
        except errors.SubprocessError as error:
            raise errors.PluginError(str(error))


@zope.interface.implementer(interfaces.IValidationPluginFactory)
class ScriptFactory(common.ValidationPluginFactory):
    """Script dns-01 validation plugin."""
    name = "Script"
    description = "Run external scripts to create and delete the TXT record"
    challenge_type = constants.DNS01
    plugin_class = Script

    def can_validate(self, target):
        options = target.dns_script_options
        return bool(options and options.create_script)

    def default(self, target, config):
        options = target.dns_script_options
        if options is None and config.dns_create_script:
            options = target_mod.DnsScriptOptions(
                create_script=config.dns_create_script,
                delete_script=config.dns_delete_script)
        if options is None or not options.create_script:
            raise errors.MisconfigurationError(
                "Script validation requires --dns-create-script")
        return target.update(validation_plugin=self.qualified_name,
                             dns_script_options=options)

    def acquire(self, target, config, input_service):
        if target.dns_script_options is None and not config.dns_create_script:
            target = target.update(
                dns_script_options=target_mod.DnsScriptOptions(
                    create_script=input_service.request_string(
                        "Path to script that creates the TXT record"),
                    delete_script=input_service.request_string(
                        "Path to script that deletes the TXT record") or None))
        return self.default(target, config)
