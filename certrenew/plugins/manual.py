"""Manual target plugin: host names given on the command line."""
import logging

import zope.interface

from certrenew import constants
from certrenew import errors
from certrenew import interfaces
from certrenew import target as target_mod
from certrenew import util
from certrenew.plugins import common

logger = logging.getLogger(__name__)


@zope.interface.implementer(interfaces.ITargetPluginFactory)
class ManualFactory(common.TargetPluginFactory):
    """Manual target plugin."""

    name = "Manual"
    description = "Manually input host names"

    def default(self, config):
        """Build a binding from ``--host``.

        :returns: `.Target` or ``None`` if no host was given

        """
        binding = target_mod.from_config(config)
        if binding is None:
            logger.error("No host names given, use --host")
            return None
        return binding.update(target_plugin=self.name)

    def acquire(self, config, input_service):
        """Ask for a comma separated host list.

        :param input_service: object with ``request_string(prompt)``

        """
        answer = input_service.request_string(
            "Enter comma-separated list of host names, "
            "starting with the primary one")
        try:
            hosts = parse_host_list(answer)
        except errors.ConfigurationError as error:
            logger.error("%s", error)
            return None
        if not hosts:
            return None
        config.host = hosts
        return self.default(config)

    def refresh(self, config, binding):
        """Manual bindings never change."""
        return binding

    def split(self, binding):
        """Split into groups of at most `constants.SAN_GROUP_SIZE` names."""
        hosts = binding.hosts()
        size = constants.SAN_GROUP_SIZE
        if len(hosts) <= size:
            return [binding]
        return [binding.update(host=hosts[start],
                               alternative_names=tuple(hosts[start:start + size]),
                               host_is_dns=True)
                for start in range(0, len(hosts), size)]


def parse_host_list(value):
    """Parse a comma separated list of host names.

    :raises .errors.ConfigurationError: for an invalid name

    :rtype: `list` of `str`

    """
    hosts = []
    for name in (value or "").split(","):
        name = name.strip()
        if name:
            name = util.enforce_domain_sanity(name)
            if name not in hosts:
                hosts.append(name)
    return hosts
