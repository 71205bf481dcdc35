"""Utilities for plugins discovery and selection."""
import collections.abc
import logging

import zope.interface.exceptions
import zope.interface.verify

from certrenew import interfaces
from certrenew.plugins import common
from certrenew.plugins import dns
from certrenew.plugins import ftp
from certrenew.plugins import http
from certrenew.plugins import installation
from certrenew.plugins import manual
from certrenew.plugins import selfhosting
from certrenew.plugins import store
from certrenew.plugins import tls
from certrenew.plugins import webdav

logger = logging.getLogger(__name__)


PLUGINS = collections.OrderedDict((
    (common.ROLE_TARGET, (
        manual.ManualFactory,
    )),
    (common.ROLE_VALIDATION, (
        http.FileSystemFactory,
        ftp.FtpFactory,
        webdav.WebDavFactory,
        selfhosting.SelfHostingFactory,
        tls.PemDirectoryFactory,
        dns.ScriptFactory,
    )),
    (common.ROLE_STORE, (
        store.PemFilesFactory,
        store.CentralSslFactory,
    )),
    (common.ROLE_INSTALLATION, (
        installation.NullInstallationFactory,
        installation.ScriptFactory,
    )),
))
"""Registration table: role to factory classes, in preference order."""

ROLE_INTERFACES = {
    common.ROLE_TARGET: interfaces.ITargetPluginFactory,
    common.ROLE_VALIDATION: interfaces.IValidationPluginFactory,
    common.ROLE_STORE: interfaces.IStorePluginFactory,
    common.ROLE_INSTALLATION: interfaces.IInstallationPluginFactory,
}


class PluginsRegistry(collections.abc.Mapping):
    """Plugins registry.

    Maps each role to the tuple of factory instances registered for it.
    Every factory is instantiated once and checked against the
    interface of its role; factories that do not conform are skipped.

    :param table: Registration table, defaults to `PLUGINS`.

    """

    def __init__(self, table=None):
        self._factories = collections.OrderedDict()
        for role, classes in (PLUGINS if table is None else table).items():
            iface = ROLE_INTERFACES[role]
            factories = []
            for cls in classes:
                factory = cls()
                try:
                    zope.interface.verify.verifyObject(iface, factory)
                except zope.interface.exceptions.Invalid as error:
                    logger.warning("%r does not provide %s, skipping",
                                   factory, iface.__name__)
                    logger.debug("Error was: %s", error)
                    continue
                if factory.role != role:
                    logger.warning("%r registered as %s plugin, skipping",
                                   factory, role)
                    continue
                factories.append(factory)
            self._factories[role] = tuple(factories)

    def __getitem__(self, role):
        return self._factories[role]

    def __iter__(self):
        return iter(self._factories)

    def __len__(self):
        return len(self._factories)

    def list_factories(self, role):
        """Factories of ``role`` offered to the user.

        The no-op implementation is only listed for installation.

        :rtype: `list`

        """
        return [factory for factory in self.get(role, ())
                if not factory.noop or role == common.ROLE_INSTALLATION]

    def find_by_name(self, role, name):
        """Find the factory of ``role`` declared as ``name``.

        :returns: factory or ``None``

        """
        if not name:
            return None
        for factory in self.get(role, ()):
            if factory.match(name):
                return factory
        return None

    def find_validation(self, qualified):
        """Find a validation factory by ``<challengeType>.<name>``.

        :returns: factory or ``None``

        """
        if not qualified or "." not in qualified:
            return None
        challenge_type, name = qualified.split(".", 1)
        for factory in self.get(common.ROLE_VALIDATION, ()):
            if (factory.challenge_type.lower() == challenge_type.lower() and
                    factory.match(name)):
                return factory
        return None

    def __repr__(self):
        return "{0}({1})".format(self.__class__.__name__, ", ".join(
            "{0}={1}".format(role, [f.name for f in factories])
            for role, factories in self._factories.items()))
