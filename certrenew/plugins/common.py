"""Plugin common functions."""
import logging

import zope.interface

from certrenew import interfaces

logger = logging.getLogger(__name__)


ROLE_TARGET = "target"
ROLE_VALIDATION = "validation"
ROLE_STORE = "store"
ROLE_INSTALLATION = "installation"

ROLES = (ROLE_TARGET, ROLE_VALIDATION, ROLE_STORE, ROLE_INSTALLATION)


class PluginFactory(object):
    """Generic plugin factory.

    Factories are instantiated once per `.PluginsRegistry`; the objects
    they `create` are bound to a single renewal (or identifier).

    """
    name = NotImplemented
    description = NotImplemented
    role = NotImplemented
    noop = False

    def match(self, name):
        """Does ``name`` refer to this plugin (case-insensitive)?"""
        return name is not None and name.lower() == self.name.lower()

    def __repr__(self):
        return "{0}#{1}".format(self.role, self.name)


@zope.interface.implementer(interfaces.ITargetPluginFactory)
class TargetPluginFactory(PluginFactory):
    """Base for target plugin factories."""
    role = ROLE_TARGET

    def default(self, config):  # pylint: disable=missing-docstring
        raise NotImplementedError()

    def acquire(self, config, input_service):  # pylint: disable=missing-docstring
        raise NotImplementedError()

    def refresh(self, config, binding):  # pylint: disable=missing-docstring,unused-argument
        return binding

    def split(self, binding):  # pylint: disable=missing-docstring
        return [binding]


@zope.interface.implementer(interfaces.IValidationPluginFactory)
class ValidationPluginFactory(PluginFactory):
    """Base for validation plugin factories.

    Subclasses set `challenge_type` and `plugin_class`, the class
    instantiated by `create`.

    """
    role = ROLE_VALIDATION
    challenge_type = NotImplemented
    plugin_class = NotImplemented

    @property
    def qualified_name(self):
        """``<challengeType>.<name>`` under which targets refer to us."""
        return "{0}.{1}".format(self.challenge_type, self.name)

    def can_validate(self, target):  # pylint: disable=missing-docstring,unused-argument
        return True

    def default(self, target, config):  # pylint: disable=missing-docstring,unused-argument
        return target.update(validation_plugin=self.qualified_name)

    def acquire(self, target, config, input_service):  # pylint: disable=missing-docstring,unused-argument
        return self.default(target, config)

    def create(self, config, renewal, target, identifier):  # pylint: disable=missing-docstring
        return self.plugin_class(config, renewal, target, identifier)

    def __repr__(self):
        return "{0}#{1}".format(self.role, self.qualified_name)


@zope.interface.implementer(interfaces.IValidationPlugin)
class ValidationPlugin(object):
    """Validation plugin bound to one identifier of one renewal.

    :ivar config: `.IConfig`
    :ivar renewal: `.ScheduledRenewal` being processed.
    :ivar target: `.Target` being authorized.
    :ivar str identifier: DNS name being validated.

    """

    def __init__(self, config, renewal, target, identifier):
        self.config = config
        self.renewal = renewal
        self.target = target
        self.identifier = identifier

    @property
    def test(self):
        """Is the renewal running in test mode?"""
        return bool(getattr(self.renewal, "test", False) or
                    getattr(self.config, "test", False))

    def prepare_challenge(self, achall):  # pylint: disable=missing-docstring
        raise NotImplementedError()

    def cleanup(self):  # pylint: disable=missing-docstring
        pass


@zope.interface.implementer(interfaces.IStorePluginFactory)
class StorePluginFactory(PluginFactory):
    """Base for store plugin factories."""
    role = ROLE_STORE
    plugin_class = NotImplemented

    def create(self, config, renewal):  # pylint: disable=missing-docstring
        return self.plugin_class(config, renewal)


@zope.interface.implementer(interfaces.IInstallationPluginFactory)
class InstallationPluginFactory(PluginFactory):
    """Base for installation plugin factories."""
    role = ROLE_INSTALLATION
    plugin_class = NotImplemented

    def can_install(self, renewal):  # pylint: disable=missing-docstring,unused-argument
        return True

    def default(self, renewal, config):  # pylint: disable=missing-docstring,unused-argument
        return renewal

    def acquire(self, renewal, config, input_service):  # pylint: disable=missing-docstring,unused-argument
        return self.default(renewal, config)

    def create(self, config, renewal):  # pylint: disable=missing-docstring
        return self.plugin_class(config, renewal)
