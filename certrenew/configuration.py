"""certrenew user-supplied configuration."""
import copy
import logging
import os
from urllib import parse

import configobj
import parsedatetime
import zope.interface

from certrenew import constants
from certrenew import errors
from certrenew import interfaces
from certrenew import util

logger = logging.getLogger(__name__)


@zope.interface.implementer(interfaces.IConfig)
class NamespaceConfig(object):
    """Configuration wrapper around :class:`argparse.Namespace`.

    For more documentation, including available attributes, please see
    :class:`certrenew.interfaces.IConfig`. The following attributes are
    resolved from :attr:`~certrenew.interfaces.IConfig.config_dir` and
    the names defined in :py:mod:`certrenew.constants`:

      - `accounts_dir`
      - `renewals_path`
      - `settings_path`
      - `default_certificates_dir`

    Engine settings from ``settings.conf`` are available as `settings`.

    :ivar namespace: Namespace typically produced by
        :meth:`argparse.ArgumentParser.parse_args`.
    :type namespace: :class:`argparse.Namespace`

    """

    def __init__(self, namespace):
        object.__setattr__(self, 'namespace', namespace)
        object.__setattr__(self, '_settings', None)

        self.namespace.config_dir = os.path.abspath(self.namespace.config_dir)
        self.namespace.logs_dir = os.path.abspath(self.namespace.logs_dir)

        check_config_sanity(self)

    def __getattr__(self, name):
        return getattr(self.namespace, name)

    def __setattr__(self, name, value):
        setattr(self.namespace, name, value)

    @property
    def server_path(self):
        """File path based on ``server``."""
        parsed = parse.urlparse(self.namespace.server)
        return (parsed.netloc + parsed.path).replace('/', os.path.sep)

    @property
    def accounts_dir(self):  # pylint: disable=missing-docstring
        return os.path.join(
            self.namespace.config_dir, constants.ACCOUNTS_DIR, self.server_path)

    @property
    def renewals_path(self):  # pylint: disable=missing-docstring
        return os.path.join(
            self.namespace.config_dir, constants.RENEWALS_FILENAME)

    @property
    def settings_path(self):  # pylint: disable=missing-docstring
        return os.path.join(
            self.namespace.config_dir, constants.SETTINGS_FILENAME)

    @property
    def default_certificates_dir(self):  # pylint: disable=missing-docstring
        return os.path.join(
            self.namespace.config_dir, constants.CERTIFICATES_DIR)

    @property
    def settings(self):
        """Engine settings, loaded from ``settings.conf`` on first use.

        :rtype: Settings

        """
        if self._settings is None:
            object.__setattr__(
                self, '_settings', Settings.load(self.settings_path))
        return self._settings

    def __deepcopy__(self, _memo):
        new_ns = copy.deepcopy(self.namespace)
        return type(self)(new_ns)


class Settings(object):
    """Store and engine settings read from ``settings.conf``.

    :ivar str renewal_interval: Interval between successful renewals,
        in the format understood by `.storage.add_time_interval`.
    :ivar float poll_interval: Seconds between authorization refreshes.
    :ivar int max_poll_attempts: Refreshes before giving up on a
        pending authorization.

    """

    def __init__(self, renewal_interval=None, poll_interval=None,
                 max_poll_attempts=None):
        defaults = constants.SETTINGS_DEFAULTS
        self.renewal_interval = (defaults["renewal_interval"]
                                 if renewal_interval is None
                                 else renewal_interval)
        self.poll_interval = (float(defaults["poll_interval"])
                              if poll_interval is None else poll_interval)
        self.max_poll_attempts = (int(defaults["max_poll_attempts"])
                                  if max_poll_attempts is None
                                  else max_poll_attempts)

    @classmethod
    def load(cls, path):
        """Read settings from ``path``, merged over the defaults.

        A missing file gives the defaults. Unusable values are logged and
        replaced by their default.

        :param str path: Path to ``settings.conf``.

        :rtype: Settings

        """
        values = configobj.ConfigObj(constants.SETTINGS_DEFAULTS)
        if os.path.isfile(path):
            try:
                values.merge(configobj.ConfigObj(path))
            except configobj.ConfigObjError:
                logger.warning("Unable to parse %s, using default settings",
                               path)
                logger.debug("Exception was:", exc_info=True)
        return cls(
            renewal_interval=_interval_setting(values, "renewal_interval"),
            poll_interval=_number_setting(values, "poll_interval", float),
            max_poll_attempts=_number_setting(values, "max_poll_attempts", int))


def _interval_setting(values, key):
    interval = str(values[key]).strip()
    if interval.isdigit():
        return interval
    _, status = parsedatetime.Calendar().parse(interval)
    if not status:
        logger.warning("Invalid %s %r in %s, using %s", key, interval,
                       constants.SETTINGS_FILENAME,
                       constants.SETTINGS_DEFAULTS[key])
        return constants.SETTINGS_DEFAULTS[key]
    return interval


def _number_setting(values, key, kind):
    try:
        value = kind(values[key])
        if value <= 0:
            raise ValueError(value)
        return value
    except (TypeError, ValueError):
        logger.warning("Invalid %s %r in %s, using %s", key, values[key],
                       constants.SETTINGS_FILENAME,
                       constants.SETTINGS_DEFAULTS[key])
        return kind(constants.SETTINGS_DEFAULTS[key])


def check_config_sanity(config):
    """Validate command line options and display error message if
    requirements are not met.

    :param config: IConfig instance holding user configuration
    :type config: :class:`certrenew.interfaces.IConfig`

    :raises .errors.ConfigurationError: on unusable options

    """
    if config.namespace.staging:
        if (config.namespace.server not in
                (constants.CLI_DEFAULTS["server"], constants.STAGING_URI)):
            raise errors.ConfigurationError(
                "--server value conflicts with --staging")
        config.namespace.server = constants.STAGING_URI

    if not 0 < config.namespace.http01_port < 65536:
        raise errors.ConfigurationError(
            "Invalid --http01-port {0}".format(config.namespace.http01_port))

    if config.namespace.host:
        config.namespace.host = [
            util.enforce_domain_sanity(host) for host in config.namespace.host]
