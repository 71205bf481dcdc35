"""ACME AuthHandler."""
import logging
import time

import zope.component

from certrenew import achallenges
from certrenew import error_handler
from certrenew import errors
from certrenew import interfaces

logger = logging.getLogger(__name__)


class AuthHandler(object):
    """Drives the authorization of identifiers to a terminal state.

    :ivar acme: ACME client API.
    :type acme: :class:`certrenew.interfaces.IAcmeClient`

    :ivar plugins: Registry used to resolve validation plugins.
    :type plugins: :class:`certrenew.plugins.disco.PluginsRegistry`

    :ivar config: Configuration object.
    :type config: :class:`certrenew.interfaces.IConfig`

    :ivar float poll_interval: Seconds to wait before each refresh.
    :ivar int max_poll_attempts: Refreshes before giving up.

    """
    def __init__(self, acme, plugins, config, poll_interval=None,
                 max_poll_attempts=None):
        self.acme = acme
        self.plugins = plugins
        self.config = config
        settings = config.settings
        self.poll_interval = (settings.poll_interval if poll_interval is None
                              else poll_interval)
        self.max_poll_attempts = (settings.max_poll_attempts
                                  if max_poll_attempts is None
                                  else max_poll_attempts)

    def authorize(self, renewal, target):
        """Authorize every identifier of ``target``, in order.

        Stops at the first identifier that is not valid.

        :param .ScheduledRenewal renewal: Renewal being processed.
        :param .Target target: One authorization target of the renewal.

        :returns: the first non-valid state, or the last valid one
        :rtype: `.AuthorizationState`

        :raises .errors.AuthorizationTimeout: if an authorization stays
            pending

        """
        authz = None
        for identifier in target.hosts():
            authz = self.authorize_identifier(renewal, target, identifier)
            if not authz.valid:
                _report_failed_authorization(authz)
                return authz
        if authz is None:
            return achallenges.AuthorizationState.failed(
                target.host, "No identifiers to authorize")
        return authz

    def authorize_identifier(self, renewal, target, identifier):
        """Authorize a single identifier.

        A cached valid authorization is used as is unless the renewal
        runs in test mode.

        :rtype: `.AuthorizationState`

        """
        logger.info("Authorizing %s", identifier)
        authz = self.acme.authorize_identifier(identifier)
        test = renewal.test or self.config.test
        if authz.valid and not test:
            logger.info("Cached authorization result: %s", authz.status)
            return authz

        factory = self.plugins.find_validation(target.validation_plugin)
        if factory is None:
            return achallenges.AuthorizationState.failed(
                identifier, "Validation plugin {0} not found".format(
                    target.validation_plugin))
        if not factory.can_validate(target):
            return achallenges.AuthorizationState.failed(
                identifier,
                "Validation plugin {0} is not able to validate {1}".format(
                    factory.qualified_name, identifier))

        plugin = factory.create(self.config, renewal, target, identifier)
        challenge_type = factory.challenge_type
        # Starting now, the plugin cleans up at the end no matter what.
        with error_handler.ExitHandler(plugin.cleanup):
            achall = self.acme.decode_challenge(authz, challenge_type)
            logger.info("Authorizing %s using %s validation (%s)",
                        identifier, challenge_type, factory.name)
            try:
                plugin.prepare_challenge(achall)
            except errors.PluginError as error:
                logger.error("Failed to prepare %s challenge for %s: %s",
                             challenge_type, identifier, error)
                logger.debug("Error was:", exc_info=True)
                return achallenges.AuthorizationState.failed(
                    identifier, str(error))

            logger.debug("Submitting answer for %s", identifier)
            self.acme.submit_challenge_answer(authz, challenge_type, True)
            authz = self._poll(authz)

        if authz.valid:
            logger.info("Authorization result: %s", authz.status)
        else:
            logger.error("Authorization result: %s", authz.status)
        return authz

    def _poll(self, authz):
        """Refresh ``authz`` until it leaves the pending state.

        :raises .errors.AuthorizationTimeout: after `max_poll_attempts`

        """
        attempts = 0
        while authz.pending:
            if attempts >= self.max_poll_attempts:
                raise errors.AuthorizationTimeout(authz.identifier, attempts)
            logger.info("Refreshing authorization of %s", authz.identifier)
            time.sleep(self.poll_interval)
            attempts += 1
            refreshed = self.acme.refresh_authorization(authz)
            if not refreshed.pending:
                authz = refreshed
        return authz


def _report_failed_authorization(authz):
    """Notify the user of a failed authorization."""
    message = str(errors.FailedAuthorization(authz))
    logger.error(message)
    reporter = zope.component.queryUtility(interfaces.IReporter)
    if reporter is not None:
        reporter.add_message(message, reporter.MEDIUM_PRIORITY)
