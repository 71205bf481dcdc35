"""Functionality for renewing and creating scheduled renewals."""
import logging

import zope.component

from certrenew import auth_handler
from certrenew import constants
from certrenew import errors
from certrenew import interfaces
from certrenew import storage
from certrenew.plugins import common

logger = logging.getLogger(__name__)


class Renewer(object):
    """Runs scheduled renewals to completion.

    :ivar config: `.IConfig`
    :ivar store: `.RenewalStore` receiving every outcome.
    :ivar acme: `.IAcmeClient`
    :ivar plugins: `.PluginsRegistry`
    :ivar auth_handler: `.AuthHandler`

    """

    def __init__(self, config, store, acme, plugins, auth=None):
        self.config = config
        self.store = store
        self.acme = acme
        self.plugins = plugins
        self.auth_handler = (auth_handler.AuthHandler(acme, plugins, config)
                             if auth is None else auth)

    def process(self, renewal):
        """Renew and record the outcome, whatever it is.

        :param .ScheduledRenewal renewal: Renewal to process.

        :returns: outcome of the attempt
        :rtype: `.RenewResult`

        """
        logger.info("Renewing certificate for %s", renewal.binding)
        try:
            result = self.renew(renewal)
        except errors.Error as error:
            logger.debug("Renewal error:", exc_info=True)
            result = storage.RenewResult.failed(str(error))
        except Exception as error:  # pylint: disable=broad-except
            logger.error("Unexpected error renewing %s: %s",
                         renewal.binding, error)
            logger.debug("Exception was:", exc_info=True)
            result = storage.RenewResult.failed(
                "Unexpected error: {0}".format(error))
        try:
            self.store.save(renewal, result)
        except errors.RenewalStorageError as error:
            logger.error("Unable to record renewal of %s: %s",
                         renewal.binding, error)
            return result.update(
                success=False,
                error_message="Unable to record outcome: {0}".format(error))
        return result

    def renew(self, renewal):
        """Authorize, issue, store and install a certificate.

        Does not persist anything.

        :rtype: `.RenewResult`

        :raises .errors.TargetNotFoundError: if the target plugin no
            longer knows the binding

        """
        target_factory = self.plugins.find_by_name(
            common.ROLE_TARGET, renewal.binding.target_plugin)
        if target_factory is None:
            return storage.RenewResult.failed(
                "Target plugin {0} not found".format(
                    renewal.binding.target_plugin))
        binding = target_factory.refresh(self.config, renewal.binding)
        if binding is None:
            raise errors.TargetNotFoundError("Renewal target not found")
        renewal.binding = binding

        for target in target_factory.split(binding):
            try:
                authz = self.auth_handler.authorize(renewal, target)
            except errors.AuthorizationTimeout as error:
                return storage.RenewResult.failed(str(error))
            if not authz.valid:
                return storage.RenewResult.failed(
                    str(errors.FailedAuthorization(authz)),
                    errors=authz.error_details())

        store_factory = self.plugins.find_by_name(
            common.ROLE_STORE, renewal.store_plugin or self.config.store)
        if store_factory is None:
            return storage.RenewResult.failed(
                "Store plugin {0} not found".format(renewal.store_plugin))
        installers = self._installers(renewal)

        store = store_factory.create(self.config, renewal)
        old_cert = store.find(binding)

        new_cert = self.acme.request_certificate(binding)
        if new_cert is None:
            return storage.RenewResult.failed("No certificate received")
        logger.info("Received certificate %s", new_cert.thumbprint)

        try:
            store.save(new_cert)
        except errors.PluginError as error:
            return storage.RenewResult.failed(
                "Store failed: {0}".format(error))

        for factory in installers:
            try:
                factory.create(self.config, renewal).install(
                    new_cert, old_cert)
            except errors.Error as error:
                logger.error("Installation with %s failed: %s",
                             factory.name, error)
                logger.debug("Error was:", exc_info=True)
                return storage.RenewResult(
                    success=False, date=storage.now(),
                    thumbprint=new_cert.thumbprint,
                    error_message="Install failed: {0}".format(error))

        message = None
        if (not renewal.keep_existing and old_cert is not None and
                old_cert.thumbprint != new_cert.thumbprint):
            try:
                store.delete(old_cert)
            except errors.PluginError as error:
                logger.warning("Unable to delete previous certificate %s: %s",
                               old_cert.thumbprint, error)
                message = "Delete failed: {0}".format(error)

        return storage.RenewResult.succeeded(new_cert.thumbprint, message)

    def _installers(self, renewal):
        names = renewal.installation_plugins or [constants.NULL_INSTALLATION]
        factories = []
        for name in names:
            factory = self.plugins.find_by_name(common.ROLE_INSTALLATION, name)
            if factory is None:
                raise errors.ConfigurationError(
                    "Installation plugin {0} not found".format(name))
            factories.append(factory)
        return factories


def create_renewal(config, plugins, store):
    """Build the renewal described by the command line.

    An existing renewal for the same host is updated in place, keeping
    its history and due date.

    :param config: `.IConfig`
    :param plugins: `.PluginsRegistry`
    :param store: `.RenewalStore`

    :raises .errors.ConfigurationError: if a plugin is unknown or
        cannot be configured from the command line

    :rtype: `.ScheduledRenewal`

    """
    target_factory = plugins.find_by_name(common.ROLE_TARGET, config.target)
    if target_factory is None:
        raise errors.ConfigurationError(
            "Target plugin {0} not found".format(config.target))
    binding = target_factory.default(config)
    if binding is None:
        raise errors.ConfigurationError("No target could be determined")

    qualified = "{0}.{1}".format(config.validation_mode, config.validation)
    validation_factory = plugins.find_validation(qualified)
    if validation_factory is None:
        raise errors.ConfigurationError(
            "Validation plugin {0} not found".format(qualified))
    binding = validation_factory.default(binding, config)

    if plugins.find_by_name(common.ROLE_STORE, config.store) is None:
        raise errors.ConfigurationError(
            "Store plugin {0} not found".format(config.store))

    existing = store.find(binding)
    if existing is not None:
        logger.warning("Renewal for %s already exists, updating it",
                       binding.host)
        renewal = existing
        renewal.binding = binding
    else:
        renewal = storage.ScheduledRenewal(binding, new=True)
    renewal.test = bool(config.test)
    renewal.keep_existing = bool(config.keep_existing)
    renewal.store_plugin = config.store
    renewal.installation_plugins = list(
        config.installation or [constants.NULL_INSTALLATION])

    for name in renewal.installation_plugins:
        factory = plugins.find_by_name(common.ROLE_INSTALLATION, name)
        if factory is None:
            raise errors.ConfigurationError(
                "Installation plugin {0} not found".format(name))
        factory.default(renewal, config)
    return renewal


def report(msgs, category):
    "Format a results report for a category of renewal outcomes"
    lines = ("%s (%s)" % (m, category) for m in msgs)
    return "  " + "\n  ".join(lines)


def _renew_describe_results(config, renew_successes, renew_failures,
                            renew_skipped):

    out = []
    notify = out.append

    notify("")
    if renew_skipped:
        notify("The following renewals are not due yet:")
        notify(report(renew_skipped, "skipped"))
    if not renew_successes and not renew_failures:
        notify("No renewals were attempted.")
    elif renew_successes and not renew_failures:
        notify("Congratulations, all renewals succeeded. The following "
               "certs have been renewed:")
        notify(report(renew_successes, "success"))
    elif renew_failures and not renew_successes:
        notify("All renewal attempts failed. The following certs could not "
               "be renewed:")
        notify(report(renew_failures, "failure"))
    elif renew_failures and renew_successes:
        notify("The following certs were successfully renewed:")
        notify(report(renew_successes, "success"))
        notify("\nThe following certs could not be renewed:")
        notify(report(renew_failures, "failure"))

    if config.quiet and not renew_failures:
        return
    print("\n".join(out))


def handle_renewal_request(config, renewer):
    """Process every due renewal (all of them with --force-renewal).

    One failing renewal does not stop the others.

    :returns: failure messages, empty when everything succeeded
    :rtype: `list` of `str`

    """
    renew_successes = []
    renew_failures = []
    renew_skipped = []

    now_time = storage.now()
    for renewal in list(renewer.store.renewals):
        if not storage.should_renew(now_time, renewal.due_date,
                                    config.force_renewal):
            renew_skipped.append(str(renewal))
            continue
        result = renewer.process(renewal)
        _report(renewal, result)
        if result.success:
            renew_successes.append(str(renewal.binding))
        else:
            renew_failures.append("{0}: {1}".format(
                renewal.binding, result.error_message))

    _renew_describe_results(config, renew_successes, renew_failures,
                            renew_skipped)

    if renew_failures:
        logger.debug("%d renew failure(s), %d skipped", len(renew_failures),
                     len(renew_skipped))
    else:
        logger.debug("no renewal failures")
    return renew_failures


def _report(renewal, result):
    reporter = zope.component.queryUtility(interfaces.IReporter)
    if reporter is not None:
        reporter.report_renewal(renewal, result)
