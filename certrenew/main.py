"""Certrenew main entry point."""
import logging
import sys

import pyrfc3339
import zope.component

from certrenew import cli
from certrenew import client
from certrenew import configuration
from certrenew import errors
from certrenew import interfaces
from certrenew import log
from certrenew import renewal
from certrenew import reporter
from certrenew import storage
from certrenew import target as target_mod
from certrenew import util
from certrenew.plugins import common
from certrenew.plugins import disco as plugins_disco

logger = logging.getLogger(__name__)


def _init_renewer(config, plugins, store):
    acme = client.AcmeClient.from_config(config)
    return renewal.Renewer(config, store, acme, plugins)


def _find_renewal(config, store):
    if not config.host:
        raise errors.ConfigurationError("Please specify the renewal with --host")
    found = store.find(target_mod.Target(host=config.host[0]))
    if found is None:
        raise errors.Error("No renewal found for {0}".format(config.host[0]))
    return found


def renew(config, plugins):
    """Renew every due certificate.

    :returns: error message if any renewal failed
    :rtype: `str` or `None`

    """
    store = storage.RenewalStore(config)
    if not store.due(force=config.force_renewal):
        logger.info("No renewals are due")
        renewal._renew_describe_results(  # pylint: disable=protected-access
            config, [], [], [str(item) for item in store.renewals])
        return None
    renewer = _init_renewer(config, plugins, store)
    failures = renewal.handle_renewal_request(config, renewer)
    if failures:
        return "{0} renewal failure(s)".format(len(failures))
    return None


def run(config, plugins):
    """Create (or update) a renewal from the command line and run it."""
    store = storage.RenewalStore(config)
    item = renewal.create_renewal(config, plugins, store)
    renewer = _init_renewer(config, plugins, store)
    result = renewer.process(item)
    if not result.success:
        return "Renewal of {0} failed: {1}".format(
            item.binding, result.error_message)
    print("Certificate for {0} issued, next renewal after {1}".format(
        item.binding, pyrfc3339.generate(item.due_date)))
    return None


def cancel(config, unused_plugins):
    """Cancel the renewal of ``--host``."""
    store = storage.RenewalStore(config)
    store.cancel(_find_renewal(config, store))


def cancel_all(config, unused_plugins):
    """Cancel every renewal."""
    storage.RenewalStore(config).cancel_all()


def list_renewals(config, unused_plugins):
    """Print the scheduled renewals."""
    store = storage.RenewalStore(config)
    if not store.renewals:
        print("No renewals scheduled.")
        return
    lines = []
    for item in store.renewals:
        lines.append(str(item))
        lines.append("  validation: {0}, store: {1}, installation: {2}".format(
            item.binding.validation_plugin, item.store_plugin,
            ", ".join(item.installation_plugins) or "None"))
        lines.append("  {0} result(s){1}".format(
            len(item.history),
            ", last: {0}".format(item.history[-1]) if item.history else ""))
    print("\n".join(lines))


def revoke(config, plugins):
    """Revoke the current certificate of ``--host``."""
    store = storage.RenewalStore(config)
    item = _find_renewal(config, store)
    factory = plugins.find_by_name(
        common.ROLE_STORE, item.store_plugin or config.store)
    if factory is None:
        raise errors.ConfigurationError(
            "Store plugin {0} not found".format(item.store_plugin))
    cert = factory.create(config, item).find(item.binding)
    if cert is None:
        raise errors.Error(
            "No certificate found for {0}".format(item.binding))
    acme = client.AcmeClient.from_config(config)
    acme.revoke_certificate(cert)
    print("Revoked certificate {0} of {1}".format(
        cert.thumbprint, item.binding))


VERBS = {
    "renew": renew,
    "run": run,
    "cancel": cancel,
    "cancel-all": cancel_all,
    "list": list_renewals,
    "revoke": revoke,
}


def make_or_verify_needed_dirs(config):
    """Create or verify existence of config and logs directories.

    The config directory stays locked until the process exits.

    """
    util.set_up_core_dir(config.config_dir, 0o755)
    util.set_up_core_dir(config.logs_dir, 0o700, lock_it=False)


def main(cli_args=None):
    """Command line argument parsing and main script execution.

    :returns: result of requested command

    :raises errors.Error: OS errors triggered by wrong permissions
    :raises errors.Error: error if plugin command is not supported

    """
    if cli_args is None:
        cli_args = sys.argv[1:]

    log.pre_arg_parse_setup()
    plugins = plugins_disco.PluginsRegistry()
    logger.debug("certrenew plugins: %r", plugins)

    # note: arg parser internally handles --help (and exits afterwards)
    args = cli.prepare_and_parse_args(plugins, cli_args)
    config = configuration.NamespaceConfig(args)
    zope.component.provideUtility(config, interfaces.IConfig)

    make_or_verify_needed_dirs(config)

    log.post_arg_parse_setup(config)

    report = reporter.Reporter(config)
    zope.component.provideUtility(report, interfaces.IReporter)
    util.atexit_register(report.print_messages)

    return VERBS[config.verb](config, plugins)


if __name__ == "__main__":
    err_string = main()
    if err_string:
        logger.warning("Exiting with message %s", err_string)
    sys.exit(err_string)  # pragma: no cover
