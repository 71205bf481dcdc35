"""Certrenew command line argument parsing."""
import argparse
import logging

import configargparse

import certrenew
from certrenew import constants
from certrenew import errors
from certrenew import interfaces
from certrenew.plugins import common
from certrenew.plugins import manual

logger = logging.getLogger(__name__)

VERBS = ("renew", "run", "cancel", "cancel-all", "list", "revoke")

USAGE = """
  certrenew [renew] [--force-renewal]     renew every due certificate
  certrenew run --host example.com        create and run a new renewal
  certrenew list                          show scheduled renewals
  certrenew cancel --host example.com     cancel one renewal
  certrenew cancel-all                    cancel every renewal
  certrenew revoke --host example.com     revoke the current certificate
"""


def flag_default(name):
    """Default value for CLI flag."""
    # copy mutable defaults so parsing never changes CLI_DEFAULTS
    value = constants.CLI_DEFAULTS[name]
    return list(value) if isinstance(value, list) else value


def config_help(name, hidden=False):
    """Help message for `.IConfig` attribute."""
    if hidden:
        return argparse.SUPPRESS
    return interfaces.IConfig[name].__doc__


class _HostsAction(argparse.Action):
    """Action class for parsing comma separated host lists."""

    def __call__(self, parser, namespace, host, option_string=None):
        try:
            hosts = manual.parse_host_list(host)
        except errors.ConfigurationError as error:
            raise argparse.ArgumentError(self, str(error))
        existing = getattr(namespace, self.dest) or []
        for name in hosts:
            if name not in existing:
                existing.append(name)
        setattr(namespace, self.dest, existing)


def _plugin_names(plugins, role):
    return ", ".join(factory.name for factory in plugins.list_factories(role))


def create_parser(plugins):
    """Create parser.

    :param plugins: `.PluginsRegistry`, used for help texts

    """
    parser = configargparse.ArgParser(
        prog="certrenew",
        usage=USAGE,
        description="Unattended ACME certificate renewal",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        args_for_setting_config_path=["-c", "--config"],
        default_config_files=flag_default("config_files"))
    add = parser.add_argument

    # --help is automatically provided by argparse
    add("verb", nargs="?", choices=VERBS, default=flag_default("verb"),
        help="Action to perform")
    add("--version", action="version", version="%(prog)s {0}".format(
        certrenew.__version__))
    add("-v", "--verbose", dest="verbose_count", action="count",
        default=flag_default("verbose_count"), help="This flag can be used "
        "multiple times to incrementally increase the verbosity of output, "
        "e.g. -vvv.")
    add("-q", "--quiet", dest="quiet", action="store_true",
        default=flag_default("quiet"),
        help="Silence all output except errors.")
    add("--force-renewal", dest="force_renewal", action="store_true",
        default=flag_default("force_renewal"),
        help=config_help("force_renewal"))
    add("--test", dest="test", action="store_true",
        default=flag_default("test"), help=config_help("test"))
    add("--keep-existing", dest="keep_existing", action="store_true",
        default=flag_default("keep_existing"),
        help="Do not delete the previous certificate after renewal.")

    renewal_group = parser.add_argument_group(
        "renewal", description="Define the renewal created by 'run'.")
    renewal_group.add_argument(
        "--target", default=flag_default("target"),
        help="Target plugin ({0}).".format(
            _plugin_names(plugins, common.ROLE_TARGET)))
    renewal_group.add_argument(
        "--host", dest="host", metavar="HOST", action=_HostsAction,
        default=flag_default("host"),
        help="Comma separated host names, the first is the primary one. "
        "May be given multiple times.")
    renewal_group.add_argument(
        "--webroot", default=flag_default("webroot"),
        help="Web root for http-01 validation: a local path, an ftp:// "
        "URL, or a WebDAV URL or UNC path.")
    renewal_group.add_argument(
        "--validation-mode", default=flag_default("validation_mode"),
        choices=(constants.HTTP01, constants.DNS01, constants.TLSSNI01),
        help="ACME challenge type.")
    renewal_group.add_argument(
        "--validation", default=flag_default("validation"),
        help="Validation plugin ({0}).".format(
            _plugin_names(plugins, common.ROLE_VALIDATION)))
    renewal_group.add_argument(
        "--store", default=flag_default("store"),
        help="Store plugin ({0}).".format(
            _plugin_names(plugins, common.ROLE_STORE)))
    renewal_group.add_argument(
        "--installation", action="append",
        default=flag_default("installation"),
        help="Installation plugin, may be given multiple times ({0}).".format(
            _plugin_names(plugins, common.ROLE_INSTALLATION)))
    renewal_group.add_argument(
        "--script", default=flag_default("script"),
        help="Script run by the Script installation plugin.")
    renewal_group.add_argument(
        "--script-parameters", default=flag_default("script_parameters"),
        help="Parameters for --script; {host}, {thumbprint}, "
        "{old_thumbprint} and {cert_path} are replaced.")

    plugins_group = parser.add_argument_group(
        "plugins", description="Plugin specific options.")
    plugins_add = plugins_group.add_argument
    plugins_add("--ftp-user", default=flag_default("ftp_user"))
    plugins_add("--ftp-password", default=flag_default("ftp_password"))
    plugins_add("--webdav-user", default=flag_default("webdav_user"))
    plugins_add("--webdav-password", default=flag_default("webdav_password"))
    plugins_add("--dns-create-script", default=flag_default("dns_create_script"),
                help="Script creating the dns-01 TXT record.")
    plugins_add("--dns-delete-script", default=flag_default("dns_delete_script"),
                help="Script deleting the dns-01 TXT record.")
    plugins_add("--tls-directory", default=flag_default("tls_directory"),
                help="Directory receiving tls-sni-01 proof certificates.")
    plugins_add("--pem-files-path", default=flag_default("pem_files_path"),
                help="Root of the PemFiles store (default: "
                "<config-dir>/certificates).")
    plugins_add("--central-ssl-path", default=flag_default("central_ssl_path"),
                help="Directory of the CentralSsl store.")
    plugins_add("--pfx-password", default=flag_default("pfx_password"),
                help="Password protecting .pfx files.")
    plugins_add("--http01-port", type=int, default=flag_default("http01_port"),
                help=config_help("http01_port"))

    acme_group = parser.add_argument_group("acme")
    acme_add = acme_group.add_argument
    acme_add("--server", default=flag_default("server"),
             help=config_help("server"))
    acme_add("--staging", action="store_true", default=flag_default("staging"),
             help="Use the Let's Encrypt staging server.")
    acme_add("-m", "--email", default=flag_default("email"),
             help=config_help("email"))
    acme_add("--agree-tos", dest="agree_tos", action="store_true",
             default=flag_default("agree_tos"),
             help="Agree to the ACME server's Subscriber Agreement.")
    acme_add("--rsa-key-size", type=int, metavar="N",
             default=flag_default("rsa_key_size"),
             help=config_help("rsa_key_size"))

    _paths_parser(parser.add_argument_group("paths"))
    return parser


def _paths_parser(parser):
    add = parser.add_argument
    add("--config-dir", default=flag_default("config_dir"),
        help=config_help("config_dir"))
    add("--logs-dir", default=flag_default("logs_dir"),
        help=config_help("logs_dir"))
    return parser


def prepare_and_parse_args(plugins, args):
    """Returns parsed command line arguments.

    :param .PluginsRegistry plugins: available plugins
    :param list args: command line arguments with the program name removed

    :returns: parsed command line arguments
    :rtype: argparse.Namespace

    """
    parser = create_parser(plugins)
    namespace = parser.parse_args(args)
    if namespace.rsa_key_size < 2048:
        parser.error("--rsa-key-size must be at least 2048")
    logger.debug("Parsed arguments: verb %s", namespace.verb)
    return namespace
