"""Certrenew constants."""
import logging
import os


CLI_DEFAULTS = dict(
    config_files=[
        "/etc/certrenew/cli.ini",
        os.path.join(os.environ.get("XDG_CONFIG_HOME", "~/.config"),
                     "certrenew", "cli.ini"),
    ],

    # Main parser
    verb="renew",
    verbose_count=-int(logging.INFO / 10),
    quiet=False,
    force_renewal=False,
    test=False,
    keep_existing=False,
    staging=False,
    email=None,
    agree_tos=False,
    rsa_key_size=2048,
    http01_port=80,

    # Renewal definition
    target="Manual",
    host=None,
    webroot=None,
    validation_mode="http-01",
    validation="FileSystem",
    store="PemFiles",
    installation=[],
    script=None,
    script_parameters=None,

    # Plugin options
    ftp_user=None,
    ftp_password=None,
    webdav_user=None,
    webdav_password=None,
    dns_create_script=None,
    dns_delete_script=None,
    tls_directory=None,
    pem_files_path=None,
    central_ssl_path=None,
    pfx_password=None,

    # Paths
    config_dir="/etc/certrenew",
    logs_dir="/var/log/certrenew",
    server="https://acme-v02.api.letsencrypt.org/directory",
)
STAGING_URI = "https://acme-staging-v02.api.letsencrypt.org/directory"

QUIET_LOGGING_LEVEL = logging.WARNING
"""Logging level to use in quiet mode."""

SETTINGS_FILENAME = "settings.conf"
"""Name of the store/engine settings file in the config directory."""

SETTINGS_DEFAULTS = dict(
    renewal_interval="60",
    poll_interval="4",
    max_poll_attempts="10",
)
"""Defaults for settings.conf; bare integers in renewal_interval are days."""

RENEWALS_FILENAME = "renewals.json"
"""Persisted collection of scheduled renewals."""

HISTORY_SUFFIX = ".history.json"
"""Suffix of the per-renewal history file, prefixed with the host name."""

ACCOUNTS_DIR = "accounts"
"""Directory (relative to config_dir) where account keys are stored."""

CERTIFICATES_DIR = "certificates"
"""Default PemFiles store directory (relative to config_dir)."""

LOG_FILENAME = "certrenew.log"

STATUS_PENDING = "pending"
STATUS_VALID = "valid"
STATUS_INVALID = "invalid"

HTTP01 = "http-01"
DNS01 = "dns-01"
TLSSNI01 = "tls-sni-01"

HTTP01_URI_ROOT_PATH = ".well-known/acme-challenge"
"""Web root relative path where http-01 answers are published."""

DNS01_LABEL = "_acme-challenge"

TLSSNI01_DOMAIN_SUFFIX = ".acme.invalid"
PROOF_KEY_SIZE = 2048
PROOF_VALIDITY_SECONDS = 60 * 60

SAN_GROUP_SIZE = 100
"""Maximum number of identifiers authorized as one target."""

NULL_INSTALLATION = "None"
