"""FTP(S) http-01 validation plugin."""
import ftplib
import logging
import posixpath
from urllib import parse

import ftputil
import ftputil.error
import ftputil.session
import zope.interface

from certrenew import errors
from certrenew import interfaces
from certrenew import target as target_mod
from certrenew.plugins import http


logger = logging.getLogger(__name__)


class FtpClient(object):
    """Minimal FTP(S) client on top of `ftputil`.

    Every operation opens its own connection; validation touches only a
    handful of files.

    :param credentials: `.CredentialOptions` or ``None``

    """

    def __init__(self, credentials):
        self.user = credentials.user if credentials else None
        self.password = credentials.password if credentials else None

    def _connect(self, url):
        parts = parse.urlparse(url)
        if parts.scheme not in ("ftp", "ftps"):
            raise errors.PluginError(
                "unknown web root URI scheme: {0.scheme}".format(parts))
        port = parts.port or (990 if parts.scheme == "ftps" else 21)
        factory = ftputil.session.session_factory(
            base_class=ftplib.FTP_TLS if parts.scheme == "ftps" else ftplib.FTP,
            port=port, encrypt_data_channel=parts.scheme == "ftps")
        user = parts.username or self.user or "anonymous"
        password = parts.password or self.password or ""
        return ftputil.FTPHost(parts.hostname, user, password,
                               session_factory=factory), parts.path or "/"

    def upload(self, url, content):
        """Write ``content`` to the file at ``url``, creating folders."""
        try:
            host, path = self._connect(url)
            with host:
                host.makedirs(posixpath.dirname(path), exist_ok=True)
                with host.open(path, "w", encoding="utf-8") as remote:
                    remote.write(content)
        except ftputil.error.FTPError as error:
            raise errors.PluginError(
                "Error uploading file {0}: {1}".format(url, error))

    def delete(self, url, is_dir=False):
        """Delete the file (or empty folder) at ``url``."""
        try:
            host, path = self._connect(url)
            with host:
                if is_dir:
                    host.rmdir(path)
                else:
                    host.remove(path)
        except ftputil.error.FTPError as error:
            raise errors.PluginError(
                "Error deleting {0}: {1}".format(url, error))

    def list_files(self, url):
        """Names in the folder at ``url``, ``None`` if it cannot be listed."""
        try:
            host, path = self._connect(url)
            with host:
                if not host.path.isdir(path):
                    return None
                return host.listdir(path)
        except ftputil.error.FTPError as error:
            logger.debug("Listing %s failed: %s", url, error)
            return None


@zope.interface.implementer(interfaces.IValidationPlugin)
class Ftp(http.HttpValidation):
    """Uploads validation files to an FTP(S) server."""
    path_separator = "/"

    def __init__(self, *args, **kwargs):
        super(Ftp, self).__init__(*args, **kwargs)
        self.client = FtpClient(self.target.ftp_options)

    def write_file(self, path, content):
        self.client.upload(path, content)

    def delete_file(self, path):
        self.client.delete(path)

    def delete_folder(self, path):
        self.client.delete(path, is_dir=True)

    def is_empty(self, path):
        return self.client.list_files(path) == []


@zope.interface.implementer(interfaces.IValidationPluginFactory)
class FtpFactory(http.HttpValidationFactory):
    """Ftp validation plugin."""
    name = "Ftp"
    description = "Upload verification file to FTP(S) server"
    plugin_class = Ftp
    webroot_hint = (
        "Enter an ftp path that leads to the web root of the host",
        " Example, ftp://domain.com:21/site/wwwroot/",
        " Example, ftps://domain.com:990/site/wwwroot/",
    )

    def valid_webroot(self, target):
        return target.web_root_path.lower().startswith("ftp")

    def default(self, target, config):
        target = super(FtpFactory, self).default(target, config)
        if target.ftp_options is None and config.ftp_user:
            target = target.update(ftp_options=target_mod.CredentialOptions(
                user=config.ftp_user, password=config.ftp_password))
        return target
