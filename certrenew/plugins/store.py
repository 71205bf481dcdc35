"""Certificate store plugins."""
import logging
import os
import shutil

import zope.interface
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from certrenew import certificate
from certrenew import crypto_util
from certrenew import errors
from certrenew import interfaces
from certrenew import util
from certrenew.plugins import common

logger = logging.getLogger(__name__)

CERT = "cert.pem"
CHAIN = "chain.pem"
FULLCHAIN = "fullchain.pem"
PRIVKEY = "privkey.pem"


@zope.interface.implementer(interfaces.IStorePlugin)
class PemFiles(object):
    """Stores PEM files in ``<path>/<host>/<thumbprint>/``.

    Each certificate gets its own directory so the previous one stays
    usable until it is explicitly deleted.

    """

    def __init__(self, config, renewal):
        self.config = config
        self.renewal = renewal
        self.path = (config.pem_files_path or
                     config.default_certificates_dir)

    def _host_dir(self, host):
        return os.path.join(self.path, host)

    def save(self, cert):  # pylint: disable=missing-docstring
        directory = os.path.join(
            self._host_dir(self.renewal.binding.host), cert.thumbprint)
        logger.debug("Saving certificate %s to %s", cert.thumbprint, directory)
        try:
            util.make_or_verify_dir(directory, 0o755)
            util.atomic_write(os.path.join(directory, CERT), cert.cert_pem,
                              chmod=0o644)
            util.atomic_write(os.path.join(directory, CHAIN), cert.chain_pem,
                              chmod=0o644)
            util.atomic_write(os.path.join(directory, FULLCHAIN),
                              cert.fullchain_pem, chmod=0o644)
            if cert.key_pem:
                util.atomic_write(os.path.join(directory, PRIVKEY),
                                  cert.key_pem, chmod=0o600)
        except OSError as error:
            raise errors.PluginError(
                "Unable to save certificate to {0}: {1}".format(
                    directory, error))
        cert.path = directory

    def find(self, binding):
        """Most recently expiring stored certificate of ``binding``."""
        host_dir = self._host_dir(binding.host)
        if not os.path.isdir(host_dir):
            return None
        found = []
        for name in sorted(os.listdir(host_dir)):
            cert_path = os.path.join(host_dir, name, CERT)
            if not os.path.isfile(cert_path):
                continue
            try:
                found.append(certificate.CertificateInfo.from_files(
                    cert_path, os.path.join(host_dir, name, CHAIN),
                    os.path.join(host_dir, name, PRIVKEY)))
            except errors.Error as error:
                logger.warning("Ignoring unreadable certificate %s: %s",
                               cert_path, error)
        if not found:
            return None
        return max(found, key=lambda cert: cert.expires)

    def delete(self, cert):  # pylint: disable=missing-docstring
        directory = os.path.join(
            self._host_dir(self.renewal.binding.host), cert.thumbprint)
        logger.debug("Deleting certificate %s", directory)
        try:
            if os.path.isdir(directory):
                shutil.rmtree(directory)
        except OSError as error:
            raise errors.PluginError(
                "Unable to delete {0}: {1}".format(directory, error))
        util.remove_empty_dirs(self._host_dir(self.renewal.binding.host),
                               self.path)


@zope.interface.implementer(interfaces.IStorePluginFactory)
class PemFilesFactory(common.StorePluginFactory):
    """PemFiles store plugin."""
    name = "PemFiles"
    description = "PEM files per host and thumbprint"
    plugin_class = PemFiles


@zope.interface.implementer(interfaces.IStorePlugin)
class CentralSsl(object):
    """Stores ``<host>.pfx`` files for every host of the certificate."""

    def __init__(self, config, renewal):
        self.config = config
        self.renewal = renewal
        self.path = config.central_ssl_path
        self.password = config.pfx_password
        if not self.path:
            raise errors.MisconfigurationError(
                "CentralSsl store requires --central-ssl-path")

    def _pfx_path(self, host):
        return os.path.join(self.path, host + ".pfx")

    def _hosts(self, cert):
        hosts = list(self.renewal.binding.hosts())
        for host in cert.hosts:
            if host not in hosts:
                hosts.append(host)
        return hosts

    def save(self, cert):  # pylint: disable=missing-docstring
        data = crypto_util.dump_pkcs12(
            cert.cert_pem, cert.chain_pem, cert.key_pem,
            password=self.password, name=cert.subject)
        try:
            util.make_or_verify_dir(self.path, 0o755)
            for host in self._hosts(cert):
                logger.debug("Writing %s", self._pfx_path(host))
                util.atomic_write(self._pfx_path(host), data, chmod=0o600)
        except OSError as error:
            raise errors.PluginError(
                "Unable to save certificate to {0}: {1}".format(
                    self.path, error))
        cert.path = self.path

    def _load(self, path):
        with open(path, "rb") as pfx_file:
            data = pfx_file.read()
        password = self.password.encode("utf-8") if self.password else None
        key, cert, chain = pkcs12.load_key_and_certificates(
            data, password, default_backend())
        pem = serialization.Encoding.PEM
        key_pem = None
        if key is not None:
            key_pem = key.private_bytes(
                pem, serialization.PrivateFormat.TraditionalOpenSSL,
                serialization.NoEncryption())
        return certificate.CertificateInfo(
            cert.public_bytes(pem),
            b"".join(extra.public_bytes(pem) for extra in chain or ()),
            key_pem, path=self.path)

    def find(self, binding):  # pylint: disable=missing-docstring
        path = self._pfx_path(binding.host)
        if not os.path.isfile(path):
            return None
        try:
            return self._load(path)
        except (IOError, ValueError) as error:
            logger.warning("Ignoring unreadable %s: %s", path, error)
            return None

    def delete(self, cert):  # pylint: disable=missing-docstring
        for host in self._hosts(cert):
            path = self._pfx_path(host)
            if not os.path.isfile(path):
                continue
            try:
                stored = self._load(path)
            except (IOError, ValueError):
                continue
            # a newer certificate may already occupy this name
            if stored.thumbprint == cert.thumbprint:
                try:
                    os.remove(path)
                except OSError as error:
                    raise errors.PluginError(
                        "Unable to delete {0}: {1}".format(path, error))


@zope.interface.implementer(interfaces.IStorePluginFactory)
class CentralSslFactory(common.StorePluginFactory):
    """CentralSsl store plugin."""
    name = "CentralSsl"
    description = "IIS Central Certificate Store (.pfx files)"
    plugin_class = CentralSsl
