"""Issued certificate material."""
import logging
import os

from certrenew import crypto_util
from certrenew import errors

logger = logging.getLogger(__name__)


def _text(data):
    if data is None:
        return None
    if isinstance(data, bytes):
        return data.decode('ascii')
    return data


class CertificateInfo(object):
    """An issued certificate with its chain and private key.

    Derived attributes (`thumbprint`, `subject`, `hosts`, `expires`) are
    computed from ``cert_pem``.

    :ivar str cert_pem: Certificate in PEM form.
    :ivar str chain_pem: Issuer chain in PEM form (may be empty).
    :ivar str key_pem: Private key in PEM form, ``None`` if unknown.
    :ivar str path: Where a store plugin found or saved it, if anywhere.

    """

    def __init__(self, cert_pem, chain_pem="", key_pem=None, path=None):
        self.cert_pem = _text(cert_pem)
        self.chain_pem = _text(chain_pem) or ""
        self.key_pem = _text(key_pem)
        self.path = path
        self._thumbprint = None

    @classmethod
    def from_fullchain(cls, fullchain_pem, key_pem=None, path=None):
        """Build from a certificate concatenated with its chain."""
        cert_pem, chain_pem = crypto_util.cert_and_chain_from_fullchain(
            _text(fullchain_pem))
        return cls(cert_pem, chain_pem, key_pem, path)

    @classmethod
    def from_files(cls, cert_path, chain_path=None, key_path=None):
        """Load certificate material from PEM files.

        :raises .errors.Error: if a file cannot be read

        """
        try:
            with open(cert_path) as cert_file:
                cert_pem = cert_file.read()
            chain_pem = key_pem = None
            if chain_path and os.path.isfile(chain_path):
                with open(chain_path) as chain_file:
                    chain_pem = chain_file.read()
            if key_path and os.path.isfile(key_path):
                with open(key_path) as key_file:
                    key_pem = key_file.read()
        except IOError as error:
            raise errors.Error(
                "Unable to read certificate {0}: {1}".format(cert_path, error))
        return cls(cert_pem, chain_pem, key_pem,
                   path=os.path.dirname(os.path.abspath(cert_path)))

    @property
    def fullchain_pem(self):  # pylint: disable=missing-docstring
        return self.cert_pem + self.chain_pem

    @property
    def thumbprint(self):
        """Upper-case SHA-1 hexadecimal fingerprint."""
        if self._thumbprint is None:
            self._thumbprint = crypto_util.thumbprint(self.cert_pem)
        return self._thumbprint

    @property
    def hosts(self):
        """Common name and DNS subject alternative names."""
        return crypto_util.get_names_from_cert(self.cert_pem)

    @property
    def subject(self):  # pylint: disable=missing-docstring
        hosts = self.hosts
        return hosts[0] if hosts else None

    @property
    def expires(self):  # pylint: disable=missing-docstring
        return crypto_util.notAfter(self.cert_pem)

    def __eq__(self, other):
        if not isinstance(other, CertificateInfo):
            return NotImplemented
        return self.thumbprint == other.thumbprint

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self.thumbprint)

    def __repr__(self):
        return "{0}({1})".format(self.__class__.__name__, self.thumbprint)
