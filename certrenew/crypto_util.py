"""certrenew crypto utility functions."""
import datetime
import hashlib
import logging
import os

import josepy as jose
import OpenSSL
import pyrfc3339
from cryptography import exceptions as crypto_exceptions
from cryptography import x509
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import ExtendedKeyUsageOID
from cryptography.x509.oid import NameOID

from certrenew import constants
from certrenew import errors

logger = logging.getLogger(__name__)

_MAX_SERIAL = 2 ** 63 - 1


def make_key(bits):
    """Generate PEM encoded RSA key.

    :param int bits: Number of bits, at least 1024.

    :returns: new RSA key in PEM form with specified number of bits
    :rtype: bytes

    """
    assert bits >= 1024  # XXX
    key = rsa.generate_private_key(
        public_exponent=65537, key_size=bits, backend=default_backend())
    return _key_pem(key)


def _key_pem(key):
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption())


def load_certificate(cert_pem):
    """Parse a PEM certificate with `cryptography`.

    :raises .errors.Error: if the data is not a certificate

    """
    if isinstance(cert_pem, str):
        cert_pem = cert_pem.encode('ascii')
    try:
        return x509.load_pem_x509_certificate(cert_pem, default_backend())
    except ValueError as error:
        raise errors.Error("Invalid certificate: {0}".format(error))


def pyopenssl_load_certificate(data):
    """Load a PEM certificate with pyOpenSSL, as `acme` expects it.

    :rtype: `OpenSSL.crypto.X509`

    """
    try:
        return OpenSSL.crypto.load_certificate(
            OpenSSL.crypto.FILETYPE_PEM, data)
    except OpenSSL.crypto.Error as error:
        raise errors.Error("Invalid certificate: {0}".format(error))


def thumbprint(cert_pem):
    """SHA-1 fingerprint of a certificate, upper-case hexadecimal.

    :param cert_pem: certificate in PEM form
    :rtype: str

    """
    cert = load_certificate(cert_pem)
    return cert.fingerprint(hashes.SHA1()).hex().upper()  # nosec


def get_names_from_cert(cert_pem):
    """Get the common name and subject alternative names of a certificate.

    :returns: common name first (if any), then the DNS SANs
    :rtype: `list` of `str`

    """
    cert = load_certificate(cert_pem)
    names = [attr.value for attr in
             cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)]
    try:
        ext = cert.extensions.get_extension_for_class(
            x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return names
    for name in ext.value.get_values_for_type(x509.DNSName):
        if name not in names:
            names.append(name)
    return names


def notAfter(cert_pem):  # pylint: disable=invalid-name
    """When does the certificate stop being valid?

    :param cert_pem: certificate in PEM form

    :returns: the notAfter value of the certificate
    :rtype: :class:`datetime.datetime`

    """
    if isinstance(cert_pem, str):
        cert_pem = cert_pem.encode('ascii')
    cert = pyopenssl_load_certificate(cert_pem)
    # pyopenssl always returns bytes
    timestamp = cert.get_notAfter()
    reformatted_timestamp = [timestamp[0:4], b"-", timestamp[4:6], b"-",
                             timestamp[6:8], b"T", timestamp[8:10], b":",
                             timestamp[10:12], b":", timestamp[12:]]
    return pyrfc3339.parse(b"".join(reformatted_timestamp).decode('ascii'))


def cert_and_chain_from_fullchain(fullchain_pem):
    """Split fullchain_pem into cert_pem and chain_pem

    :param str fullchain_pem: concatenated cert + chain

    :returns: tuple of string cert_pem and chain_pem
    :rtype: tuple

    """
    marker = "-----END CERTIFICATE-----"
    end = fullchain_pem.find(marker)
    if end == -1:
        raise errors.Error("No certificate found in chain")
    end += len(marker)
    cert_pem = fullchain_pem[:end].strip() + "\n"
    chain_pem = fullchain_pem[end:].lstrip()
    return cert_pem, chain_pem


def dump_pkcs12(cert_pem, chain_pem, key_pem, password=None, name=None):
    """Bundle certificate, chain and key as PKCS#12.

    :param str password: Encrypts the bundle when given.
    :rtype: bytes

    """
    cert = load_certificate(cert_pem)
    chain = []
    remaining = chain_pem or ""
    while "-----END CERTIFICATE-----" in remaining:
        one, remaining = cert_and_chain_from_fullchain(remaining)
        chain.append(load_certificate(one))
    if isinstance(key_pem, str):
        key_pem = key_pem.encode('ascii')
    key = serialization.load_pem_private_key(
        key_pem, password=None, backend=default_backend())
    if password:
        encryption = serialization.BestAvailableEncryption(
            password.encode('utf-8'))
    else:
        encryption = serialization.NoEncryption()
    return pkcs12.serialize_key_and_certificates(
        name.encode('utf-8') if name else None, key, cert, chain or None,
        encryption)


# Proof certificates for the TLS based challenge


class ProofCertificate(jose.ImmutableMap):
    """Ephemeral self-signed certificate answering a TLS challenge.

    :ivar str san: The ``*.acme.invalid`` name the server asks for.
    :ivar bytes cert_pem: Certificate in PEM form.
    :ivar bytes key_pem: Private key in PEM form.

    """
    __slots__ = ('san', 'cert_pem', 'key_pem')

    @property
    def pem(self):
        """Certificate followed by its key, as TLS terminators load it."""
        return self.cert_pem + self.key_pem


def proof_hash_chain(key_authorization, iterations):
    """Hash chain over the key authorization.

    The first link is the SHA-256 digest of ``key_authorization``, each
    following link the digest of the lower-case hexadecimal text of the
    previous one.

    :param str key_authorization: Key authorization of the challenge.
    :param int iterations: Number of links, at least 1.

    :returns: hexadecimal digests in chain order
    :rtype: `list` of `str`

    """
    if iterations < 1:
        raise ValueError("iterations must be at least 1")
    digests = []
    value = key_authorization
    for _ in range(iterations):
        value = hashlib.sha256(value.encode('utf-8')).hexdigest()
        digests.append(value)
    return digests


def proof_san(digest):
    """``<first32hex>.<last32hex>.acme.invalid`` name of a chain link."""
    return "{0}.{1}{2}".format(
        digest[0:32], digest[32:64], constants.TLSSNI01_DOMAIN_SUFFIX)


def gen_proof_certificates(key_authorization, iterations):
    """Self-signed certificates for every link of the hash chain.

    :param str key_authorization: Key authorization of the challenge.
    :param int iterations: Number of certificates to generate.

    :rtype: `list` of `ProofCertificate`

    """
    return [gen_proof_certificate(proof_san(digest))
            for digest in proof_hash_chain(key_authorization, iterations)]


def gen_proof_certificate(san):
    """Generate one proof certificate for ``san``.

    Generation failures are retried until a certificate is produced.

    :rtype: ProofCertificate

    """
    while True:
        try:
            return _make_proof_certificate(san)
        except (ValueError, crypto_exceptions.InternalError) as error:
            logger.debug("Proof certificate generation for %s failed: %s",
                         san, error, exc_info=True)


def _random_serial():
    serial = 0
    while not serial:
        serial = int.from_bytes(os.urandom(8), 'big') & _MAX_SERIAL
    return serial


def _make_proof_certificate(san):
    key = rsa.generate_private_key(
        public_exponent=65537, key_size=constants.PROOF_KEY_SIZE,
        backend=default_backend())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, san)])
    now = datetime.datetime.utcnow()
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(_random_serial())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(
            seconds=constants.PROOF_VALIDITY_SECONDS))
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(san)]),
                       critical=False)
        .add_extension(x509.ExtendedKeyUsage([
            ExtendedKeyUsageOID.SERVER_AUTH,
            ExtendedKeyUsageOID.CLIENT_AUTH]), critical=False)
        .add_extension(x509.KeyUsage(
            digital_signature=True, content_commitment=False,
            key_encipherment=True, data_encipherment=False,
            key_agreement=False, key_cert_sign=False, crl_sign=False,
            encipher_only=False, decipher_only=False), critical=True)
    )
    cert = builder.sign(key, hashes.SHA512(), default_backend())
    return ProofCertificate(
        san=san,
        cert_pem=cert.public_bytes(serialization.Encoding.PEM),
        key_pem=_key_pem(key))
