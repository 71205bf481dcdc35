"""Test utilities.

.. warning:: This module is not part of the public API.

"""
import datetime
import logging
import os
import shutil
import tempfile
import unittest
from importlib import reload as reload_module
from multiprocessing import Event
from multiprocessing import Process

import mock
import zope.interface
from cryptography import x509
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from certrenew import achallenges
from certrenew import certificate
from certrenew import configuration
from certrenew import constants
from certrenew import crypto_util
from certrenew import interfaces
from certrenew import lock
from certrenew import util


_KEY_PEM = []


def key_pem():
    """A 2048 bit RSA key in PEM form, shared by the whole test run."""
    if not _KEY_PEM:
        _KEY_PEM.append(crypto_util.make_key(2048).decode("ascii"))
    return _KEY_PEM[0]


def make_certificate(hosts, days=90, not_before=None):
    """Self-signed certificate for ``hosts``.

    :returns: certificate and key, both PEM text
    :rtype: tuple

    """
    key = serialization.load_pem_private_key(
        key_pem().encode("ascii"), password=None, backend=default_backend())
    not_before = (datetime.datetime.utcnow() if not_before is None
                  else not_before)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, hosts[0])])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_before + datetime.timedelta(days=days))
        .add_extension(x509.SubjectAlternativeName(
            [x509.DNSName(host) for host in hosts]), critical=False)
        .sign(key, hashes.SHA256(), default_backend())
    )
    return (cert.public_bytes(serialization.Encoding.PEM).decode("ascii"),
            key_pem())


def make_certificate_info(hosts, days=90, not_before=None):
    """`.CertificateInfo` around a fresh `make_certificate`."""
    cert_pem, cert_key = make_certificate(hosts, days, not_before)
    return certificate.CertificateInfo(cert_pem, "", cert_key)


def make_authz(identifier, status=constants.STATUS_PENDING, errors=(),
               typ=constants.HTTP01):
    """`.AuthorizationState` with one challenge of type ``typ``."""
    return achallenges.AuthorizationState(
        identifier, status,
        challenges=[achallenges.ChallengePart(typ, status, errors)])


@zope.interface.implementer(interfaces.IAcmeClient)
class FakeAcmeClient(object):
    """Scripted `.IAcmeClient`.

    :ivar dict states: identifier to the status (or state) returned by
        `authorize_identifier`; pending when absent.
    :ivar dict refreshes: identifier to the list of states returned by
        successive `refresh_authorization` calls; valid once exhausted.
    :ivar list calls: ``(method, identifier)`` for every call.

    """

    def __init__(self, states=None, refreshes=None):
        self.states = dict(states or {})
        self.refreshes = dict(
            (name, list(values)) for name, values in (refreshes or {}).items())
        self.calls = []
        self.issued = []
        self.revoked = []

    def _state(self, identifier, value):
        if isinstance(value, achallenges.AuthorizationState):
            return value
        return make_authz(identifier, value)

    def methods(self, identifier=None):
        """Names of the methods called (for ``identifier``)."""
        return [method for method, name in self.calls
                if identifier is None or name == identifier]

    def authorize_identifier(self, identifier):  # pylint: disable=missing-docstring
        self.calls.append(("authorize_identifier", identifier))
        return self._state(identifier, self.states.get(
            identifier, constants.STATUS_PENDING))

    def decode_challenge(self, authz, challenge_type):  # pylint: disable=missing-docstring
        self.calls.append(("decode_challenge", authz.identifier))
        token = "token-" + authz.identifier.replace(".", "-")
        return achallenges.AnnotatedChallenge(
            typ=challenge_type, identifier=authz.identifier, token=token,
            key_authorization=token + ".thumbprint")

    def submit_challenge_answer(self, authz, challenge_type, accept):  # pylint: disable=missing-docstring,unused-argument
        self.calls.append(("submit_challenge_answer", authz.identifier))

    def refresh_authorization(self, authz):  # pylint: disable=missing-docstring
        self.calls.append(("refresh_authorization", authz.identifier))
        pending = self.refreshes.get(authz.identifier)
        if pending:
            return self._state(authz.identifier, pending.pop(0))
        return make_authz(authz.identifier, constants.STATUS_VALID)

    def request_certificate(self, binding):  # pylint: disable=missing-docstring
        self.calls.append(("request_certificate", binding.host))
        cert = make_certificate_info(binding.hosts())
        self.issued.append(cert)
        return cert

    def revoke_certificate(self, cert):  # pylint: disable=missing-docstring
        self.calls.append(("revoke_certificate", cert.thumbprint))
        self.revoked.append(cert)


class TempDirTestCase(unittest.TestCase):
    """Test case with a fresh temporary directory in ``self.tempdir``."""

    def setUp(self):
        self.tempdir = tempfile.mkdtemp()

    def tearDown(self):
        # atexit would only run at the end of the whole test session
        logging.shutdown()
        logging.getLogger().handlers = []
        util._release_locks()  # pylint: disable=protected-access
        shutil.rmtree(self.tempdir)


class ConfigTestCase(TempDirTestCase):
    """Test class which sets up a NamespaceConfig object."""
    def setUp(self):
        super(ConfigTestCase, self).setUp()
        self.config = configuration.NamespaceConfig(
            mock.MagicMock(**constants.CLI_DEFAULTS)
        )
        self.config.config_dir = os.path.join(self.tempdir, 'config')
        self.config.logs_dir = os.path.join(self.tempdir, 'logs')
        self.config.server = "https://example.com/acme/directory"
        self.config.installation = []


def _hold_lock(path, locked, release):
    """Lock ``path`` in a child process until ``release`` is set."""
    held = lock.lock_dir(path) if os.path.isdir(path) else lock.LockFile(path)
    try:
        locked.set()
        assert release.wait(timeout=20), "Never told to release the lock."
    finally:
        held.release()


def lock_and_call(callback, path_to_lock):
    """Call ``callback`` while another process locks ``path_to_lock``.

    :param callable callback: called while the lock is held
    :param str path_to_lock: lock file or certrenew directory

    """
    # forget directory locks taken by earlier tests of this process
    reload_module(util)

    locked, release = Event(), Event()
    holder = Process(target=_hold_lock, args=(path_to_lock, locked, release))
    holder.start()
    try:
        assert locked.wait(timeout=10), "Child never acquired the lock."
        callback()
    finally:
        release.set()
        holder.join(timeout=10)
    assert holder.exitcode == 0
