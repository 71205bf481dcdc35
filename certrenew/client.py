"""ACME client adapter and account management."""
import datetime
import hashlib
import logging
import os
import platform
import socket

import josepy as jose
import pytz
import zope.component
import zope.interface
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import generate_private_key

from acme import challenges
from acme import client as acme_client
from acme import crypto_util as acme_crypto_util
from acme import fields as acme_fields
from acme import messages

import certrenew
from certrenew import achallenges
from certrenew import certificate
from certrenew import constants
from certrenew import crypto_util
from certrenew import errors
from certrenew import interfaces
from certrenew import util

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    messages.STATUS_VALID.name: constants.STATUS_VALID,
    messages.STATUS_PENDING.name: constants.STATUS_PENDING,
    messages.STATUS_PROCESSING.name: constants.STATUS_PENDING,
}


class Account(object):  # pylint: disable=too-few-public-methods
    """ACME protocol registration.

    :ivar .RegistrationResource regr: Registration Resource
    :ivar .JWK key: Authorized Account Key
    :ivar .Meta: Account metadata
    :ivar str id: Globally unique account identifier.

    """

    class Meta(jose.JSONObjectWithFields):
        """Account metadata

        :ivar datetime.datetime creation_dt: Creation date and time (UTC).
        :ivar str creation_host: FQDN of host, where account has been created.

        """
        creation_dt = acme_fields.RFC3339Field("creation_dt")
        creation_host = jose.Field("creation_host")

    def __init__(self, regr, key, meta=None):
        self.key = key
        self.regr = regr
        self.meta = self.Meta(
            # pyrfc3339 drops microseconds, make sure __eq__ is sane
            creation_dt=datetime.datetime.now(
                tz=pytz.UTC).replace(microsecond=0),
            creation_host=socket.getfqdn()) if meta is None else meta

        self.id = hashlib.md5(  # nosec
            self.key.key.public_key().public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo)
        ).hexdigest()

    def __repr__(self):
        return "<{0}({1}, {2})>".format(
            self.__class__.__name__, self.id, self.meta)

    def __eq__(self, other):
        return (isinstance(other, self.__class__) and
                self.key == other.key and self.regr == other.regr and
                self.meta == other.meta)


class AccountFileStorage(object):
    """Stores the single account of a server under `.IConfig.accounts_dir`.

    :ivar .IConfig config: Client configuration

    """
    def __init__(self, config):
        self.config = config

    @property
    def regr_path(self):  # pylint: disable=missing-docstring
        return os.path.join(self.config.accounts_dir, "regr.json")

    @property
    def key_path(self):  # pylint: disable=missing-docstring
        return os.path.join(self.config.accounts_dir, "account.json")

    @property
    def meta_path(self):  # pylint: disable=missing-docstring
        return os.path.join(self.config.accounts_dir, "meta.json")

    def load(self):
        """Load the account.

        :returns: `Account` or ``None`` if there is none yet

        :raises .errors.AccountStorageError: if the files are unreadable

        """
        if not os.path.isfile(self.key_path):
            return None
        try:
            with open(self.regr_path) as regr_file:
                regr = messages.RegistrationResource.json_loads(
                    regr_file.read())
            with open(self.key_path) as key_file:
                key = jose.JWK.json_loads(key_file.read())
            meta = None
            if os.path.isfile(self.meta_path):
                with open(self.meta_path) as meta_file:
                    meta = Account.Meta.json_loads(meta_file.read())
        except (IOError, jose.DeserializationError, ValueError) as error:
            raise errors.AccountStorageError(error)
        return Account(regr, key, meta)

    def save(self, account):
        """Save account key, registration and metadata."""
        util.make_or_verify_dir(self.config.accounts_dir, 0o700)
        try:
            regr = messages.RegistrationResource(
                body={}, uri=account.regr.uri)
            util.atomic_write(self.regr_path, regr.json_dumps(), chmod=0o644)
            util.atomic_write(self.key_path, account.key.json_dumps(),
                              chmod=0o400)
            util.atomic_write(self.meta_path, account.meta.json_dumps(),
                              chmod=0o644)
        except OSError as error:
            raise errors.AccountStorageError(error)


def determine_user_agent():
    """User-Agent header sent to the ACME server."""
    return "certrenew/{0} Py/{1}".format(
        certrenew.__version__, platform.python_version())


def acme_from_config_key(config, key, regr=None):
    "Wrangle ACME client construction"
    net = acme_client.ClientNetwork(key, account=regr,
                                    user_agent=determine_user_agent())
    directory = acme_client.ClientV2.get_directory(config.server, net)
    return acme_client.ClientV2(directory, net)


def register(config, account_storage):
    """Register new account with an ACME CA.

    A fresh account key is generated for the registration. The Terms of
    Service must have been agreed to with ``--agree-tos`` if the server
    publishes any.

    :raises certrenew.errors.Error: if the Terms of Service were not
        agreed to
    :raises acme.errors.Error: In case of any protocol problems.

    :returns: Newly registered and saved account, as well as protocol
        API handle.
    :rtype: `tuple` of `Account` and `acme.client.ClientV2`

    """
    rsa_key = generate_private_key(
        public_exponent=65537,
        key_size=config.rsa_key_size,
        backend=default_backend())
    key = jose.JWKRSA(key=jose.ComparableRSAKey(rsa_key))
    acme = acme_from_config_key(config, key)

    terms = acme.directory.meta.terms_of_service
    if terms and not config.agree_tos:
        raise errors.Error(
            "Please read the Terms of Service at {0} and rerun with "
            "--agree-tos to accept them".format(terms))

    regr = acme.new_account(messages.NewRegistration.from_data(
        email=config.email, terms_of_service_agreed=bool(config.agree_tos)))

    acc = Account(regr, key)
    account_storage.save(acc)
    reporter = zope.component.queryUtility(interfaces.IReporter)
    if reporter is not None:
        reporter.add_message(
            "Your account credentials have been saved in {0}. You should "
            "make a secure backup of this folder now.".format(
                config.accounts_dir), reporter.MEDIUM_PRIORITY)
    return acc, acme


def load_or_register(config):
    """Account and ACME API handle for ``config.server``.

    :rtype: `tuple` of `Account` and `acme.client.ClientV2`

    """
    storage = AccountFileStorage(config)
    acc = storage.load()
    if acc is None:
        logger.info("No account for %s, registering", config.server)
        return register(config, storage)
    logger.debug("Using account %s", acc.id)
    acme = acme_from_config_key(config, acc.key, acc.regr)
    return acc, acme


class _ChallengeReady(jose.JSONObjectWithFields):
    """Empty response telling the server to start validation."""


def _challenge_type(challb):
    chall = challb.chall
    if isinstance(chall, challenges.UnrecognizedChallenge):
        return chall.jobj.get("type")
    return chall.typ


def _error_pairs(error):
    if error is None:
        return ()
    pairs = [("type", error.code or error.typ)]
    if error.detail:
        pairs.append(("detail", error.detail))
    return tuple(pairs)


@zope.interface.implementer(interfaces.IAcmeClient)
class AcmeClient(object):
    """`.IAcmeClient` on top of `acme.client.ClientV2`.

    :ivar acme: ACME API handle.
    :type acme: `acme.client.ClientV2`

    :ivar key: Account key.
    :type key: `josepy.JWK`

    :ivar .IConfig config: Client configuration.

    """

    def __init__(self, acme, key, config):
        self.acme = acme
        self.key = key
        self.config = config
        self._order_key = None

    @classmethod
    def from_config(cls, config):
        """Client for the account of ``config.server``."""
        acc, acme = load_or_register(config)
        return cls(acme, acc.key, config)

    def _state(self, authzr):
        body = authzr.body
        parts = [achallenges.ChallengePart(
            typ=_challenge_type(challb),
            status=challb.status.name,
            errors=_error_pairs(challb.error)) for challb in body.challenges]
        return achallenges.AuthorizationState(
            identifier=body.identifier.value,
            status=_STATUS_MAP.get(body.status.name, constants.STATUS_INVALID),
            challenges=parts,
            resource=authzr)

    def _challb(self, authz, challenge_type):
        for challb in authz.resource.body.challenges:
            if _challenge_type(challb) == challenge_type:
                return challb
        raise errors.AuthorizationError(
            "The ACME server did not offer a {0} challenge for {1}".format(
                challenge_type, authz.identifier))

    def authorize_identifier(self, identifier):
        """Place a single identifier order and return its authorization."""
        if self._order_key is None:
            self._order_key = crypto_util.make_key(self.config.rsa_key_size)
        csr_pem = acme_crypto_util.make_csr(self._order_key, [identifier])
        orderr = self.acme.new_order(csr_pem)
        if not orderr.authorizations:
            raise errors.AuthorizationError(
                "No authorization returned for {0}".format(identifier))
        return self._state(orderr.authorizations[0])

    def decode_challenge(self, authz, challenge_type):  # pylint: disable=missing-docstring
        challb = self._challb(authz, challenge_type)
        chall = challb.chall
        if isinstance(chall, challenges.KeyAuthorizationChallenge):
            token = chall.encode("token")
            key_authorization = chall.key_authorization(self.key)
            validation = chall.validation(self.key)
            iteration_count = 1
        else:
            token = chall.jobj.get("token")
            key_authorization = "{0}.{1}".format(
                token, jose.b64encode(self.key.thumbprint()).decode())
            validation = None
            iteration_count = chall.jobj.get("n", 1)
        return achallenges.AnnotatedChallenge(
            typ=challenge_type, identifier=authz.identifier, token=token,
            key_authorization=key_authorization, validation=validation,
            iteration_count=iteration_count, challb=challb)

    def submit_challenge_answer(self, authz, challenge_type, accept):  # pylint: disable=missing-docstring
        if not accept:
            return
        challb = self._challb(authz, challenge_type)
        if isinstance(challb.chall, challenges.KeyAuthorizationChallenge):
            response = challb.chall.response(self.key)
        else:
            response = _ChallengeReady()
        self.acme.answer_challenge(challb, response)

    def refresh_authorization(self, authz):  # pylint: disable=missing-docstring
        authzr, _ = self.acme.poll(authz.resource)
        return self._state(authzr)

    def request_certificate(self, binding):  # pylint: disable=missing-docstring
        key_pem = crypto_util.make_key(self.config.rsa_key_size)
        csr_pem = acme_crypto_util.make_csr(key_pem, binding.hosts())
        orderr = self.acme.new_order(csr_pem)
        orderr = self.acme.poll_and_finalize(orderr)
        if not orderr.fullchain_pem:
            return None
        return certificate.CertificateInfo.from_fullchain(
            orderr.fullchain_pem, key_pem)

    def revoke_certificate(self, cert):  # pylint: disable=missing-docstring
        x509 = crypto_util.pyopenssl_load_certificate(
            cert.cert_pem.encode('ascii'))
        self.acme.revoke(jose.ComparableX509(x509), 0)
        logger.info("Revoked certificate %s", cert.thumbprint)
