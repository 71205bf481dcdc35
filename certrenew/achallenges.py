"""Client annotated ACME challenges and authorization state.

Please use names such as ``achall`` to distinguish annotated challenges
from :class:`acme.messages.ChallengeBody` objects (denoted by
``challb``) and ``authz`` for `AuthorizationState`::

  authz = acme.authorize_identifier('example.com')
  achall = acme.decode_challenge(authz, 'http-01')
  achall.key_authorization

Both types are immutable; refreshing an authorization yields a new
`AuthorizationState`.

"""
import logging
import posixpath

import josepy as jose

from certrenew import constants


logger = logging.getLogger(__name__)


# pylint: disable=too-few-public-methods


class ChallengePart(jose.ImmutableMap):
    """One challenge of an authorization, as last reported by the server.

    :ivar str typ: Challenge type, e.g. ``http-01``.
    :ivar str status: Challenge status.
    :ivar tuple errors: ``(key, value)`` pairs describing a failure.

    """
    __slots__ = ('typ', 'status', 'errors')

    def __init__(self, typ, status=constants.STATUS_PENDING, errors=()):
        super(ChallengePart, self).__init__(
            typ=typ, status=status, errors=tuple(errors))


class AuthorizationState(jose.ImmutableMap):
    """Authorization state of a single identifier.

    :ivar str identifier: DNS name being authorized.
    :ivar str status: ``pending``, ``valid`` or ``invalid``.
    :ivar tuple challenges: `ChallengePart` objects.
    :ivar str problem: Local problem description, set when the
        authorization failed before the ACME server was involved.
    :ivar resource: Opaque handle owned by the `.IAcmeClient`
        implementation (e.g. an `acme.messages.AuthorizationResource`).

    """
    __slots__ = ('identifier', 'status', 'challenges', 'problem', 'resource')

    def __init__(self, identifier, status=constants.STATUS_PENDING,
                 challenges=(), problem=None, resource=None):
        super(AuthorizationState, self).__init__(
            identifier=identifier, status=status,
            challenges=tuple(challenges), problem=problem, resource=resource)

    @classmethod
    def failed(cls, identifier, problem):
        """Invalid state carrying a local problem description."""
        return cls(identifier, constants.STATUS_INVALID, problem=problem)

    @property
    def pending(self):  # pylint: disable=missing-docstring
        return self.status == constants.STATUS_PENDING

    @property
    def valid(self):  # pylint: disable=missing-docstring
        return self.status == constants.STATUS_VALID

    def error_details(self):
        """Error descriptors of every challenge, as ``key: value`` text.

        :rtype: `list` of `str`

        """
        return ["{0}: {1}".format(key, value)
                for chall in self.challenges
                for key, value in chall.errors]

    def __hash__(self):
        # resource is not necessarily hashable
        return hash((self.identifier, self.status, self.challenges,
                     self.problem))


class AnnotatedChallenge(jose.ImmutableMap):
    """Client annotated challenge.

    :ivar str typ: Challenge type.
    :ivar str identifier: DNS name the challenge proves control of.
    :ivar str token: Challenge token.
    :ivar str key_authorization: Token and account key thumbprint.
    :ivar str validation: Value to publish; for ``dns-01`` the digest of
        the key authorization, otherwise the key authorization itself.
    :ivar int iteration_count: Proof certificates for ``tls-sni-01``.
    :ivar challb: Wrapped `~.ChallengeBody`, if any.

    """
    __slots__ = ('typ', 'identifier', 'token', 'key_authorization',
                 'validation', 'iteration_count', 'challb')

    def __init__(self, typ, identifier, token, key_authorization,
                 validation=None, iteration_count=1, challb=None):
        super(AnnotatedChallenge, self).__init__(
            typ=typ, identifier=identifier, token=token,
            key_authorization=key_authorization,
            validation=(key_authorization if validation is None
                        else validation),
            iteration_count=iteration_count, challb=challb)

    @property
    def http01_path(self):
        """Web root relative path of the ``http-01`` answer file."""
        return posixpath.join(constants.HTTP01_URI_ROOT_PATH, self.token)

    @property
    def http01_uri(self):
        """URL the ACME server fetches for ``http-01``."""
        return "http://{0}/{1}".format(self.identifier, self.http01_path)

    @property
    def dns01_record_name(self):
        """Name of the TXT record checked for ``dns-01``."""
        return "{0}.{1}".format(constants.DNS01_LABEL, self.identifier)

    def __hash__(self):
        return hash((self.typ, self.identifier, self.token))
