"""Certrenew client errors."""


class Error(Exception):
    """Generic certrenew error."""


class RenewalStorageError(Error):
    """Generic `.RenewalStore` error."""


class AccountStorageError(Error):
    """Account could not be loaded or saved."""


class SubprocessError(Error):
    """Subprocess handling error."""


class SignalExit(Error):
    """A Unix signal was received while in the ErrorHandler context manager."""


class LockError(Error):
    """File locking error."""


class TargetNotFoundError(Error):
    """The renewal's target no longer exists."""


# Auth Handler Errors
class AuthorizationError(Error):
    """Authorization error."""


class AuthorizationTimeout(AuthorizationError):
    """The ACME server did not finalize an authorization in time.

    :ivar str identifier: Identifier that was still pending.
    :ivar int attempts: Number of refresh attempts made.

    """
    def __init__(self, identifier, attempts):
        self.identifier = identifier
        self.attempts = attempts
        super(AuthorizationTimeout, self).__init__(
            "Authorization for {0} still pending after {1} attempts".format(
                identifier, attempts))


class FailedAuthorization(AuthorizationError):
    """Authorization reached the invalid state.

    :ivar .AuthorizationState authz: Terminal authorization state.

    """
    def __init__(self, authz):
        self.authz = authz
        super(FailedAuthorization, self).__init__()

    def __str__(self):
        if self.authz.problem:
            return self.authz.problem
        details = self.authz.error_details()
        if not details:
            return "Authorization failed for {0}".format(
                self.authz.identifier or "unknown identifier")
        return "Authorization failed for {0}: {1}".format(
            self.authz.identifier, "; ".join(details))


# Plugin Errors
class PluginError(Error):
    """Certrenew plugin error."""


class MisconfigurationError(PluginError):
    """Plugin cannot work with the given configuration."""


class ConfigurationError(Error):
    """Configuration sanity error."""
