"""Certrenew interfaces."""
import zope.interface

# pylint: disable=no-self-argument,no-method-argument,no-init,inherit-non-class
# pylint: disable=too-few-public-methods


class IAcmeClient(zope.interface.Interface):
    """ACME client capability used by the renewal engine.

    The wire protocol is the implementation's business; callers only
    exchange `.AuthorizationState`, `.AnnotatedChallenge` and
    `.CertificateInfo` objects with it.

    """

    def authorize_identifier(identifier):
        """Start (or resume) authorization of a single identifier.

        :param str identifier: DNS name to authorize.

        :rtype: `.AuthorizationState`

        """

    def decode_challenge(authz, challenge_type):
        """Extract the challenge of the given type from an authorization.

        :param .AuthorizationState authz: Authorization returned by
            `authorize_identifier`.
        :param str challenge_type: e.g. ``http-01``.

        :rtype: `.AnnotatedChallenge`

        :raises .AuthorizationError: if the server did not offer that
            challenge type.

        """

    def submit_challenge_answer(authz, challenge_type, accept):
        """Tell the ACME server the challenge is ready for validation."""

    def refresh_authorization(authz):
        """Fetch the current state of an authorization.

        :rtype: `.AuthorizationState`

        """

    def request_certificate(binding):
        """Obtain a certificate covering every host of ``binding``.

        :param .Target binding: Renewal binding.

        :returns: Issued certificate, or ``None`` if nothing was issued.
        :rtype: `.CertificateInfo`

        """

    def revoke_certificate(certificate):
        """Revoke a previously issued certificate.

        :param .CertificateInfo certificate: Certificate to revoke.

        """


class IPluginFactory(zope.interface.Interface):
    """Attributes shared by all plugin factories."""

    name = zope.interface.Attribute("Declared plugin name")
    description = zope.interface.Attribute("Short plugin description")
    role = zope.interface.Attribute("Capability role of the plugin")
    noop = zope.interface.Attribute(
        "True for the do-nothing implementation of a role")

    def match(name):
        """Does ``name`` refer to this plugin (case-insensitive)?"""


class ITargetPluginFactory(IPluginFactory):
    """Resolves what a renewal covers."""

    def default(config):
        """Build a `.Target` from unattended configuration, or ``None``."""

    def acquire(config, input_service):
        """Build a `.Target` interactively, or ``None``."""

    def refresh(config, binding):
        """Re-validate a stored binding.

        :returns: Updated `.Target`, or ``None`` when the underlying
            configuration is gone.

        """

    def split(binding):
        """Split a binding into targets authorized independently.

        :rtype: `list` of `.Target`

        """


class IValidationPluginFactory(IPluginFactory):
    """Proves control over identifiers for one challenge type."""

    challenge_type = zope.interface.Attribute("ACME challenge type, e.g. http-01")

    def can_validate(target):
        """Can this plugin validate ``target`` as configured?"""

    def default(target, config):
        """Configure ``target`` from unattended configuration.

        :returns: Configured `.Target`.

        """

    def acquire(target, config, input_service):
        """Configure ``target`` interactively.

        :returns: Configured `.Target`.

        """

    def create(config, renewal, target, identifier):
        """Instantiate the plugin for one identifier.

        :rtype: `IValidationPlugin`

        """


class IValidationPlugin(zope.interface.Interface):
    """Validation plugin bound to a single identifier."""

    def prepare_challenge(achall):
        """Stage the proof material for ``achall``.

        :param .AnnotatedChallenge achall: Decoded challenge.

        :raises .PluginError: if the proof could not be staged.

        """

    def cleanup():
        """Remove whatever `prepare_challenge` staged."""


class IStorePluginFactory(IPluginFactory):
    """Persists issued certificates."""

    def create(config, renewal):
        """Instantiate the store plugin for ``renewal``."""


class IStorePlugin(zope.interface.Interface):
    """Certificate store bound to one renewal."""

    def save(certificate):
        """Save a new `.CertificateInfo`."""

    def delete(certificate):
        """Delete a previously saved `.CertificateInfo`."""

    def find(binding):
        """Find the currently stored certificate for ``binding``.

        :returns: `.CertificateInfo` or ``None``

        """


class IInstallationPluginFactory(IPluginFactory):
    """Puts issued certificates to use."""

    def can_install(renewal):
        """Can this plugin install certificates for ``renewal``?"""

    def default(renewal, config):
        """Configure ``renewal`` from unattended configuration."""

    def acquire(renewal, config, input_service):
        """Configure ``renewal`` interactively."""

    def create(config, renewal):
        """Instantiate the installation plugin for ``renewal``."""


class IInstallationPlugin(zope.interface.Interface):
    """Installation plugin bound to one renewal."""

    def install(new_certificate, old_certificate):
        """Install ``new_certificate``, replacing ``old_certificate``.

        :param .CertificateInfo new_certificate: Freshly issued.
        :param old_certificate: Previous certificate or ``None``.

        """


class IConfig(zope.interface.Interface):
    """Certrenew user-supplied configuration.

    .. warning:: The values stored in the configuration have not been
        filtered, stripped or sanitized.

    """
    server = zope.interface.Attribute("ACME Directory Resource URI.")
    email = zope.interface.Attribute(
        "Email used for registration and recovery contact.")
    rsa_key_size = zope.interface.Attribute("Size of the RSA key.")
    config_dir = zope.interface.Attribute("Configuration directory.")
    logs_dir = zope.interface.Attribute("Logs directory.")
    test = zope.interface.Attribute(
        "Force validation even when cached authorizations exist.")
    force_renewal = zope.interface.Attribute(
        "Renew every scheduled renewal regardless of its due date.")
    http01_port = zope.interface.Attribute(
        "Port used by the self-hosting http-01 plugin.")


class IReporter(zope.interface.Interface):
    """Interface to collect and display information to the user."""

    HIGH_PRIORITY = zope.interface.Attribute(
        "Used to denote high priority messages")
    MEDIUM_PRIORITY = zope.interface.Attribute(
        "Used to denote medium priority messages")
    LOW_PRIORITY = zope.interface.Attribute(
        "Used to denote low priority messages")

    def add_message(msg, priority, on_crash=True):
        """Adds msg to the list of messages to be printed.

        :param str msg: Message to be displayed to the user.

        :param int priority: One of HIGH_PRIORITY, MEDIUM_PRIORITY, or
            LOW_PRIORITY.

        :param bool on_crash: Whether or not the message should be printed if
            the program exits abnormally.

        """

    def report_renewal(renewal, result):
        """Adds the outcome (`.RenewResult`) of processing ``renewal``."""

    def print_messages():
        """Prints messages to the user and clears the message queue."""
