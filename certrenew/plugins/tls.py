"""tls-sni-01 validation plugins."""
import logging
import os

import zope.interface

from certrenew import constants
from certrenew import crypto_util
from certrenew import errors
from certrenew import interfaces
from certrenew import util
from certrenew.plugins import common

logger = logging.getLogger(__name__)


@zope.interface.implementer(interfaces.IValidationPlugin)
class TlsValidation(common.ValidationPlugin):
    """Base for tls-sni-01 validation plugins.

    Generates the proof certificates for the challenge and hands each
    one to `install_certificate`; `remove_certificate` undoes it.

    """

    def __init__(self, *args, **kwargs):
        super(TlsValidation, self).__init__(*args, **kwargs)
        self.certificates = []

    def prepare_challenge(self, achall):
        self.certificates = crypto_util.gen_proof_certificates(
            achall.key_authorization, achall.iteration_count)
        for proof in self.certificates:
            self.install_certificate(proof)

    def cleanup(self):
        """Remove every proof certificate, even after a failure.

        :raises .errors.PluginError: the first removal failure

        """
        failure = None
        while self.certificates:
            proof = self.certificates.pop()
            try:
                self.remove_certificate(proof)
            except errors.PluginError as error:
                logger.error("%s", error)
                failure = failure or error
        if failure is not None:
            raise failure

    def install_certificate(self, proof):
        """Make ``proof`` (a `.ProofCertificate`) available to the world."""
        raise NotImplementedError()

    def remove_certificate(self, proof):
        """Undo `install_certificate`."""
        raise NotImplementedError()


class PemDirectory(TlsValidation):
    """Writes proof certificates as ``<san>.pem`` for a TLS terminator."""

    @property
    def directory(self):  # pylint: disable=missing-docstring
        return self.target.tls_directory or self.config.tls_directory

    def _path(self, proof):
        return os.path.join(self.directory, proof.san + ".pem")

    def install_certificate(self, proof):
        path = self._path(proof)
        logger.debug("Writing proof certificate %s", path)
        try:
            util.make_or_verify_dir(self.directory, 0o700)
            util.atomic_write(path, proof.pem, chmod=0o600)
        except OSError as error:
            raise errors.PluginError(
                "Couldn't write proof certificate {0}: {1}".format(path, error))

    def remove_certificate(self, proof):
        path = self._path(proof)
        logger.debug("Removing proof certificate %s", path)
        try:
            util.safely_remove(path)
        except OSError as error:
            raise errors.PluginError(
                "Couldn't remove proof certificate {0}: {1}".format(
                    path, error))


@zope.interface.implementer(interfaces.IValidationPluginFactory)
class PemDirectoryFactory(common.ValidationPluginFactory):
    """PemDirectory validation plugin."""
    name = "PemDirectory"
    description = "Write proof certificates to a directory for a TLS server"
    challenge_type = constants.TLSSNI01
    plugin_class = PemDirectory

    def can_validate(self, target):
        return bool(target.tls_directory)

    def default(self, target, config):
        directory = target.tls_directory or config.tls_directory
        if not directory:
            raise errors.MisconfigurationError(
                "PemDirectory validation requires --tls-directory")
        return target.update(validation_plugin=self.qualified_name,
                             tls_directory=directory)

    def acquire(self, target, config, input_service):
        if not target.tls_directory and not config.tls_directory:
            target = target.update(tls_directory=input_service.request_string(
                "Enter the directory your TLS server loads certificates from"))
        return self.default(target, config)
