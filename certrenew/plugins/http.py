"""http-01 validation: publish the key authorization under the web root."""
import errno
import logging
import os

import requests
import zope.interface

from certrenew import constants
from certrenew import errors
from certrenew import interfaces
from certrenew.plugins import common

logger = logging.getLogger(__name__)

REMOTE_PREFIXES = ("ftp", "\\\\", "http")
"""Web roots starting with these are handled by the upload plugins."""


def is_remote(web_root):
    """Does ``web_root`` point to another machine?"""
    return web_root.lower().startswith(REMOTE_PREFIXES)


class HttpValidationFactory(common.ValidationPluginFactory):
    """Base for http-01 validation factories.

    :cvar tuple webroot_hint: Lines shown when asking for the web root.

    """
    challenge_type = constants.HTTP01
    webroot_hint = ("Enter the path to the web root of the host",)

    def valid_webroot(self, target):
        """Can this plugin write to the web root of ``target``?"""
        return not is_remote(target.web_root_path)

    def can_validate(self, target):
        return not target.web_root_path or self.valid_webroot(target)

    def default(self, target, config):
        web_root = target.web_root_path or config.webroot
        if not web_root:
            raise errors.MisconfigurationError(
                "{0} validation requires --webroot".format(self.name))
        target = target.update(validation_plugin=self.qualified_name,
                               web_root_path=web_root)
        if not self.valid_webroot(target):
            raise errors.MisconfigurationError(
                "{0} is not a valid web root for {1} validation".format(
                    web_root, self.name))
        return target

    def acquire(self, target, config, input_service):
        if not target.web_root_path and not config.webroot:
            target = target.update(web_root_path=input_service.request_string(
                "\n".join(self.webroot_hint)))
        return self.default(target, config)


@zope.interface.implementer(interfaces.IValidationPlugin)
class HttpValidation(common.ValidationPlugin):
    """Base for http-01 validation plugins.

    Subclasses implement the file operations for their kind of web root.

    """
    path_separator = os.path.sep

    def __init__(self, *args, **kwargs):
        super(HttpValidation, self).__init__(*args, **kwargs)
        self._path = None

    @property
    def web_root(self):  # pylint: disable=missing-docstring
        return self.target.web_root_path

    def combine_path(self, root, path):
        """Join a web root relative ``path`` (``/`` separated) to ``root``.

        :raises .errors.MisconfigurationError: if there is no ``root``

        """
        if not root:
            raise errors.MisconfigurationError(
                "No web root configured for {0}".format(self.identifier))
        root = root.rstrip("/\\")
        return root + self.path_separator + path.replace(
            "/", self.path_separator)

    def write_file(self, path, content):
        """Create the file ``path`` containing ``content``."""
        raise NotImplementedError()

    def delete_file(self, path):
        """Delete the file ``path``."""
        raise NotImplementedError()

    def delete_folder(self, path):
        """Delete the (empty) folder ``path``."""
        raise NotImplementedError()

    def is_empty(self, path):
        """Is the folder ``path`` empty?"""
        raise NotImplementedError()

    def prepare_challenge(self, achall):
        self._path = self.combine_path(self.web_root, achall.http01_path)
        logger.debug("Writing validation for %s to %s",
                     self.identifier, self._path)
        self.write_file(self._path, achall.key_authorization)
        if self.test:
            self.check_published(achall)

    def check_published(self, achall):
        """Warn if the answer is not reachable at its public URL."""
        uri = achall.http01_uri
        logger.info("Checking %s", uri)
        try:
            response = requests.get(uri, timeout=30)
        except requests.exceptions.RequestException as error:
            logger.warning("Unable to fetch %s: %s", uri, error)
            return False
        if response.text.strip() != achall.key_authorization:
            logger.warning(
                "Answer at %s does not match the expected key "
                "authorization (HTTP %s)", uri, response.status_code)
            return False
        return True

    def cleanup(self):
        if self._path is None:
            return
        logger.debug("Removing %s", self._path)
        self.delete_file(self._path)
        self._path = None
        # remove .well-known/acme-challenge, then .well-known, if empty
        for relative in (constants.HTTP01_URI_ROOT_PATH,
                         constants.HTTP01_URI_ROOT_PATH.split("/")[0]):
            folder = self.combine_path(self.web_root, relative)
            if not self.is_empty(folder):
                logger.debug("Not removing %s, it is not empty", folder)
                return
            self.delete_folder(folder)


class FileSystem(HttpValidation):
    """Writes validation files to a local web root."""

    def write_file(self, path, content):
        # world-readable, owner-writable
        old_umask = os.umask(0o022)
        try:
            os.makedirs(os.path.dirname(path), 0o755, exist_ok=True)
            with open(path, "w") as validation_file:
                validation_file.write(content)
        except OSError as error:
            raise errors.PluginError(
                "Couldn't write {0}: {1}".format(path, error))
        finally:
            os.umask(old_umask)

    def delete_file(self, path):
        try:
            os.remove(path)
        except OSError as error:
            if error.errno != errno.ENOENT:
                raise errors.PluginError(
                    "Couldn't remove {0}: {1}".format(path, error))

    def delete_folder(self, path):
        try:
            os.rmdir(path)
        except OSError as error:
            logger.info("Unable to clean up challenge directory %s", path)
            logger.debug("Error was: %s", error)

    def is_empty(self, path):
        return os.path.isdir(path) and not os.listdir(path)


@zope.interface.implementer(interfaces.IValidationPluginFactory)
class FileSystemFactory(HttpValidationFactory):
    """FileSystem validation plugin."""
    name = "FileSystem"
    description = "Save verification files on (network) path"
    plugin_class = FileSystem
