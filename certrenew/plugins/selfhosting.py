"""Self-hosting http-01 validation plugin.

Runs a small HTTP server on ``--http01-port`` that answers requests
for ``/.well-known/acme-challenge/<token>`` from memory, so no web
server needs to be configured.

"""
import http.server
import logging
import socket
import threading

import zope.interface

from certrenew import errors
from certrenew import interfaces
from certrenew.plugins import http as http_plugins

logger = logging.getLogger(__name__)


class _ChallengeRequestHandler(http.server.BaseHTTPRequestHandler):
    """Serves the resources of the owning `ChallengeServer`."""

    def log_message(self, format, *args):  # pylint: disable=redefined-builtin
        logger.debug("%s - - %s", self.client_address[0], format % args)

    def do_GET(self):  # pylint: disable=invalid-name,missing-docstring
        content = self.server.resources.get(self.path.split("?", 1)[0])
        if content is None:
            logger.warning("SelfHosting plugin couldn't serve %s", self.path)
            self.send_response(404)
            self.end_headers()
            return
        logger.debug("SelfHosting plugin serving %s", self.path)
        body = content.encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class ChallengeServer(http.server.HTTPServer):
    """HTTP server answering http-01 requests from ``resources``.

    :ivar dict resources: URL path to response body.

    """
    allow_reuse_address = True

    def __init__(self, server_address):
        self.resources = {}
        self._thread = None
        http.server.HTTPServer.__init__(
            self, server_address, _ChallengeRequestHandler)

    def start(self):
        """Serve in a background thread."""
        self._thread = threading.Thread(target=self.serve_forever)
        self._thread.daemon = True
        self._thread.start()

    def stop(self):
        """Stop serving and close the socket."""
        if self._thread is not None:
            self.shutdown()
            self._thread.join()
            self._thread = None
        self.server_close()


@zope.interface.implementer(interfaces.IValidationPlugin)
class SelfHosting(http_plugins.HttpValidation):
    """Answers the challenge from a built-in HTTP server."""
    path_separator = "/"

    def __init__(self, *args, **kwargs):
        super(SelfHosting, self).__init__(*args, **kwargs)
        self.server = None

    def combine_path(self, root, path):
        return self.path_separator + path

    def prepare_challenge(self, achall):
        port = self.config.http01_port
        try:
            self.server = ChallengeServer(("", port))
        except socket.error as error:
            raise errors.PluginError(
                "Could not bind TCP port {0}: {1}".format(port, error))
        self.server.start()
        logger.debug("Listening for http-01 requests on port %d", port)
        super(SelfHosting, self).prepare_challenge(achall)

    def write_file(self, path, content):
        self.server.resources[path] = content

    def delete_file(self, path):
        self.server.resources.pop(path, None)

    def delete_folder(self, path):
        pass

    def is_empty(self, path):
        return False

    def cleanup(self):
        try:
            if self.server is not None:
                super(SelfHosting, self).cleanup()
        finally:
            if self.server is not None:
                self.server.stop()
                self.server = None


@zope.interface.implementer(interfaces.IValidationPluginFactory)
class SelfHostingFactory(http_plugins.HttpValidationFactory):
    """SelfHosting validation plugin."""
    name = "SelfHosting"
    description = "Self-host verification files"
    plugin_class = SelfHosting

    def can_validate(self, target):
        return True

    def default(self, target, config):
        return target.update(validation_plugin=self.qualified_name)

    def acquire(self, target, config, input_service):
        return self.default(target, config)
