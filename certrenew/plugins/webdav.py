"""WebDAV http-01 validation plugin."""
import logging
from urllib import parse
from xml.etree import ElementTree

import requests
import zope.interface

from certrenew import errors
from certrenew import interfaces
from certrenew import target as target_mod
from certrenew.plugins import http


logger = logging.getLogger(__name__)

_DAV_RESPONSE = "{DAV:}response"


def to_url(path):
    """Turn a ``\\\\host:port\\path`` UNC style path into an URL.

    URLs are returned unchanged.

    """
    if path.startswith("\\\\"):
        rest = path[2:].replace("\\", "/")
        host, _, remainder = rest.partition("/")
        scheme = "https" if host.endswith(":443") else "http"
        return "{0}://{1}/{2}".format(scheme, host, remainder)
    return path


class WebDavClient(object):
    """Minimal WebDAV client on top of `requests`.

    :param credentials: `.CredentialOptions` or ``None``

    """

    def __init__(self, credentials, session=None):
        self.session = requests.Session() if session is None else session
        if credentials and credentials.user:
            self.session.auth = (credentials.user, credentials.password or "")

    def _request(self, method, url, **kwargs):
        try:
            return self.session.request(method, to_url(url), timeout=30,
                                        **kwargs)
        except requests.exceptions.RequestException as error:
            raise errors.PluginError(
                "WebDAV {0} {1} failed: {2}".format(method, url, error))

    def _make_folders(self, url):
        parts = parse.urlparse(url)
        segments = [segment for segment in parts.path.split("/") if segment]
        current = ""
        for segment in segments[:-1]:
            current += "/" + segment
            response = self._request(
                "MKCOL", parse.urlunparse(parts._replace(path=current + "/")))
            # 405: already exists
            if response.status_code not in (201, 405):
                logger.debug("MKCOL %s returned %s", current,
                             response.status_code)

    def upload(self, url, content):
        """PUT ``content`` at ``url``, creating parent collections."""
        url = to_url(url)
        self._make_folders(url)
        response = self._request("PUT", url, data=content.encode("utf-8"))
        if response.status_code not in (200, 201, 204):
            raise errors.PluginError(
                "Error uploading file {0}: HTTP {1}".format(
                    url, response.status_code))
        logger.debug("Upload status %s", response.status_code)

    def delete(self, url):
        """DELETE the resource (file or collection) at ``url``."""
        response = self._request("DELETE", url)
        if response.status_code not in (200, 204, 404):
            raise errors.PluginError(
                "Error deleting {0}: HTTP {1}".format(
                    url, response.status_code))

    def list_files(self, url):
        """Members of the collection at ``url``, ``None`` if unknown."""
        response = self._request(
            "PROPFIND", url.rstrip("/\\") + "/", headers={"Depth": "1"})
        if response.status_code != 207:
            return None
        try:
            root = ElementTree.fromstring(response.content)
        except ElementTree.ParseError:
            logger.debug("Invalid PROPFIND response from %s", url)
            return None
        hrefs = [element.findtext("{DAV:}href")
                 for element in root.iter(_DAV_RESPONSE)]
        # the first response describes the collection itself
        return hrefs[1:]


@zope.interface.implementer(interfaces.IValidationPlugin)
class WebDav(http.HttpValidation):
    """Uploads validation files to a WebDAV share."""
    path_separator = "/"

    def __init__(self, *args, **kwargs):
        super(WebDav, self).__init__(*args, **kwargs)
        self.client = WebDavClient(self.target.webdav_options)

    def combine_path(self, root, path):
        return super(WebDav, self).combine_path(to_url(root), path)

    def write_file(self, path, content):
        self.client.upload(path, content)

    def delete_file(self, path):
        self.client.delete(path)

    def delete_folder(self, path):
        self.client.delete(path)

    def is_empty(self, path):
        return self.client.list_files(path) == []


@zope.interface.implementer(interfaces.IValidationPluginFactory)
class WebDavFactory(http.HttpValidationFactory):
    """WebDav validation plugin."""
    name = "WebDav"
    description = "Upload verification file to WebDav path"
    plugin_class = WebDav
    webroot_hint = (
        "Enter a webdav path that leads to the web root of the host",
        " Example, \\\\domain.com:80\\",
        " Example, \\\\domain.com:443\\",
    )

    def valid_webroot(self, target):
        return target.web_root_path.lower().startswith(("\\\\", "http"))

    def default(self, target, config):
        target = super(WebDavFactory, self).default(target, config)
        if target.webdav_options is None and config.webdav_user:
            target = target.update(webdav_options=target_mod.CredentialOptions(
                user=config.webdav_user, password=config.webdav_password))
        return target
