"""Tests for certrenew.plugins.webdav."""
import unittest

import mock
import requests

from certrenew import errors
from certrenew import target as target_mod
from certrenew.tests import util as test_util
from certrenew.tests.plugins.http_test import make_achall

PROPFIND_RESPONSE = b"""<?xml version="1.0" encoding="utf-8"?>
<d:multistatus xmlns:d="DAV:">
  <d:response><d:href>/www/.well-known/</d:href></d:response>
  <d:response><d:href>/www/.well-known/acme-challenge/</d:href></d:response>
</d:multistatus>
"""

EMPTY_PROPFIND_RESPONSE = b"""<?xml version="1.0" encoding="utf-8"?>
<d:multistatus xmlns:d="DAV:">
  <d:response><d:href>/www/.well-known/</d:href></d:response>
</d:multistatus>
"""


def _response(status_code, content=b""):
    return mock.MagicMock(status_code=status_code, content=content)


class ToUrlTest(unittest.TestCase):
    """Tests for certrenew.plugins.webdav.to_url."""

    def test_it(self):
        from certrenew.plugins.webdav import to_url
        self.assertEqual(to_url("\\\\example.com:80\\www\\site"),
                         "http://example.com:80/www/site")
        self.assertEqual(to_url("\\\\example.com:443\\"),
                         "https://example.com:443/")
        self.assertEqual(to_url("https://example.com/dav"),
                         "https://example.com/dav")


class WebDavClientTest(unittest.TestCase):
    """Tests for certrenew.plugins.webdav.WebDavClient."""

    def setUp(self):
        from certrenew.plugins.webdav import WebDavClient
        self.session = mock.MagicMock()
        self.client = WebDavClient(
            target_mod.CredentialOptions(user="user", password="secret"),
            session=self.session)

    def _calls(self):
        return [(call[0][0], call[0][1])
                for call in self.session.request.call_args_list]

    def test_auth(self):
        self.assertEqual(self.session.auth, ("user", "secret"))

    def test_upload(self):
        self.session.request.side_effect = [
            _response(405), _response(201), _response(201)]
        self.client.upload("https://example.com/www/sub/file", "auth")
        self.assertEqual(self._calls(), [
            ("MKCOL", "https://example.com/www/"),
            ("MKCOL", "https://example.com/www/sub/"),
            ("PUT", "https://example.com/www/sub/file"),
        ])
        self.assertEqual(self.session.request.call_args[1]["data"], b"auth")

    def test_upload_failure(self):
        self.session.request.return_value = _response(403)
        self.assertRaises(errors.PluginError, self.client.upload,
                          "https://example.com/file", "auth")

    def test_request_error(self):
        self.session.request.side_effect = requests.exceptions.ConnectionError
        self.assertRaises(errors.PluginError, self.client.delete,
                          "https://example.com/file")

    def test_delete(self):
        self.session.request.return_value = _response(404)
        self.client.delete("\\\\example.com:80\\www\\file")
        self.assertEqual(self._calls(),
                         [("DELETE", "http://example.com:80/www/file")])

    def test_delete_failure(self):
        self.session.request.return_value = _response(500)
        self.assertRaises(errors.PluginError, self.client.delete,
                          "https://example.com/file")

    def test_list_files(self):
        self.session.request.return_value = _response(207, PROPFIND_RESPONSE)
        self.assertEqual(self.client.list_files("https://example.com/www/.well-known"),
                         ["/www/.well-known/acme-challenge/"])
        self.assertEqual(self.session.request.call_args[1]["headers"],
                         {"Depth": "1"})
        self.assertEqual(self._calls(), [
            ("PROPFIND", "https://example.com/www/.well-known/")])

    def test_list_files_empty(self):
        self.session.request.return_value = _response(
            207, EMPTY_PROPFIND_RESPONSE)
        self.assertEqual(self.client.list_files("https://example.com/www"), [])

    def test_list_files_unknown(self):
        self.session.request.return_value = _response(404)
        self.assertTrue(self.client.list_files("https://example.com/x") is None)
        self.session.request.return_value = _response(207, b"<not xml")
        self.assertTrue(self.client.list_files("https://example.com/x") is None)


class WebDavTest(test_util.ConfigTestCase):
    """Tests for certrenew.plugins.webdav.WebDav."""

    def setUp(self):
        super(WebDavTest, self).setUp()
        from certrenew.plugins.webdav import WebDav
        with mock.patch("certrenew.plugins.webdav.WebDavClient") as mock_client:
            self.plugin = WebDav(
                self.config, mock.MagicMock(test=False),
                target_mod.Target(host="example.com",
                                  web_root_path="\\\\example.com:80\\www"),
                "example.com")
        self.client = mock_client.return_value

    def test_prepare_and_cleanup(self):
        root = "http://example.com:80/www"
        self.plugin.prepare_challenge(make_achall())
        self.client.upload.assert_called_once_with(
            root + "/.well-known/acme-challenge/ZXhhbXBsZQ",
            "ZXhhbXBsZQ.thumbprint")

        self.client.list_files.side_effect = [[], ["other"]]
        self.plugin.cleanup()
        self.assertEqual(self.client.delete.call_args_list, [
            mock.call(root + "/.well-known/acme-challenge/ZXhhbXBsZQ"),
            mock.call(root + "/.well-known/acme-challenge"),
        ])


class WebDavFactoryTest(test_util.ConfigTestCase):
    """Tests for certrenew.plugins.webdav.WebDavFactory."""

    def setUp(self):
        super(WebDavFactoryTest, self).setUp()
        from certrenew.plugins.webdav import WebDavFactory
        self.factory = WebDavFactory()
        self.target = target_mod.Target(host="example.com")

    def test_can_validate(self):
        for root in ("\\\\example.com\\www", "https://example.com/dav"):
            self.assertTrue(self.factory.can_validate(
                self.target.update(web_root_path=root)))
        self.assertFalse(self.factory.can_validate(
            self.target.update(web_root_path="ftp://example.com/www")))

    def test_default(self):
        self.config.webroot = "https://example.com/dav"
        self.config.webdav_user = "user"
        self.config.webdav_password = "secret"
        target = self.factory.default(self.target, self.config)
        self.assertEqual(target.validation_plugin, "http-01.WebDav")
        self.assertEqual(target.webdav_options.user, "user")


if __name__ == "__main__":
    unittest.main()  # pragma: no cover
