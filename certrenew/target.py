"""Renewal bindings: the set of host names one certificate covers."""
import josepy as jose

from certrenew import constants


class CredentialOptions(jose.JSONObjectWithFields):
    """User name and password for an upload client (FTP, WebDAV)."""
    user = jose.Field('user', omitempty=True)
    password = jose.Field('password', omitempty=True)

    def __repr__(self):
        return '{0}(user={1!r})'.format(self.__class__.__name__, self.user)


class DnsScriptOptions(jose.JSONObjectWithFields):
    """Scripts creating and deleting the ``dns-01`` TXT record."""
    create_script = jose.Field('create_script', omitempty=True)
    delete_script = jose.Field('delete_script', omitempty=True)


def _derive_host_is_dns(host, alternative_names):
    return not any(name != host for name in alternative_names)


class Target(jose.JSONObjectWithFields):
    """Renewal binding.

    :ivar str host: Primary host name; names the renewal.
    :ivar tuple alternative_names: Additional names on the certificate.
    :ivar bool host_is_dns: Whether ``host`` itself is a DNS name that
        belongs on the certificate. When absent it is derived from
        whether there are alternative names beyond the host.
    :ivar str target_plugin: Name of the target plugin.
    :ivar str validation_plugin: ``<challengeType>.<pluginName>``.
    :ivar str web_root_path: Web root for ``http-01`` plugins.

    """
    host = jose.Field('host')
    alternative_names = jose.Field(
        'alternative_names', default=(), omitempty=True, decoder=tuple)
    host_is_dns = jose.Field('host_is_dns', omitempty=True)
    target_plugin = jose.Field(
        'target_plugin', default="Manual", omitempty=True)
    validation_plugin = jose.Field('validation_plugin', omitempty=True)
    web_root_path = jose.Field('web_root_path', omitempty=True)
    ftp_options = jose.Field('ftp_options', omitempty=True)
    webdav_options = jose.Field('webdav_options', omitempty=True)
    dns_script_options = jose.Field('dns_script_options', omitempty=True)
    tls_directory = jose.Field('tls_directory', omitempty=True)

    @ftp_options.decoder
    def ftp_options(value):  # pylint: disable=missing-docstring,no-self-argument
        return CredentialOptions.from_json(value)

    @webdav_options.decoder
    def webdav_options(value):  # pylint: disable=missing-docstring,no-self-argument
        return CredentialOptions.from_json(value)

    @dns_script_options.decoder
    def dns_script_options(value):  # pylint: disable=missing-docstring,no-self-argument
        return DnsScriptOptions.from_json(value)

    def __init__(self, **kwargs):
        kwargs['alternative_names'] = tuple(kwargs.get('alternative_names', ()))
        if kwargs.get('host_is_dns') is None:
            kwargs['host_is_dns'] = _derive_host_is_dns(
                kwargs.get('host'), kwargs['alternative_names'])
        super(Target, self).__init__(**kwargs)

    @property
    def validation_type(self):
        """Challenge type part of `validation_plugin`, or ``None``."""
        if not self.validation_plugin or '.' not in self.validation_plugin:
            return None
        return self.validation_plugin.split('.', 1)[0]

    @property
    def validation_name(self):
        """Plugin name part of `validation_plugin`, or ``None``."""
        if not self.validation_plugin or '.' not in self.validation_plugin:
            return None
        return self.validation_plugin.split('.', 1)[1]

    def hosts(self):
        """Host names to put on the certificate, primary first.

        Duplicates (case-insensitive) are dropped.

        :rtype: `list` of `str`

        """
        names = [self.host] if self.host_is_dns else []
        names.extend(self.alternative_names)
        seen = set()
        result = []
        for name in names:
            if name and name.lower() not in seen:
                seen.add(name.lower())
                result.append(name)
        return result or [self.host]

    def __str__(self):
        extra = len(self.hosts()) - 1
        if extra > 0:
            return "{0} (+{1} other{2})".format(
                self.host, extra, "" if extra == 1 else "s")
        return self.host


def qualified_validation_name(challenge_type, name):
    """Build the ``<challengeType>.<pluginName>`` form."""
    return "{0}.{1}".format(challenge_type, name)


def from_config(config):
    """Build a binding from ``--host`` and plugin options.

    :param certrenew.interfaces.IConfig config: Configuration object.

    :returns: `Target` or ``None`` when no host was given.

    """
    hosts = list(config.host or [])
    if not hosts:
        return None
    ftp = webdav = dns = None
    if config.ftp_user or config.ftp_password:
        ftp = CredentialOptions(user=config.ftp_user,
                                password=config.ftp_password)
    if config.webdav_user or config.webdav_password:
        webdav = CredentialOptions(user=config.webdav_user,
                                   password=config.webdav_password)
    if config.dns_create_script or config.dns_delete_script:
        dns = DnsScriptOptions(create_script=config.dns_create_script,
                               delete_script=config.dns_delete_script)
    return Target(
        host=hosts[0],
        alternative_names=hosts,
        host_is_dns=True,
        target_plugin=config.target,
        validation_plugin=qualified_validation_name(
            config.validation_mode or constants.HTTP01, config.validation),
        web_root_path=config.webroot,
        ftp_options=ftp,
        webdav_options=webdav,
        dns_script_options=dns,
        tls_directory=config.tls_directory)
