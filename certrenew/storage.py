"""Scheduled renewals storage."""
import datetime
import json
import logging
import os

import josepy as jose
import parsedatetime
import pyrfc3339
import pytz

from acme import fields as acme_fields

from certrenew import constants
from certrenew import errors
from certrenew import target as target_mod
from certrenew import util

logger = logging.getLogger(__name__)


def now():
    """Current time, aware UTC, without microseconds.

    pyrfc3339 drops microseconds, so values survive a save/load cycle.

    """
    return datetime.datetime.now(tz=pytz.UTC).replace(microsecond=0)


def add_time_interval(base_time, interval, textparser=parsedatetime.Calendar()):
    """Parse the time specified time interval, and add it to the base_time

    The interval can be in the English-language format understood by
    parsedatetime, e.g., '10 days', '3 weeks', '6 months', '9 hours', or
    a sequence of such intervals like '6 months 1 week' or '3 days 12
    hours'. If an integer is found with no associated unit, it is
    interpreted by default as a number of days.

    :param datetime.datetime base_time: The time to be added with the interval.
    :param str interval: The time interval to parse.

    :returns: The base_time plus the interpretation of the time interval.
    :rtype: :class:`datetime.datetime`"""

    if interval.strip().isdigit():
        interval += " days"

    # try to use the same timezone, but fallback to UTC
    tzinfo = base_time.tzinfo or pytz.UTC

    return textparser.parseDT(interval, base_time, tzinfo=tzinfo)[0]


def should_renew(now_time, due_date, force=False):
    """Is a renewal due?

    A renewal is due once its due date has passed; ``due_date == now``
    is not due yet.

    :param datetime.datetime now_time: Current time.
    :param datetime.datetime due_date: Scheduled date.
    :param bool force: Renew regardless of the date.

    :rtype: bool

    """
    return force or due_date < now_time


class RenewResult(jose.JSONObjectWithFields):
    """Outcome of one renewal attempt.

    :ivar bool success: Whether a certificate was issued and installed.
    :ivar datetime.datetime date: When the attempt finished.
    :ivar str thumbprint: Thumbprint of the issued certificate.
    :ivar str error_message: What went wrong.
    :ivar tuple errors: Error details reported by the ACME server.

    """
    success = jose.Field('success')
    date = acme_fields.RFC3339Field('date')
    thumbprint = jose.Field('thumbprint', omitempty=True)
    error_message = jose.Field('error_message', omitempty=True)
    errors = jose.Field('errors', default=(), omitempty=True, decoder=tuple)

    @classmethod
    def succeeded(cls, thumbprint=None, error_message=None):
        """Successful result, stamped with the current time."""
        return cls(success=True, date=now(), thumbprint=thumbprint,
                   error_message=error_message)

    @classmethod
    def failed(cls, error_message, errors=()):  # pylint: disable=redefined-outer-name
        """Failed result, stamped with the current time."""
        return cls(success=False, date=now(), error_message=error_message,
                   errors=tuple(errors))

    def __str__(self):
        text = "{0} at {1}".format("Success" if self.success else "Error",
                                   pyrfc3339.generate(self.date))
        if self.thumbprint:
            text += " (thumbprint {0})".format(self.thumbprint)
        if self.error_message:
            text += ": {0}".format(self.error_message)
        return text


class ScheduledRenewal(jose.JSONDeSerializable):
    """Persisted intent to keep the certificate of a binding current.

    :ivar .Target binding: Host names and validation settings.
    :ivar datetime.datetime due_date: Renew once this has passed.
    :ivar bool new: Not yet part of the `RenewalStore`.
    :ivar bool test: Run in test mode (always validate, check answers).
    :ivar bool keep_existing: Never delete the previous certificate.
    :ivar str store_plugin: Name of the store plugin.
    :ivar list installation_plugins: Names of the installation plugins.
    :ivar str script: Script for the ``Script`` installation plugin.
    :ivar str script_parameters: Its parameters.
    :ivar list history: `RenewResult` objects, oldest first.
    :ivar bool dirty: The history must be written on the next persist.

    """
    # pylint: disable=too-many-instance-attributes

    def __init__(self, binding, due_date=None, new=False, test=False,
                 keep_existing=False, store_plugin=None,
                 installation_plugins=(), script=None,
                 script_parameters=None, history=None):
        if binding is None or not binding.host:
            raise ValueError("A renewal needs a binding with a host")
        if binding.validation_plugin and binding.validation_type is None:
            raise ValueError(
                "Invalid validation plugin name {0!r}, expected "
                "<challengeType>.<name>".format(binding.validation_plugin))
        self.binding = binding
        self.due_date = now() if due_date is None else due_date
        self.new = new
        self.test = test
        self.keep_existing = keep_existing
        self.store_plugin = store_plugin
        self.installation_plugins = list(installation_plugins)
        self.script = script
        self.script_parameters = script_parameters
        self.history = [] if history is None else list(history)
        self.dirty = False

    @property
    def host(self):  # pylint: disable=missing-docstring
        return self.binding.host

    def to_partial_json(self):
        jobj = {
            "binding": self.binding,
            "due_date": pyrfc3339.generate(self.due_date),
        }
        if self.test:
            jobj["test"] = True
        if self.keep_existing:
            jobj["keep_existing"] = True
        if self.store_plugin:
            jobj["store_plugin"] = self.store_plugin
        if self.installation_plugins:
            jobj["installation_plugins"] = list(self.installation_plugins)
        if self.script:
            jobj["script"] = self.script
        if self.script_parameters:
            jobj["script_parameters"] = self.script_parameters
        return jobj

    @classmethod
    def from_json(cls, jobj):
        """Deserialize a renewal record.

        ``history`` is taken from the record when present; otherwise it
        is ``None`` and the `RenewalStore` loads it from its own file.

        :raises josepy.errors.DeserializationError: on malformed input

        """
        if not isinstance(jobj, dict):
            raise jose.DeserializationError(
                "Expected a JSON object, got {0!r}".format(type(jobj)))
        try:
            binding = target_mod.Target.from_json(jobj["binding"])
            due_date = pyrfc3339.parse(jobj["due_date"])
            history = None
            if jobj.get("history") is not None:
                history = [RenewResult.from_json(item)
                           for item in jobj["history"]]
            renewal = cls(
                binding, due_date,
                test=bool(jobj.get("test", False)),
                keep_existing=bool(jobj.get("keep_existing", False)),
                store_plugin=jobj.get("store_plugin"),
                installation_plugins=jobj.get("installation_plugins") or (),
                script=jobj.get("script"),
                script_parameters=jobj.get("script_parameters"),
                history=history)
        except (KeyError, TypeError, ValueError) as error:
            raise jose.DeserializationError(error)
        if history is None:
            renewal.history = None
        return renewal

    def __str__(self):
        return "{0} - renew after {1}".format(
            self.binding, self.due_date.strftime("%Y-%m-%d"))

    def __repr__(self):
        return "<{0}({1!r}, due {2})>".format(
            self.__class__.__name__, self.binding.host,
            pyrfc3339.generate(self.due_date))


class RenewalStore(object):
    """Durable collection of `ScheduledRenewal` objects.

    The collection is loaded from ``renewals.json`` on first access and
    written back by `persist`. Histories live in one
    ``<host>.history.json`` file per renewal.

    :ivar config: `.IConfig`

    """

    def __init__(self, config):
        self.config = config
        self._renewals = None

    @property
    def path(self):  # pylint: disable=missing-docstring
        return self.config.renewals_path

    @property
    def renewals(self):
        """All scheduled renewals, loading them if needed.

        :rtype: `list` of `ScheduledRenewal`

        """
        if self._renewals is None:
            self._renewals = self.load()
        return self._renewals

    def history_path(self, host):
        """Path of the history file of ``host``."""
        return os.path.join(
            self.config.config_dir, host + constants.HISTORY_SUFFIX)

    def load(self):
        """Read the renewals from disk.

        Records that cannot be decoded are logged and skipped.

        :rtype: `list` of `ScheduledRenewal`

        """
        if not os.path.isfile(self.path):
            logger.debug("No renewals file at %s", self.path)
            return []
        try:
            with open(self.path) as renewals_file:
                records = json.load(renewals_file)
        except (IOError, ValueError) as error:
            raise errors.RenewalStorageError(
                "Unable to read {0}: {1}".format(self.path, error))
        if not isinstance(records, list):
            raise errors.RenewalStorageError(
                "{0} does not contain a list of renewals".format(self.path))

        renewals = []
        for record in records:
            try:
                renewal = ScheduledRenewal.from_json(record)
            except jose.DeserializationError as error:
                logger.error("Unable to deserialize renewal %r: %s",
                             record, error)
                continue
            if renewal.history is None:
                renewal.history = self._load_history(renewal.host)
            renewals.append(renewal)
        return renewals

    def _load_history(self, host):
        path = self.history_path(host)
        try:
            with open(path) as history_file:
                return [RenewResult.from_json(item)
                        for item in json.load(history_file)]
        except (IOError, ValueError, TypeError,
                jose.DeserializationError) as error:
            logger.warning("Unable to read history file %s", path)
            logger.debug("Error was: %s", error)
            return []

    def find(self, binding):
        """Renewal whose binding has exactly the host of ``binding``.

        :returns: `ScheduledRenewal` or ``None``

        """
        for renewal in self.renewals:
            if renewal.binding.host == binding.host:
                return renewal
        return None

    def due(self, now_time=None, force=False):
        """Renewals due at ``now_time`` (default: now)."""
        now_time = now() if now_time is None else now_time
        return [renewal for renewal in self.renewals
                if should_renew(now_time, renewal.due_date, force)]

    def save(self, renewal, result):
        """Record ``result`` for ``renewal`` and persist everything.

        A new renewal replaces any other renewal with the same host. On
        success the due date moves to now plus the renewal interval,
        never backwards.

        :param ScheduledRenewal renewal: Renewal that was processed.
        :param RenewResult result: Outcome of the attempt.

        """
        previous_due_date = renewal.due_date
        renewal.history.append(result)

        renewals = self.renewals
        for index, existing in enumerate(renewals):
            if existing.binding.host == renewal.binding.host:
                renewals[index] = renewal
                break
        else:
            renewals.append(renewal)

        if result.success:
            next_date = add_time_interval(
                now(), self.config.settings.renewal_interval)
            if next_date > renewal.due_date:
                renewal.due_date = next_date
            logger.info("Next renewal of %s scheduled at %s",
                        renewal.host, pyrfc3339.generate(renewal.due_date))
        else:
            logger.error("Renewal for %s failed, will retry on next run",
                         renewal.host)

        renewal.dirty = True
        try:
            self.persist()
        except errors.RenewalStorageError:
            # keep memory in line with what is on disk
            renewal.history.pop()
            renewal.due_date = previous_due_date
            renewal.dirty = False
            raise
        renewal.new = False

    def cancel(self, renewal):
        """Remove ``renewal`` and persist."""
        self._renewals = [existing for existing in self.renewals
                          if existing.binding.host != renewal.binding.host]
        self.persist()
        logger.warning("Renewal %s cancelled", renewal.binding)

    def cancel_all(self):
        """Remove every renewal and persist."""
        self._renewals = []
        self.persist()
        logger.warning("All renewals cancelled")

    def persist(self):
        """Write the histories of dirty renewals, then the renewals file.

        The due dates are only committed once every history is written.

        :raises .errors.RenewalStorageError: if writing fails

        """
        renewals = self.renewals
        try:
            util.make_or_verify_dir(self.config.config_dir, 0o755)
            for renewal in renewals:
                if renewal.dirty:
                    util.atomic_write(
                        self.history_path(renewal.host),
                        _dumps([result.to_json()
                                for result in renewal.history]),
                        chmod=0o600)
                    renewal.dirty = False
            util.atomic_write(self.path, _dumps(
                [renewal.to_json() for renewal in renewals]), chmod=0o600)
        except OSError as error:
            raise errors.RenewalStorageError(
                "Unable to save renewals to {0}: {1}".format(
                    self.config.config_dir, error))


def _dumps(data):
    return json.dumps(data, indent=4, sort_keys=True) + "\n"
