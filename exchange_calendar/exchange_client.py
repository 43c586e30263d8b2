"""Exchange client wrapper for exchangelib.

Owns the exchangelib Account for one stored credential and performs the
blocking EWS calls behind the calendar service.
"""
from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timezone

from exchangelib import (
    Account,
    BASIC,
    CalendarItem,
    Configuration,
    Credentials,
    DELEGATE,
    EWSDateTime,
    NTLM,
)
from exchangelib.errors import ErrorItemNotFound
from exchangelib.folders import Calendar
from exchangelib.items import (
    ALWAYS_OVERWRITE,
    SEND_TO_ALL_AND_SAVE_COPY,
    SEND_TO_CHANGED_AND_SAVE_COPY,
)
from exchangelib.properties import Attendee, Mailbox
from exchangelib.protocol import BaseProtocol, NoVerifyHTTPAdapter
from exchangelib.version import (
    EXCHANGE_2007_SP1,
    EXCHANGE_2010,
    EXCHANGE_2010_SP1,
    EXCHANGE_2010_SP2,
    EXCHANGE_2013,
    EXCHANGE_2013_SP1,
    EXCHANGE_2015,
    EXCHANGE_2016,
    EXCHANGE_2019,
    Version,
)

from .const import (
    CALENDAR_FOLDER_CLASS,
    FREE_BUSY_FREE,
    NTLM_TIMEOUT,
    AuthenticationMethod,
    ExchangeVersion,
)
from .errors import (
    ExchangeAuthError,
    ExchangeAuthSetupError,
    ExchangeCalendarError,
    ExchangeConfigError,
    ExchangeConnectionError,
    ExchangeEnvironmentError,
    ExchangeNotFoundError,
    ExchangeTlsError,
    ExchangeUnknownError,
)
from .models import CalendarEvent, EventBusyDate, ExchangeConfig, parse_timestamp

_LOGGER = logging.getLogger(__name__)

SERVER_BUILDS = {
    ExchangeVersion.EXCHANGE_2007_SP1: EXCHANGE_2007_SP1,
    ExchangeVersion.EXCHANGE_2010: EXCHANGE_2010,
    ExchangeVersion.EXCHANGE_2010_SP1: EXCHANGE_2010_SP1,
    ExchangeVersion.EXCHANGE_2010_SP2: EXCHANGE_2010_SP2,
    ExchangeVersion.EXCHANGE_2013: EXCHANGE_2013,
    ExchangeVersion.EXCHANGE_2013_SP1: EXCHANGE_2013_SP1,
    ExchangeVersion.EXCHANGE_2015: EXCHANGE_2015,
    ExchangeVersion.EXCHANGE_2016: EXCHANGE_2016,
    ExchangeVersion.EXCHANGE_2019: EXCHANGE_2019,
}

# Fields written by create and update
EVENT_FIELDS = ["subject", "start", "end", "location", "body", "required_attendees"]

MSG_LEGACY_CRYPTO = (
    "The OpenSSL build used by this host does not provide the legacy MD4 hash "
    "required by NTLM. Ask the operator to enable the OpenSSL legacy provider "
    "for this process, or switch to STANDARD authentication."
)
MSG_AUTH = (
    "Authentication failed. Please verify your username, password, and ensure "
    "the account has proper Exchange permissions."
)
MSG_CONNECTION = (
    "Cannot connect to Exchange server. Please verify the EWS URL and ensure "
    "the server is accessible."
)
MSG_TLS = (
    "SSL/TLS certificate issue. The Exchange server may be using a self-signed "
    "certificate or there may be a certificate configuration problem."
)

LEGACY_CRYPTO_MARKERS = ("digital envelope routines", "unsupported hash type", "md4")

# Ordered: the first matching rule wins
ERROR_CLASSIFIERS = (
    (LEGACY_CRYPTO_MARKERS, ExchangeEnvironmentError, MSG_LEGACY_CRYPTO),
    (("401", "unauthorized"), ExchangeAuthError, MSG_AUTH),
    (
        (
            "timeout",
            "timed out",
            "connection refused",
            "connectionrefusederror",
            "econnrefused",
            "enotfound",
            "name or service not known",
            "nodename nor servname",
            "getaddrinfo",
            "name resolution",
        ),
        ExchangeConnectionError,
        MSG_CONNECTION,
    ),
    (("certificate", "ssl", "tls"), ExchangeTlsError, MSG_TLS),
)


def describe_exception(err: BaseException) -> str:
    """Normalize an exception and its cause into one lower-case string."""
    parts = [type(err).__name__, str(err)]
    cause = err.__cause__ or err.__context__
    if cause is not None:
        parts.extend((type(cause).__name__, str(cause)))
    return " ".join(parts).lower()


def is_legacy_crypto_error(err: BaseException) -> bool:
    description = describe_exception(err)
    return any(marker in description for marker in LEGACY_CRYPTO_MARKERS)


def classify_error(err: Exception) -> ExchangeCalendarError:
    """Map a connection setup failure onto the error taxonomy.

    Errors that are already classified are returned unchanged.
    """
    if isinstance(err, ExchangeCalendarError):
        return err
    description = describe_exception(err)
    for markers, error_cls, message in ERROR_CLASSIFIERS:
        if any(marker in description for marker in markers):
            return error_cls(message)
    return ExchangeUnknownError(str(err) or type(err).__name__)


class _NtlmTransport:
    """Reference-counted override of exchangelib's class-level transport.

    exchangelib reads HTTP_ADAPTER_CLS and TIMEOUT from BaseProtocol, so the
    override is shared by every client in the process. It is installed when
    the first NTLM client acquires it and undone when the last one releases it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users = 0
        self._saved = None

    @property
    def users(self) -> int:
        return self._users

    def acquire(self) -> None:
        with self._lock:
            if self._users == 0:
                self._saved = (BaseProtocol.HTTP_ADAPTER_CLS, BaseProtocol.TIMEOUT)
                BaseProtocol.HTTP_ADAPTER_CLS = NoVerifyHTTPAdapter
                BaseProtocol.TIMEOUT = NTLM_TIMEOUT
            self._users += 1

    def release(self) -> None:
        with self._lock:
            if self._users == 0:
                return
            self._users -= 1
            if self._users == 0:
                BaseProtocol.HTTP_ADAPTER_CLS, BaseProtocol.TIMEOUT = self._saved
                self._saved = None


NTLM_TRANSPORT = _NtlmTransport()


class ExchangeClient:
    """Wrapper around exchangelib for Exchange calendar access.

    Supports:
    - Basic authentication (STANDARD)
    - NTLM authentication with self-signed certificates (on-premise)
    - Create, update and delete of appointments
    - Calendar folder listing and free/busy lookup
    """

    def __init__(self, config: ExchangeConfig) -> None:
        self._config = config
        self._account: Account | None = None
        self._holds_transport = False

    @property
    def connected(self) -> bool:
        return self._account is not None

    def _setup_transport(self) -> None:
        """Disable SSL verification and shorten the timeout for NTLM."""
        if self._holds_transport:
            return
        NTLM_TRANSPORT.acquire()
        self._holds_transport = True
        _LOGGER.warning(
            "SSL certificate verification DISABLED for Exchange connection to %s. "
            "Only use this with self-signed certificates.",
            self._config.url,
        )

    def _restore_transport(self) -> None:
        """Release this client's hold on the NTLM transport settings."""
        if self._holds_transport:
            self._holds_transport = False
            NTLM_TRANSPORT.release()

    def _build_config(self, credentials: Credentials, auth_type: str) -> Configuration:
        """Build Exchange configuration."""
        return Configuration(
            service_endpoint=self._config.url,
            credentials=credentials,
            auth_type=auth_type,
            version=Version(build=SERVER_BUILDS[self._config.exchange_version]),
        )

    def _build_ntlm_config(self, credentials: Credentials) -> Configuration:
        try:
            self._setup_transport()
            config = self._build_config(credentials, NTLM)
        except Exception as err:
            self._restore_transport()
            _LOGGER.error("[Exchange] Error configuring NTLM authentication: %s", err)
            if is_legacy_crypto_error(err):
                raise ExchangeEnvironmentError(MSG_LEGACY_CRYPTO) from err
            raise ExchangeAuthSetupError(
                f"NTLM authentication setup failed: {err}. "
                "Try STANDARD authentication instead."
            ) from err
        _LOGGER.info("[Exchange] NTLM authentication configured")
        return config

    def connect(self) -> Account:
        """Connect to Exchange server. SYNCHRONOUS - must run in executor."""
        config = self._config
        if not (config.url and config.username and config.password):
            raise ExchangeConfigError("Missing required configuration parameters")

        _LOGGER.debug(
            "[Exchange] Connecting: auth=%s, url=%s, username=%s, version=%s",
            config.authentication_method.name,
            config.url,
            config.username,
            config.exchange_version.name,
        )
        try:
            credentials = Credentials(username=config.username, password=config.password)
            if config.authentication_method == AuthenticationMethod.NTLM:
                ews_config = self._build_ntlm_config(credentials)
            else:
                ews_config = self._build_config(credentials, BASIC)
                _LOGGER.info("[Exchange] Basic authentication configured")

            self._account = Account(
                primary_smtp_address=config.username,
                config=ews_config,
                autodiscover=False,
                access_type=DELEGATE,
            )
        except ExchangeCalendarError:
            self._restore_transport()
            raise
        except Exception as err:
            self._restore_transport()
            _LOGGER.error(
                "[Exchange] Error creating Exchange service: %s (type: %s)",
                err,
                type(err).__name__,
            )
            raise classify_error(err) from err

        _LOGGER.info("[Exchange] Connected to %s as %s", config.url, config.username)
        return self._account

    def close(self) -> None:
        """Drop the account and release its HTTP sessions."""
        account, self._account = self._account, None
        try:
            if account is not None:
                account.protocol.close()
        finally:
            self._restore_transport()

    def _ensure_connected(self) -> Account:
        """Ensure we have an active connection."""
        if self._account is None:
            self.connect()
        return self._account

    def create_event(self, event: CalendarEvent) -> str:
        """Create a new appointment and invite attendees. Returns the item id."""
        account = self._ensure_connected()
        item = CalendarItem(account=account, folder=account.calendar)
        self._apply_event(item, event)
        item.save(send_meeting_invitations=SEND_TO_ALL_AND_SAVE_COPY)
        _LOGGER.info("Created Exchange event: %s", event.title)
        return item.id

    def update_event(self, uid: str, event: CalendarEvent) -> str:
        """Overwrite an existing appointment by item id."""
        item = self._get_item_by_id(uid)
        self._apply_event(item, event)
        item.save(
            update_fields=EVENT_FIELDS,
            conflict_resolution=ALWAYS_OVERWRITE,
            send_meeting_invitations=SEND_TO_CHANGED_AND_SAVE_COPY,
        )
        _LOGGER.info("Updated Exchange event: %s", uid)
        return item.id

    def delete_event(self, uid: str) -> None:
        """Move an appointment to Deleted Items."""
        item = self._get_item_by_id(uid)
        item.move_to_trash(send_meeting_cancellations=SEND_TO_ALL_AND_SAVE_COPY)
        _LOGGER.info("Deleted Exchange event: %s", uid)

    def _get_item_by_id(self, uid: str) -> CalendarItem:
        """Bind to an item by id, wherever it lives."""
        account = self._ensure_connected()
        item = next(iter(account.fetch(ids=[(uid, None)])), None)
        if item is None or isinstance(item, ErrorItemNotFound):
            raise ExchangeNotFoundError(f"Event not found: {uid}")
        if isinstance(item, Exception):
            raise item
        return item

    def _apply_event(self, item: CalendarItem, event: CalendarEvent) -> None:
        item.subject = event.title
        item.start = self._to_ews_datetime(parse_timestamp(event.start_time))
        item.end = self._to_ews_datetime(parse_timestamp(event.end_time))
        item.location = event.location or ""
        item.body = event.description or ""
        item.required_attendees = [
            Attendee(mailbox=Mailbox(email_address=email))
            for email in event.attendee_emails
        ] or None

    def get_calendar_folders(self) -> list[Calendar]:
        """Return every calendar folder outside Deleted Items.

        Walks the whole tree below the message folder root.
        """
        account = self._ensure_connected()
        deleted_items_id = account.trash.id

        folders = []
        for folder in account.msg_folder_root.walk():
            if folder.folder_class != CALENDAR_FOLDER_CLASS:
                continue
            parent = folder.parent_folder_id
            if parent is not None and parent.id == deleted_items_id:
                continue
            folders.append(folder)
        return folders

    def get_busy_times(
        self, folder_id: str, start: datetime, end: datetime
    ) -> list[EventBusyDate]:
        """Return busy intervals of one calendar folder within [start, end].

        calendar.view() expands recurring events.
        """
        account = self._ensure_connected()
        folder = Calendar(root=account.root, id=folder_id)
        items = folder.view(
            start=self._to_ews_datetime(start), end=self._to_ews_datetime(end)
        ).only("start", "end", "legacy_free_busy_status")

        return [
            EventBusyDate(
                start=self._to_python_dt(item.start), end=self._to_python_dt(item.end)
            )
            for item in items
            if item.legacy_free_busy_status != FREE_BUSY_FREE
        ]

    @staticmethod
    def _to_ews_datetime(dt: datetime) -> EWSDateTime:
        """Convert an aware Python datetime to a UTC EWSDateTime."""
        # from_datetime only accepts plain datetimes
        plain = ExchangeClient._to_python_dt(dt).astimezone(timezone.utc)
        return EWSDateTime.from_datetime(plain)

    @staticmethod
    def _to_python_dt(ews_dt) -> datetime:
        """Convert EWSDateTime/EWSDate to a plain aware datetime."""
        if isinstance(ews_dt, datetime):
            # A plain datetime, not EWSDateTime, so callers may use
            # astimezone() with any tzinfo.
            return datetime(
                ews_dt.year, ews_dt.month, ews_dt.day,
                ews_dt.hour, ews_dt.minute, ews_dt.second,
                ews_dt.microsecond, tzinfo=ews_dt.tzinfo or timezone.utc,
            )
        if isinstance(ews_dt, date):
            return datetime(ews_dt.year, ews_dt.month, ews_dt.day, tzinfo=timezone.utc)
        return ews_dt
