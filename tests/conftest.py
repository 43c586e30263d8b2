"""
Pytest configuration and fixtures
"""
import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from cryptography.fernet import Fernet
from exchangelib.errors import ErrorItemNotFound

from exchange_calendar.const import CALENDAR_FOLDER_CLASS
from exchange_calendar.crypto import symmetric_encrypt
from exchange_calendar.models import CalendarEvent, Person


VALID_PAYLOAD = {
    "url": "https://mail.example.com/ews/Exchange.asmx",
    "username": "alice@example.com",
    "password": "s3cret",
    "authenticationMethod": 0,
    "exchangeVersion": 7,
    "useCompression": False,
}


class FakeItem:
    """Stands in for exchangelib.CalendarItem."""

    def __init__(self, mailbox, account=None, folder=None):
        self._mailbox = mailbox
        self.id = None
        self.saves = []
        self.trash_calls = []

    def save(self, update_fields=None, **kwargs):
        if self._mailbox.save_error is not None:
            raise self._mailbox.save_error
        if self.id is None:
            self._mailbox.counter += 1
            self.id = f"AAMkItem{self._mailbox.counter}"
        self._mailbox.items[self.id] = self
        self.saves.append({"update_fields": update_fields, **kwargs})
        return self

    def move_to_trash(self, **kwargs):
        self.trash_calls.append(kwargs)
        self._mailbox.items.pop(self.id)
        self._mailbox.trashed[self.id] = self


class FakeFolder:
    """Stands in for exchangelib Calendar folders, with canned view results."""

    def __init__(self, mailbox, root=None, id=None):
        self._mailbox = mailbox
        self.id = id
        self.view_calls = []

    def view(self, start, end):
        self.view_calls.append((start, end))
        self._mailbox.view_calls.append((self.id, start, end))
        result = self._mailbox.appointments.get(self.id, [])
        query = MagicMock()
        if isinstance(result, Exception):
            query.only.side_effect = result
        else:
            query.only.return_value = result
        return query


class FakeMailbox:
    """In-memory mailbox behind a fake exchangelib Account."""

    def __init__(self):
        self.items = {}
        self.trashed = {}
        self.counter = 0
        self.folders = []
        self.appointments = {}
        self.view_calls = []
        self.save_error = None
        self.account = MagicMock(name="Account")
        self.account.trash.id = "deleted-items"
        self.account.msg_folder_root.walk.side_effect = lambda: list(self.folders)
        self.account.fetch.side_effect = self._fetch

    def _fetch(self, ids):
        for item_id, _changekey in ids:
            if item_id in self.items:
                yield self.items[item_id]
            else:
                yield ErrorItemNotFound("The specified object was not found in the store.")

    def add_folder(self, folder_id, name, parent="calendar-root", folder_class=CALENDAR_FOLDER_CLASS, children=0):
        self.folders.append(
            SimpleNamespace(
                id=folder_id,
                name=name,
                folder_class=folder_class,
                parent_folder_id=SimpleNamespace(id=parent),
                child_folder_count=children,
            )
        )

    def add_appointment(self, folder_id, start, end, status="Busy"):
        self.appointments.setdefault(folder_id, []).append(
            SimpleNamespace(start=start, end=end, legacy_free_busy_status=status)
        )


@pytest.fixture
def encryption_key():
    return Fernet.generate_key().decode("utf-8")


@pytest.fixture
def make_credential(encryption_key):
    """Encrypt a credential payload the way the setup flow stores it."""

    def _make(payload=None, **overrides):
        data = dict(VALID_PAYLOAD if payload is None else payload)
        data.update(overrides)
        return symmetric_encrypt(json.dumps(data), encryption_key)

    return _make


@pytest.fixture
def mailbox():
    return FakeMailbox()


@pytest.fixture
def fake_exchange(mailbox):
    """Patch exchangelib entry points used by ExchangeClient."""
    with patch(
        "exchange_calendar.exchange_client.Account", return_value=mailbox.account
    ) as account_cls, patch(
        "exchange_calendar.exchange_client.Configuration"
    ) as config_cls, patch(
        "exchange_calendar.exchange_client.CalendarItem",
        side_effect=lambda account, folder: FakeItem(mailbox, account, folder),
    ), patch(
        "exchange_calendar.exchange_client.Calendar",
        side_effect=lambda root, id: FakeFolder(mailbox, root, id),
    ):
        mailbox.account_cls = account_cls
        mailbox.config_cls = config_cls
        yield mailbox


@pytest.fixture
def sample_event():
    return CalendarEvent(
        title="Quarterly review",
        start_time="2024-05-01T09:00:00Z",
        end_time="2024-05-01T10:00:00Z",
        attendees=[Person(email="bob@example.com"), Person(email="carol@example.com")],
        location="Room 4",
        description="Numbers and plans",
        team_members=[Person(email="dave@example.com"), Person(email="bob@example.com")],
    )

