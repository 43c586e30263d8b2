"""Data model shared between the host application and the Exchange adapter."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .const import (
    CONF_AUTHENTICATION_METHOD,
    CONF_EXCHANGE_VERSION,
    CONF_PASSWORD,
    CONF_URL,
    CONF_USE_COMPRESSION,
    CONF_USERNAME,
    DEFAULT_AUTHENTICATION_METHOD,
    DEFAULT_EXCHANGE_VERSION,
    DEFAULT_USE_COMPRESSION,
    DOMAIN,
    AuthenticationMethod,
    ExchangeVersion,
)


@dataclass(frozen=True)
class ExchangeConfig:
    """Connection settings decrypted from a stored credential."""

    url: str
    username: str
    password: str
    authentication_method: AuthenticationMethod = DEFAULT_AUTHENTICATION_METHOD
    exchange_version: ExchangeVersion = DEFAULT_EXCHANGE_VERSION
    use_compression: bool = DEFAULT_USE_COMPRESSION

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ExchangeConfig:
        """Build a config from the host's camelCase credential payload.

        Raises ValueError or TypeError when the payload is not a mapping or
        carries out-of-range enum values.
        """
        if not isinstance(payload, dict):
            raise TypeError(f"Expected a JSON object, got {type(payload).__name__}")

        auth = payload.get(CONF_AUTHENTICATION_METHOD)
        version = payload.get(CONF_EXCHANGE_VERSION)
        return cls(
            url=payload.get(CONF_URL) or "",
            username=payload.get(CONF_USERNAME) or "",
            password=payload.get(CONF_PASSWORD) or "",
            authentication_method=(
                DEFAULT_AUTHENTICATION_METHOD
                if auth is None
                else AuthenticationMethod(auth)
            ),
            exchange_version=(
                DEFAULT_EXCHANGE_VERSION if version is None else ExchangeVersion(version)
            ),
            use_compression=bool(
                payload.get(CONF_USE_COMPRESSION, DEFAULT_USE_COMPRESSION)
            ),
        )

    def to_payload(self) -> dict[str, Any]:
        """Inverse of from_payload."""
        return {
            CONF_URL: self.url,
            CONF_USERNAME: self.username,
            CONF_PASSWORD: self.password,
            CONF_AUTHENTICATION_METHOD: int(self.authentication_method),
            CONF_EXCHANGE_VERSION: int(self.exchange_version),
            CONF_USE_COMPRESSION: self.use_compression,
        }

    def __repr__(self) -> str:
        return (
            f"ExchangeConfig(url={self.url!r}, username={self.username!r}, "
            f"authentication_method={self.authentication_method.name}, "
            f"exchange_version={self.exchange_version.name})"
        )


@dataclass
class Person:
    email: str
    name: str = ""


@dataclass
class CalendarEvent:
    """An event as described by the host application."""

    title: str
    start_time: str | datetime
    end_time: str | datetime
    attendees: list[Person] = field(default_factory=list)
    location: str | None = None
    description: str | None = None
    team_members: list[Person] = field(default_factory=list)

    @property
    def attendee_emails(self) -> list[str]:
        """Direct attendees followed by team members, duplicates kept."""
        return [p.email for p in self.attendees] + [p.email for p in self.team_members]


@dataclass(frozen=True)
class IntegrationCalendar:
    external_id: str
    name: str
    primary: bool
    integration: str = DOMAIN


@dataclass(frozen=True)
class EventBusyDate:
    start: datetime
    end: datetime


@dataclass
class NewCalendarEventType:
    """Result of creating or updating an event."""

    uid: str
    id: str
    password: str = ""
    type: str = ""
    url: str = ""
    additional_info: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_item(cls, item_id: str) -> NewCalendarEventType:
        return cls(uid=item_id, id=item_id)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp into a timezone-aware datetime.

    Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
