"""Calendar service for a stored Exchange credential.

The host application creates one ExchangeCalendarService per stored
credential. exchangelib is synchronous, so every remote call runs in an
executor and the service exposes coroutines.
"""
from __future__ import annotations

import asyncio
import functools
import json
import logging
from collections.abc import Callable, Iterable
from concurrent.futures import Executor
from typing import Any, TypeVar

from .const import DOMAIN
from .crypto import get_encryption_key, symmetric_decrypt
from .errors import ExchangeCredentialError
from .exchange_client import ExchangeClient
from .models import (
    CalendarEvent,
    EventBusyDate,
    ExchangeConfig,
    IntegrationCalendar,
    NewCalendarEventType,
    parse_timestamp,
)

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")


class ExchangeCalendarService:
    """Calendar capability backed by an on-premise Exchange server."""

    integration_name = DOMAIN

    def __init__(
        self,
        credential_key: str,
        encryption_key: str | None = None,
        executor: Executor | None = None,
    ) -> None:
        """Decrypt the stored credential.

        Raises ExchangeCredentialError if the credential cannot be decrypted
        or parsed.
        """
        if encryption_key is None:
            encryption_key = get_encryption_key()
        try:
            payload = json.loads(symmetric_decrypt(credential_key or "", encryption_key))
            self._config = ExchangeConfig.from_payload(payload)
        except Exception as err:
            _LOGGER.error("Failed to load Exchange credentials: %s", type(err).__name__)
            raise ExchangeCredentialError("Invalid or corrupted credentials") from err

        self._executor = executor
        self._client: ExchangeClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def config(self) -> ExchangeConfig:
        return self._config

    async def _async_add_executor_job(
        self, target: Callable[..., _T], *args: Any
    ) -> _T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor, functools.partial(target, *args)
        )

    async def _async_get_client(self) -> ExchangeClient:
        """Return the connected client, creating it on first use."""
        if self._client is not None:
            return self._client

        async with self._client_lock:
            if self._client is None:
                client = ExchangeClient(self._config)
                await self._async_add_executor_job(client.connect)
                self._client = client
        return self._client

    async def async_create_event(self, event: CalendarEvent) -> NewCalendarEventType:
        """Create an appointment and send invitations to all attendees."""
        client = await self._async_get_client()
        try:
            item_id = await self._async_add_executor_job(client.create_event, event)
        except Exception as err:
            _LOGGER.error("Error creating Exchange event: %s", err)
            raise
        return NewCalendarEventType.for_item(item_id)

    async def async_update_event(
        self, uid: str, event: CalendarEvent
    ) -> NewCalendarEventType:
        """Overwrite an appointment and notify changed recipients."""
        client = await self._async_get_client()
        try:
            item_id = await self._async_add_executor_job(client.update_event, uid, event)
        except Exception as err:
            _LOGGER.error("Error updating Exchange event %s: %s", uid, err)
            raise
        return NewCalendarEventType.for_item(item_id)

    async def async_delete_event(self, uid: str) -> None:
        """Move an appointment to Deleted Items."""
        client = await self._async_get_client()
        try:
            await self._async_add_executor_job(client.delete_event, uid)
        except Exception as err:
            _LOGGER.error("Error deleting Exchange event %s: %s", uid, err)
            raise

    async def async_list_calendars(self) -> list[IntegrationCalendar]:
        """List calendar folders, excluding those inside Deleted Items.

        primary is true for folders with child folders.
        """
        client = await self._async_get_client()
        try:
            folders = await self._async_add_executor_job(client.get_calendar_folders)
        except Exception as err:
            _LOGGER.error("Error listing Exchange calendars: %s", err)
            raise

        return [
            IntegrationCalendar(
                external_id=folder.id,
                name=folder.name or "",
                primary=(folder.child_folder_count or 0) > 0,
                integration=self.integration_name,
            )
            for folder in folders
        ]

    async def async_get_availability(
        self,
        date_from: str,
        date_to: str,
        selected_calendars: Iterable[IntegrationCalendar | str],
    ) -> list[EventBusyDate]:
        """Return busy intervals of the selected calendars.

        All calendars are queried concurrently; any failure fails the call.
        """
        selected_ids = {
            cal.external_id if isinstance(cal, IntegrationCalendar) else cal
            for cal in selected_calendars
        }
        calendars = [
            cal
            for cal in await self.async_list_calendars()
            if cal.external_id in selected_ids
        ]
        if not calendars:
            return []

        start = parse_timestamp(date_from)
        end = parse_timestamp(date_to)
        client = await self._async_get_client()
        try:
            results = await asyncio.gather(
                *(
                    self._async_add_executor_job(
                        client.get_busy_times, cal.external_id, start, end
                    )
                    for cal in calendars
                )
            )
        except Exception as err:
            _LOGGER.error("Error getting availability from Exchange calendar: %s", err)
            raise

        return [busy for busy_times in results for busy in busy_times]

    async def async_cleanup(self) -> None:
        """Drop the cached client; the next call reconnects."""
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await self._async_add_executor_job(client.close)
        except Exception as err:
            _LOGGER.warning("Error closing Exchange connection: %s", err)
