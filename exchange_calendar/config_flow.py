"""Connection setup for Exchange Calendar.

Used by the host's "add Exchange calendar" handler: checks the submitted
form, probes the server, and returns the encrypted credential to persist.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import voluptuous as vol
from exchangelib.errors import EWSError

from .calendar import ExchangeCalendarService
from .const import (
    CONF_AUTHENTICATION_METHOD,
    CONF_EXCHANGE_VERSION,
    CONF_PASSWORD,
    CONF_URL,
    CONF_USE_COMPRESSION,
    CONF_USERNAME,
    CONNECTION_TEST_TIMEOUT,
    DEFAULT_AUTHENTICATION_METHOD,
    DEFAULT_EXCHANGE_VERSION,
    DEFAULT_USE_COMPRESSION,
    AuthenticationMethod,
    ExchangeVersion,
)
from .crypto import get_encryption_key, symmetric_encrypt
from .errors import (
    ExchangeAuthError,
    ExchangeAuthSetupError,
    ExchangeCalendarError,
    ExchangeConfigError,
    ExchangeConnectionError,
    ExchangeEnvironmentError,
    ExchangeTlsError,
    ExchangeUnknownError,
    ExchangeValidationError,
)
from .exchange_client import classify_error
from .validation import get_suggestions, validate

_LOGGER = logging.getLogger(__name__)

SETUP_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_URL): vol.All(str, vol.Url()),
        vol.Required(CONF_USERNAME): str,
        vol.Required(CONF_PASSWORD): vol.All(
            str, vol.Length(min=1, msg="Password is required")
        ),
        vol.Optional(
            CONF_AUTHENTICATION_METHOD, default=int(DEFAULT_AUTHENTICATION_METHOD)
        ): vol.In([int(m) for m in AuthenticationMethod]),
        vol.Optional(
            CONF_EXCHANGE_VERSION, default=int(DEFAULT_EXCHANGE_VERSION)
        ): vol.In([int(v) for v in ExchangeVersion]),
        vol.Optional(CONF_USE_COMPRESSION, default=DEFAULT_USE_COMPRESSION): bool,
    },
    extra=vol.PREVENT_EXTRA,
)

# reason -> message shown to the end user
ERROR_MESSAGES = {
    "environment": (
        "The server's OpenSSL setup does not support NTLM authentication. "
        "Please contact your administrator or try using Basic authentication instead."
    ),
    "auth_setup": (
        "NTLM authentication setup failed. "
        "Please try using Basic authentication instead."
    ),
    "invalid_auth": (
        "Authentication failed. Please verify your username and password are "
        "correct and that your account has the necessary Exchange permissions."
    ),
    "cannot_connect": (
        "Cannot connect to Exchange server. Please verify the EWS URL is correct "
        "and the server is accessible from this network."
    ),
    "ssl_error": (
        "SSL/TLS certificate issue. Your Exchange server may be using a "
        "self-signed certificate or there may be a certificate configuration problem."
    ),
    "invalid_config": "Invalid Exchange configuration.",
    "unknown": (
        "Could not add this Exchange account. Please check your configuration "
        "and try again."
    ),
}


def describe_error(err: Exception) -> tuple[str, str]:
    """Return (reason, user-facing message) for a setup failure.

    Raw exchangelib errors raised by the probe are classified first, so their
    text, which may include internal host names, is never shown.
    """
    if not isinstance(err, (ExchangeCalendarError, vol.Invalid, asyncio.TimeoutError)):
        classified = classify_error(err)
        if isinstance(classified, ExchangeUnknownError):
            if isinstance(err, EWSError) and str(err):
                return "unknown", f"Exchange server error: {err}"
        else:
            err = classified

    if isinstance(err, ExchangeEnvironmentError):
        reason = "environment"
    elif isinstance(err, ExchangeAuthSetupError):
        reason = "auth_setup"
    elif isinstance(err, ExchangeAuthError):
        reason = "invalid_auth"
    elif isinstance(err, (ExchangeConnectionError, asyncio.TimeoutError)):
        reason = "cannot_connect"
    elif isinstance(err, ExchangeTlsError):
        reason = "ssl_error"
    elif isinstance(err, (ExchangeValidationError, ExchangeConfigError, vol.Invalid)):
        reason = "invalid_config"
    else:
        reason = "unknown"
    return reason, ERROR_MESSAGES[reason]


async def async_validate_connection(
    service: ExchangeCalendarService, timeout: float = CONNECTION_TEST_TIMEOUT
) -> None:
    """Probe the server by listing calendars, bounded by a timeout."""
    try:
        await asyncio.wait_for(service.async_list_calendars(), timeout)
    except asyncio.TimeoutError as err:
        raise ExchangeConnectionError(
            f"Connection test timeout after {timeout:g} seconds"
        ) from err
    finally:
        await service.async_cleanup()


async def async_setup_credentials(
    user_input: dict[str, Any], encryption_key: str | None = None
) -> str:
    """Validate and probe submitted settings.

    Returns the encrypted credential for the host to persist. Raises
    vol.Invalid for a malformed form, ExchangeValidationError when the
    validator rejects the settings, and the classified connection errors
    when the probe fails.
    """
    data = SETUP_SCHEMA(user_input)

    result = validate(data)
    if not result.is_valid:
        raise ExchangeValidationError(result.errors, get_suggestions(data))

    if encryption_key is None:
        encryption_key = get_encryption_key()
    encrypted = symmetric_encrypt(json.dumps(data), encryption_key)

    service = ExchangeCalendarService(encrypted, encryption_key)
    try:
        await async_validate_connection(service)
    except Exception as err:
        _LOGGER.error("Failed to add Exchange calendar for %s: %s", data[CONF_USERNAME], err)
        raise

    _LOGGER.info("Exchange calendar successfully added for %s", data[CONF_USERNAME])
    return encrypted
