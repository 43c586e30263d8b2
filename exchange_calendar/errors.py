"""Errors raised by the Exchange Calendar integration."""
from __future__ import annotations


class ExchangeCalendarError(Exception):
    """Base class for Exchange calendar errors."""


class ExchangeCredentialError(ExchangeCalendarError):
    """Stored credentials could not be decrypted or parsed."""


class ExchangeConfigError(ExchangeCalendarError):
    """Connection configuration is incomplete or malformed."""


class ExchangeAuthError(ExchangeCalendarError):
    """Exchange authentication error."""


class ExchangeConnectionError(ExchangeCalendarError):
    """Exchange connection error."""


class ExchangeTlsError(ExchangeCalendarError):
    """Certificate or TLS transport error."""


class ExchangeEnvironmentError(ExchangeCalendarError):
    """The host cryptography stack cannot run NTLM."""


class ExchangeAuthSetupError(ExchangeCalendarError):
    """NTLM transport could not be set up."""


class ExchangeNotFoundError(ExchangeCalendarError):
    """Referenced item or folder does not exist."""


class ExchangeUnknownError(ExchangeCalendarError):
    """Unclassified failure, original message preserved."""


class ExchangeValidationError(ExchangeCalendarError):
    """Configuration rejected by the validator."""

    def __init__(self, errors: list[str], suggestions: list[str] | None = None) -> None:
        super().__init__("Invalid Exchange configuration: " + "; ".join(errors))
        self.errors = errors
        self.suggestions = suggestions or []
