"""The Exchange Calendar integration."""
from .calendar import ExchangeCalendarService
from .const import DOMAIN, AuthenticationMethod, ExchangeVersion
from .errors import (
    ExchangeAuthError,
    ExchangeAuthSetupError,
    ExchangeCalendarError,
    ExchangeConfigError,
    ExchangeConnectionError,
    ExchangeCredentialError,
    ExchangeEnvironmentError,
    ExchangeNotFoundError,
    ExchangeTlsError,
    ExchangeUnknownError,
    ExchangeValidationError,
)
from .models import (
    CalendarEvent,
    EventBusyDate,
    ExchangeConfig,
    IntegrationCalendar,
    NewCalendarEventType,
    Person,
)

__all__ = [
    "DOMAIN",
    "AuthenticationMethod",
    "CalendarEvent",
    "EventBusyDate",
    "ExchangeAuthError",
    "ExchangeAuthSetupError",
    "ExchangeCalendarError",
    "ExchangeCalendarService",
    "ExchangeConfig",
    "ExchangeConfigError",
    "ExchangeConnectionError",
    "ExchangeCredentialError",
    "ExchangeEnvironmentError",
    "ExchangeNotFoundError",
    "ExchangeTlsError",
    "ExchangeUnknownError",
    "ExchangeValidationError",
    "ExchangeVersion",
    "IntegrationCalendar",
    "NewCalendarEventType",
    "Person",
]
