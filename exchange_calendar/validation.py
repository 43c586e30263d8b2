"""Validation of Exchange connection settings entered by a user."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, NamedTuple
from urllib.parse import urlparse

import voluptuous as vol

from .const import (
    CONF_AUTHENTICATION_METHOD,
    CONF_EXCHANGE_VERSION,
    CONF_PASSWORD,
    CONF_URL,
    CONF_USERNAME,
    EWS_PATH_MARKERS,
    MIN_RECOMMENDED_VERSION,
    AuthenticationMethod,
    ExchangeVersion,
)
from .errors import ExchangeConfigError

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

MSG_INVALID_URL = (
    "URL must be a valid Exchange Web Services (EWS) endpoint "
    "(e.g., https://mail.company.com/ews/Exchange.asmx)"
)
MSG_INVALID_EMAIL = "Username must be a valid email address"


class ValidationResult(NamedTuple):
    is_valid: bool
    errors: list[str]


def ews_endpoint(value: str) -> str:
    """Require an https URL whose path looks like an EWS endpoint."""
    parsed = urlparse(value)
    if parsed.scheme != "https":
        raise vol.UrlInvalid("EWS endpoint must use https")
    path = parsed.path.lower()
    if not any(marker in path for marker in EWS_PATH_MARKERS):
        raise vol.UrlInvalid("URL path is not an EWS endpoint")
    return value


# (key, message when missing or empty, format validator)
REQUIRED_FIELDS = (
    (
        CONF_URL,
        "Exchange URL is required",
        vol.Schema(vol.All(str, vol.Url(), ews_endpoint, msg=MSG_INVALID_URL)),
    ),
    (
        CONF_USERNAME,
        "Username is required",
        vol.Schema(vol.All(str, vol.Match(EMAIL_PATTERN), msg=MSG_INVALID_EMAIL)),
    ),
    (CONF_PASSWORD, "Password is required", None),
)

# (key, validator applied only when the key is present)
OPTIONAL_FIELDS = (
    (
        CONF_AUTHENTICATION_METHOD,
        vol.Schema(
            vol.In(list(AuthenticationMethod), msg="Invalid authentication method")
        ),
    ),
    (
        CONF_EXCHANGE_VERSION,
        vol.Schema(vol.In(list(ExchangeVersion), msg="Invalid Exchange version")),
    ),
)


def validate(config: Mapping[str, Any]) -> ValidationResult:
    """Check a candidate configuration, collecting every violation."""
    errors: list[str] = []

    for key, missing_msg, schema in REQUIRED_FIELDS:
        value = config.get(key)
        if not value:
            errors.append(missing_msg)
            continue
        if schema is None:
            continue
        try:
            schema(value)
        except vol.Invalid as err:
            errors.append(err.msg)

    for key, schema in OPTIONAL_FIELDS:
        if config.get(key) is None:
            continue
        try:
            schema(config[key])
        except vol.Invalid as err:
            errors.append(err.msg)

    return ValidationResult(is_valid=not errors, errors=errors)


def get_suggestions(config: Mapping[str, Any]) -> list[str]:
    """Return advisory hints for common configuration mistakes.

    Raises ExchangeConfigError if the URL cannot be parsed.
    """
    suggestions: list[str] = []

    url = config.get(CONF_URL)
    if url:
        try:
            vol.Url()(url)
        except vol.Invalid as err:
            raise ExchangeConfigError(f"Cannot parse Exchange URL: {url}") from err
        parsed = urlparse(url)

        if parsed.scheme == "http":
            suggestions.append("Consider using HTTPS instead of HTTP for better security")

        if "/ews/" not in parsed.path.lower():
            suggestions.append("EWS URL typically ends with '/ews/Exchange.asmx'")

    if config.get(CONF_AUTHENTICATION_METHOD) == AuthenticationMethod.NTLM:
        suggestions.append(
            "NTLM authentication may require the OpenSSL legacy provider (MD4) "
            "to be enabled on the host for older Exchange servers"
        )

    version = config.get(CONF_EXCHANGE_VERSION)
    if version in list(ExchangeVersion) and version < MIN_RECOMMENDED_VERSION:
        suggestions.append(
            "Consider upgrading to Exchange 2013 or later for better compatibility"
        )

    return suggestions
