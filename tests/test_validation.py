"""
Tests for the Exchange configuration validator.
"""
import pytest

from exchange_calendar.errors import ExchangeConfigError
from exchange_calendar.validation import (
    MSG_INVALID_EMAIL,
    MSG_INVALID_URL,
    get_suggestions,
    validate,
)


def test_valid_config_has_no_errors():
    result = validate({
        "url": "https://mail.x.com/ews/Exchange.asmx",
        "username": "a@b.com",
        "password": "p",
        "authenticationMethod": 0,
        "exchangeVersion": 7,
    })

    assert result.is_valid
    assert result.errors == []


def test_http_url_is_rejected():
    result = validate({"url": "http://x/ews/a", "username": "a@b.com", "password": "p"})

    assert not result.is_valid
    assert result.errors == [MSG_INVALID_URL]


def test_all_missing_fields_are_reported_together():
    result = validate({"url": "", "username": "", "password": ""})

    assert not result.is_valid
    assert result.errors == [
        "Exchange URL is required",
        "Username is required",
        "Password is required",
    ]


def test_absent_keys_count_as_missing():
    result = validate({})

    assert len(result.errors) == 3


@pytest.mark.parametrize("url", [
    "https://mail.x.com/EWS/Exchange.asmx",
    "https://mail.x.com/owa/exchange.asmx",
    "https://mail.x.com/Microsoft-Server-ActiveSync",
])
def test_ews_path_markers_are_case_insensitive(url):
    assert validate({"url": url, "username": "a@b.com", "password": "p"}).is_valid


@pytest.mark.parametrize("url", [
    "https://mail.x.com/owa/",
    "not a url",
    "mail.x.com/ews/Exchange.asmx",
])
def test_non_ews_urls_are_rejected(url):
    result = validate({"url": url, "username": "a@b.com", "password": "p"})

    assert result.errors == [MSG_INVALID_URL]


@pytest.mark.parametrize("username", ["alice", "alice@example", "al ice@example.com", "a@@b.com"])
def test_username_must_look_like_email(username):
    result = validate({
        "url": "https://mail.x.com/ews/Exchange.asmx",
        "username": username,
        "password": "p",
    })

    assert result.errors == [MSG_INVALID_EMAIL]


def test_enum_fields_are_checked_only_when_present():
    base = {"url": "https://mail.x.com/ews/Exchange.asmx", "username": "a@b.com", "password": "p"}

    assert validate({**base, "authenticationMethod": None}).is_valid

    result = validate({**base, "authenticationMethod": 5, "exchangeVersion": 42})
    assert result.errors == ["Invalid authentication method", "Invalid Exchange version"]


def test_every_rule_contributes_its_own_error():
    result = validate({
        "url": "http://x/a",
        "username": "nobody",
        "password": "",
        "authenticationMethod": 9,
        "exchangeVersion": -1,
    })

    assert len(result.errors) == 5


def test_suggestions_for_plain_http_without_ews_path():
    suggestions = get_suggestions({"url": "http://mail.x.com/Exchange.asmx"})

    assert "Consider using HTTPS instead of HTTP for better security" in suggestions
    assert "EWS URL typically ends with '/ews/Exchange.asmx'" in suggestions


def test_no_suggestions_for_a_good_config():
    assert get_suggestions({
        "url": "https://mail.x.com/ews/Exchange.asmx",
        "authenticationMethod": 0,
        "exchangeVersion": 7,
    }) == []


def test_ntlm_and_old_version_suggestions():
    suggestions = get_suggestions({"authenticationMethod": 1, "exchangeVersion": 2})

    assert len(suggestions) == 2
    assert "legacy provider" in suggestions[0]
    assert "Exchange 2013 or later" in suggestions[1]


def test_oldest_version_still_gets_upgrade_suggestion():
    assert get_suggestions({"exchangeVersion": 0}) == [
        "Consider upgrading to Exchange 2013 or later for better compatibility"
    ]


def test_unparseable_url_raises_config_error():
    with pytest.raises(ExchangeConfigError):
        get_suggestions({"url": "definitely not a url"})
