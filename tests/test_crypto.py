"""
Tests for credential encryption.
"""
import pytest

from exchange_calendar.crypto import (
    generate_key,
    get_encryption_key,
    symmetric_decrypt,
    symmetric_encrypt,
)


def test_encrypted_credential_is_opaque_and_decryptable():
    key = generate_key()
    token = symmetric_encrypt('{"password": "hunter2"}', key)

    assert "hunter2" not in token
    assert token.startswith("gAAAA")  # Fernet token prefix
    assert symmetric_decrypt(token, key) == '{"password": "hunter2"}'


def test_wrong_key_is_rejected():
    token = symmetric_encrypt("payload", generate_key())

    with pytest.raises(ValueError):
        symmetric_decrypt(token, generate_key())


def test_empty_key_is_rejected():
    with pytest.raises(ValueError):
        symmetric_decrypt("anything", "")


def test_key_comes_from_environment(monkeypatch):
    monkeypatch.setenv("CALENDAR_ENCRYPTION_KEY", "abc")
    assert get_encryption_key() == "abc"

    monkeypatch.delenv("CALENDAR_ENCRYPTION_KEY")
    assert get_encryption_key() == ""
