"""
Unit tests for the keystore module.
"""

import pytest
from unittest.mock import MagicMock, patch
from keyring.errors import KeyringError, PasswordDeleteError

from pfvault.security import keystore


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def mock_keyring_lib():
    """Patches the keyring module within pfvault.security.keystore."""
    with patch("pfvault.security.keystore.keyring") as mock_lib:
        yield mock_lib


def _backend(name, priority=5):
    cls = type(name, (), {})
    backend = cls()
    backend.priority = priority
    return backend


# ==============================================================================
# Tests: Backend assessment
# ==============================================================================

def test_assess_backend_accepts_platform_backend(mock_keyring_lib):
    mock_keyring_lib.get_keyring.return_value = _backend("SecretServiceKeyring")
    secure, msg = keystore.assess_keyring_backend()
    assert secure is True
    assert "SecretServiceKeyring" in msg


def test_assess_backend_rejects_plaintext(mock_keyring_lib):
    mock_keyring_lib.get_keyring.return_value = _backend("PlaintextKeyring")
    secure, msg = keystore.assess_keyring_backend()
    assert secure is False
    assert "insecure" in msg


def test_assess_backend_rejects_low_priority(mock_keyring_lib):
    mock_keyring_lib.get_keyring.return_value = _backend("ChainerBackend", priority=0)
    secure, _ = keystore.assess_keyring_backend()
    assert secure is False


def test_assess_backend_handles_errors(mock_keyring_lib):
    mock_keyring_lib.get_keyring.side_effect = Exception("boom")
    secure, msg = keystore.assess_keyring_backend()
    assert secure is False
    assert "boom" in msg


# ==============================================================================
# Tests: Passphrase storage
# ==============================================================================

def test_save_passphrase(mock_keyring_lib):
    mock_keyring_lib.get_keyring.return_value = _backend("Keyring")
    keystore.save_passphrase("s3cret")
    mock_keyring_lib.set_password.assert_called_once_with(
        keystore.DEFAULT_SERVICE, keystore.DEFAULT_ACCOUNT, "s3cret"
    )


def test_save_passphrase_refuses_insecure_backend(mock_keyring_lib):
    mock_keyring_lib.get_keyring.return_value = _backend("PlaintextKeyring")
    with pytest.raises(RuntimeError, match="refusing"):
        keystore.save_passphrase("s3cret")
    mock_keyring_lib.set_password.assert_not_called()


def test_load_passphrase(mock_keyring_lib):
    mock_keyring_lib.get_password.return_value = "s3cret"
    assert keystore.load_passphrase("svc", "acct") == "s3cret"
    mock_keyring_lib.get_password.assert_called_once_with("svc", "acct")


def test_load_passphrase_missing(mock_keyring_lib):
    mock_keyring_lib.get_password.return_value = None
    assert keystore.load_passphrase() is None


def test_load_passphrase_backend_failure():
    with patch("pfvault.security.keystore.keyring.get_password", side_effect=KeyringError("locked")):
        assert keystore.load_passphrase() is None


def test_delete_passphrase_ignores_missing_entry():
    with patch(
        "pfvault.security.keystore.keyring.delete_password",
        side_effect=PasswordDeleteError("not found"),
    ) as delete:
        keystore.delete_passphrase()
    delete.assert_called_once_with(keystore.DEFAULT_SERVICE, keystore.DEFAULT_ACCOUNT)
