"""Unit tests for the pfSense web UI client (HTTP mocked at the session level)."""

from unittest.mock import MagicMock

import pytest
import requests

from pfvault.core.exceptions import (
    BackupError,
    CsrfTokenError,
    LoginError,
    MetadataMissingError,
    RestoreError,
)
from pfvault.core.storage import BackupStorage
from pfvault.network.pfsense import BACKUP_PAGE_PATH, PfSenseClient

CSRF_PAGE = (
    "<form><input type='hidden' name='__csrf_magic' "
    'value="sid:abc123,1700000000" /></form>'
)


def _page(text=CSRF_PAGE):
    response = MagicMock()
    response.text = text
    return response


def _response(ok=True, status=200, headers=None, body=b""):
    response = MagicMock()
    response.ok = ok
    response.status_code = status
    response.headers = headers or {}
    response.iter_content.return_value = [body]
    return response


@pytest.fixture
def session():
    s = MagicMock(spec=requests.Session)
    s.get.return_value = _page()
    return s


@pytest.fixture
def storage(tmp_path, store):
    return BackupStorage(tmp_path / "Backups", store=store)


@pytest.fixture
def client(session, manager, storage):
    return PfSenseClient(
        "https://fw.local/", "admin", "pfsense", manager=manager, storage=storage, session=session
    )


def _fields(call):
    return {name: value for name, value in call.kwargs["files"]}


# ==============================================================================
# Tests: CSRF + login
# ==============================================================================

def test_tls_verification_off_by_default(client, session):
    assert session.verify is False


def test_get_csrf_token(client, session):
    assert client.get_csrf_token("/") == "sid:abc123,1700000000"
    session.get.assert_called_once_with("https://fw.local/", timeout=300.0)


def test_get_csrf_token_missing(client, session):
    session.get.return_value = _page("<html>no token here</html>")
    with pytest.raises(CsrfTokenError):
        client.get_csrf_token("/")


def test_get_csrf_token_network_error(client, session):
    session.get.side_effect = requests.ConnectionError("refused")
    with pytest.raises(CsrfTokenError, match="Unable to load page"):
        client.get_csrf_token("/")


def test_login_posts_form(client, session):
    session.post.return_value = _response()
    assert client.login() == "Logged in successfully."
    call = session.post.call_args
    assert call.args[0] == "https://fw.local/"
    fields = _fields(call)
    assert fields["__csrf_magic"] == (None, "sid:abc123,1700000000")
    assert fields["usernamefld"] == (None, "admin")
    assert fields["passwordfld"] == (None, "pfsense")


def test_login_timeout(client, session):
    session.post.side_effect = requests.Timeout()
    with pytest.raises(LoginError, match="timed out"):
        client.login()


def test_login_http_error(client, session):
    session.post.return_value = _response(ok=False, status=500)
    with pytest.raises(LoginError, match="HTTP 500"):
        client.login()


def test_login_with_retry_eventually_succeeds(client, session):
    session.post.side_effect = [requests.Timeout(), _response()]
    assert client.login_with_retry(max_attempts=3) == "Logged in successfully."
    assert session.post.call_count == 2


def test_login_with_retry_gives_up(client, session):
    session.post.side_effect = requests.Timeout()
    with pytest.raises(LoginError):
        client.login_with_retry(max_attempts=2)
    assert session.post.call_count == 2


# ==============================================================================
# Tests: Backup download
# ==============================================================================

def test_download_backup_stores_blob_and_sidecar(client, session, storage, manager):
    session.post.return_value = _response(
        headers={"Content-Disposition": "attachment; filename=config-fw.local-20240101.xml"},
        body=b"<encrypted/>",
    )
    message = client.download_backup()

    assert "config-fw.local-20240101.xml" in message
    assert storage.list_backups() == ["config-fw.local-20240101.xml"]
    assert (storage.root / "config-fw.local-20240101.xml").read_bytes() == b"<encrypted/>"

    # the password sent to pfSense is the DEK recoverable from the sidecar
    fields = _fields(session.post.call_args)
    sent = fields["encrypt_password"][1]
    assert fields["encrypt_password_confirm"][1] == sent
    assert fields["encrypt"] == (None, "yes")
    assert manager.retrieve_key(storage.sidecar_path("config-fw.local-20240101.xml")) == sent
    assert session.post.call_args.args[0] == "https://fw.local" + BACKUP_PAGE_PATH


def test_download_backup_strips_path_from_filename(client, session, storage):
    session.post.return_value = _response(
        headers={"Content-Disposition": 'attachment; filename="../../evil.xml"'}, body=b"x"
    )
    client.download_backup()
    assert storage.list_backups() == ["evil.xml"]


def test_download_backup_without_attachment(client, session, storage):
    session.post.return_value = _response(headers={"Content-Type": "text/html"})
    with pytest.raises(BackupError, match="session may have expired"):
        client.download_backup()
    assert storage.list_backups() == []


def test_download_backup_http_error(client, session):
    session.post.return_value = _response(ok=False, status=403)
    with pytest.raises(BackupError, match="HTTP 403"):
        client.download_backup()


def test_download_backup_stream_failure_cleans_up(client, session, storage):
    response = _response(headers={"Content-Disposition": "attachment; filename=c.xml"})

    def broken_stream(chunk_size):
        yield b"<partial"
        raise requests.ConnectionError("reset")

    response.iter_content.side_effect = broken_stream
    session.post.return_value = response
    with pytest.raises(BackupError):
        client.download_backup()
    assert not storage.exists("c.xml")
    assert not storage.sidecar_path("c.xml").exists()


# ==============================================================================
# Tests: Restore
# ==============================================================================

def test_restore_backup_sends_decrypt_password(client, session, storage, manager):
    hex_dek, metadata = manager.generate_key()
    storage.save_backup("config.xml", [b"<encrypted/>"], metadata)
    session.post.return_value = _response()

    assert client.restore_backup("config.xml") == "Config file restored successfully."
    fields = _fields(session.post.call_args)
    assert fields["decrypt"] == (None, "yes")
    assert fields["decrypt_password"] == (None, hex_dek)
    assert fields["conffile"][0] == "config.xml"


def test_restore_missing_backup(client, session):
    with pytest.raises(RestoreError, match="backup not found"):
        client.restore_backup("nope.xml")
    session.post.assert_not_called()


def test_restore_missing_sidecar(client, session, storage):
    storage.ensure_root()
    (storage.root / "orphan.xml").write_bytes(b"x")
    with pytest.raises(MetadataMissingError):
        client.restore_backup("orphan.xml")
    session.post.assert_not_called()


def test_restore_timeout(client, session, storage, manager):
    _, metadata = manager.generate_key()
    storage.save_backup("config.xml", [b"x"], metadata)
    session.post.side_effect = requests.Timeout()
    with pytest.raises(RestoreError, match="timed out"):
        client.restore_backup("config.xml")


def test_restore_http_error(client, session, storage, manager):
    _, metadata = manager.generate_key()
    storage.save_backup("config.xml", [b"x"], metadata)
    session.post.return_value = _response(ok=False, status=502)
    with pytest.raises(RestoreError, match="HTTP 502"):
        client.restore_backup("config.xml")
