"""OS keystore lookup for the encryption passphrase.

An alternative to putting ENCRYPTION_PASSPHRASE in the environment or a
.env file: the operator stores it once with ``keyring`` and pfvault reads it
at startup. Only the passphrase is stored here, never a derived key.
"""
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

DEFAULT_SERVICE = "pfvault"
DEFAULT_ACCOUNT = "encryption-passphrase"


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_secure, message) describing the current keyring backend.

    Heuristics are used because `keyring` exposes different backends across
    platforms.
    """
    try:
        backend = keyring.get_keyring()
    except Exception as e:
        return False, f"failed to get keyring backend: {e}"

    name = f"{type(backend).__module__}.{type(backend).__name__}"
    priority = getattr(backend, "priority", None)

    insecure_indicators = ("plaintext", "uncrypted", ".fail.", ".null.")
    if any(tok in name.lower() for tok in insecure_indicators):
        return False, f"insecure backend detected: {name}"

    if priority is not None and priority <= 0:
        return False, f"no suitable secure keyring backend available (priority={priority}, backend={name})"

    return True, f"backend looks acceptable: {name} (priority={priority})"


def save_passphrase(passphrase: str, service: str = DEFAULT_SERVICE, account: str = DEFAULT_ACCOUNT) -> None:
    """Store the passphrase in the OS keystore, refusing insecure backends."""
    secure, msg = assess_keyring_backend()
    if not secure:
        raise RuntimeError(f"refusing to store the passphrase in the OS keystore: {msg}")
    keyring.set_password(service, account, passphrase)


def load_passphrase(service: str = DEFAULT_SERVICE, account: str = DEFAULT_ACCOUNT) -> Optional[str]:
    """Return the stored passphrase, or None if nothing is stored or the backend fails."""
    try:
        return keyring.get_password(service, account)
    except KeyringError:
        return None


def delete_passphrase(service: str = DEFAULT_SERVICE, account: str = DEFAULT_ACCOUNT) -> None:
    """Remove the stored passphrase from the OS keystore."""
    try:
        keyring.delete_password(service, account)
    except PasswordDeleteError:
        # nothing stored
        pass
