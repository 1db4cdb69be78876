"""Shared fixtures: a cheap Argon2id deriver and a bootstrapped record."""

import pytest

from pfvault.security.kdf import KekDeriver
from pfvault.security.metadata import MetadataStore
from pfvault.security.verifier import PassphraseVerifier
from pfvault.security.envelope import EnvelopeKeyManager

PASSPHRASE = "correct-horse"


@pytest.fixture
def fast_deriver():
    # Very low costs for speed in unit tests
    return KekDeriver(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def store(tmp_path):
    return MetadataStore(tmp_path / ".kek-info")


@pytest.fixture
def verifier(store, fast_deriver):
    return PassphraseVerifier(store, deriver=fast_deriver)


@pytest.fixture
def bootstrapped(verifier):
    """Return (verifier, record) after bootstrapping with PASSPHRASE."""
    record = verifier.bootstrap(PASSPHRASE)
    return verifier, record


@pytest.fixture
def manager(store, bootstrapped):
    verifier, _ = bootstrapped
    return EnvelopeKeyManager(PASSPHRASE, store, verifier=verifier)
