import pytest

from src.slotsync.auth import CredentialGate, hash_password
from src.slotsync.errors import InvalidCredential, MissingCredential, ServerMisconfigured
from tests.fakes import PASSWORD


def test_matching_password_passes(password_hash):
    CredentialGate(password_hash).verify(PASSWORD)


def test_wrong_password(password_hash):
    with pytest.raises(InvalidCredential):
        CredentialGate(password_hash).verify("not-it")


@pytest.mark.parametrize("credential", [None, ""])
def test_missing_password(password_hash, credential):
    with pytest.raises(MissingCredential):
        CredentialGate(password_hash).verify(credential)


def test_no_hash_configured_fails_closed():
    with pytest.raises(ServerMisconfigured):
        CredentialGate("").verify(PASSWORD)


def test_misconfiguration_reported_before_missing_credential():
    with pytest.raises(ServerMisconfigured):
        CredentialGate("  ").verify(None)


def test_plaintext_in_hash_setting_is_misconfiguration():
    with pytest.raises(ServerMisconfigured):
        CredentialGate(PASSWORD).verify(PASSWORD)


def test_long_password_round_trips():
    secret = "x" * 100
    gate = CredentialGate(hash_password(secret, rounds=4))

    gate.verify(secret)
