"""SecretBox: AES-256-GCM round trip, tamper and format failures."""
import base64

import pytest

from spend_ledger.errors import DecryptError
from spend_ledger.infrastructure.crypto import SecretBox

KEY = base64.b64encode(b"k" * 32).decode("ascii")
OTHER_KEY = base64.b64encode(b"z" * 32).decode("ascii")


def test_round_trip_and_format() -> None:
    box = SecretBox(KEY)
    payload = box.encrypt("sk-admin-1234567890abcdef")
    assert payload.count(":") == 2
    assert "sk-admin" not in payload
    assert box.decrypt(payload) == "sk-admin-1234567890abcdef"


def test_nonce_is_random() -> None:
    box = SecretBox(KEY)
    assert box.encrypt("same") != box.encrypt("same")


def test_tampered_data_fails() -> None:
    box = SecretBox(KEY)
    iv, tag, data = box.encrypt("secret-value").split(":")
    flipped = bytearray(base64.b64decode(data))
    flipped[0] ^= 0x01
    with pytest.raises(DecryptError):
        box.decrypt(":".join([iv, tag, base64.b64encode(bytes(flipped)).decode("ascii")]))


def test_wrong_key_fails() -> None:
    payload = SecretBox(KEY).encrypt("secret-value")
    with pytest.raises(DecryptError):
        SecretBox(OTHER_KEY).decrypt(payload)


@pytest.mark.parametrize("payload", ["", "not-encrypted", "a:b", "###:###:###"])
def test_malformed_payload(payload: str) -> None:
    with pytest.raises(DecryptError):
        SecretBox(KEY).decrypt(payload)


def test_key_must_be_32_bytes() -> None:
    with pytest.raises(ValueError):
        SecretBox(base64.b64encode(b"short").decode("ascii"))
