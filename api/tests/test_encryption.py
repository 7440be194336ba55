import base64

import pytest

from casedocs.encryption import Encryptor
from casedocs.exceptions import DecryptionError, EncryptionConfigError

KEY_HEX = "3f" * 32
OTHER_KEY_HEX = "a1" * 32
VALUES = {"clientName": "Jane Doe", "amount": "$50,000", "urgent": True}


def test_round_trip_restores_values():
    encryptor = Encryptor.from_hex(KEY_HEX)
    blob = encryptor.encrypt(VALUES)
    assert "Jane Doe" not in blob
    assert encryptor.decrypt(blob) == VALUES


def test_each_encryption_uses_a_fresh_nonce():
    encryptor = Encryptor.from_hex(KEY_HEX)
    assert encryptor.encrypt(VALUES) != encryptor.encrypt(VALUES)


def test_any_flipped_byte_fails_closed():
    encryptor = Encryptor.from_hex(KEY_HEX)
    raw = base64.b64decode(encryptor.encrypt({"clientName": "Jane"}))
    for index in range(len(raw)):
        tampered = bytearray(raw)
        tampered[index] ^= 0x01
        with pytest.raises(DecryptionError):
            encryptor.decrypt(base64.b64encode(bytes(tampered)).decode())


def test_wrong_key_fails_closed():
    blob = Encryptor.from_hex(KEY_HEX).encrypt(VALUES)
    with pytest.raises(DecryptionError):
        Encryptor.from_hex(OTHER_KEY_HEX).decrypt(blob)


@pytest.mark.parametrize("blob", ["", "not base64!", base64.b64encode(b"short").decode()])
def test_malformed_blobs_fail_closed(blob):
    with pytest.raises(DecryptionError):
        Encryptor.from_hex(KEY_HEX).decrypt(blob)


@pytest.mark.parametrize("hex_key", [None, "", "3f" * 16, "zz" * 32])
def test_bad_keys_are_configuration_errors(hex_key):
    with pytest.raises(EncryptionConfigError):
        Encryptor.from_hex(hex_key)
