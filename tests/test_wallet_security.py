import base64
import hashlib
import string

import pytest

from crownsk.wallet import security
from crownsk.wallet.errors import AuthenticationError, MalformedRecordError
from crownsk.wallet.security import EncryptedRecord, decrypt, derive_key, encrypt

_B64_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits + "+/"

PLAINTEXT = b"0x" + b"1" * 64


@pytest.fixture(scope="module")
def key():
    return derive_key("longpassword1", b"s" * security.SALT_LENGTH)


def test_derive_key_matches_pbkdf2_reference():
    salt = bytes(range(32))
    expected = hashlib.pbkdf2_hmac("sha256", b"longpassword1", salt, 100_000, 32)

    assert security.KDF_ITERATIONS == 100_000
    assert derive_key("longpassword1", salt) == expected


def test_derive_key_is_deterministic_and_salt_dependent():
    salt_a = b"a" * 32
    salt_b = b"b" * 32

    first = derive_key("correct horse", salt_a)

    assert len(first) == security.KEY_LENGTH
    assert derive_key("correct horse", salt_a) == first
    assert derive_key(b"correct horse", salt_a) == first
    assert derive_key("correct horse", salt_b) != first
    assert derive_key("correct horsf", salt_a) != first


def test_generate_salt_is_random_and_fixed_length():
    salts = {security.generate_salt() for _ in range(8)}

    assert len(salts) == 8
    assert all(len(salt) == security.SALT_LENGTH for salt in salts)


def test_encrypt_decrypt_roundtrip(key):
    record = encrypt(PLAINTEXT, key)

    assert len(record.nonce) == security.NONCE_LENGTH
    assert len(record.tag) == security.TAG_LENGTH
    assert record.ciphertext != PLAINTEXT
    assert decrypt(record, key) == PLAINTEXT


def test_each_encryption_uses_a_new_nonce(key):
    first = encrypt(PLAINTEXT, key)
    second = encrypt(PLAINTEXT, key)

    assert first.nonce != second.nonce
    assert first.ciphertext != second.ciphertext
    assert first.to_bytes() != second.to_bytes()


def test_decrypt_with_wrong_key_fails(key):
    record = encrypt(PLAINTEXT, key)
    wrong = derive_key("wrongpassword", b"s" * security.SALT_LENGTH)

    with pytest.raises(AuthenticationError):
        decrypt(record, wrong)


@pytest.mark.parametrize("field", ["nonce", "tag", "ciphertext"])
def test_every_single_byte_flip_is_detected(key, field):
    record = encrypt(PLAINTEXT, key)
    original = getattr(record, field)

    for index in range(len(original)):
        mutated = bytearray(original)
        mutated[index] ^= 0x01
        tampered = EncryptedRecord(**{**record.__dict__, field: bytes(mutated)})
        with pytest.raises(AuthenticationError):
            decrypt(tampered, key)


def test_wrong_key_length_is_a_caller_error():
    record = EncryptedRecord(nonce=b"n" * 16, tag=b"t" * 16, ciphertext=b"c")

    with pytest.raises(ValueError):
        encrypt(PLAINTEXT, b"short")
    with pytest.raises(ValueError):
        decrypt(record, b"short")


def test_record_serialization_is_colon_delimited_base64(key):
    record = encrypt(PLAINTEXT, key)
    payload = record.to_bytes()

    nonce_b64, tag_b64, ciphertext_b64 = payload.split(b":")
    assert base64.b64decode(nonce_b64) == record.nonce
    assert base64.b64decode(tag_b64) == record.tag
    assert base64.b64decode(ciphertext_b64) == record.ciphertext
    assert EncryptedRecord.from_bytes(payload) == record


@pytest.mark.parametrize(
    "payload",
    [
        b"",
        b"onlyonefield",
        b"a:b",
        b"a:b:c:d",
        b"!!!!:AAAA:AAAA",
        base64.b64encode(b"n" * 12) + b":" + base64.b64encode(b"t" * 16) + b":AAAA",
        base64.b64encode(b"n" * 16) + b":" + base64.b64encode(b"t" * 15) + b":AAAA",
        b"\xff\xfe:AAAA:AAAA",
    ],
)
def test_malformed_records_are_rejected(payload):
    with pytest.raises(MalformedRecordError):
        EncryptedRecord.from_bytes(payload)


def test_non_canonical_base64_is_rejected(key):
    record = encrypt(PLAINTEXT, key)
    nonce_b64, tag_b64, ciphertext_b64 = record.to_bytes().split(b":")

    # 16 bytes encode to 22 symbols + "=="; the low 4 bits of the last symbol are padding.
    text = nonce_b64.decode("ascii")
    last = _B64_ALPHABET.index(text[21])
    tweaked = text[:21] + _B64_ALPHABET[last ^ 0b0001] + text[22:]
    assert base64.b64decode(tweaked) == record.nonce

    with pytest.raises(MalformedRecordError):
        EncryptedRecord.from_bytes(b":".join([tweaked.encode("ascii"), tag_b64, ciphertext_b64]))
