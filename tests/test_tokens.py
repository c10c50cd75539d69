"""
Tests for auth/tokens.py -- bcrypt helpers and the JWT codec.
"""

from datetime import datetime, timedelta, timezone

from jose import jwt

from auth.tokens import ALGORITHM, DUMMY_HASH, TokenCodec, hash_password, verify_password

SECRET = "unit-test-signing-key-0123456789abcdef"


def test_hash_password_roundtrip():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert hashed.startswith("$2")
    assert verify_password("secret123", hashed)
    assert not verify_password("secret124", hashed)


def test_hash_password_salts_each_call():
    assert hash_password("secret123") != hash_password("secret123")


def test_long_password_verifies():
    password = "x" * 100
    hashed = hash_password(password)
    assert verify_password(password, hashed)
    assert not verify_password("y" * 100, hashed)


def test_multibyte_password_verifies():
    password = "\u043f\u0430\u0440\u043e\u043b\u044c" * 20
    hashed = hash_password(password)
    assert verify_password(password, hashed)
    assert not verify_password("\u043f\u0430\u0440\u043e\u043b\u044c", hashed)


def test_only_the_first_72_bytes_count():
    hashed = hash_password("a" * 72 + "tail-one")
    assert verify_password("a" * 72 + "tail-two", hashed)
    assert not verify_password("a" * 71, hashed)


def test_verify_password_rejects_corrupt_hash():
    assert verify_password("secret123", "not-a-bcrypt-hash") is False


def test_dummy_hash_is_a_valid_bcrypt_hash():
    assert verify_password("anything", DUMMY_HASH) is False


def test_issue_and_verify_carries_identity():
    codec = TokenCodec(SECRET, 3600)
    token = codec.issue("user-1", "a@b.com", "sess-1")
    claims = codec.verify(token)
    assert claims is not None
    assert claims["user_id"] == "user-1"
    assert claims["sub"] == "user-1"
    assert claims["email"] == "a@b.com"
    assert claims["session_id"] == "sess-1"
    assert claims["exp"] - claims["iat"] == 3600


def test_issue_honors_expiry_override():
    codec = TokenCodec(SECRET, 3600)
    claims = codec.verify(codec.issue("user-1", "a@b.com", "sess-1", expire_seconds=60))
    assert claims["exp"] - claims["iat"] == 60


def test_tokens_differ_per_session():
    codec = TokenCodec(SECRET, 3600)
    assert codec.issue("user-1", "a@b.com", "sess-1") != codec.issue("user-1", "a@b.com", "sess-2")


def test_verify_rejects_wrong_secret():
    token = TokenCodec(SECRET, 3600).issue("user-1", "a@b.com", "sess-1")
    assert TokenCodec("another-signing-key-0123456789abcdef", 3600).verify(token) is None


def test_verify_rejects_tampered_token():
    codec = TokenCodec(SECRET, 3600)
    header, _, signature = codec.issue("user-1", "a@b.com", "sess-1").split(".")
    _, forged_payload, _ = codec.issue("user-2", "b@b.com", "sess-2").split(".")
    assert codec.verify(".".join([header, forged_payload, signature])) is None


def test_verify_rejects_expired_token():
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(
        {
            "sub": "user-1",
            "user_id": "user-1",
            "email": "a@b.com",
            "session_id": "sess-1",
            "iat": past,
            "exp": past + timedelta(hours=1),
        },
        SECRET,
        algorithm=ALGORITHM,
    )
    assert TokenCodec(SECRET, 3600).verify(token) is None


def test_verify_rejects_token_without_session_id():
    token = jwt.encode(
        {"sub": "user-1", "user_id": "user-1", "email": "a@b.com", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        SECRET,
        algorithm=ALGORITHM,
    )
    assert TokenCodec(SECRET, 3600).verify(token) is None


def test_verify_rejects_garbage():
    codec = TokenCodec(SECRET, 3600)
    assert codec.verify("not.a.token") is None
    assert codec.verify("") is None
