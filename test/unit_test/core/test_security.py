"""
Unit tests for password hashing, session tokens and PII encryption.
"""

import jwt
import pytest

from binevo.server.core import security
from binevo.server.core.config import settings
from binevo.server.core.security import (
    create_access_token,
    decode_access_token,
    decrypt_pii,
    encrypt_pii,
    generate_api_token,
    hash_password,
    mask_token,
    verify_password,
)


@pytest.fixture(autouse=True)
def _fast_bcrypt(monkeypatch):
    monkeypatch.setattr(security, "BCRYPT_ROUNDS", 4)


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("Parola123!")

        assert hashed != "Parola123!"
        assert verify_password("Parola123!", hashed)
        assert not verify_password("parola123!", hashed)

    def test_malformed_hash_is_rejected(self):
        assert verify_password("Parola123!", "not-a-bcrypt-hash") is False


class TestAccessTokens:
    def test_round_trip(self):
        token = create_access_token("user-1", role="NGO_ADMIN", ngo_id="ngo-1", plan="PRO")

        claims = decode_access_token(token)

        assert claims["sub"] == "user-1"
        assert claims["role"] == "NGO_ADMIN"
        assert claims["ngo_id"] == "ngo-1"
        assert claims["plan"] == "PRO"
        assert claims["exp"] > claims["iat"]

    def test_extra_claims(self):
        token = create_access_token(
            "user-1", role="NGO_ADMIN", ngo_id="ngo-1", extra_claims={"impersonated_by": "root"}
        )

        assert decode_access_token(token)["impersonated_by"] == "root"

    def test_expiry_window(self):
        claims = decode_access_token(create_access_token("u", role="NGO_ADMIN", expires_minutes=60))

        assert claims["exp"] - claims["iat"] == 3600

    def test_wrong_key_is_rejected(self):
        forged = jwt.encode({"sub": "user-1", "role": "SUPER_ADMIN"}, "another-secret", algorithm="HS256")

        assert decode_access_token(forged) is None

    def test_expired_token_is_rejected(self):
        expired = jwt.encode({"sub": "user-1", "exp": 1}, settings.secret_key, algorithm="HS256")

        assert decode_access_token(expired) is None

    def test_garbage_is_rejected(self):
        assert decode_access_token("not.a.token") is None


class TestPiiEncryption:
    def test_round_trip(self):
        encrypted = encrypt_pii("maria@example.ro")

        assert encrypted != "maria@example.ro"
        assert decrypt_pii(encrypted) == "maria@example.ro"

    def test_empty_values(self):
        assert encrypt_pii(None) is None
        assert encrypt_pii("") is None
        assert decrypt_pii(None) is None

    def test_key_rotation_makes_old_values_unreadable(self, monkeypatch):
        encrypted = encrypt_pii("0722000111")
        monkeypatch.setattr(settings, "encryption_key", "a-completely-different-key")

        assert decrypt_pii(encrypted) is None


def test_api_tokens():
    token = generate_api_token()

    assert token.startswith("ngo_")
    assert len(token) == 4 + 64
    assert generate_api_token() != token
    assert mask_token(token) == f"{token[:12]}...{token[-4:]}"
