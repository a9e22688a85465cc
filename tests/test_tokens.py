import re

import pytest

from passwordless.core import tokens
from passwordless.core.errors import EntropySourceUnavailable
from passwordless.core.security import hash_secret, session_id_from_token


class TestOpaqueToken:
    """Session token generation."""

    def test_token_is_lowercase_base32_without_padding(self):
        token = tokens.new_opaque_token()

        assert re.fullmatch(r"[a-z2-7]{32}", token)
        assert "=" not in token

    def test_tokens_do_not_repeat(self):
        generated = {tokens.new_opaque_token() for _ in range(200)}

        assert len(generated) == 200

    def test_rng_failure_raises_entropy_error(self, monkeypatch):
        def broken(n):
            raise OSError("no /dev/urandom")

        monkeypatch.setattr(tokens.secrets, "token_bytes", broken)

        with pytest.raises(EntropySourceUnavailable):
            tokens.new_opaque_token()


class TestNumericCode:
    """OTP code generation."""

    def test_six_digit_code(self):
        for _ in range(50):
            assert re.fullmatch(r"\d{6}", tokens.new_numeric_code(6))

    def test_leading_zeros_are_kept(self, monkeypatch):
        monkeypatch.setattr(tokens.secrets, "randbelow", lambda n: 42)

        assert tokens.new_numeric_code(6) == "000042"

    def test_full_range_is_reachable(self, monkeypatch):
        seen = []
        monkeypatch.setattr(tokens.secrets, "randbelow", lambda n: seen.append(n) or n - 1)

        assert tokens.new_numeric_code(6) == "999999"
        assert seen == [1_000_000]

    def test_rng_failure_raises_entropy_error(self, monkeypatch):
        def broken(n):
            raise NotImplementedError

        monkeypatch.setattr(tokens.secrets, "randbelow", broken)

        with pytest.raises(EntropySourceUnavailable):
            tokens.new_numeric_code(6)

    def test_rejects_non_positive_length(self):
        with pytest.raises(ValueError):
            tokens.new_numeric_code(0)


class TestHashing:
    """Credential digests."""

    def test_sha256_hex(self):
        assert hash_secret("123456") == (
            "8d969eef6ecad3c29a3a629280e686cf0c3f5d5a86aff3ca12020c923adc6c92"
        )

    def test_deterministic_and_distinct(self):
        assert hash_secret("abc") == hash_secret("abc")
        assert hash_secret("abc") != hash_secret("abd")

    def test_session_id_is_token_digest(self):
        token = tokens.new_opaque_token()

        assert session_id_from_token(token) == hash_secret(token)
        assert len(session_id_from_token(token)) == 64
