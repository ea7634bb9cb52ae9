"""Unit tests for auth/tokens.py -- token codec and password hashing.

Covers:
- issue() -> verify() returns the identity id
- expiry: valid just inside the window, ExpiredToken at and after it
- tampered signature and foreign secret -> InvalidToken
- garbage, missing claims, non-numeric subject -> MalformedToken
- signature is checked before expiry
- bcrypt hashes are salted, carry their cost, and verify correctly
"""

from datetime import timedelta

import pytest
from jose import jwt

from auth.tokens import TokenCodec, dummy_hash, hash_password, verify_password
from core.errors import AuthenticationError, ExpiredToken, InvalidToken, MalformedToken

SEVEN_DAYS = 7 * 24 * 3600
OTHER_SECRET = "a-completely-different-secret-0123456789"


def _flip_signature_char(token: str) -> str:
    """Replace the first signature character with a different base64url character."""
    header, payload, signature = token.split(".")
    replacement = "A" if signature[0] != "A" else "B"
    return ".".join([header, payload, replacement + signature[1:]])


# ---------------------------------------------------------------------------
# Issue / verify
# ---------------------------------------------------------------------------


class TestTokenRoundTrip:
    def test_verify_returns_identity_id(self, codec):
        token = codec.issue(42)
        assert codec.verify(token) == 42

    def test_token_is_opaque_string(self, codec):
        token = codec.issue(7)
        assert isinstance(token, str)
        assert token.count(".") == 2

    def test_claims_carry_subject_and_window(self, codec, clock):
        claims = jwt.get_unverified_claims(codec.issue(5))
        assert claims["sub"] == "5"
        assert claims["exp"] - claims["iat"] == SEVEN_DAYS
        assert claims["iat"] == int(clock.now.timestamp())

    def test_rejects_empty_secret(self):
        with pytest.raises(ValueError):
            TokenCodec("")

    def test_rejects_non_positive_window(self):
        with pytest.raises(ValueError):
            TokenCodec(OTHER_SECRET, expire_seconds=0)


class TestTokenExpiry:
    def test_valid_one_second_before_expiry(self, codec, clock):
        token = codec.issue(1)
        clock.advance(seconds=SEVEN_DAYS - 1)
        assert codec.verify(token) == 1

    def test_expired_at_window_boundary(self, codec, clock):
        token = codec.issue(1)
        clock.advance(seconds=SEVEN_DAYS)
        with pytest.raises(ExpiredToken):
            codec.verify(token)

    def test_expired_long_after_window(self, codec, clock):
        token = codec.issue(1)
        clock.advance(days=30)
        with pytest.raises(ExpiredToken):
            codec.verify(token)

    def test_forged_expired_token_reports_invalid_not_expired(self, codec, clock):
        """Signature is checked first: a bad signature never reaches the expiry check."""
        token = TokenCodec(OTHER_SECRET, clock=clock).issue(1)
        clock.advance(days=30)
        with pytest.raises(InvalidToken):
            codec.verify(token)


class TestTokenIntegrity:
    def test_tampered_signature_is_invalid(self, codec):
        token = _flip_signature_char(codec.issue(3))
        with pytest.raises(InvalidToken):
            codec.verify(token)

    def test_foreign_secret_is_invalid(self, codec, clock):
        token = TokenCodec(OTHER_SECRET, clock=clock).issue(3)
        with pytest.raises(InvalidToken):
            codec.verify(token)

    def test_secret_rotation_invalidates_existing_tokens(self, codec, clock):
        token = codec.issue(3)
        rotated = TokenCodec(OTHER_SECRET, clock=clock)
        with pytest.raises(InvalidToken):
            rotated.verify(token)

    def test_swapped_payload_is_invalid(self, codec):
        """Grafting another token's payload onto a signature breaks the MAC."""
        header, _, signature = codec.issue(3).split(".")
        _, other_payload, _ = codec.issue(4).split(".")
        with pytest.raises(InvalidToken):
            codec.verify(".".join([header, other_payload, signature]))

    @pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b", "a.b.c", "...."])
    def test_unparsable_is_malformed(self, codec, garbage):
        with pytest.raises(MalformedToken):
            codec.verify(garbage)

    def test_missing_subject_is_malformed(self, codec, clock):
        exp = clock.now + timedelta(hours=1)
        token = jwt.encode({"exp": exp}, "songvault-test-secret-0123456789abcdef", algorithm="HS256")
        with pytest.raises(MalformedToken):
            codec.verify(token)

    def test_non_numeric_subject_is_malformed(self, codec, clock):
        exp = clock.now + timedelta(hours=1)
        token = jwt.encode({"sub": "alice", "exp": exp}, "songvault-test-secret-0123456789abcdef", algorithm="HS256")
        with pytest.raises(MalformedToken):
            codec.verify(token)

    def test_missing_expiry_is_malformed(self, codec):
        token = jwt.encode({"sub": "1"}, "songvault-test-secret-0123456789abcdef", algorithm="HS256")
        with pytest.raises(MalformedToken):
            codec.verify(token)

    @pytest.mark.parametrize("signed", [True, False])
    def test_oversized_subject_is_malformed(self, codec, clock, signed):
        exp = clock.now + timedelta(hours=1)
        token = jwt.encode({"sub": "9" * 5000, "exp": exp}, "songvault-test-secret-0123456789abcdef", algorithm="HS256")
        if not signed:
            header, payload, _ = token.split(".")
            token = ".".join([header, payload, "AAAA"])
        with pytest.raises(MalformedToken):
            codec.verify(token)

    def test_subject_beyond_integer_key_range_is_malformed(self, codec, clock):
        exp = clock.now + timedelta(hours=1)
        token = jwt.encode({"sub": str(2**63), "exp": exp}, "songvault-test-secret-0123456789abcdef", algorithm="HS256")
        with pytest.raises(MalformedToken):
            codec.verify(token)

    def test_all_failures_share_the_authentication_base(self):
        for cls in (MalformedToken, InvalidToken, ExpiredToken):
            assert issubclass(cls, AuthenticationError)
            assert cls().message == AuthenticationError().message


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


class TestPasswordHashing:
    def test_hash_is_not_plaintext_and_verifies(self):
        hashed = hash_password("pw123", rounds=4)
        assert "pw123" not in hashed
        assert verify_password("pw123", hashed)

    def test_wrong_password_fails(self):
        hashed = hash_password("pw123", rounds=4)
        assert not verify_password("pw124", hashed)

    def test_hash_is_salted(self):
        assert hash_password("same", rounds=4) != hash_password("same", rounds=4)

    def test_hash_embeds_cost_factor(self):
        assert hash_password("pw", rounds=5).startswith("$2b$05$")

    def test_corrupt_hash_fails_closed(self):
        assert verify_password("pw123", "not-a-bcrypt-hash") is False

    def test_dummy_hash_matches_requested_cost_and_is_cached(self):
        assert dummy_hash(4).startswith("$2b$04$")
        assert dummy_hash(4) is dummy_hash(4)
