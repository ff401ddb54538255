"""Tests for password hashing and JWT handling."""

from datetime import timedelta

from app.services.jwt import JWTService, format_duration
from app.services.security import generate_reset_token, hash_password, verify_password


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("Password1!", rounds=4)
        assert hashed != "Password1!"
        assert verify_password("Password1!", hashed)

    def test_altered_password_fails(self):
        hashed = hash_password("Password1!", rounds=4)
        assert not verify_password("Password1?", hashed)
        assert not verify_password("password1!", hashed)

    def test_hashes_are_salted(self):
        assert hash_password("Password1!", rounds=4) != hash_password("Password1!", rounds=4)

    def test_malformed_hash_is_rejected(self):
        """A corrupt stored hash is treated as a mismatch, not an error."""
        assert verify_password("Password1!", "not-a-bcrypt-hash") is False


class TestResetTokens:
    def test_token_shape(self):
        token = generate_reset_token()
        assert len(token) == 64
        int(token, 16)

    def test_tokens_are_unique(self):
        assert len({generate_reset_token() for _ in range(50)}) == 50


class TestJWTService:
    def test_round_trip_claims(self):
        service = JWTService()
        payload = service.decode_token(service.create_token(user_id=7, email="a@example.com"))
        assert payload is not None
        assert payload["sub"] == "7"
        assert payload["email"] == "a@example.com"
        assert payload["exp"] > payload["iat"]

    def test_expired_token(self):
        service = JWTService()
        token = service.create_token(user_id=7, email="a@example.com", expires_delta=timedelta(seconds=-1))
        assert service.decode_token(token) is None

    def test_tampered_token(self):
        service = JWTService()
        token = service.create_token(user_id=7, email="a@example.com")
        head, body, sig = token.split(".")
        assert service.decode_token(f"{head}.{body}.{sig[::-1]}") is None

    def test_garbage_token(self):
        assert JWTService().decode_token("not-a-jwt") is None

    def test_expires_in_label(self):
        assert JWTService().expires_in == "24h"


class TestFormatDuration:
    def test_minutes(self):
        assert format_duration(30) == "30m"

    def test_hours(self):
        assert format_duration(60) == "1h"
        assert format_duration(1440) == "24h"

    def test_days(self):
        assert format_duration(2880) == "2d"
        assert format_duration(10080) == "7d"

    def test_uneven_hours_fall_back_to_minutes(self):
        assert format_duration(90) == "90m"
