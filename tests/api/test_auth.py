"""
Tests for password hashing, tokens, and the credential verifier.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from api.auth import TokenManager, hash_password, verify_password
from catalog.exceptions import AuthenticationError, DuplicateEmailError, InvalidCredentialsError
from catalog.models import User


@pytest.fixture
def user():
    now = datetime.now(timezone.utc)
    return User(
        id="64b000000000000000000001",
        email="alice@example.com",
        password_hash="unused",
        full_name="Alice",
        created_at=now,
        updated_at=now
    )


class TestPasswordHashing:
    """Test cases for bcrypt helpers."""

    def test_hash_and_verify(self):
        hashed = hash_password("correct horse", rounds=4)

        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong horse", hashed)

    def test_hashes_are_salted(self):
        assert hash_password("secret1", rounds=4) != hash_password("secret1", rounds=4)

    def test_malformed_hash(self):
        assert verify_password("secret1", "not-a-bcrypt-hash") is False

    def test_long_passwords_are_accepted(self):
        password = "x" * 100
        assert verify_password(password, hash_password(password, rounds=4))


class TestTokenManager:
    """Test cases for issuing and verifying tokens."""

    def test_round_trip(self, token_manager, user):
        identity = token_manager.verify_token(token_manager.issue_token(user))

        assert identity.user_id == user.id
        assert identity.email == "alice@example.com"

    def test_claims(self, token_manager, user):
        token = token_manager.issue_token(user)
        payload = jwt.decode(token, options={"verify_signature": False})

        assert payload["sub"] == user.id
        assert payload["iss"] == "bookstore-api"
        assert payload["aud"] == "bookstore-clients"
        assert payload["exp"] - payload["iat"] == 7 * 24 * 3600

    def test_expired_token(self, token_manager, user):
        token = token_manager.issue_token(user, expires_delta=timedelta(seconds=-1))

        with pytest.raises(AuthenticationError) as exc_info:
            token_manager.verify_token(token)

        assert exc_info.value.message == "Invalid or expired token"

    def test_wrong_secret(self, token_manager, user):
        other = TokenManager(secret_key="another-secret")

        with pytest.raises(AuthenticationError):
            token_manager.verify_token(other.issue_token(user))

    def test_wrong_audience(self, token_manager, user):
        other = TokenManager(secret_key="test-secret-key", audience="someone-else")

        with pytest.raises(AuthenticationError):
            token_manager.verify_token(other.issue_token(user))

    def test_wrong_issuer(self, token_manager, user):
        other = TokenManager(secret_key="test-secret-key", issuer="someone-else")

        with pytest.raises(AuthenticationError):
            token_manager.verify_token(other.issue_token(user))

    def test_tampered_token(self, token_manager, user):
        token = token_manager.issue_token(user)
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])

        with pytest.raises(AuthenticationError):
            token_manager.verify_token(tampered)

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
    def test_malformed_token(self, token_manager, token):
        with pytest.raises(AuthenticationError):
            token_manager.verify_token(token)

    def test_missing_subject(self, token_manager):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"email": "a@x.com", "exp": now + timedelta(hours=1), "iss": "bookstore-api", "aud": "bookstore-clients"},
            "test-secret-key",
            algorithm="HS256"
        )

        with pytest.raises(AuthenticationError):
            token_manager.verify_token(token)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenManager(secret_key="")


class TestCredentialVerifier:
    """Test cases for registration and login."""

    @pytest.mark.asyncio
    async def test_register_then_login(self, credential_verifier, token_manager):
        token, user = await credential_verifier.register("Alice@Example.com", "secret1", "Alice")

        assert user.email == "alice@example.com"
        assert token_manager.verify_token(token).user_id == user.id

        login_token, login_user = await credential_verifier.login("ALICE@example.com", "secret1")

        assert login_user.id == user.id
        assert token_manager.verify_token(login_token).user_id == user.id

    @pytest.mark.asyncio
    async def test_password_is_hashed_at_rest(self, credential_verifier, user_store):
        await credential_verifier.register("alice@example.com", "secret1")

        stored = await user_store.get_by_email("alice@example.com")

        assert stored.password_hash != "secret1"
        assert verify_password("secret1", stored.password_hash)

    @pytest.mark.asyncio
    async def test_duplicate_registration(self, credential_verifier):
        await credential_verifier.register("alice@example.com", "secret1")

        with pytest.raises(DuplicateEmailError):
            await credential_verifier.register("ALICE@EXAMPLE.COM", "secret2")

    @pytest.mark.asyncio
    async def test_login_failures_are_indistinguishable(self, credential_verifier):
        await credential_verifier.register("alice@example.com", "secret1")

        with pytest.raises(InvalidCredentialsError) as wrong_password:
            await credential_verifier.login("alice@example.com", "secret2")
        with pytest.raises(InvalidCredentialsError) as unknown_email:
            await credential_verifier.login("nobody@example.com", "secret1")

        assert wrong_password.value.message == unknown_email.value.message == "Invalid email or password"
