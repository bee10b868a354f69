"""
Authentication for the FastAPI API: password hashing, signed identity tokens,
registration/login, and the bearer-token dependency.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import bcrypt
import jwt
import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from api.config import config
from catalog.exceptions import (
    AuthenticationError,
    DuplicateEmailError,
    InvalidCredentialsError,
)
from catalog.models import Identity, User, UserPublic
from catalog.users import UserStore

logger = structlog.get_logger(__name__)

# Missing headers are reported by get_current_identity, not by the scheme
security = HTTPBearer(auto_error=False)


def hash_password(plain_password: str, rounds: int = 12) -> str:
    """
    Hash a plain password using bcrypt.

    Args:
        plain_password: The plain text password to hash
        rounds: bcrypt cost factor

    Returns:
        Hashed password string
    """
    # bcrypt only considers the first 72 bytes
    secret = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    Returns:
        True if passwords match, False otherwise (including malformed hashes)
    """
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8")[:72], hashed_password.encode("utf-8"))
    except ValueError:
        return False


class TokenManager:
    """Issues and verifies HS256 identity tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expire_days: int = 7,
        issuer: str = "bookstore-api",
        audience: str = "bookstore-clients"
    ):
        if not secret_key:
            raise ValueError("Token secret key cannot be empty")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire = timedelta(days=expire_days)
        self.issuer = issuer
        self.audience = audience

    def issue_token(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        """
        Create a signed token for a user.

        Args:
            user: Token subject
            expires_delta: Custom lifetime, defaults to the configured horizon

        Returns:
            Encoded token string
        """
        issued_at = datetime.now(timezone.utc)
        payload = {
            "sub": user.id,
            "email": user.email,
            "iat": issued_at,
            "exp": issued_at + (expires_delta if expires_delta is not None else self.expire),
            "iss": self.issuer,
            "aud": self.audience,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Identity:
        """
        Verify signature, issuer, audience, and expiry with no clock-skew allowance.

        Raises:
            AuthenticationError: For any invalid, expired, or malformed token
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                leeway=0,
                options={"require": ["exp", "sub", "iss", "aud"]}
            )
            return Identity(user_id=payload["sub"], email=payload["email"])
        except (jwt.PyJWTError, KeyError) as e:
            logger.debug("Token rejected", reason=type(e).__name__)
            raise AuthenticationError("Invalid or expired token") from e


class CredentialVerifier:
    """Registration and login on top of the identity store."""

    def __init__(self, users: UserStore, tokens: TokenManager, bcrypt_rounds: int = 12):
        self.users = users
        self.tokens = tokens
        self.bcrypt_rounds = bcrypt_rounds

    async def register(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None
    ) -> Tuple[str, UserPublic]:
        """
        Register a new user and issue a token.

        Raises:
            DuplicateEmailError: If the email is already registered (case-insensitive)
        """
        if await self.users.email_exists(email):
            logger.warning("Registration rejected, email taken")
            raise DuplicateEmailError()

        password_hash = await run_in_threadpool(hash_password, password, self.bcrypt_rounds)
        user = await self.users.create(email, password_hash, full_name)

        logger.info("User registered", user_id=user.id)
        return self.tokens.issue_token(user), user.public_view()

    async def login(self, email: str, password: str) -> Tuple[str, UserPublic]:
        """
        Authenticate with email and password.

        Raises:
            InvalidCredentialsError: Same error for unknown email and wrong password
        """
        user = await self.users.get_by_email(email)
        if user is None:
            logger.warning("Login failed")
            raise InvalidCredentialsError()

        if not await run_in_threadpool(verify_password, password, user.password_hash):
            logger.warning("Login failed", user_id=user.id)
            raise InvalidCredentialsError()

        logger.info("User logged in", user_id=user.id)
        return self.tokens.issue_token(user), user.public_view()


token_manager = TokenManager(
    secret_key=config.secret_key,
    algorithm=config.algorithm,
    expire_days=config.access_token_expire_days,
    issuer=config.token_issuer,
    audience=config.token_audience
)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Identity:
    """
    Decode the bearer token once per request.

    Raises:
        AuthenticationError: If the token is missing, invalid, or expired
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")
    return token_manager.verify_token(credentials.credentials)
