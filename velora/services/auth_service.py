"""
Authentication service for user accounts.

Handles:
- User registration (bcrypt password hashing)
- Login with email/password and token issuance
- User lookup by id
"""

import logging

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from velora.core.exceptions import DuplicateUserError, InvalidCredentialsError, StorageUnavailableError
from velora.models import User
from velora.schemas.auth import TokenResponse
from velora.services.database import Database
from velora.services.jwt_service import JWTService

logger = logging.getLogger("velora.auth")


class AuthService:
    """Registers users and exchanges credentials for bearer tokens."""

    def __init__(self, database: Database, jwt_service: JWTService, bcrypt_rounds: int = 12):
        self.db = database
        self.jwt_service = jwt_service
        self.bcrypt_rounds = bcrypt_rounds

    # =========================================================================
    # Password Hashing
    # =========================================================================

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt with a fresh salt."""
        salt = bcrypt.gensalt(rounds=self.bcrypt_rounds)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash."""
        try:
            return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
        except ValueError:
            return False

    # =========================================================================
    # Registration
    # =========================================================================

    async def register(self, email: str, password: str) -> User:
        """
        Register a new user account.

        Args:
            email: User's email address.
            password: Plain text password.

        Returns:
            Created User object.

        Raises:
            DuplicateUserError: 400 if email already registered.
            StorageUnavailableError: 503 if database not available.
        """
        if not self.db.is_available:
            raise StorageUnavailableError()

        if await self._get_user_by_email(email):
            raise DuplicateUserError()

        user = User(email=email.lower(), password_hash=self.hash_password(password))
        try:
            async with self.db.session() as session:
                session.add(user)
                await session.commit()
                await session.refresh(user)
        except IntegrityError:
            # Lost a race against a concurrent registration of the same email
            raise DuplicateUserError() from None

        logger.info("Created new user: %s", user.id)
        return user

    # =========================================================================
    # Login
    # =========================================================================

    async def login(self, email: str, password: str) -> TokenResponse:
        """
        Login with email and password.

        Returns:
            TokenResponse with a signed access token.

        Raises:
            InvalidCredentialsError: 400 on unknown email or wrong password.
            StorageUnavailableError: 503 if database not available.
        """
        if not self.db.is_available:
            raise StorageUnavailableError()

        user = await self._get_user_by_email(email)

        if not user:
            logger.info("Login failed for %s - user not found", email)
            raise InvalidCredentialsError()

        if not self.verify_password(password, user.password_hash):
            logger.info("Login failed for %s - invalid password", email)
            raise InvalidCredentialsError()

        logger.info("Successful login for user %s", user.id)
        return TokenResponse(
            token=self.jwt_service.create_access_token(user.id, user.email),
            expires_in=self.jwt_service.get_token_expiry_seconds(),
        )

    # =========================================================================
    # User Lookup
    # =========================================================================

    async def get_user_by_id(self, user_id: str) -> User | None:
        if not self.db.is_available:
            raise StorageUnavailableError()

        async with self.db.session() as session:
            result = await session.execute(select(User).where(User.id == user_id))
            return result.scalar_one_or_none()

    async def _get_user_by_email(self, email: str) -> User | None:
        async with self.db.session() as session:
            result = await session.execute(select(User).where(User.email == email.lower()))
            return result.scalar_one_or_none()
