"""
Access/session gate.

Every request is classified as Anonymous or Authenticated (visitor or staff)
from the session cookie it presents. Operations then ask for the minimum
access level they need through require_authenticated / require_role.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession

from config.config import settings
from db.models import User, UserSession
from db.repositories import SessionRepository, UserRepository
from errors import (
    ConflictError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidInputError,
    UnauthenticatedError,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[^A-Za-z0-9]).{8,}$")

# bcrypt ignores (and newer releases reject) anything past 72 bytes
MAX_PASSWORD_BYTES = 72

# Compared against when the email is unknown so both failure paths cost a hash
_DUMMY_HASH = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))


@dataclass(frozen=True)
class Anonymous:
    """Caller without a valid session"""


@dataclass(frozen=True)
class Authenticated:
    """Caller bound to a live session"""

    user_id: int
    email: str
    role: str
    session_id: str


Caller = Union[Anonymous, Authenticated]

ANONYMOUS = Anonymous()


# ============ Password hashing ============

async def hash_password(password: str) -> str:
    """Salted bcrypt hash, computed off the event loop"""
    hashed = await asyncio.to_thread(
        bcrypt.hashpw,
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    )
    return hashed.decode("utf-8")


async def verify_password(password: str, password_hash: str) -> bool:
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    return await asyncio.to_thread(bcrypt.checkpw, encoded, password_hash.encode("utf-8"))


# ============ Credential checks ============

def validate_registration(email: Optional[str], password: Optional[str]) -> Tuple[str, str]:
    """Check email and password format before anything touches storage"""
    if not email or not password:
        raise InvalidInputError("Email and password are required.")
    if not isinstance(email, str) or not EMAIL_PATTERN.match(email):
        raise InvalidInputError("Invalid email format.")
    if (
        not isinstance(password, str)
        or not PASSWORD_PATTERN.match(password)
        or len(password.encode("utf-8")) > MAX_PASSWORD_BYTES
    ):
        raise InvalidInputError(
            "Password must be 8 to 72 characters with uppercase, lowercase, "
            "number and special characters."
        )
    return email, password


def _as_caller(record: UserSession) -> Authenticated:
    return Authenticated(
        user_id=record.user_id,
        email=record.email,
        role=record.role,
        session_id=record.id
    )


async def register(db: AsyncSession, email: Optional[str], password: Optional[str]) -> Tuple[User, Authenticated]:
    """
    Create a visitor account and log it in.

    Raises:
        InvalidInputError: malformed email or weak password
        ConflictError: email already registered (existing account untouched)
    """
    email, password = validate_registration(email, password)
    users = UserRepository(db)

    if await users.get_by_email(email) is not None:
        raise ConflictError("Email already registered.")

    user = await users.create(email, await hash_password(password), role="visitor")
    record = await SessionRepository(db).create(user, settings.SESSION_MAX_AGE_SECONDS)

    logger.info(f"New user registered: {email}")
    return user, _as_caller(record)


async def authenticate(db: AsyncSession, email: Optional[str], password: Optional[str]) -> Tuple[User, Authenticated]:
    """
    Verify credentials and open a new session.

    Unknown email and wrong password raise the same InvalidCredentialsError.
    """
    if not email or not password:
        raise InvalidInputError("Email and password are required.")

    user = await UserRepository(db).get_by_email(email)
    if user is None:
        await verify_password(password, _DUMMY_HASH.decode("utf-8"))
        logger.warning("Failed login attempt")
        raise InvalidCredentialsError()

    if not await verify_password(password, user.password_hash):
        logger.warning("Failed login attempt")
        raise InvalidCredentialsError()

    record = await SessionRepository(db).create(user, settings.SESSION_MAX_AGE_SECONDS)
    logger.info(f"User logged in: {email}")
    return user, _as_caller(record)


async def resolve(db: AsyncSession, token: Optional[str]) -> Caller:
    """Classify a request from its session token"""
    if not token:
        return ANONYMOUS

    sessions = SessionRepository(db)
    record = await sessions.get_active(token)
    if record is None:
        # Unknown or expired; drop any stale row for this token
        await sessions.delete(token)
        return ANONYMOUS
    return _as_caller(record)


async def destroy(db: AsyncSession, token: Optional[str]):
    """End a session. Missing or already destroyed sessions are not an error."""
    if token:
        await SessionRepository(db).delete(token)


# ============ Gate checks ============

def require_authenticated(caller: Caller) -> Authenticated:
    if not isinstance(caller, Authenticated):
        raise UnauthenticatedError()
    return caller


def require_role(caller: Caller, role: str) -> Authenticated:
    """Role check composed after the authentication check"""
    authenticated = require_authenticated(caller)
    if authenticated.role != role:
        logger.warning(f"{role}-only access denied for user {authenticated.user_id}")
        raise ForbiddenError(role)
    return authenticated
