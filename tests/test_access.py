"""
Unit tests for services/access.py
Tests password hashing, registration, login and the access gate
"""
import pytest
from sqlalchemy import select

from db.models import User, UserSession
from db.repositories import SessionRepository
from errors import (
    ConflictError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidInputError,
    UnauthenticatedError,
)
from services import access
from services.access import ANONYMOUS, Anonymous, Authenticated

from conftest import PASSWORD, STAFF_EMAIL, VISITOR_EMAIL


def _caller(role: str) -> Authenticated:
    return Authenticated(user_id=1, email="someone@example.com", role=role, session_id="token")


class TestPasswordHashing:
    """Tests for bcrypt hashing helpers"""

    @pytest.mark.asyncio
    async def test_hash_is_salted_and_not_plaintext(self):
        first = await access.hash_password(PASSWORD)
        second = await access.hash_password(PASSWORD)

        assert PASSWORD not in first
        assert first != second
        assert first.startswith("$2")

    @pytest.mark.asyncio
    async def test_verify_password(self):
        hashed = await access.hash_password(PASSWORD)

        assert await access.verify_password(PASSWORD, hashed) is True
        assert await access.verify_password("Wrong!Password1", hashed) is False

    @pytest.mark.asyncio
    async def test_overlong_password_never_matches(self):
        hashed = await access.hash_password(PASSWORD)

        assert await access.verify_password(PASSWORD + "x" * 80, hashed) is False


class TestValidateRegistration:

    @pytest.mark.parametrize("email,password", [(None, PASSWORD), ("a@b.co", None), ("", "")])
    def test_missing_fields(self, email, password):
        with pytest.raises(InvalidInputError, match="required"):
            access.validate_registration(email, password)

    @pytest.mark.parametrize("email", ["not-an-email", "a@b", "spaces in@x.com"])
    def test_bad_email(self, email):
        with pytest.raises(InvalidInputError, match="email"):
            access.validate_registration(email, PASSWORD)

    def test_eight_characters_is_enough(self):
        assert access.validate_registration("a@b.co", "Short1!A") == ("a@b.co", "Short1!A")

    @pytest.mark.parametrize("password", ["Sh0rt!", "alllowercase1!", "NoDigits!!", "NoSymbols123", "A1!" + "a" * 80])
    def test_weak_password(self, password):
        with pytest.raises(InvalidInputError, match="Password"):
            access.validate_registration("a@b.co", password)


class TestRegister:
    """Tests for account creation"""

    @pytest.mark.asyncio
    async def test_register_creates_visitor_and_session(self, test_db_session):
        user, caller = await access.register(test_db_session, "new@example.com", PASSWORD)

        assert user.role == "visitor"
        assert user.password_hash != PASSWORD
        assert caller.user_id == user.id
        assert caller.role == "visitor"

        record = await SessionRepository(test_db_session).get_active(caller.session_id)
        assert record is not None

    @pytest.mark.asyncio
    async def test_duplicate_email_keeps_existing_hash(self, test_db_session, visitor_user):
        original_hash = visitor_user.password_hash

        with pytest.raises(ConflictError):
            await access.register(test_db_session, VISITOR_EMAIL, "Another!Pass42")

        result = await test_db_session.execute(select(User).where(User.email == VISITOR_EMAIL))
        users = result.scalars().all()
        assert len(users) == 1
        assert users[0].password_hash == original_hash


class TestAuthenticate:
    """Tests for credential checks"""

    @pytest.mark.asyncio
    async def test_valid_credentials(self, test_db_session, staff_user):
        user, caller = await access.authenticate(test_db_session, STAFF_EMAIL, PASSWORD)

        assert user.id == staff_user.id
        assert caller.role == "staff"

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_the_same(self, test_db_session, visitor_user):
        with pytest.raises(InvalidCredentialsError) as wrong_password:
            await access.authenticate(test_db_session, VISITOR_EMAIL, "Wrong!Password1")
        with pytest.raises(InvalidCredentialsError) as unknown_email:
            await access.authenticate(test_db_session, "nobody@example.com", PASSWORD)

        assert wrong_password.value.message == unknown_email.value.message
        assert wrong_password.value.code == unknown_email.value.code

    @pytest.mark.asyncio
    async def test_missing_credentials(self, test_db_session):
        with pytest.raises(InvalidInputError):
            await access.authenticate(test_db_session, VISITOR_EMAIL, None)

    @pytest.mark.asyncio
    async def test_each_login_gets_a_new_session(self, test_db_session, visitor_user):
        _, first = await access.authenticate(test_db_session, VISITOR_EMAIL, PASSWORD)
        _, second = await access.authenticate(test_db_session, VISITOR_EMAIL, PASSWORD)

        assert first.session_id != second.session_id


class TestResolveAndDestroy:
    """Tests for session lookup and teardown"""

    @pytest.mark.asyncio
    async def test_no_token_is_anonymous(self, test_db_session):
        assert await access.resolve(test_db_session, None) == ANONYMOUS

    @pytest.mark.asyncio
    async def test_unknown_token_is_anonymous(self, test_db_session):
        assert isinstance(await access.resolve(test_db_session, "bogus"), Anonymous)

    @pytest.mark.asyncio
    async def test_live_session_resolves(self, test_db_session, visitor_user):
        _, caller = await access.authenticate(test_db_session, VISITOR_EMAIL, PASSWORD)

        resolved = await access.resolve(test_db_session, caller.session_id)

        assert resolved == caller

    @pytest.mark.asyncio
    async def test_expired_session_is_anonymous_and_removed(self, test_db_session, visitor_user):
        record = await SessionRepository(test_db_session).create(visitor_user, max_age_seconds=-60)

        resolved = await access.resolve(test_db_session, record.id)

        assert isinstance(resolved, Anonymous)
        remaining = await test_db_session.scalar(
            select(UserSession.id).where(UserSession.id == record.id)
        )
        assert remaining is None

    @pytest.mark.asyncio
    async def test_destroy_is_idempotent(self, test_db_session, visitor_user):
        _, caller = await access.authenticate(test_db_session, VISITOR_EMAIL, PASSWORD)

        await access.destroy(test_db_session, caller.session_id)
        await access.destroy(test_db_session, caller.session_id)
        await access.destroy(test_db_session, None)

        assert isinstance(await access.resolve(test_db_session, caller.session_id), Anonymous)


class TestGate:
    """Tests for require_authenticated / require_role"""

    def test_require_authenticated_rejects_anonymous(self):
        with pytest.raises(UnauthenticatedError):
            access.require_authenticated(ANONYMOUS)

    def test_require_authenticated_passes_through(self):
        caller = _caller("visitor")

        assert access.require_authenticated(caller) is caller

    def test_role_check_on_anonymous_is_unauthenticated(self):
        with pytest.raises(UnauthenticatedError):
            access.require_role(ANONYMOUS, "staff")

    def test_wrong_role_is_forbidden(self):
        with pytest.raises(ForbiddenError):
            access.require_role(_caller("visitor"), "staff")

    def test_matching_role(self):
        caller = _caller("staff")

        assert access.require_role(caller, "staff") is caller
