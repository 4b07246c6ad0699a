import pytest
import jwt
from datetime import timedelta

from gmhs.backend.config.config import settings
from gmhs.backend.services.base import ServiceError, ValidationFailed, AuthenticationError, ConflictError
from gmhs.backend.services.user_service import (
    UserService, hash_password, verify_password, create_access_token, decode_access_token
)
from gmhs.backend.models.db_models import Role
from gmhs.backend.api.schemas.user import SignupRequest, SigninRequest


@pytest.fixture
def service_instance(mock_db):
    return UserService(db_client=mock_db), mock_db


def test_hash_and_verify_password():
    hashed = hash_password("s3cret", rounds=4)
    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_password_against_non_bcrypt_value():
    """Scenario: a stored value that is not a bcrypt hash never verifies."""
    assert verify_password("s3cret", "plain-text") is False


def test_access_token_round_trip():
    token = create_access_token({"sub": "user-1", "role": "PARENT"}, timedelta(minutes=5))
    data = decode_access_token(token)
    assert data.sub == "user-1"
    assert data.role == Role.PARENT


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "user-1"}, timedelta(minutes=-1))
    with pytest.raises(AuthenticationError):
        decode_access_token(token)


def test_token_signed_with_other_key_is_rejected():
    token = jwt.encode({"sub": "user-1"}, "another-key", algorithm=settings.ALGORITHM)
    with pytest.raises(AuthenticationError):
        decode_access_token(token)


@pytest.mark.asyncio
class TestUserService:

    async def test_signup_normalizes_role_and_hashes_password(self, service_instance, monkeypatch):
        service, mock_db = service_instance
        monkeypatch.setattr(settings, "SALT_ROUNDS", 4)

        result = await service.signup(SignupRequest(name="Ayse", email="ayse@school.test", password="pw", role="teacher"))

        stored = mock_db.add_user.await_args.args[0]
        assert stored.role == Role.TEACHER
        assert stored.password != "pw"
        assert verify_password("pw", stored.password)
        assert result.message == "User created successfully"
        assert result.user.email == "ayse@school.test"
        assert "password" not in result.user.model_dump()

    async def test_signup_rejects_unknown_role(self, service_instance):
        service, mock_db = service_instance
        with pytest.raises(ValidationFailed, match="Invalid role"):
            await service.signup(SignupRequest(name="A", email="a@b.c", password="pw", role="student"))
        mock_db.add_user.assert_not_awaited()

    async def test_signup_rejects_duplicate_email(self, service_instance, make_user):
        service, mock_db = service_instance
        mock_db.get_user_by_email.return_value = make_user(Role.PARENT, email="a@b.c")
        with pytest.raises(ConflictError, match="already exists"):
            await service.signup(SignupRequest(name="A", email="a@b.c", password="pw", role="PARENT"))

    async def test_signup_db_failure(self, service_instance, monkeypatch):
        service, mock_db = service_instance
        monkeypatch.setattr(settings, "SALT_ROUNDS", 4)
        mock_db.add_user.side_effect = Exception("unique violation")
        with pytest.raises(ServiceError):
            await service.signup(SignupRequest(name="A", email="a@b.c", password="pw", role="ADMIN"))

    async def test_signin_success_issues_token_with_role(self, service_instance, make_user):
        service, mock_db = service_instance
        user = make_user(Role.ADMIN, password=hash_password("pw", rounds=4))
        mock_db.get_user_by_email.return_value = user

        result = await service.signin(SigninRequest(email=user.email, password="pw"))

        assert result.message == "Login successful"
        assert result.id == user.id
        assert result.role == Role.ADMIN
        token_data = decode_access_token(result.access_token)
        assert token_data.sub == user.id
        assert token_data.role == Role.ADMIN

    async def test_signin_unknown_email(self, service_instance):
        service, _ = service_instance
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            await service.signin(SigninRequest(email="nobody@school.test", password="pw"))

    async def test_signin_wrong_password(self, service_instance, make_user):
        service, mock_db = service_instance
        mock_db.get_user_by_email.return_value = make_user(password=hash_password("pw", rounds=4))
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            await service.signin(SigninRequest(email="x@school.test", password="nope"))

    async def test_get_user_from_token(self, service_instance, make_user):
        service, mock_db = service_instance
        user = make_user(Role.PARENT)
        mock_db.get_user_by_id.return_value = user
        token = create_access_token({"sub": user.id, "role": user.role.value}, timedelta(minutes=5))

        assert await service.get_user_from_token(token) == user
        mock_db.get_user_by_id.assert_awaited_once_with(user.id)

    async def test_get_user_from_token_for_deleted_user(self, service_instance):
        service, _ = service_instance
        token = create_access_token({"sub": "gone"}, timedelta(minutes=5))
        with pytest.raises(AuthenticationError):
            await service.get_user_from_token(token)

    async def test_list_parents_orders_by_name(self, service_instance, make_user):
        service, mock_db = service_instance
        mock_db.get_users_by_role.return_value = [make_user(Role.PARENT, name="Ahmet"), make_user(Role.PARENT, name="Zeynep")]

        parents = await service.list_parents()

        mock_db.get_users_by_role.assert_awaited_once_with(Role.PARENT, order_by_name=True)
        assert [p.name for p in parents] == ["Ahmet", "Zeynep"]
