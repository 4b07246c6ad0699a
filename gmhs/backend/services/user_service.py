import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import asyncpg
import bcrypt
import jwt
from pydantic import ValidationError

from .base import (
    SchoolService, ServiceError, ValidationFailed, AuthenticationError, ConflictError, new_id
)
from ..config.config import settings
from ..models.db_models import User, Role
from ..api.schemas.user import (
    SignupRequest, SigninRequest, SignupResponse, SigninResponse, UserResponse, ParentResponse, TokenData
)

logger = logging.getLogger(__name__)


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.SALT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


def create_access_token(data: dict, expires_delta: timedelta) -> str:
    """Builds a signed JWT carrying ``data`` that expires after ``expires_delta``."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> TokenData:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return TokenData.model_validate(payload)
    except (jwt.PyJWTError, ValidationError) as e:
        logger.warning(f"Token validation error: {e}")
        raise AuthenticationError("Could not validate credentials") from e


class UserService(SchoolService):
    """
    Sign-up, sign-in and user look-ups.
    """

    async def _find_by_email(self, email: str) -> Optional[User]:
        try:
            return await self.db_client.get_user_by_email(email)
        except Exception as e:
            logger.error(f"Error looking up user '{email}'.", exc_info=True)
            raise ServiceError("Internal server error") from e

    async def signup(self, request: SignupRequest) -> SignupResponse:
        role_name = request.role.upper()
        if role_name not in Role.__members__:
            raise ValidationFailed("Invalid role. Must be ADMIN, TEACHER, or PARENT")

        if await self._find_by_email(request.email):
            logger.info(f"Signup rejected, e-mail '{request.email}' already registered.")
            raise ConflictError("User with this email already exists")

        hashed = await asyncio.to_thread(hash_password, request.password)
        user = User(
            id=new_id(),
            name=request.name,
            email=request.email,
            password=hashed,
            role=Role(role_name),
            created_at=datetime.now(timezone.utc),
        )
        try:
            await self.db_client.add_user(user)
        except asyncpg.UniqueViolationError as e:
            # Registered concurrently after the check above.
            logger.info(f"Signup rejected, e-mail '{request.email}' already registered.")
            raise ConflictError("User with this email already exists") from e
        except Exception as e:
            logger.error(f"Error creating user '{request.email}'.", exc_info=True)
            raise ServiceError("Internal server error") from e

        logger.info(f"User {user.id} ({user.role.value}) created.")
        return SignupResponse(message="User created successfully", user=UserResponse.model_validate(user))

    async def signin(self, request: SigninRequest) -> SigninResponse:
        logger.info(f"Signin attempt for '{request.email}'.")
        user = await self._find_by_email(request.email)
        if user is None:
            raise AuthenticationError("Invalid credentials")

        if not await asyncio.to_thread(verify_password, request.password, user.password):
            logger.warning(f"Wrong password for '{request.email}'.")
            raise AuthenticationError("Invalid credentials")

        token = create_access_token(
            {"sub": user.id, "role": user.role.value},
            timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )
        return SigninResponse(message="Login successful", role=user.role, id=user.id, access_token=token)

    async def get_user_from_token(self, token: str) -> User:
        token_data = decode_access_token(token)
        if token_data.sub is None:
            raise AuthenticationError("Could not validate credentials")
        try:
            user = await self.db_client.get_user_by_id(token_data.sub)
        except Exception as e:
            logger.error(f"Error looking up token subject '{token_data.sub}'.", exc_info=True)
            raise ServiceError("Internal server error") from e
        if user is None:
            logger.warning(f"Token subject '{token_data.sub}' no longer exists.")
            raise AuthenticationError("Could not validate credentials")
        return user

    async def list_parents(self) -> List[ParentResponse]:
        try:
            parents = await self.db_client.get_users_by_role(Role.PARENT, order_by_name=True)
        except Exception as e:
            logger.error("Error fetching parents.", exc_info=True)
            raise ServiceError("Failed to fetch parents") from e
        return [ParentResponse.model_validate(parent) for parent in parents]
