import logging
from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer

from .schemas.user import SignupRequest, SigninRequest, SignupResponse, SigninResponse, UserResponse
from ..models.db_models import User
from ..services.base import ServiceError
from ..services.user_service import UserService
from .dependencies import get_user_service
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/signin", auto_error=False)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: UserService = Depends(get_user_service)
) -> User:
    """
    Resolves the bearer token to the user it was issued for.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return await service.get_user_from_token(token)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("100/minute")
async def signup(
    request: Request,
    signup_request: SignupRequest,
    service: UserService = Depends(get_user_service)
):
    """Registers a new ADMIN, TEACHER or PARENT account."""
    try:
        return await service.signup(signup_request)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post("/signin", response_model=SigninResponse)
@limiter.limit("100/minute")
async def signin(
    request: Request,
    signin_request: SigninRequest,
    service: UserService = Depends(get_user_service)
):
    """Checks the credentials and issues an access token carrying the user's role."""
    try:
        return await service.signin(signin_request)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: User = Depends(get_current_user)):
    return current_user
