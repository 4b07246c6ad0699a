# gmhs/backend/api/utilities/errors.py
import logging

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from ...services.base import (
    ServiceError, ValidationFailed, AuthenticationError, AuthorizationError, NotFoundError, ConflictError
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = {
    ValidationFailed: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
}


def to_http_exception(error: ServiceError) -> HTTPException:
    """Maps a service-layer error onto the HTTP status the API reports for it."""
    for error_type, status_code in _STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
            return HTTPException(status_code=status_code, detail=str(error), headers=headers)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error) or "Internal server error")


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request validation failures are reported as 400 rather than FastAPI's default 422."""
    logger.info(f"Rejected request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )
