#gmhs/backend/api/dependencies.py
from fastapi import Request, Depends, HTTPException, status
import asyncpg

from ..db.db_client import AsyncPostgresClient
from ..services.user_service import UserService
from ..services.student_service import StudentService
from ..services.complaint_service import ComplaintService
from ..services.admin_service import AdminService


def get_postgres_pool(request: Request) -> asyncpg.Pool:
    """
    Provides the PostgreSQL connection pool created in the application lifespan.
    """
    pool = getattr(request.app.state, "postgres_pool", None)
    if pool is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database is not available")
    return pool


def get_db_client(postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)) -> AsyncPostgresClient:
    """
    A fresh client per request on top of the shared pool.
    Tests override this dependency to inject a mocked client.
    """
    return AsyncPostgresClient(pool=postgres_pool)


def get_user_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> UserService:
    return UserService(db_client=db_client)


def get_student_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> StudentService:
    return StudentService(db_client=db_client)


def get_complaint_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> ComplaintService:
    return ComplaintService(db_client=db_client)


def get_admin_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> AdminService:
    return AdminService(db_client=db_client)
