# gmhs/backend/main.py
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import asyncpg
import logging

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config.config import settings
from .logging.logging_config import setup_logging
from .api import auth, students, actions, complaints, parents, admin
from .api.utilities.errors import validation_exception_handler
from .api.utilities.limiter import limiter
from .api.utilities.no_cache import NoCacheMiddleware
from .db.db_client import AsyncPostgresClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Opens the PostgreSQL pool (and makes sure the tables exist) on startup,
    closes it on shutdown.
    """
    setup_logging()
    logger.info("Application starting...")

    app.state.postgres_pool = None
    if settings.DATABASE_URL:
        try:
            postgres_pool = await asyncpg.create_pool(
                dsn=settings.DATABASE_URL, min_size=5, max_size=20
            )
            await AsyncPostgresClient(pool=postgres_pool).create_schema()
            app.state.postgres_pool = postgres_pool
            logger.info("PostgreSQL connection pool created.")
        except Exception as e:
            logger.error(f"Startup error while connecting to PostgreSQL: {e}", exc_info=True)
    else:
        logger.warning("DATABASE_URL is not set, database routes will answer 503.")

    yield

    logger.info("Application shutting down...")
    if app.state.postgres_pool:
        await app.state.postgres_pool.close()
        logger.info("PostgreSQL connection pool closed.")


app = FastAPI(
    title="GMHS API",
    description="School management API: students, actions, complaints and admin statistics.",
    version="1.0.0",
    lifespan=lifespan
)
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(NoCacheMiddleware)

app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.include_router(auth.router, prefix="/api")
app.include_router(students.router, prefix="/api")
app.include_router(actions.router, prefix="/api")
app.include_router(complaints.router, prefix="/api")
app.include_router(parents.router, prefix="/api")
app.include_router(admin.router, prefix="/api")


@app.get("/health", tags=["System"])
def health_check():
    """Liveness probe."""
    return {"status": "ok", "message": "GMHS API is running."}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
