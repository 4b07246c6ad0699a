import os
from dotenv import load_dotenv

load_dotenv()

DEFAULT_PRECACHE_URLS = [
    "/",
    "/dashboard/admin",
    "/dashboard/teacher",
    "/dashboard/parent",
    "/manifest.json",
    "/icons/icon-72x72.png",
    "/icons/icon-96x96.png",
    "/icons/icon-128x128.png",
    "/icons/icon-144x144.png",
    "/icons/icon-152x152.png",
    "/icons/icon-192x192.png",
    "/icons/icon-256x256.png",
    "/icons/icon-384x384.png",
    "/icons/icon-512x512.png",
]


def _split_list(value: str | None, default: list) -> list:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    """
    Settings read straight from environment variables.
    """
    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL")

    # Rate limiter storage, "memory://" or a redis URL
    RATE_LIMITER_STORAGE_URL: str = os.environ.get("RATE_LIMITER_STORAGE_URL", "memory://")

    # Auth
    SECRET_KEY: str = os.environ.get("SECRET_KEY", "change-me")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 60))
    SALT_ROUNDS: int = int(os.environ.get("SALT_ROUNDS", 10))

    # Server, used by `python -m gmhs.backend.main`
    HOST: str = os.environ.get("HOST", "0.0.0.0")
    PORT: int = int(os.environ.get("PORT", 8000))

    # Logging
    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")

    # --- PWA cache layer ---
    APP_ORIGIN: str = os.environ.get("APP_ORIGIN", "http://localhost:8000")
    # Bump whenever the precache list or the fetch policy changes.
    CACHE_NAME: str = os.environ.get("CACHE_NAME", "gmhs-static-cache-v7")
    CACHE_STORAGE_URL: str = os.environ.get("CACHE_STORAGE_URL", "memory://")
    CACHE_CLEAR_INTERVAL_MINUTES: int = int(os.environ.get("CACHE_CLEAR_INTERVAL_MINUTES", 30))
    # "bypass" or the deprecated "network-no-cache"
    API_CACHE_MODE: str = os.environ.get("API_CACHE_MODE", "bypass")
    PRECACHE_URLS: list = _split_list(os.environ.get("PRECACHE_URLS"), DEFAULT_PRECACHE_URLS)


settings = Config()
