import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..config.config import settings


def setup_logging(log_dir: str | None = None):
    """
    Configures application-wide logging.

    Records go both to stdout (for development) and to a size-rotated file
    (for production). Passing ``log_dir`` overrides ``settings.LOG_DIR``.
    """
    # Time - module name - level - message
    log_format = "%(asctime)s - [%(name)s] - %(levelname)s - %(message)s"

    directory = Path(log_dir or settings.LOG_DIR)
    directory.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(logging.INFO)

    # Drop the handlers uvicorn and friends installed so our format wins.
    if logger.hasHandlers():
        logger.handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(stdout_handler)

    # Rolls over to app.log.1, app.log.2 ... once the file passes 5 MB.
    file_handler = RotatingFileHandler(
        directory / "app.log",
        maxBytes=5*1024*1024,
        backupCount=5
    )
    file_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(file_handler)
