import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .config import settings
from .database import init_db, write_log
from .globals import vocab_manager
from .router import router

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


# --- Logging Setup ---
class DatabaseLogHandler(logging.Handler):
    """Copies records into the SQLite ``logs`` table."""

    def __init__(self, db_path: Optional[str] = None, level=logging.WARNING):
        super().__init__(level)
        self.db_path = db_path

    def emit(self, record):
        try:
            write_log(record.levelname, self.format(record), self.db_path)
        except Exception:
            self.handleError(record)


def setup_logging():
    logger = logging.getLogger("vocabtutor")
    logger.setLevel(logging.INFO)
    if logger.handlers:
        return

    if not os.path.exists(settings.LOG_DIR):
        os.makedirs(settings.LOG_DIR, exist_ok=True)
    log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)

    if settings.LOG_TO_DB:
        init_db(settings.db_path)
        db_handler = DatabaseLogHandler(settings.db_path)
        db_handler.setFormatter(logging.Formatter("%(name)s - %(message)s"))
        logger.addHandler(db_handler)
    # Also configure root logger to see logs from other libraries
    logging.basicConfig(level=logging.INFO)


# --- Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.STORAGE_BACKEND == "sqlite":
        init_db(settings.db_path)
    vocab_manager.load_all()
    if not settings.GEMINI_API_KEY:
        logging.getLogger("vocabtutor").warning(
            "GEMINI_API_KEY is not set; pronunciation checks will score 0."
        )
    yield


# --- App Factory ---
def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(
        title=settings.PROJECT_NAME,
        debug=settings.DEBUG,
        lifespan=lifespan,
        root_path=settings.ROOT_PATH,
    )

    app.mount(
        "/static",
        StaticFiles(directory=settings.STATIC_DIR, check_dir=False),
        name="static",
    )

    app.include_router(router)

    return app
