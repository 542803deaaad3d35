import os

BASE_DIR = os.path.dirname(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
)


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    PROJECT_NAME: str = "vocabtutor"
    DEBUG: bool = _env_bool("DEBUG", False)
    LOG_DIR: str = os.environ.get("LOG_DIR", "log")
    LOG_FILE: str = "vocabtutor.log"
    LOG_TO_DB: bool = _env_bool("LOG_TO_DB", False)
    DB_DIR: str = os.environ.get("DB_DIR", "db")
    DB_FILE: str = "vocabtutor.db"
    # "sqlite" or "memory"
    STORAGE_BACKEND: str = os.environ.get("STORAGE_BACKEND", "sqlite")
    VOCAB_DIR: str = os.environ.get("VOCAB_DIR", os.path.join(BASE_DIR, "vocabulary"))
    TEMPLATES_DIR: str = os.path.join(BASE_DIR, "templates")
    STATIC_DIR: str = os.path.join(BASE_DIR, "static")
    DAILY_WORD_COUNT: int = int(os.environ.get("DAILY_WORD_COUNT", "10"))
    DEFAULT_DAILY_GOAL: int = 10
    DEFAULT_STREAK: int = 1
    PROGRESS_KEY: str = "user_progress"
    BROWSER_COOKIE_NAME: str = "vocabtutor_browser_id"
    BROWSER_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 365
    SESSION_TIMEOUT_MINUTES: int = 120
    QUIZ_FEEDBACK_DELAY_MS: int = 1000
    SPEECH_LOCALE: str = "en-US"
    GEMINI_API_KEY: str = os.environ.get("GEMINI_API_KEY", os.environ.get("API_KEY", ""))
    GEMINI_MODEL: str = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
    AUDIO_MIME_TYPE: str = "audio/webm"
    NATIVE_LANGUAGE: str = os.environ.get("NATIVE_LANGUAGE", "Vietnamese")
    LEARNER_LEVEL: str = "B1"
    ROOT_PATH: str = os.environ.get("ROOT_PATH", "")

    @property
    def db_path(self) -> str:
        return os.path.join(self.DB_DIR, self.DB_FILE)


settings = Settings()
