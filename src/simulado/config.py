import os


def _env(*names: str, default: str = "") -> str:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


DEFAULT_QUESTION_COUNT = 10


def bounded_question_count(value: str, maximum: int) -> int:
    """Clamps a configured question count into 1..maximum."""
    try:
        count = int(value)
    except ValueError:
        return min(DEFAULT_QUESTION_COUNT, maximum)
    return max(1, min(count, maximum))


class Settings:
    PROJECT_NAME: str = "simulado"
    DEBUG: bool = _env("DEBUG") == "1"
    LOG_DIR: str = _env("LOG_DIR", default="log")
    LOG_FILE: str = "simulado.log"
    LOG_TO_FILE: bool = _env("LOG_TO_FILE", default="1") == "1"
    REDIS_URL: str = _env("REDIS_URL", default="redis://localhost:6379/0")
    SESSION_COOKIE_NAME: str = "simulado_session_id"
    SESSION_TIMEOUT_MINUTES: int = 120
    OPERATION_LOCK_SECONDS: int = 180
    HISTORY_LIMIT: int = 100

    GEMINI_API_KEY: str = _env("GEMINI_API_KEY", "API_KEY", "VITE_GEMINI_API_KEY")
    GEMINI_MODEL: str = _env("GEMINI_MODEL", default="gemini-2.5-flash")
    GENERATION_TIMEOUT_SECONDS: int = int(_env("GENERATION_TIMEOUT_SECONDS", default="120"))
    MAX_QUESTION_COUNT: int = 50
    QUESTION_COUNT: int = bounded_question_count(
        _env("QUESTION_COUNT", default=str(DEFAULT_QUESTION_COUNT)), MAX_QUESTION_COUNT
    )
    QUIZ_LANGUAGE: str = _env("QUIZ_LANGUAGE", default="Brazilian Portuguese")

    SUPABASE_URL: str = _env("SUPABASE_URL", "VITE_SUPABASE_URL")
    SUPABASE_KEY: str = _env("SUPABASE_KEY", "VITE_SUPABASE_KEY")
    USERS_TABLE: str = _env("USERS_TABLE", default="users_control")


settings = Settings()
