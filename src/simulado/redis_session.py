import redis
from .config import settings

redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


def session_key(session_id: str) -> str:
    return f"{settings.PROJECT_NAME}:session:{session_id}"


def lock_key(session_id: str) -> str:
    return f"{settings.PROJECT_NAME}:lock:{session_id}"


def history_key(email: str) -> str:
    return f"{settings.PROJECT_NAME}:history:{email}"
