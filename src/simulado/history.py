import logging
from typing import Any, Dict, List

import pandas as pd
from pydantic import TypeAdapter, ValidationError
from redis import Redis

from .config import settings
from .models import Difficulty, HistoryItem
from .redis_session import history_key
from .scoring import append_history, percentage_of

logger = logging.getLogger(__name__)

_history_adapter = TypeAdapter(List[HistoryItem])


# --- Service Layer: History persistence ---
class HistoryStore:
    """One key per user holding the whole JSON list, rewritten on every append."""

    def __init__(self, redis_client: Redis, limit: int = settings.HISTORY_LIMIT):
        self.redis = redis_client
        self.limit = limit

    def load(self, email: str) -> List[HistoryItem]:
        raw = self.redis.get(history_key(email))
        if not raw:
            return []
        try:
            return _history_adapter.validate_json(raw)
        except ValidationError as e:
            logger.error(f"Discarding unreadable history for {email}: {e.error_count()} errors")
            return []

    def append(self, email: str, item: HistoryItem) -> List[HistoryItem]:
        items = append_history(self.load(email), item, self.limit)
        self.redis.set(history_key(email), _history_adapter.dump_json(items).decode())
        logger.info(f"History for {email}: {len(items)} entries")
        return items


# --- Analytics ---
def summarize_history(items: List[HistoryItem]) -> List[Dict[str, Any]]:
    """Per-difficulty attempts, mean and best percentage, easy to hard."""
    if not items:
        return []

    df = pd.DataFrame([item.model_dump(mode="json") for item in items])
    df["percentage"] = [percentage_of(c, t) for c, t in zip(df["correct"], df["total"])]
    summary = df.groupby("difficulty").agg(
        attempts=("id", "count"),
        average_percentage=("percentage", "mean"),
        best_percentage=("percentage", "max"),
    )
    order = [d.value for d in Difficulty if d.value in summary.index]
    summary = summary.reindex(order)
    summary["average_percentage"] = summary["average_percentage"].round(1)

    return [
        {
            "difficulty": difficulty,
            "attempts": int(row["attempts"]),
            "average_percentage": float(row["average_percentage"]),
            "best_percentage": int(row["best_percentage"]),
        }
        for difficulty, row in summary.iterrows()
    ]

