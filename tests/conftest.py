import os

os.environ["LOG_TO_FILE"] = "0"

from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from simulado.access import AccessGate, UserStore
from simulado.errors import TransportError
from simulado.generator import QuizGenerator
from simulado.history import HistoryStore
from simulado.models import Difficulty, QuizData
from simulado.session import SessionController, SessionStore


class InMemoryRedis:
    """Just enough of the redis client API for the stores."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.expiry: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str, ex: Any = None, nx: bool = False):
        if nx and key in self.data:
            return None
        self.data[key] = value
        self.expiry[key] = ex
        return True

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed


class StaticUserStore(UserStore):
    def __init__(self, rows: List[Dict[str, Any]], fail: bool = False):
        self.rows = rows
        self.fail = fail
        self.lookups: List[str] = []

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        self.lookups.append(email)
        if self.fail:
            raise TransportError("store unreachable")
        for row in self.rows:
            if row["email"].lower() == email:
                return row
        return None


class ScriptedGenerator(QuizGenerator):
    def __init__(self, quiz: Optional[QuizData] = None, error: Optional[Exception] = None):
        self.quiz = quiz
        self.error = error
        self.calls: List[tuple] = []

    def generate(self, topic: str, difficulty: Difficulty, count: int) -> QuizData:
        self.calls.append((topic, difficulty, count))
        if self.error is not None:
            raise self.error
        return self.quiz


def make_quiz(correct_indexes: List[int]) -> QuizData:
    return QuizData.model_validate(
        {
            "questions": [
                {
                    "id": i + 1,
                    "question": f"Question {i + 1}?",
                    "options": [f"Q{i + 1} option {c}" for c in "ABCD"],
                    "correctAnswerIndex": correct,
                    "mentorTip": f"Tip {i + 1}",
                }
                for i, correct in enumerate(correct_indexes)
            ]
        }
    )


def fake_genai_response(text: Optional[str], block_reason=None, finish_reason=None):
    candidates = [SimpleNamespace(finish_reason=finish_reason)] if finish_reason else []
    return SimpleNamespace(
        text=text,
        prompt_feedback=SimpleNamespace(block_reason=block_reason),
        candidates=candidates,
    )


class FakeGenaiClient:
    def __init__(self, response: Any = None, error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.requests: List[Dict[str, Any]] = []
        self.models = self

    def generate_content(self, model: str, contents: str, config: Any):
        self.requests.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return self.response


USERS = [
    {"id": "1", "email": "user@example.com", "status": "approved"},
    {"id": "2", "email": "waiting@example.com", "status": "pending"},
    {"id": "3", "email": "legacy@example.com", "status": "aprovado"},
    {"id": "4", "email": "odd@example.com", "status": "banned"},
]


@pytest.fixture
def redis_client():
    return InMemoryRedis()


@pytest.fixture
def user_store():
    return StaticUserStore(USERS)


@pytest.fixture
def quiz():
    return make_quiz([0, 1, 2, 3, 1])


@pytest.fixture
def generator(quiz):
    return ScriptedGenerator(quiz)


@pytest.fixture
def controller(redis_client, user_store, generator):
    return SessionController(
        store=SessionStore(redis_client),
        gate=AccessGate(user_store),
        generator=generator,
        history=HistoryStore(redis_client),
    )
