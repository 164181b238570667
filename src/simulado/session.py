"""
Session Controller
==================

The session object is owned by ``SessionController``; every mutation goes
through one of its transition methods, under a per-session Redis lock:

    logged_out --login--> generating --generate--> in_quiz(0)
    in_quiz(i) --answer--> in_quiz(i+1) | scored (last question)
    scored | viewing_history --restart--> generating
    generating | scored --view_history--> viewing_history

A failed transition leaves the session in its prior state with ``error`` set
to the user-facing message, and re-raises.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, List, Optional, Tuple

from redis import Redis

from .access import AccessGate, normalize_email
from .config import settings
from .errors import (
    InvalidAnswer,
    InvalidTransition,
    OperationInProgress,
    QuizAppError,
    SessionExpired,
)
from .generator import QuizGenerator
from .history import HistoryStore
from .models import (
    Difficulty,
    HistoryItem,
    ScoreReport,
    SessionData,
    SessionState,
)
from .redis_session import lock_key, session_key
from .scoring import build_report_text, make_history_item, report_filename, score

logger = logging.getLogger(__name__)


# --- Storage ---
class SessionStore:
    def __init__(self, redis_client: Redis):
        self.redis = redis_client
        self.ttl = timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES)

    def get(self, session_id: Optional[str]) -> Optional[SessionData]:
        if not session_id:
            return None

        raw = self.redis.get(session_key(session_id))
        if not raw:
            return None

        session = SessionData.model_validate_json(raw)
        if datetime.now() - session.created_at > self.ttl:
            self.delete(session_id)
            return None
        return session

    def require(self, session_id: Optional[str]) -> SessionData:
        session = self.get(session_id)
        if session is None:
            raise SessionExpired()
        return session

    def save(self, session_id: str, session: SessionData) -> None:
        self.redis.set(session_key(session_id), session.model_dump_json(), ex=self.ttl)

    def delete(self, session_id: str) -> None:
        self.redis.delete(session_key(session_id))

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        """Admits one in-flight operation per name; a second one is refused."""
        key = lock_key(name)
        if not self.redis.set(key, "1", nx=True, ex=settings.OPERATION_LOCK_SECONDS):
            raise OperationInProgress()
        try:
            yield
        finally:
            self.redis.delete(key)


# --- Controller ---
class SessionController:
    def __init__(
        self,
        store: SessionStore,
        gate: AccessGate,
        generator: QuizGenerator,
        history: HistoryStore,
    ):
        self.store = store
        self.gate = gate
        self.generator = generator
        self.history = history

    @contextmanager
    def _transition(
        self, session_id: Optional[str], *allowed: SessionState
    ) -> Iterator[SessionData]:
        if not session_id:
            raise SessionExpired()
        with self.store.lock(session_id):
            session = self.store.require(session_id)
            prior = session.state
            try:
                if session.state not in allowed:
                    raise InvalidTransition(f"not allowed from {session.state.value}")
                yield session
            except QuizAppError as e:
                session.state = prior
                session.error = e.user_message
                self.store.save(session_id, session)
                raise
            session.error = None
            self.store.save(session_id, session)

    def login(self, email: str) -> Tuple[str, SessionData]:
        """Authenticates and opens a new session ready for generation.

        Nothing is stored on failure: the caller stays logged out.
        """
        session = SessionData(state=SessionState.AUTHENTICATING, created_at=datetime.now())
        with self.store.lock(f"login:{normalize_email(email)}"):
            session.user = self.gate.authenticate(email)

        session.state = SessionState.GENERATING
        session_id = str(uuid.uuid4())
        self.store.save(session_id, session)
        logger.info(f"New session: {session_id} [User: {session.user.email}]")
        return session_id, session

    def logout(self, session_id: Optional[str]) -> None:
        if session_id:
            self.store.delete(session_id)
            logger.info(f"Session closed: {session_id}")

    def generate(
        self,
        session_id: Optional[str],
        topic: str,
        difficulty: Difficulty,
        count: Optional[int] = None,
    ) -> SessionData:
        count = count or settings.QUESTION_COUNT
        with self._transition(session_id, SessionState.GENERATING) as session:
            quiz = self.generator.generate(topic, difficulty, count)
            session.topic = topic.strip()
            session.difficulty = Difficulty(difficulty)
            session.quiz = quiz
            session.answers = []
            session.current_index = 0
            session.completed_at = None
            session.state = SessionState.IN_QUIZ
            logger.info(
                f"Quiz ready: {session_id} [{len(quiz.questions)} questions, "
                f"{session.difficulty.value}]"
            )
        return session

    def answer(
        self,
        session_id: Optional[str],
        option_index: int,
        current_index: Optional[int] = None,
    ) -> SessionData:
        with self._transition(session_id, SessionState.IN_QUIZ) as session:
            if current_index is not None and current_index != session.current_index:
                raise InvalidTransition(
                    f"question {current_index} is not the current one ({session.current_index})"
                )
            question = session.quiz.questions[session.current_index]
            if not (0 <= option_index < len(question.options)):
                raise InvalidAnswer(f"option {option_index} out of range")

            session.answers.append(option_index)
            if session.current_index < len(session.quiz.questions) - 1:
                session.current_index += 1
            else:
                self._complete(session_id, session)
        return session

    def _complete(self, session_id: str, session: SessionData) -> None:
        session.state = SessionState.SCORED
        session.completed_at = datetime.now()
        report = score(session.quiz, session.answers)
        item = make_history_item(
            session.topic, session.difficulty, report, session.completed_at
        )
        self.history.append(session.user.email, item)
        logger.info(
            f"Quiz scored: {session_id} [{report.correct_count}/{report.total}, "
            f"{report.tier.value}]"
        )

    def restart(self, session_id: Optional[str]) -> SessionData:
        with self._transition(
            session_id,
            SessionState.SCORED,
            SessionState.VIEWING_HISTORY,
            SessionState.GENERATING,
        ) as session:
            session.quiz = None
            session.answers = []
            session.current_index = 0
            session.completed_at = None
            session.state = SessionState.GENERATING
        return session

    def view_history(self, session_id: Optional[str]) -> List[HistoryItem]:
        with self._transition(
            session_id,
            SessionState.GENERATING,
            SessionState.SCORED,
            SessionState.VIEWING_HISTORY,
        ) as session:
            session.state = SessionState.VIEWING_HISTORY
            email = session.user.email
        return self.history.load(email)

    # --- Read-only views ---
    def history_for(self, session: SessionData) -> List[HistoryItem]:
        if session.user is None:
            raise SessionExpired()
        return self.history.load(session.user.email)

    def report(self, session: SessionData) -> ScoreReport:
        if session.state is not SessionState.SCORED:
            raise InvalidTransition("quiz not finished")
        return score(session.quiz, session.answers)

    def report_download(self, session: SessionData) -> Tuple[str, str]:
        report = self.report(session)
        text = build_report_text(
            session.topic, session.difficulty, report, session.completed_at
        )
        return report_filename(session.topic, session.completed_at), text
