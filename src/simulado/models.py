from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

OPTIONS_PER_QUESTION = 4


# --- Enums ---
class UserStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Tier(str, Enum):
    PASS = "pass"
    BORDERLINE = "borderline"
    FAIL = "fail"


class SessionState(str, Enum):
    LOGGED_OUT = "logged_out"
    AUTHENTICATING = "authenticating"
    GENERATING = "generating"
    IN_QUIZ = "in_quiz"
    SCORED = "scored"
    VIEWING_HISTORY = "viewing_history"


# --- Models ---
class User(BaseModel):
    id: str
    email: str
    status: UserStatus


class Question(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    question: str
    options: List[str]
    correct_answer_index: int = Field(alias="correctAnswerIndex")
    mentor_tip: str = Field(alias="mentorTip")

    @field_validator("options")
    @classmethod
    def exactly_four_options(cls, options: List[str]) -> List[str]:
        if len(options) != OPTIONS_PER_QUESTION:
            raise ValueError(
                f"expected {OPTIONS_PER_QUESTION} options, got {len(options)}"
            )
        return options

    @model_validator(mode="after")
    def correct_index_in_range(self) -> "Question":
        if not (0 <= self.correct_answer_index < len(self.options)):
            raise ValueError(
                f"correctAnswerIndex {self.correct_answer_index} is out of range"
            )
        return self


class QuizData(BaseModel):
    questions: List[Question]

    @field_validator("questions")
    @classmethod
    def unique_ids(cls, questions: List[Question]) -> List[Question]:
        ids = [q.id for q in questions]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate question ids")
        return questions


class IncorrectDetail(BaseModel):
    index: int
    question_text: str
    chosen_option_text: str
    correct_option_text: str
    mentor_tip: str


class ScoreReport(BaseModel):
    correct_count: int
    total: int
    percentage: int
    tier: Tier
    incorrect_details: List[IncorrectDetail]


class HistoryItem(BaseModel):
    id: str
    subject: str
    date: str
    correct: int
    total: int
    difficulty: Difficulty


class SessionData(BaseModel):
    state: SessionState = SessionState.LOGGED_OUT
    user: Optional[User] = None
    topic: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    quiz: Optional[QuizData] = None
    answers: List[Optional[int]] = []
    current_index: int = 0
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    created_at: datetime
