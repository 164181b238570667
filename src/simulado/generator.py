import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors, types
from pydantic import ValidationError

from .config import settings
from .errors import (
    ContentFiltered,
    EmptyResult,
    EmptyTopic,
    InvalidFormat,
    InvalidQuestionCount,
    MissingCredential,
    UpstreamError,
)
from .models import OPTIONS_PER_QUESTION, Difficulty, QuizData

logger = logging.getLogger(__name__)

DIFFICULTY_WORDING = {
    Difficulty.EASY: "easy: direct recall of the main facts and definitions",
    Difficulty.MEDIUM: "medium: understanding and applying the concepts",
    Difficulty.HARD: "hard: analysis, edge cases and plausible distractors",
}

SAFETY_FINISH_REASONS = {
    types.FinishReason.SAFETY,
    types.FinishReason.PROHIBITED_CONTENT,
    types.FinishReason.BLOCKLIST,
    types.FinishReason.SPII,
}

_FENCE_START = re.compile(r"^\s*```[a-zA-Z]*[ \t]*\n?")
_FENCE_END = re.compile(r"\n?[ \t]*```\s*$")


# --- Prompt & schema ---
def build_prompt(
    topic: str, difficulty: Difficulty, count: int, language: Optional[str] = None
) -> str:
    """Single instruction embedding the topic, difficulty tier and exact count."""
    language = language or settings.QUIZ_LANGUAGE
    return (
        f"Generate exactly {count} multiple-choice questions about the topic or "
        f"study material below.\n"
        f"Difficulty: {DIFFICULTY_WORDING[Difficulty(difficulty)]}.\n"
        f"Each question must have exactly {OPTIONS_PER_QUESTION} options and "
        f"exactly one correct option, given by its zero-based index in "
        f"correctAnswerIndex. Number the questions with a unique integer id "
        f"starting at 1. Add a mentorTip of at most 15 words explaining why the "
        f"correct option is right.\n"
        f"Write the questions, options and tips in {language}.\n"
        f"Respond with the JSON object only, without any surrounding text and "
        f"without code fences.\n\n"
        f'Topic: """{topic}"""'
    )


def quiz_response_schema() -> types.Schema:
    question = types.Schema(
        type=types.Type.OBJECT,
        properties={
            "id": types.Schema(type=types.Type.INTEGER),
            "question": types.Schema(type=types.Type.STRING),
            "options": types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.STRING),
                min_items=OPTIONS_PER_QUESTION,
                max_items=OPTIONS_PER_QUESTION,
            ),
            "correctAnswerIndex": types.Schema(type=types.Type.INTEGER),
            "mentorTip": types.Schema(type=types.Type.STRING),
        },
        required=["id", "question", "options", "correctAnswerIndex", "mentorTip"],
    )
    return types.Schema(
        type=types.Type.OBJECT,
        properties={"questions": types.Schema(type=types.Type.ARRAY, items=question)},
        required=["questions"],
    )


# --- Response handling ---
def sanitize_response(raw: str) -> str:
    """Strips code fences and any prose around the outermost JSON object."""
    text = _FENCE_START.sub("", raw.strip())
    text = _FENCE_END.sub("", text).strip()
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]
    return text


def parse_quiz(raw: str) -> QuizData:
    """Sanitizes and validates a raw model reply.

    The raw payload is only ever written to the log, never to the exception
    message, so it cannot leak to the end user.
    """
    text = sanitize_response(raw or "")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"Unparseable quiz payload ({e}): {raw!r}")
        raise InvalidFormat(
            f"JSON decode error at line {e.lineno} column {e.colno}: {e.msg}"
        ) from e

    if not isinstance(data, dict):
        logger.error(f"Quiz payload is not an object: {raw!r}")
        raise InvalidFormat(f"expected a JSON object, got {type(data).__name__}")

    if not data.get("questions"):
        logger.warning("Quiz payload has no questions.")
        raise EmptyResult()

    try:
        return QuizData.model_validate(data)
    except ValidationError as e:
        logger.error(f"Quiz payload failed validation ({e.error_count()} errors): {raw!r}")
        raise InvalidFormat(f"schema validation failed: {e.errors()[0]['msg']}") from e


# --- Strategy Pattern: Quiz Generators ---
class QuizGenerator(ABC):
    """Abstract Base Class for quiz generation backends."""

    @abstractmethod
    def generate(self, topic: str, difficulty: Difficulty, count: int) -> QuizData:
        pass


class GeminiQuizGenerator(QuizGenerator):
    """Asks a hosted Gemini model for a JSON quiz. One round trip, no retries."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
        client: Optional[Any] = None,
    ):
        self.api_key = api_key
        self.model = model or settings.GEMINI_MODEL
        self.timeout_seconds = timeout_seconds or settings.GENERATION_TIMEOUT_SECONDS
        self._client = client
        self._client_key: Optional[str] = None
        self._client_injected = client is not None

    def _resolve_api_key(self) -> str:
        key = self.api_key if self.api_key is not None else settings.GEMINI_API_KEY
        return (key or "").strip()

    def _get_client(self, api_key: str) -> Any:
        if self._client_injected:
            return self._client
        if self._client is None or self._client_key != api_key:
            self._client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=self.timeout_seconds * 1000),
            )
            self._client_key = api_key
        return self._client

    def generate(self, topic: str, difficulty: Difficulty, count: int) -> QuizData:
        topic = (topic or "").strip()
        if not topic:
            raise EmptyTopic()
        if not (1 <= count <= settings.MAX_QUESTION_COUNT):
            raise InvalidQuestionCount(
                f"question count {count} not in 1..{settings.MAX_QUESTION_COUNT}"
            )

        api_key = self._resolve_api_key()
        if not api_key:
            raise MissingCredential()

        difficulty = Difficulty(difficulty)
        logger.info(
            f"Generating quiz [model: {self.model}, difficulty: {difficulty.value}, "
            f"questions: {count}, topic chars: {len(topic)}]"
        )
        try:
            response = self._get_client(api_key).models.generate_content(
                model=self.model,
                contents=build_prompt(topic, difficulty, count),
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=quiz_response_schema(),
                ),
            )
        except errors.APIError as e:
            logger.error(f"Generation API error {e.code}: {e.message}")
            raise UpstreamError(f"API error {e.code}: {e.message}") from e
        except httpx.TimeoutException as e:
            logger.error(f"Generation timed out after {self.timeout_seconds}s")
            raise UpstreamError("generation timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"Generation transport error: {e}")
            raise UpstreamError(f"transport error: {e}") from e
        except Exception as e:
            logger.exception("Unexpected generation failure")
            raise UpstreamError(f"unexpected failure: {e}") from e

        self._check_blocked(response)
        raw = response.text
        if not raw:
            logger.error("Generation returned an empty body.")
            raise InvalidFormat("empty response body")

        quiz = parse_quiz(raw)
        if len(quiz.questions) != count:
            logger.warning(f"Requested {count} questions, received {len(quiz.questions)}")
        return quiz

    @staticmethod
    def _check_blocked(response: Any) -> None:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None)
        if block_reason:
            logger.warning(f"Prompt blocked by safety filter: {block_reason}")
            raise ContentFiltered(f"prompt blocked: {block_reason}")

        for candidate in getattr(response, "candidates", None) or []:
            if candidate.finish_reason in SAFETY_FINISH_REASONS:
                logger.warning(f"Response blocked by safety filter: {candidate.finish_reason}")
                raise ContentFiltered(f"response blocked: {candidate.finish_reason}")
