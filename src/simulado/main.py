import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import List, Optional

import uvicorn
from fastapi import (
    Cookie,
    Depends,
    FastAPI,
    Form,
    Request,
    Response,
)
from fastapi.responses import JSONResponse, PlainTextResponse

from .access import AccessGate, SupabaseUserStore
from .config import settings
from .errors import QuizAppError
from .generator import GeminiQuizGenerator
from .history import HistoryStore, summarize_history
from .models import Difficulty, HistoryItem, SessionData
from .redis_session import redis_client
from .session import SessionController, SessionStore

# --- Logging Setup ---
logger = logging.getLogger("simulado")
logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

if settings.LOG_TO_FILE:
    if not os.path.exists(settings.LOG_DIR):
        os.makedirs(settings.LOG_DIR)
    log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(file_handler)


# --- Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY is not set; quiz generation will fail.")
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

session_store = SessionStore(redis_client)
controller = SessionController(
    store=session_store,
    gate=AccessGate(SupabaseUserStore()),
    generator=GeminiQuizGenerator(),
    history=HistoryStore(redis_client),
)


@app.exception_handler(QuizAppError)
async def quiz_app_error_handler(request: Request, exc: QuizAppError):
    logger.info(f"{request.method} {request.url.path} -> {exc.code}: {exc}")
    return JSONResponse(
        {"error": exc.user_message, "code": exc.code}, status_code=exc.status_code
    )


# --- Dependencies ---
def get_controller() -> SessionController:
    return controller


def get_session_id(
    session_id: Optional[str] = Cookie(None, alias=settings.SESSION_COOKIE_NAME),
) -> Optional[str]:
    return session_id


def get_active_session(
    session_id: Optional[str] = Depends(get_session_id),
    ctl: SessionController = Depends(get_controller),
) -> SessionData:
    return ctl.store.require(session_id)


def session_view(session: SessionData) -> dict:
    return {
        "state": session.state.value,
        "email": session.user.email if session.user else None,
        "topic": session.topic,
        "difficulty": session.difficulty.value if session.difficulty else None,
        "current_index": session.current_index,
        "total_questions": len(session.quiz.questions) if session.quiz else 0,
        "error": session.error,
    }


# --- Routes ---
@app.post("/api/login")
def login(
    response: Response,
    email: str = Form(""),
    ctl: SessionController = Depends(get_controller),
):
    session_id, session = ctl.login(email)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        samesite="Lax",
    )
    return session_view(session)


@app.post("/api/logout")
def logout(
    response: Response,
    session_id: Optional[str] = Depends(get_session_id),
    ctl: SessionController = Depends(get_controller),
):
    ctl.logout(session_id)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"status": "success"}


@app.get("/api/session")
def get_session_state(session_data: SessionData = Depends(get_active_session)):
    return session_view(session_data)


@app.post("/api/quiz")
def generate_quiz(
    topic: str = Form(""),
    difficulty: Difficulty = Form(Difficulty.MEDIUM),
    question_count: Optional[int] = Form(None, ge=1, le=settings.MAX_QUESTION_COUNT),
    session_id: Optional[str] = Depends(get_session_id),
    ctl: SessionController = Depends(get_controller),
):
    session = ctl.generate(session_id, topic, difficulty, question_count)
    return session_view(session)


@app.get("/api/quiz/{index}")
def get_question_data(index: int, session_data: SessionData = Depends(get_active_session)):
    if not session_data.quiz:
        return JSONResponse({"error": "No active quiz", "code": "no_quiz"}, status_code=404)
    total = len(session_data.quiz.questions)
    if not (0 <= index < total):
        return JSONResponse({"error": "Index error", "code": "index_error"}, status_code=404)

    current_q = session_data.quiz.questions[index]
    chosen = session_data.answers[index] if index < len(session_data.answers) else None
    return {
        "id": current_q.id,
        "question": current_q.question,
        "options": current_q.options,
        "current_index": index,
        "total_questions": total,
        "selected_option_index": chosen,
    }


@app.post("/api/answer")
def submit_answer(
    selected_option_index: int = Form(...),
    current_index: Optional[int] = Form(None),
    session_id: Optional[str] = Depends(get_session_id),
    ctl: SessionController = Depends(get_controller),
):
    session = ctl.answer(session_id, selected_option_index, current_index)
    return session_view(session)


@app.get("/api/result")
def get_result_data(
    session_data: SessionData = Depends(get_active_session),
    ctl: SessionController = Depends(get_controller),
):
    report = ctl.report(session_data)
    return {
        "topic": session_data.topic,
        "difficulty": session_data.difficulty.value,
        **report.model_dump(mode="json"),
    }


@app.get("/api/report", response_class=PlainTextResponse)
def download_report(
    session_data: SessionData = Depends(get_active_session),
    ctl: SessionController = Depends(get_controller),
):
    filename, text = ctl.report_download(session_data)
    return PlainTextResponse(
        text,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/restart")
def restart(
    session_id: Optional[str] = Depends(get_session_id),
    ctl: SessionController = Depends(get_controller),
):
    return session_view(ctl.restart(session_id))


def history_view(items: List[HistoryItem]) -> dict:
    return {
        "items": [item.model_dump(mode="json") for item in items],
        "summary": summarize_history(items),
    }


@app.get("/api/history")
def get_history(
    session_data: SessionData = Depends(get_active_session),
    ctl: SessionController = Depends(get_controller),
):
    return history_view(ctl.history_for(session_data))


@app.post("/api/history")
def view_history(
    session_id: Optional[str] = Depends(get_session_id),
    ctl: SessionController = Depends(get_controller),
):
    return history_view(ctl.view_history(session_id))


if __name__ == "__main__":
    uvicorn.run("simulado.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
