import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, File, Form, Request, Response, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse

from .config import settings
from .errors import (
    NoActiveQuizError,
    PermissionDeniedError,
    UnknownTopicError,
    UnknownWordError,
    VocabTutorError,
)
from .globals import registry, templates
from .models import AppMode
from .session import SessionController, SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


def error_response(error: Exception, response: Response) -> JSONResponse:
    """JSON error that keeps cookies already set on the request's response."""
    if isinstance(error, (UnknownTopicError, UnknownWordError)):
        status_code = 404
    elif isinstance(error, PermissionDeniedError):
        status_code = 403
    else:
        status_code = 400
    error_json = JSONResponse({"error": str(error)}, status_code=status_code)
    for cookie in response.headers.getlist("set-cookie"):
        error_json.headers.append("set-cookie", cookie)
    return error_json


# --- Dependencies ---
def get_registry() -> SessionRegistry:
    return registry


def get_browser_id(
    response: Response,
    browser_id: Optional[str] = Cookie(None, alias=settings.BROWSER_COOKIE_NAME),
) -> str:
    if not browser_id:
        browser_id = str(uuid.uuid4())
        response.set_cookie(
            key=settings.BROWSER_COOKIE_NAME,
            value=browser_id,
            max_age=settings.BROWSER_COOKIE_MAX_AGE,
            httponly=True,
            samesite="Lax",
        )
    return browser_id


def get_controller(
    browser_id: str = Depends(get_browser_id),
    sessions: SessionRegistry = Depends(get_registry),
) -> SessionController:
    return sessions.get(browser_id)


# --- Pages ---
@router.get("/", response_class=HTMLResponse)
async def home(request: Request, sessions: SessionRegistry = Depends(get_registry)):
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "topics": sessions.vocabulary.get_topics(),
            "feedback_delay_ms": settings.QUIZ_FEEDBACK_DELAY_MS,
            "root_path": request.scope.get("root_path", ""),
        },
    )


# --- Topics & mode ---
@router.get("/api/topics")
async def get_topics(sessions: SessionRegistry = Depends(get_registry)):
    return [
        {"id": topic.id, "name": topic.name, "count": len(topic.words)}
        for topic in sessions.vocabulary.get_topics()
    ]


@router.get("/api/state")
async def get_state(controller: SessionController = Depends(get_controller)):
    return controller.snapshot()


@router.post("/api/topic")
async def select_topic(
    response: Response,
    topic_id: str = Form(...),
    controller: SessionController = Depends(get_controller),
):
    try:
        controller.select_topic(topic_id)
    except VocabTutorError as e:
        return error_response(e, response)
    return controller.snapshot()


@router.post("/api/mode")
async def set_mode(
    mode: AppMode = Form(...), controller: SessionController = Depends(get_controller)
):
    controller.set_mode(mode)
    return controller.snapshot()


# --- Learn ---
@router.get("/api/words")
async def get_words(controller: SessionController = Depends(get_controller)):
    store = controller.progress_store
    return [
        {**item.model_dump(), "learned": store.is_learned(item.word)}
        for item in controller.daily_words
    ]


@router.post("/api/words/select")
async def select_word(
    response: Response,
    word: str = Form(...),
    controller: SessionController = Depends(get_controller),
):
    try:
        item = controller.select_word(word)
    except VocabTutorError as e:
        return error_response(e, response)
    return item.model_dump()


@router.post("/api/words/toggle_learned")
async def toggle_learned(
    response: Response,
    word: str = Form(...),
    controller: SessionController = Depends(get_controller),
):
    try:
        learned = controller.toggle_learned(word)
    except VocabTutorError as e:
        return error_response(e, response)
    return {"word": word, "learned": learned}


@router.post("/api/speak")
async def speak(
    text: str = Form(...), controller: SessionController = Depends(get_controller)
):
    controller.speak(text)
    return [u.model_dump() for u in controller.speaker.drain()]


# --- Flashcards ---
def _card_payload(controller: SessionController) -> dict:
    card = controller.current_card()
    return {
        "card_index": controller.card_index,
        "total_cards": len(controller.daily_words),
        "card": card.model_dump() if card else None,
    }


@router.get("/api/flashcard")
async def get_flashcard(controller: SessionController = Depends(get_controller)):
    return _card_payload(controller)


@router.post("/api/flashcard/next")
async def next_flashcard(controller: SessionController = Depends(get_controller)):
    controller.next_card()
    return _card_payload(controller)


@router.post("/api/flashcard/prev")
async def prev_flashcard(controller: SessionController = Depends(get_controller)):
    controller.prev_card()
    return _card_payload(controller)


# --- Quiz ---
@router.get("/api/quiz")
async def get_quiz(
    response: Response, controller: SessionController = Depends(get_controller)
):
    if controller.quiz is None:
        return error_response(NoActiveQuizError("No quiz in progress"), response)
    return controller.quiz.to_dict()


@router.post("/api/quiz/answer")
async def submit_answer(
    response: Response,
    selected_option_index: int = Form(...),
    controller: SessionController = Depends(get_controller),
):
    try:
        record = controller.answer_question(selected_option_index)
    except VocabTutorError as e:
        return error_response(e, response)
    return record.model_dump()


@router.post("/api/quiz/advance")
async def advance_quiz(
    response: Response, controller: SessionController = Depends(get_controller)
):
    try:
        final_score = controller.advance_quiz()
    except VocabTutorError as e:
        return error_response(e, response)
    return {
        "finished": final_score is not None,
        "final_score": final_score,
        "quiz": controller.quiz.to_dict(),
        "mode": controller.mode.value,
    }


# --- Pronunciation ---
@router.post("/api/recording/start")
async def start_recording(
    response: Response,
    permission_granted: bool = Form(True),
    controller: SessionController = Depends(get_controller),
):
    try:
        controller.start_recording(permission_granted)
    except VocabTutorError as e:
        return error_response(e, response)
    return controller.snapshot()


@router.post("/api/recording/stop")
async def stop_recording(
    response: Response,
    audio: UploadFile = File(...),
    controller: SessionController = Depends(get_controller),
):
    audio_bytes = await audio.read()
    try:
        result = await controller.stop_recording(audio_bytes)
    except VocabTutorError as e:
        return error_response(e, response)
    return result.model_dump()


# --- Dashboard ---
@router.get("/api/dashboard")
async def get_dashboard(controller: SessionController = Depends(get_controller)):
    return controller.dashboard().model_dump()


@router.post("/api/goal")
async def set_goal(
    response: Response,
    daily_goal: int = Form(...),
    controller: SessionController = Depends(get_controller),
):
    if daily_goal < 1:
        return error_response(ValueError("Daily goal must be positive"), response)
    controller.set_daily_goal(daily_goal)
    return controller.dashboard().model_dump()


@router.post("/api/reset")
async def reset_session(
    response: Response,
    browser_id: Optional[str] = Cookie(None, alias=settings.BROWSER_COOKIE_NAME),
    sessions: SessionRegistry = Depends(get_registry),
):
    if browser_id:
        sessions.drop(browser_id)
        logger.info(f"Session reset: {browser_id}")
    response.delete_cookie(settings.BROWSER_COOKIE_NAME)
    return {"status": "success"}
