"""Use-case entry points.

Every function takes the current user (``{"id", "email", "name"}`` or None)
and returns an envelope: ``{"success": True, ...}`` on success, or the
failure shape built by :func:`errors.handle_error`. Nothing raises past this
module.
"""

import functools
import inspect
import logging
import sqlite3
from typing import Any, Callable, Dict, Mapping, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from ai_client import AIProvider
from app_logging import log_error
from data_access import (
    CollectionRepository,
    PracticeSessionRepository,
    QuestionRepository,
    UserRepository,
)
from document_store import DocumentStore
from errors import AppError, AuthError, RateLimitError, ValidationError, handle_error
from rate_limit import FixedWindowRateLimiter
from validations import (
    validate_collection_input,
    validate_collection_update,
    validate_feedback_request,
    validate_generation_request,
    validate_object_id,
    validate_pagination,
    validate_practice_session,
    validate_question_input,
    validate_question_update,
    validate_sign_in,
    validate_sign_up,
)

logger = logging.getLogger(__name__)

User = Optional[Mapping[str, Any]]


def envelope(func: Callable[..., Dict[str, Any]]) -> Callable[..., Dict[str, Any]]:
    signature = inspect.signature(func)

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Dict[str, Any]:
        try:
            return dict(func(*args, **kwargs), success=True)
        except Exception as exc:
            return handle_error(exc, action=func.__name__, user_id=_user_id_of(signature, args, kwargs))

    return wrapper


def _user_id_of(signature: inspect.Signature, args: tuple, kwargs: Dict[str, Any]) -> Optional[str]:
    """Id of the ``user`` argument; request bodies are never consulted."""
    try:
        user = signature.bind_partial(*args, **kwargs).arguments.get("user")
    except TypeError:
        return None
    if not isinstance(user, Mapping) or not user.get("id"):
        return None
    return str(user["id"])


def require_user(user: User) -> str:
    if not user or not user.get("id"):
        raise AuthError()
    return str(user["id"])


def public_user(user: Mapping[str, Any]) -> Dict[str, Any]:
    return {"id": user["id"], "email": user["email"], "name": user.get("name")}


def _check_rate(limiter: Optional[FixedWindowRateLimiter], key: str) -> None:
    if limiter is None:
        return
    if not limiter.check(key).allowed:
        raise RateLimitError("Rate limit exceeded: Please try again in a few moments.")


# ---- auth -------------------------------------------------------------------


@envelope
def sign_up(store: DocumentStore, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    validated = validate_sign_up(data)
    user = UserRepository(store).create(
        validated["email"],
        generate_password_hash(validated["password"]),
        validated.get("name"),
    )
    return {"user": public_user(user)}


@envelope
def sign_in(store: DocumentStore, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    try:
        validated = validate_sign_in(data)
    except ValidationError:
        raise AuthError("Invalid email or password")
    user = UserRepository(store).find_by_email(validated["email"])
    if user is None or not check_password_hash(user.get("password_hash") or "", validated["password"]):
        raise AuthError("Invalid email or password")
    return {"user": public_user(user)}


# ---- questions --------------------------------------------------------------


@envelope
def create_question(store: DocumentStore, user: User, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    owner_id = require_user(user)
    validated = validate_question_input(data)
    return {"question_id": QuestionRepository(store).create(owner_id, validated)}


@envelope
def update_question(
    store: DocumentStore, user: User, question_id: str, data: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    owner_id = require_user(user)
    validate_object_id(question_id, "question_id")
    validated = validate_question_update(data)
    QuestionRepository(store).update(owner_id, question_id, validated)
    return {"question_id": question_id}


@envelope
def delete_question(store: DocumentStore, user: User, question_id: str) -> Dict[str, Any]:
    owner_id = require_user(user)
    validate_object_id(question_id, "question_id")
    QuestionRepository(store).soft_delete(owner_id, question_id)
    return {}


@envelope
def list_questions(store: DocumentStore, user: User, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    owner_id = require_user(user)
    pagination = validate_pagination(params)
    return QuestionRepository(store).list(owner_id, pagination["page"], pagination["limit"])


@envelope
def get_question(store: DocumentStore, user: User, question_id: str) -> Dict[str, Any]:
    owner_id = require_user(user)
    validate_object_id(question_id, "question_id")
    question = QuestionRepository(store).get(owner_id, question_id)
    sessions = PracticeSessionRepository(store).for_question(owner_id, question_id)
    return {"question": dict(question, practice_sessions=sessions)}


# ---- collections ------------------------------------------------------------


@envelope
def create_collection(store: DocumentStore, user: User, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    owner_id = require_user(user)
    validated = validate_collection_input(data)
    return {"collection_id": CollectionRepository(store).create(owner_id, validated)}


@envelope
def update_collection(
    store: DocumentStore, user: User, collection_id: str, data: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    owner_id = require_user(user)
    validate_object_id(collection_id, "collection_id")
    validated = validate_collection_update(data)
    CollectionRepository(store).update(owner_id, collection_id, validated)
    return {"collection_id": collection_id}


@envelope
def delete_collection(store: DocumentStore, user: User, collection_id: str) -> Dict[str, Any]:
    owner_id = require_user(user)
    validate_object_id(collection_id, "collection_id")
    CollectionRepository(store).soft_delete(owner_id, collection_id)
    return {}


@envelope
def list_collections(store: DocumentStore, user: User, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    owner_id = require_user(user)
    pagination = validate_pagination(params)
    return CollectionRepository(store).list(owner_id, pagination["page"], pagination["limit"])


@envelope
def get_collection(store: DocumentStore, user: User, collection_id: str) -> Dict[str, Any]:
    owner_id = require_user(user)
    validate_object_id(collection_id, "collection_id")
    return {"collection": CollectionRepository(store).get_with_members(owner_id, collection_id)}


@envelope
def add_question_to_collection(
    store: DocumentStore, user: User, collection_id: str, question_id: str
) -> Dict[str, Any]:
    owner_id = require_user(user)
    validate_object_id(collection_id, "collection_id")
    validate_object_id(question_id, "question_id")
    CollectionRepository(store).add_member(owner_id, collection_id, question_id)
    return {}


@envelope
def remove_question_from_collection(
    store: DocumentStore, user: User, collection_id: str, question_id: str
) -> Dict[str, Any]:
    owner_id = require_user(user)
    validate_object_id(collection_id, "collection_id")
    CollectionRepository(store).remove_member(owner_id, collection_id, question_id)
    return {}


# ---- practice sessions ------------------------------------------------------


@envelope
def create_practice_session(
    store: DocumentStore,
    user: User,
    data: Optional[Mapping[str, Any]],
    ai_feedback: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    owner_id = require_user(user)
    validated = validate_practice_session(data)
    session_id = PracticeSessionRepository(store).create(owner_id, validated, ai_feedback=ai_feedback)
    return {"session_id": session_id}


@envelope
def get_practice_history(store: DocumentStore, user: User) -> Dict[str, Any]:
    owner_id = require_user(user)
    return {"sessions": PracticeSessionRepository(store).history(owner_id)}


@envelope
def get_practice_stats(store: DocumentStore, user: User) -> Dict[str, Any]:
    owner_id = require_user(user)
    return {"stats": PracticeSessionRepository(store).stats(owner_id)}


# ---- AI ---------------------------------------------------------------------


@envelope
def get_answer_feedback(
    provider: Callable[[], AIProvider],
    user: User,
    question: Any,
    answer: Any,
    limiter: Optional[FixedWindowRateLimiter] = None,
) -> Dict[str, Any]:
    owner_id = require_user(user)
    request = validate_feedback_request(question, answer)
    _check_rate(limiter, owner_id)
    logger.info("Requesting answer feedback", extra={"context": {"user_id": owner_id}})
    feedback = provider().request_feedback(request["question"], request["answer"])
    return {"feedback": feedback.to_dict()}


@envelope
def generate_questions(
    provider: Callable[[], AIProvider],
    store: DocumentStore,
    user: User,
    topic: Any,
    difficulty: Any,
    count: Any,
    auto_save: bool = False,
    limiter: Optional[FixedWindowRateLimiter] = None,
) -> Dict[str, Any]:
    owner_id = require_user(user)
    request = validate_generation_request(topic, difficulty, count)
    _check_rate(limiter, owner_id)
    logger.info(
        "Generating questions",
        extra={"context": {"user_id": owner_id, "topic": request["topic"], "count": request["count"]}},
    )
    generated = provider().request_question_generation(request["topic"], request["difficulty"], request["count"])

    saved_ids = []
    if auto_save:
        saved_ids = _save_generated(store, owner_id, generated)

    return {"questions": [q.model_dump() for q in generated], "saved_ids": saved_ids}


def _save_generated(store: DocumentStore, owner_id: str, generated: list) -> list:
    """Persist each generated question on its own; failures are only logged."""
    questions = QuestionRepository(store)
    saved_ids = []
    for index, item in enumerate(generated):
        try:
            validated = validate_question_input(item.to_question_input())
            saved_ids.append(questions.create(owner_id, validated))
        except (AppError, sqlite3.Error) as exc:
            log_error(logger, "Skipping generated question that could not be saved", exc, user_id=owner_id, index=index)
    return saved_ids


@envelope
def diagnose_ai(provider: Callable[[], AIProvider]) -> Dict[str, Any]:
    """Probe the configured vendor with a one-question generation."""
    try:
        client = provider()
        questions = client.request_question_generation("JavaScript", "EASY", 1)
    except AppError as exc:
        return {
            "ok": False,
            "detail": exc.message,
            "error_code": exc.code,
            "hint": diagnosis_hint(exc),
        }
    return {
        "ok": True,
        "provider": client.name,
        "model": client.model,
        "message": "AI API is working!",
        "questions": [q.model_dump() for q in questions],
    }


def diagnosis_hint(exc: AppError) -> str:
    status = getattr(exc, "vendor_status", None)
    if exc.code == "CONFIGURATION_ERROR":
        return "Set AI_PROVIDER to openai, gemini or groq and AI_API_KEY to a valid key."
    if status in (401, 403):
        return "API key is invalid or expired. Please generate a new key."
    if status == 404:
        return "Model not found. Check AI_PROVIDER and AI_MODEL settings."
    if status == 429:
        return "Rate limit exceeded at the AI vendor. Wait and try again."
    if exc.code == "PARSE_ERROR":
        return "The vendor replied, but not with the expected JSON. Try another model."
    return "Unknown API error. Check the server logs."
