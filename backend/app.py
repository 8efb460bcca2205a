"""Backend API for practicing interview questions with AI feedback."""

import logging
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request, session
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

import actions
from ai_client import AIProvider, provider_from_settings
from app_logging import configure_logging
from data_access import UserRepository
from document_store import DocumentStore
from errors import STATUS_BY_CODE, AppError, AuthError, RateLimitError, ValidationError, handle_error
from rate_limit import FixedWindowRateLimiter, auth_rate_limiter
from settings import load_settings
from validations import BODY_MESSAGE

settings = load_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

DB_PATH = settings.database_path

app = Flask(__name__)
app.config["SECRET_KEY"] = settings.secret_key
app.config["SESSION_COOKIE_HTTPONLY"] = True
app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
CORS(app, origins=settings.cors_origins, supports_credentials=True)
if settings.trusted_proxy_count:
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=settings.trusted_proxy_count)

ai_rate_limiter = FixedWindowRateLimiter(settings.ai_rate_limit, settings.ai_rate_window_seconds)
_ai_provider: Optional[AIProvider] = None


def get_store() -> DocumentStore:
    return DocumentStore(DB_PATH)


def init_db() -> None:
    get_store().init_db()


init_db()


def get_ai_provider() -> AIProvider:
    """The vendor selected by configuration, built once per process."""
    global _ai_provider
    if _ai_provider is None:
        _ai_provider = provider_from_settings(settings)
    return _ai_provider


def current_user() -> Optional[Dict[str, Any]]:
    user_id = session.get("user_id")
    if not user_id:
        return None
    user = UserRepository(get_store()).get(user_id)
    if user is None:
        session.pop("user_id", None)
        return None
    return actions.public_user(user)


def respond(result: Dict[str, Any], success_status: int = 200) -> Tuple[Any, int]:
    if result.get("success"):
        return jsonify(result), success_status
    return jsonify(result), STATUS_BY_CODE.get(result.get("code"), 500)


def json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Validation failed", {"__all__": [BODY_MESSAGE]})
    return body


@app.errorhandler(AppError)
def app_error(exc: AppError) -> Tuple[Any, int]:
    return respond(handle_error(exc, path=request.path))


def check_auth_rate() -> Optional[Tuple[Any, int]]:
    # remote_addr is only rewritten from X-Forwarded-For by ProxyFix.
    key = request.remote_addr or "unknown"
    if auth_rate_limiter.check(key).allowed:
        return None
    logger.warning("Auth rate limit hit", extra={"context": {"client": key, "path": request.path}})
    return respond(handle_error(RateLimitError("Too many attempts. Please try again later.")))


@app.route("/")
def root() -> str:
    return "Hello"


@app.route("/api/health")
def health() -> Tuple[Any, int]:
    return jsonify({"ok": True}), 200


# ---- auth -------------------------------------------------------------------


@app.route("/api/auth/signup", methods=["POST"])
def signup() -> Tuple[Any, int]:
    limited = check_auth_rate()
    if limited:
        return limited
    body = json_body()
    result = actions.sign_up(get_store(), body)
    if result["success"]:
        session["user_id"] = result["user"]["id"]
    return respond(result, 201)


@app.route("/api/auth/login", methods=["POST"])
def login() -> Tuple[Any, int]:
    limited = check_auth_rate()
    if limited:
        return limited
    body = json_body()
    result = actions.sign_in(get_store(), body)
    if result["success"]:
        session.clear()
        session["user_id"] = result["user"]["id"]
    return respond(result)


@app.route("/api/auth/logout", methods=["POST"])
def logout() -> Tuple[Any, int]:
    session.clear()
    return jsonify({"success": True}), 200


@app.route("/api/auth/me", methods=["GET"])
def me() -> Tuple[Any, int]:
    user = current_user()
    if user is None:
        return respond(handle_error(AuthError()))
    return jsonify({"success": True, "user": user}), 200


# ---- questions --------------------------------------------------------------


@app.route("/api/questions", methods=["GET"])
def list_questions() -> Tuple[Any, int]:
    params = {"page": request.args.get("page"), "limit": request.args.get("limit")}
    return respond(actions.list_questions(get_store(), current_user(), params))


@app.route("/api/questions", methods=["POST"])
def create_question() -> Tuple[Any, int]:
    body = json_body()
    return respond(actions.create_question(get_store(), current_user(), body), 201)


@app.route("/api/questions/<question_id>", methods=["GET"])
def get_question(question_id: str) -> Tuple[Any, int]:
    return respond(actions.get_question(get_store(), current_user(), question_id))


@app.route("/api/questions/<question_id>", methods=["PATCH"])
def update_question(question_id: str) -> Tuple[Any, int]:
    body = json_body()
    return respond(actions.update_question(get_store(), current_user(), question_id, body))


@app.route("/api/questions/<question_id>", methods=["DELETE"])
def delete_question(question_id: str) -> Tuple[Any, int]:
    return respond(actions.delete_question(get_store(), current_user(), question_id))


# ---- collections ------------------------------------------------------------


@app.route("/api/collections", methods=["GET"])
def list_collections() -> Tuple[Any, int]:
    params = {"page": request.args.get("page"), "limit": request.args.get("limit")}
    return respond(actions.list_collections(get_store(), current_user(), params))


@app.route("/api/collections", methods=["POST"])
def create_collection() -> Tuple[Any, int]:
    body = json_body()
    return respond(actions.create_collection(get_store(), current_user(), body), 201)


@app.route("/api/collections/<collection_id>", methods=["GET"])
def get_collection(collection_id: str) -> Tuple[Any, int]:
    return respond(actions.get_collection(get_store(), current_user(), collection_id))


@app.route("/api/collections/<collection_id>", methods=["PATCH"])
def update_collection(collection_id: str) -> Tuple[Any, int]:
    body = json_body()
    return respond(actions.update_collection(get_store(), current_user(), collection_id, body))


@app.route("/api/collections/<collection_id>", methods=["DELETE"])
def delete_collection(collection_id: str) -> Tuple[Any, int]:
    return respond(actions.delete_collection(get_store(), current_user(), collection_id))


@app.route("/api/collections/<collection_id>/questions", methods=["POST"])
def add_collection_question(collection_id: str) -> Tuple[Any, int]:
    body = json_body()
    question_id = str(body.get("question_id", "")).strip()
    return respond(actions.add_question_to_collection(get_store(), current_user(), collection_id, question_id))


@app.route("/api/collections/<collection_id>/questions/<question_id>", methods=["DELETE"])
def remove_collection_question(collection_id: str, question_id: str) -> Tuple[Any, int]:
    return respond(actions.remove_question_from_collection(get_store(), current_user(), collection_id, question_id))


# ---- practice sessions ------------------------------------------------------


@app.route("/api/practice-sessions", methods=["POST"])
def create_practice_session() -> Tuple[Any, int]:
    body = json_body()
    feedback = body.get("ai_feedback") if isinstance(body.get("ai_feedback"), dict) else None
    return respond(actions.create_practice_session(get_store(), current_user(), body, ai_feedback=feedback), 201)


@app.route("/api/practice-sessions", methods=["GET"])
def practice_history() -> Tuple[Any, int]:
    return respond(actions.get_practice_history(get_store(), current_user()))


@app.route("/api/practice-sessions/stats", methods=["GET"])
def practice_stats() -> Tuple[Any, int]:
    return respond(actions.get_practice_stats(get_store(), current_user()))


# ---- AI ---------------------------------------------------------------------


@app.route("/api/ai/feedback", methods=["POST"])
def ai_feedback() -> Tuple[Any, int]:
    body = json_body()
    result = actions.get_answer_feedback(
        get_ai_provider,
        current_user(),
        body.get("question"),
        body.get("answer"),
        limiter=ai_rate_limiter,
    )
    return respond(result)


@app.route("/api/ai/generate-questions", methods=["POST"])
def ai_generate_questions() -> Tuple[Any, int]:
    body = json_body()
    auto_save = str(body.get("auto_save", "false")).lower() == "true"
    result = actions.generate_questions(
        get_ai_provider,
        get_store(),
        current_user(),
        body.get("topic"),
        body.get("difficulty"),
        body.get("count", 5),
        auto_save=auto_save,
        limiter=ai_rate_limiter,
    )
    return respond(result)


if __name__ == "__main__":
    app.run(host="localhost", port=8080, debug=True)
