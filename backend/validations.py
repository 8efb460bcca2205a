"""Input contracts for every mutating operation.

Each ``validate_*`` function is pure: it either returns a normalized dict or
raises :class:`errors.ValidationError` whose ``details`` map a field name to
its messages. Strings are trimmed and have runs of whitespace collapsed
before any length rule is applied.
"""

import re
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationInfo,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError

DIFFICULTIES = ("EASY", "MEDIUM", "HARD")
CATEGORIES = ("TECHNICAL", "BEHAVIORAL", "SYSTEM_DESIGN", "CODING")
OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")
HEX_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")
_WS_RE = re.compile(r"\s+")
BODY_MESSAGE = "Request body must be a JSON object"

RAW_FIELDS = {"password"}
STRIP_ONLY_FIELDS = {"suggested_answer"}

Difficulty = Literal["EASY", "MEDIUM", "HARD"]
Category = Literal["TECHNICAL", "BEHAVIORAL", "SYSTEM_DESIGN", "CODING"]

# (field, pydantic error type) -> message. "*" matches any field.
MESSAGES: Dict[tuple, str] = {
    ("title", "string_too_short"): "Title must be at least 5 characters",
    ("title", "string_too_long"): "Title must be less than 200 characters",
    ("description", "string_too_short"): "Description must be at least 10 characters",
    ("description", "string_too_long"): "Description must be less than {max_length} characters",
    ("difficulty", "literal_error"): "Invalid difficulty level",
    ("category", "literal_error"): "Invalid category",
    ("tags", "too_long"): "Maximum 10 tags allowed",
    ("company_name", "string_too_long"): "Company name must be at most 100 characters",
    ("company_id", "string_pattern_mismatch"): "Invalid company ID",
    ("name", "string_too_short"): "Name must be at least {min_length} characters",
    ("name", "string_too_long"): "Name must be less than {max_length} characters",
    ("color", "string_pattern_mismatch"): "Invalid hex color (e.g., #3B82F6)",
    ("email", "value_error"): "Invalid email address",
    ("email", "string_too_long"): "Invalid email address",
    ("password", "string_too_short"): "Password must be at least 8 characters",
    ("password", "string_too_long"): "Password too long",
    ("page", "greater_than_equal"): "Page must be positive",
    ("limit", "greater_than_equal"): "Limit must be positive",
    ("limit", "less_than_equal"): "Max 100 items per page",
    ("question_id", "string_pattern_mismatch"): "Invalid question ID",
    ("answer", "string_too_short"): "Answer must be at least 10 characters",
    ("answer", "string_too_long"): "Answer must be less than 5000 characters",
    ("duration", "greater_than_equal"): "Duration must be positive",
    ("duration", "less_than_equal"): "Duration too long",
    ("rating", "greater_than_equal"): "Rating must be between 1 and 5",
    ("rating", "less_than_equal"): "Rating must be between 1 and 5",
    ("*", "missing"): "{label} is required",
    ("*", "string_type"): "{label} must be a string",
    ("*", "int_parsing"): "{label} must be an integer",
    ("*", "int_type"): "{label} must be an integer",
    ("*", "int_from_float"): "{label} must be an integer",
    ("*", "list_type"): "{label} must be a list",
}


def sanitize_string(value: Any) -> Any:
    if isinstance(value, str):
        return _WS_RE.sub(" ", value.strip())
    return value


def _label(field: str) -> str:
    return field.replace("_", " ").capitalize()


def _message(field: str, err: Dict[str, Any]) -> str:
    ctx = err.get("ctx") or {}
    template = MESSAGES.get((field, err["type"])) or MESSAGES.get(("*", err["type"]))
    if template is None:
        if err["type"] == "value_error" and "error" in ctx:
            return str(ctx["error"])
        return f"{_label(field)}: {err['msg']}"
    return template.format(label=_label(field), **ctx)


def collect_errors(exc: PydanticValidationError) -> Dict[str, List[str]]:
    details: Dict[str, List[str]] = {}
    for err in exc.errors():
        loc = err.get("loc") or ("__all__",)
        field = str(loc[0])
        message = _message(field, err)
        messages = details.setdefault(field, [])
        if message not in messages:
            messages.append(message)
    return details


def _run(model: type, data: Optional[Mapping[str, Any]], *, partial: bool = False) -> Dict[str, Any]:
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ValidationError("Validation failed", {"__all__": [BODY_MESSAGE]})
    payload = {k: v for k, v in data.items() if v is not None}
    try:
        parsed = model.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError("Validation failed", collect_errors(exc))
    return parsed.model_dump(exclude_unset=partial, exclude_none=True)


class _Schema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _sanitize(cls, value: Any, info: ValidationInfo) -> Any:
        if info.field_name in RAW_FIELDS:
            return value
        if info.field_name in STRIP_ONLY_FIELDS:
            return value.strip() if isinstance(value, str) else value
        if isinstance(value, list):
            return [sanitize_string(v) for v in value]
        return sanitize_string(value)


class QuestionInput(_Schema):
    title: str = Field(min_length=5, max_length=200)
    description: str = Field(min_length=10, max_length=5000)
    difficulty: Difficulty
    category: Category
    tags: List[str] = Field(default_factory=list, max_length=10)
    company_name: Optional[str] = Field(default=None, max_length=100)
    company_id: Optional[str] = Field(default=None, pattern=OBJECT_ID_RE.pattern)
    suggested_answer: Optional[str] = Field(default=None, max_length=10000)

    @field_validator("tags")
    @classmethod
    def _check_tags(cls, tags: List[str]) -> List[str]:
        for tag in tags:
            if not tag:
                raise ValueError("Tags must not be empty")
            if len(tag) > 30:
                raise ValueError("Tags must be at most 30 characters")
        return tags

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> Any:
        # Form posts send tags as one comma separated string.
        if isinstance(value, str):
            return [sanitize_string(t) for t in value.split(",") if t.strip()]
        return value


class QuestionUpdate(QuestionInput):
    title: Optional[str] = Field(default=None, min_length=5, max_length=200)
    description: Optional[str] = Field(default=None, min_length=10, max_length=5000)
    difficulty: Optional[Difficulty] = None
    category: Optional[Category] = None
    tags: Optional[List[str]] = Field(default=None, max_length=10)


class CollectionInput(_Schema):
    name: str = Field(min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_RE.pattern)


class CollectionUpdate(CollectionInput):
    name: Optional[str] = Field(default=None, min_length=3, max_length=100)


class SignUpInput(_Schema):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)

    @field_validator("email", mode="before")
    @classmethod
    def _email_length(cls, value: Any) -> Any:
        if isinstance(value, str) and len(value) > 255:
            raise ValueError("Invalid email address")
        return value

    @field_validator("password")
    @classmethod
    def _password_strength(cls, value: str) -> str:
        if not re.search(r"[A-Z]", value):
            raise ValueError("Password must contain uppercase letter")
        if not re.search(r"[a-z]", value):
            raise ValueError("Password must contain lowercase letter")
        if not re.search(r"[0-9]", value):
            raise ValueError("Password must contain number")
        return value


class SignInInput(_Schema):
    email: EmailStr
    password: str = Field(min_length=1)


class PaginationInput(_Schema):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class PracticeSessionInput(_Schema):
    question_id: str = Field(pattern=OBJECT_ID_RE.pattern)
    answer: str = Field(min_length=10, max_length=5000)
    duration: int = Field(ge=1, le=3600)
    rating: Optional[int] = Field(default=None, ge=1, le=5)


def validate_question_input(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    return _run(QuestionInput, data)


def validate_question_update(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    validated = _run(QuestionUpdate, data, partial=True)
    if not validated:
        raise ValidationError("Nothing to update", {"__all__": ["Provide at least one field to update"]})
    return validated


def validate_collection_input(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    return _run(CollectionInput, data)


def validate_collection_update(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    validated = _run(CollectionUpdate, data, partial=True)
    if not validated:
        raise ValidationError("Nothing to update", {"__all__": ["Provide at least one field to update"]})
    return validated


def validate_sign_up(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    validated = _run(SignUpInput, data)
    validated["email"] = validated["email"].lower()
    return validated


def validate_sign_in(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    validated = _run(SignInInput, data)
    validated["email"] = validated["email"].lower()
    return validated


def validate_pagination(data: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    return _run(PaginationInput, data)


def validate_practice_session(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    return _run(PracticeSessionInput, data)


def validate_object_id(value: Any, field: str = "id") -> str:
    if not isinstance(value, str) or not OBJECT_ID_RE.match(value):
        raise ValidationError("Validation failed", {field: [f"Invalid {_label(field).lower()}"]})
    return value


def validate_feedback_request(question: Any, answer: Any) -> Dict[str, str]:
    details: Dict[str, List[str]] = {}
    question = sanitize_string(question) if isinstance(question, str) else ""
    answer = answer.strip() if isinstance(answer, str) else ""
    if not question:
        details["question"] = ["Question is required"]
    elif len(question) > 2000:
        details["question"] = ["Question must be at most 2000 characters"]
    if not answer:
        details["answer"] = ["Answer is required"]
    elif len(answer) > 5000:
        details["answer"] = ["Answer must be at most 5000 characters"]
    if details:
        raise ValidationError("Validation failed", details)
    return {"question": question, "answer": answer}


def validate_generation_request(topic: Any, difficulty: Any, count: Any) -> Dict[str, Any]:
    details: Dict[str, List[str]] = {}
    topic = sanitize_string(topic) if isinstance(topic, str) else ""
    difficulty = difficulty.strip().upper() if isinstance(difficulty, str) else ""
    if not topic:
        details["topic"] = ["Topic is required"]
    elif len(topic) > 200:
        details["topic"] = ["Topic must be at most 200 characters"]
    if difficulty not in DIFFICULTIES:
        details["difficulty"] = ["Invalid difficulty level"]
    try:
        if isinstance(count, bool):
            raise ValueError
        count = int(count)
    except (TypeError, ValueError):
        details["count"] = ["Count must be an integer"]
    else:
        if count < 1 or count > 10:
            details["count"] = ["Count must be between 1 and 10"]
    if details:
        raise ValidationError("Validation failed", details)
    return {"topic": topic, "difficulty": difficulty, "count": count}
