"""AI vendor client: answer feedback and interview question generation.

Exactly one vendor is active per configuration. Every call is a single
blocking POST with an explicit timeout; there are no retries and no fallback
to another vendor.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from errors import (
    ConfigurationError,
    ParseError,
    UnsupportedProviderError,
    ValidationError,
    VendorError,
)
from validations import CATEGORIES, DIFFICULTIES, QuestionInput

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_OPENAI_MODEL = "gpt-4-turbo"
DEFAULT_GROQ_MODEL = "mixtral-8x7b-32768"
DEFAULT_GEMINI_MODEL = "gemini-pro"
DEFAULT_TIMEOUT = 30.0
FEEDBACK_MAX_TOKENS = 500
GENERATION_MAX_TOKENS = 2000

logger = logging.getLogger(__name__)

FEEDBACK_SYSTEM_PROMPT = (
    "You are an expert technical interview coach. Analyze the following interview answer "
    "and provide structured feedback in JSON format.\n\n"
    "Return ONLY a JSON object with:\n"
    "{\n"
    '  "summary": "1-2 sentence overall assessment",\n'
    '  "strengths": ["strength 1", "strength 2"],\n'
    '  "improvements": ["improvement 1", "improvement 2"],\n'
    '  "overallScore": 7\n'
    "}\n\n"
    "overallScore is an integer from 0 to 10. Be constructive and specific. "
    "Focus on clarity, structure, technical accuracy, and communication."
)

GENERATION_SYSTEM_PROMPT = (
    "You are an expert technical interviewer. You write realistic interview questions "
    "and reply with strict JSON only."
)


class AIFeedback(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    summary: str
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    overall_score: int = Field(validation_alias=AliasChoices("overallScore", "overall_score"))

    @field_validator("overall_score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return value
        if isinstance(value, (int, float)):
            return max(0, min(10, int(round(value))))
        return value

    @field_validator("summary")
    @classmethod
    def _strip_summary(cls, value: str) -> str:
        return value.strip()

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class AIGeneratedQuestion(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str
    description: str
    difficulty: str
    category: str
    tags: List[str] = Field(default_factory=list)
    suggested_answer: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("suggestedAnswer", "suggested_answer"),
    )

    @field_validator("difficulty", "category", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper().replace(" ", "_").replace("-", "_")
        return value

    @field_validator("difficulty")
    @classmethod
    def _check_difficulty(cls, value: str) -> str:
        if value not in DIFFICULTIES:
            raise ValueError(f"difficulty must be one of {', '.join(DIFFICULTIES)}")
        return value

    @field_validator("category")
    @classmethod
    def _check_category(cls, value: str) -> str:
        if value not in CATEGORIES:
            raise ValueError(f"category must be one of {', '.join(CATEGORIES)}")
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [t.strip() for t in value.split(",") if t.strip()]
        return value

    @model_validator(mode="after")
    def _check_question_bounds(self) -> "AIGeneratedQuestion":
        try:
            QuestionInput.model_validate(self.to_question_input())
        except PydanticValidationError as exc:
            fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
            raise ValueError(f"question does not fit the question schema: {', '.join(fields)}")
        return self

    def to_question_input(self) -> Dict[str, Any]:
        """Fields accepted by the question create contract."""
        return self.model_dump(exclude_none=True)


def extract_json_block(text: str, opener: str = "{") -> str:
    """Return the first balanced ``{...}`` or ``[...]`` block in ``text``.

    Brackets inside JSON string literals are ignored, so prose and code
    fences around the payload do not matter.
    """
    closer = {"{": "}", "[": "]"}[opener]
    start = text.find(opener)
    if start == -1:
        raise ParseError(f"No JSON {'object' if opener == '{' else 'array'} found in AI response")

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        ch = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    raise ParseError("Unbalanced JSON in AI response")


def _loads(block: str) -> Any:
    try:
        return json.loads(block)
    except json.JSONDecodeError as exc:
        raise ParseError(f"AI response contained invalid JSON: {exc.msg}")


def parse_feedback(text: str) -> AIFeedback:
    data = _loads(extract_json_block(text, "{"))
    if not isinstance(data, dict):
        raise ParseError("AI feedback must be a JSON object")
    try:
        return AIFeedback.model_validate(data)
    except PydanticValidationError as exc:
        raise ParseError(f"AI feedback has an unexpected shape: {exc.error_count()} error(s)")


def parse_generated_questions(text: str, count: Optional[int] = None) -> List[AIGeneratedQuestion]:
    data = _loads(extract_json_block(text, "["))
    if not isinstance(data, list) or not data:
        raise ParseError("AI response did not include any questions")
    try:
        questions = [AIGeneratedQuestion.model_validate(item) for item in data]
    except PydanticValidationError as exc:
        raise ParseError(f"AI question has an unexpected shape: {exc.error_count()} error(s)")
    if count is not None:
        questions = questions[:count]
    return questions


def build_feedback_prompt(question: str, answer: str) -> str:
    return f'Question: "{question}"\n\nUser\'s Answer: "{answer}"'


def build_generation_prompt(topic: str, difficulty: str, count: int) -> str:
    return (
        f"Generate exactly {count} {difficulty} difficulty interview questions about \"{topic}\".\n\n"
        "Requirements:\n"
        "- Output ONLY a valid JSON array, no prose.\n"
        "- Use this exact schema for each element:\n"
        '{"title": string, "description": string, "difficulty": "EASY"|"MEDIUM"|"HARD", '
        '"category": "TECHNICAL"|"BEHAVIORAL"|"SYSTEM_DESIGN"|"CODING", '
        '"tags": [string], "suggestedAnswer": string}\n'
        "- title is 5-200 characters; description is 10-2000 characters.\n"
        "- At most 5 tags, each at most 30 characters.\n"
        f"- difficulty must be {difficulty} for every question.\n"
    )


def _vendor_error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, list) and body:
        body = body[0]
    if not isinstance(body, dict):
        return ""
    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str):
            return message.strip()
    if isinstance(error, str):
        return error.strip()
    return ""


def _status_hint(status: int) -> str:
    if status == 429:
        return " (rate limit exceeded, try again later)"
    if status in (401, 403):
        return " (check that AI_API_KEY is valid)"
    if status == 404:
        return " (model not found, check AI_MODEL)"
    return ""


class AIProvider:
    """Strategy base: prompt handling and parsing shared by every vendor."""

    name = ""
    label = ""
    default_model = ""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.model = model or self.default_model
        self.timeout = timeout
        self.http = session or requests

    def request_feedback(self, question: str, answer: str) -> AIFeedback:
        if not isinstance(question, str) or not question.strip():
            raise ValidationError("Validation failed", {"question": ["Question is required"]})
        if not isinstance(answer, str) or not answer.strip():
            raise ValidationError("Validation failed", {"answer": ["Answer is required"]})
        self._require_key()

        text = self._complete(
            FEEDBACK_SYSTEM_PROMPT,
            build_feedback_prompt(question.strip(), answer.strip()),
            temperature=0.7,
            max_tokens=FEEDBACK_MAX_TOKENS,
        )
        return parse_feedback(text)

    def request_question_generation(
        self, topic: str, difficulty: str, count: int
    ) -> List[AIGeneratedQuestion]:
        if not isinstance(topic, str) or not topic.strip():
            raise ValidationError("Validation failed", {"topic": ["Topic is required"]})
        if difficulty not in DIFFICULTIES:
            raise ValidationError("Validation failed", {"difficulty": ["Invalid difficulty level"]})
        if not isinstance(count, int) or count < 1 or count > 10:
            raise ValidationError("Validation failed", {"count": ["Count must be between 1 and 10"]})
        self._require_key()

        text = self._complete(
            GENERATION_SYSTEM_PROMPT,
            build_generation_prompt(topic.strip(), difficulty, count),
            temperature=0.8,
            max_tokens=GENERATION_MAX_TOKENS,
        )
        return parse_generated_questions(text, count)

    def _require_key(self) -> None:
        if not self.api_key:
            raise ConfigurationError("AI_API_KEY environment variable not set")

    def _complete(self, system_prompt: str, user_prompt: str, *, temperature: float, max_tokens: int) -> str:
        raise NotImplementedError

    def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug("POST %s model=%s", url, self.model)
        try:
            response = self.http.post(url, headers=headers, json=payload, timeout=self.timeout)
        except requests.Timeout:
            raise VendorError(f"{self.label} request timed out after {self.timeout:g}s")
        except requests.RequestException as exc:
            raise VendorError(f"{self.label} request failed: {exc}")

        if response.status_code >= 400:
            message = f"{self.label} API error (HTTP {response.status_code}){_status_hint(response.status_code)}"
            detail = _vendor_error_detail(response)
            if detail:
                message = f"{message}: {detail}"
            raise VendorError(message, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError:
            raise ParseError(f"{self.label} returned a non-JSON body")
        if not isinstance(body, dict):
            raise ParseError(f"{self.label} returned an unexpected body")
        return body


class ChatCompletionsProvider(AIProvider):
    """Vendors speaking the OpenAI chat-completions wire format."""

    url = ""

    def _complete(self, system_prompt: str, user_prompt: str, *, temperature: float, max_tokens: int) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        body = self._post(self.url, headers, payload)
        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ParseError(f"No response from {self.label}: choices[0].message.content missing")
        if not isinstance(content, str) or not content.strip():
            raise ParseError(f"No response from {self.label}: empty completion")
        return content.strip()


class OpenAIProvider(ChatCompletionsProvider):
    name = "openai"
    label = "OpenAI"
    default_model = DEFAULT_OPENAI_MODEL
    url = OPENAI_URL


class GroqProvider(ChatCompletionsProvider):
    name = "groq"
    label = "Groq"
    default_model = DEFAULT_GROQ_MODEL
    url = GROQ_URL


class GeminiProvider(AIProvider):
    name = "gemini"
    label = "Gemini"
    default_model = DEFAULT_GEMINI_MODEL

    def _complete(self, system_prompt: str, user_prompt: str, *, temperature: float, max_tokens: int) -> str:
        payload = {
            "contents": [{"parts": [{"text": f"{system_prompt}\n\n{user_prompt}"}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }
        body = self._post(GEMINI_URL.format(model=self.model), headers, payload)
        try:
            content = body["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise ParseError("No response from Gemini: candidates[0].content.parts[0].text missing")
        if not isinstance(content, str) or not content.strip():
            raise ParseError("No response from Gemini: empty completion")
        return content.strip()


PROVIDERS = {
    OpenAIProvider.name: OpenAIProvider,
    GeminiProvider.name: GeminiProvider,
    GroqProvider.name: GroqProvider,
}


def create_provider(
    name: str,
    api_key: str,
    model: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
) -> AIProvider:
    provider_cls = PROVIDERS.get(str(name or "").strip().lower())
    if provider_cls is None:
        raise UnsupportedProviderError(f"Unsupported AI provider: {name}")
    return provider_cls(api_key, model=model, timeout=timeout, session=session)


def provider_from_settings(settings: Any) -> AIProvider:
    return create_provider(
        settings.ai_provider,
        settings.ai_api_key,
        model=settings.ai_model or None,
        timeout=settings.ai_timeout,
    )
