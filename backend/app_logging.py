"""Shared logging setup plus the error and audit helpers."""

import logging
from typing import Any, Dict, Optional

AUDIT_LOGGER_NAME = "interview_prep.audit"


class ContextFormatter(logging.Formatter):
    """Append the structured ``context`` of a record as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        context = getattr(record, "context", None)
        if not context:
            return base
        pairs = " ".join(f"{key}={value!r}" for key, value in sorted(context.items()))
        return f"{base} | {pairs}"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if any(isinstance(h.formatter, ContextFormatter) for h in root.handlers):
        root.setLevel(level)
        return
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(level)


def log_error(
    log: logging.Logger,
    message: str,
    error: Optional[BaseException] = None,
    **context: Any,
) -> None:
    if error is not None:
        context.setdefault("error_type", type(error).__name__)
        context.setdefault("error_message", str(error))
    log.error(message, exc_info=error, extra={"context": context})


def log_warning(log: logging.Logger, message: str, **context: Any) -> None:
    log.warning(message, extra={"context": context})


def audit(
    user_id: str,
    action: str,
    entity: str,
    entity_id: str,
    changes: Optional[Dict[str, Any]] = None,
) -> None:
    context: Dict[str, Any] = {
        "user_id": user_id,
        "action": action,
        "entity": entity,
        "entity_id": entity_id,
    }
    if changes:
        context["changes"] = sorted(changes)
    logging.getLogger(AUDIT_LOGGER_NAME).info("Audit: %s", action, extra={"context": context})
