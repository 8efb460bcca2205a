"""Ownership-scoped operations on users, questions, collections and practice sessions.

Every read or write of a question, collection or practice session goes
through :func:`require_owner` first. Owner ids are compared as exact strings.
"""

import math
import sqlite3
from typing import Any, Dict, Iterable, Iterator, List, Optional

from app_logging import audit
from document_store import DocumentStore, utc_now
from errors import ConflictError, ForbiddenError, NotFoundError

QUESTION_SUMMARY_FIELDS = ("id", "title", "difficulty", "category", "company_name", "tags", "deleted_at")
PRACTICE_HISTORY_LIMIT = 50
RECENT_SESSIONS_LIMIT = 5


def require_owner(
    entity: Optional[Dict[str, Any]],
    caller_id: str,
    kind: str = "Resource",
    allow_deleted: bool = False,
) -> Dict[str, Any]:
    if entity is None or (entity.get("deleted_at") and not allow_deleted):
        raise NotFoundError(f"{kind} not found", kind=kind)
    if str(entity.get("user_id")) != str(caller_id):
        raise ForbiddenError(f"{kind} belongs to another user", kind=kind)
    return entity


def paginate(items: List[Dict[str, Any]], page: int, limit: int) -> Dict[str, Any]:
    total = len(items)
    start = (page - 1) * limit
    return {
        "items": items[start:start + limit],
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if total else 0,
    }


def summarize_question(question: Dict[str, Any]) -> Dict[str, Any]:
    return {key: question.get(key) for key in QUESTION_SUMMARY_FIELDS}


class MembershipList:
    """Ordered, duplicate-free list of question ids held by a collection."""

    def __init__(self, ids: Optional[Iterable[str]] = None) -> None:
        self._ids: List[str] = []
        for question_id in ids or []:
            if str(question_id) not in self._ids:
                self._ids.append(str(question_id))

    def contains(self, question_id: str) -> bool:
        return str(question_id) in self._ids

    def append(self, question_id: str) -> None:
        if self.contains(question_id):
            raise ConflictError("Question already in collection")
        self._ids.append(str(question_id))

    def remove(self, question_id: str) -> bool:
        if not self.contains(question_id):
            return False
        self._ids.remove(str(question_id))
        return True

    def as_list(self) -> List[str]:
        return list(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)


class UserRepository:
    collection = "users"

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def create(self, email: str, password_hash: str, name: Optional[str] = None) -> Dict[str, Any]:
        if self.find_by_email(email) is not None:
            raise ConflictError("User with this email already exists")
        try:
            return self.store.insert(
                self.collection,
                {"email": email.lower(), "password_hash": password_hash, "name": name},
            )
        except sqlite3.IntegrityError:
            # Another signup with the same email committed after the lookup.
            raise ConflictError("User with this email already exists")

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.store.find_by_id(self.collection, user_id)

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.store.find_one(self.collection, "email", email.lower())


class _OwnedRepository:
    collection = ""
    kind = ""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def _load(self, owner_id: str, entity_id: str, allow_deleted: bool = False) -> Dict[str, Any]:
        entity = self.store.find_by_id(self.collection, entity_id)
        return require_owner(entity, owner_id, self.kind, allow_deleted=allow_deleted)

    def _owned_active(self, owner_id: str) -> List[Dict[str, Any]]:
        rows = self.store.find(self.collection, user_id=owner_id)
        # The store filter is not trusted on its own: owner ids may be stored
        # with a different representation than the caller's.
        return [r for r in rows if str(r.get("user_id")) == str(owner_id) and r.get("deleted_at") is None]

    def get(self, owner_id: str, entity_id: str) -> Dict[str, Any]:
        return self._load(owner_id, entity_id)

    def update(self, owner_id: str, entity_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        self._load(owner_id, entity_id)
        updated = self.store.update(self.collection, entity_id, dict(fields, updated_at=utc_now()))
        if updated is None:
            raise NotFoundError(f"{self.kind} not found", kind=self.kind)
        audit(owner_id, f"update_{self.collection}", self.kind, entity_id, fields)
        return updated

    def soft_delete(self, owner_id: str, entity_id: str) -> None:
        self._load(owner_id, entity_id)
        self.store.update(self.collection, entity_id, {"deleted_at": utc_now()})
        audit(owner_id, f"delete_{self.collection}", self.kind, entity_id)

    def list(self, owner_id: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        return paginate(self._owned_active(owner_id), page, limit)


class QuestionRepository(_OwnedRepository):
    collection = "questions"
    kind = "Question"

    def create(self, owner_id: str, validated: Dict[str, Any]) -> str:
        question = self.store.insert(self.collection, dict(validated, user_id=str(owner_id)))
        audit(owner_id, "create_question", self.kind, question["id"])
        return question["id"]

    def require_usable(self, owner_id: str, question_id: str) -> Dict[str, Any]:
        """An active question of the caller; anything else is reported as missing."""
        try:
            return self.get(owner_id, question_id)
        except ForbiddenError:
            raise NotFoundError("Question not found", kind=self.kind)


class CollectionRepository(_OwnedRepository):
    collection = "collections"
    kind = "Collection"

    def __init__(self, store: DocumentStore) -> None:
        super().__init__(store)
        self.questions = QuestionRepository(store)

    def create(self, owner_id: str, validated: Dict[str, Any]) -> str:
        collection = self.store.insert(
            self.collection,
            dict(validated, user_id=str(owner_id), question_ids=[]),
        )
        audit(owner_id, "create_collection", self.kind, collection["id"])
        return collection["id"]

    def update(self, owner_id: str, entity_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        # Membership only changes through add_member/remove_member.
        fields = {k: v for k, v in fields.items() if k != "question_ids"}
        return super().update(owner_id, entity_id, fields)

    def add_member(self, owner_id: str, collection_id: str, question_id: str) -> None:
        collection = self._load(owner_id, collection_id)
        self.questions.require_usable(owner_id, question_id)

        members = MembershipList(collection.get("question_ids"))
        members.append(question_id)

        # A concurrent add of the same id between the check and this write
        # leaves the list unchanged; that outcome is treated as success.
        self.store.add_to_set(self.collection, collection_id, "question_ids", str(question_id))
        audit(owner_id, "add_question_to_collection", self.kind, collection_id, {"question_id": question_id})

    def remove_member(self, owner_id: str, collection_id: str, question_id: str) -> None:
        collection = self._load(owner_id, collection_id)
        if not MembershipList(collection.get("question_ids")).contains(question_id):
            return
        self.store.pull(self.collection, collection_id, "question_ids", str(question_id))
        audit(owner_id, "remove_question_from_collection", self.kind, collection_id, {"question_id": question_id})

    def get_with_members(self, owner_id: str, collection_id: str) -> Dict[str, Any]:
        """Collection plus summaries of its questions, deleted ones included."""
        collection = self._load(owner_id, collection_id)
        members = MembershipList(collection.get("question_ids"))
        if not len(members):
            return dict(collection, questions=[])

        by_id = {
            q["id"]: q
            for q in self.store.find_many(self.questions.collection, members)
            if str(q.get("user_id")) == str(owner_id)
        }
        questions = [summarize_question(by_id[qid]) for qid in members if qid in by_id]
        return dict(collection, questions=questions)


class PracticeSessionRepository(_OwnedRepository):
    collection = "practice_sessions"
    kind = "Practice session"

    def __init__(self, store: DocumentStore) -> None:
        super().__init__(store)
        self.questions = QuestionRepository(store)

    def create(self, owner_id: str, validated: Dict[str, Any], ai_feedback: Optional[Dict[str, Any]] = None) -> str:
        self.questions.require_usable(owner_id, validated["question_id"])
        doc = dict(validated, user_id=str(owner_id))
        if ai_feedback is not None:
            doc["ai_feedback"] = ai_feedback
        session = self.store.insert(self.collection, doc)
        audit(owner_id, "create_practice_session", self.kind, session["id"])
        return session["id"]

    def for_question(self, owner_id: str, question_id: str, limit: int = RECENT_SESSIONS_LIMIT) -> List[Dict[str, Any]]:
        sessions = [s for s in self._owned_active(owner_id) if s.get("question_id") == question_id]
        return sessions[:limit]

    def history(self, owner_id: str, limit: int = PRACTICE_HISTORY_LIMIT) -> List[Dict[str, Any]]:
        sessions = self._owned_active(owner_id)[:limit]
        question_ids = [s["question_id"] for s in sessions]
        by_id = {q["id"]: q for q in self.store.find_many(self.questions.collection, question_ids)}
        history = []
        for session in sessions:
            question = by_id.get(session["question_id"])
            summary = summarize_question(question) if question else None
            history.append(dict(session, question=summary))
        return history

    def stats(self, owner_id: str) -> Dict[str, Any]:
        sessions = self._owned_active(owner_id)
        total = len(sessions)
        avg_duration = round(sum(s.get("duration", 0) for s in sessions) / total) if total else 0

        questions = self.store.find_many(self.questions.collection, [s["question_id"] for s in sessions])
        difficulty_by_id = {q["id"]: q.get("difficulty") for q in questions}
        by_difficulty: Dict[str, int] = {}
        for session in sessions:
            difficulty = difficulty_by_id.get(session["question_id"])
            if difficulty:
                by_difficulty[difficulty] = by_difficulty.get(difficulty, 0) + 1

        return {
            "total_sessions": total,
            "avg_duration": avg_duration,
            "by_difficulty": by_difficulty,
        }
