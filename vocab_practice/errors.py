"""
Typed failures raised by the practice core.

Every error carries a ``kind`` (one of ``validation``, ``not_found``,
``conflict``, ``infrastructure``) and a stable ``code`` so that callers can
map failures deterministically without parsing messages. Structured context
lives in ``details``.
"""
from typing import Any, Dict, Optional


class VocabError(Exception):
    kind: str = "internal"
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


# ----------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------
class ValidationError(VocabError):
    kind = "validation"
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None, **details: Any) -> None:
        if field is not None:
            details["field"] = field
        super().__init__(message, **details)
        self.field = field


class QuestionNotInSession(VocabError):
    kind = "validation"
    code = "QUESTION_NOT_IN_SESSION"

    def __init__(self, session_id: str, word_id: int) -> None:
        super().__init__(
            f"Word {word_id} is not a question of session {session_id}",
            session_id=session_id,
            word_id=word_id,
        )


# ----------------------------------------------------------------------
# Not found
# ----------------------------------------------------------------------
class SessionNotFound(VocabError):
    kind = "not_found"
    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}", session_id=session_id)


class WordNotFound(VocabError):
    kind = "not_found"
    code = "WORD_NOT_FOUND"

    def __init__(self, word_id: int) -> None:
        super().__init__(f"Word not found: {word_id}", word_id=word_id)


class UserNotFound(VocabError):
    kind = "not_found"
    code = "USER_NOT_FOUND"

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User not found: {user_id}", user_id=user_id)


# ----------------------------------------------------------------------
# State and business conflicts
# ----------------------------------------------------------------------
class SessionAlreadyCompleted(VocabError):
    kind = "conflict"
    code = "SESSION_ALREADY_COMPLETED"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} is already completed", session_id=session_id)


class WordAlreadyDeleted(VocabError):
    kind = "conflict"
    code = "WORD_ALREADY_DELETED"

    def __init__(self, word_id: int) -> None:
        super().__init__(f"Word {word_id} has already been deleted", word_id=word_id)


class DuplicateWord(VocabError):
    kind = "conflict"
    code = "DUPLICATE_WORD"

    def __init__(self, japanese_meaning: str) -> None:
        super().__init__(
            "this meaning is already registered",
            field="japanese_meaning",
            japanese_meaning=japanese_meaning,
        )


class DuplicateAnswer(VocabError):
    kind = "conflict"
    code = "DUPLICATE_ANSWER"

    def __init__(self, session_id: str, word_id: int) -> None:
        super().__init__(
            f"Word {word_id} has already been answered in session {session_id}",
            session_id=session_id,
            word_id=word_id,
        )


class InsufficientWordPool(VocabError):
    kind = "conflict"
    code = "INSUFFICIENT_WORD_POOL"

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"Not enough words available (required: {required}, available: {available})",
            required=required,
            available=available,
        )
        self.required = required
        self.available = available


# ----------------------------------------------------------------------
# Infrastructure
# ----------------------------------------------------------------------
class StoreUnavailable(VocabError):
    kind = "infrastructure"
    code = "DATABASE_ERROR"

    def __init__(self, operation: str, reason: str = "") -> None:
        message = f"Database unavailable during {operation}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, operation=operation)
        self.operation = operation
