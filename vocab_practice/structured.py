import datetime
import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional


def _plain(value: Any) -> Any:
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class Serializable:
    """Mixin giving dataclasses a JSON-friendly ``to_dict``."""

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}  # type: ignore[arg-type]


# ----------------------------------------------------------------------
# Practice sessions
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class Question(Serializable):
    id: int
    japanese_meaning: str
    answers: List[str]
    synonyms: List[str]


@dataclass
class CreateSessionResult(Serializable):
    session_id: str
    total_questions: int
    questions: List[Question]
    backend: str


@dataclass
class AnswerResult(Serializable):
    is_correct: bool
    correct_answers: List[str]
    user_answer: str
    synonyms: List[str]
    completed_questions: int
    total_questions: int
    is_completed: bool
    backend: str


@dataclass
class SessionStats(Serializable):
    session_id: str
    total_questions: int
    completed_questions: int
    correct_answers: int
    incorrect_answers: int
    accuracy: float
    is_completed: bool
    backend: str


@dataclass
class SessionDetail(Serializable):
    session_id: str
    user_id: str
    total_questions: int
    completed_questions: int
    is_completed: bool
    questions: List[Question]
    backend: str


def accuracy_ratio(correct: int, answered: int) -> float:
    """Share of correct answers, rounded to two decimals (0.0 when nothing was answered)."""
    if answered <= 0:
        return 0.0
    return round(correct / answered, 2)


# ----------------------------------------------------------------------
# Word management
# ----------------------------------------------------------------------
@dataclass
class CreateWordRequest(Serializable):
    japanese_meaning: str
    answers: List[str]
    synonyms: Optional[List[str]] = None


@dataclass
class UpdateWordRequest(Serializable):
    # None means "leave untouched"; an empty list is a real replacement.
    japanese_meaning: Optional[str] = None
    answers: Optional[List[str]] = None
    synonyms: Optional[List[str]] = None


@dataclass
class WordAnswerInfo(Serializable):
    id: int
    answer: str
    is_primary: bool


@dataclass
class WordDetail(Serializable):
    id: int
    japanese_meaning: str
    answers: List[WordAnswerInfo]
    synonyms: List[str]
    is_active: bool
    created_at: datetime.datetime
    deleted_at: Optional[datetime.datetime] = None


@dataclass
class DeletedWord(Serializable):
    id: int
    japanese_meaning: str
    is_active: bool
    deleted_at: datetime.datetime


@dataclass
class WordListItem(Serializable):
    id: int
    japanese_meaning: str
    answers: List[str]
    synonyms: List[str]
    is_active: bool
    created_at: datetime.datetime


@dataclass
class Pagination(Serializable):
    total: int
    limit: int
    offset: int
    has_next: bool
    total_pages: int

    @classmethod
    def build(cls, total: int, limit: int, offset: int) -> "Pagination":
        return cls(
            total=total,
            limit=limit,
            offset=offset,
            has_next=offset + limit < total,
            total_pages=math.ceil(total / limit) if limit else 0,
        )


@dataclass
class SearchResult(Serializable):
    words: List[WordListItem]
    pagination: Pagination


# ----------------------------------------------------------------------
# Batch import
# ----------------------------------------------------------------------
@dataclass
class BatchWordError(Serializable):
    index: int
    japanese_meaning: str
    error: str


@dataclass
class BatchResult(Serializable):
    created: int = 0
    failed: int = 0
    errors: List[BatchWordError] = field(default_factory=list)

    @property
    def status(self) -> str:
        """``success`` when nothing failed, ``partial`` when some rows were written, else ``failed``."""
        if self.failed == 0:
            return "success"
        if self.created > 0:
            return "partial"
        return "failed"


@dataclass
class ParseResult(Serializable):
    success: bool
    words: List[CreateWordRequest] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------
@dataclass
class UserInfo(Serializable):
    id: str
    display_name: str
    created_at: datetime.datetime
    offline: bool = False
