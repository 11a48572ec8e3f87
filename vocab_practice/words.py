"""
Word bank management: create, read, update, soft delete, search and batch import.
"""
import datetime
from typing import Any, List, Mapping, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from . import db
from .csv_import import (
    MAX_ANSWER_LENGTH,
    MAX_ANSWERS,
    MAX_BATCH_SIZE,
    MAX_MEANING_LENGTH,
    MAX_SYNONYM_LENGTH,
    MAX_SYNONYMS,
    parse_words_from_csv,
)
from .errors import DuplicateWord, ValidationError, WordAlreadyDeleted, WordNotFound
from .structured import (
    BatchResult,
    BatchWordError,
    CreateWordRequest,
    DeletedWord,
    Pagination,
    SearchResult,
    UpdateWordRequest,
    WordAnswerInfo,
    WordDetail,
    WordListItem,
)

DUPLICATE_MEANING_MESSAGE = "this meaning is already registered"
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
ACTIVE_FILTERS = ("true", "false", "all")


# ----------------------------------------------------------------------
# Request validation
# ----------------------------------------------------------------------
def _check_text(value: Any, field: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    value = value.strip()
    if not value:
        raise ValidationError(f"{field} must not be empty", field=field)
    if len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", field=field)
    return value


def _check_text_list(value: Any, field: str, max_items: int, max_length: int, min_items: int) -> List[str]:
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list of strings", field=field)
    if len(value) < min_items:
        raise ValidationError(f"{field} needs at least {min_items} item(s)", field=field)
    if len(value) > max_items:
        raise ValidationError(f"{field} allows at most {max_items} items (got {len(value)})", field=field)
    return [_check_text(item, field, max_length) for item in value]


def _check_object(data: Any) -> None:
    if not isinstance(data, Mapping):
        raise ValidationError("request body must be an object")


def _check_synonyms(data: Mapping[str, Any]) -> Optional[List[str]]:
    if data.get("synonyms") is None:
        return None
    return _check_text_list(data["synonyms"], "synonyms", MAX_SYNONYMS, MAX_SYNONYM_LENGTH, min_items=0)


def validate_word_request(data: Mapping[str, Any]) -> CreateWordRequest:
    """Check a create payload: meaning and at least one answer are required."""
    _check_object(data)
    return CreateWordRequest(
        japanese_meaning=_check_text(data.get("japanese_meaning"), "japanese_meaning", MAX_MEANING_LENGTH),
        answers=_check_text_list(data.get("answers"), "answers", MAX_ANSWERS, MAX_ANSWER_LENGTH, min_items=1),
        synonyms=_check_synonyms(data),
    )


def validate_word_update(data: Mapping[str, Any]) -> UpdateWordRequest:
    """Check an update payload.

    Absent keys are left as ``None`` and an empty ``answers`` list is accepted
    as a full replacement.
    """
    _check_object(data)

    meaning: Optional[str] = None
    if data.get("japanese_meaning") is not None:
        meaning = _check_text(data["japanese_meaning"], "japanese_meaning", MAX_MEANING_LENGTH)

    answers: Optional[List[str]] = None
    if data.get("answers") is not None:
        answers = _check_text_list(data["answers"], "answers", MAX_ANSWERS, MAX_ANSWER_LENGTH, min_items=0)

    return UpdateWordRequest(japanese_meaning=meaning, answers=answers, synonyms=_check_synonyms(data))


# ----------------------------------------------------------------------
# Formatting
# ----------------------------------------------------------------------
def _word_detail(word: db.Word, answers: Sequence[db.WordAnswer]) -> WordDetail:
    return WordDetail(
        id=word.id,
        japanese_meaning=word.japanese_meaning,
        answers=[WordAnswerInfo(id=a.id, answer=a.answer, is_primary=a.is_primary) for a in answers],
        synonyms=list(word.synonyms or []),
        is_active=word.is_active,
        created_at=word.created_at,
        deleted_at=word.deleted_at,
    )


# ----------------------------------------------------------------------
# CRUD
# ----------------------------------------------------------------------
def create_word(request: CreateWordRequest) -> WordDetail:
    """Create a word and its answers in one transaction; the first answer is primary."""
    try:
        with db.session_scope("create word") as session:
            if db.find_word_by_exact_meaning(session, request.japanese_meaning) is not None:
                raise DuplicateWord(request.japanese_meaning)
            word, answers = db.create_word_with_answers(
                session, request.japanese_meaning, request.answers, request.synonyms
            )
            detail = _word_detail(word, answers)
    except IntegrityError as e:
        raise DuplicateWord(request.japanese_meaning) from e
    return detail


def get_word(word_id: int) -> WordDetail:
    with db.session_scope("get word") as session:
        word = db.find_word_by_id(session, word_id)
        if word is None:
            raise WordNotFound(word_id)
        answers = db.find_answers_for_word_ids(session, [word_id])[word_id]
        return _word_detail(word, answers)


def update_word(word_id: int, request: UpdateWordRequest) -> WordDetail:
    """Apply the fields that are set; ``answers`` replaces the whole answer list."""
    try:
        with db.session_scope("update word") as session:
            word = db.find_word_by_id(session, word_id)
            if word is None:
                raise WordNotFound(word_id)
            if not word.is_active:
                raise WordAlreadyDeleted(word_id)

            if request.japanese_meaning is not None:
                clash = db.find_word_by_exact_meaning(session, request.japanese_meaning, exclude_id=word_id)
                if clash is not None:
                    raise DuplicateWord(request.japanese_meaning)
                word.japanese_meaning = request.japanese_meaning
            if request.synonyms is not None:
                word.synonyms = list(request.synonyms)

            if request.answers is not None:
                answers = db.replace_word_answers(session, word_id, request.answers)
            else:
                answers = db.find_answers_for_word_ids(session, [word_id])[word_id]
            session.flush()
            detail = _word_detail(word, answers)
    except IntegrityError as e:
        raise DuplicateWord(request.japanese_meaning or "") from e
    return detail


def delete_word(word_id: int) -> DeletedWord:
    """Soft delete: the row stays for history, but leaves sampling and search defaults."""
    with db.session_scope("delete word") as session:
        word = db.find_word_by_id(session, word_id)
        if word is None:
            raise WordNotFound(word_id)
        if not word.is_active:
            raise WordAlreadyDeleted(word_id)
        deleted_at = datetime.datetime.now(datetime.UTC)
        word.is_active = False
        word.deleted_at = deleted_at
        meaning = word.japanese_meaning

    return DeletedWord(id=word_id, japanese_meaning=meaning, is_active=False, deleted_at=deleted_at)


def search_words(search: Optional[str] = None, is_active: str = "true",
                 limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> SearchResult:
    """Substring search on the Japanese meaning, newest first."""
    if is_active not in ACTIVE_FILTERS:
        raise ValidationError(f"is_active must be one of {', '.join(ACTIVE_FILTERS)}", field="is_active")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")
    if offset < 0:
        raise ValidationError("offset must be 0 or greater", field="offset")

    conditions = []
    if search:
        conditions.append(db.Word.japanese_meaning.contains(search))
    if is_active == "true":
        conditions.append(db.Word.is_active.is_(True))
    elif is_active == "false":
        conditions.append(db.Word.is_active.is_(False))

    with db.session_scope("search words") as session:
        total = session.scalar(select(func.count(db.Word.id)).where(*conditions)) or 0
        words = session.scalars(
            select(db.Word)
            .where(*conditions)
            .order_by(db.Word.created_at.desc(), db.Word.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        answers = db.find_answers_for_word_ids(session, [w.id for w in words])
        items = [
            WordListItem(
                id=w.id,
                japanese_meaning=w.japanese_meaning,
                answers=[a.answer for a in answers[w.id]],
                synonyms=list(w.synonyms or []),
                is_active=w.is_active,
                created_at=w.created_at,
            )
            for w in words
        ]

    return SearchResult(words=items, pagination=Pagination.build(total, limit, offset))


# ----------------------------------------------------------------------
# Batch import
# ----------------------------------------------------------------------
def batch_create_words(requests: Sequence[CreateWordRequest]) -> BatchResult:
    """Create many words, isolating failures per record.

    Each record is committed on its own. A meaning that already exists among
    active words (including one created earlier in the same batch) is reported
    for that index and skipped. Connection failures abort the batch with
    ``StoreUnavailable``; no report is returned in that case.
    """
    if not requests:
        raise ValidationError("words needs at least 1 item", field="words")
    if len(requests) > MAX_BATCH_SIZE:
        raise ValidationError(
            f"at most {MAX_BATCH_SIZE} words can be imported at once (got {len(requests)})",
            field="words",
        )

    result = BatchResult()
    with db.session_scope("batch create words") as session:
        for index, request in enumerate(requests):
            if db.find_word_by_exact_meaning(session, request.japanese_meaning) is not None:
                result.errors.append(BatchWordError(index, request.japanese_meaning, DUPLICATE_MEANING_MESSAGE))
                continue
            try:
                db.create_word_with_answers(session, request.japanese_meaning, request.answers, request.synonyms)
                session.commit()
            except IntegrityError:
                # Lost a race against a concurrent writer on the active-meaning index
                session.rollback()
                result.errors.append(BatchWordError(index, request.japanese_meaning, DUPLICATE_MEANING_MESSAGE))
                continue
            result.created += 1

    result.failed = len(result.errors)
    print(f"✅ Batch import: {result.created} created, {result.failed} failed")
    return result


def import_words_csv(content: str) -> BatchResult:
    """Parse CSV text and write the records; parse failures raise ``ValidationError`` listing every row error."""
    parsed = parse_words_from_csv(content)
    if not parsed.success:
        raise ValidationError("CSV validation failed", errors=parsed.errors)
    return batch_create_words(parsed.words)
