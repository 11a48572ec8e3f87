"""
Word lookups that keep working without a database.

Each call tries the database first. Only an infrastructure failure
(``StoreUnavailable``) switches that call to the built-in word bank; every
other error propagates unchanged.
"""
from typing import Any, Dict, List, Optional

from . import db, grading
from .errors import StoreUnavailable, ValidationError, WordNotFound
from .mock_data import get_mock_word_by_id, get_random_mock_words
from .structured import Question


def get_random_words(limit: int = 10) -> List[Question]:
    """Up to ``limit`` random active words; fewer when the bank is small."""
    if limit < 1:
        raise ValidationError("limit must be at least 1", field="limit")
    try:
        with db.session_scope("random words") as session:
            words = db.sample_random_words(session, limit, strict=False)
            answers = db.find_answers_for_word_ids(session, [w.id for w in words])
            return [
                Question(
                    id=w.id,
                    japanese_meaning=w.japanese_meaning,
                    answers=[a.answer for a in answers[w.id]],
                    synonyms=list(w.synonyms or []),
                )
                for w in words
            ]
    except StoreUnavailable as e:
        print(f"⚠️ {e.message}; serving built-in words")
        return get_random_mock_words(limit)


def get_word_with_fallback(word_id: int) -> Optional[Question]:
    """Active word by id, or ``None``. The built-in bank is consulted only when the database is down."""
    try:
        with db.session_scope("get word") as session:
            word = db.find_word_by_id(session, word_id)
            if word is None or not word.is_active:
                return None
            answers = db.find_answers_for_word_ids(session, [word_id])[word_id]
            return Question(
                id=word.id,
                japanese_meaning=word.japanese_meaning,
                answers=[a.answer for a in answers],
                synonyms=list(word.synonyms or []),
            )
    except StoreUnavailable as e:
        print(f"⚠️ {e.message}; looking up built-in word {word_id}")
        return get_mock_word_by_id(word_id)


def check_answer(word_id: int, answer: str) -> Dict[str, Any]:
    """Grade a free-standing answer outside any session; nothing is recorded."""
    if not isinstance(answer, str) or not answer.strip():
        raise ValidationError("answer must not be empty", field="answer")
    word = get_word_with_fallback(word_id)
    if word is None:
        raise WordNotFound(word_id)
    return {
        "is_correct": grading.is_correct(word.answers, answer),
        "user_answer": answer.strip(),
    }
