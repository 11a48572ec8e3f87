"""
Tests for practice sessions.

The contract tests run against both session backings; database-only and
fallback behaviour is covered below them.
"""

import os
import tempfile
import threading
import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from typing import Any, Generator, List, Tuple

from vocab_practice import db, progress, words
from vocab_practice.errors import (
    DuplicateAnswer,
    InsufficientWordPool,
    QuestionNotInSession,
    SessionAlreadyCompleted,
    SessionNotFound,
    UserNotFound,
    ValidationError,
)
from vocab_practice.sessions import (
    DatabaseSessionStore,
    FallbackSessionStore,
    InMemorySessionStore,
    SessionStore,
)
from vocab_practice.structured import Question, UpdateWordRequest

POOL_SIZE = 10


@pytest.fixture(scope="function")
def temp_db() -> Generator[None, None, None]:
    """Setup transient SQLite DB for testing."""
    fd, path = tempfile.mkstemp()
    os.close(fd)
    db.engine = create_engine(f"sqlite:///{path}")
    db.SessionLocal = sessionmaker(bind=db.engine, expire_on_commit=False)
    db.Base.metadata.create_all(bind=db.engine)
    yield
    db.engine.dispose()
    os.unlink(path)


def _bank(size: int) -> List[Question]:
    return [
        Question(id=i, japanese_meaning=f"単語{i}", answers=[f"word{i}", f"alt{i}"], synonyms=[f"類語{i}"])
        for i in range(1, size + 1)
    ]


def _store_words(bank: List[Question]) -> None:
    with db.session_scope("test setup") as session:
        for q in bank:
            db.create_word_with_answers(session, q.japanese_meaning, q.answers, q.synonyms)


@pytest.fixture(params=["database", "memory"])
def backing(request: Any, temp_db: None) -> Tuple[SessionStore, str]:
    """A session store over a pool of POOL_SIZE words, plus a user id it accepts."""
    if request.param == "database":
        _store_words(_bank(POOL_SIZE))
        user = progress.find_or_create_user("tester")
        return DatabaseSessionStore(), user.id
    return InMemorySessionStore(words=_bank(POOL_SIZE)), "tester"


# ----------------------------------------------------------------------
# Contract shared by every backing
# ----------------------------------------------------------------------
def test_create_returns_distinct_snapshots(backing: Tuple[SessionStore, str]) -> None:
    store, user_id = backing
    created = store.create(user_id, 5)

    assert created.total_questions == 5
    assert created.backend == store.backend
    assert len(created.questions) == 5
    assert len({q.id for q in created.questions}) == 5
    for q in created.questions:
        assert q.japanese_meaning.startswith("単語")
        assert q.answers[0].startswith("word")


def test_whole_pool_can_be_drawn(backing: Tuple[SessionStore, str]) -> None:
    store, user_id = backing
    created = store.create(user_id, POOL_SIZE)
    assert len({q.id for q in created.questions}) == POOL_SIZE


def test_pool_smaller_than_request_is_rejected(backing: Tuple[SessionStore, str]) -> None:
    store, user_id = backing
    with pytest.raises(InsufficientWordPool) as excinfo:
        store.create(user_id, POOL_SIZE + 1)
    assert excinfo.value.required == POOL_SIZE + 1
    assert excinfo.value.available == POOL_SIZE
    assert excinfo.value.kind == "conflict"


@pytest.mark.parametrize("count", [0, 51, -1])
def test_question_count_out_of_range(backing: Tuple[SessionStore, str], count: int) -> None:
    store, user_id = backing
    with pytest.raises(ValidationError):
        store.create(user_id, count)


def test_answer_is_graded_and_counted(backing: Tuple[SessionStore, str]) -> None:
    store, user_id = backing
    created = store.create(user_id, 3)
    first = created.questions[0]

    result = store.submit_answer(created.session_id, first.id, f"  {first.answers[1].upper()} ")

    assert result.is_correct is True
    assert result.user_answer == first.answers[1].upper()
    assert result.correct_answers == first.answers
    assert result.synonyms == first.synonyms
    assert result.completed_questions == 1
    assert result.total_questions == 3
    assert result.is_completed is False


def test_wrong_answer_still_advances(backing: Tuple[SessionStore, str]) -> None:
    store, user_id = backing
    created = store.create(user_id, 2)

    result = store.submit_answer(created.session_id, created.questions[0].id, "nonsense")

    assert result.is_correct is False
    assert result.completed_questions == 1


def test_session_completes_on_last_answer(backing: Tuple[SessionStore, str]) -> None:
    store, user_id = backing
    created = store.create(user_id, 2)
    q1, q2 = created.questions

    assert store.submit_answer(created.session_id, q1.id, q1.answers[0]).is_completed is False
    last = store.submit_answer(created.session_id, q2.id, "wrong")
    assert last.is_completed is True
    assert last.completed_questions == 2

    detail = store.get(created.session_id)
    assert detail.is_completed is True
    assert detail.completed_questions == 2

    with pytest.raises(SessionAlreadyCompleted):
        store.submit_answer(created.session_id, q1.id, q1.answers[0])


def test_duplicate_answer_is_rejected_without_counting(backing: Tuple[SessionStore, str]) -> None:
    store, user_id = backing
    created = store.create(user_id, 3)
    q = created.questions[0]

    store.submit_answer(created.session_id, q.id, q.answers[0])
    with pytest.raises(DuplicateAnswer):
        store.submit_answer(created.session_id, q.id, q.answers[0])

    stats = store.get_stats(created.session_id)
    assert stats.completed_questions == 1
    assert stats.correct_answers == 1


def test_word_outside_session_is_rejected(backing: Tuple[SessionStore, str]) -> None:
    store, user_id = backing
    created = store.create(user_id, 2)
    with pytest.raises(QuestionNotInSession):
        store.submit_answer(created.session_id, 99999, "anything")
    assert store.get(created.session_id).completed_questions == 0


def test_unknown_session(backing: Tuple[SessionStore, str]) -> None:
    store, _ = backing
    with pytest.raises(SessionNotFound):
        store.submit_answer("no-such-session", 1, "run")
    with pytest.raises(SessionNotFound):
        store.get_stats("no-such-session")
    with pytest.raises(SessionNotFound):
        store.get("no-such-session")


def test_stats_accuracy(backing: Tuple[SessionStore, str]) -> None:
    store, user_id = backing
    created = store.create(user_id, 4)
    q1, q2, q3, _ = created.questions

    store.submit_answer(created.session_id, q1.id, q1.answers[0])
    store.submit_answer(created.session_id, q2.id, "wrong")
    store.submit_answer(created.session_id, q3.id, q3.answers[1])

    stats = store.get_stats(created.session_id)
    assert stats.correct_answers == 2
    assert stats.incorrect_answers == 1
    assert stats.accuracy == 0.67
    assert stats.is_completed is False
    assert stats.backend == store.backend


def test_fresh_session_stats_are_zero(backing: Tuple[SessionStore, str]) -> None:
    store, user_id = backing
    created = store.create(user_id, 1)
    stats = store.get_stats(created.session_id)
    assert stats.correct_answers == 0
    assert stats.incorrect_answers == 0
    assert stats.accuracy == 0.0


def test_get_keeps_question_order(backing: Tuple[SessionStore, str]) -> None:
    store, user_id = backing
    created = store.create(user_id, 6)
    detail = store.get(created.session_id)
    assert [q.id for q in detail.questions] == [q.id for q in created.questions]
    assert detail.user_id == user_id


# ----------------------------------------------------------------------
# Database backing
# ----------------------------------------------------------------------
def test_unknown_user_cannot_start_session(temp_db: None) -> None:
    _store_words(_bank(3))
    with pytest.raises(UserNotFound):
        DatabaseSessionStore().create("ghost", 1)


def test_deleted_words_are_not_drawn(temp_db: None) -> None:
    _store_words(_bank(3))
    user = progress.find_or_create_user("tester")
    doomed = words.search_words(search="単語2").words[0]
    words.delete_word(doomed.id)

    store = DatabaseSessionStore()
    with pytest.raises(InsufficientWordPool) as excinfo:
        store.create(user.id, 3)
    assert excinfo.value.available == 2

    created = store.create(user.id, 2)
    assert doomed.id not in {q.id for q in created.questions}


def test_session_grades_against_its_snapshot(temp_db: None) -> None:
    _store_words(_bank(1))
    user = progress.find_or_create_user("tester")
    store = DatabaseSessionStore()
    created = store.create(user.id, 1)
    question = created.questions[0]

    words.update_word(question.id, UpdateWordRequest(answers=["changed"]))

    result = store.submit_answer(created.session_id, question.id, question.answers[0])
    assert result.is_correct is True
    assert result.correct_answers == question.answers


def test_answer_is_written_to_history(temp_db: None) -> None:
    _store_words(_bank(2))
    user = progress.find_or_create_user("tester")
    store = DatabaseSessionStore()
    created = store.create(user.id, 2)
    q = created.questions[0]

    store.submit_answer(created.session_id, q.id, "  Wrong  ")

    session = db.get_session()
    rows = session.scalars(select(db.LearningHistory)).all()
    session.close()
    assert len(rows) == 1
    assert rows[0].user_id == user.id
    assert rows[0].word_id == q.id
    assert rows[0].is_correct is False
    assert rows[0].user_answer == "Wrong"


def test_database_store_concurrent_duplicates(temp_db: None) -> None:
    _store_words(_bank(5))
    user = progress.find_or_create_user("tester")
    store = DatabaseSessionStore()
    created = store.create(user.id, 3)
    q = created.questions[0]
    outcomes: List[str] = []
    barrier = threading.Barrier(8)

    def submit() -> None:
        barrier.wait()
        try:
            store.submit_answer(created.session_id, q.id, q.answers[0])
            outcomes.append("ok")
        except DuplicateAnswer:
            outcomes.append("duplicate")
        except Exception as e:
            outcomes.append(type(e).__name__)

    threads = [threading.Thread(target=submit) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["duplicate"] * 7 + ["ok"]
    assert store.get(created.session_id).completed_questions == 1

    session = db.get_session()
    rows = session.scalars(select(db.LearningHistory)).all()
    session.close()
    assert len(rows) == 1


# ----------------------------------------------------------------------
# In-memory backing
# ----------------------------------------------------------------------
def test_memory_store_concurrent_duplicates() -> None:
    store = InMemorySessionStore(words=_bank(5))
    created = store.create("tester", 3)
    q = created.questions[0]
    outcomes: List[str] = []

    def submit() -> None:
        try:
            store.submit_answer(created.session_id, q.id, q.answers[0])
            outcomes.append("ok")
        except DuplicateAnswer:
            outcomes.append("duplicate")

    threads = [threading.Thread(target=submit) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("duplicate") == 7
    assert store.get(created.session_id).completed_questions == 1


def test_memory_store_ids_and_ownership() -> None:
    store = InMemorySessionStore(words=_bank(3))
    created = store.create("tester", 1)
    assert created.session_id.startswith("session-")
    assert store.owns(created.session_id)
    assert not store.owns("session-unknown")


def test_memory_sessions_survive_bank_changes() -> None:
    bank = _bank(2)
    store = InMemorySessionStore(words=bank)
    created = store.create("tester", 2)
    bank.clear()
    q = created.questions[0]
    assert store.submit_answer(created.session_id, q.id, q.answers[0]).is_correct is True


# ----------------------------------------------------------------------
# Fallback decorator
# ----------------------------------------------------------------------
def _break_database(monkeypatch: Any) -> None:
    broken = create_engine("sqlite:////nonexistent/dir/vocab.db")
    monkeypatch.setattr(db, "SessionLocal", sessionmaker(bind=broken, expire_on_commit=False))


def test_fallback_uses_primary_when_healthy(temp_db: None) -> None:
    _store_words(_bank(3))
    user = progress.find_or_create_user("tester")
    store = FallbackSessionStore(DatabaseSessionStore(), InMemorySessionStore(words=_bank(3)))

    created = store.create(user.id, 2)
    assert created.backend == "database"
    q = created.questions[0]
    assert store.submit_answer(created.session_id, q.id, q.answers[0]).backend == "database"


def test_fallback_switches_on_outage(monkeypatch: Any) -> None:
    _break_database(monkeypatch)
    store = FallbackSessionStore(DatabaseSessionStore(), InMemorySessionStore(words=_bank(3)))

    created = store.create("offline-user", 2)
    assert created.backend == "memory"

    q = created.questions[0]
    result = store.submit_answer(created.session_id, q.id, q.answers[0])
    assert result.backend == "memory"
    assert result.is_correct is True
    assert store.get_stats(created.session_id).backend == "memory"


def test_fallback_does_not_mask_business_errors(temp_db: None) -> None:
    _store_words(_bank(3))
    store = FallbackSessionStore(DatabaseSessionStore(), InMemorySessionStore(words=_bank(3)))
    with pytest.raises(UserNotFound):
        store.create("ghost", 1)
    with pytest.raises(SessionNotFound):
        store.get("no-such-session")


def test_memory_session_stays_reachable_after_recovery(temp_db: None, monkeypatch: Any) -> None:
    healthy = db.SessionLocal
    _break_database(monkeypatch)
    store = FallbackSessionStore(DatabaseSessionStore(), InMemorySessionStore(words=_bank(3)))
    created = store.create("offline-user", 2)

    monkeypatch.setattr(db, "SessionLocal", healthy)
    q = created.questions[0]
    assert store.submit_answer(created.session_id, q.id, q.answers[0]).backend == "memory"

    _store_words(_bank(3))
    user = progress.find_or_create_user("tester")
    assert store.create(user.id, 1).backend == "database"
