"""
Practice session lifecycle.

A session is a fixed list of question snapshots. Each question can be
answered once; the session completes when every question has been answered.

Three stores share the ``SessionStore`` contract:

  DatabaseSessionStore: durable and safe across processes (SQLAlchemy)
  InMemorySessionStore: process-local, state is lost on restart
  FallbackSessionStore: tries a primary store and retries a single call on
                        the secondary store when the primary is unreachable
"""
import abc
import datetime
import random
import threading
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError

from . import db, grading
from .errors import (
    DuplicateAnswer,
    InsufficientWordPool,
    QuestionNotInSession,
    SessionAlreadyCompleted,
    SessionNotFound,
    StoreUnavailable,
    UserNotFound,
    ValidationError,
)
from .structured import (
    AnswerResult,
    CreateSessionResult,
    Question,
    SessionDetail,
    SessionStats,
    accuracy_ratio,
)

MIN_QUESTIONS = 1
MAX_QUESTIONS = 50

T = TypeVar("T")


def check_question_count(total_questions: Any) -> int:
    if isinstance(total_questions, bool) or not isinstance(total_questions, int):
        raise ValidationError("total_questions must be an integer", field="total_questions")
    if not MIN_QUESTIONS <= total_questions <= MAX_QUESTIONS:
        raise ValidationError(
            f"total_questions must be between {MIN_QUESTIONS} and {MAX_QUESTIONS}",
            field="total_questions",
        )
    return total_questions


class SessionStore(abc.ABC):
    """Contract shared by every session backing."""

    backend: str = ""

    @abc.abstractmethod
    def create(self, user_id: str, total_questions: int) -> CreateSessionResult:
        """Start a session of ``total_questions`` randomly chosen active words."""

    @abc.abstractmethod
    def submit_answer(self, session_id: str, word_id: int, user_answer: str) -> AnswerResult:
        """Grade one answer, record it and advance the session."""

    @abc.abstractmethod
    def get_stats(self, session_id: str) -> SessionStats:
        """Aggregate correct/incorrect counts for a session."""

    @abc.abstractmethod
    def get(self, session_id: str) -> SessionDetail:
        """Return the session with its question snapshots."""

    def owns(self, session_id: str) -> bool:
        """Whether this store is known to hold ``session_id`` without asking anything remote."""
        return False


# ----------------------------------------------------------------------
# Durable store
# ----------------------------------------------------------------------
class DatabaseSessionStore(SessionStore):
    backend = "database"

    def create(self, user_id: str, total_questions: int) -> CreateSessionResult:
        check_question_count(total_questions)
        with db.session_scope("create session") as session:
            if db.find_user_by_id(session, user_id) is None:
                raise UserNotFound(user_id)

            available = db.count_active_words(session)
            if available < total_questions:
                raise InsufficientWordPool(total_questions, available)

            # The pool may have shrunk since the count; a short sample raises too
            words = db.sample_random_words(session, total_questions)
            answers = db.find_answers_for_word_ids(session, [w.id for w in words])

            practice = db.PracticeSession(user_id=user_id, total_questions=total_questions)
            session.add(practice)
            session.flush()

            questions: List[Question] = []
            for position, word in enumerate(words):
                question = Question(
                    id=word.id,
                    japanese_meaning=word.japanese_meaning,
                    answers=[a.answer for a in answers.get(word.id, [])],
                    synonyms=list(word.synonyms or []),
                )
                session.add(db.SessionQuestion(
                    session_id=practice.id,
                    position=position,
                    word_id=question.id,
                    japanese_meaning=question.japanese_meaning,
                    answers=list(question.answers),
                    synonyms=list(question.synonyms),
                ))
                questions.append(question)
            session_id = practice.id

        if db.DEBUG_MODE:
            print(f"🎯 Created session {session_id} with {total_questions} questions for user {user_id}")
        return CreateSessionResult(
            session_id=session_id,
            total_questions=total_questions,
            questions=questions,
            backend=self.backend,
        )

    def submit_answer(self, session_id: str, word_id: int, user_answer: str) -> AnswerResult:
        try:
            with db.session_scope("submit answer") as session:
                practice = session.get(db.PracticeSession, session_id)
                if practice is None:
                    raise SessionNotFound(session_id)
                if practice.is_completed:
                    raise SessionAlreadyCompleted(session_id)

                question = session.scalars(
                    select(db.SessionQuestion).where(
                        db.SessionQuestion.session_id == session_id,
                        db.SessionQuestion.word_id == word_id,
                    )
                ).first()
                if question is None:
                    raise QuestionNotInSession(session_id, word_id)

                already_answered = session.scalar(
                    select(func.count(db.LearningHistory.id)).where(
                        db.LearningHistory.session_id == session_id,
                        db.LearningHistory.word_id == word_id,
                    )
                )
                if already_answered:
                    raise DuplicateAnswer(session_id, word_id)

                trimmed = user_answer.strip()
                correct = grading.is_correct(question.answers, user_answer)
                session.add(db.LearningHistory(
                    user_id=practice.user_id,
                    word_id=word_id,
                    session_id=session_id,
                    is_correct=correct,
                    user_answer=trimmed,
                ))
                # A concurrent submission for the same question trips the unique constraint here
                session.flush()

                bumped = session.execute(
                    update(db.PracticeSession)
                    .where(
                        db.PracticeSession.id == session_id,
                        db.PracticeSession.is_completed.is_(False),
                        db.PracticeSession.completed_questions < db.PracticeSession.total_questions,
                    )
                    .values(completed_questions=db.PracticeSession.completed_questions + 1)
                    .execution_options(synchronize_session=False)
                )
                if bumped.rowcount == 0:
                    raise SessionAlreadyCompleted(session_id)

                completed, total = session.execute(
                    select(db.PracticeSession.completed_questions, db.PracticeSession.total_questions)
                    .where(db.PracticeSession.id == session_id)
                ).one()
                finished = completed >= total
                if finished:
                    session.execute(
                        update(db.PracticeSession)
                        .where(db.PracticeSession.id == session_id)
                        .values(is_completed=True, completed_at=datetime.datetime.now(datetime.UTC))
                        .execution_options(synchronize_session=False)
                    )
                correct_answers = list(question.answers)
                synonyms = list(question.synonyms)
        except IntegrityError as e:
            raise DuplicateAnswer(session_id, word_id) from e

        return AnswerResult(
            is_correct=correct,
            correct_answers=correct_answers,
            user_answer=trimmed,
            synonyms=synonyms,
            completed_questions=completed,
            total_questions=total,
            is_completed=finished,
            backend=self.backend,
        )

    def get_stats(self, session_id: str) -> SessionStats:
        with db.session_scope("session stats") as session:
            practice = session.get(db.PracticeSession, session_id)
            if practice is None:
                raise SessionNotFound(session_id)
            answered, correct = session.execute(
                select(
                    func.count(db.LearningHistory.id),
                    func.coalesce(func.sum(case((db.LearningHistory.is_correct.is_(True), 1), else_=0)), 0),
                ).where(db.LearningHistory.session_id == session_id)
            ).one()

        return SessionStats(
            session_id=practice.id,
            total_questions=practice.total_questions,
            completed_questions=practice.completed_questions,
            correct_answers=int(correct),
            incorrect_answers=int(answered) - int(correct),
            accuracy=accuracy_ratio(int(correct), int(answered)),
            is_completed=practice.is_completed,
            backend=self.backend,
        )

    def get(self, session_id: str) -> SessionDetail:
        with db.session_scope("load session") as session:
            practice = session.get(db.PracticeSession, session_id)
            if practice is None:
                raise SessionNotFound(session_id)
            rows = session.scalars(
                select(db.SessionQuestion)
                .where(db.SessionQuestion.session_id == session_id)
                .order_by(db.SessionQuestion.position)
            ).all()
            questions = [
                Question(id=r.word_id, japanese_meaning=r.japanese_meaning,
                         answers=list(r.answers), synonyms=list(r.synonyms))
                for r in rows
            ]

        return SessionDetail(
            session_id=practice.id,
            user_id=practice.user_id,
            total_questions=practice.total_questions,
            completed_questions=practice.completed_questions,
            is_completed=practice.is_completed,
            questions=questions,
            backend=self.backend,
        )


# ----------------------------------------------------------------------
# Volatile store
# ----------------------------------------------------------------------
@dataclass
class _RecordedAnswer:
    user_answer: str
    is_correct: bool
    answered_at: datetime.datetime


@dataclass
class _MemorySession:
    id: str
    user_id: str
    questions: List[Question]
    total_questions: int
    completed_questions: int = 0
    answers: Dict[int, _RecordedAnswer] = field(default_factory=dict)
    is_completed: bool = False
    created_at: datetime.datetime = field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    completed_at: Optional[datetime.datetime] = None

    def find_question(self, word_id: int) -> Optional[Question]:
        for question in self.questions:
            if question.id == word_id:
                return question
        return None


class InMemorySessionStore(SessionStore):
    """Sessions kept in a dict guarded by a lock.

    Not crash-safe: everything is lost when the process exits. Words are drawn
    from the injected bank (the built-in one by default); users are not checked.
    """

    backend = "memory"

    def __init__(self, words: Optional[Sequence[Question]] = None, rng: Optional[random.Random] = None) -> None:
        if words is None:
            from .mock_data import MOCK_WORDS
            words = MOCK_WORDS
        self._words: List[Question] = list(words)
        self._sessions: Dict[str, _MemorySession] = {}
        self._lock = threading.Lock()
        self._random = rng or random.Random()

    def owns(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def _require(self, session_id: str) -> _MemorySession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def create(self, user_id: str, total_questions: int) -> CreateSessionResult:
        check_question_count(total_questions)
        with self._lock:
            if len(self._words) < total_questions:
                raise InsufficientWordPool(total_questions, len(self._words))
            # Copies, so later changes to the bank never reach a running session
            questions = [
                replace(q, answers=list(q.answers), synonyms=list(q.synonyms))
                for q in self._random.sample(self._words, total_questions)
            ]
            session_id = f"session-{uuid.uuid4().hex}"
            self._sessions[session_id] = _MemorySession(
                id=session_id,
                user_id=user_id,
                questions=questions,
                total_questions=total_questions,
            )
        return CreateSessionResult(
            session_id=session_id,
            total_questions=total_questions,
            questions=list(questions),
            backend=self.backend,
        )

    def submit_answer(self, session_id: str, word_id: int, user_answer: str) -> AnswerResult:
        with self._lock:
            session = self._require(session_id)
            if session.is_completed:
                raise SessionAlreadyCompleted(session_id)
            question = session.find_question(word_id)
            if question is None:
                raise QuestionNotInSession(session_id, word_id)
            if word_id in session.answers:
                raise DuplicateAnswer(session_id, word_id)

            trimmed = user_answer.strip()
            correct = grading.is_correct(question.answers, user_answer)
            now = datetime.datetime.now(datetime.UTC)
            session.answers[word_id] = _RecordedAnswer(trimmed, correct, now)
            session.completed_questions += 1
            if session.completed_questions >= session.total_questions:
                session.is_completed = True
                session.completed_at = now

            return AnswerResult(
                is_correct=correct,
                correct_answers=list(question.answers),
                user_answer=trimmed,
                synonyms=list(question.synonyms),
                completed_questions=session.completed_questions,
                total_questions=session.total_questions,
                is_completed=session.is_completed,
                backend=self.backend,
            )

    def get_stats(self, session_id: str) -> SessionStats:
        with self._lock:
            session = self._require(session_id)
            correct = sum(1 for a in session.answers.values() if a.is_correct)
            answered = len(session.answers)
            return SessionStats(
                session_id=session.id,
                total_questions=session.total_questions,
                completed_questions=session.completed_questions,
                correct_answers=correct,
                incorrect_answers=answered - correct,
                accuracy=accuracy_ratio(correct, answered),
                is_completed=session.is_completed,
                backend=self.backend,
            )

    def get(self, session_id: str) -> SessionDetail:
        with self._lock:
            session = self._require(session_id)
            return SessionDetail(
                session_id=session.id,
                user_id=session.user_id,
                total_questions=session.total_questions,
                completed_questions=session.completed_questions,
                is_completed=session.is_completed,
                questions=list(session.questions),
                backend=self.backend,
            )


# ----------------------------------------------------------------------
# Fallback decorator
# ----------------------------------------------------------------------
class FallbackSessionStore(SessionStore):
    """Route each call to ``primary``, retrying it on ``secondary`` if the primary is unreachable.

    The decision is made per call: an outage does not pin later calls to the
    secondary. Sessions the secondary already holds are served by it directly,
    so sessions started during an outage stay answerable afterwards.
    Results report the store that produced them in ``backend``.
    """

    def __init__(self, primary: SessionStore, secondary: SessionStore) -> None:
        self.primary = primary
        self.secondary = secondary

    @property
    def backend(self) -> str:  # type: ignore[override]
        return self.primary.backend

    def owns(self, session_id: str) -> bool:
        return self.primary.owns(session_id) or self.secondary.owns(session_id)

    def _call(self, operation: str, session_id: Optional[str], call: Callable[[SessionStore], T]) -> T:
        if session_id is not None and self.secondary.owns(session_id):
            return call(self.secondary)
        try:
            return call(self.primary)
        except StoreUnavailable as e:
            print(f"⚠️ {e.message}; using {self.secondary.backend} store for {operation}")
            return call(self.secondary)

    def create(self, user_id: str, total_questions: int) -> CreateSessionResult:
        return self._call("create", None, lambda store: store.create(user_id, total_questions))

    def submit_answer(self, session_id: str, word_id: int, user_answer: str) -> AnswerResult:
        return self._call("submit_answer", session_id,
                          lambda store: store.submit_answer(session_id, word_id, user_answer))

    def get_stats(self, session_id: str) -> SessionStats:
        return self._call("get_stats", session_id, lambda store: store.get_stats(session_id))

    def get(self, session_id: str) -> SessionDetail:
        return self._call("get", session_id, lambda store: store.get(session_id))


def create_default_store() -> FallbackSessionStore:
    """Database-backed store with the built-in word bank as in-memory fallback."""
    return FallbackSessionStore(DatabaseSessionStore(), InMemorySessionStore())
