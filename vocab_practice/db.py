from __future__ import annotations
from sqlalchemy import create_engine, ForeignKey, Index, Integer, String, DateTime, Text, Boolean, JSON, UniqueConstraint, func, select, text, delete
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session, Mapped, mapped_column
from contextlib import contextmanager
import datetime
import os
import uuid
from typing import Optional, List, Dict, Iterator, Sequence, Tuple

from .errors import InsufficientWordPool, StoreUnavailable

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"


class Base(DeclarativeBase):
    pass
DB_PATH: str = os.environ.get("VOCAB_DB", "vocab_practice.db")
DB_URL: str = os.environ.get("VOCAB_DB_URL", f"sqlite:///{DB_PATH}")
engine = create_engine(DB_URL)
# Prevent attribute expiration on commit so returned objects remain accessible
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    display_name: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: datetime.datetime.now(datetime.UTC))


class Word(Base):
    __tablename__ = "words"
    __table_args__ = (
        # Meanings are unique among active words only; soft-deleted rows may repeat them
        Index(
            "ix_words_active_meaning", "japanese_meaning", unique=True,
            sqlite_where=text("is_active = 1"), postgresql_where=text("is_active"),
        ),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    japanese_meaning: Mapped[str] = mapped_column(String(500), nullable=False)
    synonyms: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    deleted_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: datetime.datetime.now(datetime.UTC))
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: datetime.datetime.now(datetime.UTC), onupdate=lambda: datetime.datetime.now(datetime.UTC))


class WordAnswer(Base):
    __tablename__ = "word_answers"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    word_id: Mapped[int] = mapped_column(ForeignKey("words.id"), nullable=False, index=True)
    answer: Mapped[str] = mapped_column(String(255), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class PracticeSession(Base):
    __tablename__ = "practice_sessions"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: datetime.datetime.now(datetime.UTC))
    completed_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)


class SessionQuestion(Base):
    """Snapshot of a word as it was when the session was created."""
    __tablename__ = "session_questions"
    __table_args__ = (UniqueConstraint("session_id", "word_id", name="uq_session_questions_session_word"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_id: Mapped[str] = mapped_column(ForeignKey("practice_sessions.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    word_id: Mapped[int] = mapped_column(Integer, nullable=False)
    japanese_meaning: Mapped[str] = mapped_column(String(500), nullable=False)
    answers: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    synonyms: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)


class LearningHistory(Base):
    __tablename__ = "learning_history"
    # At most one graded answer per question per session
    __table_args__ = (UniqueConstraint("session_id", "word_id", name="uq_learning_history_session_word"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    word_id: Mapped[int] = mapped_column(ForeignKey("words.id"), nullable=False)
    session_id: Mapped[str] = mapped_column(ForeignKey("practice_sessions.id"), nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    user_answer: Mapped[Optional[str]] = mapped_column(Text)
    answered_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: datetime.datetime.now(datetime.UTC))


def is_db_initialized() -> bool:
    """Check if the database is already initialized by checking if tables exist."""
    from sqlalchemy import inspect
    inspector = inspect(engine)
    table_names = inspector.get_table_names()

    required_tables = {'users', 'words', 'word_answers', 'practice_sessions', 'session_questions', 'learning_history'}
    return required_tables.issubset(set(table_names))


def init_db() -> None:
    """Initialize the database by creating all tables."""
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    return SessionLocal()


@contextmanager
def session_scope(operation: str) -> Iterator[Session]:
    """Yield a session that commits on success, rolls back on any error and always closes.

    Lost or refused connections (``OperationalError`` / ``InterfaceError``) are
    re-raised as ``StoreUnavailable`` so callers can tell infrastructure
    failures apart from business errors.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except (OperationalError, InterfaceError) as e:
        session.rollback()
        if DEBUG_MODE:
            print(f"❌ Database failure during {operation}: {e}")
        raise StoreUnavailable(operation, str(e.orig) if e.orig is not None else str(e)) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "Base", "User", "Word", "WordAnswer", "PracticeSession", "SessionQuestion", "LearningHistory",
    "get_session", "session_scope", "init_db", "is_db_initialized",
    "count_active_words", "sample_random_words", "find_answers_for_word_ids",
    "find_word_by_id", "find_word_by_exact_meaning", "find_user_by_id",
    "create_word_with_answers", "replace_word_answers", "seed_words",
]


# ----------------------------------------------------------------------
# Word repository
# ----------------------------------------------------------------------
def count_active_words(session: Session) -> int:
    return session.scalar(select(func.count(Word.id)).where(Word.is_active.is_(True))) or 0


def sample_random_words(session: Session, count: int, strict: bool = True) -> List[Word]:
    """Pick ``count`` distinct active words uniformly at random.

    With ``strict`` (the default) a pool smaller than ``count`` raises
    ``InsufficientWordPool`` instead of returning a short list.
    """
    words = list(
        session.scalars(
            select(Word).where(Word.is_active.is_(True)).order_by(func.random()).limit(count)
        )
    )
    if strict and len(words) < count:
        raise InsufficientWordPool(count, len(words))
    return words


def find_answers_for_word_ids(session: Session, word_ids: Sequence[int]) -> Dict[int, List[WordAnswer]]:
    """Map each word id to its answers, primary answer first."""
    grouped: Dict[int, List[WordAnswer]] = {word_id: [] for word_id in word_ids}
    if not word_ids:
        return grouped
    rows = session.scalars(
        select(WordAnswer)
        .where(WordAnswer.word_id.in_(word_ids))
        .order_by(WordAnswer.is_primary.desc(), WordAnswer.id)
    )
    for row in rows:
        grouped[row.word_id].append(row)
    return grouped


def find_word_by_id(session: Session, word_id: int) -> Optional[Word]:
    return session.get(Word, word_id)


def find_word_by_exact_meaning(session: Session, meaning: str, active_only: bool = True,
                               exclude_id: Optional[int] = None) -> Optional[Word]:
    query = select(Word).where(Word.japanese_meaning == meaning)
    if active_only:
        query = query.where(Word.is_active.is_(True))
    if exclude_id is not None:
        query = query.where(Word.id != exclude_id)
    return session.scalars(query.limit(1)).first()


def find_user_by_id(session: Session, user_id: str) -> Optional[User]:
    return session.get(User, user_id)


def _build_answers(word_id: int, answers: Sequence[str]) -> List[WordAnswer]:
    # The first supplied answer is the primary one
    return [
        WordAnswer(word_id=word_id, answer=answer, is_primary=(index == 0))
        for index, answer in enumerate(answers)
    ]


def create_word_with_answers(session: Session, japanese_meaning: str, answers: Sequence[str],
                             synonyms: Optional[Sequence[str]] = None) -> Tuple[Word, List[WordAnswer]]:
    """Add a word and its answers to ``session`` and flush; the caller commits."""
    word = Word(japanese_meaning=japanese_meaning, synonyms=list(synonyms or []))
    session.add(word)
    session.flush()  # Get the ID

    rows = _build_answers(word.id, answers)
    session.add_all(rows)
    session.flush()
    return word, rows


def replace_word_answers(session: Session, word_id: int, answers: Sequence[str]) -> List[WordAnswer]:
    session.execute(delete(WordAnswer).where(WordAnswer.word_id == word_id))
    rows = _build_answers(word_id, answers)
    session.add_all(rows)
    session.flush()
    return rows


def seed_words() -> int:
    """Load the built-in word bank, skipping meanings that already exist.
    Returns the number of newly created words."""
    from .mock_data import MOCK_WORDS

    created = 0
    with session_scope("seed words") as session:
        for question in MOCK_WORDS:
            if find_word_by_exact_meaning(session, question.japanese_meaning) is not None:
                continue
            create_word_with_answers(session, question.japanese_meaning, question.answers, question.synonyms)
            created += 1
    print(f"✅ Seeded {created} words")
    return created
