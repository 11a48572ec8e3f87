"""
Users and their learning progress: login, per-user statistics and the
answer history listing.
"""
import datetime
import uuid
from collections import Counter
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, select

from . import db
from .errors import StoreUnavailable, UserNotFound, ValidationError
from .structured import UserInfo

MAX_DISPLAY_NAME_LENGTH = 50
MASTERY_MIN_ATTEMPTS = 3
MASTERY_MIN_ACCURACY = 0.8
STREAK_WINDOW_DAYS = 30
RECENT_ACTIVITY_DAYS = 7
MAX_HISTORY_PAGE = 100


def _utc_date(value: datetime.datetime) -> datetime.date:
    # SQLite hands back naive values; they were written as UTC
    if value.tzinfo is not None:
        value = value.astimezone(datetime.UTC)
    return value.date()


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 2)


def _iso(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def check_display_name(display_name: Any) -> str:
    if not isinstance(display_name, str):
        raise ValidationError("display_name must be a string", field="display_name")
    name = display_name.strip()
    if not name:
        raise ValidationError("display_name must not be empty", field="display_name")
    if len(name) > MAX_DISPLAY_NAME_LENGTH:
        raise ValidationError(
            f"display_name must be at most {MAX_DISPLAY_NAME_LENGTH} characters", field="display_name"
        )
    return name


def find_or_create_user(display_name: str) -> UserInfo:
    """Return the oldest user with this display name, creating one if none exists."""
    name = check_display_name(display_name)
    with db.session_scope("login") as session:
        user = session.scalars(
            select(db.User).where(db.User.display_name == name).order_by(db.User.created_at).limit(1)
        ).first()
        if user is None:
            user = db.User(display_name=name)
            session.add(user)
            session.flush()
            if db.DEBUG_MODE:
                print(f"✅ Created user {user.id} ({name})")
        return UserInfo(id=user.id, display_name=user.display_name, created_at=user.created_at)


def login(display_name: str) -> UserInfo:
    """Log in by display name.

    When the database is unreachable a local, unsaved identity is returned with
    ``offline=True``; sessions for it can only live in the in-memory store.
    """
    try:
        return find_or_create_user(display_name)
    except StoreUnavailable as e:
        print(f"⚠️ {e.message}; issuing an offline identity")
        return UserInfo(
            id=f"local-{uuid.uuid4().hex}",
            display_name=check_display_name(display_name),
            created_at=datetime.datetime.now(datetime.UTC),
            offline=True,
        )


def study_streak(study_days: List[datetime.date], today: datetime.date) -> int:
    """Count consecutive study days ending today, or yesterday when today has no answers yet.

    >>> d = datetime.date(2024, 5, 10)
    >>> study_streak([d, d - datetime.timedelta(days=1)], d)
    2
    >>> study_streak([d - datetime.timedelta(days=1)], d)
    1
    >>> study_streak([d - datetime.timedelta(days=2)], d)
    0
    """
    days = set(study_days)
    if today in days:
        current = today
    elif today - datetime.timedelta(days=1) in days:
        current = today - datetime.timedelta(days=1)
    else:
        return 0

    window_start = today - datetime.timedelta(days=STREAK_WINDOW_DAYS)
    streak = 0
    while current in days and current >= window_start:
        streak += 1
        current -= datetime.timedelta(days=1)
    return streak


def get_user_stats(user_id: str) -> Dict[str, Any]:
    """Aggregate a user's answers, sessions and per-word progress."""
    now = datetime.datetime.now(datetime.UTC)
    today = now.date()

    with db.session_scope("user stats") as session:
        user = db.find_user_by_id(session, user_id)
        if user is None:
            raise UserNotFound(user_id)

        per_word = session.execute(
            select(
                db.LearningHistory.word_id,
                func.count(db.LearningHistory.id),
                func.coalesce(func.sum(case((db.LearningHistory.is_correct.is_(True), 1), else_=0)), 0),
            )
            .where(db.LearningHistory.user_id == user_id)
            .group_by(db.LearningHistory.word_id)
        ).all()

        total_sessions, completed_sessions = session.execute(
            select(
                func.count(db.PracticeSession.id),
                func.coalesce(func.sum(case((db.PracticeSession.is_completed.is_(True), 1), else_=0)), 0),
            ).where(db.PracticeSession.user_id == user_id)
        ).one()

        answered_times = session.scalars(
            select(db.LearningHistory.answered_at)
            .where(db.LearningHistory.user_id == user_id)
            .order_by(db.LearningHistory.answered_at.desc())
        ).all()

        member_since = user.created_at
        display_name = user.display_name

    word_progress = []
    total_answers = correct_answers = mastered = 0
    for word_id, attempts, correct in per_word:
        attempts, correct = int(attempts), int(correct)
        total_answers += attempts
        correct_answers += correct
        if attempts >= MASTERY_MIN_ATTEMPTS and correct / attempts >= MASTERY_MIN_ACCURACY:
            mastered += 1
        word_progress.append({
            "word_id": word_id,
            "correct_count": correct,
            "incorrect_count": attempts - correct,
            "total_attempts": attempts,
            "accuracy_rate": _percent(correct, attempts),
        })
    word_progress.sort(key=lambda item: item["total_attempts"], reverse=True)

    days = [_utc_date(t) for t in answered_times]
    per_day = Counter(days)
    recent_days = sorted(per_day, reverse=True)[:RECENT_ACTIVITY_DAYS]

    return {
        "user": {
            "id": user_id,
            "display_name": display_name,
            "member_since": _iso(member_since),
        },
        "overview": {
            "total_answers": total_answers,
            "correct_answers": correct_answers,
            "accuracy_rate": _percent(correct_answers, total_answers),
            "studied_word_count": len(word_progress),
            "mastered_word_count": mastered,
            "total_sessions": int(total_sessions),
            "completed_sessions": int(completed_sessions),
            "session_completion_rate": _percent(int(completed_sessions), int(total_sessions)),
        },
        "activity": {
            "last_study_date": _iso(answered_times[0]) if answered_times else None,
            "today_answers": per_day.get(today, 0),
            "study_streak": study_streak(days, today),
        },
        "recent_activity": [{"date": day.isoformat(), "answers": per_day[day]} for day in recent_days],
        "word_progress": word_progress,
    }


def list_learning_history(user_id: str, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
    """Page through a user's graded answers, newest first."""
    if not user_id:
        raise ValidationError("user_id is required", field="user_id")
    if limit < 1 or limit > MAX_HISTORY_PAGE:
        raise ValidationError(f"limit must be between 1 and {MAX_HISTORY_PAGE}", field="limit")
    if offset < 0:
        raise ValidationError("offset must be 0 or greater", field="offset")

    with db.session_scope("learning history") as session:
        total = session.scalar(
            select(func.count(db.LearningHistory.id)).where(db.LearningHistory.user_id == user_id)
        ) or 0
        rows = session.execute(
            select(db.LearningHistory, db.Word.japanese_meaning)
            .join(db.Word, db.Word.id == db.LearningHistory.word_id)
            .where(db.LearningHistory.user_id == user_id)
            .order_by(db.LearningHistory.answered_at.desc(), db.LearningHistory.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        history = [
            {
                "id": entry.id,
                "session_id": entry.session_id,
                "word_id": entry.word_id,
                "japanese_meaning": meaning,
                "is_correct": entry.is_correct,
                "user_answer": entry.user_answer,
                "answered_at": _iso(entry.answered_at),
            }
            for entry, meaning in rows
        ]

    return {
        "history": history,
        "total_count": total,
        "limit": limit,
        "offset": offset,
        "has_more": offset + limit < total,
    }
