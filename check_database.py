#!/usr/bin/env python3
"""
Script to examine the contents of the vocab practice database:
the word bank, users, sessions and recorded answers.
"""

import sys
import os

from sqlalchemy import func, select

# Add the current directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from vocab_practice import db

def check_database_contents() -> None:
    """Print a summary of what is stored."""
    print("🔍 Examining Vocab Practice Database Contents")
    print("=" * 60)

    session = db.get_session()

    try:
        # Word bank
        active = db.count_active_words(session)
        deleted = session.scalar(select(func.count(db.Word.id)).where(db.Word.is_active.is_(False))) or 0
        print(f"\n📚 WORDS ({active} active, {deleted} deleted):")
        recent = session.scalars(
            select(db.Word).where(db.Word.is_active.is_(True)).order_by(db.Word.id.desc()).limit(10)
        ).all()
        answers = db.find_answers_for_word_ids(session, [w.id for w in recent])
        for i, word in enumerate(recent, 1):
            accepted = ", ".join(a.answer for a in answers[word.id]) or "N/A"
            print(f"  {i:2d}. {word.japanese_meaning} | Answers: {accepted} | Synonyms: {', '.join(word.synonyms) or 'N/A'}")
        if active > 10:
            print(f"     ... and {active - 10} more words")

        # Users and sessions
        users = session.scalar(select(func.count(db.User.id))) or 0
        total_sessions = session.scalar(select(func.count(db.PracticeSession.id))) or 0
        completed = session.scalar(
            select(func.count(db.PracticeSession.id)).where(db.PracticeSession.is_completed.is_(True))
        ) or 0
        answered = session.scalar(select(func.count(db.LearningHistory.id))) or 0
        correct = session.scalar(
            select(func.count(db.LearningHistory.id)).where(db.LearningHistory.is_correct.is_(True))
        ) or 0

        print(f"\n📊 SUMMARY:")
        print(f"     Users: {users}")
        print(f"     Sessions: {total_sessions} ({completed} completed)")
        print(f"     Answers: {answered} ({correct} correct)")

        print(f"\n🕒 MOST RECENT SESSIONS:")
        for practice in session.scalars(
            select(db.PracticeSession).order_by(db.PracticeSession.created_at.desc()).limit(5)
        ):
            state = "done" if practice.is_completed else "open"
            print(f"     - {practice.id} | {practice.completed_questions}/{practice.total_questions} | {state}")

    except Exception as e:
        print(f"❌ Error examining database: {e}")
    finally:
        session.close()

if __name__ == "__main__":
    # Check if database exists
    if db.DB_URL.startswith("sqlite:///") and not os.path.exists(db.DB_PATH):
        print(f"❌ Database file '{db.DB_PATH}' not found!")
        print("   Make sure you're running this from the correct directory.")
        sys.exit(1)

    check_database_contents()
