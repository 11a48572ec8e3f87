"""create vocab practice schema

Revision ID: 3f9a1c7e2b40
Revises:
Create Date: 2026-10-18 09:12:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c7e2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, word bank, sessions and learning history tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('display_name', sa.String(length=50), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'words',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('japanese_meaning', sa.String(length=500), nullable=False),
        sa.Column('synonyms', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_words_active_meaning', 'words', ['japanese_meaning'], unique=True,
        sqlite_where=sa.text('is_active = 1'), postgresql_where=sa.text('is_active'),
    )

    op.create_table(
        'word_answers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('word_id', sa.Integer(), nullable=False),
        sa.Column('answer', sa.String(length=255), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['word_id'], ['words.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_word_answers_word_id', 'word_answers', ['word_id'])

    op.create_table(
        'practice_sessions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('total_questions', sa.Integer(), nullable=False),
        sa.Column('completed_questions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_practice_sessions_user_id', 'practice_sessions', ['user_id'])

    op.create_table(
        'session_questions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.String(length=36), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('word_id', sa.Integer(), nullable=False),
        sa.Column('japanese_meaning', sa.String(length=500), nullable=False),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('synonyms', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['practice_sessions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'word_id', name='uq_session_questions_session_word'),
    )
    op.create_index('ix_session_questions_session_id', 'session_questions', ['session_id'])

    op.create_table(
        'learning_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('word_id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.String(length=36), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('user_answer', sa.Text(), nullable=True),
        sa.Column('answered_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['word_id'], ['words.id']),
        sa.ForeignKeyConstraint(['session_id'], ['practice_sessions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'word_id', name='uq_learning_history_session_word'),
    )
    op.create_index('ix_learning_history_user_id', 'learning_history', ['user_id'])


def downgrade() -> None:
    """Drop every vocab practice table."""
    op.drop_index('ix_learning_history_user_id', table_name='learning_history')
    op.drop_table('learning_history')
    op.drop_index('ix_session_questions_session_id', table_name='session_questions')
    op.drop_table('session_questions')
    op.drop_index('ix_practice_sessions_user_id', table_name='practice_sessions')
    op.drop_table('practice_sessions')
    op.drop_index('ix_word_answers_word_id', table_name='word_answers')
    op.drop_table('word_answers')
    op.drop_index('ix_words_active_meaning', table_name='words')
    op.drop_table('words')
    op.drop_table('users')
