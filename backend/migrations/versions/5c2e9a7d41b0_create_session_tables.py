"""create quiz, game_session, player and answer tables

Revision ID: 5c2e9a7d41b0
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a7d41b0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'quiz',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('creator_id', sa.String(length=128), nullable=True),
        sa.Column('time_per_question', sa.Integer(), nullable=True),
        sa.Column('questions', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'game_session',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('pin', sa.String(length=6), nullable=False),
        sa.Column('live_pin', sa.String(length=6), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('end_reason', sa.String(length=16), nullable=True),
        sa.Column('host_id', sa.String(length=128), nullable=False),
        sa.Column('game_id', sa.String(length=64), nullable=False),
        sa.Column('num_questions', sa.Integer(), nullable=False),
        sa.Column('current_question_index', sa.Integer(), nullable=False),
        sa.Column('question_phase', sa.String(length=16), nullable=True),
        sa.Column('question_started_at', sa.Float(), nullable=True),
        sa.Column('phase_deadline', sa.Float(), nullable=True),
        sa.Column('settings', sa.Text(), nullable=False),
        sa.Column('question_order', sa.Text(), nullable=True),
        sa.Column('answer_orders', sa.Text(), nullable=True),
        sa.Column('roster_count', sa.Integer(), nullable=False),
        sa.Column('answers_received', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['game_id'], ['quiz.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('live_pin'),
    )
    with op.batch_alter_table('game_session') as batch_op:
        batch_op.create_index(batch_op.f('ix_game_session_pin'), ['pin'], unique=False)

    op.create_table(
        'player',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('session_id', sa.String(length=32), nullable=False),
        sa.Column('display_name', sa.String(length=20), nullable=False),
        sa.Column('client_ref', sa.String(length=128), nullable=True),
        sa.Column('join_seq', sa.Integer(), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=True),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('score_reached_at', sa.Float(), nullable=True),
        sa.Column('final_rank', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['game_session.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'display_name', name='uq_player_name_per_session'),
        sa.UniqueConstraint('session_id', 'join_seq', name='uq_player_seq_per_session'),
        sa.UniqueConstraint('session_id', 'client_ref', name='uq_player_client_per_session'),
    )
    with op.batch_alter_table('player') as batch_op:
        batch_op.create_index(batch_op.f('ix_player_session_id'), ['session_id'], unique=False)

    op.create_table(
        'answer',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.String(length=32), nullable=False),
        sa.Column('player_id', sa.String(length=32), nullable=False),
        sa.Column('question_index', sa.Integer(), nullable=False),
        sa.Column('choice', sa.Text(), nullable=False),
        sa.Column('elapsed', sa.Float(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('submitted_at', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['player_id'], ['player.id']),
        sa.ForeignKeyConstraint(['session_id'], ['game_session.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'player_id', 'question_index', name='uq_answer_per_question'),
    )


def downgrade():
    op.drop_table('answer')
    with op.batch_alter_table('player') as batch_op:
        batch_op.drop_index(batch_op.f('ix_player_session_id'))
    op.drop_table('player')
    with op.batch_alter_table('game_session') as batch_op:
        batch_op.drop_index(batch_op.f('ix_game_session_pin'))
    op.drop_table('game_session')
    op.drop_table('quiz')
