"""create game_session and session_player

Revision ID: 5c2e9a71b0d4
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a71b0d4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'game_session',
        sa.Column('id', sa.String(length=8), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_by', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.Column('is_tournament', sa.Boolean(), nullable=False),
        sa.Column('game_id', sa.String(length=64), nullable=False),
        sa.Column('game_state', sa.Text(), nullable=True),
        sa.Column('tournament_results', sa.Text(), nullable=True),
        sa.Column('player_matches', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'session_player',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.String(length=8), nullable=False),
        sa.Column('player_id', sa.String(length=128), nullable=False),
        sa.Column('display_name', sa.String(length=64), nullable=False),
        sa.Column('is_host', sa.Boolean(), nullable=False),
        sa.Column('joined_at', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['game_session.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'player_id', name='uq_session_player'),
    )
    with op.batch_alter_table('session_player') as batch_op:
        batch_op.create_index('ix_session_player_session_id', ['session_id'], unique=False)


def downgrade():
    with op.batch_alter_table('session_player') as batch_op:
        batch_op.drop_index('ix_session_player_session_id')
    op.drop_table('session_player')
    op.drop_table('game_session')
