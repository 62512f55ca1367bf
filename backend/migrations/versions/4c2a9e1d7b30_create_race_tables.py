"""create race, race_participant and text_passage tables

Revision ID: 4c2a9e1d7b30
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e1d7b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'text_passage' not in existing_tables:
        op.create_table(
            'text_passage',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('content', sa.Text(), nullable=False),
            sa.Column('difficulty', sa.String(length=32), nullable=False),
            sa.Column('length', sa.Integer(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_text_passage_difficulty', 'text_passage', ['difficulty'])

    if 'race' not in existing_tables:
        op.create_table(
            'race',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('text_passage', sa.Text(), nullable=False),
            sa.Column('max_players', sa.Integer(), nullable=False),
            sa.Column('difficulty', sa.String(length=32), nullable=False),
            sa.Column('time_limit', sa.Integer(), nullable=False),
            sa.Column('status', sa.String(length=16), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('started_at', sa.DateTime(), nullable=True),
            sa.Column('finished_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_race_status', 'race', ['status'])

    if 'race_participant' not in existing_tables:
        op.create_table(
            'race_participant',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('race_id', sa.Integer(), nullable=False),
            sa.Column('player_id', sa.String(length=32), nullable=False),
            sa.Column('player_name', sa.String(length=64), nullable=False),
            sa.Column('progress', sa.Integer(), nullable=False),
            sa.Column('wpm', sa.Integer(), nullable=False),
            sa.Column('accuracy', sa.Integer(), nullable=False),
            sa.Column('errors', sa.Integer(), nullable=False),
            sa.Column('finished', sa.Boolean(), nullable=False),
            sa.Column('finished_at', sa.DateTime(), nullable=True),
            sa.Column('rank', sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(['race_id'], ['race.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('race_id', 'player_id', name='uq_race_participant_player'),
        )
        op.create_index('ix_race_participant_race_id', 'race_participant', ['race_id'])


def downgrade():
    op.drop_index('ix_race_participant_race_id', table_name='race_participant')
    op.drop_table('race_participant')
    op.drop_index('ix_race_status', table_name='race')
    op.drop_table('race')
    op.drop_index('ix_text_passage_difficulty', table_name='text_passage')
    op.drop_table('text_passage')
