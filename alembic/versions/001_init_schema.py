# alembic/versions/001_init_schema.py
"""Initial schema

Revision ID: 001_init_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '001_init_schema'
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def _result_columns() -> list[sa.Column]:
    """Columns shared by current rows and their import snapshot."""
    return [
        sa.Column('member_id', sa.Integer(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=True),
        sa.Column('grid_position', sa.Integer(), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('num_laps', sa.Integer(), nullable=False),
        sa.Column('best_lap_time_ms', sa.Integer(), nullable=True),
        sa.Column('sector1_time_ms', sa.Integer(), nullable=True),
        sa.Column('sector2_time_ms', sa.Integer(), nullable=True),
        sa.Column('sector3_time_ms', sa.Integer(), nullable=True),
        sa.Column('total_race_time_ms', sa.Integer(), nullable=True),
        sa.Column('penalties', sa.Integer(), nullable=False),
        sa.Column('warnings', sa.Integer(), nullable=False),
        sa.Column('result_status', sa.String(length=20), nullable=False),
        sa.Column('dnf_reason', sa.String(length=200), nullable=True),
        sa.Column('fastest_lap', sa.Boolean(), nullable=False),
        sa.Column('pole_position', sa.Boolean(), nullable=False),
        sa.Column('sim_driver_name', sa.String(length=100), nullable=True),
        sa.Column('sim_car_number', sa.Integer(), nullable=True),
        sa.Column('sim_team_name', sa.String(length=100), nullable=True),
        sa.Column('network_id', sa.Integer(), nullable=True),
        sa.Column('steam_id', sa.String(length=100), nullable=True),
    ]


def upgrade() -> None:
    """Create all tables."""

    # Seasons
    op.create_table('seasons',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_seasons_year', 'seasons', ['year'])

    # Tracks
    op.create_table('tracks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('country', sa.String(length=100), nullable=True),
        sa.Column('length_km', sa.Float(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    # Races
    op.create_table('races',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('season_id', sa.Integer(), nullable=False),
        sa.Column('track_id', sa.Integer(), nullable=False),
        sa.Column('race_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['season_id'], ['seasons.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['track_id'], ['tracks.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_races_season_id', 'races', ['season_id'])
    op.create_index('ix_races_track_id', 'races', ['track_id'])
    op.create_index('ix_races_season_status', 'races', ['season_id', 'status'])

    # Members
    op.create_table('members',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('steam_id', sa.String(length=100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )

    # Driver mappings
    op.create_table('driver_mappings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('season_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('sim_driver_name', sa.String(length=100), nullable=True),
        sa.Column('sim_car_number', sa.Integer(), nullable=True),
        sa.Column('sim_team_name', sa.String(length=100), nullable=True),
        sa.Column('network_id', sa.Integer(), nullable=True),
        sa.Column('steam_id', sa.String(length=100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('valid_from', sa.DateTime(), nullable=True),
        sa.Column('valid_until', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['season_id'], ['seasons.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_driver_mappings_season_id', 'driver_mappings', ['season_id'])
    op.create_index('ix_driver_mappings_member_id', 'driver_mappings', ['member_id'])
    op.create_index('ix_mappings_season_active', 'driver_mappings', ['season_id', 'is_active'])
    op.create_index(
        'uq_mapping_season_network_active', 'driver_mappings', ['season_id', 'network_id'],
        unique=True,
        sqlite_where=sa.text('is_active = 1 AND network_id IS NOT NULL'),
        postgresql_where=sa.text('is_active AND network_id IS NOT NULL'),
    )
    op.create_index(
        'uq_mapping_season_steam_active', 'driver_mappings', ['season_id', 'steam_id'],
        unique=True,
        sqlite_where=sa.text('is_active = 1 AND steam_id IS NOT NULL'),
        postgresql_where=sa.text('is_active AND steam_id IS NOT NULL'),
    )

    # Session results
    op.create_table('session_results',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('race_id', sa.Integer(), nullable=False),
        sa.Column('session_type', sa.Integer(), nullable=False),
        sa.Column('session_name', sa.String(length=50), nullable=False),
        sa.Column('session_uid', sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['race_id'], ['races.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_session_results_race_id', 'session_results', ['race_id'])
    op.create_index('ix_session_results_session_uid', 'session_results', ['session_uid'])
    op.create_index('ix_session_results_race_type', 'session_results', ['race_id', 'session_type'])

    # Original (as imported) results
    op.create_table('original_session_results',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('session_result_id', sa.Integer(), nullable=False),
        *_result_columns(),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['session_result_id'], ['session_results.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_original_session_results_session_result_id', 'original_session_results', ['session_result_id'])
    op.create_index('ix_original_session_results_member_id', 'original_session_results', ['member_id'])

    # Current results
    op.create_table('driver_session_results',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('session_result_id', sa.Integer(), nullable=False),
        sa.Column('original_result_id', sa.Integer(), nullable=True),
        *_result_columns(),
        *_timestamps(),
        sa.ForeignKeyConstraint(['session_result_id'], ['session_results.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['original_result_id'], ['original_session_results.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_driver_session_results_session_result_id', 'driver_session_results', ['session_result_id'])
    op.create_index('ix_driver_session_results_member_id', 'driver_session_results', ['member_id'])
    op.create_index('ix_results_session_position', 'driver_session_results', ['session_result_id', 'position'])
    op.create_index('ix_results_session_member', 'driver_session_results', ['session_result_id', 'member_id'])

    # Post-race penalties
    op.create_table('driver_penalties',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('driver_session_result_id', sa.Integer(), nullable=False),
        sa.Column('seconds', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['driver_session_result_id'], ['driver_session_results.id'], ondelete='CASCADE'),
        sa.CheckConstraint('seconds > 0', name='ck_penalty_seconds_positive'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_driver_penalties_driver_session_result_id', 'driver_penalties', ['driver_session_result_id'])

    # Edit history (append-only)
    op.create_table('race_edit_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('session_result_id', sa.Integer(), nullable=False),
        sa.Column('driver_session_result_id', sa.Integer(), nullable=True),
        sa.Column('member_id', sa.Integer(), nullable=True),
        sa.Column('edit_type', sa.String(length=30), nullable=False),
        sa.Column('old_value', JSON_TYPE, nullable=True),
        sa.Column('new_value', JSON_TYPE, nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('edited_by', sa.String(length=100), nullable=True),
        sa.Column('reverts_edit_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['session_result_id'], ['session_results.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reverts_edit_id'], ['race_edit_history.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reverts_edit_id')
    )
    op.create_index('ix_race_edit_history_session_result_id', 'race_edit_history', ['session_result_id'])
    op.create_index('ix_race_edit_history_driver_session_result_id', 'race_edit_history', ['driver_session_result_id'])

    # Backups
    op.create_table('race_backups',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('session_result_id', sa.Integer(), nullable=False),
        sa.Column('backup_data', JSON_TYPE, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['session_result_id'], ['session_results.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_race_backups_session_result_id', 'race_backups', ['session_result_id'])

    # Orphaned sessions
    op.create_table('orphaned_sessions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('track_name', sa.String(length=200), nullable=False),
        sa.Column('session_type', sa.Integer(), nullable=False),
        sa.Column('session_data', JSON_TYPE, nullable=False),
        sa.Column('session_time', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('processed_race_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['processed_race_id'], ['races.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_orphaned_sessions_status', 'orphaned_sessions', ['status'])

    # Failed imports
    op.create_table('session_errors',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('error_message', sa.Text(), nullable=False),
        sa.Column('session_data', JSON_TYPE, nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('session_errors')
    op.drop_table('orphaned_sessions')
    op.drop_table('race_backups')
    op.drop_table('race_edit_history')
    op.drop_table('driver_penalties')
    op.drop_table('driver_session_results')
    op.drop_table('original_session_results')
    op.drop_table('session_results')
    op.drop_table('driver_mappings')
    op.drop_table('members')
    op.drop_table('races')
    op.drop_table('tracks')
    op.drop_table('seasons')
