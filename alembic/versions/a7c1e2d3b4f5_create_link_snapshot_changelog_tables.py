"""create_link_snapshot_changelog_tables

Revision ID: a7c1e2d3b4f5
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a7c1e2d3b4f5'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('project_links',
    sa.Column('id', sa.String(length=64), nullable=False),
    sa.Column('source_container_id', sa.String(length=128), nullable=False),
    sa.Column('source_container_name', sa.Text(), nullable=False),
    sa.Column('target_container_id', sa.String(length=128), nullable=False),
    sa.Column('target_container_name', sa.Text(), nullable=False),
    sa.Column('target_section_id', sa.String(length=128), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('source_container_id', 'target_container_id', name='uq_project_links_containers'),
    schema='tasklink'
    )
    op.create_table('task_links',
    sa.Column('id', sa.String(length=64), nullable=False),
    sa.Column('project_id', sa.String(length=64), nullable=False),
    sa.Column('source_id', sa.String(length=128), nullable=True),
    sa.Column('source_name', sa.Text(), nullable=True),
    sa.Column('target_id', sa.String(length=128), nullable=True),
    sa.Column('target_name', sa.Text(), nullable=True),
    sa.Column('match_method', sa.String(length=16), nullable=True),
    sa.Column('match_confidence', sa.Float(), nullable=True),
    sa.Column('sync_status', sa.String(length=16), nullable=False),
    sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['project_id'], ['tasklink.project_links.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('source_id'),
    sa.UniqueConstraint('target_id'),
    schema='tasklink'
    )
    op.create_index(op.f('ix_tasklink_task_links_project_id'), 'task_links', ['project_id'], unique=False, schema='tasklink')
    op.create_table('task_snapshots',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('task_link_id', sa.String(length=64), nullable=False),
    sa.Column('source_name', sa.Text(), nullable=True),
    sa.Column('source_description', sa.Text(), nullable=False),
    sa.Column('source_state', sa.Text(), nullable=True),
    sa.Column('source_modified_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('source_comments_count', sa.Integer(), nullable=True),
    sa.Column('target_name', sa.Text(), nullable=True),
    sa.Column('target_description', sa.Text(), nullable=False),
    sa.Column('target_completed', sa.Boolean(), nullable=True),
    sa.Column('target_modified_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('target_comments_count', sa.Integer(), nullable=True),
    sa.Column('taken_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['task_link_id'], ['tasklink.task_links.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('task_link_id'),
    schema='tasklink'
    )
    op.create_table('change_log',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('project_id', sa.String(length=64), nullable=False),
    sa.Column('task_link_id', sa.String(length=64), nullable=True),
    sa.Column('source_name', sa.Text(), nullable=True),
    sa.Column('target_name', sa.Text(), nullable=True),
    sa.Column('side', sa.String(length=8), nullable=False),
    sa.Column('field', sa.String(length=32), nullable=False),
    sa.Column('old_value', sa.Text(), nullable=True),
    sa.Column('new_value', sa.Text(), nullable=True),
    sa.Column('changed_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('detected_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['project_id'], ['tasklink.project_links.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['task_link_id'], ['tasklink.task_links.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id'),
    schema='tasklink'
    )
    op.create_index('idx_change_log_project', 'change_log', ['project_id'], unique=False, schema='tasklink')
    op.create_index('idx_change_log_task_link', 'change_log', ['task_link_id'], unique=False, schema='tasklink')
    op.create_index('idx_change_log_detected_at', 'change_log', ['detected_at'], unique=False, schema='tasklink')
    op.create_table('link_history',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('task_link_id', sa.String(length=64), nullable=False),
    sa.Column('action', sa.String(length=32), nullable=False),
    sa.Column('details', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['task_link_id'], ['tasklink.task_links.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    schema='tasklink'
    )
    op.create_index(op.f('ix_tasklink_link_history_task_link_id'), 'link_history', ['task_link_id'], unique=False, schema='tasklink')


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_tasklink_link_history_task_link_id'), table_name='link_history', schema='tasklink')
    op.drop_table('link_history', schema='tasklink')
    op.drop_index('idx_change_log_detected_at', table_name='change_log', schema='tasklink')
    op.drop_index('idx_change_log_task_link', table_name='change_log', schema='tasklink')
    op.drop_index('idx_change_log_project', table_name='change_log', schema='tasklink')
    op.drop_table('change_log', schema='tasklink')
    op.drop_table('task_snapshots', schema='tasklink')
    op.drop_index(op.f('ix_tasklink_task_links_project_id'), table_name='task_links', schema='tasklink')
    op.drop_table('task_links', schema='tasklink')
    op.drop_table('project_links', schema='tasklink')
