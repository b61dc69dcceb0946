"""Initial schema - research projects, versioned submissions, milestones

Revision ID: 0001
Revises: 
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Research projects table
    op.create_table(
        'research_projects',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('adviser_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('student_ids', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, default='pending'),
        sa.Column('stage', sa.String(50), nullable=False, default='proposal'),
        sa.Column('timezone', sa.String(64), nullable=True),
        sa.Column('status_before_archive', sa.String(50), nullable=True),
        sa.Column('archived_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('archived_by', sa.Uuid(), nullable=True),
        sa.Column('shared_with_dean', sa.Boolean(), nullable=False, default=False),
        sa.Column('shared_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shared_by', sa.Uuid(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Submissions table (one row per uploaded version)
    op.create_table(
        'submissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('research_id', sa.Uuid(), sa.ForeignKey('research_projects.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('unit_type', sa.String(50), nullable=False),
        sa.Column('part_name', sa.String(255), nullable=True),
        sa.Column('part_key', sa.String(255), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(500), nullable=True),
        sa.Column('form_type', sa.String(50), nullable=True),
        sa.Column('filename', sa.String(500), nullable=False),
        sa.Column('content_type', sa.String(255), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('storage_ref', sa.String(1000), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('uploaded_by', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(50), nullable=False, default='pending'),
        sa.Column('review_comment', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.Uuid(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('review_attachments', sa.JSON(), nullable=True),
        sa.UniqueConstraint('research_id', 'unit_type', 'part_key', 'version', name='uq_submissions_unit_version'),
    )
    op.create_index('ix_submissions_research_unit', 'submissions', ['research_id', 'unit_type'])
    op.create_index('ix_submissions_research_status', 'submissions', ['research_id', 'status'])

    # Milestones table
    op.create_table(
        'milestones',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('research_id', sa.Uuid(), sa.ForeignKey('research_projects.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('stage_key', sa.String(100), nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, default='not-started'),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('submission_link', sa.String(1000), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, default=0),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('research_id', 'stage_key', name='uq_milestones_research_stage'),
    )

    # Shared documents table
    op.create_table(
        'documents',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(50), nullable=False, default='other'),
        sa.Column('filename', sa.String(500), nullable=False),
        sa.Column('storage_ref', sa.String(1000), nullable=True),
        sa.Column('uploaded_by', sa.Uuid(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, default=True),
        sa.Column('archived_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Event logs table (append-only)
    op.create_table(
        'event_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False, index=True),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
    )
    op.create_index('ix_event_logs_entity', 'event_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_event_logs_type_time', 'event_logs', ['event_type', 'created_at'])


def downgrade() -> None:
    op.drop_table('event_logs')
    op.drop_table('documents')
    op.drop_table('milestones')
    op.drop_table('submissions')
    op.drop_table('research_projects')
