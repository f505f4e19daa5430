"""Create leads and pipeline_runs tables

Revision ID: 3f1a9c2d7e54
Revises:
Create Date: 2026-09-28 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7e54'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('leads',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('github_username', sa.Text(), nullable=False),
        sa.Column('repo_name', sa.Text(), nullable=False),
        sa.Column('repo_url', sa.Text(), nullable=False),
        sa.Column('repo_description', sa.Text(), nullable=True),
        sa.Column('repo_stars', sa.Integer(), nullable=True),
        sa.Column('repo_forks', sa.Integer(), nullable=True),
        sa.Column('repo_language', sa.Text(), nullable=True),
        sa.Column('repo_created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('repo_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_activity', sa.DateTime(timezone=True), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('owner_name', sa.Text(), nullable=True),
        sa.Column('owner_company', sa.Text(), nullable=True),
        sa.Column('owner_blog', sa.Text(), nullable=True),
        sa.Column('owner_location', sa.Text(), nullable=True),
        sa.Column('owner_bio', sa.Text(), nullable=True),
        sa.Column('owner_twitter_username', sa.Text(), nullable=True),
        sa.Column('ai_score', sa.Float(), nullable=True),
        sa.Column('ai_recommendation', sa.Text(), nullable=True),
        sa.Column('ai_analysis', sa.Text(), nullable=True),
        sa.Column('analyzed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='new'),
        sa.Column('email_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('email_pending_approval', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_rejected', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('github_username', 'repo_name', name='uq_lead_github_repo'),
    )
    op.create_index('ix_leads_ai_score', 'leads', ['ai_score'])
    op.create_index('ix_leads_status', 'leads', ['status'])

    op.create_table('pipeline_runs',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('kind', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('params', sa.JSON(), nullable=True),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('error_count', sa.Integer(), nullable=True),
        sa.Column('errors', sa.JSON(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_pipeline_runs_kind', 'pipeline_runs', ['kind'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_pipeline_runs_kind', table_name='pipeline_runs')
    op.drop_table('pipeline_runs')
    op.drop_index('ix_leads_status', table_name='leads')
    op.drop_index('ix_leads_ai_score', table_name='leads')
    op.drop_table('leads')
