"""create security_scan, security_finding and technology tables

Revision ID: v1_initial_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = 'v1_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ── Scans ──
    op.create_table(
        'security_scan',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('target', sa.String(500), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('configuration', sa.JSON(), nullable=False),
        sa.Column('initiated_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('overall_score', sa.Integer(), nullable=True),
        sa.Column('consultant_name', sa.String(255), nullable=True),
        sa.Column('client_name', sa.String(255), nullable=True),
        sa.Column('project_name', sa.String(255), nullable=True),
    )
    op.create_index('ix_security_scan_status', 'security_scan', ['status'])
    op.create_index('ix_security_scan_initiated_at', 'security_scan', ['initiated_at'])

    # ── Findings ──
    op.create_table(
        'security_finding',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('scan_id', sa.String(36), sa.ForeignKey('security_scan.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.String(2000), nullable=False, server_default=''),
        sa.Column('recommendation', sa.String(2000), nullable=False, server_default=''),
        sa.Column('affected_resource', sa.String(500), nullable=False),
        sa.Column('evidence', sa.String(2000), nullable=True),
        sa.Column('reference_links', sa.JSON(), nullable=True),
        sa.Column('compliance_tags', sa.JSON(), nullable=True),
    )
    op.create_index('ix_security_finding_scan_id', 'security_finding', ['scan_id'])

    # ── Tracked technologies ──
    op.create_table(
        'technology',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('vendor', sa.String(255), nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('cpe', sa.String(500), nullable=True),
        sa.Column('current_version', sa.String(100), nullable=False),
        sa.Column('latest_version', sa.String(100), nullable=True),
        sa.Column('secure_version', sa.String(100), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='unknown'),
        sa.Column('vulnerability_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('critical_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('high_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('top_cves', sa.JSON(), nullable=True),
        sa.Column('last_checked_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )


def downgrade():
    op.drop_table('technology')
    op.drop_index('ix_security_finding_scan_id', table_name='security_finding')
    op.drop_table('security_finding')
    op.drop_index('ix_security_scan_initiated_at', table_name='security_scan')
    op.drop_index('ix_security_scan_status', table_name='security_scan')
    op.drop_table('security_scan')
