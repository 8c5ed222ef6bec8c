"""Factory tables: system_parts, feature_assemblies, feature_parts

Revision ID: 0001_factory_tables
Revises: 
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_factory_tables'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

part_type = sa.Enum('FULLSTACK', 'WIDGET', 'FORM_INPUT', name='parttype')
part_status = sa.Enum('ACTIVE', 'DEPRECATED', 'DRAFT', name='partstatus')
assembly_status = sa.Enum('DRAFT', 'TESTING', 'APPROVED', 'DEPLOYED', name='assemblystatus')


def upgrade() -> None:
    """Upgrade schema."""
    # Parts warehouse
    op.create_table(
        'system_parts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('code', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('functional_type', part_type, nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('icon', sa.String(100), nullable=True),
        sa.Column('component_path', sa.String(255), nullable=True),
        sa.Column('status', part_status, nullable=True),
        sa.Column('is_core', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_system_parts_code', 'system_parts', ['code'], unique=True)
    op.create_index('ix_system_parts_category', 'system_parts', ['category'])

    # Assemblies
    op.create_table(
        'feature_assemblies',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('code', sa.String(150), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('target_role', sa.String(50), nullable=False),
        sa.Column('target_page', sa.String(255), nullable=True),
        sa.Column('route', sa.String(255), nullable=True),
        sa.Column('status', assembly_status, nullable=True),
        sa.Column('version', sa.Integer(), nullable=True),
        sa.Column('test_notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(36), nullable=True),
        sa.Column('approved_by', sa.String(36), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deployed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_feature_assemblies_target_role', 'feature_assemblies', ['target_role'])
    op.create_index('ix_feature_assemblies_status', 'feature_assemblies', ['status'])

    # Part instances inside an assembly
    op.create_table(
        'feature_parts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('assembly_id', sa.String(36), sa.ForeignKey('feature_assemblies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('part_code', sa.String(100), nullable=False),
        sa.Column('section', sa.String(50), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('config', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('assembly_id', 'part_code', name='uq_feature_parts_assembly_part'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('feature_parts')
    op.drop_index('ix_feature_assemblies_status', table_name='feature_assemblies')
    op.drop_index('ix_feature_assemblies_target_role', table_name='feature_assemblies')
    op.drop_table('feature_assemblies')
    op.drop_index('ix_system_parts_category', table_name='system_parts')
    op.drop_index('ix_system_parts_code', table_name='system_parts')
    op.drop_table('system_parts')
    assembly_status.drop(op.get_bind(), checkfirst=True)
    part_status.drop(op.get_bind(), checkfirst=True)
    part_type.drop(op.get_bind(), checkfirst=True)
