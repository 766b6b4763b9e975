"""Create webhook_sintegre table

Revision ID: 001
Revises:
Create Date: 2023-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'webhook_sintegre',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('nome', sa.String(255), nullable=False),
        sa.Column('processo', sa.String(255), nullable=False),
        sa.Column('data_produto', sa.String(255), nullable=False),
        sa.Column('macro_processo', sa.String(255), nullable=False),
        sa.Column('periodicidade', sa.String(255), nullable=False),
        sa.Column('periodicidade_final', sa.String(255), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('download_status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('s3_key', sa.String(500), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('retry_history', sa.JSON(), nullable=False),
        sa.Column('next_retry_at', sa.String(50), nullable=True),
        sa.Column('generation', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.String(50), nullable=False),
        sa.Column('updated_at', sa.String(50), nullable=False),
        sa.CheckConstraint('retry_count >= 0', name='check_retry_count_positive'),
        sa.CheckConstraint(
            "download_status IN ('PENDING', 'SUCCESS', 'FAILED', 'PROCESSED')",
            name='check_valid_download_status'
        ),
    )

    op.create_index('idx_webhook_sintegre_nome', 'webhook_sintegre', ['nome'])
    op.create_index('idx_webhook_sintegre_status', 'webhook_sintegre', ['download_status'])
    op.create_index('idx_webhook_sintegre_created_at', 'webhook_sintegre', ['created_at'])


def downgrade() -> None:
    op.drop_index('idx_webhook_sintegre_created_at', table_name='webhook_sintegre')
    op.drop_index('idx_webhook_sintegre_status', table_name='webhook_sintegre')
    op.drop_index('idx_webhook_sintegre_nome', table_name='webhook_sintegre')
    op.drop_table('webhook_sintegre')
