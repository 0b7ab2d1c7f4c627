"""Create details table

Revision ID: 5a1c0e3b9d27
Revises:
Create Date: 2026-10-19 09:12:41.503118

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5a1c0e3b9d27'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'details',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('url', sa.String(length=255), nullable=True),
        sa.Column('canonical_url', sa.String(length=255), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('server_name', sa.String(length=64), nullable=True),
        sa.Column('perfdata', sa.LargeBinary(), nullable=True),
        sa.Column('type', sa.Integer(), nullable=True),
        sa.Column('cookie', sa.LargeBinary(), nullable=True),
        sa.Column('post', sa.LargeBinary(), nullable=True),
        sa.Column('get', sa.LargeBinary(), nullable=True),
        sa.Column('pmu', sa.Integer(), nullable=True),
        sa.Column('wt', sa.Integer(), nullable=True),
        sa.Column('cpu', sa.Integer(), nullable=True),
        sa.Column('server_id', sa.String(length=17), nullable=False),
        sa.Column('extra_tag', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    for column in ('url', 'canonical_url', 'cpu', 'wt', 'pmu', 'timestamp'):
        op.create_index(f'ix_details_{column}', 'details', [column])


def downgrade() -> None:
    for column in ('url', 'canonical_url', 'cpu', 'wt', 'pmu', 'timestamp'):
        op.drop_index(f'ix_details_{column}', table_name='details')
    op.drop_table('details')
