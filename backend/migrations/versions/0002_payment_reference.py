"""Payment transaction reference

Revision ID: 0002_payment_reference
Revises: 0001_initial
Create Date: 2026-10-18 00:00:00.000000

Card and transfer payments keep the processor's transaction reference.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002_payment_reference'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('payments', schema=None) as batch_op:
        batch_op.add_column(sa.Column('reference', sa.String(length=100), nullable=True))


def downgrade():
    with op.batch_alter_table('payments', schema=None) as batch_op:
        batch_op.drop_column('reference')
