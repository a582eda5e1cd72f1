"""Create merkmalstexte and audit_log tables

Revision ID: 3f9c2a71d5e4
Revises:
Create Date: 2026-10-19 10:12:41.508233

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f9c2a71d5e4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('merkmalstexte',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('identnr', sa.String(length=50), nullable=False),
        sa.Column('merkmal', sa.String(length=100), nullable=False),
        sa.Column('auspraegung', sa.String(length=100), nullable=False),
        sa.Column('drucktext', sa.String(length=255), nullable=False),
        sa.Column('sondermerkmal', sa.String(length=100), nullable=True),
        sa.Column('merkmalsposition', sa.Integer(), nullable=False),
        sa.Column('maka', sa.Integer(), nullable=True),
        sa.Column('fertigungsliste', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('identnr', 'merkmal', 'auspraegung', 'drucktext',
                            name='uq_merkmalstexte_identnr_merkmal_auspraegung_drucktext')
    )
    with op.batch_alter_table('merkmalstexte', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_merkmalstexte_identnr'), ['identnr'], unique=False)
        batch_op.create_index('ix_merkmalstexte_gruppe', ['merkmal', 'auspraegung', 'drucktext'], unique=False)

    op.create_table('audit_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('modul', sa.String(length=50), nullable=False),
        sa.Column('aktion', sa.String(length=100), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('wichtigkeit', sa.String(length=20), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=True),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('ip_adresse', sa.String(length=45), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('audit_log', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_audit_log_timestamp'), ['timestamp'], unique=False)
        batch_op.create_index(batch_op.f('ix_audit_log_modul'), ['modul'], unique=False)
        batch_op.create_index(batch_op.f('ix_audit_log_aktion'), ['aktion'], unique=False)
        batch_op.create_index(batch_op.f('ix_audit_log_wichtigkeit'), ['wichtigkeit'], unique=False)


def downgrade():
    with op.batch_alter_table('audit_log', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_audit_log_wichtigkeit'))
        batch_op.drop_index(batch_op.f('ix_audit_log_aktion'))
        batch_op.drop_index(batch_op.f('ix_audit_log_modul'))
        batch_op.drop_index(batch_op.f('ix_audit_log_timestamp'))

    op.drop_table('audit_log')

    with op.batch_alter_table('merkmalstexte', schema=None) as batch_op:
        batch_op.drop_index('ix_merkmalstexte_gruppe')
        batch_op.drop_index(batch_op.f('ix_merkmalstexte_identnr'))

    op.drop_table('merkmalstexte')
