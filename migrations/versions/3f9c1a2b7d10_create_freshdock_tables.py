"""create freshdock tables

Revision ID: 3f9c1a2b7d10
Revises:
Create Date: 2026-10-19 09:12:41.218503

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '3f9c1a2b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


BUSINESS_TYPE = sa.Enum('RECEIVER', 'SUPPLIER', 'TRANSPORTER', name='businesstype')
USER_ROLE = sa.Enum('STAFF', 'SUPPLIER', 'TRANSPORTER', name='userrole')
STAFF_POSITION = sa.Enum('ADMIN', 'WAREHOUSE_MANAGER', 'OPERATIONS',
                         'FORKLIFT_DRIVER', 'DOCK_HAND', name='staffposition')
DISPATCH_STATUS = sa.Enum('PENDING', 'IN_TRANSIT', 'ARRIVED', 'RECEIVED', 'ISSUE',
                          name='dispatchstatus')
TEMPERATURE_ZONE = sa.Enum('AMBIENT', 'CHILLED', 'FROZEN', name='temperaturezone')
ISSUE_TYPE = sa.Enum('DAMAGE', 'MISSING_PAPERWORK', 'QUANTITY_SHORT', 'QUALITY',
                     'TEMPERATURE', 'OTHER', name='issuetype')
ISSUE_SEVERITY = sa.Enum('LOW', 'MEDIUM', 'HIGH', name='issueseverity')
EVENT_TYPE = sa.Enum('CREATED', 'SUBMITTED', 'DELIVERY_ADVICE_GENERATED', 'CON_NOTE_ATTACHED',
                     'IN_TRANSIT', 'ARRIVED', 'RECEIVED', 'ISSUE_FLAGGED', 'QR_SCANNED',
                     'ETA_UPDATED', 'EDITED', name='dispatcheventtype')
CONNECTION_STATUS = sa.Enum('PENDING', 'APPROVED', 'REJECTED', name='connectionstatus')


def upgrade():
    op.create_table(
        'business',
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('business_type', BUSINESS_TYPE, nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=True),
        sa.Column('address', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('city', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('region', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('state', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('phone', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('email', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('abn', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('grower_code', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('public_intake_token', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_business_name'), 'business', ['name'], unique=False)
    op.create_index(op.f('ix_business_owner_id'), 'business', ['owner_id'], unique=False)
    op.create_index(op.f('ix_business_public_intake_token'), 'business',
                    ['public_intake_token'], unique=True)

    op.create_table(
        'user',
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('hashed_password', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('display_name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('company_name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('phone', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('grower_code', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('role', USER_ROLE, nullable=False),
        sa.Column('staff_position', STAFF_POSITION, nullable=True),
        sa.Column('business_id', sa.Uuid(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['business.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_email'), 'user', ['email'], unique=True)
    op.create_index(op.f('ix_user_business_id'), 'user', ['business_id'], unique=False)

    op.create_table(
        'dispatch',
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('display_id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('delivery_advice_number', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('delivery_advice_generated_at', sa.DateTime(), nullable=True),
        sa.Column('qr_code_token', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('supplier_id', sa.Uuid(), nullable=True),
        sa.Column('supplier_business_id', sa.Uuid(), nullable=True),
        sa.Column('receiver_business_id', sa.Uuid(), nullable=True),
        sa.Column('transporter_business_id', sa.Uuid(), nullable=True),
        sa.Column('grower_name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('grower_code', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('carrier', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('truck_number', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('transporter_con_note_number', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('transporter_con_note_photo_url', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('transporter_notes', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('dispatch_date', sa.Date(), nullable=False),
        sa.Column('expected_arrival', sa.Date(), nullable=True),
        sa.Column('estimated_arrival_window_start', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('estimated_arrival_window_end', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('current_eta', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('pickup_time', sa.DateTime(), nullable=True),
        sa.Column('temperature_zone', TEMPERATURE_ZONE, nullable=True),
        sa.Column('commodity_class', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('total_pallets', sa.Integer(), nullable=False),
        sa.Column('notes', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('photos', sa.JSON(), nullable=True),
        sa.Column('internal_lot_number', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('receiving_temperature', sa.Float(), nullable=True),
        sa.Column('status', DISPATCH_STATUS, nullable=False),
        sa.ForeignKeyConstraint(['supplier_id'], ['user.id'], ),
        sa.ForeignKeyConstraint(['supplier_business_id'], ['business.id'], ),
        sa.ForeignKeyConstraint(['receiver_business_id'], ['business.id'], ),
        sa.ForeignKeyConstraint(['transporter_business_id'], ['business.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('delivery_advice_number')
    )
    op.create_index(op.f('ix_dispatch_display_id'), 'dispatch', ['display_id'], unique=True)
    op.create_index(op.f('ix_dispatch_qr_code_token'), 'dispatch', ['qr_code_token'], unique=True)
    op.create_index(op.f('ix_dispatch_supplier_business_id'), 'dispatch',
                    ['supplier_business_id'], unique=False)
    op.create_index(op.f('ix_dispatch_receiver_business_id'), 'dispatch',
                    ['receiver_business_id'], unique=False)
    op.create_index(op.f('ix_dispatch_grower_name'), 'dispatch', ['grower_name'], unique=False)
    op.create_index(op.f('ix_dispatch_dispatch_date'), 'dispatch', ['dispatch_date'], unique=False)
    op.create_index(op.f('ix_dispatch_expected_arrival'), 'dispatch',
                    ['expected_arrival'], unique=False)
    op.create_index(op.f('ix_dispatch_status'), 'dispatch', ['status'], unique=False)

    op.create_table(
        'dispatchitem',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('dispatch_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('variety', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('size', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('tray_type', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_weight', sa.Float(), nullable=True),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['dispatch_id'], ['dispatch.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_dispatchitem_dispatch_id'), 'dispatchitem', ['dispatch_id'], unique=False)

    op.create_table(
        'receivingissue',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('dispatch_id', sa.Uuid(), nullable=False),
        sa.Column('issue_type', ISSUE_TYPE, nullable=False),
        sa.Column('severity', ISSUE_SEVERITY, nullable=False),
        sa.Column('description', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('photo_url', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('item_index', sa.Integer(), nullable=True),
        sa.Column('flagged_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['dispatch_id'], ['dispatch.id'], ),
        sa.ForeignKeyConstraint(['flagged_by'], ['user.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_receivingissue_dispatch_id'), 'receivingissue',
                    ['dispatch_id'], unique=False)

    op.create_table(
        'dispatchevent',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('dispatch_id', sa.Uuid(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('event_type', EVENT_TYPE, nullable=False),
        sa.Column('triggered_by_user_id', sa.Uuid(), nullable=True),
        sa.Column('triggered_by_role', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['dispatch_id'], ['dispatch.id'], ),
        sa.ForeignKeyConstraint(['triggered_by_user_id'], ['user.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('dispatch_id', 'sequence', name='uq_dispatchevent_sequence')
    )
    op.create_index(op.f('ix_dispatchevent_dispatch_id'), 'dispatchevent',
                    ['dispatch_id'], unique=False)

    op.create_table(
        'connection',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('supplier_business_id', sa.Uuid(), nullable=False),
        sa.Column('receiver_business_id', sa.Uuid(), nullable=False),
        sa.Column('status', CONNECTION_STATUS, nullable=False),
        sa.Column('requested_at', sa.DateTime(), nullable=False),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['supplier_business_id'], ['business.id'], ),
        sa.ForeignKeyConstraint(['receiver_business_id'], ['business.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('supplier_business_id', 'receiver_business_id', name='uq_connection_pair')
    )
    op.create_index(op.f('ix_connection_supplier_business_id'), 'connection',
                    ['supplier_business_id'], unique=False)
    op.create_index(op.f('ix_connection_receiver_business_id'), 'connection',
                    ['receiver_business_id'], unique=False)

    op.create_table(
        'supplierintakelink',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('short_code', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('intake_token', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('grower_name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('grower_code', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('grower_email', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('grower_phone', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['user.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_supplierintakelink_short_code'), 'supplierintakelink',
                    ['short_code'], unique=True)
    op.create_index(op.f('ix_supplierintakelink_intake_token'), 'supplierintakelink',
                    ['intake_token'], unique=False)

    op.create_table(
        'dispatchtemplate',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('business_id', sa.Uuid(), nullable=False),
        sa.Column('receiver_business_id', sa.Uuid(), nullable=True),
        sa.Column('template_name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('template_data', sa.JSON(), nullable=True),
        sa.Column('last_used_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['business.id'], ),
        sa.ForeignKeyConstraint(['receiver_business_id'], ['business.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_dispatchtemplate_business_id'), 'dispatchtemplate',
                    ['business_id'], unique=False)

    op.create_table(
        'deliveryadvicesequence',
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('last_value', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('year')
    )


def downgrade():
    op.drop_table('deliveryadvicesequence')
    op.drop_index(op.f('ix_dispatchtemplate_business_id'), table_name='dispatchtemplate')
    op.drop_table('dispatchtemplate')
    op.drop_index(op.f('ix_supplierintakelink_intake_token'), table_name='supplierintakelink')
    op.drop_index(op.f('ix_supplierintakelink_short_code'), table_name='supplierintakelink')
    op.drop_table('supplierintakelink')
    op.drop_index(op.f('ix_connection_receiver_business_id'), table_name='connection')
    op.drop_index(op.f('ix_connection_supplier_business_id'), table_name='connection')
    op.drop_table('connection')
    op.drop_index(op.f('ix_dispatchevent_dispatch_id'), table_name='dispatchevent')
    op.drop_table('dispatchevent')
    op.drop_index(op.f('ix_receivingissue_dispatch_id'), table_name='receivingissue')
    op.drop_table('receivingissue')
    op.drop_index(op.f('ix_dispatchitem_dispatch_id'), table_name='dispatchitem')
    op.drop_table('dispatchitem')
    for index in ('status', 'expected_arrival', 'dispatch_date', 'grower_name',
                  'receiver_business_id', 'supplier_business_id', 'qr_code_token', 'display_id'):
        op.drop_index(op.f(f'ix_dispatch_{index}'), table_name='dispatch')
    op.drop_table('dispatch')
    op.drop_index(op.f('ix_user_business_id'), table_name='user')
    op.drop_index(op.f('ix_user_email'), table_name='user')
    op.drop_table('user')
    op.drop_index(op.f('ix_business_public_intake_token'), table_name='business')
    op.drop_index(op.f('ix_business_owner_id'), table_name='business')
    op.drop_index(op.f('ix_business_name'), table_name='business')
    op.drop_table('business')

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        # Enum types outlive their tables in PostgreSQL
        for enum in (CONNECTION_STATUS, EVENT_TYPE, ISSUE_SEVERITY, ISSUE_TYPE, TEMPERATURE_ZONE,
                     DISPATCH_STATUS, STAFF_POSITION, USER_ROLE, BUSINESS_TYPE):
            enum.drop(bind, checkfirst=True)
