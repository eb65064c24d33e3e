"""Initial schema: network reference data, shifts, sales, cash registers, debts

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

This migration adds:
1. Stations, fuel types, tanks, nozzles (meter registry), prices, payment methods, clients, users
2. Shifts with partial unique indexes (one OPEN shift per nozzle and per pompiste)
3. Sales and split sale payments
4. Cash registers (one per shift) and per-method payment details
5. Pompiste debts and debt payments
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. REFERENCE DATA
    # ==========================================================================
    op.create_table('stations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stations', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stations_code'), ['code'], unique=True)

    op.create_table('fuel_types',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sqlite_autoincrement=True
    )

    op.create_table('payment_methods',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('requires_reference', sa.Boolean(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sqlite_autoincrement=True
    )

    op.create_table('tanks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('station_id', sa.Integer(), nullable=False),
        sa.Column('fuel_type_id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('capacity_liters', sa.Numeric(precision=12, scale=3), nullable=False),
        sa.ForeignKeyConstraint(['station_id'], ['stations.id'], ),
        sa.ForeignKeyConstraint(['fuel_type_id'], ['fuel_types.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('station_id', 'code', name='uq_tanks_station_code'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('tanks', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_tanks_station_id'), ['station_id'], unique=False)

    op.create_table('nozzles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('station_id', sa.Integer(), nullable=False),
        sa.Column('fuel_type_id', sa.Integer(), nullable=False),
        sa.Column('tank_id', sa.Integer(), nullable=True),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('current_index', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['station_id'], ['stations.id'], ),
        sa.ForeignKeyConstraint(['fuel_type_id'], ['fuel_types.id'], ),
        sa.ForeignKeyConstraint(['tank_id'], ['tanks.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('station_id', 'code', name='uq_nozzles_station_code'),
        sa.CheckConstraint('current_index >= 0', name='ck_nozzles_index_non_negative'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('nozzles', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_nozzles_station_id'), ['station_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_nozzles_is_active'), ['is_active'], unique=False)

    op.create_table('prices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('station_id', sa.Integer(), nullable=False),
        sa.Column('fuel_type_id', sa.Integer(), nullable=False),
        sa.Column('selling_price_cents', sa.Integer(), nullable=False),
        sa.Column('effective_from', sa.DateTime(timezone=True), nullable=False),
        sa.Column('effective_to', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['station_id'], ['stations.id'], ),
        sa.ForeignKeyConstraint(['fuel_type_id'], ['fuel_types.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('prices', schema=None) as batch_op:
        batch_op.create_index('ix_prices_station_fuel_from', ['station_id', 'fuel_type_id', 'effective_from'], unique=False)

    op.create_table('clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('station_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['station_id'], ['stations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('clients', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_clients_station_id'), ['station_id'], unique=False)

    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('station_id', sa.Integer(), nullable=True),
        sa.Column('first_name', sa.String(length=64), nullable=False),
        sa.Column('last_name', sa.String(length=64), nullable=False),
        sa.Column('badge_code', sa.String(length=32), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='POMPISTE'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['station_id'], ['stations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('badge_code'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_station_id'), ['station_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_users_role'), ['role'], unique=False)

    # ==========================================================================
    # 2. SHIFTS
    # ==========================================================================
    op.create_table('shifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nozzle_id', sa.Integer(), nullable=False),
        sa.Column('pompiste_id', sa.Integer(), nullable=False),
        sa.Column('index_start', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('index_end', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='OPEN'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('incident_note', sa.Text(), nullable=True),
        sa.Column('closed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('validated_by_user_id', sa.Integer(), nullable=True),
        sa.Column('validated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['nozzle_id'], ['nozzles.id'], ),
        sa.ForeignKeyConstraint(['pompiste_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['closed_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['validated_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('index_end IS NULL OR index_end >= index_start', name='ck_shifts_index_order'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('shifts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_shifts_nozzle_id'), ['nozzle_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_shifts_pompiste_id'), ['pompiste_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_shifts_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_shifts_started_at'), ['started_at'], unique=False)
        batch_op.create_index('ix_shifts_nozzle_started', ['nozzle_id', 'started_at'], unique=False)

    # Partial unique indexes: at most one OPEN shift per nozzle / per pompiste
    op.create_index(
        'uq_shifts_open_nozzle', 'shifts', ['nozzle_id'], unique=True,
        sqlite_where=sa.text("status = 'OPEN'"),
        postgresql_where=sa.text("status = 'OPEN'"),
    )
    op.create_index(
        'uq_shifts_open_pompiste', 'shifts', ['pompiste_id'], unique=True,
        sqlite_where=sa.text("status = 'OPEN'"),
        postgresql_where=sa.text("status = 'OPEN'"),
    )

    # ==========================================================================
    # 3. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('fuel_type_id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Numeric(precision=12, scale=3), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ),
        sa.ForeignKeyConstraint(['fuel_type_id'], ['fuel_types.id'], ),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_sales_quantity_positive'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_shift_id'), ['shift_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_fuel_type_id'), ['fuel_type_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_client_id'), ['client_id'], unique=False)
        batch_op.create_index('ix_sales_shift_sold_at', ['shift_id', 'sold_at'], unique=False)

    op.create_table('sale_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('payment_method_id', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['payment_method_id'], ['payment_methods.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount_cents > 0', name='ck_sale_payments_amount_positive'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_payments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sale_payments_sale_id'), ['sale_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sale_payments_payment_method_id'), ['payment_method_id'], unique=False)

    # ==========================================================================
    # 4. CASH REGISTERS
    # ==========================================================================
    op.create_table('cash_registers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('expected_total_cents', sa.Integer(), nullable=False),
        sa.Column('actual_total_cents', sa.Integer(), nullable=False),
        sa.Column('variance_cents', sa.Integer(), nullable=False),
        sa.Column('variance_note', sa.Text(), nullable=True),
        sa.Column('closed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ),
        sa.ForeignKeyConstraint(['closed_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shift_id', name='uq_cash_registers_shift'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('cash_registers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_cash_registers_variance_cents'), ['variance_cents'], unique=False)
        batch_op.create_index('ix_cash_registers_closed_at', ['closed_at'], unique=False)

    op.create_table('payment_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cash_register_id', sa.Integer(), nullable=False),
        sa.Column('payment_method_id', sa.Integer(), nullable=False),
        sa.Column('expected_cents', sa.Integer(), nullable=False),
        sa.Column('actual_cents', sa.Integer(), nullable=False),
        sa.Column('variance_cents', sa.Integer(), nullable=False),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.ForeignKeyConstraint(['cash_register_id'], ['cash_registers.id'], ),
        sa.ForeignKeyConstraint(['payment_method_id'], ['payment_methods.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cash_register_id', 'payment_method_id', name='uq_payment_details_register_method'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('payment_details', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_payment_details_cash_register_id'), ['cash_register_id'], unique=False)

    # ==========================================================================
    # 5. DEBTS
    # ==========================================================================
    op.create_table('pompiste_debts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pompiste_id', sa.Integer(), nullable=False),
        sa.Column('station_id', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('remaining_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('related_entity_type', sa.String(length=32), nullable=True),
        sa.Column('related_entity_id', sa.Integer(), nullable=True),
        sa.Column('cash_register_id', sa.Integer(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['pompiste_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['station_id'], ['stations.id'], ),
        sa.ForeignKeyConstraint(['cash_register_id'], ['cash_registers.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount_cents > 0', name='ck_debts_amount_positive'),
        sa.CheckConstraint('remaining_cents >= 0 AND remaining_cents <= amount_cents', name='ck_debts_remaining_bounds'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('pompiste_debts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_pompiste_debts_pompiste_id'), ['pompiste_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pompiste_debts_station_id'), ['station_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pompiste_debts_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_pompiste_debts_cash_register_id'), ['cash_register_id'], unique=False)
        batch_op.create_index('ix_debts_pompiste_status', ['pompiste_id', 'status'], unique=False)

    op.create_table('debt_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('debt_id', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('received_by_user_id', sa.Integer(), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['debt_id'], ['pompiste_debts.id'], ),
        sa.ForeignKeyConstraint(['received_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount_cents > 0', name='ck_debt_payments_amount_positive'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('debt_payments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_debt_payments_debt_id'), ['debt_id'], unique=False)


def downgrade():
    op.drop_table('debt_payments')
    op.drop_table('pompiste_debts')
    op.drop_table('payment_details')
    op.drop_table('cash_registers')
    op.drop_table('sale_payments')
    op.drop_table('sales')
    op.drop_index('uq_shifts_open_pompiste', table_name='shifts')
    op.drop_index('uq_shifts_open_nozzle', table_name='shifts')
    op.drop_table('shifts')
    op.drop_table('users')
    op.drop_table('clients')
    op.drop_table('prices')
    op.drop_table('nozzles')
    op.drop_table('tanks')
    op.drop_table('payment_methods')
    op.drop_table('fuel_types')
    op.drop_table('stations')
