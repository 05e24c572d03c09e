"""initial ledger schema

Revision ID: 7c1e4a9b2d30
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7c1e4a9b2d30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _money(name, nullable=False):
    return sa.Column(name, sa.Numeric(14, 2), nullable=nullable)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('updated_by', sa.String(), nullable=True),
    ]


item_type = sa.Enum('FABRIC', 'ACCESSORY', 'PACKAGING', 'FINISHED', name='inventoryitemtype')
item_unit = sa.Enum('METER', 'ROLL', 'PIECE', 'KG', 'LITER', name='inventoryunit')
direction = sa.Enum('IN', 'OUT', name='transactiondirection')
tx_type = sa.Enum('PURCHASE', 'CONSUMPTION', 'ADJUSTMENT', 'PRODUCTION', name='transactiontype')
reference_type = sa.Enum('PURCHASE', 'PRODUCTION_BATCH', 'ADJUSTMENT', name='referencetype')
purchase_status = sa.Enum('DRAFT', 'ORDERED', 'PARTIAL', 'RECEIVED', 'CANCELLED', name='purchasestatus')
advance_status = sa.Enum('PENDING', 'PARTIAL', 'APPLIED', 'REFUNDED', name='advancestatus')
payment_method = sa.Enum('CASH', 'CHECK', 'TRANSFER', 'CCP', name='paymentmethod')
charge_category = sa.Enum(
    'ATELIER', 'SHOOTING', 'ADS', 'INFLUENCER', 'TRANSPORT', 'LABOR', 'OTHER', name='chargecategory'
)
charge_scope = sa.Enum('GLOBAL', 'COLLECTION', 'MODEL', name='chargescope')
batch_status = sa.Enum('PLANNED', 'IN_PROGRESS', 'ON_HOLD', 'COMPLETED', 'CANCELLED', name='batchstatus')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'audit_log',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.String(36), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('changed_by', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
    )
    op.create_index('ix_audit_log_entity_type', 'audit_log', ['entity_type'])
    op.create_index('ix_audit_log_entity_id', 'audit_log', ['entity_id'])

    op.create_table(
        'suppliers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('contact_name', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_suppliers_code', 'suppliers', ['code'], unique=True)

    op.create_table(
        'inventory_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('sku', sa.String(64), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('type', item_type, nullable=False),
        sa.Column('unit', item_unit, nullable=False),
        _money('quantity'),
        _money('reserved'),
        _money('available'),
        _money('average_cost'),
        _money('last_cost', nullable=True),
        _money('total_value'),
        _money('threshold', nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_inventory_items_sku', 'inventory_items', ['sku'], unique=True)

    op.create_table(
        'inventory_transactions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('inventory_item_id', sa.String(36), sa.ForeignKey('inventory_items.id'), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('direction', direction, nullable=False),
        sa.Column('type', tx_type, nullable=False),
        _money('quantity'),
        _money('unit_cost'),
        _money('total_cost'),
        _money('balance_before'),
        _money('balance_after'),
        _money('value_before'),
        _money('value_after'),
        _money('avg_cost_before'),
        _money('avg_cost_after'),
        sa.Column('reference_type', reference_type, nullable=False),
        sa.Column('reference_id', sa.String(36), nullable=True),
        sa.Column('reason', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('inventory_item_id', 'sequence', name='_inventory_tx_item_sequence_uc'),
    )
    op.create_index('ix_inventory_transactions_inventory_item_id', 'inventory_transactions', ['inventory_item_id'])
    op.create_index('ix_inventory_transactions_reference_id', 'inventory_transactions', ['reference_id'])
    op.create_index('ix_inventory_transactions_created_at', 'inventory_transactions', ['created_at'])

    op.create_table(
        'purchases',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('purchase_number', sa.String(20), nullable=False),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('suppliers.id'), nullable=False),
        sa.Column('status', purchase_status, nullable=False),
        _money('subtotal'),
        _money('tax_amount'),
        _money('shipping_cost'),
        _money('total_amount'),
        _money('amount_due'),
        _money('advance_applied'),
        sa.Column('order_date', sa.Date(), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_purchases_purchase_number', 'purchases', ['purchase_number'], unique=True)
    op.create_index('ix_purchases_supplier_id', 'purchases', ['supplier_id'])

    op.create_table(
        'purchase_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('purchase_id', sa.String(36), sa.ForeignKey('purchases.id'), nullable=False),
        sa.Column('inventory_item_id', sa.String(36), sa.ForeignKey('inventory_items.id'), nullable=False),
        _money('quantity_ordered'),
        _money('quantity_received'),
        _money('unit_price'),
        _money('line_total'),
    )
    op.create_index('ix_purchase_items_purchase_id', 'purchase_items', ['purchase_id'])

    op.create_table(
        'supplier_advances',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('advance_number', sa.String(20), nullable=False),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('suppliers.id'), nullable=False),
        _money('amount'),
        _money('amount_used'),
        _money('amount_remaining'),
        sa.Column('status', advance_status, nullable=False),
        sa.Column('payment_method', payment_method, nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('reference', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_supplier_advances_advance_number', 'supplier_advances', ['advance_number'], unique=True)
    op.create_index('ix_supplier_advances_supplier_id', 'supplier_advances', ['supplier_id'])

    op.create_table(
        'purchase_advances',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('purchase_id', sa.String(36), sa.ForeignKey('purchases.id'), nullable=False),
        sa.Column('advance_id', sa.String(36), sa.ForeignKey('supplier_advances.id'), nullable=False),
        _money('amount'),
        sa.Column('applied_by', sa.String(), nullable=True),
        sa.Column('applied_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_purchase_advances_purchase_id', 'purchase_advances', ['purchase_id'])
    op.create_index('ix_purchase_advances_advance_id', 'purchase_advances', ['advance_id'])

    op.create_table(
        'product_models',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('sku', sa.String(64), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _money('labor_cost'),
        _money('other_cost'),
        _money('return_margin'),
        sa.Column('estimated_units', sa.Integer(), nullable=False),
        sa.Column('produced_units', sa.Integer(), nullable=False),
        _money('selling_price', nullable=True),
        sa.Column('finished_item_id', sa.String(36), sa.ForeignKey('inventory_items.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_product_models_sku', 'product_models', ['sku'], unique=True)

    op.create_table(
        'bom_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('model_id', sa.String(36), sa.ForeignKey('product_models.id'), nullable=False),
        sa.Column('inventory_item_id', sa.String(36), sa.ForeignKey('inventory_items.id'), nullable=False),
        sa.Column('quantity_per_unit', sa.Numeric(14, 4), nullable=False),
        sa.Column('waste_factor', sa.Numeric(14, 4), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.UniqueConstraint('model_id', 'inventory_item_id', name='_bom_model_item_uc'),
    )
    op.create_index('ix_bom_items_model_id', 'bom_items', ['model_id'])

    op.create_table(
        'charges',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('charge_number', sa.String(20), nullable=False),
        sa.Column('category', charge_category, nullable=False),
        sa.Column('scope', charge_scope, nullable=False),
        sa.Column('model_id', sa.String(36), sa.ForeignKey('product_models.id'), nullable=True),
        _money('amount'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('charge_date', sa.Date(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_charges_charge_number', 'charges', ['charge_number'], unique=True)
    op.create_index('ix_charges_model_id', 'charges', ['model_id'])

    op.create_table(
        'production_batches',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('batch_number', sa.String(20), nullable=False),
        sa.Column('model_id', sa.String(36), sa.ForeignKey('product_models.id'), nullable=False),
        sa.Column('planned_qty', sa.Integer(), nullable=False),
        sa.Column('produced_qty', sa.Integer(), nullable=True),
        sa.Column('status', batch_status, nullable=False),
        _money('materials_cost'),
        _money('labor_cost'),
        _money('overhead_cost'),
        _money('total_cost'),
        _money('cost_per_unit', nullable=True),
        sa.Column('planned_date', sa.Date(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_production_batches_batch_number', 'production_batches', ['batch_number'], unique=True)
    op.create_index('ix_production_batches_model_id', 'production_batches', ['model_id'])

    op.create_table(
        'production_consumptions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('batch_id', sa.String(36), sa.ForeignKey('production_batches.id'), nullable=False),
        sa.Column('inventory_item_id', sa.String(36), sa.ForeignKey('inventory_items.id'), nullable=False),
        _money('quantity_consumed'),
        _money('unit_cost_at_consumption'),
        _money('total_cost'),
        sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_production_consumptions_batch_id', 'production_consumptions', ['batch_id'])

    op.create_table(
        'cost_snapshots',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('snapshot_number', sa.String(20), nullable=False),
        sa.Column('model_id', sa.String(36), sa.ForeignKey('product_models.id'), nullable=False),
        sa.Column('batch_id', sa.String(36), sa.ForeignKey('production_batches.id'), nullable=True),
        _money('fabric_cost'),
        _money('accessory_cost'),
        _money('packaging_cost'),
        _money('other_material_cost'),
        _money('materials_cost'),
        _money('labor_cost'),
        _money('other_cost'),
        _money('charges_cost'),
        _money('return_margin_cost'),
        _money('total_cost'),
        _money('selling_price', nullable=True),
        _money('margin', nullable=True),
        sa.Column('margin_percent', sa.Numeric(7, 2), nullable=True),
        sa.Column('suggested_prices', sa.JSON(), nullable=False),
        sa.Column('breakdown', sa.JSON(), nullable=False),
        sa.Column('estimated_units', sa.Integer(), nullable=False),
        sa.Column('is_locked', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_cost_snapshots_snapshot_number', 'cost_snapshots', ['snapshot_number'], unique=True)
    op.create_index('ix_cost_snapshots_model_id', 'cost_snapshots', ['model_id'])


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        'cost_snapshots',
        'production_consumptions',
        'production_batches',
        'charges',
        'bom_items',
        'product_models',
        'purchase_advances',
        'supplier_advances',
        'purchase_items',
        'purchases',
        'inventory_transactions',
        'inventory_items',
        'suppliers',
        'audit_log',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (
        batch_status, charge_scope, charge_category, payment_method, advance_status,
        purchase_status, reference_type, tx_type, direction, item_unit, item_type,
    ):
        enum_type.drop(bind, checkfirst=True)
