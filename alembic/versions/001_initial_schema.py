"""Initial schema - catalog, mappings, orders, inventory ledger, webhook log

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')
Quantity = sa.Numeric(18, 4)


def _timestamp(name, nullable=True):
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=nullable)


def upgrade() -> None:
    # Catalog (read by the reconciler)
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_products_id', 'products', ['id'])

    op.create_table('product_variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(), nullable=False),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku')
    )
    op.create_index('ix_product_variants_id', 'product_variants', ['id'])
    op.create_index('ix_product_variants_product_id', 'product_variants', ['product_id'])

    op.create_table('product_variations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_product_variations_product_id', 'product_variations', ['product_id'])

    op.create_table('product_variation_options',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('variation_id', sa.Integer(), nullable=False),
        sa.Column('value', sa.String(), nullable=False),
        sa.ForeignKeyConstraint(['variation_id'], ['product_variations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_product_variation_options_variation_id', 'product_variation_options', ['variation_id'])

    op.create_table('product_variant_selections',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.Integer(), nullable=False),
        sa.Column('variation_id', sa.Integer(), nullable=False),
        sa.Column('option_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['variation_id'], ['product_variations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['option_id'], ['product_variation_options.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('variant_id', 'variation_id', name='uq_variant_selection_per_variation')
    )
    op.create_index('ix_product_variant_selections_variant_id', 'product_variant_selections', ['variant_id'])

    op.create_table('variant_bill_of_materials',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_variant_id', sa.Integer(), nullable=False),
        sa.Column('component_variant_id', sa.Integer(), nullable=False),
        sa.Column('quantity_required', Quantity, nullable=False),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['product_variant_id'], ['product_variants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['component_variant_id'], ['product_variants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_variant_bill_of_materials_product_variant_id', 'variant_bill_of_materials', ['product_variant_id'])
    op.create_index('ix_variant_bill_of_materials_component_variant_id', 'variant_bill_of_materials', ['component_variant_id'])

    # Mappings
    for table in ('variant_mappings', 'property_mappings'):
        columns = [
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('external_product_id', sa.String(), nullable=True),
            sa.Column('external_variant_id', sa.String(), nullable=False),
            sa.Column('external_product_title', sa.String(), nullable=True),
            sa.Column('external_variant_title', sa.String(), nullable=True),
            sa.Column('product_variant_id', sa.Integer(), nullable=False),
            sa.Column('quantity', Quantity, nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False),
        ]
        if table == 'variant_mappings':
            columns += [
                sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
                sa.Column('sync_errors', sa.Text(), nullable=True),
            ]
        else:
            columns.append(sa.Column('property_rules', JSONType, nullable=False))
        op.create_table(table,
            *columns,
            _timestamp('created_at'),
            _timestamp('updated_at'),
            sa.ForeignKeyConstraint(['product_variant_id'], ['product_variants.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(f'ix_{table}_id', table, ['id'])
        op.create_index(f'ix_{table}_external_product_id', table, ['external_product_id'])
        op.create_index(f'ix_{table}_external_variant_id', table, ['external_variant_id'])
        op.create_index(f'ix_{table}_status', table, ['status'])

    op.create_table('variant_identity_edges',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('external_product_id', sa.String(), nullable=False),
        sa.Column('old_variant_id', sa.String(), nullable=False),
        sa.Column('new_variant_id', sa.String(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        _timestamp('created_at', nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_product_id', 'old_variant_id', name='uq_identity_edge_product_old_variant')
    )
    op.create_index('ix_variant_identity_edges_new_variant_id', 'variant_identity_edges', ['new_variant_id'])

    # Orders
    op.create_table('external_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('external_order_id', sa.String(), nullable=False),
        sa.Column('order_number', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('fulfilled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('total_currency', sa.String(length=8), nullable=True),
        sa.Column('customer_id', sa.String(), nullable=True),
        sa.Column('customer_email', sa.String(), nullable=True),
        sa.Column('raw_payload', JSONType, nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        _timestamp('created_at', nullable=False),
        _timestamp('updated_at', nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_order_id')
    )
    op.create_index('ix_external_orders_id', 'external_orders', ['id'])

    op.create_table('external_order_line_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('external_line_item_id', sa.String(), nullable=True),
        sa.Column('external_product_id', sa.String(), nullable=True),
        sa.Column('external_variant_id', sa.String(), nullable=True),
        sa.Column('sku', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('quantity', Quantity, nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('product_variant_id', sa.Integer(), nullable=True),
        sa.Column('mapping_status', sa.String(length=20), nullable=False),
        sa.Column('mapping_strategy', sa.String(length=20), nullable=True),
        sa.Column('unmapped_reason', sa.Text(), nullable=True),
        _timestamp('created_at', nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['external_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_variant_id'], ['product_variants.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_external_order_line_items_id', 'external_order_line_items', ['id'])
    op.create_index('ix_external_order_line_items_order_id', 'external_order_line_items', ['order_id'])
    op.create_index('ix_external_order_line_items_external_variant_id', 'external_order_line_items', ['external_variant_id'])

    # Inventory ledger
    op.create_table('inventory',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_variant_id', sa.Integer(), nullable=False),
        sa.Column('quantity_on_hand', Quantity, nullable=False),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['product_variant_id'], ['product_variants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_variant_id')
    )

    op.create_table('inventory_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_variant_id', sa.Integer(), nullable=True),
        sa.Column('quantity', Quantity, nullable=False),
        sa.Column('action', sa.String(length=20), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('reference', sa.String(), nullable=True),
        _timestamp('created_at', nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['product_variant_id'], ['product_variants.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_inventory_movements_product_id', 'inventory_movements', ['product_id'])
    op.create_index('ix_inventory_movements_product_variant_id', 'inventory_movements', ['product_variant_id'])
    op.create_index('ix_inventory_movements_action', 'inventory_movements', ['action'])
    op.create_index('ix_inventory_movements_reference', 'inventory_movements', ['reference'])
    op.create_index('ix_inventory_movements_created_at', 'inventory_movements', ['created_at'])

    # Webhook log
    op.create_table('webhook_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('topic', sa.String(), nullable=False),
        sa.Column('external_order_id', sa.String(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('payload', JSONType, nullable=True),
        _timestamp('created_at', nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_webhook_events_external_order_id', 'webhook_events', ['external_order_id'])
    op.create_index('ix_webhook_events_status', 'webhook_events', ['status'])


def downgrade() -> None:
    op.drop_table('webhook_events')
    op.drop_table('inventory_movements')
    op.drop_table('inventory')
    op.drop_table('external_order_line_items')
    op.drop_table('external_orders')
    op.drop_table('variant_identity_edges')
    op.drop_table('property_mappings')
    op.drop_table('variant_mappings')
    op.drop_table('variant_bill_of_materials')
    op.drop_table('product_variant_selections')
    op.drop_table('product_variation_options')
    op.drop_table('product_variations')
    op.drop_table('product_variants')
    op.drop_table('products')
