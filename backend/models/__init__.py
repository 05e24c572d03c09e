from models.audit_log import AuditLog
from models.suppliers import Supplier
from models.inventory_items import InventoryItem, InventoryItemType, InventoryUnit
from models.inventory_transactions import InventoryTransaction, TransactionDirection, TransactionType, ReferenceType
from models.purchases import Purchase, PurchaseStatus
from models.purchase_items import PurchaseItem
from models.supplier_advances import SupplierAdvance, PurchaseAdvance, AdvanceStatus, PaymentMethod
from models.product_models import ProductModel, BomItem
from models.charges import Charge, ChargeCategory, ChargeScope
from models.production_batches import ProductionBatch, ProductionConsumption, BatchStatus
from models.cost_snapshots import CostSnapshot

__all__ = ['AdvanceStatus', 'AuditLog', 'BatchStatus', 'BomItem', 'Charge', 'ChargeCategory', 'ChargeScope', 'CostSnapshot', 'InventoryItem', 'InventoryItemType', 'InventoryTransaction', 'InventoryUnit', 'PaymentMethod', 'ProductModel', 'ProductionBatch', 'ProductionConsumption', 'Purchase', 'PurchaseAdvance', 'PurchaseItem', 'PurchaseStatus', 'ReferenceType', 'Supplier', 'SupplierAdvance', 'TransactionDirection', 'TransactionType',]
