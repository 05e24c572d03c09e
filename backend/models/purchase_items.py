from sqlalchemy import Column, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import new_id

class PurchaseItem(Base):
    __tablename__ = "purchase_items"

    id = Column(String(36), primary_key=True, default=new_id)
    purchase_id = Column(String(36), ForeignKey("purchases.id"), nullable=False, index=True)
    inventory_item_id = Column(String(36), ForeignKey("inventory_items.id"), nullable=False)
    quantity_ordered = Column(Numeric(14, 2), nullable=False)
    quantity_received = Column(Numeric(14, 2), default=0, nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    line_total = Column(Numeric(14, 2), nullable=False)  # quantity_ordered * unit_price, stored for convenience

    # Relationships
    purchase = relationship("Purchase", back_populates="items")
    inventory_item = relationship("InventoryItem", back_populates="purchase_items")
