from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship
from medsupply.database import Base
from medsupply.models.audit_mixin import now_local
from medsupply.utils.workflow_table import Stage


class PurchaseOrderHistory(Base):
    """One row per workflow step taken on a purchase order."""
    __tablename__ = "purchase_order_history"

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=False, index=True)
    stage = Column(Enum(Stage), nullable=False)
    action = Column(String, nullable=False)
    action_by = Column(String, nullable=False)
    action_date = Column(DateTime(timezone=True), default=now_local)
    remarks = Column(Text, nullable=True)
    changes = Column(JSON, nullable=True)

    purchase_order = relationship("PurchaseOrder", back_populates="history")
