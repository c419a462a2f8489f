from sqlalchemy import BigInteger, Column, Date, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from medsupply.database import Base
from medsupply.models.audit_mixin import TimestampMixin, now_local
from medsupply.utils.money import rupee_property
import enum


class StockStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    NEAR_EXPIRY = "near_expiry"
    DAMAGED = "damaged"
    QUARANTINE = "quarantine"
    BLOCKED = "blocked"


class MovementType(str, enum.Enum):
    INWARD = "inward"
    OUTWARD = "outward"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"
    RETURN = "return"
    EXPIRED = "expired"
    DAMAGED = "damaged"
    LOST = "lost"


class Inventory(Base, TimestampMixin):
    __tablename__ = "inventory"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    batch_no = Column(String, nullable=True, index=True)
    mfg_date = Column(Date, nullable=True)
    exp_date = Column(Date, nullable=True)
    zone = Column(String, nullable=True)
    rack = Column(String, nullable=True)
    shelf = Column(String, nullable=True)
    bin = Column(String, nullable=True)
    current_stock = Column(Integer, nullable=False, default=0)
    reserved_stock = Column(Integer, nullable=False, default=0)
    available_stock = Column(Integer, nullable=False, default=0)
    minimum_stock = Column(Integer, nullable=False, default=0)
    maximum_stock = Column(Integer, nullable=True)
    stock_status = Column(Enum(StockStatus), nullable=False, default=StockStatus.ACTIVE, index=True)
    unit_cost_paise = Column(BigInteger, nullable=False, default=0)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=True)
    quality_control_id = Column(Integer, ForeignKey("quality_control.id"), nullable=True)
    warehouse_approval_id = Column(Integer, ForeignKey("warehouse_approvals.id"), nullable=True)

    product = relationship("Product")
    warehouse = relationship("Warehouse")
    movements = relationship(
        "StockMovement",
        back_populates="inventory",
        cascade="all, delete-orphan",
        order_by="StockMovement.id",
    )

    unit_cost = rupee_property("unit_cost_paise")

    @property
    def total_value_paise(self) -> int:
        return (self.current_stock or 0) * (self.unit_cost_paise or 0)

    total_value = rupee_property("total_value_paise")

    @property
    def product_name(self):
        return self.product.name if self.product else None

    def refresh_available(self):
        self.available_stock = (self.current_stock or 0) - (self.reserved_stock or 0)


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    inventory_id = Column(Integer, ForeignKey("inventory.id"), nullable=False, index=True)
    movement_type = Column(Enum(MovementType), nullable=False)
    quantity = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reason = Column(String, nullable=True)
    remarks = Column(Text, nullable=True)
    reference_type = Column(String, nullable=True)
    reference_id = Column(Integer, nullable=True)
    reference_number = Column(String, nullable=True)
    # Set on outward movements that record consumption at a hospital
    hospital_id = Column(Integer, ForeignKey("hospitals.id"), nullable=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=True)
    patient_name = Column(String, nullable=True)
    case_number = Column(String, nullable=True)
    movement_by = Column(String, nullable=False)
    movement_date = Column(DateTime(timezone=True), default=now_local)

    inventory = relationship("Inventory", back_populates="movements")
