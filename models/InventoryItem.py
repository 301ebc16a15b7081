import enum

from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Text, DateTime, Enum, JSON, CheckConstraint
from sqlalchemy.orm import relationship

from database import Base
from utils import get_local_now

# Upper bound of the Integer stock columns (int4)
MAX_STOCK_QUANTITY = 2_147_483_647


class ItemConditionEnum(str, enum.Enum):
    NEW = "new"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    DAMAGED = "damaged"


class ItemStatusEnum(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)

    category_id = Column(Integer, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True)

    brand = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    purchase_price = Column(Numeric(15, 2), default=0, nullable=False)
    selling_price = Column(Numeric(15, 2), default=0, nullable=False)

    # Snapshot of the ledger; only the stock adjustment path writes it
    quantity_in_stock = Column(Integer, default=0, nullable=False, index=True)
    minimum_stock = Column(Integer, default=0, nullable=False)
    maximum_stock = Column(Integer, nullable=True)

    unit = Column(String(20), default="pcs", nullable=False)
    location = Column(String(100), nullable=True)
    barcode = Column(String(100), nullable=True, index=True)
    qr_code = Column(String(100), nullable=True, index=True)
    serial_number = Column(String(100), nullable=True)
    condition = Column(Enum(ItemConditionEnum), default=ItemConditionEnum.NEW, nullable=False)
    status = Column(Enum(ItemStatusEnum), default=ItemStatusEnum.ACTIVE, nullable=False, index=True)
    image_url = Column(String(500), nullable=True)
    specifications = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=get_local_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=get_local_now, onupdate=get_local_now, nullable=False)

    category_rel = relationship("Category")
    supplier_rel = relationship("Supplier")

    __table_args__ = (
        CheckConstraint("quantity_in_stock >= 0", name="ck_inventory_items_stock_non_negative"),
    )
