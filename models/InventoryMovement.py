import enum

from sqlalchemy import (
    Column, Integer, Numeric, String, Text, DateTime, ForeignKey,
    Enum as SAEnum, Index, event,
)
from sqlalchemy.orm import relationship

from database import Base
from exceptions import LedgerImmutableError
from utils import get_local_now


class MovementTypeEnum(str, enum.Enum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"


class InventoryMovement(Base):
    """One append-only ledger row; ``quantity_after = quantity_before + quantity``."""

    __tablename__ = "inventory_movements"

    id = Column(Integer, primary_key=True, autoincrement=True)

    item_id = Column(Integer, ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    movement_type = Column(SAEnum(MovementTypeEnum), nullable=False, index=True)

    quantity = Column(Integer, nullable=False)
    quantity_before = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False)

    unit_cost = Column(Numeric(15, 2), nullable=True)
    reference_number = Column(String(50), nullable=True, index=True)
    location_from = Column(String(100), nullable=True)
    location_to = Column(String(100), nullable=True)
    reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    movement_date = Column(DateTime(timezone=True), default=get_local_now, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=get_local_now, nullable=False)

    item_rel = relationship("InventoryItem")
    user_rel = relationship("User")

    __table_args__ = (
        Index("ix_movements_item_date_id", "item_id", "movement_date", "id"),
    )


@event.listens_for(InventoryMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise LedgerImmutableError(f"Inventory movement {target.id} cannot be modified")


@event.listens_for(InventoryMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise LedgerImmutableError(f"Inventory movement {target.id} cannot be deleted")
