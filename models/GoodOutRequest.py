import enum

from sqlalchemy import Column, Integer, String, Text, JSON, DateTime, ForeignKey, Enum, CheckConstraint
from sqlalchemy.orm import relationship

from database import Base
from utils import get_local_now


class GoodOutStatusEnum(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    # No operation moves a request here yet
    COMPLETED = "completed"


class GoodOutRequest(Base):
    __tablename__ = "good_out_requests"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True)
    requested_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    quantity = Column(Integer, nullable=False)
    reason = Column(String(500), nullable=False)
    notes = Column(Text, nullable=True)
    customer_info = Column(JSON, nullable=True)

    status = Column(Enum(GoodOutStatusEnum), default=GoodOutStatusEnum.PENDING, nullable=False, index=True)
    rejection_reason = Column(String(500), nullable=True)

    requested_at = Column(DateTime(timezone=True), default=get_local_now, nullable=False, index=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=get_local_now, onupdate=get_local_now, nullable=False)

    item_rel = relationship("InventoryItem")
    requester_rel = relationship("User", foreign_keys=[requested_by])
    approver_rel = relationship("User", foreign_keys=[approved_by])

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_good_out_requests_quantity_positive"),
    )
