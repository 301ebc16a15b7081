import enum

from sqlalchemy import Column, Integer, String, DateTime, Text, Enum

from database import Base
from utils import get_local_now


class AuditEntityEnum(enum.Enum):
    ITEM = "ITEM"
    STOCK_MOVEMENT = "STOCK_MOVEMENT"
    GOOD_OUT_REQUEST = "GOOD_OUT_REQUEST"
    CATEGORY = "CATEGORY"
    SUPPLIER = "SUPPLIER"


class AuditTrail(Base):
    __tablename__ = "audit_trails"

    id = Column(Integer, primary_key=True, index=True)
    entity_id = Column(String(100), nullable=False, index=True)  # ID of the thing being tracked
    entity_type = Column(Enum(AuditEntityEnum), nullable=False, index=True)
    description = Column(Text, nullable=False)  # What happened (human-readable)
    user_name = Column(String(100), nullable=False)  # Who did it
    timestamp = Column(DateTime(timezone=True), default=get_local_now, nullable=False)
