from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from models.GoodOutRequest import GoodOutStatusEnum
from models.InventoryItem import MAX_STOCK_QUANTITY
from schemas.UserSchemas import UserSummary


class GoodOutRequestCreate(BaseModel):
    item_id: int = Field(..., gt=0)
    quantity: int = Field(1, le=MAX_STOCK_QUANTITY)
    usage_description: str = Field(..., max_length=400)
    customer_location: Optional[str] = Field(None, max_length=400)
    customer_info: Optional[Dict[str, Any]] = None


class GoodOutRequestReject(BaseModel):
    rejection_reason: Optional[str] = Field(None, max_length=500)


class GoodOutItemSummary(BaseModel):
    id: int
    sku: str
    name: str
    quantity_in_stock: int
    location: Optional[str] = None

    class Config:
        from_attributes = True


class GoodOutRequestOut(BaseModel):
    id: int
    item_id: int
    requested_by: int
    approved_by: Optional[int] = None
    quantity: int
    reason: str
    notes: Optional[str] = None
    customer_info: Optional[Dict[str, Any]] = None
    status: GoodOutStatusEnum
    rejection_reason: Optional[str] = None
    requested_at: datetime
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    item_rel: Optional[GoodOutItemSummary] = None
    requester_rel: Optional[UserSummary] = None
    approver_rel: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class PendingCountOut(BaseModel):
    pending_count: int
