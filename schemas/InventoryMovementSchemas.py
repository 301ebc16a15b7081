from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from models.InventoryMovement import MovementTypeEnum
from schemas.UserSchemas import UserSummary


class MovementItemSummary(BaseModel):
    id: int
    sku: str
    name: str

    class Config:
        from_attributes = True


class MovementOut(BaseModel):
    id: int
    item_id: int
    user_id: int
    movement_type: MovementTypeEnum
    quantity: int
    quantity_before: int
    quantity_after: int
    unit_cost: Optional[float] = None
    reference_number: Optional[str] = None
    location_from: Optional[str] = None
    location_to: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    movement_date: datetime

    item_rel: Optional[MovementItemSummary] = None
    user_rel: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class TopMovedItem(BaseModel):
    item_id: int
    sku: str
    name: str
    movement_count: int


class RecentMovementCount(BaseModel):
    day: date
    movement_type: MovementTypeEnum
    count: int


class MovementStatsOut(BaseModel):
    movements_by_type: Dict[str, int]
    top_items: List[TopMovedItem]
    total_in_value: float
    total_out_value: float
    recent_movements: List[RecentMovementCount] = []
