from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from schemas.InventoryItemSchemas import LowStockItemOut
from schemas.InventoryMovementSchemas import MovementOut


class StockVarianceRow(BaseModel):
    item_id: int
    sku: str
    name: str
    snapshot_quantity: int
    ledger_quantity: int
    variance: int
    chain_intact: bool
    movement_count: int


class StockAgingRow(BaseModel):
    item_id: int
    sku: str
    name: str
    quantity_in_stock: int
    last_movement_date: Optional[datetime] = None
    idle_days: Optional[int] = None


class MovementSummary(BaseModel):
    total_movements: int = 0
    stock_in: int = 0
    stock_out: int = 0
    adjustments: int = 0
    total_in_quantity: int = 0
    total_out_quantity: int = 0
    total_in_value: float = 0
    total_out_value: float = 0


class MonthlyMovementReport(BaseModel):
    period: str
    summary: MovementSummary
    movements: List[MovementOut]
    total: int
    page: int
    limit: int
    total_pages: int
    generated_at: datetime


class MovingItem(BaseModel):
    item_id: int
    sku: str
    name: str
    total_quantity: int


class MonthlyTrend(BaseModel):
    month: str
    stock_in: int
    stock_out: int


class CategoryDistribution(BaseModel):
    category_id: int
    category_name: str
    item_count: int
    total_quantity: int
    total_value: float


class AnalyticsDashboard(BaseModel):
    period: str
    top_moving_items: List[MovingItem]
    low_stock_alerts: List[LowStockItemOut]
    monthly_trends: List[MonthlyTrend]
    category_distribution: List[CategoryDistribution]
    recent_activities: List[MovementOut]
    generated_at: datetime
