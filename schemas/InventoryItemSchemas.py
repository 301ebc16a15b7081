from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, Field, StringConstraints, model_validator

from models.InventoryItem import MAX_STOCK_QUANTITY, ItemConditionEnum, ItemStatusEnum
from models.InventoryMovement import MovementTypeEnum
from schemas.CategorySchemas import CategorySummary
from schemas.InventoryMovementSchemas import MovementOut
from schemas.SupplierSchemas import SupplierSummary

Sku = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]


class ItemFields(BaseModel):
    description: Optional[str] = Field(None, max_length=1000)
    supplier_id: Optional[int] = Field(None, gt=0)
    brand: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    purchase_price: Optional[float] = Field(None, ge=0)
    selling_price: Optional[float] = Field(None, ge=0)
    minimum_stock: Optional[int] = Field(None, ge=0, le=MAX_STOCK_QUANTITY)
    maximum_stock: Optional[int] = Field(None, ge=0, le=MAX_STOCK_QUANTITY)
    unit: Optional[str] = Field(None, max_length=20)
    location: Optional[str] = Field(None, max_length=100)
    barcode: Optional[str] = Field(None, max_length=100)
    qr_code: Optional[str] = Field(None, max_length=100)
    serial_number: Optional[str] = Field(None, max_length=100)
    condition: Optional[ItemConditionEnum] = None
    status: Optional[ItemStatusEnum] = None
    image_url: Optional[str] = Field(None, max_length=500)
    specifications: Optional[Dict[str, Any]] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_stock_bounds(self):
        if (self.maximum_stock is not None and self.minimum_stock is not None
                and self.maximum_stock < self.minimum_stock):
            raise ValueError("maximum_stock must be greater than or equal to minimum_stock")
        return self


class ItemCreate(ItemFields):
    sku: Sku
    name: str = Field(..., min_length=2, max_length=200)
    category_id: int = Field(..., gt=0)
    # Seeds an initial "in" movement when greater than zero
    quantity_in_stock: int = Field(0, ge=0, le=MAX_STOCK_QUANTITY)


class ItemUpdate(ItemFields):
    sku: Optional[Sku] = None
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    category_id: Optional[int] = Field(None, gt=0)
    # Accepted only so it can be rejected with a clear message
    quantity_in_stock: Optional[int] = None


class ItemOut(BaseModel):
    id: int
    sku: str
    name: str
    description: Optional[str] = None
    category_id: int
    supplier_id: Optional[int] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    purchase_price: float = 0
    selling_price: float = 0
    quantity_in_stock: int
    minimum_stock: int
    maximum_stock: Optional[int] = None
    unit: str
    location: Optional[str] = None
    barcode: Optional[str] = None
    qr_code: Optional[str] = None
    serial_number: Optional[str] = None
    condition: ItemConditionEnum
    status: ItemStatusEnum
    image_url: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    category_rel: Optional[CategorySummary] = None
    supplier_rel: Optional[SupplierSummary] = None

    class Config:
        from_attributes = True


class LowStockItemOut(ItemOut):
    shortage: int


class ItemStockSummary(BaseModel):
    id: int
    sku: str
    name: str
    current_stock: int


class StockAdjustmentRequest(BaseModel):
    # Magnitude for in/out, absolute target for adjustment
    quantity: int = Field(..., ge=-MAX_STOCK_QUANTITY, le=MAX_STOCK_QUANTITY)
    movement_type: MovementTypeEnum
    reason: str = Field(..., min_length=1, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)
    unit_cost: Optional[float] = Field(None, ge=0)
    reference_number: Optional[str] = Field(None, max_length=50)


class StockAdjustmentOut(BaseModel):
    item: ItemOut
    movement: MovementOut
    previous_stock: int
    new_stock: int
    adjustment: int


class ItemMovementsOut(BaseModel):
    item: ItemStockSummary
    movements: List[MovementOut]
    total: int
    page: int
    limit: int
    total_pages: int
