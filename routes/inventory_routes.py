from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from starlette.responses import StreamingResponse

from database import get_db
from dependencies import get_current_actor, get_event_publisher
from models.InventoryItem import ItemConditionEnum, ItemStatusEnum
from models.InventoryMovement import MovementTypeEnum
from permissions import Action, authorize
from schemas.InventoryItemSchemas import (
    ItemCreate,
    ItemMovementsOut,
    ItemOut,
    ItemStockSummary,
    ItemUpdate,
    LowStockItemOut,
    StockAdjustmentOut,
    StockAdjustmentRequest,
)
from schemas.InventoryMovementSchemas import MovementOut, MovementStatsOut
from schemas.PaginatedResponseSchemas import ApiResponse, PaginatedResponse
from schemas.UserSchemas import Actor
from services.event_publisher import EventPublisher
from services.inventoryledger_services import MovementLedger
from services.item_registry_services import ItemRegistryService
from services.report_services import ReportService
from services.stock_adjustment_services import StockAdjustmentService
from utils import total_pages

router = APIRouter()


@router.get("", response_model=PaginatedResponse[ItemOut])
def get_inventory_items(
        search: Optional[str] = Query(None, description="Name, SKU or barcode"),
        category_id: Optional[int] = None,
        supplier_id: Optional[int] = None,
        item_status: Optional[ItemStatusEnum] = Query(ItemStatusEnum.ACTIVE, alias="status"),
        condition: Optional[ItemConditionEnum] = None,
        low_stock: bool = False,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=1000),
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    items, total = ItemRegistryService(db).list(
        search=search,
        category_id=category_id,
        supplier_id=supplier_id,
        status=item_status,
        condition=condition,
        low_stock=low_stock,
        page=page,
        limit=limit,
    )
    return {
        "message": "Inventory items retrieved successfully",
        "data": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages(total, limit),
    }


@router.post("", response_model=ApiResponse[ItemOut], status_code=status.HTTP_201_CREATED)
def create_inventory_item(
        payload: ItemCreate,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
        publisher: EventPublisher = Depends(get_event_publisher),
):
    item = ItemRegistryService(db, publisher).create(actor, payload)
    return {"message": "Inventory item created successfully", "data": item}


@router.get("/low-stock", response_model=ApiResponse[List[LowStockItemOut]])
def get_low_stock_items(
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    rows = ReportService(db).low_stock()
    return {"message": f"{len(rows)} items at or below minimum stock", "data": rows}


@router.get("/movements", response_model=PaginatedResponse[MovementOut])
def get_all_movements(
        item_id: Optional[int] = None,
        movement_type: Optional[MovementTypeEnum] = None,
        user_id: Optional[int] = None,
        date_from: Optional[date] = Query(None, description="Filter by date"),
        date_to: Optional[date] = Query(None, description="Filter by date"),
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=1000),
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    rows, total = MovementLedger(db).list_all(
        item_id=item_id,
        movement_type=movement_type,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return {
        "message": "Movements retrieved successfully",
        "data": rows,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages(total, limit),
    }


@router.get("/movements/stats", response_model=ApiResponse[MovementStatsOut])
def get_movement_stats(
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    authorize(actor, Action.REPORT_READ)
    stats = ReportService(db).movement_stats(date_from=date_from, date_to=date_to)
    return {"message": "Movement statistics retrieved successfully", "data": stats}


@router.get("/movements/export")
def export_movements_to_excel(
        item_id: Optional[int] = None,
        movement_type: Optional[MovementTypeEnum] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    authorize(actor, Action.REPORT_READ)
    output = ReportService(db).export_movements(
        item_id=item_id,
        movement_type=movement_type,
        date_from=date_from,
        date_to=date_to,
    )

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"inventory_movements_{timestamp}.xlsx"
    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/{item_id}", response_model=ApiResponse[ItemOut])
def get_inventory_item(
        item_id: int,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    item = ItemRegistryService(db).get(item_id)
    return {"message": "Inventory item retrieved successfully", "data": item}


@router.put("/{item_id}", response_model=ApiResponse[ItemOut])
def update_inventory_item(
        item_id: int,
        payload: ItemUpdate,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
        publisher: EventPublisher = Depends(get_event_publisher),
):
    item = ItemRegistryService(db, publisher).update(actor, item_id, payload)
    return {"message": "Inventory item updated successfully", "data": item}


@router.delete("/{item_id}", response_model=ApiResponse)
def delete_inventory_item(
        item_id: int,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
        publisher: EventPublisher = Depends(get_event_publisher),
):
    ItemRegistryService(db, publisher).delete(actor, item_id)
    return {"message": "Inventory item deleted successfully"}


@router.post("/{item_id}/adjust-stock", response_model=ApiResponse[StockAdjustmentOut])
def adjust_item_stock(
        item_id: int,
        payload: StockAdjustmentRequest,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
        publisher: EventPublisher = Depends(get_event_publisher),
):
    result = StockAdjustmentService(db, publisher).adjust_stock(actor, item_id, payload)
    return {"message": "Stock adjusted successfully", "data": result}


@router.get("/{item_id}/movements", response_model=ApiResponse[ItemMovementsOut])
def get_item_movements(
        item_id: int,
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=1000),
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    item, rows, total = MovementLedger(db).list_by_item(item_id, page=page, limit=limit)
    data = ItemMovementsOut(
        item=ItemStockSummary(id=item.id, sku=item.sku, name=item.name, current_stock=item.quantity_in_stock),
        movements=[MovementOut.model_validate(row) for row in rows],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )
    return {"message": "Item movements retrieved successfully", "data": data}
