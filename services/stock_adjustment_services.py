"""
Stock adjustment: the only code path that changes ``quantity_in_stock``.

A stock change is expressed as one of three movement kinds. ``StockIn`` and
``StockOut`` carry a magnitude; ``StockAdjustment`` carries the new absolute
level. ``apply_stock_change`` performs read, compute, ledger append and
snapshot write inside the caller's transaction, so the goods-out approval
path can compose it with its own status change.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from exceptions import InsufficientStockError, NotFoundError, StaleWriteError, ValidationError
from models.AuditTrail import AuditEntityEnum
from models.InventoryItem import MAX_STOCK_QUANTITY, InventoryItem
from models.InventoryMovement import InventoryMovement, MovementTypeEnum
from permissions import Action, authorize
from schemas.InventoryItemSchemas import ItemOut, StockAdjustmentOut, StockAdjustmentRequest
from schemas.InventoryMovementSchemas import MovementOut
from schemas.UserSchemas import Actor
from services.audit_services import AuditService
from services.event_publisher import EventPublisher, INVENTORY_UPDATE, publish_safely
from services.inventoryledger_services import MovementLedger
from services.unit_of_work import run_in_transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockIn:
    quantity: int
    movement_type: ClassVar[MovementTypeEnum] = MovementTypeEnum.IN

    def resolve(self, before: int) -> int:
        after = before + abs(self.quantity)
        if after > MAX_STOCK_QUANTITY:
            raise ValidationError(f"Stock level cannot exceed {MAX_STOCK_QUANTITY}")
        return after


@dataclass(frozen=True)
class StockOut:
    quantity: int
    movement_type: ClassVar[MovementTypeEnum] = MovementTypeEnum.OUT

    def resolve(self, before: int) -> int:
        after = before - abs(self.quantity)
        if after < 0:
            raise InsufficientStockError(available=before, requested=abs(self.quantity))
        return after


@dataclass(frozen=True)
class StockAdjustment:
    target: int
    movement_type: ClassVar[MovementTypeEnum] = MovementTypeEnum.ADJUSTMENT

    def resolve(self, before: int) -> int:
        if self.target < 0:
            raise ValidationError("Adjusted stock level cannot be negative")
        if self.target > MAX_STOCK_QUANTITY:
            raise ValidationError(f"Stock level cannot exceed {MAX_STOCK_QUANTITY}")
        return self.target


def movement_kind(movement_type: MovementTypeEnum, quantity: int):
    """Map the wire form (type + number) onto a movement kind."""
    if movement_type == MovementTypeEnum.ADJUSTMENT:
        return StockAdjustment(target=quantity)

    if movement_type not in (MovementTypeEnum.IN, MovementTypeEnum.OUT):
        raise ValidationError(f"Movement type '{movement_type.value}' cannot be used to adjust stock")
    if quantity == 0:
        raise ValidationError("Quantity must not be zero")

    if movement_type == MovementTypeEnum.IN:
        return StockIn(quantity=abs(quantity))
    return StockOut(quantity=abs(quantity))


@dataclass
class StockChange:
    item: InventoryItem
    movement: InventoryMovement
    previous_stock: int
    new_stock: int

    @property
    def adjustment(self) -> int:
        return self.new_stock - self.previous_stock


def _lock_item(db: Session, item_id: int) -> InventoryItem:
    item = (
        db.query(InventoryItem)
        .filter(InventoryItem.id == item_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not item:
        raise NotFoundError("Inventory item not found")
    return item


def _write_snapshot(db: Session, item_id: int, before: int, after: int) -> None:
    """Compare-and-swap the registry snapshot from ``before`` to ``after``."""
    result = db.execute(
        update(InventoryItem)
        .where(InventoryItem.id == item_id, InventoryItem.quantity_in_stock == before)
        .values(quantity_in_stock=after)
    )
    if result.rowcount != 1:
        raise StaleWriteError(f"Stock of item {item_id} changed from {before} while it was being written")


def apply_stock_change(
        db: Session,
        item_id: int,
        kind,
        actor: Actor,
        reason: str,
        notes: Optional[str] = None,
        unit_cost: Optional[Decimal] = None,
        reference_number: Optional[str] = None,
) -> StockChange:
    """Read, compute, append and write one stock change. Caller owns the transaction."""
    item = _lock_item(db, item_id)
    before = item.quantity_in_stock
    after = kind.resolve(before)

    movement = MovementLedger(db).append(
        item_id=item.id,
        user_id=actor.id,
        movement_type=kind.movement_type,
        quantity=after - before,
        quantity_before=before,
        quantity_after=after,
        unit_cost=unit_cost,
        reference_number=reference_number,
        reason=reason,
        notes=notes,
    )

    _write_snapshot(db, item.id, before, after)

    AuditService(db).default_log(
        entity_id=item.id,
        entity_type=AuditEntityEnum.STOCK_MOVEMENT,
        description=f"Stock of {item.sku} ({item.name}) {kind.movement_type.value}: {before} -> {after}. Reason: {reason}",
        user_name=actor.username,
    )

    logger.info("Stock %s item=%s %s -> %s by user=%s",
                kind.movement_type.value, item.id, before, after, actor.id)
    return StockChange(item=item, movement=movement, previous_stock=before, new_stock=after)


def stock_change_out(change: StockChange) -> StockAdjustmentOut:
    return StockAdjustmentOut(
        item=ItemOut.model_validate(change.item),
        movement=MovementOut.model_validate(change.movement),
        previous_stock=change.previous_stock,
        new_stock=change.new_stock,
        adjustment=change.adjustment,
    )


class StockAdjustmentService:

    def __init__(self, db: Session, publisher: Optional[EventPublisher] = None):
        self.db = db
        self.publisher = publisher

    def adjust_stock(self, actor: Actor, item_id: int, payload: StockAdjustmentRequest) -> StockAdjustmentOut:
        authorize(actor, Action.STOCK_ADJUST)

        if not payload.reason or not payload.reason.strip():
            raise ValidationError("Reason is required")
        kind = movement_kind(payload.movement_type, payload.quantity)
        unit_cost = Decimal(str(payload.unit_cost)) if payload.unit_cost is not None else None

        change = run_in_transaction(
            self.db,
            lambda db: apply_stock_change(
                db,
                item_id,
                kind,
                actor,
                reason=payload.reason.strip(),
                notes=payload.notes,
                unit_cost=unit_cost,
                reference_number=payload.reference_number,
            ),
        )

        result = stock_change_out(change)
        publish_safely(self.publisher, INVENTORY_UPDATE, {
            "action": "stock_adjustment",
            "item": result.item.model_dump(mode="json"),
            "movement": result.movement.model_dump(mode="json"),
        })
        return result
