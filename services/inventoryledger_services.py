from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select, desc, asc
from sqlalchemy.orm import Session, joinedload

from exceptions import NotFoundError, ValidationError
from models.InventoryItem import InventoryItem
from models.InventoryMovement import InventoryMovement, MovementTypeEnum
from utils import page_offset


def movement_date_range(date_from: Optional[date] = None, date_to: Optional[date] = None) -> list:
    """Inclusive whole-day bounds on ``movement_date``."""
    criteria = []
    if date_from:
        criteria.append(InventoryMovement.movement_date >= datetime.combine(date_from, time.min))
    if date_to:
        criteria.append(InventoryMovement.movement_date <= datetime.combine(date_to, time.max))
    return criteria


@dataclass
class LedgerReplay:
    """Entries of one item in commit order plus the result of walking the chain."""
    item_id: int
    entries: List[InventoryMovement] = field(default_factory=list)
    chain_intact: bool = True
    final_quantity: int = 0


class MovementLedger:
    """Append-only access to the movement ledger. Nothing here updates or deletes rows."""

    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        item_id: int,
        user_id: int,
        movement_type: MovementTypeEnum,
        quantity: int,
        quantity_before: int,
        quantity_after: int,
        unit_cost: Optional[Decimal] = None,
        reference_number: Optional[str] = None,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        location_from: Optional[str] = None,
        location_to: Optional[str] = None,
    ) -> InventoryMovement:
        if self.db.get(InventoryItem, item_id) is None:
            raise NotFoundError(f"Inventory item {item_id} not found")

        if quantity_before < 0 or quantity_after < 0:
            raise ValidationError("Movement quantities cannot be negative")

        if quantity_after - quantity_before != quantity:
            raise ValidationError(
                f"Movement delta {quantity} does not match {quantity_before} -> {quantity_after}"
            )

        if movement_type == MovementTypeEnum.IN and quantity <= 0:
            raise ValidationError("An 'in' movement must increase stock")
        if movement_type == MovementTypeEnum.OUT and quantity >= 0:
            raise ValidationError("An 'out' movement must decrease stock")

        entry = InventoryMovement(
            item_id=item_id,
            user_id=user_id,
            movement_type=movement_type,
            quantity=quantity,
            quantity_before=quantity_before,
            quantity_after=quantity_after,
            unit_cost=unit_cost,
            reference_number=reference_number,
            reason=reason,
            notes=notes,
            location_from=location_from,
            location_to=location_to,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def _get_last_ledger_entry(self, item_id: int) -> Optional[InventoryMovement]:
        """Most recently committed entry for an item."""
        query = (
            select(InventoryMovement)
            .where(InventoryMovement.item_id == item_id)
            .order_by(desc(InventoryMovement.id))
            .limit(1)
        )
        return self.db.execute(query).scalar_one_or_none()

    def get_current_stock(self, item_id: int) -> int:
        last_entry = self._get_last_ledger_entry(item_id)
        return last_entry.quantity_after if last_entry else 0

    def list_by_item(
        self,
        item_id: int,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[InventoryItem, List[InventoryMovement], int]:
        item = self.db.get(InventoryItem, item_id)
        if item is None:
            raise NotFoundError("Inventory item not found")

        rows, total = self.list_all(item_id=item_id, page=page, limit=limit)
        return item, rows, total

    def list_all(
        self,
        item_id: Optional[int] = None,
        movement_type: Optional[MovementTypeEnum] = None,
        user_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        limit: Optional[int] = 10,
    ) -> Tuple[List[InventoryMovement], int]:
        query = self.db.query(InventoryMovement)

        if item_id:
            query = query.filter(InventoryMovement.item_id == item_id)
        if movement_type:
            query = query.filter(InventoryMovement.movement_type == movement_type)
        if user_id:
            query = query.filter(InventoryMovement.user_id == user_id)
        query = query.filter(*movement_date_range(date_from, date_to))

        total = query.count()

        query = (
            query.options(
                joinedload(InventoryMovement.item_rel),
                joinedload(InventoryMovement.user_rel),
            )
            .order_by(desc(InventoryMovement.movement_date), asc(InventoryMovement.id))
        )
        if limit:
            query = query.offset(page_offset(page, limit)).limit(limit)

        return query.all(), total

    def replay(self, item_id: int, initial_quantity: int = 0) -> LedgerReplay:
        """Walk an item's entries in commit order and check each links to the previous."""
        entries = list(
            self.db.execute(
                select(InventoryMovement)
                .where(InventoryMovement.item_id == item_id)
                .order_by(asc(InventoryMovement.id))
            ).scalars().all()
        )

        result = LedgerReplay(item_id=item_id, entries=entries, final_quantity=initial_quantity)
        expected_before = initial_quantity
        for entry in entries:
            if (entry.quantity_before != expected_before
                    or entry.quantity_after != entry.quantity_before + entry.quantity
                    or entry.quantity_after < 0):
                result.chain_intact = False
            expected_before = entry.quantity_after

        result.final_quantity = expected_before
        return result
