import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from exceptions import ConflictError, NotFoundError, TransactionError, ValidationError
from models.AuditTrail import AuditEntityEnum
from models.Category import Category
from models.GoodOutRequest import GoodOutRequest
from models.InventoryItem import InventoryItem, ItemConditionEnum, ItemStatusEnum
from models.InventoryMovement import InventoryMovement, MovementTypeEnum
from models.Supplier import Supplier
from permissions import Action, authorize
from schemas.InventoryItemSchemas import ItemCreate, ItemOut, ItemUpdate
from schemas.UserSchemas import Actor
from services.audit_services import AuditService
from services.event_publisher import EventPublisher, INVENTORY_UPDATE, publish_safely
from services.inventoryledger_services import MovementLedger
from services.unit_of_work import unit_of_work
from utils import page_offset

logger = logging.getLogger(__name__)

# Columns a patch may not null out
REQUIRED_FIELDS = {
    "sku", "name", "category_id", "purchase_price", "selling_price",
    "minimum_stock", "unit", "condition", "status",
}

PRICE_FIELDS = {"purchase_price", "selling_price"}


def _as_decimal(data: Dict[str, Any]) -> Dict[str, Any]:
    for field in PRICE_FIELDS:
        if data.get(field) is not None:
            data[field] = Decimal(str(data[field]))
    return data


class ItemRegistryService:
    """Item identity and the quantity snapshot. Quantity itself only moves through stock adjustment."""

    def __init__(self, db: Session, publisher: Optional[EventPublisher] = None):
        self.db = db
        self.publisher = publisher
        self.audit_service = AuditService(db)

    def _sku_taken(self, sku: str, exclude_id: Optional[int] = None) -> bool:
        query = self.db.query(InventoryItem.id).filter(InventoryItem.sku == sku)
        if exclude_id is not None:
            query = query.filter(InventoryItem.id != exclude_id)
        return query.first() is not None

    def _check_references(self, category_id: Optional[int], supplier_id: Optional[int]) -> None:
        if category_id is not None and self.db.get(Category, category_id) is None:
            raise ValidationError("Category not found", errors=[f"category_id: {category_id} does not exist"])
        if supplier_id is not None and self.db.get(Supplier, supplier_id) is None:
            raise ValidationError("Supplier not found", errors=[f"supplier_id: {supplier_id} does not exist"])

    def _publish(self, action: str, item: Dict[str, Any]) -> None:
        publish_safely(self.publisher, INVENTORY_UPDATE, {"action": action, "item": item})

    def get(self, item_id: int) -> InventoryItem:
        item = (
            self.db.query(InventoryItem)
            .options(joinedload(InventoryItem.category_rel), joinedload(InventoryItem.supplier_rel))
            .filter(InventoryItem.id == item_id)
            .first()
        )
        if not item:
            raise NotFoundError("Inventory item not found")
        return item

    def list(
            self,
            search: Optional[str] = None,
            category_id: Optional[int] = None,
            supplier_id: Optional[int] = None,
            status: Optional[ItemStatusEnum] = ItemStatusEnum.ACTIVE,
            condition: Optional[ItemConditionEnum] = None,
            low_stock: bool = False,
            page: int = 1,
            limit: int = 10,
    ) -> Tuple[List[InventoryItem], int]:
        query = self.db.query(InventoryItem)

        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                InventoryItem.name.ilike(pattern),
                InventoryItem.sku.ilike(pattern),
                InventoryItem.barcode.ilike(pattern),
            ))
        if category_id:
            query = query.filter(InventoryItem.category_id == category_id)
        if supplier_id:
            query = query.filter(InventoryItem.supplier_id == supplier_id)
        if status:
            query = query.filter(InventoryItem.status == status)
        if condition:
            query = query.filter(InventoryItem.condition == condition)
        if low_stock:
            query = query.filter(InventoryItem.quantity_in_stock <= InventoryItem.minimum_stock)

        total = query.count()
        items = (
            query.options(joinedload(InventoryItem.category_rel), joinedload(InventoryItem.supplier_rel))
            .order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
            .offset(page_offset(page, limit))
            .limit(limit)
            .all()
        )
        return items, total

    def create(self, actor: Actor, payload: ItemCreate) -> ItemOut:
        authorize(actor, Action.ITEM_CREATE)

        data = _as_decimal(payload.model_dump(exclude_none=True))
        initial_stock = data.pop("quantity_in_stock", 0)

        if self._sku_taken(data["sku"]):
            raise ConflictError("SKU already exists")
        self._check_references(data.get("category_id"), data.get("supplier_id"))

        try:
            with unit_of_work(self.db):
                item = InventoryItem(**data, quantity_in_stock=initial_stock)
                self.db.add(item)
                self.db.flush()

                if initial_stock > 0:
                    MovementLedger(self.db).append(
                        item_id=item.id,
                        user_id=actor.id,
                        movement_type=MovementTypeEnum.IN,
                        quantity=initial_stock,
                        quantity_before=0,
                        quantity_after=initial_stock,
                        unit_cost=item.purchase_price,
                        reason="Initial stock",
                    )

                self.audit_service.default_log(
                    entity_id=item.id,
                    entity_type=AuditEntityEnum.ITEM,
                    description=f"Item {item.sku} ({item.name}) created with stock {initial_stock}",
                    user_name=actor.username,
                )
        except TransactionError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise ConflictError("SKU already exists") from exc
            raise

        logger.info("Item %s created by user=%s (initial stock %s)", item.id, actor.id, initial_stock)
        result = ItemOut.model_validate(self.get(item.id))
        self._publish("create", result.model_dump(mode="json"))
        return result

    def update(self, actor: Actor, item_id: int, payload: ItemUpdate) -> ItemOut:
        authorize(actor, Action.ITEM_UPDATE)

        data = payload.model_dump(exclude_unset=True)
        if "quantity_in_stock" in data:
            raise ValidationError(
                "quantity_in_stock cannot be updated directly, use the stock adjustment endpoint",
                errors=["quantity_in_stock: use POST /inventory/{id}/adjust-stock"],
            )

        nulled = sorted(field for field in REQUIRED_FIELDS if field in data and data[field] is None)
        if nulled:
            raise ValidationError("Required fields cannot be empty", errors=[f"{f}: may not be null" for f in nulled])

        item = self.get(item_id)

        if "sku" in data and data["sku"] != item.sku and self._sku_taken(data["sku"], exclude_id=item.id):
            raise ConflictError("SKU already exists")

        self._check_references(data.get("category_id"), data.get("supplier_id"))

        minimum = data.get("minimum_stock", item.minimum_stock)
        maximum = data.get("maximum_stock", item.maximum_stock)
        if maximum is not None and minimum is not None and maximum < minimum:
            raise ValidationError("maximum_stock must be greater than or equal to minimum_stock")

        with unit_of_work(self.db):
            for field, value in _as_decimal(data).items():
                setattr(item, field, value)

            self.audit_service.default_log(
                entity_id=item.id,
                entity_type=AuditEntityEnum.ITEM,
                description=f"Item {item.sku} updated: {', '.join(sorted(data)) or 'no changes'}",
                user_name=actor.username,
            )

        result = ItemOut.model_validate(self.get(item_id))
        self._publish("update", result.model_dump(mode="json"))
        return result

    def delete(self, actor: Actor, item_id: int) -> None:
        """Hard delete; the item's movements and goods-out requests go with it."""
        authorize(actor, Action.ITEM_DELETE)

        item = self.get(item_id)
        summary = {"id": item.id, "sku": item.sku, "name": item.name}

        with unit_of_work(self.db):
            self.db.execute(delete(GoodOutRequest).where(GoodOutRequest.item_id == item.id))
            removed = self.db.execute(
                delete(InventoryMovement).where(InventoryMovement.item_id == item.id)
            ).rowcount
            self.db.delete(item)

            self.audit_service.default_log(
                entity_id=summary["id"],
                entity_type=AuditEntityEnum.ITEM,
                description=f"Item {summary['sku']} ({summary['name']}) deleted with {removed} movements",
                user_name=actor.username,
            )

        logger.info("Item %s deleted by user=%s", summary["id"], actor.id)
        self._publish("delete", summary)
