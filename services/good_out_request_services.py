"""
Goods-out workflow: technicians ask for stock, admins and managers decide.

``pending`` moves to ``approved`` or ``rejected`` and nowhere else. Approval
takes the stock out through ``apply_stock_change`` in the same transaction
as the status change, so a request is never approved without its ``out``
movement and vice versa.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from exceptions import InsufficientStockError, InvalidStateError, NotFoundError, StaleWriteError, ValidationError
from models.AuditTrail import AuditEntityEnum
from models.GoodOutRequest import GoodOutRequest, GoodOutStatusEnum
from models.InventoryItem import InventoryItem
from permissions import Action, authorize, can
from schemas.GoodOutRequestSchemas import GoodOutRequestCreate, GoodOutRequestOut
from schemas.InventoryMovementSchemas import MovementOut
from schemas.UserSchemas import Actor
from services.audit_services import AuditService
from services.event_publisher import (
    EventPublisher,
    GOOD_OUT_REQUEST_APPROVED,
    GOOD_OUT_REQUEST_CREATED,
    GOOD_OUT_REQUEST_REJECTED,
    publish_safely,
)
from services.stock_adjustment_services import StockOut, apply_stock_change
from services.unit_of_work import run_in_transaction, unit_of_work
from utils import get_local_now, page_offset

logger = logging.getLogger(__name__)

NO_REASON = "No reason provided"
CANCELLED_REASON = "Cancelled by requester"


class GoodOutRequestService:

    def __init__(self, db: Session, publisher: Optional[EventPublisher] = None):
        self.db = db
        self.publisher = publisher

    def _load(self, request_id: int) -> GoodOutRequest:
        request = (
            self.db.query(GoodOutRequest)
            .options(
                joinedload(GoodOutRequest.item_rel),
                joinedload(GoodOutRequest.requester_rel),
                joinedload(GoodOutRequest.approver_rel),
            )
            .filter(GoodOutRequest.id == request_id)
            .populate_existing()
            .first()
        )
        if not request:
            raise NotFoundError("Good out request not found")
        return request

    def _lock(self, db: Session, request_id: int) -> GoodOutRequest:
        request = (
            db.query(GoodOutRequest)
            .filter(GoodOutRequest.id == request_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not request:
            raise NotFoundError("Good out request not found")
        if request.status != GoodOutStatusEnum.PENDING:
            raise InvalidStateError(f"Request has already been {request.status.value}")
        return request

    def _transition(self, db: Session, request_id: int, status: GoodOutStatusEnum, actor: Actor,
                    rejection_reason: Optional[str] = None) -> None:
        """Move a request out of ``pending``; fails if another decision got there first."""
        result = db.execute(
            update(GoodOutRequest)
            .where(GoodOutRequest.id == request_id, GoodOutRequest.status == GoodOutStatusEnum.PENDING)
            .values(
                status=status,
                approved_by=actor.id,
                approved_at=get_local_now(),
                rejection_reason=rejection_reason,
            )
        )
        if result.rowcount != 1:
            raise StaleWriteError(f"Good out request {request_id} was decided concurrently")

    def _out(self, request_id: int) -> GoodOutRequestOut:
        return GoodOutRequestOut.model_validate(self._load(request_id))

    def get(self, actor: Actor, request_id: int) -> GoodOutRequest:
        request = self._load(request_id)
        authorize(actor, Action.GOOD_OUT_READ, request)
        return request

    def list(
            self,
            actor: Actor,
            status: Optional[GoodOutStatusEnum] = None,
            requested_by: Optional[int] = None,
            item_id: Optional[int] = None,
            my_requests: bool = False,
            page: int = 1,
            limit: int = 10,
    ) -> Tuple[List[GoodOutRequest], int]:
        query = self.db.query(GoodOutRequest)

        if my_requests or not can(actor, Action.GOOD_OUT_READ_ALL):
            query = query.filter(GoodOutRequest.requested_by == actor.id)
        elif requested_by:
            query = query.filter(GoodOutRequest.requested_by == requested_by)

        if status:
            query = query.filter(GoodOutRequest.status == status)
        if item_id:
            query = query.filter(GoodOutRequest.item_id == item_id)

        total = query.count()
        rows = (
            query.options(
                joinedload(GoodOutRequest.item_rel),
                joinedload(GoodOutRequest.requester_rel),
                joinedload(GoodOutRequest.approver_rel),
            )
            .order_by(GoodOutRequest.requested_at.desc(), GoodOutRequest.id.desc())
            .offset(page_offset(page, limit))
            .limit(limit)
            .all()
        )
        return rows, total

    def pending_count(self, actor: Actor) -> int:
        authorize(actor, Action.GOOD_OUT_PENDING_COUNT)
        return (
            self.db.query(GoodOutRequest)
            .filter(GoodOutRequest.status == GoodOutStatusEnum.PENDING)
            .count()
        )

    def create(self, actor: Actor, payload: GoodOutRequestCreate) -> GoodOutRequestOut:
        authorize(actor, Action.GOOD_OUT_CREATE)

        errors = []
        if payload.quantity <= 0:
            errors.append("quantity: must be greater than 0")
        if not payload.usage_description or not payload.usage_description.strip():
            errors.append("usage_description: is required")
        if errors:
            raise ValidationError("Invalid data", errors=errors)

        item = self.db.get(InventoryItem, payload.item_id)
        if item is None:
            raise NotFoundError("Inventory item not found")

        # Re-checked at approval
        if item.quantity_in_stock < payload.quantity:
            raise InsufficientStockError(available=item.quantity_in_stock, requested=payload.quantity)

        notes = None
        if payload.customer_location and payload.customer_location.strip():
            notes = f"Location: {payload.customer_location.strip()}"

        with unit_of_work(self.db):
            request = GoodOutRequest(
                item_id=item.id,
                requested_by=actor.id,
                quantity=payload.quantity,
                reason=f"Installation - {payload.usage_description.strip()}",
                notes=notes,
                customer_info=payload.customer_info,
                status=GoodOutStatusEnum.PENDING,
            )
            self.db.add(request)
            self.db.flush()

            AuditService(self.db).default_log(
                entity_id=request.id,
                entity_type=AuditEntityEnum.GOOD_OUT_REQUEST,
                description=f"Good out request for {payload.quantity} x {item.sku} created",
                user_name=actor.username,
            )

        logger.info("Good out request %s created by user=%s", request.id, actor.id)
        result = self._out(request.id)
        publish_safely(self.publisher, GOOD_OUT_REQUEST_CREATED, {
            "action": "create",
            "request": result.model_dump(mode="json"),
        })
        return result

    def approve(self, actor: Actor, request_id: int) -> GoodOutRequestOut:
        authorize(actor, Action.GOOD_OUT_APPROVE)

        def work(db: Session):
            request = self._lock(db, request_id)
            requester = request.requester_rel.username if request.requester_rel else request.requested_by

            change = apply_stock_change(
                db,
                request.item_id,
                StockOut(quantity=request.quantity),
                actor,
                reason=f"Good out approved - {request.reason}",
                notes=f"Good out request #{request.id} by {requester}",
                reference_number=f"REQ-{request.id}",
            )
            self._transition(db, request.id, GoodOutStatusEnum.APPROVED, actor)

            AuditService(db).default_log(
                entity_id=request.id,
                entity_type=AuditEntityEnum.GOOD_OUT_REQUEST,
                description=f"Good out request approved, stock {change.previous_stock} -> {change.new_stock}",
                user_name=actor.username,
            )
            return change

        change = run_in_transaction(self.db, work)

        logger.info("Good out request %s approved by user=%s", request_id, actor.id)
        result = self._out(request_id)
        publish_safely(self.publisher, GOOD_OUT_REQUEST_APPROVED, {
            "action": "approve",
            "request": result.model_dump(mode="json"),
            "movement": MovementOut.model_validate(change.movement).model_dump(mode="json"),
        })
        return result

    def _decline(self, actor: Actor, request_id: int, reason: str, action: str) -> GoodOutRequestOut:
        def work(db: Session):
            request = self._lock(db, request_id)
            self._transition(db, request.id, GoodOutStatusEnum.REJECTED, actor, rejection_reason=reason)
            AuditService(db).default_log(
                entity_id=request.id,
                entity_type=AuditEntityEnum.GOOD_OUT_REQUEST,
                description=f"Good out request {action}: {reason}",
                user_name=actor.username,
            )

        run_in_transaction(self.db, work)

        logger.info("Good out request %s %s by user=%s", request_id, action, actor.id)
        result = self._out(request_id)
        publish_safely(self.publisher, GOOD_OUT_REQUEST_REJECTED, {
            "action": action,
            "request": result.model_dump(mode="json"),
        })
        return result

    def reject(self, actor: Actor, request_id: int, rejection_reason: Optional[str] = None) -> GoodOutRequestOut:
        authorize(actor, Action.GOOD_OUT_REJECT)
        reason = (rejection_reason or "").strip() or NO_REASON
        return self._decline(actor, request_id, reason, "reject")

    def cancel(self, actor: Actor, request_id: int) -> GoodOutRequestOut:
        request = self._load(request_id)
        authorize(actor, Action.GOOD_OUT_CANCEL, request)
        return self._decline(actor, request_id, CANCELLED_REASON, "cancel")
