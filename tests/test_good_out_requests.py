import pytest
from sqlalchemy import func

from exceptions import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from models.GoodOutRequest import GoodOutRequest, GoodOutStatusEnum
from models.InventoryItem import InventoryItem
from models.InventoryMovement import InventoryMovement, MovementTypeEnum
from schemas.GoodOutRequestSchemas import GoodOutRequestCreate
from schemas.InventoryItemSchemas import StockAdjustmentRequest
from services.event_publisher import (
    GOOD_OUT_REQUEST_APPROVED,
    GOOD_OUT_REQUEST_CREATED,
    GOOD_OUT_REQUEST_REJECTED,
    InMemoryEventPublisher,
)
from services.good_out_request_services import GoodOutRequestService
from services.stock_adjustment_services import StockAdjustmentService


def _stock(db, item_id):
    db.expire_all()
    return db.get(InventoryItem, item_id).quantity_in_stock


def _out_movements(db, item_id):
    return (
        db.query(InventoryMovement)
        .filter(InventoryMovement.item_id == item_id, InventoryMovement.movement_type == MovementTypeEnum.OUT)
        .order_by(InventoryMovement.id)
        .all()
    )


def _create(service, actor, item_id, quantity, usage="ODP installation", location=None):
    return service.create(actor, GoodOutRequestCreate(
        item_id=item_id, quantity=quantity, usage_description=usage, customer_location=location,
    ))


def test_full_lifecycle(db, users, make_item):
    item = make_item(quantity=5)
    sink = InMemoryEventPublisher()
    service = GoodOutRequestService(db, sink)

    request = _create(service, users["teknisi"], item.id, 3, location="Jl. Sudirman 1")
    assert request.status == GoodOutStatusEnum.PENDING
    assert request.reason == "Installation - ODP installation"
    assert request.notes == "Location: Jl. Sudirman 1"
    assert _stock(db, item.id) == 5
    assert _out_movements(db, item.id) == []

    approved = service.approve(users["manager"], request.id)
    assert approved.status == GoodOutStatusEnum.APPROVED
    assert approved.approved_by == users["manager"].id
    assert approved.approved_at is not None
    assert _stock(db, item.id) == 2

    outs = _out_movements(db, item.id)
    assert len(outs) == 1
    assert (outs[0].quantity_before, outs[0].quantity_after, outs[0].quantity) == (5, 2, -3)
    assert outs[0].reference_number == f"REQ-{request.id}"
    assert outs[0].reason == "Good out approved - Installation - ODP installation"
    assert outs[0].user_id == users["manager"].id

    with pytest.raises(InvalidStateError):
        service.approve(users["admin"], request.id)
    assert len(_out_movements(db, item.id)) == 1

    assert sink.names() == [GOOD_OUT_REQUEST_CREATED, GOOD_OUT_REQUEST_APPROVED]


def test_soft_check_at_creation(db, users, make_item):
    item = make_item(quantity=2)
    with pytest.raises(InsufficientStockError):
        _create(GoodOutRequestService(db), users["teknisi"], item.id, 10)
    assert db.query(func.count(GoodOutRequest.id)).scalar() == 0


def test_approval_rechecks_stock_and_leaves_request_pending(db, users, make_item):
    item = make_item(quantity=10)
    service = GoodOutRequestService(db)
    request = _create(service, users["teknisi"], item.id, 8)

    StockAdjustmentService(db).adjust_stock(
        users["admin"], item.id, StockAdjustmentRequest(movement_type="adjustment", quantity=2, reason="Damaged units"),
    )

    with pytest.raises(InsufficientStockError) as exc_info:
        service.approve(users["admin"], request.id)
    assert exc_info.value.available == 2
    assert exc_info.value.requested == 8

    db.expire_all()
    assert db.get(GoodOutRequest, request.id).status == GoodOutStatusEnum.PENDING
    assert _stock(db, item.id) == 2
    assert _out_movements(db, item.id) == []


def test_rejection_leaves_no_trace(db, users, make_item):
    item = make_item(quantity=5)
    sink = InMemoryEventPublisher()
    service = GoodOutRequestService(db, sink)
    request = _create(service, users["teknisi"], item.id, 2)

    rejected = service.reject(users["admin"], request.id, "out of budget")

    assert rejected.status == GoodOutStatusEnum.REJECTED
    assert rejected.rejection_reason == "out of budget"
    assert rejected.approved_by == users["admin"].id
    assert _stock(db, item.id) == 5
    assert _out_movements(db, item.id) == []
    assert sink.names()[-1] == GOOD_OUT_REQUEST_REJECTED

    with pytest.raises(InvalidStateError):
        service.approve(users["admin"], request.id)
    with pytest.raises(InvalidStateError):
        service.reject(users["admin"], request.id, "again")


def test_blank_rejection_reason_gets_default(db, users, make_item):
    item = make_item(quantity=5)
    service = GoodOutRequestService(db)
    request = _create(service, users["teknisi"], item.id, 1)

    rejected = service.reject(users["manager"], request.id, "  ")
    assert rejected.rejection_reason == "No reason provided"


def test_cancel_by_requester(db, users, make_item):
    item = make_item(quantity=5)
    service = GoodOutRequestService(db)
    request = _create(service, users["teknisi"], item.id, 1)

    with pytest.raises(PermissionDeniedError):
        service.cancel(users["teknisi2"], request.id)
    with pytest.raises(PermissionDeniedError):
        service.cancel(users["admin"], request.id)

    cancelled = service.cancel(users["teknisi"], request.id)
    assert cancelled.status == GoodOutStatusEnum.REJECTED
    assert cancelled.rejection_reason == "Cancelled by requester"
    assert cancelled.approved_by == users["teknisi"].id

    with pytest.raises(InvalidStateError):
        service.cancel(users["teknisi"], request.id)


def test_create_validation(db, users, make_item):
    item = make_item(quantity=5)
    service = GoodOutRequestService(db)

    with pytest.raises(ValidationError):
        _create(service, users["teknisi"], item.id, 0)
    with pytest.raises(ValidationError):
        _create(service, users["teknisi"], item.id, 1, usage="   ")
    with pytest.raises(NotFoundError):
        _create(service, users["teknisi"], 4040, 1)
    with pytest.raises(PermissionDeniedError):
        _create(service, users["admin"], item.id, 1)


def test_only_elevated_roles_decide(db, users, make_item):
    item = make_item(quantity=5)
    service = GoodOutRequestService(db)
    request = _create(service, users["teknisi"], item.id, 1)

    for username in ("teknisi", "sales"):
        with pytest.raises(PermissionDeniedError):
            service.approve(users[username], request.id)
        with pytest.raises(PermissionDeniedError):
            service.reject(users[username], request.id, "no")


def test_unknown_request(db, users):
    with pytest.raises(NotFoundError):
        GoodOutRequestService(db).approve(users["admin"], 12345)


def test_reads_are_scoped_to_requester(db, users, make_item):
    item = make_item(quantity=10)
    service = GoodOutRequestService(db)
    mine = _create(service, users["teknisi"], item.id, 1)
    _create(service, users["teknisi2"], item.id, 1)

    rows, total = service.list(users["teknisi"])
    assert total == 1 and rows[0].id == mine.id

    rows, total = service.list(users["admin"])
    assert total == 2

    assert service.get(users["teknisi"], mine.id).id == mine.id
    with pytest.raises(PermissionDeniedError):
        service.get(users["teknisi2"], mine.id)

    assert service.pending_count(users["manager"]) == 2
    with pytest.raises(PermissionDeniedError):
        service.pending_count(users["teknisi"])


def test_approval_rolls_back_when_status_write_fails(db, users, make_item, monkeypatch):
    item = make_item(quantity=5)
    service = GoodOutRequestService(db)
    request = _create(service, users["teknisi"], item.id, 2)

    def broken_transition(*args, **kwargs):
        raise RuntimeError("lost connection")

    monkeypatch.setattr(service, "_transition", broken_transition)

    with pytest.raises(RuntimeError):
        service.approve(users["admin"], request.id)

    db.expire_all()
    assert db.get(GoodOutRequest, request.id).status == GoodOutStatusEnum.PENDING
    assert _stock(db, item.id) == 5
    assert _out_movements(db, item.id) == []
