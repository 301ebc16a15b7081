import pydantic
import pytest

from exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from models.GoodOutRequest import GoodOutRequest
from models.InventoryItem import InventoryItem, ItemStatusEnum
from models.InventoryMovement import InventoryMovement, MovementTypeEnum
from schemas.GoodOutRequestSchemas import GoodOutRequestCreate
from schemas.InventoryItemSchemas import ItemCreate, ItemOut, ItemUpdate
from services.event_publisher import INVENTORY_UPDATE, InMemoryEventPublisher
from services.good_out_request_services import GoodOutRequestService
from services.item_registry_services import ItemRegistryService


def _movements(db, item_id):
    return db.query(InventoryMovement).filter(InventoryMovement.item_id == item_id).order_by(InventoryMovement.id).all()


def test_create_seeds_initial_movement(db, users, category, supplier):
    sink = InMemoryEventPublisher()
    item = ItemRegistryService(db, sink).create(users["admin"], ItemCreate(
        sku="OLT-001", name="OLT Chassis", category_id=category, supplier_id=supplier,
        purchase_price=1500000, quantity_in_stock=4,
    ))

    assert item.quantity_in_stock == 4
    assert item.category_rel.code == "NET"
    assert item.supplier_rel.code == "KBN"

    movements = _movements(db, item.id)
    assert len(movements) == 1
    entry = movements[0]
    assert entry.movement_type == MovementTypeEnum.IN
    assert (entry.quantity_before, entry.quantity_after, entry.quantity) == (0, 4, 4)
    assert entry.reason == "Initial stock"
    assert float(entry.unit_cost) == 1500000

    assert sink.events[0][0] == INVENTORY_UPDATE
    assert sink.events[0][1]["action"] == "create"


def test_create_without_stock_has_no_movement(db, users, make_item):
    item = make_item(quantity=0)
    assert _movements(db, item.id) == []


def test_duplicate_sku_conflicts_and_keeps_first_item(db, users, make_item, category):
    first = make_item(quantity=3, sku="CAB-100")
    with pytest.raises(ConflictError):
        make_item(quantity=9, sku="CAB-100")

    db.expire_all()
    assert db.query(InventoryItem).filter(InventoryItem.sku == "CAB-100").count() == 1
    assert db.get(InventoryItem, first.id).quantity_in_stock == 3


def test_unknown_references_are_validation_errors(db, users, make_item):
    with pytest.raises(ValidationError):
        make_item(category_id=999)
    with pytest.raises(ValidationError):
        make_item(supplier_id=999)
    assert db.query(InventoryItem).count() == 0


def test_update_rejects_quantity(db, users, make_item):
    item = make_item(quantity=3)
    with pytest.raises(ValidationError):
        ItemRegistryService(db).update(users["admin"], item.id, ItemUpdate(quantity_in_stock=50))

    db.expire_all()
    assert db.get(InventoryItem, item.id).quantity_in_stock == 3


def test_update_changes_fields_and_sku(db, users, make_item):
    item = make_item(quantity=3)
    updated = ItemRegistryService(db).update(
        users["manager"], item.id, ItemUpdate(sku="ONT-NEW", name="ONT Dual Band", location="Gudang B"),
    )
    assert updated.sku == "ONT-NEW"
    assert updated.name == "ONT Dual Band"
    assert updated.location == "Gudang B"
    assert updated.quantity_in_stock == 3


def test_update_sku_to_existing_conflicts(db, users, make_item):
    make_item(sku="SKU-A")
    second = make_item(sku="SKU-B")
    with pytest.raises(ConflictError):
        ItemRegistryService(db).update(users["admin"], second.id, ItemUpdate(sku="SKU-A"))


def test_update_checks_stock_bounds_against_stored_values(db, users, make_item):
    item = make_item(minimum_stock=5)
    with pytest.raises(ValidationError):
        ItemRegistryService(db).update(users["admin"], item.id, ItemUpdate(maximum_stock=2))


def test_update_missing_item(db, users):
    with pytest.raises(NotFoundError):
        ItemRegistryService(db).update(users["admin"], 777, ItemUpdate(name="Nothing"))


def test_delete_cascades_movements_and_requests(db, users, make_item):
    item = make_item(quantity=5)
    GoodOutRequestService(db).create(
        users["teknisi"], GoodOutRequestCreate(item_id=item.id, quantity=1, usage_description="Pole 3"),
    )
    sink = InMemoryEventPublisher()

    ItemRegistryService(db, sink).delete(users["admin"], item.id)

    db.expire_all()
    assert db.get(InventoryItem, item.id) is None
    assert _movements(db, item.id) == []
    assert db.query(GoodOutRequest).filter(GoodOutRequest.item_id == item.id).count() == 0
    assert sink.events == [(INVENTORY_UPDATE, {"action": "delete", "item": {"id": item.id, "sku": item.sku, "name": item.name}})]

    with pytest.raises(NotFoundError):
        ItemRegistryService(db).delete(users["admin"], item.id)


def test_registry_writes_need_elevated_role(db, users, make_item, category):
    item = make_item()
    service = ItemRegistryService(db)
    with pytest.raises(PermissionDeniedError):
        service.create(users["teknisi"], ItemCreate(sku="X-1", name="Splitter", category_id=category))
    with pytest.raises(PermissionDeniedError):
        service.update(users["sales"], item.id, ItemUpdate(name="Renamed"))
    with pytest.raises(PermissionDeniedError):
        service.delete(users["teknisi"], item.id)


def test_list_filters(db, users, make_item):
    make_item(name="Fiber Patch Cord", sku="FPC-1", quantity=1, minimum_stock=5)
    make_item(name="Media Converter", sku="MC-1", quantity=20, minimum_stock=5)
    make_item(name="Old Modem", sku="MDM-1", status=ItemStatusEnum.DISCONTINUED)

    service = ItemRegistryService(db)

    items, total = service.list()
    assert total == 2
    assert [i.name for i in items] == ["Fiber Patch Cord", "Media Converter"]

    items, total = service.list(search="fpc")
    assert total == 1 and items[0].sku == "FPC-1"

    items, total = service.list(low_stock=True)
    assert [i.sku for i in items] == ["FPC-1"]

    items, total = service.list(status=None)
    assert total == 3


def test_get_is_idempotent(db, users, make_item):
    item = make_item(quantity=2)
    service = ItemRegistryService(db)

    first = ItemOut.model_validate(service.get(item.id))
    second = ItemOut.model_validate(service.get(item.id))
    assert first == second


def test_sku_is_stripped_and_blank_sku_rejected(db, users, make_item, category):
    item = make_item(sku="  ODP-16  ")
    assert item.sku == "ODP-16"

    with pytest.raises(pydantic.ValidationError):
        ItemCreate(sku="   ", name="Blank SKU", category_id=category)
    with pytest.raises(pydantic.ValidationError):
        ItemUpdate(sku=" x ")

    updated = ItemRegistryService(db).update(users["admin"], item.id, ItemUpdate(sku=" ODP-8 "))
    assert updated.sku == "ODP-8"
