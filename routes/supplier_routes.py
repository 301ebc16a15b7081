from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_actor
from exceptions import ConflictError, NotFoundError
from models.AuditTrail import AuditEntityEnum
from models.InventoryItem import InventoryItem
from models.Supplier import Supplier
from permissions import Action, authorize
from schemas.PaginatedResponseSchemas import ApiResponse, PaginatedResponse
from schemas.SupplierSchemas import SupplierCreate, SupplierOut, SupplierUpdate
from schemas.UserSchemas import Actor
from services.audit_services import AuditService
from services.unit_of_work import unit_of_work
from utils import page_offset, total_pages

router = APIRouter()


def _get_supplier_or_404(db: Session, supplier_id: int) -> Supplier:
    supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not supplier:
        raise NotFoundError("Supplier not found")
    return supplier


def _ensure_code_free(db: Session, code: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Supplier.id).filter(Supplier.code == code)
    if exclude_id is not None:
        query = query.filter(Supplier.id != exclude_id)
    if query.first():
        raise ConflictError("Supplier code already exists")


@router.get("", response_model=PaginatedResponse[SupplierOut])
def get_all_suppliers(
        is_active: Optional[bool] = None,
        search_key: Optional[str] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=1000),
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    query = db.query(Supplier)

    if is_active is not None:
        query = query.filter(Supplier.is_active == is_active)

    if search_key:
        query = query.filter(or_(
            Supplier.name.ilike(f"%{search_key}%"),
            Supplier.code.ilike(f"%{search_key}%"),
            Supplier.contact_person.ilike(f"%{search_key}%"),
        ))

    total = query.count()
    data = query.order_by(Supplier.name).offset(page_offset(page, limit)).limit(limit).all()

    return {
        "data": data,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages(total, limit),
    }


@router.get("/{supplier_id}", response_model=ApiResponse[SupplierOut])
def get_supplier(
        supplier_id: int,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    return {"data": _get_supplier_or_404(db, supplier_id)}


@router.post("", response_model=ApiResponse[SupplierOut], status_code=status.HTTP_201_CREATED)
def create_supplier(
        supplier_data: SupplierCreate,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    authorize(actor, Action.MASTER_DATA_MANAGE)
    _ensure_code_free(db, supplier_data.code)

    with unit_of_work(db):
        supplier = Supplier(**supplier_data.model_dump())
        db.add(supplier)
        db.flush()
        AuditService(db).default_log(
            entity_id=supplier.id,
            entity_type=AuditEntityEnum.SUPPLIER,
            description=f"Supplier {supplier.code} ({supplier.name}) created",
            user_name=actor.username,
        )

    db.refresh(supplier)
    return {"message": "Supplier created successfully", "data": supplier}


@router.put("/{supplier_id}", response_model=ApiResponse[SupplierOut])
def update_supplier(
        supplier_id: int,
        supplier_data: SupplierUpdate,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    authorize(actor, Action.MASTER_DATA_MANAGE)
    supplier = _get_supplier_or_404(db, supplier_id)

    changes = supplier_data.model_dump(exclude_unset=True)
    for required in ("name", "code", "is_active"):
        if required in changes and changes[required] is None:
            changes.pop(required)
    if "code" in changes:
        _ensure_code_free(db, changes["code"], exclude_id=supplier.id)

    with unit_of_work(db):
        for field, value in changes.items():
            setattr(supplier, field, value)
        AuditService(db).default_log(
            entity_id=supplier.id,
            entity_type=AuditEntityEnum.SUPPLIER,
            description=f"Supplier {supplier.code} updated",
            user_name=actor.username,
        )

    db.refresh(supplier)
    return {"message": "Supplier updated successfully", "data": supplier}


@router.delete("/{supplier_id}", response_model=ApiResponse)
def delete_supplier(
        supplier_id: int,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    authorize(actor, Action.MASTER_DATA_MANAGE)
    supplier = _get_supplier_or_404(db, supplier_id)

    in_use = db.query(InventoryItem.id).filter(InventoryItem.supplier_id == supplier.id).count()
    if in_use:
        raise ConflictError(f"Supplier is used by {in_use} inventory items")

    with unit_of_work(db):
        db.delete(supplier)
        AuditService(db).default_log(
            entity_id=supplier_id,
            entity_type=AuditEntityEnum.SUPPLIER,
            description=f"Supplier {supplier.code} deleted",
            user_name=actor.username,
        )

    return {"message": "Supplier deleted successfully"}
