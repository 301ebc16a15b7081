from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_actor
from exceptions import ConflictError, NotFoundError
from models.AuditTrail import AuditEntityEnum
from models.Category import Category
from models.InventoryItem import InventoryItem
from permissions import Action, authorize
from schemas.CategorySchemas import CategoryCreate, CategoryOut, CategoryUpdate
from schemas.PaginatedResponseSchemas import ApiResponse, PaginatedResponse
from schemas.UserSchemas import Actor
from services.audit_services import AuditService
from services.unit_of_work import unit_of_work
from utils import page_offset, total_pages

router = APIRouter()


def _get_category_or_404(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFoundError("Category not found")
    return category


def _ensure_code_free(db: Session, code: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Category.id).filter(Category.code == code)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ConflictError("Category code already exists")


@router.get("", response_model=PaginatedResponse[CategoryOut])
def get_all_categories(
        is_active: Optional[bool] = None,
        search_key: Optional[str] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=1000),
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    query = db.query(Category)

    if is_active is not None:
        query = query.filter(Category.is_active == is_active)

    if search_key:
        query = query.filter(Category.name.ilike(f"%{search_key}%"))

    total = query.count()
    data = query.order_by(Category.name).offset(page_offset(page, limit)).limit(limit).all()

    return {
        "data": data,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages(total, limit),
    }


@router.get("/{category_id}", response_model=ApiResponse[CategoryOut])
def get_category(
        category_id: int,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    return {"data": _get_category_or_404(db, category_id)}


@router.post("", response_model=ApiResponse[CategoryOut], status_code=status.HTTP_201_CREATED)
def create_category(
        category_data: CategoryCreate,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    authorize(actor, Action.MASTER_DATA_MANAGE)
    _ensure_code_free(db, category_data.code)

    with unit_of_work(db):
        category = Category(**category_data.model_dump())
        db.add(category)
        db.flush()
        AuditService(db).default_log(
            entity_id=category.id,
            entity_type=AuditEntityEnum.CATEGORY,
            description=f"Category {category.code} created",
            user_name=actor.username,
        )

    db.refresh(category)
    return {"message": "Category created successfully", "data": category}


@router.put("/{category_id}", response_model=ApiResponse[CategoryOut])
def update_category(
        category_id: int,
        category_data: CategoryUpdate,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    authorize(actor, Action.MASTER_DATA_MANAGE)
    category = _get_category_or_404(db, category_id)

    changes = category_data.model_dump(exclude_unset=True, exclude_none=True)
    if "code" in changes:
        _ensure_code_free(db, changes["code"], exclude_id=category.id)

    with unit_of_work(db):
        for field, value in changes.items():
            setattr(category, field, value)
        AuditService(db).default_log(
            entity_id=category.id,
            entity_type=AuditEntityEnum.CATEGORY,
            description=f"Category {category.code} updated",
            user_name=actor.username,
        )

    db.refresh(category)
    return {"message": "Category updated successfully", "data": category}


@router.delete("/{category_id}", response_model=ApiResponse)
def delete_category(
        category_id: int,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    authorize(actor, Action.MASTER_DATA_MANAGE)
    category = _get_category_or_404(db, category_id)

    in_use = db.query(InventoryItem.id).filter(InventoryItem.category_id == category.id).count()
    if in_use:
        raise ConflictError(f"Category is used by {in_use} inventory items")

    with unit_of_work(db):
        db.delete(category)
        AuditService(db).default_log(
            entity_id=category_id,
            entity_type=AuditEntityEnum.CATEGORY,
            description=f"Category {category.code} deleted",
            user_name=actor.username,
        )

    return {"message": "Category deleted successfully"}
