from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_actor, get_event_publisher
from models.GoodOutRequest import GoodOutStatusEnum
from schemas.GoodOutRequestSchemas import (
    GoodOutRequestCreate,
    GoodOutRequestOut,
    GoodOutRequestReject,
    PendingCountOut,
)
from schemas.PaginatedResponseSchemas import ApiResponse, PaginatedResponse
from schemas.UserSchemas import Actor
from services.event_publisher import EventPublisher
from services.good_out_request_services import GoodOutRequestService
from utils import total_pages

router = APIRouter()


@router.get("", response_model=PaginatedResponse[GoodOutRequestOut])
def get_good_out_requests(
        request_status: Optional[GoodOutStatusEnum] = Query(None, alias="status"),
        requested_by: Optional[int] = None,
        item_id: Optional[int] = None,
        my_requests: bool = False,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=1000),
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    rows, total = GoodOutRequestService(db).list(
        actor,
        status=request_status,
        requested_by=requested_by,
        item_id=item_id,
        my_requests=my_requests,
        page=page,
        limit=limit,
    )
    return {
        "message": "Good out requests retrieved successfully",
        "data": rows,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages(total, limit),
    }


@router.post("", response_model=ApiResponse[GoodOutRequestOut], status_code=status.HTTP_201_CREATED)
def create_good_out_request(
        payload: GoodOutRequestCreate,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
        publisher: EventPublisher = Depends(get_event_publisher),
):
    request = GoodOutRequestService(db, publisher).create(actor, payload)
    return {"message": "Good out request created successfully", "data": request}


@router.get("/pending/count", response_model=ApiResponse[PendingCountOut])
def get_pending_count(
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    count = GoodOutRequestService(db).pending_count(actor)
    return {"message": "Pending count retrieved successfully", "data": {"pending_count": count}}


@router.get("/{request_id}", response_model=ApiResponse[GoodOutRequestOut])
def get_good_out_request(
        request_id: int,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    request = GoodOutRequestService(db).get(actor, request_id)
    return {"message": "Good out request retrieved successfully", "data": request}


@router.put("/{request_id}/approve", response_model=ApiResponse[GoodOutRequestOut])
def approve_good_out_request(
        request_id: int,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
        publisher: EventPublisher = Depends(get_event_publisher),
):
    request = GoodOutRequestService(db, publisher).approve(actor, request_id)
    return {"message": "Good out request approved successfully", "data": request}


@router.put("/{request_id}/reject", response_model=ApiResponse[GoodOutRequestOut])
def reject_good_out_request(
        request_id: int,
        payload: Optional[GoodOutRequestReject] = None,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
        publisher: EventPublisher = Depends(get_event_publisher),
):
    reason = payload.rejection_reason if payload else None
    request = GoodOutRequestService(db, publisher).reject(actor, request_id, reason)
    return {"message": "Good out request rejected successfully", "data": request}


@router.delete("/{request_id}", response_model=ApiResponse[GoodOutRequestOut])
def cancel_good_out_request(
        request_id: int,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
        publisher: EventPublisher = Depends(get_event_publisher),
):
    request = GoodOutRequestService(db, publisher).cancel(actor, request_id)
    return {"message": "Good out request cancelled successfully", "data": request}
