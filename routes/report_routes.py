from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_actor
from permissions import Action, authorize
from schemas.PaginatedResponseSchemas import ApiResponse
from schemas.ReportSchemas import AnalyticsDashboard, MonthlyMovementReport, StockAgingRow, StockVarianceRow
from schemas.UserSchemas import Actor
from services.report_services import ReportService

router = APIRouter()


@router.get("/stock-variance", response_model=ApiResponse[List[StockVarianceRow]])
def get_stock_variance(
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    """Items whose quantity snapshot does not match their movement history."""
    authorize(actor, Action.REPORT_READ)
    rows = ReportService(db).stock_variance()
    message = "Stock matches movement history" if not rows else f"{len(rows)} items out of balance"
    return {"message": message, "data": rows}


@router.get("/stock-aging", response_model=ApiResponse[List[StockAgingRow]])
def get_stock_aging(
        min_idle_days: int = Query(0, ge=0),
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    authorize(actor, Action.REPORT_READ)
    rows = ReportService(db).stock_aging(min_idle_days=min_idle_days)
    return {"message": "Stock aging retrieved successfully", "data": rows}


@router.get("/monthly-movements", response_model=ApiResponse[MonthlyMovementReport])
def get_monthly_movements(
        year: Optional[int] = Query(None, ge=2000, le=9999),
        month: Optional[int] = Query(None, ge=1, le=12),
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=500),
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    """Movements of one calendar month (current month by default) with in/out totals."""
    authorize(actor, Action.REPORT_READ)
    report = ReportService(db).monthly_movements(year=year, month=month, page=page, limit=limit)
    return {"message": f"Movement report for {report.period}", "data": report}


@router.get("/dashboard", response_model=ApiResponse[AnalyticsDashboard])
def get_analytics_dashboard(
        period_days: int = Query(30, ge=1, le=366),
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    authorize(actor, Action.REPORT_READ)
    dashboard = ReportService(db).analytics_dashboard(period_days=period_days)
    return {"message": "Analytics dashboard generated successfully", "data": dashboard}
