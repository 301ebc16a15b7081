import calendar
import io
import logging
from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy import case, extract, func
from sqlalchemy.orm import Session

from exceptions import NotFoundError
from models.Category import Category
from models.InventoryItem import InventoryItem, ItemStatusEnum
from models.InventoryMovement import InventoryMovement, MovementTypeEnum
from schemas.InventoryItemSchemas import LowStockItemOut
from schemas.InventoryMovementSchemas import MovementOut, MovementStatsOut, RecentMovementCount, TopMovedItem
from schemas.ReportSchemas import (
    AnalyticsDashboard,
    CategoryDistribution,
    MonthlyMovementReport,
    MonthlyTrend,
    MovementSummary,
    MovingItem,
    StockAgingRow,
    StockVarianceRow,
)
from services.inventoryledger_services import MovementLedger, movement_date_range
from utils import as_naive_local, get_local_now, total_pages

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "Date", "SKU", "Item", "Type", "Quantity", "Before", "After",
    "Unit Cost", "Reference", "Reason", "Notes", "User",
]

RECENT_DAYS = 7
TREND_MONTHS = 6


def _count_of(movement_type: MovementTypeEnum):
    return func.coalesce(func.sum(case((InventoryMovement.movement_type == movement_type, 1), else_=0)), 0)


def _quantity_of(movement_type: MovementTypeEnum):
    return func.coalesce(func.sum(case(
        (InventoryMovement.movement_type == movement_type, func.abs(InventoryMovement.quantity)),
        else_=0,
    )), 0)


def _value_of(movement_type: MovementTypeEnum):
    return func.coalesce(func.sum(case(
        (InventoryMovement.movement_type == movement_type,
         func.abs(InventoryMovement.quantity) * func.coalesce(InventoryMovement.unit_cost, 0)),
        else_=0,
    )), 0)


def _today() -> date:
    return as_naive_local(get_local_now()).date()


class ReportService:
    """Read-only views over the registry and the ledger.

    Totals are aggregated in the database; only bounded result sets (a page,
    a top-N list, one row per group) are loaded into Python.
    """

    def __init__(self, db: Session):
        self.db = db
        self.ledger = MovementLedger(db)

    def low_stock(self) -> List[LowStockItemOut]:
        items = (
            self.db.query(InventoryItem)
            .filter(
                InventoryItem.status == ItemStatusEnum.ACTIVE,
                InventoryItem.quantity_in_stock <= InventoryItem.minimum_stock,
            )
            .order_by(InventoryItem.quantity_in_stock.asc(), InventoryItem.name.asc())
            .all()
        )
        result = []
        for item in items:
            row = LowStockItemOut.model_validate(
                {**_item_fields(item), "shortage": item.minimum_stock - item.quantity_in_stock}
            )
            result.append(row)
        return result

    def movement_summary(self, date_from: Optional[date] = None, date_to: Optional[date] = None) -> MovementSummary:
        row = (
            self.db.query(
                func.count(InventoryMovement.id),
                _count_of(MovementTypeEnum.IN),
                _count_of(MovementTypeEnum.OUT),
                _count_of(MovementTypeEnum.ADJUSTMENT),
                _quantity_of(MovementTypeEnum.IN),
                _quantity_of(MovementTypeEnum.OUT),
                _value_of(MovementTypeEnum.IN),
                _value_of(MovementTypeEnum.OUT),
            )
            .filter(*movement_date_range(date_from, date_to))
            .one()
        )
        return MovementSummary(
            total_movements=row[0],
            stock_in=int(row[1]),
            stock_out=int(row[2]),
            adjustments=int(row[3]),
            total_in_quantity=int(row[4]),
            total_out_quantity=int(row[5]),
            total_in_value=round(float(row[6]), 2),
            total_out_value=round(float(row[7]), 2),
        )

    def movement_stats(self, date_from: Optional[date] = None, date_to: Optional[date] = None,
                       top: int = 10) -> MovementStatsOut:
        in_range = movement_date_range(date_from, date_to)

        by_type: Dict[str, int] = OrderedDict((t.value, 0) for t in MovementTypeEnum)
        counts = (
            self.db.query(InventoryMovement.movement_type, func.count(InventoryMovement.id))
            .filter(*in_range)
            .group_by(InventoryMovement.movement_type)
            .all()
        )
        for movement_type, count in counts:
            by_type[movement_type.value] = count

        movement_count = func.count(InventoryMovement.id).label("movement_count")
        top_rows = (
            self.db.query(InventoryItem.id, InventoryItem.sku, InventoryItem.name, movement_count)
            .join(InventoryMovement, InventoryMovement.item_id == InventoryItem.id)
            .filter(*in_range)
            .group_by(InventoryItem.id, InventoryItem.sku, InventoryItem.name)
            .order_by(movement_count.desc(), InventoryItem.id.asc())
            .limit(top)
            .all()
        )

        # Fixed window, independent of date_from/date_to
        day = func.date(InventoryMovement.movement_date)
        since = datetime.combine(_today() - timedelta(days=RECENT_DAYS), time.min)
        recent = (
            self.db.query(day, InventoryMovement.movement_type, func.count(InventoryMovement.id))
            .filter(InventoryMovement.movement_date >= since)
            .group_by(day, InventoryMovement.movement_type)
            .order_by(day.desc(), InventoryMovement.movement_type.asc())
            .all()
        )

        totals = self.db.query(_value_of(MovementTypeEnum.IN), _value_of(MovementTypeEnum.OUT)).filter(*in_range).one()

        return MovementStatsOut(
            movements_by_type=dict(by_type),
            recent_movements=[
                RecentMovementCount(day=value, movement_type=movement_type, count=count)
                for value, movement_type, count in recent
            ],
            top_items=[
                TopMovedItem(item_id=item_id, sku=sku, name=name, movement_count=count)
                for item_id, sku, name, count in top_rows
            ],
            total_in_value=round(float(totals[0]), 2),
            total_out_value=round(float(totals[1]), 2),
        )

    def monthly_movements(self, year: Optional[int] = None, month: Optional[int] = None,
                          page: int = 1, limit: int = 50) -> MonthlyMovementReport:
        today = _today()
        year = year or today.year
        month = month or today.month

        date_from = date(year, month, 1)
        date_to = date(year, month, calendar.monthrange(year, month)[1])

        movements, total = self.ledger.list_all(date_from=date_from, date_to=date_to, page=page, limit=limit)
        return MonthlyMovementReport(
            period=f"{year:04d}-{month:02d}",
            summary=self.movement_summary(date_from, date_to),
            movements=[MovementOut.model_validate(m) for m in movements],
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages(total, limit),
            generated_at=get_local_now(),
        )

    def analytics_dashboard(self, period_days: int = 30, top: int = 10) -> AnalyticsDashboard:
        today = _today()
        period_from = today - timedelta(days=period_days)

        moved = func.sum(func.abs(InventoryMovement.quantity)).label("total_quantity")
        top_moving = (
            self.db.query(InventoryItem.id, InventoryItem.sku, InventoryItem.name, moved)
            .join(InventoryMovement, InventoryMovement.item_id == InventoryItem.id)
            .filter(*movement_date_range(period_from))
            .group_by(InventoryItem.id, InventoryItem.sku, InventoryItem.name)
            .order_by(moved.desc(), InventoryItem.id.asc())
            .limit(top)
            .all()
        )

        trend_year, trend_month = today.year, today.month - (TREND_MONTHS - 1)
        while trend_month < 1:
            trend_year, trend_month = trend_year - 1, trend_month + 12
        year_part = extract("year", InventoryMovement.movement_date)
        month_part = extract("month", InventoryMovement.movement_date)
        trends = (
            self.db.query(year_part, month_part, _quantity_of(MovementTypeEnum.IN), _quantity_of(MovementTypeEnum.OUT))
            .filter(*movement_date_range(date(trend_year, trend_month, 1)))
            .group_by(year_part, month_part)
            .order_by(year_part.asc(), month_part.asc())
            .all()
        )

        total_value = func.coalesce(
            func.sum(InventoryItem.quantity_in_stock * InventoryItem.purchase_price), 0
        ).label("total_value")
        categories = (
            self.db.query(
                Category.id,
                Category.name,
                func.count(InventoryItem.id),
                func.coalesce(func.sum(InventoryItem.quantity_in_stock), 0),
                total_value,
            )
            .join(InventoryItem, InventoryItem.category_id == Category.id)
            .group_by(Category.id, Category.name)
            .order_by(total_value.desc(), Category.id.asc())
            .all()
        )

        recent, _ = self.ledger.list_all(limit=20)

        return AnalyticsDashboard(
            period=f"{period_days} days",
            top_moving_items=[
                MovingItem(item_id=item_id, sku=sku, name=name, total_quantity=int(quantity or 0))
                for item_id, sku, name, quantity in top_moving
            ],
            low_stock_alerts=self.low_stock(),
            monthly_trends=[
                MonthlyTrend(month=f"{int(y):04d}-{int(m):02d}", stock_in=int(stock_in), stock_out=int(stock_out))
                for y, m, stock_in, stock_out in trends
            ],
            category_distribution=[
                CategoryDistribution(
                    category_id=category_id,
                    category_name=name,
                    item_count=count,
                    total_quantity=int(quantity),
                    total_value=round(float(value), 2),
                )
                for category_id, name, count, quantity, value in categories
            ],
            recent_activities=[MovementOut.model_validate(m) for m in recent],
            generated_at=get_local_now(),
        )

    def stock_variance(self) -> List[StockVarianceRow]:
        """Items whose snapshot disagrees with their ledger. Empty when the books are consistent."""
        rows = []
        for item in self.db.query(InventoryItem).order_by(InventoryItem.id).all():
            replay = self.ledger.replay(item.id)
            variance = item.quantity_in_stock - replay.final_quantity
            if variance != 0 or not replay.chain_intact:
                logger.warning("Stock variance on item %s: snapshot=%s ledger=%s chain_intact=%s",
                               item.id, item.quantity_in_stock, replay.final_quantity, replay.chain_intact)
                rows.append(StockVarianceRow(
                    item_id=item.id,
                    sku=item.sku,
                    name=item.name,
                    snapshot_quantity=item.quantity_in_stock,
                    ledger_quantity=replay.final_quantity,
                    variance=variance,
                    chain_intact=replay.chain_intact,
                    movement_count=len(replay.entries),
                ))
        return rows

    def stock_aging(self, min_idle_days: int = 0) -> List[StockAgingRow]:
        last_moves = dict(
            self.db.query(InventoryMovement.item_id, func.max(InventoryMovement.movement_date))
            .group_by(InventoryMovement.item_id)
            .all()
        )
        now = as_naive_local(get_local_now())

        rows = []
        for item in self.db.query(InventoryItem).filter(InventoryItem.status == ItemStatusEnum.ACTIVE).all():
            last = last_moves.get(item.id) or item.created_at
            idle_days = (now - as_naive_local(last)).days if last else 0
            if idle_days < min_idle_days:
                continue
            rows.append(StockAgingRow(
                item_id=item.id,
                sku=item.sku,
                name=item.name,
                quantity_in_stock=item.quantity_in_stock,
                last_movement_date=last_moves.get(item.id),
                idle_days=idle_days,
            ))

        rows.sort(key=lambda row: (-row.idle_days, row.item_id))
        return rows

    def export_movements(self, **filters) -> io.BytesIO:
        movements, _ = self.ledger.list_all(limit=None, **filters)
        if not movements:
            raise NotFoundError("No movements found to export")

        data = []
        for movement in movements:
            data.append({
                "Date": as_naive_local(movement.movement_date),
                "SKU": movement.item_rel.sku if movement.item_rel else "",
                "Item": movement.item_rel.name if movement.item_rel else "",
                "Type": movement.movement_type.value,
                "Quantity": movement.quantity,
                "Before": movement.quantity_before,
                "After": movement.quantity_after,
                "Unit Cost": float(movement.unit_cost) if movement.unit_cost is not None else None,
                "Reference": movement.reference_number or "",
                "Reason": movement.reason or "",
                "Notes": movement.notes or "",
                "User": movement.user_rel.username if movement.user_rel else "",
            })

        df = pd.DataFrame(data, columns=EXPORT_COLUMNS)

        output = io.BytesIO()
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Movements")

            worksheet = writer.sheets["Movements"]
            for column in worksheet.columns:
                max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
                worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)

        output.seek(0)
        logger.info("Exported %s movements", len(data))
        return output


def _item_fields(item: InventoryItem) -> dict:
    return {column.name: getattr(item, column.name) for column in InventoryItem.__table__.columns}
