from datetime import date
from typing import List, Literal, Optional

from fastapi import Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from booking_common import reporting
from booking_common.database import get_db
from booking_common.dependencies import require_admin
from booking_common.models import BookingStatus, BookingType, User
from booking_common.rate_limit import limiter
from booking_common.schemas import BookingFilter, BookingSummary, ExportRow
from booking_common.service import build_app

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def create_app():
    return build_app("Reports Service", "reports")


app = create_app()


def report_filter(
    status: Optional[BookingStatus] = None,
    booking_type: Optional[BookingType] = Query(None, alias="type"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    resource_id: Optional[int] = None,
    requester_id: Optional[int] = None,
    period: Optional[str] = Query(None, description="week, month, quarter or year ending today"),
) -> BookingFilter:
    filters = BookingFilter(
        status=status,
        booking_type=booking_type,
        date_from=date_from,
        date_to=date_to,
        resource_id=resource_id,
        requester_id=requester_id,
    )
    if period:
        filters = reporting.period_filter(period, date.today(), filters)
    return filters


@app.get("/reports/summary", response_model=BookingSummary)
@limiter.limit("30/minute")
def summary(
    request: Request,
    top: int = Query(5, ge=1, le=25),
    filters: BookingFilter = Depends(report_filter),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> BookingSummary:
    return reporting.aggregate(db, filters, top=top)


@app.get("/reports/rows", response_model=List[ExportRow])
@limiter.limit("30/minute")
def rows(
    request: Request,
    filters: BookingFilter = Depends(report_filter),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> List[ExportRow]:
    return reporting.export_rows(db, filters)


@app.get("/reports/export")
@limiter.limit("10/minute")
def export(
    request: Request,
    export_format: Literal["xlsx", "csv"] = Query("xlsx", alias="format"),
    filters: BookingFilter = Depends(report_filter),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Response:
    export_rows = reporting.export_rows(db, filters)
    stem = f"bookings_{filters.booking_type.value if filters.booking_type else 'all'}_{date.today().isoformat()}"
    if export_format == "csv":
        content, media_type = reporting.rows_to_csv(export_rows), "text/csv; charset=utf-8"
    else:
        content, media_type = reporting.rows_to_xlsx(export_rows), XLSX_MEDIA_TYPE
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{stem}.{export_format}"'},
    )
