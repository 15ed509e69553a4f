"""Read-only aggregation and tabular export of the booking ledger."""
from __future__ import annotations

import csv
from collections import Counter
from datetime import date
from io import BytesIO, StringIO
from typing import Dict, List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy.orm import Session

from . import errors
from .ledger import list_bookings
from .models import Booking, BookingStatus, BookingType
from .repositories import BookingRepository
from .schemas import BookingFilter, BookingSummary, ExportRow, ResourceUsage

EXPORT_COLUMNS: List[Tuple[str, str]] = [
    ("booking_id", "Booking"),
    ("resource_type", "Type"),
    ("resource_name", "Resource"),
    ("requester", "Requester"),
    ("booking_date", "Date"),
    ("time_window", "Time"),
    ("status", "Status"),
    ("approver", "Approver"),
    ("feedback", "Feedback"),
]

PERIODS = {
    "week": relativedelta(weeks=1),
    "month": relativedelta(months=1),
    "quarter": relativedelta(months=3),
    "year": relativedelta(years=1),
}


def period_filter(period: str, today: date, base: Optional[BookingFilter] = None) -> BookingFilter:
    """Return ``base`` restricted to the trailing ``period`` ending ``today``."""

    if period not in PERIODS:
        raise errors.ValidationError(f"period must be one of {', '.join(PERIODS)}")
    return (base or BookingFilter()).model_copy(update={"date_from": today - PERIODS[period], "date_to": today})


def aggregate(db: Session, filters: BookingFilter, top: int = 5) -> BookingSummary:
    bookings = list_bookings(db, filters)
    repo = BookingRepository(db)
    counts_by_status = {status.value: 0 for status in BookingStatus}
    counts_by_status.update(repo.count_by(Booking.status, filters))
    counts_by_type = {kind.value: 0 for kind in BookingType}
    counts_by_type.update(repo.count_by(Booking.booking_type, filters))

    usage: Counter = Counter((booking.booking_type, booking.resource_id) for booking in bookings)
    names: Dict[tuple, Optional[str]] = {
        (booking.booking_type, booking.resource_id): booking.resource_name for booking in bookings
    }
    top_resources = [
        ResourceUsage(booking_type=kind, resource_id=resource_id, resource_name=names[(kind, resource_id)], booking_count=count)
        for (kind, resource_id), count in usage.most_common(top)
    ]
    return BookingSummary(
        total=len(bookings),
        counts_by_status=counts_by_status,
        counts_by_resource_type=counts_by_type,
        counts_by_section=repo.count_by(Booking.section, filters),
        top_resources=top_resources,
    )


def to_row(booking: Booking) -> ExportRow:
    return ExportRow(
        booking_id=booking.id,
        resource_type=booking.booking_type,
        resource_name=booking.resource_name,
        requester=booking.user.name,
        booking_date=booking.booking_date,
        time_window=f"{booking.start_time.strftime('%H:%M')}-{booking.end_time.strftime('%H:%M')}",
        status=booking.status,
        approver=booking.approver.name if booking.approver else None,
        feedback=booking.feedback,
    )


def export_rows(db: Session, filters: BookingFilter) -> List[ExportRow]:
    """Same row set and order as ``list_bookings`` with the export column set."""

    return [to_row(booking) for booking in list_bookings(db, filters)]


def _cells(row: ExportRow) -> List[object]:
    values = row.model_dump()
    cells: List[object] = []
    for key, _ in EXPORT_COLUMNS:
        value = values[key]
        if hasattr(value, "value"):
            value = value.value
        cells.append(value if value is not None else "")
    return cells


def rows_to_xlsx(rows: List[ExportRow], title: str = "Bookings") -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = title[:31]
    sheet.append([header for _, header in EXPORT_COLUMNS])
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for row in rows:
        sheet.append(_cells(row))
    for column in sheet.columns:
        width = max(len(str(cell.value or "")) for cell in column)
        sheet.column_dimensions[column[0].column_letter].width = min(max(width + 2, 10), 60)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def rows_to_csv(rows: List[ExportRow]) -> bytes:
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow([header for _, header in EXPORT_COLUMNS])
    for row in rows:
        writer.writerow(_cells(row))
    return buffer.getvalue().encode("utf-8-sig")
