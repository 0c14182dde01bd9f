"""
shop/reports.py -- Tabular PDF reports rendered with reportlab.

Each report is a title, a "Generated at" line, a column header row and one
row per record. Cell text wraps to its column width; a row's height is the
tallest wrapped cell (minimum 14pt) plus 4pt padding, and a row that would
cross the bottom margin starts a new page with the header row repeated.

The whole document is rendered into memory before anything is sent, so a
failure while loading data or drawing never produces a truncated PDF.

Usage:
    pdf = render_report(CARS_REPORT, store.all_cars())
    REPORTS["cars"].filename  # "car-profiles-report.pdf"
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Sequence

from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from shop.models import Car, InventoryItem, Job, Mechanic, Payment

logger = logging.getLogger("garage.reports")

MARGIN = 40
BODY_FONT = ("Helvetica", 10)
HEADER_FONT = ("Helvetica-Bold", 11)
TITLE_FONT = ("Helvetica-Bold", 18)
LEADING = 12
MIN_ROW_HEIGHT = 14
ROW_PADDING = 4
CELL_GAP = 4


@dataclass(frozen=True)
class ReportSpec:
    """How one entity type becomes a report."""

    title: str
    filename: str
    columns: Sequence[str]
    row: Callable[[Any], list[str]]


def _dash(value: Any) -> str:
    if value is None or value == "":
        return "-"
    return str(value)


def _date(value: str | None) -> str:
    if not value:
        return "-"
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d")
    except ValueError:
        return value


def _datetime(value: str | None) -> str:
    if not value:
        return "-"
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return value


def _money(value: Any) -> str:
    if isinstance(value, (int, float)):
        return f"{value:.2f}"
    return "-"


def _qty(value: float) -> str:
    return f"{value:g}"


def _car_row(car: Car) -> list[str]:
    return [
        car.license_plate,
        car.customer_name,
        car.customer_phone,
        _dash(car.customer_email),
        car.make,
        car.model,
        _dash(car.year),
        _date(car.created_at),
    ]


def _job_row(job: Job) -> list[str]:
    return [
        str(job.id),
        _dash(job.car_id),
        _dash(job.assigned_mechanic),
        job.status,
        _datetime(job.estimated_completion),
    ]


def _item_row(item: InventoryItem) -> list[str]:
    return [
        _dash(item.name),
        _dash(item.sku),
        _qty(item.quantity),
        _money(item.price),
        _dash(item.category),
        _date(item.updated_at),
    ]


def _mechanic_row(mechanic: Mechanic) -> list[str]:
    return [
        mechanic.name,
        mechanic.email,
        _dash(mechanic.phone),
        _dash(mechanic.availability),
        _dash(mechanic.experience),
    ]


def _payment_row(payment: Payment) -> list[str]:
    return [
        str(payment.id),
        _dash(payment.description),
        _money(payment.amount),
        payment.payment_method,
        payment.status,
        _date(payment.date),
    ]


REPORTS: dict[str, ReportSpec] = {
    "cars": ReportSpec(
        "Car Profiles Report",
        "car-profiles-report.pdf",
        ("License Plate", "Customer", "Phone", "Email", "Make", "Model", "Year", "Created"),
        _car_row,
    ),
    "jobs": ReportSpec(
        "Job Sheet Report",
        "job-sheet-report.pdf",
        ("Job ID", "Car ID", "Assigned Mechanic", "Status", "Est. Completion"),
        _job_row,
    ),
    "inventory": ReportSpec(
        "Inventory Report",
        "inventory-report.pdf",
        ("Item", "SKU", "Qty", "Unit Price", "Category", "Updated"),
        _item_row,
    ),
    "mechanics": ReportSpec(
        "Mechanics Report",
        "mechanics-report.pdf",
        ("Name", "Email", "Phone", "Availability", "Experience"),
        _mechanic_row,
    ),
    "payments": ReportSpec(
        "Payments Report",
        "payments-report.pdf",
        ("Payment ID", "Description", "Amount", "Method", "Status", "Date"),
        _payment_row,
    ),
}


def _wrap(text: str, width: float, font: tuple[str, int]) -> list[str]:
    return simpleSplit(text, font[0], font[1], width - CELL_GAP) or [""]


def row_height(cells: Sequence[str], col_width: float, font: tuple[str, int] = BODY_FONT) -> float:
    tallest = max((len(_wrap(c, col_width, font)) * LEADING for c in cells), default=0)
    return max(MIN_ROW_HEIGHT, tallest) + ROW_PADDING


def _draw_row(pdf: canvas.Canvas, cells: Sequence[str], y: float, col_width: float, font: tuple[str, int]) -> None:
    pdf.setFont(*font)
    for i, cell in enumerate(cells):
        x = MARGIN + i * col_width
        line_y = y - font[1]
        for line in _wrap(cell, col_width, font):
            pdf.drawString(x, line_y, line)
            line_y -= LEADING


def render_table(title: str, columns: Sequence[str], rows: Iterable[Sequence[str]]) -> bytes:
    """Render a titled, paginated table and return the PDF bytes."""
    buf = io.BytesIO()
    pdf = canvas.Canvas(buf, pagesize=A4)
    pdf.setTitle(title)
    page_width, page_height = A4
    col_width = (page_width - 2 * MARGIN) / max(len(columns), 1)
    bottom = MARGIN

    y = page_height - MARGIN
    pdf.setFont(*TITLE_FONT)
    pdf.drawString(MARGIN, y - TITLE_FONT[1], title)
    y -= TITLE_FONT[1] + 8
    pdf.setFont(*BODY_FONT)
    pdf.setFillGray(0.35)
    pdf.drawString(MARGIN, y - BODY_FONT[1], f"Generated at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    pdf.setFillGray(0)
    y -= BODY_FONT[1] + 10
    pdf.setStrokeGray(0.8)
    pdf.line(MARGIN, y, page_width - MARGIN, y)
    y -= 10

    def header(y: float) -> float:
        height = row_height(columns, col_width, HEADER_FONT)
        _draw_row(pdf, columns, y, col_width, HEADER_FONT)
        y -= height + 2
        pdf.setStrokeGray(0.87)
        pdf.line(MARGIN, y, page_width - MARGIN, y)
        return y - 6

    y = header(y)
    pages = 1
    for cells in rows:
        cells = [_dash(c) if not isinstance(c, str) else c for c in cells]
        height = row_height(cells, col_width)
        if y - height < bottom:
            pdf.showPage()
            pages += 1
            y = header(page_height - MARGIN)
        _draw_row(pdf, cells, y, col_width, BODY_FONT)
        y -= height

    pdf.showPage()
    pdf.save()
    logger.info("rendered report %r pages=%d", title, pages)
    return buf.getvalue()


def render_report(spec: ReportSpec, records: Iterable[Any]) -> bytes:
    return render_table(spec.title, spec.columns, (spec.row(r) for r in records))
