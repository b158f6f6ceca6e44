"""
Reporting services: render ledger reports as PDF and Excel exports with simple clinic branding.
"""

from io import BytesIO
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from reportlab.lib.units import cm
from openpyxl import Workbook
from openpyxl.styles import Font
import logging
import os

from config import settings

logger = logging.getLogger(__name__)

Table = Tuple[str, List[str], List[List[Any]]]


def _display(value: Any) -> Any:
    if hasattr(value, "value"):
        return value.value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def report_sections(report: BaseModel) -> Tuple[Dict[str, Any], List[Table]]:
    """
    Split a report into its scalar summary fields and its row tables.
    Every list field becomes one table whose headers are the row model's fields.
    """
    summary: Dict[str, Any] = {}
    tables: List[Table] = []
    for name, value in report:
        if isinstance(value, list):
            headers = list(type(value[0]).model_fields) if value else []
            rows = [[_display(getattr(row, h)) for h in headers] for row in value]
            tables.append((name, headers, rows))
        else:
            summary[name] = _display(value)
    return summary, tables


def generate_report_pdf(title: str, report: BaseModel, clinic_name: str = None) -> bytes:
    clinic_name = clinic_name or settings.REPORT_CLINIC_NAME
    summary, tables = report_sections(report)

    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    # Branding header
    logo_path = settings.REPORT_LOGO_PATH
    if logo_path and os.path.exists(logo_path):
        # Height 60pt ~= 2.12 cm
        c.drawImage(logo_path, 2 * cm, height - 2.5 * cm, height=60, preserveAspectRatio=True, mask='auto')
        text_x = 2 * cm + 6 * cm
    else:
        text_x = 2 * cm
    c.setFont("Helvetica-Bold", 16)
    c.drawString(text_x, height - 2 * cm, clinic_name)
    c.setFont("Helvetica", 12)
    c.drawString(text_x, height - 2.8 * cm, title)

    y = height - 4.2 * cm

    def next_line(step: float = 0.6):
        nonlocal y
        y -= step * cm
        if y < 2 * cm:
            c.showPage()
            c.setFont("Helvetica", 10)
            y = height - 2 * cm

    c.setFont("Helvetica", 10)
    for key, value in summary.items():
        c.drawString(2 * cm, y, f"{key}: {value}"[:110])
        next_line()

    for name, headers, rows in tables:
        next_line(0.4)
        c.setFont("Helvetica-Bold", 11)
        c.drawString(2 * cm, y, name)
        next_line()
        if not rows:
            c.setFont("Helvetica-Oblique", 10)
            c.drawString(2 * cm, y, "No data")
            next_line()
            continue
        column_width = (width - 4 * cm) / len(headers)
        c.setFont("Helvetica-Bold", 9)
        for index, header in enumerate(headers):
            c.drawString(2 * cm + index * column_width, y, str(header)[:24])
        next_line(0.5)
        c.setFont("Helvetica", 9)
        for row in rows:
            for index, value in enumerate(row):
                c.drawString(2 * cm + index * column_width, y, str(value)[:24])
            next_line(0.5)

    c.showPage()
    c.save()
    buffer.seek(0)
    logger.info(f"Rendered PDF report '{title}' ({len(tables)} tables)")
    return buffer.read()


def generate_report_excel(title: str, report: BaseModel) -> bytes:
    summary, tables = report_sections(report)

    wb = Workbook()
    ws = wb.active
    ws.title = (title or "Report")[:31]

    row = 1
    for key, value in summary.items():
        ws.cell(row=row, column=1, value=str(key)).font = Font(bold=True)
        ws.cell(row=row, column=2, value=str(value))
        row += 1

    for name, headers, rows in tables:
        sheet = wb.create_sheet(title=name[:31])
        for column, header in enumerate(headers, start=1):
            sheet.cell(row=1, column=column, value=header).font = Font(bold=True)
        for row_index, values in enumerate(rows, start=2):
            for column, value in enumerate(values, start=1):
                sheet.cell(row=row_index, column=column, value=str(value))

    out = BytesIO()
    wb.save(out)
    out.seek(0)
    return out.read()
