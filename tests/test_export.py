from datetime import date
from decimal import Decimal
from io import BytesIO

from openpyxl import load_workbook

from app.models import ExpenseCategory
from app.schemas.billing import (
    ExpenseReport, CategoryAmount, MonthlyAmount, ARAgingReport,
)
from app.services.reporting import report_sections, generate_report_pdf, generate_report_excel


def expense_report() -> ExpenseReport:
    return ExpenseReport(
        start_date=date(2024, 3, 1),
        end_date=date(2024, 4, 30),
        total=Decimal("2650.00"),
        by_category=[
            CategoryAmount(category=ExpenseCategory.RENT, amount=Decimal("2000.00")),
            CategoryAmount(category=ExpenseCategory.SUPPLIES, amount=Decimal("650.00")),
        ],
        by_month=[MonthlyAmount(month="2024-03", amount=Decimal("2650.00"))],
    )


def test_report_sections_split_scalars_and_tables() -> None:
    summary, tables = report_sections(expense_report())

    assert summary == {"start_date": "2024-03-01", "end_date": "2024-04-30", "total": Decimal("2650.00")}
    names = [name for name, _, _ in tables]
    assert names == ["by_category", "by_month"]
    _, headers, rows = tables[0]
    assert headers == ["category", "amount"]
    assert rows[0] == ["rent", Decimal("2000.00")]


def test_pdf_export_renders_document() -> None:
    pdf = generate_report_pdf("Expense Report", expense_report(), clinic_name="Smile Dental")
    assert pdf.startswith(b"%PDF")


def test_excel_export_has_summary_and_table_sheets() -> None:
    content = generate_report_excel("Expense Report", expense_report())
    workbook = load_workbook(BytesIO(content))

    assert workbook.sheetnames == ["Expense Report", "by_category", "by_month"]
    summary = workbook["Expense Report"]
    assert summary["A3"].value == "total"
    assert summary["B3"].value == "2650.00"
    categories = workbook["by_category"]
    assert [cell.value for cell in categories[1]] == ["category", "amount"]
    assert [cell.value for cell in categories[2]] == ["rent", "2000.00"]


def test_report_without_tables() -> None:
    aging = ARAgingReport(
        as_of=date(2024, 6, 30),
        current=Decimal("1"), thirty_days=Decimal("0"), sixty_days=Decimal("0"),
        ninety_days=Decimal("0"), over_ninety=Decimal("0"), total=Decimal("1"), invoice_count=1,
    )
    content = generate_report_excel("AR Aging", aging)
    assert load_workbook(BytesIO(content)).sheetnames == ["AR Aging"]
    assert generate_report_pdf("AR Aging", aging).startswith(b"%PDF")
