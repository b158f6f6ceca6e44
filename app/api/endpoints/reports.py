"""
Financial report API endpoints
"""

from datetime import date
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response

from app.api.endpoints.billing import get_ledger
from app.schemas.billing import RevenueReport, ARAgingReport, ProductionReport, ExpenseReport
from app.services.ledger import BillingLedger
from app.services.reporting import generate_report_pdf, generate_report_excel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reports"])

REPORT_TITLES = {
    "revenue": "Revenue Report",
    "ar-aging": "Accounts Receivable Aging",
    "production": "Production by Doctor",
    "expenses": "Expense Report",
}

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _check_range(start_date: date, end_date: date):
    if start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date must be on or before end_date"
        )


@router.get("/reports/revenue", response_model=RevenueReport)
async def get_revenue_report(
    start_date: date = Query(..., description="Range start (inclusive)"),
    end_date: date = Query(..., description="Range end (inclusive)"),
    ledger: BillingLedger = Depends(get_ledger),
):
    _check_range(start_date, end_date)
    return await ledger.get_revenue_report(start_date, end_date)


@router.get("/reports/ar-aging", response_model=ARAgingReport)
async def get_ar_aging_report(
    as_of: Optional[date] = Query(None, description="Aging reference date, defaults to today"),
    ledger: BillingLedger = Depends(get_ledger),
):
    return await ledger.get_ar_aging_report(as_of)


@router.get("/reports/production", response_model=ProductionReport)
async def get_production_report(
    start_date: date = Query(..., description="Completed on or after"),
    end_date: date = Query(..., description="Completed on or before"),
    ledger: BillingLedger = Depends(get_ledger),
):
    _check_range(start_date, end_date)
    return await ledger.get_production_by_doctor_report(start_date, end_date)


@router.get("/reports/expenses", response_model=ExpenseReport)
async def get_expense_report(
    start_date: date = Query(...),
    end_date: date = Query(...),
    ledger: BillingLedger = Depends(get_ledger),
):
    _check_range(start_date, end_date)
    return await ledger.get_expense_report(start_date, end_date)


# --------- Exports ---------

@router.get("/reports/{report_type}/export")
async def export_report(
    report_type: str,
    format: str = Query("pdf", pattern="^(pdf|xlsx)$", description="pdf or xlsx"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    as_of: Optional[date] = Query(None),
    ledger: BillingLedger = Depends(get_ledger),
):
    if report_type not in REPORT_TITLES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown report '{report_type}'")

    if report_type == "ar-aging":
        report = await ledger.get_ar_aging_report(as_of)
        period = report.as_of.isoformat()
    else:
        if start_date is None or end_date is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="start_date and end_date are required for this report"
            )
        _check_range(start_date, end_date)
        if report_type == "revenue":
            report = await ledger.get_revenue_report(start_date, end_date)
        elif report_type == "production":
            report = await ledger.get_production_by_doctor_report(start_date, end_date)
        else:
            report = await ledger.get_expense_report(start_date, end_date)
        period = f"{start_date.isoformat()}_{end_date.isoformat()}"

    title = REPORT_TITLES[report_type]
    filename = f"{report_type}_{period}.{format}"
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    if format == "pdf":
        return Response(content=generate_report_pdf(title, report), media_type="application/pdf", headers=headers)
    return Response(content=generate_report_excel(title, report), media_type=XLSX_MEDIA_TYPE, headers=headers)
