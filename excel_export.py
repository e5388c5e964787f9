"""
Excel export functionality for Mileage Tracker
"""
from __future__ import annotations
import logging
from typing import List, Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from models import MonthlyLog, WaterFillSite
from computations import compute_daily_stats, compute_month_summary
from csv_handler import FIRST_DATA_ROW, fuel_summary_rows, sheet_rows
from utils import optional_float

logger = logging.getLogger("excel_export")

HEADER_ROW = FIRST_DATA_ROW - 2

SUMMARY_LABELS = [
    ("Net Profit", "net_profit"),
    ("Total Monthly Earnings", "amount_earned"),
    ("Total Paid Jobs", "paid_jobs"),
    ("Total Monthly Distance (km)", "total_distance"),
    ("Total Liters Used - Diesel", "liters_used_diesel"),
    ("Diesel Usage Cost", "usage_cost"),
    ("Total Fuel Cost", "total_fuel_cost"),
    ("Total Fines", "total_fines"),
    ("Unresolved Misdemeanors", "unresolved_misdemeanors"),
]


def _style_header(ws, row=1):
    """Apply header styling to worksheet row"""
    header_font = Font(bold=True, color="FFFFFF")
    fill = PatternFill("solid", fgColor="4F81BD")
    align = Alignment(horizontal="center", vertical="center")
    thin = Side(style="thin", color="A0A0A0")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    for cell in ws[row]:
        if cell.value is None:
            continue
        cell.font = header_font
        cell.fill = fill
        cell.alignment = align
        cell.border = border


def _autosize_columns(ws, min_width=10, max_width=45):
    """Auto-size columns based on content"""
    for col in range(1, ws.max_column + 1):
        letter = get_column_letter(col)
        max_len = 0
        for cell in ws[letter]:
            v = cell.value
            if v is None or (isinstance(v, str) and v.startswith("=")):
                continue
            max_len = max(max_len, len(str(v)))
        ws.column_dimensions[letter].width = max(min_width, min(max_width, max_len + 2))


def _section_title(ws, text: str):
    ws.append([text])
    cell = ws.cell(ws.max_row, 1)
    cell.font = Font(bold=True)
    cell.fill = PatternFill("solid", fgColor="D9E1F2")


def _write_jobs_sheet(ws, log: MonthlyLog, sites: Optional[List[WaterFillSite]]):
    """Same layout as the paste export; formula strings become live formulas"""
    rows = sheet_rows(log, sites)
    in_fuel_block = False
    for row in rows:
        if row and row[0] == "FUEL & EXPENSES":
            in_fuel_block = True
            _section_title(ws, row[0])
            continue
        if in_fuel_block:
            row = [row[0], optional_float(row[1])]
        ws.append(row)

    _style_header(ws, HEADER_ROW)
    ws.freeze_panes = f"A{FIRST_DATA_ROW}"

    last = FIRST_DATA_ROW + len(log.entries) + 1  # jobs, spacer and totals
    for r in range(FIRST_DATA_ROW, last + 1):
        for c in (5, 6, 7, 8):
            ws.cell(r, c).number_format = "0.0"
        ws.cell(r, 9).number_format = "#,##0.00"
    ws.cell(last, 1).font = Font(bold=True)
    _autosize_columns(ws)


def export_excel(log: MonthlyLog, filepath: str, sites: Optional[List[WaterFillSite]] = None) -> None:
    """
    Export one month to an Excel file with sheets:
    - Jobs (spreadsheet layout with running-total formulas)
    - Fuel & Expenses
    - Misdemeanors
    - Daily
    """
    wb = Workbook()
    # remove default sheet
    wb.remove(wb.active)

    ws = wb.create_sheet("Jobs")
    _write_jobs_sheet(ws, log, sites)

    # Fuel & Expenses sheet
    ws = wb.create_sheet("Fuel & Expenses")
    ws.append(["Item", "Value"])
    _style_header(ws, 1)
    ws.freeze_panes = "A2"
    for label, value in fuel_summary_rows(log):
        ws.append([label, optional_float(value)])
    ws.append([])
    _section_title(ws, f"Summary {log.month}")
    summary = compute_month_summary(log)
    for label, key in SUMMARY_LABELS:
        ws.append([label, summary[key]])
    for r in range(2, ws.max_row + 1):
        ws.cell(r, 2).number_format = "#,##0.00"
    _autosize_columns(ws)

    # Misdemeanors sheet
    ws = wb.create_sheet("Misdemeanors")
    ws.append(["Date", "Type", "Description", "Fine", "Status"])
    _style_header(ws, 1)
    ws.freeze_panes = "A2"
    for m in sorted(log.misdemeanors, key=lambda m: m.date):
        ws.append([m.date, m.type, m.description, m.fine, "Resolved" if m.resolved else "Pending"])
    for r in range(2, ws.max_row + 1):
        ws.cell(r, 4).number_format = "#,##0.00"
    _autosize_columns(ws)

    # Daily sheet
    ws = wb.create_sheet("Daily")
    ws.append(["Date", "Jobs", "Paid Jobs", "Distance (km)", "Amount (KES)"])
    _style_header(ws, 1)
    ws.freeze_panes = "A2"
    for d in compute_daily_stats(log):
        ws.append([d["date"], d["jobs"], d["paid_jobs"], d["distance"], d["amount"]])
    for r in range(2, ws.max_row + 1):
        ws.cell(r, 4).number_format = "0.0"
        ws.cell(r, 5).number_format = "#,##0.00"
    _autosize_columns(ws)

    wb.save(filepath)
    logger.info("exported %s to %s", log.month, filepath)
