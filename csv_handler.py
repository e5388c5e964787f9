"""
CSV export and import functionality for Mileage Tracker
"""
from __future__ import annotations
import csv
import io
import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from computations import (
    compute_amount_earned,
    compute_diesel_usage,
    compute_month_distance,
    compute_net_profit,
    compute_total_cost,
)
from models import FuelData, JobEntry, MonthlyLog, WaterFillSite
from utils import optional_float

logger = logging.getLogger("csv_handler")

CSV_MIME = "text/csv"
TSV_MIME = "text/tab-separated-values"

CSV_HEADER = ["Job #", "Order #", "Start", "End", "Mileage Start", "Mileage End",
              "Distance", "Amount (KES)", "Water Fill", "Parking"]

# Paste layout, pasted at A1: rows 1-3 meta, 4 spacer, 5 header, 6 helper, 7.. jobs
SHEET_HEADER = ["Job #", "Order #", "Start", "End", "Distance", "Total Distance",
                "Mileage Start", "Mileage End", "Amount (KES)", "Water Fill", "Parking",
                "Fuel Rate (km/L)"]
FIRST_DATA_ROW = 7
RATE_COLUMN = 11  # L6 holds the consumption rate

FUEL_INPUT_LABELS = [
    ("Fuel CF", "fuel_cf"),
    ("Diesel Amount (L)", "diesel_amount"),
    ("Diesel Cost", "diesel_cost"),
    ("Petrol Amount (L)", "petrol_amount"),
    ("Petrol Cost", "petrol_cost"),
    ("Fuel Consumption Rate (km/L)", "fuel_consumption_rate"),
    ("Total Expense", "total_expense"),
    ("Other Costs", "other_costs"),
    ("Fuel Balance", "fuel_balance"),
    ("Amount Earned", "amount_earned"),
    ("Monthly Salary", "monthly_salary"),
]

# label substring -> FuelData field, checked in order
FUEL_IMPORT_KEYS = [
    (("fuel cf", "fuelcf"), "fuel_cf"),
    (("diesel amount", "dieselamount"), "diesel_amount"),
    (("diesel cost", "dieselcost"), "diesel_cost"),
    (("petrol amount", "petrolamount"), "petrol_amount"),
    (("petrol cost", "petrolcost"), "petrol_cost"),
    (("total liters", "totallitersused"), "total_liters_used"),
    (("total expense", "totalexpense"), "total_expense"),
    (("total cost", "totalcost"), "total_cost"),
    (("fuel balance", "fuelbalance"), "fuel_balance"),
    (("amount earned", "amountearned"), "amount_earned"),
    (("consumption",), "fuel_consumption_rate"),
    (("other cost",), "other_costs"),
    (("salary",), "monthly_salary"),
]


def export_filename(month: str, ext: str = "csv") -> str:
    return f"mileage-{month}.{ext}"


def fmt_num(v) -> str:
    """1250.0 -> '1250', 12.345 -> '12.35', None -> ''"""
    if v is None or v == "":
        return ""
    x = round(float(v), 2) + 0.0  # no '-0'
    if x.is_integer():
        return str(int(x))
    return f"{x:.2f}".rstrip("0").rstrip(".")


def _is_water_fill(e: JobEntry, sites: Optional[List[WaterFillSite]]) -> bool:
    if e.is_water_fill:
        return True
    texts = [(e.start or "").lower(), (e.end or "").lower()]
    return any(s.name.strip() and any(s.name.strip().lower() in t for t in texts) for s in sites or [])


def fuel_summary_rows(log: MonthlyLog) -> List[Tuple[str, str]]:
    """Label/value pairs of the FUEL & EXPENSES block, derived values included"""
    fuel = log.fuel_data
    distance = compute_month_distance(log)
    rows = [(label, fmt_num(getattr(fuel, key))) for label, key in FUEL_INPUT_LABELS]
    has_cost = fuel.diesel_cost is not None or fuel.petrol_cost is not None
    rows.append(("Total Liters Used - Diesel", fmt_num(compute_diesel_usage(fuel, distance))))
    rows.append(("Total Cost", fmt_num(compute_total_cost(fuel) if has_cost else fuel.total_cost)))
    rows.append(("Net Profit", fmt_num(compute_net_profit(fuel, distance, compute_amount_earned(log)))))
    return rows


def format_csv(log: MonthlyLog, sites: Optional[List[WaterFillSite]] = None) -> str:
    """
    Month export as CSV: one row per job, a TOTAL row, then the
    FUEL & EXPENSES label/value section.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)

    total_distance = 0.0
    total_amount = 0.0
    for e in log.entries:
        total_distance += e.distance or 0.0
        total_amount += e.amount_paid or 0.0
        writer.writerow([
            e.job_number,
            e.order_number,
            e.start,
            e.end,
            fmt_num(e.mileage_start),
            fmt_num(e.mileage_end),
            fmt_num(e.distance),
            fmt_num(e.amount_paid),
            "Yes" if _is_water_fill(e, sites) else "",
            "Yes" if e.is_parking else "",
        ])
    writer.writerow(["TOTAL", "", "", "", "", "", fmt_num(total_distance), fmt_num(total_amount), "", ""])

    writer.writerow([])
    writer.writerow(["FUEL & EXPENSES"])
    for label, value in fuel_summary_rows(log):
        writer.writerow([label, value])
    return buf.getvalue()


def sheet_rows(log: MonthlyLog, sites: Optional[List[WaterFillSite]] = None) -> List[list]:
    """
    Rows of the spreadsheet layout. Formula strings assume the block is
    pasted at A1, so job rows start at row 7.
    """
    entries = log.entries
    last = FIRST_DATA_ROW - 1 + max(1, len(entries))
    first = FIRST_DATA_ROW

    rows: List[list] = [
        ["Date -", log.month],
        ["Start Mileage -", log.start_mileage],
        ["No of jobs -", len(entries)],
        [],
        list(SHEET_HEADER),
        [""] * RATE_COLUMN + [log.fuel_data.fuel_consumption_rate],
    ]
    for i, e in enumerate(entries):
        r = first + i
        rows.append([
            e.job_number,
            e.order_number,
            e.start,
            e.end,
            e.distance,
            f'=IF(E{r}="","",SUM(E${first}:E{r}))',
            e.mileage_start,
            e.mileage_end,
            e.amount_paid,
            "Yes" if _is_water_fill(e, sites) else "",
            "Yes" if e.is_parking else "",
        ])
    rows.append([])
    rows.append([
        "TOTAL",
        f'=COUNTIF(I{first}:I{last},">0")',
        "",
        "",
        f"=SUM(E{first}:E{last})",
        "",
        "",
        "",
        f"=SUM(I{first}:I{last})",
        f'=COUNTIF(J{first}:J{last},"Yes")',
        f'=COUNTIF(K{first}:K{last},"Yes")',
    ])
    rows.append([])
    rows.append(["FUEL & EXPENSES"])
    for label, value in fuel_summary_rows(log):
        rows.append([label, value])
    return rows


def _tsv_cell(v) -> str:
    if v is None:
        return ""
    if isinstance(v, bool):
        return "Yes" if v else ""
    if isinstance(v, (int, float)):
        return fmt_num(v)
    return str(v).replace("\t", " ").replace("\r", " ").replace("\n", " ")


def format_sheet_paste(log: MonthlyLog, sites: Optional[List[WaterFillSite]] = None) -> str:
    """Tab-separated text for pasting into a spreadsheet at cell A1"""
    return "\n".join("\t".join(_tsv_cell(v) for v in row) for row in sheet_rows(log, sites)) + "\n"


def write_text_export(text: str, filepath: str) -> None:
    """Write an export produced by format_csv / format_sheet_paste"""
    with open(filepath, "w", newline="", encoding="utf-8") as f:
        f.write(text)
    logger.info("wrote %s", filepath)


def import_fuel_data(text: str, base: Optional[FuelData] = None) -> FuelData:
    """
    Read fuel figures from 'label,value' lines (e.g. "Diesel Amount,45").
    Unknown labels and a header line are ignored; values not present keep
    the figures from `base`.
    """
    data = FuelData() if base is None else replace(base)
    for row in csv.reader(io.StringIO(text or "")):
        if len(row) < 2:
            continue
        key = row[0].strip().lower()
        for names, attr in FUEL_IMPORT_KEYS:
            if any(n in key for n in names):
                setattr(data, attr, optional_float(row[1]))
                break
    return data
