from csv_handler import (
    export_filename,
    fmt_num,
    format_csv,
    format_sheet_paste,
    import_fuel_data,
    sheet_rows,
    write_text_export,
)
from models import FuelData, MonthlyLog, WaterFillSite

SITES = [WaterFillSite("s1", "Runda Water Point")]


def test_fmt_num():
    assert fmt_num(1250.0) == "1250"
    assert fmt_num(12.3456) == "12.35"
    assert fmt_num(2.5) == "2.5"
    assert fmt_num(-0.001) == "0"
    assert fmt_num(None) == ""


def test_export_filename():
    assert export_filename("2025-03") == "mileage-2025-03.csv"
    assert export_filename("2025-03", "tsv") == "mileage-2025-03.tsv"


def test_csv_layout(march_log):
    lines = format_csv(march_log, SITES).split("\n")
    assert lines[0] == ("Job #,Order #,Start,End,Mileage Start,Mileage End,"
                        "Distance,Amount (KES),Water Fill,Parking")
    assert lines[1] == "1,A1,Depot,Karen,1000,1040,40,500,,Yes"
    assert lines[2] == "2,,Karen,Runda Water Point,1040,1065,25,,Yes,"
    assert lines[3] == "TOTAL,,,,,,65,500,,"
    assert lines[4] == ""
    assert lines[5] == "FUEL & EXPENSES"
    assert lines[6] == "Fuel CF,"
    assert "Total Liters Used - Diesel,0" in lines
    assert "Net Profit,500" in lines
    assert lines[-1] == ""


def test_csv_quotes_commas(march_log):
    march_log.entries[0].end = "Karen, Hardy"
    text = format_csv(march_log)
    assert '1,A1,Depot,"Karen, Hardy",1000,1040,40,500,,Yes' in text.split("\n")


def test_exports_are_idempotent(march_log):
    assert format_csv(march_log, SITES) == format_csv(march_log, SITES)
    assert format_sheet_paste(march_log, SITES) == format_sheet_paste(march_log, SITES)


def test_sheet_paste_layout(march_log):
    march_log.fuel_data.fuel_consumption_rate = 4.5
    lines = format_sheet_paste(march_log, SITES).split("\n")

    assert lines[0] == "Date -\t2025-03"
    assert lines[1] == "Start Mileage -\t1000"
    assert lines[2] == "No of jobs -\t2"
    assert lines[3] == ""
    assert lines[4].split("\t")[0] == "Job #"
    assert lines[4].split("\t")[11] == "Fuel Rate (km/L)"
    assert lines[5] == "\t" * 11 + "4.5"
    assert lines[6] == '1\tA1\tDepot\tKaren\t40\t=IF(E7="","",SUM(E$7:E7))\t1000\t1040\t500\t\tYes'
    assert lines[7].split("\t")[5] == '=IF(E8="","",SUM(E$7:E8))'
    assert lines[7].split("\t")[9] == "Yes"
    assert lines[8] == ""

    totals = lines[9].split("\t")
    assert totals[0] == "TOTAL"
    assert totals[1] == '=COUNTIF(I7:I8,">0")'
    assert totals[4] == "=SUM(E7:E8)"
    assert totals[8] == "=SUM(I7:I8)"
    assert totals[9] == '=COUNTIF(J7:J8,"Yes")'
    assert totals[10] == '=COUNTIF(K7:K8,"Yes")'

    assert lines[11] == "FUEL & EXPENSES"
    assert lines[12] == "Fuel CF\t"


def test_sheet_totals_for_empty_month():
    rows = sheet_rows(MonthlyLog(month="2025-05"))
    totals = rows[7]
    assert totals[0] == "TOTAL"
    assert totals[4] == "=SUM(E7:E7)"
    assert rows[2] == ["No of jobs -", 0]


def test_write_text_export(tmp_path, march_log):
    path = tmp_path / export_filename(march_log.month)
    text = format_csv(march_log)
    write_text_export(text, str(path))
    assert path.read_text(encoding="utf-8") == text


def test_import_fuel_data():
    text = "\n".join([
        "Item,Value",
        "Diesel Amount (L),45",
        'Diesel Cost,"9,000"',
        "Fuel Consumption Rate (km/L),6.5",
        "Monthly Salary,30000",
        "Something Else,5",
    ])
    base = FuelData(petrol_cost=700)
    fuel = import_fuel_data(text, base)
    assert fuel.diesel_amount == 45
    assert fuel.diesel_cost == 9000
    assert fuel.fuel_consumption_rate == 6.5
    assert fuel.monthly_salary == 30000
    assert fuel.petrol_cost == 700
    assert base.diesel_amount is None
