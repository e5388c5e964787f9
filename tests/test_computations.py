from computations import (
    best_and_worst_day,
    compute_amount_earned,
    compute_daily_aggregates,
    compute_daily_stats,
    compute_diesel_unit_cost,
    compute_diesel_usage,
    compute_history,
    compute_month_distance,
    compute_month_summary,
    compute_net_profit,
    compute_paid_jobs,
    compute_total_cost,
    effective_amount_earned,
)
from models import FuelData, Misdemeanor, MonthlyLog


def test_month_distance_prefers_odometer_bounds(make_entry):
    log = MonthlyLog(
        month="2025-03",
        start_mileage=1000,
        end_mileage=1250,
        entries=[make_entry(1000, 1200), make_entry(1200, 1300)],
    )
    assert sum(e.distance for e in log.entries) == 300
    assert compute_month_distance(log) == 250


def test_month_distance_bounds_never_negative():
    log = MonthlyLog(month="2025-03", start_mileage=1300, end_mileage=1250)
    assert compute_month_distance(log) == 0


def test_month_distance_falls_back_to_entries(make_entry):
    broken = make_entry(500, 520)
    broken.distance = None  # falls back to the mileage readings
    log = MonthlyLog(
        month="2025-03",
        start_mileage=1000,
        entries=[
            make_entry(1000, 1030),
            make_entry(1030, 1010),  # negative leg counts as 0
            broken,
            make_entry(None, 1100),
        ],
    )
    assert compute_month_distance(log) == 50


def test_paid_jobs_and_earnings(make_entry):
    log = MonthlyLog(month="2025-03", entries=[
        make_entry(0, 10, 500),
        make_entry(10, 20, 0),
        make_entry(20, 30, None),
        make_entry(30, 40, 250.5),
    ])
    assert compute_paid_jobs(log) == 2
    assert compute_amount_earned(log) == 750.5
    assert effective_amount_earned(log) == 750.5
    log.fuel_data.amount_earned = 1000
    assert effective_amount_earned(log) == 1000


def test_net_profit_example():
    fuel = FuelData(
        amount_earned=10000,
        diesel_cost=2000,
        petrol_cost=500,
        diesel_amount=40,
        total_expense=300,
        other_costs=0,
        monthly_salary=0,
        fuel_consumption_rate=5,
    )
    assert compute_diesel_usage(fuel, 100) == 20
    assert compute_diesel_unit_cost(fuel) == 50
    assert compute_net_profit(fuel, 100) == 6200


def test_net_profit_uses_entry_earnings_and_salary():
    fuel = FuelData(diesel_cost=1000, diesel_amount=10, fuel_consumption_rate=10, monthly_salary=3000)
    # usage 5 L at 100/L = 500
    assert compute_net_profit(fuel, 50, entries_earned=8000) == 8000 - (500 + 1000 + 3000)


def test_negative_net_profit_passes_through():
    fuel = FuelData(amount_earned=100, total_expense=450.25)
    assert compute_net_profit(fuel, 0) == -350.25


def test_diesel_usage_fallback_chain():
    assert compute_diesel_usage(FuelData(fuel_consumption_rate=3), 100) == 33.33
    assert compute_diesel_usage(FuelData(total_liters_used_diesel=42.5, total_liters_used=99), 100) == 42.5
    assert compute_diesel_usage(FuelData(total_liters_used_diesel=0, total_liters_used=99), 100) == 99
    assert compute_diesel_usage(FuelData(), 100) == 0
    assert compute_diesel_usage(FuelData(total_liters_used=-5), 100) == 0


def test_unit_cost_without_amount_is_zero():
    assert compute_diesel_unit_cost(FuelData(diesel_cost=500)) == 0
    assert compute_diesel_unit_cost(FuelData(diesel_cost=500, diesel_amount=0)) == 0


def test_total_cost_sums_diesel_and_petrol():
    assert compute_total_cost(FuelData(diesel_cost=1200.5, petrol_cost=300.25)) == 1500.75
    assert compute_total_cost(FuelData()) == 0


def test_month_summary(march_log):
    march_log.misdemeanors = [
        Misdemeanor(id="m1", date="2025-03-03", type="Speeding", fine=2000),
        Misdemeanor(id="m2", date="2025-03-04", type="Late Delivery", resolved=True),
    ]
    s = compute_month_summary(march_log)
    assert s["total_distance"] == 65
    assert s["paid_jobs"] == 1
    assert s["total_jobs"] == 2
    assert s["amount_earned"] == 500
    assert s["net_profit"] == 500
    assert s["total_fines"] == 2000
    assert s["unresolved_misdemeanors"] == 1


def test_daily_stats_group_undated_under_month(make_entry):
    log = MonthlyLog(month="2025-03", entries=[
        make_entry(0, 10, 100, date="2025-03-02"),
        make_entry(10, 30, None, date="2025-03-02"),
        make_entry(30, 35, 50),
        make_entry(35, 40, 70, date="2025-03-01"),
    ])
    stats = compute_daily_stats(log)
    assert [s["date"] for s in stats] == ["2025-03", "2025-03-01", "2025-03-02"]
    day2 = stats[2]
    assert day2["jobs"] == 2
    assert day2["paid_jobs"] == 1
    assert day2["distance"] == 30
    assert day2["amount"] == 100


def test_daily_aggregates_spread_expenses(make_entry):
    log = MonthlyLog(month="2025-03", entries=[
        make_entry(0, 10, 100, date="2025-03-01"),
        make_entry(10, 20, 300, date="2025-03-02"),
    ])
    log.fuel_data.total_expense = 500
    rows = compute_daily_aggregates(log)
    assert [r["expenses"] for r in rows] == [250, 250]
    best, worst = best_and_worst_day(rows)
    assert best["date"] == "2025-03-02"
    assert worst["date"] == "2025-03-01"
    assert best_and_worst_day([]) == (None, None)


def test_history_sorted_by_month(make_entry):
    april = MonthlyLog(month="2025-04", entries=[make_entry(0, 10, 100)])
    march = MonthlyLog(month="2025-03", entries=[make_entry(0, 5, 50), make_entry(5, 9, None)])
    march.fuel_data.amount_earned = 80
    rows = compute_history([april, march])
    assert [r["month"] for r in rows] == ["2025-03", "2025-04"]
    assert rows[0]["jobs"] == 2
    assert rows[0]["paid_jobs"] == 1
    assert rows[0]["distance"] == 9
    assert rows[0]["amount_earned"] == 80
