"""
Business logic and computations for Mileage Tracker.

All functions are pure derivations over a MonthlyLog snapshot. Missing
figures count as 0; nothing here raises for sparse data, and negative
results (e.g. a loss-making month) are passed through unchanged.
"""
from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Tuple

from models import FuelData, JobEntry, MonthlyLog
from utils import round2


def _num(v: Optional[float]) -> float:
    return float(v) if v is not None else 0.0


def entry_distance(e: JobEntry) -> float:
    """Distance contribution of one entry, never negative"""
    if e.distance is not None and e.distance > 0:
        return float(e.distance)
    if e.mileage_start is not None and e.mileage_end is not None:
        return max(0.0, float(e.mileage_end) - float(e.mileage_start))
    return 0.0


def compute_month_distance(log: MonthlyLog) -> float:
    """
    Month distance. Odometer bounds are authoritative when both are set;
    otherwise fall back to the sum of entry distances.
    """
    if log.start_mileage is not None and log.end_mileage is not None:
        return max(0.0, float(log.end_mileage) - float(log.start_mileage))
    return sum(entry_distance(e) for e in log.entries)


def compute_paid_jobs(log: MonthlyLog) -> int:
    return sum(1 for e in log.entries if _num(e.amount_paid) > 0)


def compute_amount_earned(log: MonthlyLog) -> float:
    """Sum of entry payouts (used when there is no manual override)"""
    return sum(_num(e.amount_paid) for e in log.entries)


def effective_amount_earned(log: MonthlyLog) -> float:
    override = log.fuel_data.amount_earned
    return float(override) if override is not None else compute_amount_earned(log)


def compute_diesel_usage(fuel: FuelData, total_distance: float) -> float:
    """Liters of diesel used: distance / rate, else the manual figures"""
    rate = _num(fuel.fuel_consumption_rate)
    if rate > 0:
        liters = round2(_num(total_distance) / rate)
    elif _num(fuel.total_liters_used_diesel) > 0:
        liters = float(fuel.total_liters_used_diesel)
    else:
        liters = _num(fuel.total_liters_used)
    return max(0.0, liters)


def compute_diesel_unit_cost(fuel: FuelData) -> float:
    amount = _num(fuel.diesel_amount)
    if amount > 0:
        return _num(fuel.diesel_cost) / amount
    return 0.0


def compute_total_cost(fuel: FuelData) -> float:
    return round2(_num(fuel.diesel_cost) + _num(fuel.petrol_cost))


def compute_usage_cost(fuel: FuelData, total_distance: float) -> float:
    return compute_diesel_unit_cost(fuel) * compute_diesel_usage(fuel, total_distance)


def compute_net_profit(fuel: FuelData, total_distance: float, entries_earned: float = 0.0) -> float:
    """
    net = earned - (usage cost + diesel + petrol + expenses + other + salary)

    `entries_earned` is used only when the fuel data has no amount_earned
    override. Salary counts only if it has been entered.
    """
    earned = _num(fuel.amount_earned) if fuel.amount_earned is not None else _num(entries_earned)
    costs = (
        compute_usage_cost(fuel, total_distance)
        + _num(fuel.diesel_cost)
        + _num(fuel.petrol_cost)
        + _num(fuel.total_expense)
        + _num(fuel.other_costs)
        + _num(fuel.monthly_salary)
    )
    return round2(earned - costs)


def compute_fines(log: MonthlyLog) -> Tuple[float, int]:
    """(total fines, unresolved incident count)"""
    total = sum(_num(m.fine) for m in log.misdemeanors)
    unresolved = sum(1 for m in log.misdemeanors if not m.resolved)
    return total, unresolved


def compute_month_summary(log: MonthlyLog) -> Dict[str, float]:
    """Dashboard figures for one month"""
    fuel = log.fuel_data
    distance = compute_month_distance(log)
    earned = effective_amount_earned(log)
    fines, unresolved = compute_fines(log)
    return {
        "net_profit": compute_net_profit(fuel, distance, earned),
        "amount_earned": round2(earned),
        "paid_jobs": compute_paid_jobs(log),
        "total_jobs": len(log.entries),
        "total_distance": round2(distance),
        "liters_used_diesel": compute_diesel_usage(fuel, distance),
        "diesel_unit_cost": round2(compute_diesel_unit_cost(fuel)),
        "usage_cost": round2(compute_usage_cost(fuel, distance)),
        "total_fuel_cost": compute_total_cost(fuel),
        "total_fines": round2(fines),
        "unresolved_misdemeanors": unresolved,
    }


def _entry_day(e: JobEntry, month: str) -> str:
    return e.date or month


def compute_daily_stats(log: MonthlyLog) -> List[dict]:
    """
    Per-day jobs, paid jobs, distance and amount, sorted by day.
    Entries without a date are grouped under the month key.
    """
    days: Dict[str, dict] = {}
    for e in log.entries:
        day = _entry_day(e, log.month)
        row = days.setdefault(day, {"date": day, "jobs": 0, "paid_jobs": 0, "distance": 0.0, "amount": 0.0})
        row["jobs"] += 1
        if _num(e.amount_paid) > 0:
            row["paid_jobs"] += 1
        row["distance"] += entry_distance(e)
        row["amount"] += _num(e.amount_paid)
    return [days[k] for k in sorted(days)]


def compute_daily_aggregates(log: MonthlyLog) -> List[dict]:
    """Daily earnings with the month's expenses spread evenly over active days"""
    stats = compute_daily_stats(log)
    per_day = _num(log.fuel_data.total_expense) / max(1, len(stats))
    return [
        {
            "date": s["date"],
            "distance": s["distance"],
            "earnings": s["amount"],
            "jobs": s["paid_jobs"],
            "expenses": round2(per_day),
        }
        for s in stats
    ]


def best_and_worst_day(rows: List[dict]) -> Tuple[Optional[dict], Optional[dict]]:
    if not rows:
        return None, None
    best = max(rows, key=lambda r: r["earnings"])
    worst = min(rows, key=lambda r: r["earnings"])
    return best, worst


def compute_history(logs: Iterable[MonthlyLog]) -> List[dict]:
    """One summary row per month, oldest first"""
    out = []
    for log in sorted(logs, key=lambda l: l.month):
        out.append({
            "month": log.month,
            "jobs": len(log.entries),
            "paid_jobs": compute_paid_jobs(log),
            "distance": round2(compute_month_distance(log)),
            "amount_earned": round2(effective_amount_earned(log)),
        })
    return out
