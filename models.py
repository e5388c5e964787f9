"""
Data models for Mileage Tracker application
"""
from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from typing import List, Optional


ENTRY_STATUSES = ("pending", "processed", "manual")

MISDEMEANOR_TYPES = [
    "Speeding",
    "Parking Violation",
    "Traffic Light Violation",
    "Late Delivery",
    "Customer Complaint",
    "Vehicle Damage",
    "Documentation Error",
    "Safety Violation",
    "Other",
]


@dataclass
class JobEntry:
    """One trip/delivery leg"""
    id: str
    job_number: int
    start: str
    end: str
    mileage_start: Optional[float]
    mileage_end: Optional[float]
    distance: Optional[float]
    amount_paid: Optional[float] = None  # None or 0 means unpaid
    order_number: str = ""
    customer: str = ""
    is_water_fill: bool = False
    is_parking: bool = False
    date: Optional[str] = None  # YYYY-MM-DD, None = whole month
    status: str = "manual"


@dataclass
class FuelData:
    """Monthly fuel and expense figures, inputs plus cached derived values"""
    fuel_cf: Optional[float] = None
    diesel_amount: Optional[float] = None
    diesel_cost: Optional[float] = None
    petrol_amount: Optional[float] = None
    petrol_cost: Optional[float] = None
    fuel_consumption_rate: Optional[float] = None  # km per liter
    total_expense: Optional[float] = None
    other_costs: Optional[float] = None
    fuel_balance: Optional[float] = None
    amount_earned: Optional[float] = None  # overrides summed entry earnings
    monthly_salary: Optional[float] = None  # two drivers, entered on the last day
    total_liters_used: Optional[float] = None  # manual liters figure
    # derived
    total_liters_used_diesel: Optional[float] = None
    total_cost: Optional[float] = None
    net_profit: Optional[float] = None


@dataclass
class Misdemeanor:
    """Recorded compliance incident"""
    id: str
    date: str  # YYYY-MM-DD
    type: str
    description: str = ""
    fine: Optional[float] = None
    resolved: bool = False


@dataclass
class WaterFillSite:
    id: str
    name: str


@dataclass
class MonthlyLog:
    """All data for one calendar month"""
    month: str  # YYYY-MM
    start_mileage: Optional[float] = None
    end_mileage: Optional[float] = None
    total_jobs: int = 0
    total_distance: float = 0.0
    entries: List[JobEntry] = field(default_factory=list)
    fuel_data: FuelData = field(default_factory=FuelData)
    misdemeanors: List[Misdemeanor] = field(default_factory=list)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass
class ManifestRecord:
    """One row of an uploaded delivery manifest"""
    order_number: str
    customer: str
    earning: float


@dataclass
class ComparisonRow:
    """Result of reconciling one order number"""
    order_number: str
    customer: str
    earning: float
    status: str  # matched | missing | extra
    amount_matches: Optional[bool] = None  # only set for matched rows
    entry_id: Optional[str] = None
