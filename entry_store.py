"""
In-memory editing of one month's log, saved through a MileageStore after
every change.
"""
from __future__ import annotations
import logging
from dataclasses import fields, replace
from typing import Callable, List, Optional

from computations import (
    compute_amount_earned,
    compute_diesel_usage,
    compute_month_distance,
    compute_net_profit,
    compute_total_cost,
)
from config import AppState, get_default_log
from errors import PersistenceError, ValidationError
from manifest import HeuristicMatcher
from models import ENTRY_STATUSES, MISDEMEANOR_TYPES, FuelData, JobEntry, Misdemeanor, MonthlyLog, WaterFillSite
from storage import MileageStore
from utils import new_id, parse_date, round2, today_str

logger = logging.getLogger("entry_store")

REQUIRED_ENTRY_FIELDS = ("start", "end", "mileage_start", "mileage_end")
EDITABLE_ENTRY_FIELDS = {f.name for f in fields(JobEntry)} - {"id", "job_number", "distance"}


def _missing(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_entry_fields(values: dict) -> None:
    """Raise ValidationError unless start, end and both mileage readings are present"""
    if any(_missing(values.get(k)) for k in REQUIRED_ENTRY_FIELDS):
        raise ValidationError("Please fill in start, end, and mileage fields")
    status = values.get("status")
    if status is not None and status not in ENTRY_STATUSES:
        raise ValidationError(f"Unknown entry status: {status}")


def _distance(mileage_start: Optional[float], mileage_end: Optional[float]) -> Optional[float]:
    if mileage_start is None or mileage_end is None:
        return None
    return float(mileage_end) - float(mileage_start)


class EntryStore:
    """Mutations of one MonthlyLog: job entries, fuel data, misdemeanors, water fill sites"""

    def __init__(
        self,
        store: MileageStore,
        log: MonthlyLog,
        sites: Optional[List[WaterFillSite]] = None,
        state: Optional[AppState] = None,
        on_persistence_error: Optional[Callable[[PersistenceError], None]] = None,
    ):
        self.store = store
        self.log = log
        self.sites: List[WaterFillSite] = list(sites or [])
        self.state = state
        self.on_persistence_error = on_persistence_error
        self.dirty = False
        self.sites_dirty = False

    @classmethod
    def open(cls, store: MileageStore, month: str, state: Optional[AppState] = None,
             on_persistence_error: Optional[Callable[[PersistenceError], None]] = None) -> "EntryStore":
        """Load a month, creating an empty log the first time it is used"""
        log = store.load_monthly_log(month)
        if log is None:
            start = state.default_start_mileage if state else None
            log = get_default_log(month, start)
        return cls(store, log, store.load_water_fill_sites(), state, on_persistence_error)

    # ---------- Persistence ----------
    def _refresh_derived(self) -> None:
        """Recompute the cached fuel figures from the current entries"""
        fuel = self.log.fuel_data
        if fuel.diesel_cost is not None or fuel.petrol_cost is not None:
            fuel.total_cost = compute_total_cost(fuel)
        distance = compute_month_distance(self.log)
        fuel.total_liters_used_diesel = compute_diesel_usage(fuel, distance)
        fuel.net_profit = compute_net_profit(fuel, distance, compute_amount_earned(self.log))

    def _report(self, ex: PersistenceError) -> None:
        logger.warning("changes kept locally, save failed: %s", ex.reason)
        if self.on_persistence_error:
            self.on_persistence_error(ex)

    def _save(self) -> None:
        self._refresh_derived()
        try:
            self.store.save_monthly_log(self.log)
            self.dirty = False
        except PersistenceError as ex:
            self.dirty = True
            self._report(ex)

    def _save_sites(self) -> None:
        try:
            self.store.save_water_fill_sites(self.sites)
            self.sites_dirty = False
        except PersistenceError as ex:
            self.sites_dirty = True
            self._report(ex)

    def flush(self) -> bool:
        """Retry whatever failed to save earlier; True when everything is saved"""
        if self.dirty:
            self._save()
        if self.sites_dirty:
            self._save_sites()
        return not (self.dirty or self.sites_dirty)

    # ---------- Totals ----------
    def _recompute_totals(self) -> None:
        entries = self.log.entries
        self.log.total_jobs = len(entries)
        self.log.total_distance = sum(e.distance for e in entries if e.distance is not None)
        self.log.end_mileage = entries[-1].mileage_end if entries else None

    def _find(self, entry_id: str) -> JobEntry:
        for e in self.log.entries:
            if e.id == entry_id:
                return e
        raise ValidationError("That job entry no longer exists")

    # ---------- Entries ----------
    def add_entry(
        self,
        start: Optional[str] = None,
        end: Optional[str] = None,
        mileage_start: Optional[float] = None,
        mileage_end: Optional[float] = None,
        amount_paid: Optional[float] = None,
        order_number: str = "",
        customer: str = "",
        is_water_fill: bool = False,
        is_parking: bool = False,
        date: Optional[str] = None,
        status: str = "manual",
    ) -> Optional[JobEntry]:
        """
        Append a job entry. Does nothing (returns None) when a required field
        is missing; call validate_entry_fields first to get a reason.
        """
        if any(_missing(v) for v in (start, end, mileage_start, mileage_end)):
            return None

        entry = JobEntry(
            id=new_id(),
            job_number=len(self.log.entries) + 1,
            start=start.strip(),
            end=end.strip(),
            mileage_start=float(mileage_start),
            mileage_end=float(mileage_end),
            distance=_distance(mileage_start, mileage_end),
            amount_paid=amount_paid,
            order_number=(order_number or "").strip(),
            customer=(customer or "").strip(),
            is_water_fill=bool(is_water_fill) or self.matches_water_fill(start, end),
            is_parking=bool(is_parking),
            date=date,
            status=status if status in ENTRY_STATUSES else "manual",
        )

        if self.state is not None:
            self.state.remember_place(entry.start)
            self.state.remember_place(entry.end)
            if self.state.manifest_records and not entry.order_number:
                self._guess_order(entry)

        self.log.entries.append(entry)
        self._recompute_totals()
        self.log.end_mileage = entry.mileage_end
        self._save()
        return entry

    def _guess_order(self, entry: JobEntry) -> None:
        records = self.state.manifest_records
        used = {e.order_number for e in self.log.entries if e.order_number}
        available = [r for r in records if r.order_number not in used]
        rec = HeuristicMatcher(records).match(entry, available)
        if rec is not None:
            entry.order_number = rec.order_number
            if not entry.customer:
                entry.customer = rec.customer

    def update_entry(self, entry_id: str, **patch) -> JobEntry:
        """Merge fields into an entry; distance follows any mileage change"""
        unknown = set(patch) - EDITABLE_ENTRY_FIELDS
        if unknown:
            raise ValidationError(f"Cannot edit: {', '.join(sorted(unknown))}")
        entry = self._find(entry_id)
        for k, v in patch.items():
            setattr(entry, k, v)

        if "mileage_start" in patch or "mileage_end" in patch:
            entry.distance = _distance(entry.mileage_start, entry.mileage_end)
        if ("start" in patch or "end" in patch) and "is_water_fill" not in patch:
            entry.is_water_fill = entry.is_water_fill or self.matches_water_fill(entry.start, entry.end)

        self._recompute_totals()
        self._save()
        return entry

    def delete_entry(self, entry_id: str) -> None:
        entry = self._find(entry_id)
        remaining = [e for e in self.log.entries if e is not entry]
        self.log.entries = [replace(e, job_number=i) for i, e in enumerate(remaining, start=1)]
        self._recompute_totals()
        self._save()

    def clear_entries(self) -> None:
        self.log.entries = []
        self.log.total_jobs = 0
        self.log.total_distance = 0.0
        self.log.end_mileage = None
        self._save()

    def set_start_mileage(self, value: Optional[float]) -> None:
        self.log.start_mileage = value
        self._save()

    def set_end_mileage(self, value: Optional[float]) -> None:
        self.log.end_mileage = value
        self._save()

    def last_mileage(self) -> Optional[float]:
        """Reading to prefill as the next entry's start"""
        if self.log.entries and self.log.entries[-1].mileage_end is not None:
            return self.log.entries[-1].mileage_end
        return self.log.start_mileage

    # ---------- Fuel ----------
    def set_fuel_data(self, fuel: FuelData) -> FuelData:
        """Store fuel inputs; total cost, liters used and net profit are recomputed"""
        self.log.fuel_data = replace(fuel)
        self._save()
        return self.log.fuel_data

    # ---------- Misdemeanors ----------
    def add_misdemeanor(self, type: str, date: Optional[str] = None, description: str = "",
                        fine: Optional[float] = None) -> Misdemeanor:
        if type not in MISDEMEANOR_TYPES:
            raise ValidationError("Please select a type")
        date = date or today_str()
        try:
            parse_date(date)
        except ValueError:
            raise ValidationError("Date must be YYYY-MM-DD.")
        if fine is not None and fine < 0:
            raise ValidationError("Fine cannot be negative.")
        m = Misdemeanor(id=new_id(), date=date, type=type, description=(description or "").strip(),
                        fine=round2(fine) if fine is not None else None)
        self.log.misdemeanors.append(m)
        self._save()
        return m

    def _find_misdemeanor(self, misdemeanor_id: str) -> Misdemeanor:
        for m in self.log.misdemeanors:
            if m.id == misdemeanor_id:
                return m
        raise ValidationError("That misdemeanor no longer exists")

    def resolve_misdemeanor(self, misdemeanor_id: str) -> None:
        m = self._find_misdemeanor(misdemeanor_id)
        if m.resolved:
            return
        m.resolved = True
        self._save()

    def delete_misdemeanor(self, misdemeanor_id: str) -> None:
        m = self._find_misdemeanor(misdemeanor_id)
        self.log.misdemeanors = [x for x in self.log.misdemeanors if x is not m]
        self._save()

    # ---------- Water fill sites ----------
    def matches_water_fill(self, start: Optional[str], end: Optional[str]) -> bool:
        texts = [(start or "").lower(), (end or "").lower()]
        for site in self.sites:
            name = site.name.strip().lower()
            if name and any(name in t for t in texts):
                return True
        return False

    def add_site(self, name: str) -> WaterFillSite:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Please enter a site name")
        if any(s.name.lower() == name.lower() for s in self.sites):
            raise ValidationError("This site already exists")
        site = WaterFillSite(id=new_id(), name=name)
        self.sites.append(site)
        self._save_sites()
        return site

    def delete_site(self, site_id: str) -> None:
        self.sites = [s for s in self.sites if s.id != site_id]
        self._save_sites()

    def retag_water_fill(self) -> int:
        """Tag existing entries that mention a water fill site; returns how many changed"""
        changed = 0
        for e in self.log.entries:
            if not e.is_water_fill and self.matches_water_fill(e.start, e.end):
                e.is_water_fill = True
                changed += 1
        if changed:
            self._save()
        return changed
