"""
Configuration and data loading/saving for Mileage Tracker
"""
from __future__ import annotations
import json
import logging
import os
from dataclasses import asdict, fields
from typing import List, Optional

from models import FuelData, JobEntry, ManifestRecord, Misdemeanor, MonthlyLog, WaterFillSite
from utils import app_dir

logger = logging.getLogger("config")

SETTINGS_FILE = "settings.json"

DEFAULT_SETTINGS = {
    "storage": "local",  # local | remote
    "remote_url": "",
    "remote_key": "",
    "user_id": "",
    "currency": "KES",
    "default_start_mileage": None,
    "show_guide_on_startup": True,
    "known_places": [],
}

# environment variable -> settings key
ENV_OVERRIDES = {
    "MILEAGE_STORAGE": "storage",
    "MILEAGE_REMOTE_URL": "remote_url",
    "MILEAGE_REMOTE_KEY": "remote_key",
    "MILEAGE_USER_ID": "user_id",
}


def settings_path() -> str:
    return os.path.join(app_dir(), SETTINGS_FILE)


def load_settings(path: Optional[str] = None) -> dict:
    """Load settings JSON merged over defaults, then apply env overrides"""
    path = path or settings_path()
    merged = dict(DEFAULT_SETTINGS)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f) or {}
        merged.update(data)
    except FileNotFoundError:
        pass
    except ValueError as ex:
        logger.warning("ignoring unreadable settings file %s: %s", path, ex)

    for env, key in ENV_OVERRIDES.items():
        v = os.getenv(env)
        if v:
            merged[key] = v
    return merged


def save_settings(settings: dict, path: Optional[str] = None) -> None:
    path = path or settings_path()
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings, f, ensure_ascii=False, indent=2)


class AppState:
    """
    Long-lived UI state owned by the application window and handed to the
    components that need it: known place names, the startup guide flag and
    manifest records cached from the last reconciliation.
    """

    def __init__(
        self,
        known_places: Optional[List[str]] = None,
        show_guide_on_startup: bool = True,
        default_start_mileage: Optional[float] = None,
    ):
        self.known_places: List[str] = list(known_places or [])
        self.show_guide_on_startup = show_guide_on_startup
        self.default_start_mileage = default_start_mileage
        self.manifest_records: List[ManifestRecord] = []

    @classmethod
    def from_settings(cls, settings: dict) -> "AppState":
        return cls(
            known_places=settings.get("known_places", []),
            show_guide_on_startup=bool(settings.get("show_guide_on_startup", True)),
            default_start_mileage=settings.get("default_start_mileage"),
        )

    def to_settings(self, settings: dict) -> dict:
        out = dict(settings)
        out["known_places"] = list(self.known_places)
        out["show_guide_on_startup"] = self.show_guide_on_startup
        out["default_start_mileage"] = self.default_start_mileage
        return out

    def remember_place(self, name: str) -> None:
        name = (name or "").strip()
        if name and name.lower() not in (p.lower() for p in self.known_places):
            self.known_places.append(name)

    def cache_manifest(self, records: List[ManifestRecord]) -> None:
        self.manifest_records = list(records)

    def clear_manifest(self) -> None:
        self.manifest_records = []


def get_default_log(month: str, start_mileage: Optional[float] = None) -> MonthlyLog:
    """Empty log for a month that has not been used yet"""
    return MonthlyLog(month=month, start_mileage=start_mileage)


def _pick(cls, d: dict) -> dict:
    """Keep only keys the dataclass knows about"""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in (d or {}).items() if k in names}


def log_to_dict(log: MonthlyLog) -> dict:
    """Convert MonthlyLog object to dictionary for JSON serialization"""
    return {
        "id": log.id,
        "month": log.month,
        "start_mileage": log.start_mileage,
        "end_mileage": log.end_mileage,
        "total_jobs": log.total_jobs,
        "total_distance": log.total_distance,
        "entries": [asdict(e) for e in log.entries],
        "fuel_data": asdict(log.fuel_data),
        "misdemeanors": [asdict(m) for m in log.misdemeanors],
    }


def dict_to_log(d: dict) -> MonthlyLog:
    """Convert dictionary from JSON to MonthlyLog object"""
    entries = [JobEntry(**_pick(JobEntry, e)) for e in d.get("entries", [])]
    misdemeanors = [Misdemeanor(**_pick(Misdemeanor, m)) for m in d.get("misdemeanors", [])]
    log = MonthlyLog(
        month=d["month"],
        start_mileage=d.get("start_mileage"),
        end_mileage=d.get("end_mileage"),
        total_jobs=int(d.get("total_jobs", len(entries))),
        total_distance=float(d.get("total_distance") or 0.0),
        entries=entries,
        fuel_data=FuelData(**_pick(FuelData, d.get("fuel_data", {}))),
        misdemeanors=misdemeanors,
    )
    if d.get("id"):
        log.id = d["id"]
    return log


def sites_to_list(sites: List[WaterFillSite]) -> List[dict]:
    return [asdict(s) for s in sites]


def list_to_sites(items: List[dict]) -> List[WaterFillSite]:
    return [WaterFillSite(**_pick(WaterFillSite, s)) for s in items or []]
