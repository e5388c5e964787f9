"""
Persistence backends for Mileage Tracker.

Every backend implements the same small MileageStore interface, so the rest
of the application never needs to know whether data lives on this machine
or on a remote server.
"""
from __future__ import annotations
import json
import logging
import os
from typing import List, Optional

import requests

from config import dict_to_log, list_to_sites, log_to_dict, sites_to_list
from errors import PersistenceError
from models import MonthlyLog, WaterFillSite
from utils import app_dir

logger = logging.getLogger("storage")

REQUEST_TIMEOUT = 15


class MileageStore:
    """Interface: one MonthlyLog per YYYY-MM key plus the water fill site list"""

    def load_monthly_log(self, month: str) -> Optional[MonthlyLog]:
        raise NotImplementedError

    def save_monthly_log(self, log: MonthlyLog) -> None:
        raise NotImplementedError

    def list_months(self) -> List[str]:
        raise NotImplementedError

    def load_water_fill_sites(self) -> List[WaterFillSite]:
        raise NotImplementedError

    def save_water_fill_sites(self, sites: List[WaterFillSite]) -> None:
        raise NotImplementedError

    def load_all_logs(self) -> List[MonthlyLog]:
        out = []
        for m in self.list_months():
            log = self.load_monthly_log(m)
            if log is not None:
                out.append(log)
        return out


class JsonFileStore(MileageStore):
    """Local device storage: logs/<YYYY-MM>.json and water_fill_sites.json"""

    def __init__(self, base_dir: str):
        self.base_dir = base_dir
        self.logs_dir = os.path.join(base_dir, "logs")

    def _log_path(self, month: str) -> str:
        return os.path.join(self.logs_dir, f"{month}.json")

    def _sites_path(self) -> str:
        return os.path.join(self.base_dir, "water_fill_sites.json")

    def _read(self, path: str):
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as ex:
            raise PersistenceError(f"Could not read {os.path.basename(path)}: {ex}") from ex

    def _write(self, path: str, data) -> None:
        tmp = path + ".tmp"
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, path)
        except OSError as ex:
            raise PersistenceError(f"Could not save {os.path.basename(path)}: {ex}") from ex

    def load_monthly_log(self, month: str) -> Optional[MonthlyLog]:
        d = self._read(self._log_path(month))
        if d is None:
            return None
        try:
            return dict_to_log(d)
        except (KeyError, TypeError, ValueError) as ex:
            raise PersistenceError(f"Saved data for {month} is damaged: {ex}") from ex

    def save_monthly_log(self, log: MonthlyLog) -> None:
        self._write(self._log_path(log.month), log_to_dict(log))

    def list_months(self) -> List[str]:
        if not os.path.isdir(self.logs_dir):
            return []
        return sorted(f[:-5] for f in os.listdir(self.logs_dir) if f.endswith(".json"))

    def load_water_fill_sites(self) -> List[WaterFillSite]:
        return list_to_sites(self._read(self._sites_path()) or [])

    def save_water_fill_sites(self, sites: List[WaterFillSite]) -> None:
        self._write(self._sites_path(), sites_to_list(sites))


class RestStore(MileageStore):
    """
    Remote storage over a PostgREST style HTTP API.

    Tables:
      monthly_logs(user_id, month, data jsonb)   unique (user_id, month)
      water_fill_sites(user_id, id, name)
    """

    def __init__(self, base_url: str, api_key: str, user_id: str):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _call(self, method: str, table: str, **kwargs):
        url = f"{self.base_url}/{table}"
        try:
            response = requests.request(method, url, headers=kwargs.pop("headers", self.headers),
                                        timeout=REQUEST_TIMEOUT, **kwargs)
            response.raise_for_status()
            if not response.content:
                return None
            return response.json()
        except requests.RequestException as ex:
            raise PersistenceError(f"Sync with server failed ({table}): {ex}") from ex
        except ValueError as ex:
            raise PersistenceError(f"Server sent an unreadable response ({table})") from ex

    def _upsert_headers(self) -> dict:
        h = dict(self.headers)
        h["Prefer"] = "resolution=merge-duplicates,return=minimal"
        return h

    def load_monthly_log(self, month: str) -> Optional[MonthlyLog]:
        params = {"user_id": f"eq.{self.user_id}", "month": f"eq.{month}", "select": "data"}
        rows = self._call("GET", "monthly_logs", params=params) or []
        if not rows:
            return None
        try:
            return dict_to_log(rows[0]["data"])
        except (KeyError, TypeError, ValueError) as ex:
            raise PersistenceError(f"Server data for {month} is damaged: {ex}") from ex

    def save_monthly_log(self, log: MonthlyLog) -> None:
        body = {"user_id": self.user_id, "month": log.month, "data": log_to_dict(log)}
        self._call("POST", "monthly_logs", json=body, params={"on_conflict": "user_id,month"},
                   headers=self._upsert_headers())

    def list_months(self) -> List[str]:
        params = {"user_id": f"eq.{self.user_id}", "select": "month", "order": "month.asc"}
        rows = self._call("GET", "monthly_logs", params=params) or []
        return [r["month"] for r in rows]

    def load_water_fill_sites(self) -> List[WaterFillSite]:
        params = {"user_id": f"eq.{self.user_id}", "select": "id,name"}
        rows = self._call("GET", "water_fill_sites", params=params) or []
        return list_to_sites(rows)

    def save_water_fill_sites(self, sites: List[WaterFillSite]) -> None:
        # replace the whole list
        self._call("DELETE", "water_fill_sites", params={"user_id": f"eq.{self.user_id}"})
        if sites:
            body = [dict(s, user_id=self.user_id) for s in sites_to_list(sites)]
            self._call("POST", "water_fill_sites", json=body, headers=self._upsert_headers())


def make_store(settings: dict) -> MileageStore:
    """Pick the storage backend from settings"""
    if settings.get("storage") == "remote":
        url = settings.get("remote_url")
        key = settings.get("remote_key")
        user = settings.get("user_id")
        if url and key and user:
            logger.info("using remote storage at %s", url)
            return RestStore(url, key, user)
        logger.warning("remote storage selected but url/key/user_id missing; using local files")
    return JsonFileStore(app_dir())
