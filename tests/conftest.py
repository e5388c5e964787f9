import pytest

from entry_store import EntryStore
from models import JobEntry, MonthlyLog
from storage import JsonFileStore


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep settings and local data out of the real home directory"""
    home = tmp_path / "home"
    monkeypatch.setenv("MILEAGE_TRACKER_HOME", str(home))
    for var in ("MILEAGE_STORAGE", "MILEAGE_REMOTE_URL", "MILEAGE_REMOTE_KEY", "MILEAGE_USER_ID"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(str(tmp_path / "data"))


@pytest.fixture
def book(store):
    return EntryStore.open(store, "2025-03")


@pytest.fixture
def make_entry():
    counter = {"n": 0}

    def _make(mileage_start=None, mileage_end=None, amount_paid=None, order_number="", **kw):
        counter["n"] += 1
        n = counter["n"]
        distance = None
        if mileage_start is not None and mileage_end is not None:
            distance = mileage_end - mileage_start
        fields = dict(
            id=f"e{n}",
            job_number=n,
            start=f"Place {n}",
            end=f"Place {n + 1}",
            mileage_start=mileage_start,
            mileage_end=mileage_end,
            distance=distance,
            amount_paid=amount_paid,
            order_number=order_number,
        )
        fields.update(kw)
        return JobEntry(**fields)

    return _make


@pytest.fixture
def march_log(make_entry):
    return MonthlyLog(
        month="2025-03",
        start_mileage=1000,
        entries=[
            make_entry(1000, 1040, 500, "A1", start="Depot", end="Karen", is_parking=True, date="2025-03-01"),
            make_entry(1040, 1065, None, "", start="Karen", end="Runda Water Point", date="2025-03-02"),
        ],
    )
