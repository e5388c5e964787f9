from config import (
    DEFAULT_SETTINGS,
    AppState,
    dict_to_log,
    get_default_log,
    load_settings,
    log_to_dict,
    save_settings,
    settings_path,
)
from models import FuelData, Misdemeanor, MonthlyLog


def test_defaults_when_no_settings_file(isolated_home):
    settings = load_settings()
    assert settings == DEFAULT_SETTINGS
    assert settings_path().startswith(str(isolated_home))


def test_settings_roundtrip_and_bad_json(tmp_path):
    path = str(tmp_path / "settings.json")
    save_settings(dict(DEFAULT_SETTINGS, currency="USD", known_places=["Depot"]), path)
    loaded = load_settings(path)
    assert loaded["currency"] == "USD"
    assert loaded["known_places"] == ["Depot"]
    assert loaded["storage"] == "local"

    (tmp_path / "settings.json").write_text("{oops", encoding="utf-8")
    assert load_settings(path) == DEFAULT_SETTINGS


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("MILEAGE_STORAGE", "remote")
    monkeypatch.setenv("MILEAGE_USER_ID", "driver-9")
    settings = load_settings(str(tmp_path / "missing.json"))
    assert settings["storage"] == "remote"
    assert settings["user_id"] == "driver-9"
    assert settings["remote_url"] == ""


def test_app_state_roundtrip():
    state = AppState.from_settings(dict(DEFAULT_SETTINGS, known_places=["Depot"], default_start_mileage=900))
    state.remember_place("depot ")
    state.remember_place("Karen")
    state.remember_place("")
    state.show_guide_on_startup = False

    out = state.to_settings(DEFAULT_SETTINGS)
    assert out["known_places"] == ["Depot", "Karen"]
    assert out["show_guide_on_startup"] is False
    assert out["default_start_mileage"] == 900
    assert DEFAULT_SETTINGS["known_places"] == []


def test_log_dict_roundtrip():
    log = get_default_log("2025-03", 1000)
    log.fuel_data = FuelData(diesel_cost=100, net_profit=-100)
    log.misdemeanors.append(Misdemeanor("m1", "2025-03-02", "Other", fine=50))
    d = log_to_dict(log)
    assert d["fuel_data"]["diesel_cost"] == 100
    assert dict_to_log(d) == log

    d["fuel_data"]["retired_field"] = 1
    assert dict_to_log(d).fuel_data.diesel_cost == 100
    assert isinstance(dict_to_log({"month": "2025-04"}), MonthlyLog)
