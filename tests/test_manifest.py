import pytest

from entry_store import EntryStore
from errors import ValidationError
from manifest import (
    EXTRA,
    MATCHED,
    MISSING,
    HeuristicMatcher,
    approve_amount,
    parse_earning,
    parse_manifest,
    read_manifest,
    reconcile,
    summarize,
)
from models import ManifestRecord, MonthlyLog


def test_parse_quoted_fields_with_commas():
    text = 'Order Number,Customer,Earning\r\n"ORD-1","Smith, John","1,250.00"\r\n'
    assert parse_manifest(text) == [ManifestRecord("ORD-1", "Smith, John", 1250.0)]


def test_columns_found_by_substring_any_order():
    text = "\n".join([
        "Amount (KES), Client Name, ORDER #",
        "300, Acme Ltd, A-9",
        "",
        "KES 450.50, Beta, A-10",
    ])
    records = parse_manifest(text)
    assert records == [
        ManifestRecord("A-9", "Acme Ltd", 300.0),
        ManifestRecord("A-10", "Beta", 450.5),
    ]


def test_customer_column_is_optional():
    assert parse_manifest("order,earning\nX1,10") == [ManifestRecord("X1", "", 10.0)]


def test_missing_columns_are_rejected():
    with pytest.raises(ValidationError) as exc:
        read_manifest("customer,earning\nAcme,10")
    assert exc.value.reason == "missing order column"

    with pytest.raises(ValidationError) as exc:
        read_manifest("order,customer\nX1,Acme")
    assert exc.value.reason == "missing earning column"

    with pytest.raises(ValidationError):
        read_manifest(" \n\n")


def test_bad_rows_become_warnings():
    text = "order,customer,earning\n,Acme,10\nX2,Beta,n/a\nX3,Gamma,30\n"
    records, warnings = read_manifest(text)
    assert records == [ManifestRecord("X2", "Beta", 0.0), ManifestRecord("X3", "Gamma", 30.0)]
    assert [w.line for w in warnings] == [2, 3]
    assert "skipped" in warnings[0].reason
    assert str(warnings[1]).startswith("line 3:")


def test_parse_earning():
    assert parse_earning("KES 1,250.00") == 1250.0
    assert parse_earning("-20") == -20.0
    assert parse_earning("") is None
    assert parse_earning("abc") is None


def test_reconcile_classifies_orders(make_entry):
    entries = [
        make_entry(0, 10, 100, "A"),
        make_entry(10, 20, 180, "B"),
        make_entry(20, 30, 50, "D"),
        make_entry(30, 40, 70, ""),
    ]
    records = [
        ManifestRecord("A", "Acme", 100),
        ManifestRecord("B", "Beta", 200),
        ManifestRecord("C", "Gamma", 300),
    ]
    rows = reconcile(entries, records)
    by_order = {r.order_number: r for r in rows}

    assert by_order["A"].status == MATCHED
    assert by_order["A"].amount_matches is True
    assert by_order["B"].status == MATCHED
    assert by_order["B"].amount_matches is False
    assert by_order["C"].status == MISSING
    assert by_order["C"].amount_matches is None
    assert by_order["D"].status == EXTRA
    assert by_order["D"].entry_id == entries[2].id
    assert len(rows) == 4

    assert summarize(rows) == {"matched": 2, "discrepancies": 1, "missing": 1, "extra": 1}


def test_reconcile_duplicate_order_uses_first_entry(make_entry):
    first = make_entry(0, 10, 100, "A")
    second = make_entry(10, 20, 999, "A")
    rows = reconcile([first, second], [ManifestRecord("A", "Acme", 100)])
    assert len(rows) == 1
    assert rows[0].entry_id == first.id
    assert rows[0].amount_matches is True


def test_approve_amount_updates_entry(store):
    book = EntryStore(store, MonthlyLog(month="2025-03"))
    e = book.add_entry(start="Depot", end="Karen", mileage_start=0, mileage_end=10,
                       amount_paid=180, order_number="B")
    rows = reconcile(book.log.entries, [ManifestRecord("B", "Beta", 200), ManifestRecord("C", "", 5)])

    approve_amount(rows[0], book)
    assert e.amount_paid == 200
    assert rows[0].amount_matches is True
    assert store.load_monthly_log("2025-03").entries[0].amount_paid == 200

    with pytest.raises(ValidationError):
        approve_amount(rows[1], book)


def test_matcher_by_amount(make_entry):
    entry = make_entry(0, 10, 450.005)
    rec = ManifestRecord("X1", "Nobody", 450.0)
    other = ManifestRecord("X2", "Nobody", 460.0)
    assert HeuristicMatcher([other, rec]).match(entry, [other, rec]) is rec


def test_matcher_by_unique_name(make_entry):
    entry = make_entry(0, 10, None, start="Depot", end="Acme Warehouse")
    records = [ManifestRecord("X1", "acme", 300), ManifestRecord("X2", "Beta", 300)]
    assert HeuristicMatcher(records).match(entry, records) is records[0]


def test_matcher_narrows_ambiguous_names_by_rounded_amount(make_entry):
    entry = make_entry(0, 10, 300.4, start="Acme Depot", end="Town")
    records = [ManifestRecord("X1", "Acme", 250), ManifestRecord("X2", "Acme Depot", 300)]
    assert HeuristicMatcher(records).match(entry, records) is records[1]


def test_matcher_gives_up_when_ambiguous(make_entry):
    entry = make_entry(0, 10, None, start="Acme Depot", end="Town")
    records = [ManifestRecord("X1", "Acme", 250), ManifestRecord("X2", "Acme Depot", 300)]
    assert HeuristicMatcher(records).match(entry, records) is None


def test_auto_fill_keeps_existing_order_numbers(store):
    book = EntryStore(store, MonthlyLog(month="2025-03"))
    keep = book.add_entry(start="Depot", end="Karen", mileage_start=0, mileage_end=10,
                          amount_paid=100, order_number="MINE")
    a = book.add_entry(start="Depot", end="Runda", mileage_start=10, mileage_end=20, amount_paid=100)
    b = book.add_entry(start="Depot", end="Gigiri", mileage_start=20, mileage_end=30, amount_paid=100)

    records = [
        ManifestRecord("MINE", "Someone", 100),
        ManifestRecord("N1", "Runda Estate", 100),
        ManifestRecord("N2", "Gigiri", 500),
    ]
    filled = HeuristicMatcher(records).auto_fill(book)

    assert filled == 2
    assert keep.order_number == "MINE"
    assert a.order_number == "N1"
    assert a.customer == "Runda Estate"
    assert b.order_number == "N2"
    assert b.customer == "Gigiri"
    orders = [e.order_number for e in store.load_monthly_log("2025-03").entries]
    assert orders == ["MINE", "N1", "N2"]


def test_suggest_never_reuses_an_order(make_entry):
    entries = [make_entry(0, 10, 100), make_entry(10, 20, 100)]
    records = [ManifestRecord("N1", "", 100)]
    pairs = HeuristicMatcher(records).suggest(entries)
    assert [(e.id, r.order_number) for e, r in pairs] == [(entries[0].id, "N1")]


def test_unclosed_quote_skips_only_that_row():
    text = 'order,customer,earning\nA1,"Smith,100\nA2,Jones,200\nA3,Brown,300\n'
    records, warnings = read_manifest(text)
    assert records == [ManifestRecord("A2", "Jones", 200.0), ManifestRecord("A3", "Brown", 300.0)]
    assert [w.line for w in warnings] == [2]
    assert "skipped" in warnings[0].reason


def test_unreadable_header_is_rejected():
    with pytest.raises(ValidationError):
        read_manifest('"order,earning\nA1,10')


def test_matcher_amount_tolerance_boundary(make_entry):
    records = [ManifestRecord("X1", "Nobody", 100.0)]
    assert HeuristicMatcher(records).match(make_entry(0, 10, 100.01), records) is records[0]
    assert HeuristicMatcher(records).match(make_entry(0, 10, 100.02), records) is None
