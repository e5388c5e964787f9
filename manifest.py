"""
Delivery manifest import and reconciliation for Mileage Tracker.

A manifest is a CSV exported by the dispatcher listing the orders (and
their earnings) it believes were delivered this month. Reconciliation
compares it against the locally recorded job entries by order number.
"""
from __future__ import annotations
import csv
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from errors import ParseWarning, ValidationError
from models import ComparisonRow, JobEntry, ManifestRecord

logger = logging.getLogger("manifest")

ORDER_HEADERS = ("order", "order#", "order_number", "order number")
EARNING_HEADERS = ("earning", "amount", "paid", "revenue", "income")
CUSTOMER_HEADERS = ("customer", "client", "name")

MATCHED = "matched"
MISSING = "missing"
EXTRA = "extra"

_NOT_NUMERIC = re.compile(r"[^0-9.\-]")


def _clean(cell: str) -> str:
    return (cell or "").strip().strip("\"'").strip()


def _find_column(headers: List[str], keys: Sequence[str], exclude: Sequence[int] = ()) -> Optional[int]:
    for i, h in enumerate(headers):
        if i in exclude:
            continue
        if any(k in h for k in keys):
            return i
    return None


def _split_line(line: str) -> List[str]:
    """One manifest row; an unclosed quote raises csv.Error instead of running on"""
    return next(csv.reader([line], skipinitialspace=True, strict=True))


def _cell(row: List[str], idx: Optional[int]) -> str:
    if idx is None or idx >= len(row):
        return ""
    return _clean(row[idx])


def parse_earning(cell: str) -> Optional[float]:
    """'KES 1,250.00' -> 1250.0; None when nothing numeric is left"""
    try:
        return float(_NOT_NUMERIC.sub("", cell or ""))
    except ValueError:
        return None


def read_manifest(text: str) -> Tuple[List[ManifestRecord], List[ParseWarning]]:
    """
    Parse manifest CSV text.

    The first non-blank line is the header; columns are found by
    case-insensitive substring match. Quoted fields may contain commas.
    Each row is read on its own, so a row with an unclosed quote is skipped
    without touching the rows after it. Rows without an order number are
    skipped too and an unparseable earning counts as 0; all of these are
    reported as warnings instead of failing the import.
    """
    lines = [ln for ln in (text or "").replace("\r\n", "\n").replace("\r", "\n").split("\n") if ln.strip()]
    if not lines:
        raise ValidationError("manifest is empty")

    try:
        headers = [_clean(h).lower() for h in _split_line(lines[0])]
    except csv.Error as ex:
        raise ValidationError(f"unreadable manifest header: {ex}") from ex

    order_idx = _find_column(headers, ORDER_HEADERS)
    if order_idx is None:
        raise ValidationError("missing order column")
    earning_idx = _find_column(headers, EARNING_HEADERS, exclude=(order_idx,))
    if earning_idx is None:
        raise ValidationError("missing earning column")
    customer_idx = _find_column(headers, CUSTOMER_HEADERS, exclude=(order_idx, earning_idx))

    records: List[ManifestRecord] = []
    warnings: List[ParseWarning] = []
    skipped = 0
    for line_no, line in enumerate(lines[1:], start=2):
        try:
            row = _split_line(line)
        except csv.Error as ex:
            skipped += 1
            warnings.append(ParseWarning(f"unreadable row skipped: {ex}", line_no))
            continue
        order = _cell(row, order_idx)
        if not order:
            skipped += 1
            warnings.append(ParseWarning("empty order number, row skipped", line_no))
            continue
        earning = parse_earning(_cell(row, earning_idx))
        if earning is None:
            warnings.append(ParseWarning(f"unreadable earning for order {order}, using 0", line_no))
            earning = 0.0
        records.append(ManifestRecord(order_number=order, customer=_cell(row, customer_idx), earning=earning))

    logger.info("parsed %d manifest records, %d rows skipped", len(records), skipped)
    return records, warnings


def parse_manifest(text: str) -> List[ManifestRecord]:
    records, _ = read_manifest(text)
    return records


def reconcile(entries: List[JobEntry], records: List[ManifestRecord]) -> List[ComparisonRow]:
    """
    Classify every manifest record as matched or missing, and every entry
    whose order number the manifest does not list as extra.
    If several entries share an order number the first one is used.
    """
    rows: List[ComparisonRow] = []
    for rec in records:
        entry = next((e for e in entries if e.order_number and e.order_number == rec.order_number), None)
        if entry is not None:
            rows.append(ComparisonRow(
                order_number=rec.order_number,
                customer=rec.customer,
                earning=rec.earning,
                status=MATCHED,
                amount_matches=entry.amount_paid == rec.earning,
                entry_id=entry.id,
            ))
        else:
            rows.append(ComparisonRow(rec.order_number, rec.customer, rec.earning, MISSING))

    listed = {r.order_number for r in records}
    for e in entries:
        if e.order_number and e.order_number not in listed:
            rows.append(ComparisonRow(
                order_number=e.order_number,
                customer=e.customer,
                earning=e.amount_paid or 0.0,
                status=EXTRA,
                entry_id=e.id,
            ))

    logger.info("reconciled %d manifest records against %d entries", len(records), len(entries))
    return rows


def summarize(rows: List[ComparisonRow]) -> Dict[str, int]:
    return {
        "matched": sum(1 for r in rows if r.status == MATCHED),
        "discrepancies": sum(1 for r in rows if r.status == MATCHED and not r.amount_matches),
        "missing": sum(1 for r in rows if r.status == MISSING),
        "extra": sum(1 for r in rows if r.status == EXTRA),
    }


def approve_amount(row: ComparisonRow, entry_store) -> None:
    """Accept the manifest earning for a matched row whose amount differs"""
    if row.status != MATCHED or row.entry_id is None:
        raise ValidationError("Only matched orders can have their amount approved")
    if row.amount_matches:
        return
    entry_store.update_entry(row.entry_id, amount_paid=row.earning)
    row.amount_matches = True


def _names_overlap(customer: str, place_text: str) -> bool:
    c = (customer or "").strip().lower()
    t = (place_text or "").strip().lower()
    if not c or not t:
        return False
    return c in t or t in c


class HeuristicMatcher:
    """
    Guess order numbers for entries that were typed in without one.

    This is a convenience, not a reconciliation: a guess can be wrong and the
    user is expected to review it. Strategies, first success wins:
      a) amount paid within 0.01 of a manifest earning
      b) customer name and start/end text contain one another, when exactly
         one manifest record fits
      c) among several name matches, the one whose earning equals the
         amount paid after rounding to whole units
    Several name matches with no rounded-amount winner give no guess rather
    than the first name match; a wrong order number is worse than none.
    Entries that already have an order number are never touched, and an
    order number already used by an entry is never handed out again.
    """

    AMOUNT_TOLERANCE = 0.01

    def __init__(self, records: List[ManifestRecord]):
        self.records = list(records)

    def match(self, entry: JobEntry, available: List[ManifestRecord]) -> Optional[ManifestRecord]:
        if entry.order_number:
            return None
        amount = entry.amount_paid or 0.0

        if amount > 0:
            for rec in available:
                if round(abs(amount - rec.earning), 2) <= self.AMOUNT_TOLERANCE:
                    return rec

        places = f"{entry.start} {entry.end}"
        named = [rec for rec in available if _names_overlap(rec.customer, places)]
        if len(named) == 1:
            return named[0]

        if amount > 0:
            for rec in named:
                if round(amount) == round(rec.earning):
                    return rec
        return None

    def suggest(self, entries: List[JobEntry]) -> List[Tuple[JobEntry, ManifestRecord]]:
        used = {e.order_number for e in entries if e.order_number}
        available = [r for r in self.records if r.order_number not in used]
        out = []
        for entry in entries:
            rec = self.match(entry, available)
            if rec is None:
                continue
            out.append((entry, rec))
            available = [r for r in available if r.order_number != rec.order_number]
        return out

    def auto_fill(self, entry_store) -> int:
        """Write guessed order numbers (and missing customers) into the store"""
        filled = 0
        for entry, rec in self.suggest(entry_store.log.entries):
            patch = {"order_number": rec.order_number}
            if not entry.customer:
                patch["customer"] = rec.customer
            entry_store.update_entry(entry.id, **patch)
            filled += 1
        logger.info("auto-filled %d entries from manifest", filled)
        return filled
