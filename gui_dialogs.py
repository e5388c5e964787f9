"""
Dialog windows for Mileage Tracker GUI
"""
from __future__ import annotations
from typing import List, Optional

try:
    import tkinter as tk
    from tkinter import ttk, messagebox
except ModuleNotFoundError:
    tk = None
    ttk = None
    messagebox = None

from entry_store import validate_entry_fields
from errors import ValidationError
from models import MISDEMEANOR_TYPES, JobEntry
from utils import today_str, optional_float, parse_date


def _fmt(v) -> str:
    if v is None:
        return ""
    return f"{v:g}" if isinstance(v, float) else str(v)


class EntryDialog(tk.Toplevel):
    """Dialog for adding/editing a job entry"""

    def __init__(self, master, places: List[str], entry: Optional[JobEntry] = None,
                 next_mileage: Optional[float] = None):
        super().__init__(master)
        self.title("Add Job" if entry is None else f"Edit Job #{entry.job_number}")
        self.resizable(False, False)
        self.entry = entry
        # dict of JobEntry field values, or None when cancelled
        self.result: Optional[dict] = None

        self._bind_enter_to_ok()

        frm = ttk.Frame(self, padding=10)
        frm.grid(row=0, column=0, sticky="nsew")

        self.v_date = tk.StringVar(value=(entry.date or "") if entry else today_str())
        self.v_start = tk.StringVar(value=entry.start if entry else "")
        self.v_end = tk.StringVar(value=entry.end if entry else "")
        self.v_mstart = tk.StringVar(value=_fmt(entry.mileage_start) if entry else _fmt(next_mileage))
        self.v_mend = tk.StringVar(value=_fmt(entry.mileage_end) if entry else "")
        self.v_amount = tk.StringVar(value=_fmt(entry.amount_paid) if entry else "")
        self.v_order = tk.StringVar(value=entry.order_number if entry else "")
        self.v_customer = tk.StringVar(value=entry.customer if entry else "")
        self.v_water = tk.BooleanVar(value=entry.is_water_fill if entry else False)
        self.v_parking = tk.BooleanVar(value=entry.is_parking if entry else False)

        r = 0
        ttk.Label(frm, text="Date (YYYY-MM-DD, optional)").grid(row=r, column=0, sticky="w")
        ttk.Entry(frm, textvariable=self.v_date, width=18).grid(row=r, column=1, sticky="w")
        r += 1

        ttk.Label(frm, text="Start").grid(row=r, column=0, sticky="w", pady=2)
        ttk.Combobox(frm, textvariable=self.v_start, values=places, width=26).grid(row=r, column=1, sticky="w")
        r += 1

        ttk.Label(frm, text="End").grid(row=r, column=0, sticky="w", pady=2)
        ttk.Combobox(frm, textvariable=self.v_end, values=places, width=26).grid(row=r, column=1, sticky="w")
        r += 1

        ttk.Label(frm, text="Mileage start (km)").grid(row=r, column=0, sticky="w", pady=2)
        ttk.Entry(frm, textvariable=self.v_mstart, width=18).grid(row=r, column=1, sticky="w")
        r += 1

        ttk.Label(frm, text="Mileage end (km)").grid(row=r, column=0, sticky="w", pady=2)
        ttk.Entry(frm, textvariable=self.v_mend, width=18).grid(row=r, column=1, sticky="w")
        r += 1

        ttk.Label(frm, text="Amount paid").grid(row=r, column=0, sticky="w", pady=2)
        ttk.Entry(frm, textvariable=self.v_amount, width=18).grid(row=r, column=1, sticky="w")
        r += 1

        ttk.Label(frm, text="Order #").grid(row=r, column=0, sticky="w", pady=2)
        ttk.Entry(frm, textvariable=self.v_order, width=18).grid(row=r, column=1, sticky="w")
        r += 1

        ttk.Label(frm, text="Customer").grid(row=r, column=0, sticky="w", pady=2)
        ttk.Entry(frm, textvariable=self.v_customer, width=28).grid(row=r, column=1, sticky="w")
        r += 1

        tags = ttk.Frame(frm)
        tags.grid(row=r, column=0, columnspan=2, sticky="w", pady=(6, 0))
        ttk.Checkbutton(tags, text="Water fill", variable=self.v_water).pack(side="left")
        ttk.Checkbutton(tags, text="Parking", variable=self.v_parking).pack(side="left", padx=8)
        r += 1

        self.distance_var = tk.StringVar(value="")
        ttk.Label(frm, textvariable=self.distance_var).grid(row=r, column=0, columnspan=2, sticky="w", pady=(8, 0))
        self._update_distance_label()
        self.v_mstart.trace_add("write", lambda *_: self._update_distance_label())
        self.v_mend.trace_add("write", lambda *_: self._update_distance_label())
        r += 1

        btns = ttk.Frame(frm)
        btns.grid(row=r, column=0, columnspan=2, sticky="e", pady=(10, 0))
        ttk.Button(btns, text="OK", command=self._ok).grid(row=0, column=0, padx=4)
        ttk.Button(btns, text="Cancel", command=self._cancel).grid(row=0, column=1, padx=4)

        self.grab_set()
        self.transient(master)

    def _bind_enter_to_ok(self):
        def on_enter(event=None):
            self._ok()
            return "break"

        self.bind("<Return>", on_enter)
        self.bind("<KP_Enter>", on_enter)

    def _update_distance_label(self):
        ms = optional_float(self.v_mstart.get())
        me = optional_float(self.v_mend.get())
        if ms is None or me is None:
            self.distance_var.set("Distance: -")
        else:
            self.distance_var.set(f"Distance: {me - ms:g} km")

    def _ok(self):
        """Validate and collect entry fields"""
        date = self.v_date.get().strip() or None
        if date:
            try:
                parse_date(date)
            except ValueError:
                messagebox.showerror("Invalid date", "Date must be YYYY-MM-DD.")
                return

        amount_text = self.v_amount.get().strip()
        amount = optional_float(amount_text)
        if amount_text and (amount is None or amount < 0):
            messagebox.showerror("Invalid amount", "Amount must be a non-negative number.")
            return

        values = {
            "date": date,
            "start": self.v_start.get().strip(),
            "end": self.v_end.get().strip(),
            "mileage_start": optional_float(self.v_mstart.get()),
            "mileage_end": optional_float(self.v_mend.get()),
            "amount_paid": amount,
            "order_number": self.v_order.get().strip(),
            "customer": self.v_customer.get().strip(),
            "is_water_fill": bool(self.v_water.get()),
            "is_parking": bool(self.v_parking.get()),
        }
        try:
            validate_entry_fields(values)
        except ValidationError as ex:
            messagebox.showerror("Missing fields", ex.reason)
            return

        self.result = values
        self.destroy()

    def _cancel(self):
        self.result = None
        self.destroy()


class MisdemeanorDialog(tk.Toplevel):
    """Dialog for recording a misdemeanor"""

    def __init__(self, master):
        super().__init__(master)
        self.title("Record Misdemeanor")
        self.resizable(False, False)
        self.result: Optional[dict] = None

        frm = ttk.Frame(self, padding=10)
        frm.grid(row=0, column=0, sticky="nsew")

        self.v_date = tk.StringVar(value=today_str())
        self.v_type = tk.StringVar(value="")
        self.v_fine = tk.StringVar(value="")
        self.v_desc = tk.StringVar(value="")

        ttk.Label(frm, text="Date (YYYY-MM-DD)").grid(row=0, column=0, sticky="w")
        ttk.Entry(frm, textvariable=self.v_date, width=18).grid(row=0, column=1, sticky="w")
        ttk.Label(frm, text="Type").grid(row=1, column=0, sticky="w", pady=2)
        ttk.Combobox(frm, textvariable=self.v_type, values=MISDEMEANOR_TYPES,
                     width=24, state="readonly").grid(row=1, column=1, sticky="w")
        ttk.Label(frm, text="Fine").grid(row=2, column=0, sticky="w", pady=2)
        ttk.Entry(frm, textvariable=self.v_fine, width=18).grid(row=2, column=1, sticky="w")
        ttk.Label(frm, text="Description").grid(row=3, column=0, sticky="w", pady=2)
        ttk.Entry(frm, textvariable=self.v_desc, width=36).grid(row=3, column=1, sticky="w")

        btns = ttk.Frame(frm)
        btns.grid(row=4, column=0, columnspan=2, sticky="e", pady=(10, 0))
        ttk.Button(btns, text="Save", command=self._ok).grid(row=0, column=0, padx=4)
        ttk.Button(btns, text="Cancel", command=self.destroy).grid(row=0, column=1, padx=4)

        self.grab_set()
        self.transient(master)

    def _ok(self):
        if not self.v_type.get():
            messagebox.showerror("Missing type", "Please select a type")
            return
        fine_text = self.v_fine.get().strip()
        fine = optional_float(fine_text)
        if fine_text and fine is None:
            messagebox.showerror("Invalid fine", "Fine must be a number.")
            return
        self.result = {
            "date": self.v_date.get().strip(),
            "type": self.v_type.get(),
            "description": self.v_desc.get().strip(),
            "fine": fine,
        }
        self.destroy()


GUIDE_TEXT = (
    "How to keep monthly reports clean:\n\n"
    "1. Set the month's start mileage before entering jobs.\n"
    "2. Enter every job leg with its start and end odometer readings;\n"
    "   the next job's start reading is filled in for you.\n"
    "3. Record the order number when you have it, so the dispatcher's\n"
    "   manifest can be reconciled later (Reconcile tab).\n"
    "4. Enter fuel purchases and expenses in the Fuel & Expenses tab.\n"
    "   The monthly salary is entered on the last day of the month.\n"
    "5. Export CSV/Excel or copy for Sheets from the File menu."
)


class GuideDialog(tk.Toplevel):
    """First-run guide with a 'do not show again' option"""

    def __init__(self, master, show_on_startup: bool = True):
        super().__init__(master)
        self.title("Before you start")
        self.resizable(False, False)
        self.v_hide = tk.BooleanVar(value=not show_on_startup)

        frm = ttk.Frame(self, padding=12)
        frm.grid(row=0, column=0, sticky="nsew")
        ttk.Label(frm, text=GUIDE_TEXT, justify="left").grid(row=0, column=0, sticky="w")
        ttk.Checkbutton(frm, text="Do not show this guide automatically next time",
                        variable=self.v_hide).grid(row=1, column=0, sticky="w", pady=(10, 0))
        ttk.Button(frm, text="Got it", command=self.destroy).grid(row=2, column=0, sticky="e", pady=(10, 0))

        self.grab_set()
        self.transient(master)

    @property
    def show_on_startup(self) -> bool:
        return not bool(self.v_hide.get())
