"""
Main application window for Mileage Tracker GUI
"""
from __future__ import annotations
import logging
import os
from datetime import date
from typing import Optional

try:
    import tkinter as tk
    from tkinter import ttk, messagebox, filedialog
except ModuleNotFoundError:
    tk = None
    ttk = None
    messagebox = None
    filedialog = None

from config import AppState, load_settings, save_settings
from computations import (
    best_and_worst_day,
    compute_daily_aggregates,
    compute_daily_stats,
    compute_history,
    compute_month_summary,
    entry_distance,
)
from csv_handler import (
    export_filename,
    format_csv,
    format_sheet_paste,
    import_fuel_data,
    write_text_export,
)
from entry_store import EntryStore
from errors import PersistenceError, ValidationError
from excel_export import export_excel
from gui_dialogs import EntryDialog, GuideDialog, MisdemeanorDialog
from manifest import HeuristicMatcher, approve_amount, read_manifest, reconcile, summarize
from models import FuelData
from storage import make_store
from utils import current_month, is_last_day_of_month, optional_float, parse_month

logger = logging.getLogger("main_app")

# (label, FuelData field) for the fuel form
FUEL_FORM_FIELDS = [
    ("Fuel CF", "fuel_cf"),
    ("Diesel Amount (L)", "diesel_amount"),
    ("Diesel Cost", "diesel_cost"),
    ("Petrol Amount (L)", "petrol_amount"),
    ("Petrol Cost", "petrol_cost"),
    ("Consumption Rate (km/L)", "fuel_consumption_rate"),
    ("Total Liters Used (manual)", "total_liters_used"),
    ("Total Expense", "total_expense"),
    ("Other Costs", "other_costs"),
    ("Fuel Balance", "fuel_balance"),
    ("Amount Earned (override)", "amount_earned"),
    ("Monthly Salary (2 drivers)", "monthly_salary"),
]


def _money(v, currency: str) -> str:
    return f"{currency} {v:,.2f}"


def _num(v) -> str:
    if v is None:
        return ""
    return f"{v:,.2f}".rstrip("0").rstrip(".") if isinstance(v, float) else str(v)


class MileageTrackerApp(ttk.Frame):
    """Main application window"""

    def __init__(self, master: tk.Tk):
        super().__init__(master, padding=8)
        self.master = master
        self.master.title("Mileage Tracker")
        self.master.geometry("1200x700")
        self.grid(row=0, column=0, sticky="nsew")
        self.master.rowconfigure(0, weight=1)
        self.master.columnconfigure(0, weight=1)

        self.settings = load_settings()
        self.state = AppState.from_settings(self.settings)
        self.store = make_store(self.settings)
        self.currency = self.settings.get("currency", "KES")
        self.book: Optional[EntryStore] = None
        self.comparison = []

        self._build_menu()
        self._build_ui()
        self.open_month(current_month())

        if self.state.show_guide_on_startup:
            self.after_idle(self.show_guide)

    # ---------- Menu ----------
    def _build_menu(self):
        """Build application menu bar"""
        menubar = tk.Menu(self.master)
        filem = tk.Menu(menubar, tearoff=0)
        filem.add_command(label="Export CSV…", command=self.export_csv_dialog)
        filem.add_command(label="Copy for Google Sheets", command=self.copy_for_sheets)
        filem.add_command(label="Save Sheets TSV…", command=self.export_tsv_dialog)
        filem.add_command(label="Export Excel…", command=self.export_excel_dialog)
        filem.add_separator()
        filem.add_command(label="Import Fuel CSV…", command=self.import_fuel_dialog)
        filem.add_command(label="Upload Manifest CSV…", command=self.upload_manifest_dialog)
        filem.add_separator()
        filem.add_command(label="Retry Sync", command=self.retry_sync)
        filem.add_separator()
        filem.add_command(label="Exit", command=self.quit_app)
        menubar.add_cascade(label="File", menu=filem)

        helpm = tk.Menu(menubar, tearoff=0)
        helpm.add_command(label="Usage Guide", command=self.show_guide)
        menubar.add_cascade(label="Help", menu=helpm)

        self.master.config(menu=menubar)
        self.master.protocol("WM_DELETE_WINDOW", self.quit_app)

    # ---------- UI ----------
    def _build_ui(self):
        """Build month bar, tabs and status line"""
        bar = ttk.Frame(self)
        bar.grid(row=0, column=0, sticky="ew")
        ttk.Label(bar, text="Month (YYYY-MM)").pack(side="left")
        self.month_var = tk.StringVar(value=current_month())
        ttk.Entry(bar, textvariable=self.month_var, width=10).pack(side="left", padx=4)
        ttk.Button(bar, text="Open", command=self._open_month_from_bar).pack(side="left", padx=3)
        ttk.Button(bar, text="This Month", command=lambda: self.open_month(current_month())).pack(side="left", padx=3)

        ttk.Label(bar, text="Start mileage").pack(side="left", padx=(20, 0))
        self.start_mileage_var = tk.StringVar(value="")
        ttk.Entry(bar, textvariable=self.start_mileage_var, width=12).pack(side="left", padx=4)
        ttk.Label(bar, text="End mileage").pack(side="left", padx=(8, 0))
        self.end_mileage_var = tk.StringVar(value="")
        ttk.Entry(bar, textvariable=self.end_mileage_var, width=12).pack(side="left", padx=4)
        ttk.Button(bar, text="Save Mileage", command=self.save_mileage_bounds).pack(side="left", padx=3)

        nb = ttk.Notebook(self)
        nb.grid(row=1, column=0, sticky="nsew", pady=(6, 0))
        self.rowconfigure(1, weight=1)
        self.columnconfigure(0, weight=1)

        self.tab_jobs = ttk.Frame(nb, padding=8)
        self.tab_fuel = ttk.Frame(nb, padding=8)
        self.tab_misdemeanors = ttk.Frame(nb, padding=8)
        self.tab_reconcile = ttk.Frame(nb, padding=8)
        self.tab_sites = ttk.Frame(nb, padding=8)
        self.tab_summary = ttk.Frame(nb, padding=8)

        nb.add(self.tab_jobs, text="Jobs")
        nb.add(self.tab_fuel, text="Fuel & Expenses")
        nb.add(self.tab_misdemeanors, text="Misdemeanors")
        nb.add(self.tab_reconcile, text="Reconcile")
        nb.add(self.tab_sites, text="Water Fill Sites")
        nb.add(self.tab_summary, text="Summary")

        self._build_jobs_tab()
        self._build_fuel_tab()
        self._build_misdemeanors_tab()
        self._build_reconcile_tab()
        self._build_sites_tab()
        self._build_summary_tab()

        self.status_var = tk.StringVar(value="")
        ttk.Label(self, textvariable=self.status_var, foreground="#a05000").grid(row=2, column=0, sticky="w")

    def _tree(self, parent, cols, widths, height=18, row=2):
        tree = ttk.Treeview(parent, columns=cols, show="headings", height=height)
        for c, w in zip(cols, widths):
            tree.heading(c, text=c)
            tree.column(c, width=w, anchor="w")
        tree.grid(row=row, column=0, sticky="nsew")
        parent.rowconfigure(row, weight=1)
        yscroll = ttk.Scrollbar(parent, orient="vertical", command=tree.yview)
        tree.configure(yscroll=yscroll.set)
        yscroll.grid(row=row, column=1, sticky="ns")
        return tree

    def _build_jobs_tab(self):
        """Build job entries tab"""
        top = ttk.Frame(self.tab_jobs)
        top.grid(row=0, column=0, sticky="ew")
        self.tab_jobs.columnconfigure(0, weight=1)

        ttk.Button(top, text="Add", command=self.add_entry).pack(side="left", padx=3)
        ttk.Button(top, text="Edit", command=self.edit_selected_entry).pack(side="left", padx=3)
        ttk.Button(top, text="Delete", command=self.delete_selected_entry).pack(side="left", padx=3)
        ttk.Button(top, text="Clear Month", command=self.clear_entries).pack(side="left", padx=3)
        self.jobs_note = tk.StringVar(value="")
        ttk.Label(top, textvariable=self.jobs_note).pack(side="left", padx=12)

        ttk.Separator(self.tab_jobs, orient="horizontal").grid(row=1, column=0, sticky="ew", pady=6)

        cols = ("job", "date", "order", "customer", "start", "end", "mileage_start", "mileage_end",
                "distance", "total_distance", "amount", "tags")
        self.job_tree = self._tree(self.tab_jobs, cols, [45, 90, 90, 130, 150, 150, 95, 95, 75, 95, 90, 110])

    def _build_fuel_tab(self):
        """Build fuel and expenses form"""
        frm = ttk.Frame(self.tab_fuel)
        frm.grid(row=0, column=0, sticky="nw")
        self.fuel_vars = {}
        self.fuel_entries = {}
        for i, (label, key) in enumerate(FUEL_FORM_FIELDS):
            r, c = divmod(i, 2)
            ttk.Label(frm, text=label).grid(row=r, column=c * 2, sticky="w", padx=(0, 6), pady=2)
            v = tk.StringVar(value="")
            self.fuel_vars[key] = v
            ent = ttk.Entry(frm, textvariable=v, width=14)
            ent.grid(row=r, column=c * 2 + 1, sticky="w", padx=(0, 24))
            self.fuel_entries[key] = ent

        btns = ttk.Frame(self.tab_fuel)
        btns.grid(row=1, column=0, sticky="w", pady=(10, 0))
        ttk.Button(btns, text="Save Fuel & Expense Data", command=self.save_fuel).pack(side="left", padx=3)
        ttk.Button(btns, text="Import Fuel CSV…", command=self.import_fuel_dialog).pack(side="left", padx=3)

        self.salary_note = tk.StringVar(value="")
        ttk.Label(self.tab_fuel, textvariable=self.salary_note).grid(row=2, column=0, sticky="w", pady=(6, 0))
        self.fuel_summary = tk.StringVar(value="")
        ttk.Label(self.tab_fuel, textvariable=self.fuel_summary, justify="left").grid(
            row=3, column=0, sticky="w", pady=(10, 0))

    def _build_misdemeanors_tab(self):
        """Build misdemeanors tab"""
        self.tab_misdemeanors.columnconfigure(0, weight=1)
        top = ttk.Frame(self.tab_misdemeanors)
        top.grid(row=0, column=0, sticky="ew")
        ttk.Button(top, text="Add Entry", command=self.add_misdemeanor).pack(side="left", padx=3)
        ttk.Button(top, text="Mark Resolved", command=self.resolve_selected_misdemeanor).pack(side="left", padx=3)
        ttk.Button(top, text="Delete", command=self.delete_selected_misdemeanor).pack(side="left", padx=3)
        self.misdemeanor_note = tk.StringVar(value="")
        ttk.Label(top, textvariable=self.misdemeanor_note).pack(side="left", padx=12)

        cols = ("date", "type", "description", "fine", "status")
        self.mis_tree = self._tree(self.tab_misdemeanors, cols, [100, 170, 420, 100, 90], row=1)

    def _build_reconcile_tab(self):
        """Build manifest reconciliation tab"""
        self.tab_reconcile.columnconfigure(0, weight=1)
        top = ttk.Frame(self.tab_reconcile)
        top.grid(row=0, column=0, sticky="ew")
        ttk.Button(top, text="Upload Manifest CSV…", command=self.upload_manifest_dialog).pack(side="left", padx=3)
        ttk.Button(top, text="Approve Amount", command=self.approve_selected_amount).pack(side="left", padx=3)
        ttk.Button(top, text="Auto-fill Order Numbers", command=self.auto_fill_orders).pack(side="left", padx=3)
        self.reconcile_note = tk.StringVar(value="Upload a dispatch/company CSV to compare with your monthly jobs.")
        ttk.Label(top, textvariable=self.reconcile_note).pack(side="left", padx=12)

        cols = ("order", "customer", "earning", "status")
        self.cmp_tree = self._tree(self.tab_reconcile, cols, [150, 260, 140, 160], row=1)

    def _build_sites_tab(self):
        """Build water fill sites tab"""
        self.tab_sites.columnconfigure(0, weight=1)
        ttk.Label(self.tab_sites, text="Water fill sites:").grid(row=0, column=0, sticky="w")
        self.sites_list = tk.Listbox(self.tab_sites, height=14)
        self.sites_list.grid(row=1, column=0, sticky="nsew", pady=6)
        self.tab_sites.rowconfigure(1, weight=1)

        controls = ttk.Frame(self.tab_sites)
        controls.grid(row=2, column=0, sticky="ew")
        self.new_site_var = tk.StringVar()
        ttk.Entry(controls, textvariable=self.new_site_var, width=28).pack(side="left")
        ttk.Button(controls, text="Add", command=self.add_site).pack(side="left", padx=4)
        ttk.Button(controls, text="Remove Selected", command=self.remove_selected_site).pack(side="left", padx=4)
        ttk.Button(controls, text="Tag Existing Jobs", command=self.retag_water_fill).pack(side="left", padx=4)

        ttk.Label(self.tab_sites,
                  text="Jobs whose start or end contains a site name are tagged as water fill.").grid(
            row=3, column=0, sticky="w", pady=(8, 0))

    def _build_summary_tab(self):
        """Build dashboard, daily and monthly history views"""
        self.tab_summary.columnconfigure(0, weight=1)
        self.cards_var = tk.StringVar(value="")
        ttk.Label(self.tab_summary, textvariable=self.cards_var, justify="left",
                  font=("TkDefaultFont", 11)).grid(row=0, column=0, sticky="w")

        ttk.Label(self.tab_summary, text="Daily:").grid(row=1, column=0, sticky="w", pady=(10, 0))
        cols = ("date", "jobs", "paid_jobs", "distance", "amount", "expenses")
        self.daily_tree = self._tree(self.tab_summary, cols, [110, 70, 80, 100, 120, 120], height=8, row=2)

        self.best_worst_var = tk.StringVar(value="")
        ttk.Label(self.tab_summary, textvariable=self.best_worst_var).grid(row=3, column=0, sticky="w", pady=(6, 0))

        ttk.Label(self.tab_summary, text="History:").grid(row=4, column=0, sticky="w", pady=(10, 0))
        hcols = ("month", "jobs", "paid_jobs", "distance", "amount_earned")
        self.hist_tree = self._tree(self.tab_summary, hcols, [110, 70, 80, 110, 140], height=8, row=5)

    # ---------- Month ----------
    def _on_persistence_error(self, ex: PersistenceError):
        self.status_var.set(f"Not saved: {ex.reason} (changes kept; use File > Retry Sync)")

    def open_month(self, month: str):
        """Switch to a month, creating it on first use"""
        try:
            parse_month(month)
        except ValueError:
            messagebox.showerror("Invalid month", "Month must be YYYY-MM.")
            return
        try:
            self.book = EntryStore.open(self.store, month, self.state, self._on_persistence_error)
        except PersistenceError as ex:
            messagebox.showerror("Load failed", ex.reason)
            return
        self.month_var.set(month)
        self.comparison = []
        self.status_var.set("")
        self.master.title(f"Mileage Tracker - {month}")
        self.refresh_all()

    def _open_month_from_bar(self):
        self.open_month(self.month_var.get().strip())

    def save_mileage_bounds(self):
        start_text = self.start_mileage_var.get().strip()
        end_text = self.end_mileage_var.get().strip()
        start = optional_float(start_text)
        end = optional_float(end_text)
        if (start_text and start is None) or (end_text and end is None):
            messagebox.showerror("Invalid mileage", "Mileage must be a number.")
            return
        self.book.set_start_mileage(start)
        self.book.set_end_mileage(end)
        if start is not None:
            self.state.default_start_mileage = start
        self.refresh_all()

    # ---------- CRUD: Entries ----------
    def add_entry(self):
        dlg = EntryDialog(self.master, self.state.known_places, None, self.book.last_mileage())
        self.master.wait_window(dlg)
        if dlg.result:
            self.book.add_entry(**dlg.result)
            self.refresh_all()

    def _selected(self, tree) -> Optional[str]:
        sel = tree.selection()
        return sel[0] if sel else None

    def edit_selected_entry(self):
        iid = self._selected(self.job_tree)
        if not iid:
            messagebox.showinfo("Edit", "Select a job row first.")
            return
        entry = next((e for e in self.book.log.entries if e.id == iid), None)
        if not entry:
            return
        dlg = EntryDialog(self.master, self.state.known_places, entry)
        self.master.wait_window(dlg)
        if dlg.result:
            try:
                self.book.update_entry(iid, **dlg.result)
            except ValidationError as ex:
                messagebox.showerror("Edit failed", ex.reason)
            self.refresh_all()

    def delete_selected_entry(self):
        iid = self._selected(self.job_tree)
        if not iid:
            messagebox.showinfo("Delete", "Select a job row first.")
            return
        if messagebox.askyesno("Delete", "Delete selected job? Remaining jobs will be renumbered."):
            self.book.delete_entry(iid)
            self.refresh_all()

    def clear_entries(self):
        if messagebox.askyesno("Clear", f"Remove all jobs for {self.book.log.month}?"):
            self.book.clear_entries()
            self.refresh_all()

    # ---------- Fuel ----------
    def _fuel_form_enabled(self):
        # salary is entered once, on the last calendar day of the month
        today = date.today()
        salary_day = is_last_day_of_month(today) and today.strftime("%Y-%m") == self.book.log.month
        self.fuel_entries["monthly_salary"].configure(state="normal" if salary_day else "disabled")
        self.salary_note.set("" if salary_day else "Monthly salary can be entered on the last day of the month.")

    def save_fuel(self):
        values = {}
        for label, key in FUEL_FORM_FIELDS:
            text = self.fuel_vars[key].get().strip()
            v = optional_float(text)
            if text and v is None:
                messagebox.showerror("Invalid number", f"{label} must be a number.")
                return
            values[key] = v
        current = self.book.log.fuel_data
        fuel = FuelData(**values, total_liters_used_diesel=current.total_liters_used_diesel)
        self.book.set_fuel_data(fuel)
        self.refresh_all()

    def import_fuel_dialog(self):
        fp = filedialog.askopenfilename(
            title="Import Fuel Data CSV (label,value)",
            filetypes=[("CSV files", "*.csv"), ("All files", "*.*")]
        )
        if not fp:
            return
        try:
            with open(fp, "r", encoding="utf-8-sig") as f:
                fuel = import_fuel_data(f.read(), self.book.log.fuel_data)
        except (OSError, UnicodeDecodeError) as ex:
            messagebox.showerror("Import failed", str(ex))
            return
        self.book.set_fuel_data(fuel)
        self.refresh_all()
        messagebox.showinfo("Import", "Fuel data loaded.")

    # ---------- Misdemeanors ----------
    def add_misdemeanor(self):
        dlg = MisdemeanorDialog(self.master)
        self.master.wait_window(dlg)
        if dlg.result:
            try:
                self.book.add_misdemeanor(**dlg.result)
            except ValidationError as ex:
                messagebox.showerror("Invalid misdemeanor", ex.reason)
                return
            self.refresh_all()

    def resolve_selected_misdemeanor(self):
        iid = self._selected(self.mis_tree)
        if iid:
            self.book.resolve_misdemeanor(iid)
            self.refresh_all()

    def delete_selected_misdemeanor(self):
        iid = self._selected(self.mis_tree)
        if iid and messagebox.askyesno("Delete", "Delete selected misdemeanor?"):
            self.book.delete_misdemeanor(iid)
            self.refresh_all()

    # ---------- Reconcile ----------
    def upload_manifest_dialog(self):
        fp = filedialog.askopenfilename(
            title="Upload Manifest CSV",
            filetypes=[("CSV files", "*.csv"), ("All files", "*.*")]
        )
        if not fp:
            return
        try:
            with open(fp, "r", encoding="utf-8-sig") as f:
                records, warnings = read_manifest(f.read())
        except ValidationError as ex:
            messagebox.showerror("Manifest rejected", ex.reason)
            return
        except (OSError, UnicodeDecodeError) as ex:
            messagebox.showerror("Manifest rejected", str(ex))
            return

        self.state.cache_manifest(records)
        self.comparison = reconcile(self.book.log.entries, records)
        self.refresh_reconcile()
        if warnings:
            shown = "\n".join(str(w) for w in warnings[:10])
            more = f"\n… and {len(warnings) - 10} more" if len(warnings) > 10 else ""
            messagebox.showwarning("Manifest", f"{len(warnings)} rows had problems:\n{shown}{more}")

    def approve_selected_amount(self):
        iid = self._selected(self.cmp_tree)
        if not iid:
            messagebox.showinfo("Approve", "Select a row whose amount differs.")
            return
        row = self.comparison[int(iid)]
        try:
            approve_amount(row, self.book)
        except ValidationError as ex:
            messagebox.showerror("Approve", ex.reason)
            return
        self.refresh_all()

    def auto_fill_orders(self):
        if not self.state.manifest_records:
            messagebox.showinfo("Auto-fill", "Upload a manifest first.")
            return
        filled = HeuristicMatcher(self.state.manifest_records).auto_fill(self.book)
        self.comparison = reconcile(self.book.log.entries, self.state.manifest_records)
        self.refresh_all()
        messagebox.showinfo("Auto-fill", f"Filled {filled} order numbers. These are guesses; please review them.")

    # ---------- Water fill sites ----------
    def add_site(self):
        try:
            self.book.add_site(self.new_site_var.get())
        except ValidationError as ex:
            messagebox.showerror("Water fill site", ex.reason)
            return
        self.new_site_var.set("")
        self.refresh_all()

    def remove_selected_site(self):
        sel = self.sites_list.curselection()
        if not sel:
            return
        site = self.book.sites[sel[0]]
        self.book.delete_site(site.id)
        self.refresh_all()

    def retag_water_fill(self):
        n = self.book.retag_water_fill()
        self.refresh_all()
        messagebox.showinfo("Water fill", f"Tagged {n} jobs.")

    # ---------- Export ----------
    def export_csv_dialog(self):
        month = self.book.log.month
        fp = filedialog.asksaveasfilename(
            title="Export CSV",
            initialfile=export_filename(month, "csv"),
            defaultextension=".csv",
            filetypes=[("CSV files", "*.csv")]
        )
        if not fp:
            return
        try:
            write_text_export(format_csv(self.book.log, self.book.sites), fp)
            messagebox.showinfo("Export CSV", f"Exported: {fp}")
        except OSError as ex:
            messagebox.showerror("Export failed", str(ex))

    def export_tsv_dialog(self, text: Optional[str] = None):
        month = self.book.log.month
        fp = filedialog.asksaveasfilename(
            title="Save Sheets TSV",
            initialfile=export_filename(month, "tsv"),
            defaultextension=".tsv",
            filetypes=[("Tab separated", "*.tsv")]
        )
        if not fp:
            return
        try:
            write_text_export(text or format_sheet_paste(self.book.log, self.book.sites), fp)
        except OSError as ex:
            messagebox.showerror("Export failed", str(ex))

    def copy_for_sheets(self):
        """Copy the paste layout to the clipboard; paste it at cell A1"""
        text = format_sheet_paste(self.book.log, self.book.sites)
        try:
            self.master.clipboard_clear()
            self.master.clipboard_append(text)
            self.master.update()
        except tk.TclError as ex:
            logger.warning("clipboard unavailable: %s", ex)
            self._show_copy_fallback(text)
            return
        messagebox.showinfo("Copied", "Copied to clipboard - paste into cell A1 of Google Sheets.")

    def _show_copy_fallback(self, text: str):
        dlg = tk.Toplevel(self.master)
        dlg.title("Copy manually")
        ttk.Label(dlg, text="Clipboard not available. Select all and copy, or save as .tsv:").pack(
            anchor="w", padx=8, pady=(8, 0))
        box = tk.Text(dlg, width=120, height=25, wrap="none")
        box.insert("1.0", text)
        box.pack(fill="both", expand=True, padx=8, pady=6)
        box.focus_set()
        box.tag_add("sel", "1.0", "end")
        ttk.Button(dlg, text="Save .tsv…", command=lambda: self.export_tsv_dialog(text)).pack(
            side="left", padx=8, pady=(0, 8))
        ttk.Button(dlg, text="Close", command=dlg.destroy).pack(side="right", padx=8, pady=(0, 8))

    def export_excel_dialog(self):
        month = self.book.log.month
        fp = filedialog.asksaveasfilename(
            title="Export Excel",
            initialfile=export_filename(month, "xlsx"),
            defaultextension=".xlsx",
            filetypes=[("Excel Workbook", "*.xlsx")]
        )
        if not fp:
            return
        try:
            export_excel(self.book.log, fp, self.book.sites)
            messagebox.showinfo("Export", f"Exported: {fp}")
        except OSError as ex:
            messagebox.showerror("Export failed", str(ex))

    # ---------- Settings / lifecycle ----------
    def show_guide(self):
        dlg = GuideDialog(self.master, self.state.show_guide_on_startup)
        self.master.wait_window(dlg)
        self.state.show_guide_on_startup = dlg.show_on_startup
        self._save_settings()

    def _save_settings(self):
        self.settings = self.state.to_settings(self.settings)
        try:
            save_settings(self.settings)
        except OSError as ex:
            logger.warning("could not save settings: %s", ex)

    def retry_sync(self):
        if self.book.flush():
            self.status_var.set("All changes saved.")

    def quit_app(self):
        if self.book is not None and not self.book.flush():
            if not messagebox.askyesno("Unsaved changes", "Some changes could not be saved. Quit anyway?"):
                return
        self._save_settings()
        self.master.destroy()

    # ---------- Refresh ----------
    def refresh_all(self):
        """Refresh all UI elements"""
        log = self.book.log
        self.start_mileage_var.set(_num(log.start_mileage))
        self.end_mileage_var.set(_num(log.end_mileage))
        self.refresh_jobs()
        self.refresh_fuel()
        self.refresh_misdemeanors()
        self.refresh_reconcile()
        self.refresh_sites()
        self.refresh_summary()

    def refresh_jobs(self):
        for iid in self.job_tree.get_children():
            self.job_tree.delete(iid)
        running = 0.0
        for e in self.book.log.entries:
            running += entry_distance(e)
            tags = ", ".join(t for t, on in (("water fill", e.is_water_fill), ("parking", e.is_parking)) if on)
            values = (
                e.job_number, e.date or "", e.order_number, e.customer, e.start, e.end,
                _num(e.mileage_start), _num(e.mileage_end), _num(e.distance), _num(running),
                _num(e.amount_paid), tags,
            )
            self.job_tree.insert("", "end", iid=e.id, values=values)
        log = self.book.log
        self.jobs_note.set(f"{log.total_jobs} jobs, {_num(log.total_distance)} km")

    def refresh_fuel(self):
        fuel = self.book.log.fuel_data
        for _, key in FUEL_FORM_FIELDS:
            self.fuel_vars[key].set(_num(getattr(fuel, key)))
        self._fuel_form_enabled()
        s = compute_month_summary(self.book.log)
        self.fuel_summary.set(
            f"Total cost (diesel + petrol): {_money(s['total_fuel_cost'], self.currency)}\n"
            f"Diesel used: {s['liters_used_diesel']:g} L at {_money(s['diesel_unit_cost'], self.currency)}/L"
            f" = {_money(s['usage_cost'], self.currency)}\n"
            f"Net profit: {_money(s['net_profit'], self.currency)}"
        )

    def refresh_misdemeanors(self):
        for iid in self.mis_tree.get_children():
            self.mis_tree.delete(iid)
        for m in sorted(self.book.log.misdemeanors, key=lambda m: m.date):
            self.mis_tree.insert("", "end", iid=m.id, values=(
                m.date, m.type, m.description, _num(m.fine), "Resolved" if m.resolved else "Pending"))
        s = compute_month_summary(self.book.log)
        self.misdemeanor_note.set(
            f"Total fines: {_money(s['total_fines'], self.currency)}   Pending: {s['unresolved_misdemeanors']}")

    def refresh_reconcile(self):
        for iid in self.cmp_tree.get_children():
            self.cmp_tree.delete(iid)
        for i, row in enumerate(self.comparison):
            if row.status == "matched":
                label = "Matched" if row.amount_matches else "Amount differs"
            else:
                label = row.status.capitalize()
            self.cmp_tree.insert("", "end", iid=str(i), values=(
                row.order_number, row.customer, _money(row.earning, self.currency), label))
        if self.comparison:
            c = summarize(self.comparison)
            self.reconcile_note.set(
                f"{c['matched']} Matched ({c['discrepancies']} amount differs)   "
                f"{c['missing']} Missing   {c['extra']} Extra")

    def refresh_sites(self):
        self.sites_list.delete(0, tk.END)
        for s in self.book.sites:
            self.sites_list.insert(tk.END, s.name)

    def refresh_summary(self):
        log = self.book.log
        s = compute_month_summary(log)
        self.cards_var.set(
            f"Net Profit: {_money(s['net_profit'], self.currency)}      "
            f"Total Monthly Earnings: {_money(s['amount_earned'], self.currency)}\n"
            f"Total Paid Jobs: {s['paid_jobs']}      Total Monthly Distance: {s['total_distance']:,g} km\n"
            f"Total Liters Used - Diesel: {s['liters_used_diesel']:,g} L      "
            f"Total Fuel Cost: {_money(s['total_fuel_cost'], self.currency)}"
        )

        for iid in self.daily_tree.get_children():
            self.daily_tree.delete(iid)
        aggregates = {a["date"]: a for a in compute_daily_aggregates(log)}
        for d in compute_daily_stats(log):
            self.daily_tree.insert("", "end", values=(
                d["date"], d["jobs"], d["paid_jobs"], _num(d["distance"]), _num(d["amount"]),
                _num(aggregates[d["date"]]["expenses"])))
        best, worst = best_and_worst_day(list(aggregates.values()))
        if best:
            self.best_worst_var.set(
                f"Best day: {best['date']} ({_money(best['earnings'], self.currency)})   "
                f"Worst day: {worst['date']} ({_money(worst['earnings'], self.currency)})")
        else:
            self.best_worst_var.set("")

        for iid in self.hist_tree.get_children():
            self.hist_tree.delete(iid)
        try:
            logs = [l for l in self.store.load_all_logs() if l.month != log.month] + [log]
        except PersistenceError as ex:
            self._on_persistence_error(ex)
            logs = [log]
        for h in compute_history(logs):
            self.hist_tree.insert("", "end", values=(
                h["month"], h["jobs"], h["paid_jobs"], _num(h["distance"]),
                _money(h["amount_earned"], self.currency)))
