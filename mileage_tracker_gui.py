"""
Mileage Tracker GUI
- Record each month's delivery jobs with odometer readings and payouts.
- Track fuel purchases, expenses and compliance incidents; see net profit.
- Reconcile jobs against the dispatcher's manifest CSV.
- Export CSV / Excel or copy a Google Sheets block with running-total formulas.

Run:
  python mileage_tracker_gui.py

Dependencies:
  pip install -e .
(Tkinter ships with most Python distributions; on some Linux you may need: sudo apt-get install python3-tk)

Remote storage is configured in settings.json or with MILEAGE_STORAGE=remote,
MILEAGE_REMOTE_URL, MILEAGE_REMOTE_KEY and MILEAGE_USER_ID (a .env file is read).
"""
from __future__ import annotations
import logging

try:
    import tkinter as tk
except ModuleNotFoundError:
    tk = None

from dotenv import load_dotenv

from main_app import MileageTrackerApp


def main():
    """Main entry point for the application"""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    load_dotenv()
    if tk is None:
        raise RuntimeError(
            'tkinter is not available. Install it (e.g., on Ubuntu: sudo apt-get install python3-tk) '
            'and re-run to use the GUI.'
        )

    root = tk.Tk()
    app = MileageTrackerApp(root)
    root.mainloop()


if __name__ == "__main__":
    main()
