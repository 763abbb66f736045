# privace_bot/scheduler.py
import os
import threading
from typing import Optional

import schedule

from .reminders import REMINDER_JOBS, run_reminder

TIMEZONE = "Asia/Tokyo"

def _poll_seconds() -> float:
    try:
        return max(1.0, float(os.getenv("SCHEDULER_POLL_SECONDS", "30")))
    except ValueError:
        return 30.0

def scheduler_enabled() -> bool:
    return os.getenv("ENABLE_SCHEDULER", "true").strip().lower() != "false"

def build_scheduler() -> schedule.Scheduler:
    scheduler = schedule.Scheduler()
    for at, days_ahead in REMINDER_JOBS:
        scheduler.every().day.at(at, TIMEZONE).do(run_reminder, days_ahead).tag("reminder")
        print(f"[SCHEDULER] registered {at} {TIMEZONE} (+{days_ahead}d)")
    return scheduler

class ReminderLoop:
    """Runs the reminder jobs on one daemon thread until stop() is called."""

    def __init__(self, scheduler: Optional[schedule.Scheduler] = None, poll_seconds: Optional[float] = None):
        self.scheduler = scheduler or build_scheduler()
        self.poll_seconds = poll_seconds or _poll_seconds()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _run(self):
        while not self._stop.is_set():
            try:
                self.scheduler.run_pending()
            except Exception as e:
                print(f"[SCHEDULER] run_pending failed: {type(e).__name__}: {e}")
            self._stop.wait(self.poll_seconds)

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="reminder-loop", daemon=True)
        self._thread.start()
        print(f"[SCHEDULER] started (poll={self.poll_seconds:g}s)")

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        print("[SCHEDULER] stopped")
