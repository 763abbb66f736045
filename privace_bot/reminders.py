# privace_bot/reminders.py
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple

from . import line_utils
from .business_days import is_business_day
from .privace_search import default_query, fetch_train_url

JST = timezone(timedelta(hours=9), "Asia/Tokyo")

# (HH:MM in JST, days ahead)
REMINDER_JOBS: List[Tuple[str, int]] = [
    ("07:45", 14),
    ("23:55", 15),
]

def now_jst() -> datetime:
    return datetime.now(JST)

def target_date(days_ahead: int, now: Optional[datetime] = None) -> date:
    now = now or now_jst()
    if now.tzinfo is not None:
        now = now.astimezone(JST)
    return now.date() + timedelta(days=days_ahead)

def build_reminder_message(target: date, url: str) -> str:
    return f"{target.isoformat()} の PRiVACE 特急予約はこちら！{url}"

def run_reminder(days_ahead: int, now: Optional[datetime] = None) -> Optional[str]:
    """
    Scheduled job body:
      1) target = today (JST) + days_ahead
      2) skip weekends and public holidays
      3) scrape the deep link and deliver it over LINE
    Returns the delivered message; None when skipped or failed.
    Errors are logged, never raised, so the scheduler thread keeps running.
    """
    target = target_date(days_ahead, now)
    if not is_business_day(target):
        print(f"[REMINDER] {target.isoformat()} is not a business day; skipping (+{days_ahead}d)")
        return None

    query = default_query()
    try:
        url = fetch_train_url(
            target,
            query["from_station"],
            query["to_station"],
            query["hour"],
            query["minute"],
        )
    except Exception as e:
        print(f"[REMINDER] URL fetch failed (+{days_ahead}d): {type(e).__name__}: {e}")
        return None

    message = build_reminder_message(target, url)
    try:
        line_utils.deliver_text(message)
    except Exception as e:
        print(f"[REMINDER] delivery failed (+{days_ahead}d): {type(e).__name__}: {e}")
        return None
    return message
