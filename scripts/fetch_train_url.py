#!/usr/bin/env python3
"""
Fetch the PRiVACE deep link for one ride date and print it.

Run manually, e.g.:
    python scripts/fetch_train_url.py 2025-01-14
    python scripts/fetch_train_url.py 2025-01-14 --hour 08 --minute 10 --deliver
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from privace_bot import line_utils  # noqa: E402  (loads privace_bot/.env)
from privace_bot.business_days import is_business_day  # noqa: E402
from privace_bot.privace_search import default_query, fetch_train_url  # noqa: E402
from privace_bot.reminders import build_reminder_message  # noqa: E402


def _parse_args(argv=None):
    query = default_query()
    ap = argparse.ArgumentParser(description="Fetch a PRiVACE reservation deep link.")
    ap.add_argument("date", help="ride date, YYYY-MM-DD")
    ap.add_argument("--from-station", default=query["from_station"])
    ap.add_argument("--to-station", default=query["to_station"])
    ap.add_argument("--hour", default=query["hour"])
    ap.add_argument("--minute", default=query["minute"])
    ap.add_argument("--deliver", action="store_true", help="send the reminder message over LINE too")
    return ap.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    try:
        target = datetime.strptime(args.date, "%Y-%m-%d").date()
    except ValueError:
        print(f"[PRIVACE BOT] invalid date: {args.date!r} (expected YYYY-MM-DD)", file=sys.stderr)
        return 2

    if not is_business_day(target):
        print(f"[PRIVACE BOT] note: {target.isoformat()} is not a business day")

    url = fetch_train_url(target, args.from_station, args.to_station, args.hour, args.minute)
    print(url)

    if args.deliver:
        mode = line_utils.deliver_text(build_reminder_message(target, url))
        print(f"[PRIVACE BOT] delivered via {mode}")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:
        print(f"[PRIVACE BOT] failed: {type(exc).__name__}: {exc}", file=sys.stderr)
        sys.exit(1)
