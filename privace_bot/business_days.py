# privace_bot/business_days.py
from datetime import date, datetime
from typing import Union

import jpholiday

SATURDAY = 5
SUNDAY = 6

def is_business_day(d: Union[date, datetime]) -> bool:
    """
    True for weekdays that are not Japanese public holidays.
    Substitute and national holidays count as holidays (jpholiday covers them).
    """
    if isinstance(d, datetime):
        d = d.date()
    if d.weekday() in (SATURDAY, SUNDAY):
        return False
    if jpholiday.is_holiday(d):
        return False
    return True
