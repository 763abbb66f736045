# privace_bot/privace_search.py
"""
Replays the PRiVACE seat-reservation search form to get a deep link for one train query.

Flow:
  1) GET the search page (session cookies land in the requests.Session jar)
  2) Harvest every named <input> of form#searchForm, hidden tokens included
  3) Override the query fields (stations, ride date, base time, flags, labels)
  4) POST the form back and resolve the deep link from the response:
       og:url meta -> form#trainForm action -> form#orderForm action -> final URL
"""

import os
from datetime import date, datetime
from typing import Dict, Optional, Union
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

BASE_URL = "https://privace.hankyu.co.jp"
ORDER_URL = f"{BASE_URL}/order/"
SEARCH_URL = f"{ORDER_URL}search.html"

SEARCH_FORM_ID = "searchForm"
RESULT_FORM_IDS = ("trainForm", "orderForm")

OSAKAUMEDA = "003450"
KATSURA = "003970"

STATION_NAMES = {
    OSAKAUMEDA: "大阪梅田",
    KATSURA: "桂",
}

SUBMIT_LABEL = "検索"

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "ja,en-US;q=0.8,en;q=0.6",
    "Referer": SEARCH_URL,
}

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

OVERRIDE_KEYS = (
    "searchForm:fromStation",
    "searchForm:toStation",
    "searchForm:rideDate",
    "searchForm:baseTimeHours",
    "searchForm:baseTimeMinutes",
    "searchForm:isDepartureBase",
    "searchForm:isArrivalBase",
    "searchForm:fromStationName",
    "searchForm:toStationName",
    "searchForm:search",
)

def _timeout() -> float:
    try:
        return float(os.getenv("PRIVACE_TIMEOUT", "30"))
    except ValueError:
        return 30.0

def default_query() -> Dict[str, str]:
    """Train query used by the reminders and as /test defaults."""
    return {
        "from_station": os.getenv("PRIVACE_FROM_STATION", KATSURA).strip() or KATSURA,
        "to_station": os.getenv("PRIVACE_TO_STATION", OSAKAUMEDA).strip() or OSAKAUMEDA,
        "hour": os.getenv("PRIVACE_HOUR", "07").strip() or "07",
        "minute": os.getenv("PRIVACE_MINUTE", "40").strip() or "40",
    }

def station_name(code: str) -> str:
    return STATION_NAMES.get(code, code)

def format_ride_date(target: Union[date, datetime]) -> str:
    return target.strftime("%Y/%m/%d")

def _new_session() -> requests.Session:
    session = requests.Session()
    session.headers.update(HEADERS)
    return session

def harvest_form_fields(html: str, form_id: str = SEARCH_FORM_ID) -> Dict[str, str]:
    """Every named <input> of form#<form_id>; a missing value becomes ''."""
    soup = BeautifulSoup(html, "html.parser")
    form = soup.find("form", {"id": form_id})
    fields: Dict[str, str] = {}
    if not form:
        return fields
    for input_tag in form.find_all("input"):
        name = input_tag.get("name")
        if not name:
            continue
        fields[name] = input_tag.get("value", "") or ""
    return fields

def apply_search_overrides(
    fields: Dict[str, str],
    target: Union[date, datetime],
    from_station: str,
    to_station: str,
    hour: str,
    minute: str,
) -> Dict[str, str]:
    # In place; scraped keys keep their position, new keys are appended.
    fields["searchForm:fromStation"] = from_station
    fields["searchForm:toStation"] = to_station
    fields["searchForm:rideDate"] = format_ride_date(target)
    fields["searchForm:baseTimeHours"] = hour
    fields["searchForm:baseTimeMinutes"] = minute
    fields["searchForm:isDepartureBase"] = "true"
    fields["searchForm:isArrivalBase"] = "false"
    fields["searchForm:fromStationName"] = station_name(from_station)
    fields["searchForm:toStationName"] = station_name(to_station)
    fields["searchForm:search"] = SUBMIT_LABEL
    return fields

def resolve_deep_link(html: str, final_url: str) -> str:
    soup = BeautifulSoup(html, "html.parser")

    meta = soup.find("meta", attrs={"property": "og:url"})
    if meta:
        content = (meta.get("content") or "").strip()
        if content:
            return content

    for form_id in RESULT_FORM_IDS:
        form = soup.find("form", {"id": form_id})
        if not form:
            continue
        action = (form.get("action") or "").strip()
        if action:
            return urljoin(ORDER_URL, action)

    return final_url

def fetch_train_url(
    target: Union[date, datetime],
    from_station: str,
    to_station: str,
    hour: str,
    minute: str,
    session: Optional[requests.Session] = None,
) -> str:
    """
    Returns the deep link for the given query. Network and parse errors
    propagate; there are no retries. Error status codes are not errors here:
    the response still goes through the resolution order, ending at its final URL.
    """
    if session is not None:
        return _replay_search(session, target, from_station, to_station, hour, minute)
    with _new_session() as owned:
        return _replay_search(owned, target, from_station, to_station, hour, minute)

def _replay_search(
    session: requests.Session,
    target: Union[date, datetime],
    from_station: str,
    to_station: str,
    hour: str,
    minute: str,
) -> str:
    timeout = _timeout()

    resp = session.get(SEARCH_URL, timeout=timeout)
    fields = harvest_form_fields(resp.text)
    print(f"[PRIVACE] harvested {len(fields)} fields from #{SEARCH_FORM_ID}")

    apply_search_overrides(fields, target, from_station, to_station, hour, minute)

    resp = session.post(
        SEARCH_URL,
        data=fields,
        headers={"Content-Type": FORM_CONTENT_TYPE, "Referer": SEARCH_URL},
        timeout=timeout,
        allow_redirects=True,
    )
    if resp.status_code >= 400:
        print(f"[PRIVACE] POST status={resp.status_code} final={resp.url}")
    url = resolve_deep_link(resp.text, resp.url)
    print(f"[PRIVACE] date={format_ride_date(target)} {from_station}->{to_station} {hour}:{minute} url={url}")
    return url
