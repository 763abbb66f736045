# privace_bot/main.py
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Query, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, PlainTextResponse
from linebot.v3.exceptions import InvalidSignatureError
from linebot.v3.webhooks import MessageEvent, TextMessageContent

from . import line_utils
from .privace_search import SEARCH_URL, default_query, fetch_train_url
from .scheduler import ReminderLoop, scheduler_enabled

# Always load env from privace_bot folder
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), ".env"))

DEFAULT_REPLY = f"PRiVACE座席予約サイトはこちら！\n{SEARCH_URL}"

FORM_HTML = """<!DOCTYPE html>
<html lang="ja">
<head>
  <meta charset="utf-8">
  <title>PRiVACE URL test</title>
</head>
<body>
  <h1>PRiVACE 特急予約 URL テスト</h1>
  <form action="/test" method="get">
    <label>乗車日 <input type="date" name="date" required></label>
    <label>時 <input type="number" name="hour" min="0" max="23" value="{hour}"></label>
    <label>分 <input type="number" name="minute" min="0" max="59" value="{minute}"></label>
    <button type="submit">URL取得</button>
  </form>
</body>
</html>
"""

@asynccontextmanager
async def lifespan(app: FastAPI):
    loop: Optional[ReminderLoop] = None
    if scheduler_enabled():
        loop = ReminderLoop()
        loop.start()
    else:
        print("[SCHEDULER] disabled by ENABLE_SCHEDULER=false")
    try:
        yield
    finally:
        if loop:
            loop.stop()

app = FastAPI(title="PRiVACE Reminder Bot", lifespan=lifespan)

@app.get("/", response_class=PlainTextResponse)
def health():
    return "OK"

def _reply_to_text_messages(events: List[object]) -> int:
    replied = 0
    for event in events:
        if not isinstance(event, MessageEvent):
            continue
        if not isinstance(event.message, TextMessageContent):
            continue
        try:
            line_utils.reply_text(event.reply_token, DEFAULT_REPLY)
            replied += 1
        except Exception as e:
            print(f"[WEBHOOK] reply failed: {type(e).__name__}: {e}")
    return replied

@app.post("/callback")
async def callback(request: Request):
    signature = request.headers.get("X-Line-Signature", "")
    raw = await request.body()

    try:
        events = line_utils.parse_events(raw, signature)
    except InvalidSignatureError:
        print("[WEBHOOK] invalid signature")
        return Response(status_code=400)
    except Exception as e:
        print(f"[WEBHOOK] parse failed: {type(e).__name__}: {e}")
        return Response(status_code=500)

    replied = await run_in_threadpool(_reply_to_text_messages, events)
    print(f"[WEBHOOK] events={len(events)} replied={replied}")
    return PlainTextResponse("OK")

@app.get("/form", response_class=HTMLResponse)
def form():
    query = default_query()
    return FORM_HTML.format(hour=query["hour"], minute=query["minute"])

def _two_digits(value: Optional[str], default: str, upper: int) -> Optional[str]:
    """Zero-padded 'HH'/'MM', the default when empty, None when out of range."""
    raw = (value or "").strip()
    if not raw:
        return default
    try:
        n = int(raw)
    except ValueError:
        return None
    if n < 0 or n > upper:
        return None
    return f"{n:02d}"

@app.get("/test", response_class=PlainTextResponse)
def test_fetch(
    date: Optional[str] = Query(None, description="ride date, YYYY-MM-DD"),
    hour: Optional[str] = Query(None),
    minute: Optional[str] = Query(None),
):
    if not date or not date.strip():
        return PlainTextResponse("date is required (YYYY-MM-DD)", status_code=400)
    try:
        target = datetime.strptime(date.strip(), "%Y-%m-%d").date()
    except ValueError:
        return PlainTextResponse(f"invalid date: {date!r} (expected YYYY-MM-DD)", status_code=400)

    query = default_query()
    hh = _two_digits(hour, query["hour"], 23)
    if hh is None:
        return PlainTextResponse(f"invalid hour: {hour!r}", status_code=400)
    mm = _two_digits(minute, query["minute"], 59)
    if mm is None:
        return PlainTextResponse(f"invalid minute: {minute!r}", status_code=400)

    try:
        url = fetch_train_url(target, query["from_station"], query["to_station"], hh, mm)
    except Exception as e:
        print(f"[TEST] URL fetch failed: {type(e).__name__}: {e}")
        return PlainTextResponse(f"{type(e).__name__}: {e}", status_code=500)
    return url
