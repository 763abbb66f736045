# privace_bot/line_utils.py
import base64
import hashlib
import hmac
import os
from typing import List, Optional

from dotenv import load_dotenv
from linebot.v3 import WebhookParser
from linebot.v3.exceptions import InvalidSignatureError
from linebot.v3.messaging import (
    ApiClient,
    BroadcastRequest,
    Configuration,
    MessagingApi,
    PushMessageRequest,
    ReplyMessageRequest,
    TextMessage,
)

# Always load privace_bot/.env no matter where uvicorn is started from
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), ".env"))

DELIVERY_MODES = ("push", "broadcast")

def _env(name: str) -> str:
    return (os.getenv(name, "") or "").strip()

def _configuration() -> Configuration:
    """
    Lazy-init so LINE_CHANNEL_ACCESS_TOKEN is not required at import time.
    """
    token = _env("LINE_CHANNEL_ACCESS_TOKEN")
    if not token:
        raise RuntimeError(
            "LINE_CHANNEL_ACCESS_TOKEN is not set. Update privace_bot/.env or export it in your shell."
        )
    return Configuration(access_token=token)

def get_parser() -> WebhookParser:
    # An empty secret still builds a parser; every signature then fails validation.
    secret = _env("LINE_CHANNEL_SECRET")
    if not secret:
        print("[LINE] LINE_CHANNEL_SECRET is not set; webhook signatures will be rejected")
    return WebhookParser(secret)

def signature_matches(raw: bytes, signature: str) -> bool:
    """HMAC-SHA256 of the raw body, as LINE signs it."""
    secret = _env("LINE_CHANNEL_SECRET")
    digest = hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).digest()
    return hmac.compare_digest(signature.encode("utf-8"), base64.b64encode(digest))

def parse_events(raw: bytes, signature: str) -> list:
    """
    Webhook events from the raw request body.
    InvalidSignatureError when the signature does not match; any other
    failure (undecodable body, bad JSON, bad payload) propagates as is.
    """
    parser = get_parser()
    try:
        body = raw.decode("utf-8")
    except UnicodeDecodeError:
        # the parser checks signatures over text; undecodable bodies are checked here
        if not signature_matches(raw, signature):
            raise InvalidSignatureError(f"Invalid signature. signature={signature}")
        raise
    return parser.parse(body, signature)

def delivery_mode() -> str:
    mode = _env("LINE_DELIVERY_MODE").lower()
    if mode in DELIVERY_MODES:
        return mode
    if mode:
        print(f"[LINE] unknown LINE_DELIVERY_MODE={mode!r}, falling back to auto")
    return "push" if _env("LINE_USER_ID") else "broadcast"

def _text_messages(text: str) -> List[TextMessage]:
    return [TextMessage(text=text)]

def push_text(to: str, text: str):
    with ApiClient(_configuration()) as api_client:
        MessagingApi(api_client).push_message(
            PushMessageRequest(to=to, messages=_text_messages(text))
        )

def broadcast_text(text: str):
    with ApiClient(_configuration()) as api_client:
        MessagingApi(api_client).broadcast(
            BroadcastRequest(messages=_text_messages(text))
        )

def reply_text(reply_token: str, text: str):
    with ApiClient(_configuration()) as api_client:
        MessagingApi(api_client).reply_message(
            ReplyMessageRequest(reply_token=reply_token, messages=_text_messages(text))
        )

def deliver_text(text: str, mode: Optional[str] = None) -> str:
    """
    Push to LINE_USER_ID or broadcast to every friend of the channel.
    Returns the mode that was used.
    """
    mode = mode or delivery_mode()
    if mode == "push":
        user_id = _env("LINE_USER_ID")
        if not user_id:
            raise RuntimeError("LINE_DELIVERY_MODE=push needs LINE_USER_ID to be set.")
        push_text(user_id, text)
    elif mode == "broadcast":
        broadcast_text(text)
    else:
        raise ValueError(f"unknown delivery mode: {mode}")
    print(f"[LINE] delivered via {mode} ({len(text)} chars)")
    return mode
