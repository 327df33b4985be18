"""Per-update request tracking and JSON event lines.

Every wrapped handler opens a RequestContext in ``chat_data``. Handlers mark
it ``refused`` or ``error``; messaging helpers add what was sent back. Text
typed by users (lesson details, broadcast content) is never logged, only
its kind and length.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from telegram import Update
from telegram.ext import ContextTypes

_CONTEXT_KEY = "_request_context"
_SECRET_SUFFIXES = ("token", "secret", "password", "api_key", "authorization")
_LEVELS = {"error": logging.ERROR, "refused": logging.WARNING}


@dataclass
class RequestContext:
    correlation_id: str
    user_id: int = 0
    chat_id: int = 0
    chat_type: str = "unknown"
    route: str = "-"
    input_kind: str = "none"
    input_len: int = 0
    started_at: float = field(default_factory=time.monotonic)
    status: str = "ok"
    replies: int = 0
    response_size: int = 0

    def elapsed_ms(self) -> float:
        return max((time.monotonic() - self.started_at) * 1000, 0.01)


def new_correlation_id() -> str:
    return uuid.uuid4().hex[:12]


def _describe_input(update: Update | None) -> tuple[str, int]:
    if update is None:
        return "none", 0
    if update.callback_query:
        return "callback", len(update.callback_query.data or "")
    message = update.effective_message
    if message is None:
        return "none", 0
    if message.text:
        return "text", len(message.text)
    if message.caption:
        return "caption", len(message.caption)
    return "media", 0


def _chat_data(context: ContextTypes.DEFAULT_TYPE | None) -> dict | None:
    return getattr(context, "chat_data", None) if context is not None else None


def start_request(
    update: Update | None,
    context: ContextTypes.DEFAULT_TYPE | None,
    *,
    route: str = "-",
) -> RequestContext:
    user = update.effective_user if update else None
    chat = update.effective_chat if update else None
    input_kind, input_len = _describe_input(update)
    request_context = RequestContext(
        correlation_id=new_correlation_id(),
        user_id=user.id if user else 0,
        chat_id=chat.id if chat else 0,
        chat_type=getattr(chat, "type", None) or "unknown",
        route=route,
        input_kind=input_kind,
        input_len=input_len,
    )
    chat_data = _chat_data(context)
    if chat_data is not None:
        chat_data[_CONTEXT_KEY] = request_context
    return request_context


def get_request_context(context: ContextTypes.DEFAULT_TYPE | None) -> RequestContext | None:
    chat_data = _chat_data(context)
    return chat_data.get(_CONTEXT_KEY) if chat_data is not None else None


def set_status(context: ContextTypes.DEFAULT_TYPE | None, status: str) -> None:
    request_context = get_request_context(context)
    if request_context:
        request_context.status = status


def add_response_size(context: ContextTypes.DEFAULT_TYPE | None, size: int) -> None:
    request_context = get_request_context(context)
    if request_context:
        request_context.replies += 1
        request_context.response_size += max(size, 0)


def redact(fields: Any) -> Any:
    """Mask values whose key looks like a credential, recursing into containers."""
    if isinstance(fields, dict):
        return {
            key: "***" if str(key).lower().endswith(_SECRET_SUFFIXES) else redact(value)
            for key, value in fields.items()
        }
    if isinstance(fields, (list, tuple)):
        return [redact(item) for item in fields]
    return fields


def log_event(
    logger: logging.Logger,
    request_context: RequestContext | None,
    *,
    component: str,
    event: str,
    status: str = "ok",
    duration_ms: float | None = None,
    **fields: Any,
) -> None:
    payload: dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
        "correlation_id": request_context.correlation_id if request_context else "-",
        "component": component,
        "event": event,
        "status": status,
    }
    if duration_ms is not None:
        payload["duration_ms"] = round(duration_ms, 2)
    payload.update(redact(fields))
    logger.log(_LEVELS.get(status, logging.INFO), json.dumps(payload, ensure_ascii=False, default=str))


def log_request(logger: logging.Logger, request_context: RequestContext) -> None:
    log_event(
        logger,
        request_context,
        component="handler",
        event="request.summary",
        status=request_context.status,
        duration_ms=request_context.elapsed_ms(),
        user_id=request_context.user_id,
        chat_id=request_context.chat_id,
        chat_type=request_context.chat_type,
        route=request_context.route,
        input_kind=request_context.input_kind,
        input_len=request_context.input_len,
        replies=request_context.replies,
        response_size=request_context.response_size,
    )
