from __future__ import annotations

import json
import logging
from types import SimpleNamespace

from app.infra.request_context import (
    add_response_size,
    log_request,
    redact,
    set_status,
    start_request,
)


def _context() -> SimpleNamespace:
    return SimpleNamespace(application=SimpleNamespace(bot_data={}), chat_data={})


def _update(*, text: str | None = "/week", callback_data: str | None = None) -> SimpleNamespace:
    message = SimpleNamespace(text=text, caption=None, message_id=99)
    return SimpleNamespace(
        effective_user=SimpleNamespace(id=1, username="tester"),
        effective_chat=SimpleNamespace(id=10, type="private"),
        effective_message=message,
        callback_query=SimpleNamespace(data=callback_data) if callback_data else None,
    )


def test_request_summary_for_callback(caplog) -> None:
    logger = logging.getLogger("test.request")
    caplog.set_level(logging.INFO, logger="test.request")
    context = _context()
    request_context = start_request(_update(callback_data="schedule:view:full"), context, route="callback")

    add_response_size(context, 42)
    log_request(logger, request_context)

    payload = json.loads(caplog.records[-1].message)
    assert payload["event"] == "request.summary"
    assert payload["correlation_id"] == request_context.correlation_id
    assert payload["input_kind"] == "callback"
    assert payload["input_len"] == len("schedule:view:full")
    assert (payload["replies"], payload["response_size"]) == (1, 42)


def test_user_text_is_not_logged(caplog) -> None:
    logger = logging.getLogger("test.request")
    caplog.set_level(logging.INFO, logger="test.request")
    lesson = "ریاضی - 08:00 - 10:00 - کلاس ۱۰۱"
    request_context = start_request(_update(text=lesson), _context(), route="text")

    log_request(logger, request_context)

    assert lesson not in caplog.records[-1].message
    assert json.loads(caplog.records[-1].message)["input_len"] == len(lesson)


def test_refused_status_logs_warning(caplog) -> None:
    logger = logging.getLogger("test.request")
    caplog.set_level(logging.INFO, logger="test.request")
    context = _context()
    request_context = start_request(_update(), context)

    set_status(context, "refused")
    log_request(logger, request_context)

    assert caplog.records[-1].levelno == logging.WARNING
    assert json.loads(caplog.records[-1].message)["status"] == "refused"


def test_redact_masks_credentials() -> None:
    fields = {"bot_token": "123:abc", "nested": {"webhook_secret": "x"}, "items": [{"password": "p"}], "count": 3}

    assert redact(fields) == {
        "bot_token": "***",
        "nested": {"webhook_secret": "***"},
        "items": [{"password": "***"}],
        "count": 3,
    }
