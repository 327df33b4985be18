from __future__ import annotations

import asyncio
from types import SimpleNamespace

from telegram.constants import ParseMode
from telegram.error import BadRequest

from app.infra.messaging import chunk_text, safe_edit_text, safe_send_text, send_markdown


class DummyBot:
    def __init__(self, *, reject_markdown: bool = False, edit_error: str | None = None) -> None:
        self.reject_markdown = reject_markdown
        self.edit_error = edit_error
        self.sent: list[dict] = []
        self.edited: list[dict] = []

    async def send_message(self, **kwargs):
        if self.reject_markdown and kwargs.get("parse_mode") == ParseMode.MARKDOWN:
            raise BadRequest("Can't parse entities: can't find end of the entity")
        self.sent.append(kwargs)
        return SimpleNamespace(message_id=len(self.sent))

    async def edit_message_text(self, **kwargs):
        if self.edit_error:
            raise BadRequest(self.edit_error)
        self.edited.append(kwargs)
        return True


def _callback_update(chat_id: int = 10, message_id: int = 5):
    message = SimpleNamespace(chat=SimpleNamespace(id=chat_id), message_id=message_id)
    return SimpleNamespace(
        callback_query=SimpleNamespace(message=message),
        effective_chat=SimpleNamespace(id=chat_id),
    )


def test_chunk_text_splits_on_newlines() -> None:
    text = "\n".join(["خط"] * 10)

    chunks = chunk_text(text, max_len=8)

    assert all(len(chunk) <= 8 for chunk in chunks)
    assert "\n".join(chunks) == text


def test_chunk_text_short_and_empty() -> None:
    assert chunk_text("hello") == ["hello"]
    assert chunk_text("") == []


def test_send_markdown_falls_back_to_plain_text() -> None:
    bot = DummyBot(reject_markdown=True)

    asyncio.run(send_markdown(bot, 1, "*bold_", reply_markup="kb"))

    assert bot.sent == [{"chat_id": 1, "text": "*bold_", "reply_markup": "kb"}]


def test_send_markdown_puts_keyboard_on_last_chunk() -> None:
    bot = DummyBot()

    asyncio.run(send_markdown(bot, 1, "a" * 5000, reply_markup="kb"))

    assert len(bot.sent) == 2
    assert bot.sent[0]["reply_markup"] is None
    assert bot.sent[1]["reply_markup"] == "kb"


def test_safe_send_text_uses_placeholder_for_empty_text() -> None:
    bot = DummyBot()
    context = SimpleNamespace(bot=bot, chat_data={})
    update = SimpleNamespace(effective_chat=SimpleNamespace(id=3))

    size = asyncio.run(safe_send_text(update, context, "   "))

    assert size == 1
    assert bot.sent[0]["text"] == "-"


def test_safe_edit_text_edits_callback_message() -> None:
    bot = DummyBot()
    context = SimpleNamespace(bot=bot, chat_data={})

    asyncio.run(safe_edit_text(_callback_update(), context, "متن جدید"))

    assert bot.edited[0]["message_id"] == 5
    assert bot.edited[0]["text"] == "متن جدید"
    assert bot.sent == []


def test_safe_edit_text_message_not_modified_is_ignored() -> None:
    bot = DummyBot(edit_error="Message is not modified")
    context = SimpleNamespace(bot=bot, chat_data={})

    size = asyncio.run(safe_edit_text(_callback_update(), context, "same"))

    assert size == 0
    assert bot.sent == []


def test_safe_edit_text_falls_back_to_new_message() -> None:
    bot = DummyBot(edit_error="Message to edit not found")
    context = SimpleNamespace(bot=bot, chat_data={})

    asyncio.run(safe_edit_text(_callback_update(), context, "دوباره"))

    assert bot.sent[0]["text"] == "دوباره"
