from __future__ import annotations

import logging

from telegram import Update
from telegram.constants import ParseMode
from telegram.error import BadRequest
from telegram.ext import ContextTypes

from app.infra.request_context import add_response_size

LOGGER = logging.getLogger(__name__)

MAX_CHUNK_SIZE = 3500
EMPTY_MESSAGE_PLACEHOLDER = "-"

_EXPIRED_EDIT_MARKERS = ("Query is too old", "response timeout expired", "query id is invalid")


def chunk_text(text: str, max_len: int = MAX_CHUNK_SIZE) -> list[str]:
    chunks: list[str] = []
    remaining = text or ""
    while remaining:
        if len(remaining) <= max_len:
            chunks.append(remaining)
            break
        split_at = remaining.rfind("\n", 0, max_len + 1)
        if split_at == -1:
            split_at = remaining.rfind(" ", 0, max_len + 1)
        if split_at <= 0:
            split_at = max_len
        chunk = remaining[:split_at].rstrip()
        if not chunk:
            chunk = remaining[:max_len]
            split_at = max_len
        chunks.append(chunk)
        remaining = remaining[split_at:].lstrip("\n ")
    return chunks


def _is_markdown_error(exc: BadRequest) -> bool:
    return "parse entities" in str(exc).lower()


async def send_markdown(bot, chat_id: int, text: str | None, reply_markup=None, **kwargs):
    """Send with Markdown; resend as plain text if Telegram cannot parse the entities."""
    payload = text if text and text.strip() else EMPTY_MESSAGE_PLACEHOLDER
    chunks = chunk_text(payload)
    sent = None
    for position, chunk in enumerate(chunks):
        markup = reply_markup if position == len(chunks) - 1 else None
        try:
            sent = await bot.send_message(
                chat_id=chat_id,
                text=chunk,
                parse_mode=ParseMode.MARKDOWN,
                reply_markup=markup,
                **kwargs,
            )
        except BadRequest as exc:
            if not _is_markdown_error(exc):
                raise
            LOGGER.warning("Markdown rejected for chat %s; sending plain text", chat_id)
            sent = await bot.send_message(chat_id=chat_id, text=chunk, reply_markup=markup, **kwargs)
    return sent


async def edit_markdown(bot, chat_id: int, message_id: int, text: str | None, reply_markup=None):
    payload = text if text and text.strip() else EMPTY_MESSAGE_PLACEHOLDER
    try:
        return await bot.edit_message_text(
            chat_id=chat_id,
            message_id=message_id,
            text=payload,
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=reply_markup,
        )
    except BadRequest as exc:
        if not _is_markdown_error(exc):
            raise
        LOGGER.warning("Markdown rejected in edit for chat %s; editing as plain text", chat_id)
        return await bot.edit_message_text(
            chat_id=chat_id,
            message_id=message_id,
            text=payload,
            reply_markup=reply_markup,
        )


async def safe_send_text(
    update: Update | None,
    context: ContextTypes.DEFAULT_TYPE | None,
    text: str | None,
    reply_markup=None,
) -> int:
    chat = update.effective_chat if update else None
    if chat is None or context is None:
        return 0
    payload = text if text and text.strip() else EMPTY_MESSAGE_PLACEHOLDER
    await send_markdown(context.bot, chat.id, payload, reply_markup=reply_markup)
    add_response_size(context, len(payload))
    return len(payload)


async def safe_edit_text(
    update: Update | None,
    context: ContextTypes.DEFAULT_TYPE | None,
    text: str | None,
    reply_markup=None,
) -> int:
    """Edit the message behind a callback button, falling back to a new message."""
    callback_query = update.callback_query if update else None
    message = callback_query.message if callback_query else None
    if message is None or context is None:
        return await safe_send_text(update, context, text, reply_markup=reply_markup)
    payload = text if text and text.strip() else EMPTY_MESSAGE_PLACEHOLDER
    try:
        await edit_markdown(context.bot, message.chat.id, message.message_id, payload, reply_markup=reply_markup)
    except BadRequest as exc:
        msg = str(exc)
        if "Message is not modified" in msg:
            return 0
        if any(marker in msg for marker in _EXPIRED_EDIT_MARKERS):
            LOGGER.info("Telegram rejected callback edit (expired): %s", msg)
        else:
            LOGGER.warning("Failed to edit message text: %s; sending a new message", msg)
        return await safe_send_text(update, context, payload, reply_markup=reply_markup)
    add_response_size(context, len(payload))
    return len(payload)
