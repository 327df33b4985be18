import sys
from datetime import date, datetime
from pathlib import Path
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.core.week_parity import Parity, WeekReference  # noqa: E402
from app.infra.bot_info import BotInfoCache  # noqa: E402
from app.infra.state_store import StateStore  # noqa: E402
from app.infra.storage import ScheduleStorage  # noqa: E402

ADMIN_ID = 99
TEHRAN = ZoneInfo("Asia/Tehran")


class DummyBot:
    """Records Bot API calls made by handlers."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.edited: list[dict] = []
        self.documents: list[dict] = []
        self.copied: list[dict] = []
        self.forwarded: list[dict] = []
        self.fail_for: dict[int, Exception] = {}

    async def send_message(self, **kwargs):
        self.sent.append(kwargs)
        return SimpleNamespace(message_id=1000 + len(self.sent))

    async def edit_message_text(self, **kwargs):
        self.edited.append(kwargs)
        return True

    async def send_document(self, **kwargs):
        self.documents.append(kwargs)
        return SimpleNamespace(message_id=2000 + len(self.documents))

    async def copy_message(self, **kwargs):
        if kwargs["chat_id"] in self.fail_for:
            raise self.fail_for[kwargs["chat_id"]]
        self.copied.append(kwargs)
        return SimpleNamespace(message_id=3000 + len(self.copied))

    async def forward_message(self, **kwargs):
        if kwargs["chat_id"] in self.fail_for:
            raise self.fail_for[kwargs["chat_id"]]
        self.forwarded.append(kwargs)
        return SimpleNamespace(message_id=4000 + len(self.forwarded))

    async def get_me(self):
        return SimpleNamespace(id=1, username="WeekStatusBot", first_name="Week")

    def texts(self) -> list[str]:
        return [call["text"] for call in self.sent] + [call["text"] for call in self.edited]


class DummyCallbackQuery:
    def __init__(self, data: str, chat_id: int, message_id: int = 500) -> None:
        self.data = data
        self.message = SimpleNamespace(chat=SimpleNamespace(id=chat_id), message_id=message_id)
        self.answers: list[str | None] = []

    async def answer(self, text=None):
        self.answers.append(text)


def make_update(
    *,
    user_id: int = 1,
    chat_type: str = "private",
    chat_id: int | None = None,
    text: str | None = None,
    callback_data: str | None = None,
    first_name: str = "Sara",
    username: str | None = "sara",
):
    chat_id = user_id if chat_id is None else chat_id
    user = SimpleNamespace(id=user_id, first_name=first_name, last_name=None, username=username, is_bot=False)
    chat = SimpleNamespace(id=chat_id, type=chat_type, title=None if chat_type == "private" else "کلاس")
    message = None
    if text is not None:
        message = SimpleNamespace(text=text, caption=None, message_id=77, chat_id=chat_id, chat=chat)
    callback_query = DummyCallbackQuery(callback_data, chat_id) if callback_data is not None else None
    return SimpleNamespace(
        effective_user=user,
        effective_chat=chat,
        effective_message=message if message is not None else (callback_query.message if callback_query else None),
        message=message,
        callback_query=callback_query,
    )


@pytest.fixture
def bot_env(tmp_path):
    """A handler context wired to a real sqlite store and a recording bot."""
    bot = DummyBot()
    storage = ScheduleStorage(tmp_path / "bot.db")
    tasks: list = []
    errors: list[Exception] = []

    def create_task(coroutine, update=None):
        tasks.append(coroutine)

    async def process_error(update, error):
        errors.append(error)

    settings = SimpleNamespace(
        admin_chat_id=ADMIN_ID,
        tz=TEHRAN,
        broadcast_state_ttl_seconds=900,
        broadcast_batch_size=2,
        broadcast_delay_seconds=0,
        pdf_footer="@WeekStatusBot",
    )
    application = SimpleNamespace(
        bot_data={
            "settings": settings,
            "storage": storage,
            "state_store": StateStore(),
            "week_reference": WeekReference(reference_date=date(2025, 2, 8), parity=Parity.ODD),
            "bot_info": BotInfoCache(bot),
            "clock": lambda: datetime(2025, 2, 10, 9, 0, tzinfo=TEHRAN),
        },
        create_task=create_task,
        process_error=process_error,
    )
    context = SimpleNamespace(bot=bot, application=application, chat_data={}, error=None)
    env = SimpleNamespace(
        bot=bot,
        storage=storage,
        context=context,
        state_store=application.bot_data["state_store"],
        tasks=tasks,
        errors=errors,
    )
    yield env
    for coroutine in tasks:
        coroutine.close()
    storage.close()
