from __future__ import annotations

import sqlite3

import pytest

from app.core.schedule import Lesson
from app.infra.storage import DEFAULT_USER_NAME, ScheduleStorage, StorageError

MATH = Lesson("ریاضی", "10:00", "12:00", "کلاس ۱۰۱")
PHYSICS = Lesson("فیزیک", "08:00", "10:00", "آزمایشگاه")


@pytest.fixture
def storage(tmp_path):
    store = ScheduleStorage(tmp_path / "bot.db")
    yield store
    store.close()


def test_empty_schedule_for_unknown_user(storage) -> None:
    assert storage.get_user_schedule(42).is_empty()


def test_save_lesson_sorts_and_persists(tmp_path) -> None:
    path = tmp_path / "bot.db"
    storage = ScheduleStorage(path)
    storage.save_lesson(1, "odd", "saturday", MATH)
    storage.save_lesson(1, "odd", "saturday", PHYSICS)
    storage.close()

    reopened = ScheduleStorage(path)
    schedule = reopened.get_user_schedule(1)
    reopened.close()

    assert schedule.odd["saturday"] == [PHYSICS, MATH]
    assert schedule.even["saturday"] == []


def test_saving_one_week_keeps_the_other(storage) -> None:
    storage.save_lesson(1, "odd", "sunday", MATH)
    storage.save_lesson(1, "even", "monday", PHYSICS)

    schedule = storage.get_user_schedule(1)

    assert schedule.odd["sunday"] == [MATH]
    assert schedule.even["monday"] == [PHYSICS]


def test_delete_lesson(storage) -> None:
    storage.save_lesson(1, "odd", "sunday", MATH)
    storage.save_lesson(1, "odd", "sunday", PHYSICS)

    assert storage.delete_lesson(1, "odd", "sunday", 0)
    assert storage.get_user_schedule(1).odd["sunday"] == [MATH]
    assert not storage.delete_lesson(1, "odd", "sunday", 5)


def test_failed_read_does_not_overwrite_stored_week(storage, monkeypatch) -> None:
    storage.save_lesson(1, "odd", "sunday", MATH)

    def locked(user_id):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(storage, "_fetch_schedule_row", locked)

    assert storage.get_user_schedule(1).is_empty()
    with pytest.raises(StorageError):
        storage.save_lesson(1, "odd", "sunday", PHYSICS)
    with pytest.raises(StorageError):
        storage.delete_lesson(1, "odd", "sunday", 0)
    with pytest.raises(StorageError):
        storage.delete_day(1, "odd", "sunday")

    monkeypatch.undo()
    assert storage.get_user_schedule(1).odd["sunday"] == [MATH]


def test_delete_day_and_week(storage) -> None:
    storage.save_lesson(1, "even", "tuesday", MATH)
    storage.save_lesson(1, "even", "wednesday", PHYSICS)

    assert storage.delete_day(1, "even", "tuesday")
    assert not storage.delete_day(1, "even", "tuesday")
    assert storage.get_user_schedule(1).even["wednesday"] == [PHYSICS]

    assert storage.delete_week(1, "even")
    assert storage.get_user_schedule(1).is_empty()


def test_add_user_upserts(storage) -> None:
    assert storage.add_user(user_id=7, chat_id=7, first_name=None, last_name=None, username=None)
    assert storage.add_user(user_id=7, chat_id=7, first_name="Sara", last_name="K", username="sara")

    assert storage.count_users() == 1
    assert storage.get_target_ids("users") == [7]
    row = storage._connection.execute("SELECT full_name, username FROM users WHERE user_id = 7").fetchone()
    assert row["full_name"] == "Sara K"
    assert row["username"] == "sara"


def test_add_user_default_name(storage) -> None:
    storage.add_user(user_id=8, chat_id=8, first_name="", last_name=None, username=None)

    row = storage._connection.execute("SELECT full_name FROM users WHERE user_id = 8").fetchone()
    assert row["full_name"] == DEFAULT_USER_NAME


def test_add_group_only_for_groups(storage) -> None:
    assert storage.add_group(chat_id=-100, chat_type="supergroup", title="کلاس")
    assert storage.add_group(chat_id=-200, chat_type="group", title=None)
    assert not storage.add_group(chat_id=5, chat_type="private", title=None)

    assert storage.count_groups() == 2
    assert sorted(storage.get_target_ids("groups")) == [-200, -100]


def test_get_target_ids_rejects_unknown_kind(storage) -> None:
    with pytest.raises(ValueError):
        storage.get_target_ids("channels")  # type: ignore[arg-type]


def test_log_usage_records_row(storage) -> None:
    storage.log_usage(
        user_id=1,
        first_name="A",
        last_name=None,
        username=None,
        command=None,
        chat_type="private",
        chat_id=1,
        chat_title=None,
    )

    row = storage._connection.execute("SELECT command, chat_title FROM bot_usage").fetchone()
    assert row["command"] == "unknown_action"
    assert row["chat_title"] == ""


def test_broadcast_lifecycle(storage) -> None:
    broadcast = storage.create_broadcast(
        admin_message_id=10,
        admin_chat_id=99,
        method="copy",
        target_description="همه کاربران",
    )
    assert broadcast is not None
    assert broadcast.status == "pending"

    storage.log_broadcast_message(broadcast.id, 1, 555, "sent")
    storage.log_broadcast_message(broadcast.id, 2, None, "failed", "Forbidden: bot was blocked by the user")
    storage.update_broadcast(broadcast.id, status="completed_with_errors", success_count=1, fail_count=1)

    stored = storage.get_broadcast(broadcast.id)
    assert stored.status == "completed_with_errors"
    assert (stored.success_count, stored.fail_count) == (1, 1)
    statuses = [row["status"] for row in storage.broadcast_message_statuses(broadcast.id)]
    assert statuses == ["sent", "failed"]


def test_update_broadcast_keeps_zero_counts(storage) -> None:
    broadcast = storage.create_broadcast(
        admin_message_id=1, admin_chat_id=1, method="forward", target_description="همه گروه‌ها"
    )

    storage.update_broadcast(broadcast.id, status="completed", success_count=3, fail_count=0)

    assert storage.get_broadcast(broadcast.id).fail_count == 0

