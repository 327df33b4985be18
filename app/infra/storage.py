from __future__ import annotations

import json
import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from app.core.schedule import (
    Lesson,
    UserSchedule,
    WeekSchedule,
    WeekType,
    add_lesson,
    clean_week_schedule,
    clear_day,
    empty_week,
    remove_lesson,
    week_to_dict,
)

LOGGER = logging.getLogger(__name__)

TargetKind = Literal["users", "groups"]
BroadcastMethod = Literal["copy", "forward"]

DEFAULT_USER_NAME = "کاربر تلگرام"
_MAX_FIELD = 255
_MAX_SHORT_FIELD = 50
_SCHEDULE_COLUMNS = {"odd": "odd_week_schedule", "even": "even_week_schedule"}


class StorageError(RuntimeError):
    """A write to the database failed."""


@dataclass(frozen=True)
class Broadcast:
    id: int
    admin_message_id: int
    admin_chat_id: int
    method: str
    target_description: str
    status: str
    created_at: str
    final_report_message_id: int | None = None
    success_count: int | None = None
    fail_count: int | None = None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clip(value: str | None, limit: int = _MAX_FIELD) -> str | None:
    if value is None:
        return None
    return value[:limit]


class ScheduleStorage:
    def __init__(self, db_path: Path | str) -> None:
        self._db_path = db_path
        self._lock = threading.Lock()
        self._connection = sqlite3.connect(db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        self._connection.executescript(
            """
            CREATE TABLE IF NOT EXISTS users (
                user_id INTEGER PRIMARY KEY,
                chat_id INTEGER NOT NULL,
                full_name TEXT NOT NULL,
                username TEXT,
                last_seen_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS groups (
                group_id INTEGER PRIMARY KEY,
                group_name TEXT NOT NULL,
                last_seen_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS bot_usage (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                first_name TEXT,
                last_name TEXT,
                username TEXT,
                command TEXT NOT NULL,
                chat_type TEXT,
                chat_id INTEGER NOT NULL,
                chat_title TEXT,
                created_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS user_schedules (
                user_id INTEGER PRIMARY KEY,
                odd_week_schedule TEXT NOT NULL DEFAULT '{}',
                even_week_schedule TEXT NOT NULL DEFAULT '{}',
                updated_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS broadcasts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                admin_message_id INTEGER NOT NULL,
                admin_chat_id INTEGER NOT NULL,
                method TEXT NOT NULL,
                target_description TEXT NOT NULL,
                status TEXT NOT NULL,
                final_report_message_id INTEGER,
                success_count INTEGER,
                fail_count INTEGER,
                created_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS broadcast_messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                broadcast_id INTEGER NOT NULL REFERENCES broadcasts(id),
                recipient_chat_id INTEGER NOT NULL,
                sent_message_id INTEGER,
                status TEXT NOT NULL,
                failure_reason TEXT,
                created_at TEXT NOT NULL
            );
            """
        )
        self._connection.commit()

    def _write(self, sql: str, params: tuple) -> sqlite3.Cursor:
        with self._lock:
            try:
                cursor = self._connection.execute(sql, params)
                self._connection.commit()
            except sqlite3.Error as exc:
                self._connection.rollback()
                raise StorageError(str(exc)) from exc
        return cursor

    # --- usage / users / groups ---

    def log_usage(
        self,
        *,
        user_id: int,
        first_name: str | None,
        last_name: str | None,
        username: str | None,
        command: str | None,
        chat_type: str | None,
        chat_id: int,
        chat_title: str | None,
    ) -> None:
        try:
            self._write(
                """
                INSERT INTO bot_usage (
                    user_id, first_name, last_name, username, command,
                    chat_type, chat_id, chat_title, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    _clip(first_name),
                    _clip(last_name),
                    _clip(username),
                    _clip(command) or "unknown_action",
                    _clip(chat_type, _MAX_SHORT_FIELD),
                    chat_id,
                    _clip(chat_title or ""),
                    _now_iso(),
                ),
            )
        except StorageError:
            LOGGER.exception("Usage log failed: user_id=%s command=%s", user_id, command)

    def add_user(
        self,
        *,
        user_id: int,
        chat_id: int,
        first_name: str | None,
        last_name: str | None,
        username: str | None,
    ) -> bool:
        full_name = f"{first_name or ''} {last_name or ''}".strip() or DEFAULT_USER_NAME
        try:
            self._write(
                """
                INSERT INTO users (user_id, chat_id, full_name, username, last_seen_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    chat_id = excluded.chat_id,
                    full_name = excluded.full_name,
                    username = excluded.username,
                    last_seen_at = excluded.last_seen_at
                """,
                (user_id, chat_id, _clip(full_name), _clip(username), _now_iso()),
            )
        except StorageError:
            LOGGER.exception("Failed to upsert user %s", user_id)
            return False
        LOGGER.debug("User %s (%s) added/updated", user_id, full_name)
        return True

    def add_group(self, *, chat_id: int, chat_type: str, title: str | None) -> bool:
        if chat_type not in {"group", "supergroup"}:
            return False
        name = title or f"گروه {chat_id}"
        try:
            self._write(
                """
                INSERT INTO groups (group_id, group_name, last_seen_at)
                VALUES (?, ?, ?)
                ON CONFLICT(group_id) DO UPDATE SET
                    group_name = excluded.group_name,
                    last_seen_at = excluded.last_seen_at
                """,
                (chat_id, _clip(name), _now_iso()),
            )
        except StorageError:
            LOGGER.exception("Failed to upsert group %s", chat_id)
            return False
        LOGGER.debug("Group %s added/updated", name)
        return True

    def get_target_ids(self, kind: TargetKind) -> list[int]:
        if kind == "users":
            sql = "SELECT chat_id AS target FROM users"
        elif kind == "groups":
            sql = "SELECT group_id AS target FROM groups"
        else:
            raise ValueError(f"Unknown target kind: {kind!r}")
        try:
            rows = self._connection.execute(sql).fetchall()
        except sqlite3.Error:
            LOGGER.exception("Failed to fetch all %s", kind)
            return []
        return [row["target"] for row in rows if row["target"]]

    def count_users(self) -> int | None:
        return self._count("users")

    def count_groups(self) -> int | None:
        return self._count("groups")

    def _count(self, table: str) -> int | None:
        try:
            row = self._connection.execute(f"SELECT COUNT(*) AS total FROM {table}").fetchone()
        except sqlite3.Error:
            LOGGER.exception("Failed to count %s", table)
            return None
        return int(row["total"])

    # --- schedules ---

    def _fetch_schedule_row(self, user_id: int) -> sqlite3.Row | None:
        return self._connection.execute(
            "SELECT odd_week_schedule, even_week_schedule FROM user_schedules WHERE user_id = ?",
            (user_id,),
        ).fetchone()

    def _read_schedule(self, user_id: int) -> UserSchedule:
        """Schedule for a read-modify-write; raises StorageError instead of degrading."""
        try:
            row = self._fetch_schedule_row(user_id)
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        return _schedule_from_row(row)

    def get_user_schedule(self, user_id: int) -> UserSchedule:
        try:
            row = self._fetch_schedule_row(user_id)
        except sqlite3.Error:
            LOGGER.exception("Error fetching schedule for user %s", user_id)
            return UserSchedule()
        return _schedule_from_row(row)

    def _store_week(self, user_id: int, week_type: WeekType, week: WeekSchedule) -> None:
        column = _SCHEDULE_COLUMNS[week_type]
        payload = json.dumps(week_to_dict(week), ensure_ascii=False)
        self._write(
            f"""
            INSERT INTO user_schedules (user_id, {column}, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                {column} = excluded.{column},
                updated_at = excluded.updated_at
            """,
            (user_id, payload, _now_iso()),
        )

    def save_lesson(self, user_id: int, week_type: WeekType, day: str, lesson: Lesson) -> None:
        schedule = self._read_schedule(user_id)
        updated = add_lesson(schedule.for_week(week_type), day, lesson)
        self._store_week(user_id, week_type, updated)
        LOGGER.info("Saved lesson for user %s, week %s, day %s", user_id, week_type, day)

    def delete_lesson(self, user_id: int, week_type: WeekType, day: str, index: int) -> bool:
        schedule = self._read_schedule(user_id)
        updated, removed = remove_lesson(schedule.for_week(week_type), day, index)
        if removed is None:
            LOGGER.warning("Lesson index %s not found for deletion: user=%s week=%s day=%s", index, user_id, week_type, day)
            return False
        self._store_week(user_id, week_type, updated)
        LOGGER.info("Lesson '%s' deleted for user %s", removed.lesson, user_id)
        return True

    def delete_day(self, user_id: int, week_type: WeekType, day: str) -> bool:
        schedule = self._read_schedule(user_id)
        updated, changed = clear_day(schedule.for_week(week_type), day)
        if not changed:
            LOGGER.info("No lessons to delete for user %s: week=%s day=%s", user_id, week_type, day)
            return False
        self._store_week(user_id, week_type, updated)
        LOGGER.info("All lessons deleted for user %s, week %s, day %s", user_id, week_type, day)
        return True

    def delete_week(self, user_id: int, week_type: WeekType) -> bool:
        self._store_week(user_id, week_type, empty_week())
        LOGGER.info("Entire %s week schedule deleted for user %s", week_type, user_id)
        return True

    # --- broadcasts ---

    def create_broadcast(
        self,
        *,
        admin_message_id: int,
        admin_chat_id: int,
        method: BroadcastMethod,
        target_description: str,
    ) -> Broadcast | None:
        created_at = _now_iso()
        try:
            cursor = self._write(
                """
                INSERT INTO broadcasts (
                    admin_message_id, admin_chat_id, method, target_description, status, created_at
                ) VALUES (?, ?, ?, ?, 'pending', ?)
                """,
                (admin_message_id, admin_chat_id, method, target_description, created_at),
            )
        except StorageError:
            LOGGER.exception("Failed to create broadcast entry")
            return None
        return Broadcast(
            id=int(cursor.lastrowid),
            admin_message_id=admin_message_id,
            admin_chat_id=admin_chat_id,
            method=method,
            target_description=target_description,
            status="pending",
            created_at=created_at,
        )

    def get_broadcast(self, broadcast_id: int) -> Broadcast | None:
        row = self._connection.execute("SELECT * FROM broadcasts WHERE id = ?", (broadcast_id,)).fetchone()
        if row is None:
            return None
        return Broadcast(**dict(row))

    def update_broadcast(
        self,
        broadcast_id: int,
        *,
        status: str | None = None,
        final_report_message_id: int | None = None,
        success_count: int | None = None,
        fail_count: int | None = None,
    ) -> None:
        updates = {
            "status": status,
            "final_report_message_id": final_report_message_id,
            "success_count": success_count,
            "fail_count": fail_count,
        }
        fields = {key: value for key, value in updates.items() if value is not None}
        if not fields:
            return
        assignments = ", ".join(f"{key} = ?" for key in fields)
        try:
            self._write(
                f"UPDATE broadcasts SET {assignments} WHERE id = ?",
                (*fields.values(), broadcast_id),
            )
        except StorageError:
            LOGGER.exception("Failed to update broadcast %s", broadcast_id)

    def log_broadcast_message(
        self,
        broadcast_id: int,
        recipient_chat_id: int,
        sent_message_id: int | None,
        status: Literal["sent", "failed"],
        failure_reason: str | None = None,
    ) -> None:
        try:
            self._write(
                """
                INSERT INTO broadcast_messages (
                    broadcast_id, recipient_chat_id, sent_message_id, status, failure_reason, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (broadcast_id, recipient_chat_id, sent_message_id, status, _clip(failure_reason), _now_iso()),
            )
        except StorageError:
            LOGGER.exception("Failed to log broadcast message: broadcast=%s recipient=%s", broadcast_id, recipient_chat_id)

    def broadcast_message_statuses(self, broadcast_id: int) -> list[sqlite3.Row]:
        return self._connection.execute(
            "SELECT recipient_chat_id, sent_message_id, status, failure_reason "
            "FROM broadcast_messages WHERE broadcast_id = ? ORDER BY id",
            (broadcast_id,),
        ).fetchall()

    def close(self) -> None:
        try:
            self._connection.close()
        except sqlite3.Error:
            LOGGER.exception("Failed to close database connection")


def _load_json(raw: str | None) -> object:
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        LOGGER.warning("Stored schedule is not valid JSON; treating as empty")
        return {}


def _schedule_from_row(row: sqlite3.Row | None) -> UserSchedule:
    if row is None:
        return UserSchedule()
    return UserSchedule(
        odd=clean_week_schedule(_load_json(row["odd_week_schedule"])),
        even=clean_week_schedule(_load_json(row["even_week_schedule"])),
    )
