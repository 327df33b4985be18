from __future__ import annotations

from dataclasses import dataclass

CALLBACK_SEPARATOR = ":"


@dataclass(frozen=True)
class CallbackRoute:
    main: str
    action: str
    params: tuple[str, ...]

    def param(self, index: int, default: str | None = None) -> str | None:
        if 0 <= index < len(self.params):
            return self.params[index]
        return default


def normalize_command(text: str) -> str:
    trimmed = (text or "").strip()
    if not trimmed.startswith("/"):
        return ""
    command = trimmed.split(maxsplit=1)[0]
    if "@" in command:
        command = command.split("@", maxsplit=1)[0]
    return command.lower()


def command_target(text: str) -> str | None:
    """Bot username a command is addressed to (/cmd@bot), lowercased."""
    trimmed = (text or "").strip()
    if not trimmed.startswith("/"):
        return None
    command = trimmed.split(maxsplit=1)[0]
    if "@" not in command:
        return None
    return command.split("@", maxsplit=1)[1].lower() or None


def is_for_other_bot(text: str, bot_username: str) -> bool:
    target = command_target(text)
    return target is not None and target != (bot_username or "").lower()


def parse_callback_data(data: str | None) -> CallbackRoute:
    parts = (data or "").split(CALLBACK_SEPARATOR)
    main = parts[0] if parts else ""
    action = parts[1] if len(parts) > 1 else ""
    return CallbackRoute(main=main, action=action, params=tuple(parts[2:]))


def build_callback_data(*parts: object) -> str:
    return CALLBACK_SEPARATOR.join(str(part) for part in parts)
