import asyncio
import datetime
import random
from typing import Any, Mapping, Optional

from telebot import AsyncTeleBot
from telebot import types as tg
from telebot.test_util import MethodCall

from metaform.form.types import Option

STATES = [Option("NY", "New York"), Option("CA", "California")]
CITIES = {"NY": [Option("NYC", "New York City")], "CA": [Option("LA", "Los Angeles")]}


async def fetch_states(values: Mapping[str, Any]) -> list[Option]:
    return STATES if values.get("country") == "US" else []


async def fetch_cities(values: Mapping[str, Any]) -> list[Option]:
    return CITIES.get(values.get("state"), [])  # type: ignore


def passwords_match(value: Any, values: Mapping[str, Any]) -> bool | str:
    return True if value == values.get("password") else "Passwords must match."


def message_json(user_id: int, text: Optional[str] = None, **extra: Any) -> dict[str, Any]:
    message: dict[str, Any] = {
        "message_id": random.randint(1, int(1e6)),
        "from": {
            "id": user_id,
            "is_bot": False,
            "first_name": "User",
        },
        "chat": {
            "id": user_id,
            "type": "private",
        },
        "date": int(datetime.datetime.now().timestamp()),
    }
    if text is not None:
        message["text"] = text
    message.update(extra)
    return message


def make_message(text: Optional[str] = None, user_id: int = 1312, **extra: Any) -> tg.Message:
    return tg.Message.de_json(message_json(user_id, text, **extra))  # type: ignore


async def spin(iterations: int = 10) -> None:
    """Lets background tasks make progress"""
    for _ in range(iterations):
        await asyncio.sleep(0)


def extract_full_kwargs(method_calls: list[MethodCall]) -> list[dict[str, Any]]:
    return [mc.full_kwargs for mc in method_calls]


def sent_texts(bot: Any) -> list[str]:
    return [kw["text"] for kw in extract_full_kwargs(bot.method_calls.get("send_message", []))]


def keyboard_texts(reply_markup: tg.ReplyMarkup) -> list[list[str]]:
    return [[button["text"] for button in row] for row in reply_markup.to_dict()["keyboard"]]


class TelegramServerMock:
    def __init__(self) -> None:
        self._message_id_counter = 0

    async def send_message_to_bot(self, bot: AsyncTeleBot, user_id: int, text: str) -> None:
        self._message_id_counter += 1
        message = message_json(user_id, text)
        message["message_id"] = self._message_id_counter
        update_json = {
            "update_id": random.randint(int(1e4), int(1e6)),
            "message": message,
        }
        await bot.process_new_updates([tg.Update.de_json(update_json)])  # type: ignore
