import html
import inspect
import math
from typing import Any, Awaitable, Optional, TypeVar, Union

from telebot import types as tg

TelegramAttachment = Union[list[tg.PhotoSize], tg.Video, tg.Animation, tg.Audio, tg.Document]


def join_paragraphs(lines: list[str]) -> str:
    return "\n\n".join([line for line in lines if line])


def telegram_html_escape(string: str) -> str:
    """See https://core.telegram.org/bots/api#html-style"""
    return html.escape(string, quote=False)


ReturnT = TypeVar("ReturnT")


async def maybe_await(result: Union[ReturnT, Awaitable[ReturnT]]) -> ReturnT:
    """Host callbacks may be plain functions or coroutine functions"""
    if inspect.isawaitable(result):
        return await result
    else:
        return result  # type: ignore


def is_empty_value(value: Any) -> bool:
    """Empty string, None or False; zero is a meaningful value"""
    return value is None or value is False or (isinstance(value, str) and value == "")


def strict_equals(left: Any, right: Any) -> bool:
    """Equality that does not mix booleans with numbers: True != 1, False != 0"""
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def as_number(value: Any) -> Optional[float]:
    """Numeric view of a value; numeric strings are converted, booleans and anything else are not numbers"""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None
