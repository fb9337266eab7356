import datetime
import re
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from datetime import date
from enum import Enum
from typing import (
    Any,
    Callable,
    ClassVar,
    Collection,
    Generic,
    Optional,
    Pattern,
    TypeVar,
    Union,
)

from telebot import types as tg

from metaform.form.types import (
    CustomPredicate,
    FieldId,
    FormValues,
    Option,
    OptionProvider,
    Resolvable,
    as_resolvable,
)
from metaform.utils import TelegramAttachment


FieldValueT = TypeVar("FieldValueT")


class BadFieldValueError(Exception):
    def __init__(self, msg: str):
        self.msg = msg


class FieldKind(Enum):
    TEXT = "text"
    NUMBER = "number"
    CHECKBOX = "checkbox"
    SELECT = "select"
    FILE = "file"
    DATE = "date"
    CUSTOM = "custom"


# region: config part classes


class Condition(Enum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    EXISTS = "exists"


@dataclass(frozen=True)
class Dependency:
    """Visibility condition relating the owning field to another field's value"""

    field: FieldId
    condition: Condition
    value: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.condition, Condition):
            object.__setattr__(self, "condition", Condition(self.condition))


@dataclass
class ValidationRules:
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Union[str, Pattern[str], None] = None
    greater_than: Optional[float] = None
    less_than: Optional[float] = None
    custom: Optional[CustomPredicate] = None

    def __post_init__(self) -> None:
        if isinstance(self.pattern, str):
            self.pattern = re.compile(self.pattern)
        if self.min_length is not None and self.max_length is not None and self.min_length > self.max_length:
            raise ValueError(f"min_length={self.min_length} exceeds max_length={self.max_length}")


# endregion

# region: field base

RequiredRule = Union[bool, Callable[[FormValues], bool], Resolvable[bool]]
DependenciesRule = Union[list[Dependency], Callable[[FormValues], list[Dependency]], Resolvable[list[Dependency]]]


@dataclass
class FieldSpec(Generic[FieldValueT]):
    """Static field descriptor. Subclasses fix the field kind and know how to extract the value
    from an incoming message and how to present it back."""

    kind: ClassVar[FieldKind]

    id: FieldId
    label: str

    required: RequiredRule = dataclass_field(default=False, kw_only=True)
    options: list[Option] = dataclass_field(default_factory=list, kw_only=True)
    dynamic_options: Optional[OptionProvider] = dataclass_field(default=None, kw_only=True)
    # when set, dynamic options are re-resolved only on changes of these fields
    options_depend_on: Optional[Collection[FieldId]] = dataclass_field(default=None, kw_only=True)
    dependencies: Optional[DependenciesRule] = dataclass_field(default=None, kw_only=True)
    validations: Optional[ValidationRules] = dataclass_field(default=None, kw_only=True)

    # prompt used by the bot, label is used if omitted
    query_message: Optional[str] = dataclass_field(default=None, kw_only=True)

    def __post_init__(self) -> None:
        self.required = as_resolvable(self.required)
        if self.dependencies is not None:
            self.dependencies = as_resolvable(self.dependencies)

    def get_query_message(self) -> str:
        return self.query_message or self.label

    def parse(self, message: tg.Message, options: list[Option]) -> FieldValueT:
        raise NotImplementedError("FieldSpec cannot be used directly, please use concrete subclasses")

    def value_to_str(self, value: FieldValueT) -> str:
        """Human-readable string formatting of the value"""
        return str(value)

    def get_reply_markup(self, options: list[Option], current_value: Optional[FieldValueT]) -> tg.ReplyMarkup:
        return tg.ReplyKeyboardRemove()


# endregion
# region: specific fields


@dataclass
class TextField(FieldSpec[str]):
    kind = FieldKind.TEXT

    empty_text_error_msg: str = dataclass_field(default="Please send a text message.", kw_only=True)

    def parse(self, message: tg.Message, options: list[Option]) -> str:
        text = message.text_content
        if not text:
            raise BadFieldValueError(self.empty_text_error_msg)
        return text


@dataclass
class NumberField(FieldSpec[Union[int, float]]):
    kind = FieldKind.NUMBER

    not_a_number_error_msg: str = dataclass_field(default="Please send a number.", kw_only=True)

    def parse(self, message: tg.Message, options: list[Option]) -> Union[int, float]:
        text = message.text_content.strip().replace(",", ".")
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            raise BadFieldValueError(self.not_a_number_error_msg)


@dataclass
class CheckboxField(FieldSpec[bool]):
    kind = FieldKind.CHECKBOX

    checked_caption: str = dataclass_field(default="Yes", kw_only=True)
    unchecked_caption: str = dataclass_field(default="No", kw_only=True)
    use_buttons_error_msg: str = dataclass_field(default="Please use the buttons.", kw_only=True)

    def parse(self, message: tg.Message, options: list[Option]) -> bool:
        text = message.text_content.strip()
        if text == self.checked_caption:
            return True
        elif text == self.unchecked_caption:
            return False
        else:
            raise BadFieldValueError(self.use_buttons_error_msg)

    def value_to_str(self, value: bool) -> str:
        return self.checked_caption if value else self.unchecked_caption

    def get_reply_markup(self, options: list[Option], current_value: Optional[bool]) -> tg.ReplyMarkup:
        kbd = tg.ReplyKeyboardMarkup(resize_keyboard=True, one_time_keyboard=True, row_width=2)
        kbd.add(tg.KeyboardButton(self.checked_caption), tg.KeyboardButton(self.unchecked_caption))
        return kbd


@dataclass
class SelectField(FieldSpec[str]):
    """Value is the selected option's value; the user may send either its label or its value"""

    kind = FieldKind.SELECT

    invalid_option_error_msg: str = dataclass_field(default="Please select one of the options.", kw_only=True)
    no_options_error_msg: str = dataclass_field(default="No options are available yet.", kw_only=True)
    menu_row_width: int = dataclass_field(default=2, kw_only=True)

    def match_option(self, text: str, options: list[Option]) -> Optional[Option]:
        for option in options:
            if text == option.label or text == option.value:
                return option
        return None

    def parse(self, message: tg.Message, options: list[Option]) -> str:
        if not options:
            raise BadFieldValueError(self.no_options_error_msg)
        option = self.match_option(message.text_content.strip(), options)
        if option is None:
            raise BadFieldValueError(self.invalid_option_error_msg)
        return option.value

    def get_reply_markup(self, options: list[Option], current_value: Optional[str]) -> tg.ReplyMarkup:
        if not options:
            return tg.ReplyKeyboardRemove()
        kbd = tg.ReplyKeyboardMarkup(resize_keyboard=True, one_time_keyboard=True, row_width=self.menu_row_width)
        kbd.add(*[tg.KeyboardButton(option.label) for option in options])
        return kbd


@dataclass
class FileField(FieldSpec[TelegramAttachment]):
    """The attachment is kept as an opaque handle, its content is never downloaded"""

    kind = FieldKind.FILE

    attachment_expected_error_msg: str = dataclass_field(default="Please send a file.", kw_only=True)

    def get_attachment(self, message: tg.Message) -> Optional[TelegramAttachment]:
        if message.photo is not None:
            return message.photo
        elif message.document is not None:
            return message.document
        elif message.audio is not None:
            return message.audio
        elif message.animation is not None:
            return message.animation
        elif message.video is not None:
            return message.video
        else:
            return None

    def parse(self, message: tg.Message, options: list[Option]) -> TelegramAttachment:
        attachment = self.get_attachment(message)
        if attachment is None:
            raise BadFieldValueError(self.attachment_expected_error_msg)
        return attachment

    def value_to_str(self, value: TelegramAttachment) -> str:
        if isinstance(value, tg.Document) and value.file_name:
            return value.file_name
        return "1 attachment"


@dataclass
class DateField(FieldSpec[date]):
    """Accepts ISO dates (2024-05-31) and day-first dotted dates (31.05.2024, 31.05 for the current year)"""

    kind = FieldKind.DATE

    bad_date_format_error_msg: str = dataclass_field(default="Please send a date as YYYY-MM-DD.", kw_only=True)

    def parse(self, message: tg.Message, options: list[Option]) -> date:
        text = message.text_content.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        date_parts = text.split(".")
        try:
            assert 2 <= len(date_parts) <= 3
            day = int(date_parts[0])
            month = int(date_parts[1])
            year = int(date_parts[2]) if len(date_parts) > 2 else datetime.date.today().year
            return date(year, month, day)
        except Exception:
            raise BadFieldValueError(self.bad_date_format_error_msg)

    def value_to_str(self, value: date) -> str:
        return value.isoformat()


@dataclass
class CustomField(FieldSpec[Any]):
    """Field with host-supplied behaviour: the parser extracts the value from a message and may
    raise BadFieldValueError, the renderer builds the reply markup"""

    kind = FieldKind.CUSTOM

    parser: Callable[[tg.Message], Any]
    formatter: Optional[Callable[[Any], str]] = dataclass_field(default=None, kw_only=True)
    renderer: Optional[Callable[[list[Option], Any], tg.ReplyMarkup]] = dataclass_field(default=None, kw_only=True)

    def parse(self, message: tg.Message, options: list[Option]) -> Any:
        return self.parser(message)

    def value_to_str(self, value: Any) -> str:
        if self.formatter is None:
            return str(value)
        return self.formatter(value)

    def get_reply_markup(self, options: list[Option], current_value: Any) -> tg.ReplyMarkup:
        if self.renderer is None:
            return tg.ReplyKeyboardRemove()
        return self.renderer(options, current_value)


FIELD_CLASS_BY_KIND: dict[FieldKind, type[FieldSpec]] = {
    FieldKind.TEXT: TextField,
    FieldKind.NUMBER: NumberField,
    FieldKind.CHECKBOX: CheckboxField,
    FieldKind.SELECT: SelectField,
    FieldKind.FILE: FileField,
    FieldKind.DATE: DateField,
    FieldKind.CUSTOM: CustomField,
}

# endregion
