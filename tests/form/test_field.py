import datetime

import pytest
from telebot import types as tg

from metaform.form.field import (
    FIELD_CLASS_BY_KIND,
    BadFieldValueError,
    CheckboxField,
    CustomField,
    DateField,
    FieldKind,
    FileField,
    NumberField,
    SelectField,
    TextField,
)
from metaform.form.types import Option
from tests.utils import STATES, keyboard_texts, make_message


def test_text_field():
    field = TextField("name", "Name", query_message="What is your name?")
    assert field.get_query_message() == "What is your name?"
    assert field.parse(make_message("Kamal"), []) == "Kamal"
    assert isinstance(field.get_reply_markup([], None), tg.ReplyKeyboardRemove)
    with pytest.raises(BadFieldValueError):
        field.parse(make_message(document={"file_id": "1", "file_unique_id": "1"}), [])


@pytest.mark.parametrize(
    "text, expected",
    [
        pytest.param("42", 42),
        pytest.param(" 42 ", 42),
        pytest.param("4.5", 4.5),
        pytest.param("4,5", 4.5),
        pytest.param("-1", -1),
    ],
)
def test_number_field(text: str, expected: float):
    value = NumberField("age", "Age").parse(make_message(text), [])
    assert value == expected
    assert type(value) is type(expected)


def test_number_field_bad_value():
    field = NumberField("age", "Age", not_a_number_error_msg="Digits please")
    with pytest.raises(BadFieldValueError) as exc_info:
        field.parse(make_message("forty two"), [])
    assert exc_info.value.msg == "Digits please"


def test_checkbox_field():
    field = CheckboxField("terms", "Accept terms", checked_caption="Accept", unchecked_caption="Decline")
    assert field.parse(make_message("Accept"), []) is True
    assert field.parse(make_message("Decline"), []) is False
    assert field.value_to_str(True) == "Accept"
    assert keyboard_texts(field.get_reply_markup([], None)) == [["Accept", "Decline"]]
    with pytest.raises(BadFieldValueError):
        field.parse(make_message("yes"), [])


def test_select_field():
    field = SelectField("state", "State")
    assert field.parse(make_message("New York"), STATES) == "NY"
    assert field.parse(make_message("CA"), STATES) == "CA"
    assert keyboard_texts(field.get_reply_markup(STATES, None)) == [["New York", "California"]]
    with pytest.raises(BadFieldValueError) as exc_info:
        field.parse(make_message("Texas"), STATES)
    assert exc_info.value.msg == field.invalid_option_error_msg


def test_select_field_without_options():
    field = SelectField("state", "State")
    assert isinstance(field.get_reply_markup([], None), tg.ReplyKeyboardRemove)
    with pytest.raises(BadFieldValueError) as exc_info:
        field.parse(make_message("New York"), [])
    assert exc_info.value.msg == field.no_options_error_msg


def test_select_field_row_width():
    field = SelectField("n", "N", menu_row_width=3)
    options = [Option(str(i), f"Option {i}") for i in range(5)]
    assert keyboard_texts(field.get_reply_markup(options, None)) == [
        ["Option 0", "Option 1", "Option 2"],
        ["Option 3", "Option 4"],
    ]


def test_file_field():
    field = FileField("resume", "Resume")
    message = make_message(document={"file_id": "abc", "file_unique_id": "abc-u", "file_name": "cv.pdf"})
    attachment = field.parse(message, [])
    assert isinstance(attachment, tg.Document)
    assert attachment.file_id == "abc"
    assert field.value_to_str(attachment) == "cv.pdf"
    with pytest.raises(BadFieldValueError):
        field.parse(make_message("here is my resume"), [])


@pytest.mark.parametrize(
    "text, expected",
    [
        pytest.param("1990-05-31", datetime.date(1990, 5, 31)),
        pytest.param("31.05.1990", datetime.date(1990, 5, 31)),
        pytest.param("31.05", datetime.date(datetime.date.today().year, 5, 31)),
    ],
)
def test_date_field(text: str, expected: datetime.date):
    field = DateField("dateOfBirth", "Date of birth")
    value = field.parse(make_message(text), [])
    assert value == expected
    assert field.value_to_str(value) == expected.isoformat()


@pytest.mark.parametrize("text", [pytest.param("yesterday"), pytest.param("31.13.1990"), pytest.param("1.2.3.4")])
def test_date_field_bad_value(text: str):
    with pytest.raises(BadFieldValueError):
        DateField("dateOfBirth", "Date of birth").parse(make_message(text), [])


def test_custom_field():
    def parse_hex_color(message: tg.Message) -> int:
        text = message.text_content.strip().lstrip("#")
        try:
            return int(text, 16)
        except ValueError:
            raise BadFieldValueError("Send a color like #ff8800")

    def color_keyboard(options: list[Option], current_value: int) -> tg.ReplyMarkup:
        kbd = tg.ReplyKeyboardMarkup(one_time_keyboard=True)
        kbd.add(*[tg.KeyboardButton(o.label) for o in options])
        return kbd

    field = CustomField(
        "favoriteColor",
        "Favorite color",
        parse_hex_color,
        formatter=lambda value: f"#{value:06x}",
        renderer=color_keyboard,
    )
    assert field.parse(make_message("#ff8800"), []) == 0xFF8800
    assert field.value_to_str(0xFF8800) == "#ff8800"
    assert keyboard_texts(field.get_reply_markup([Option("#000000", "Black")], None)) == [["Black"]]
    with pytest.raises(BadFieldValueError):
        field.parse(make_message("orange"), [])


def test_custom_field_defaults():
    field = CustomField("x", "X", lambda message: message.text_content)
    assert field.value_to_str(12) == "12"
    assert isinstance(field.get_reply_markup([], None), tg.ReplyKeyboardRemove)


def test_field_class_by_kind():
    for kind in FieldKind:
        assert FIELD_CLASS_BY_KIND[kind].kind is kind
