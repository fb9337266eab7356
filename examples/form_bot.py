import asyncio
import html
import logging
from pprint import pformat
from typing import Any, Mapping

from telebot import AsyncTeleBot
from telebot import types as tg
from telebot.runner import BotRunner

from metaform.form.field import (
    BadFieldValueError,
    CheckboxField,
    CustomField,
    DateField,
    Dependency,
    FileField,
    NumberField,
    SelectField,
    TextField,
    ValidationRules,
)
from metaform.form.form import Form
from metaform.form.handler import FormExitContext, FormHandler, FormHandlerConfig
from metaform.form.types import Option

logging.basicConfig(level=logging.INFO)

NAME_PATTERN = r"^[A-Za-z]+$"
EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
HEX_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


async def fetch_states(values: Mapping[str, Any]) -> list[Option]:
    await asyncio.sleep(0.1)  # pretending to call some API
    if values.get("country") == "US":
        return [Option("NY", "New York"), Option("CA", "California")]
    return []


async def fetch_cities(values: Mapping[str, Any]) -> list[Option]:
    await asyncio.sleep(0.1)
    if values.get("state") == "NY":
        return [Option("NYC", "New York City")]
    elif values.get("state") == "CA":
        return [Option("LA", "Los Angeles")]
    return []


def parse_color(message: tg.Message) -> str:
    text = message.text_content.strip()
    if not text.startswith("#"):
        text = "#" + text
    if len(text) != 7:
        raise BadFieldValueError("Send a color as a hex code, e.g. #ff8800")
    return text.lower()


demo_form = Form(
    [
        TextField(
            "firstName",
            "First Name",
            required=True,
            validations=ValidationRules(min_length=2, max_length=50, pattern=NAME_PATTERN),
        ),
        TextField(
            "lastName",
            "Last Name",
            required=True,
            validations=ValidationRules(min_length=2, max_length=50, pattern=NAME_PATTERN),
        ),
        TextField("email", "Email", required=True, validations=ValidationRules(pattern=EMAIL_PATTERN)),
        TextField("password", "Password", required=True, validations=ValidationRules(min_length=8)),
        TextField(
            "confirmPassword",
            "Confirm Password",
            required=True,
            validations=ValidationRules(
                custom=lambda value, values: True if value == values.get("password") else "Passwords must match.",
            ),
        ),
        NumberField("age", "Age", required=True, validations=ValidationRules(greater_than=18, less_than=100)),
        DateField("dateOfBirth", "Date of Birth", required=True),
        SelectField("country", "Country", required=True),
        SelectField(
            "state",
            "State",
            required=lambda values: values.get("country") == "US",
            dependencies=[Dependency("country", "equals", "US")],
            dynamic_options=fetch_states,
            options_depend_on=["country"],
        ),
        SelectField(
            "city",
            "City",
            required=True,
            dependencies=[Dependency("state", "exists")],
            dynamic_options=fetch_cities,
            options_depend_on=["state"],
        ),
        CheckboxField("terms", "Agree to Terms", required=True),
        FileField("resume", "Upload Resume", required=True),
        TextField("portfolioLink", "Portfolio URL", validations=ValidationRules(pattern=r"^(https?://[^\s]+)$")),
        CustomField(
            "favoriteColor",
            "Favorite Color",
            parser=parse_color,
            validations=ValidationRules(pattern=HEX_COLOR_PATTERN),
        ),
    ]
)


def create_form_bot(token: str) -> BotRunner:
    bot = AsyncTeleBot(token)

    form_handler = FormHandler(
        name="demo-form",
        form=demo_form,
        config=FormHandlerConfig(
            retry_field_msg="Please enter valid value.",
            form_starting_template="Please fill out a simple form! {} to cancel.",
            can_skip_field_template="{} to skip.",
            cant_skip_field_msg="This is a required field that can't be skipped!",
            cancelling_because_of_error_template="Something went wrong: {}",
            submit_failed_msg="Some answers need to be fixed:",
            form_submitted_msg="Thank you! Your answers:",
            echo_result=True,
        ),
    )

    @bot.message_handler()
    async def default_handler(message: tg.Message):
        await form_handler.start(
            bot,
            message.from_user,
            initial_values={"firstName": message.from_user.first_name or ""},
            dynamic_options={
                "country": [
                    Option("US", "United States"),
                    Option("UK", "United Kingdom"),
                    Option("IN", "India"),
                    Option("JPN", "Japan"),
                ]
            },
        )

    async def on_form_cancelled(context: FormExitContext):
        if context.last_update is not None:
            await bot.send_message(context.last_update.from_user.id, "The form has been cancelled. Good luck!")

    async def on_form_submitted(context: FormExitContext):
        form_result_dump = pformat(context.result, indent=2, width=70, sort_dicts=False)
        logging.info(f"Form submitted: {form_result_dump}")
        if context.last_update is not None:
            await bot.send_message(
                context.last_update.from_user.id,
                f"<pre>{html.escape(form_result_dump, quote=False)}</pre>",
                parse_mode="HTML",
            )

    form_handler.setup(bot, on_form_submitted=on_form_submitted, on_form_cancelled=on_form_cancelled)

    return BotRunner(
        name="example-form-bot",
        bot=bot,
    )


if __name__ == "__main__":
    import os

    bot_runner = create_form_bot(token=os.environ["TOKEN"])
    asyncio.run(bot_runner.run_polling())
