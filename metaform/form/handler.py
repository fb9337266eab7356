from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Any, Callable, Coroutine, Generic, Mapping, Optional, TypeVar

from telebot import AsyncTeleBot
from telebot import types as tg
from telebot.types import constants

from metaform.form.engine import FormEngine, SubmitResult
from metaform.form.field import BadFieldValueError, FieldSpec
from metaform.form.form import Form, format_named_value
from metaform.form.rules import DEFAULT_CONFIG, FormEngineConfig
from metaform.form.types import FieldId, Option
from metaform.utils import join_paragraphs, telegram_html_escape

ResultT = TypeVar("ResultT", bound=Mapping[str, Any])


@dataclass
class FormHandlerConfig:
    # e.g. "Please enter the correct value."
    retry_field_msg: str

    # should have placeholder for cancel command, e.g. "Welcome to my awesome form! To cancel, use {}."
    form_starting_template: str

    # should have placeholder for skip command, e.g. "Use {} to skip this field."
    can_skip_field_template: str
    # e.g. "This field can not be skipped!"
    cant_skip_field_msg: str

    # should have placeholder for error, e.g. "Something went wrong but we're working on it (details: {})."
    cancelling_because_of_error_template: str

    # e.g. "Some answers need to be fixed:", followed by the list of errors
    submit_failed_msg: str

    # if set, sent after successful submission, followed by the summary if echo_result is set
    form_submitted_msg: Optional[str] = None
    echo_result: bool = False

    cancel_cmd: str = "/cancel"
    skip_cmd: str = "/skip"

    def can_skip_field_msg(self) -> str:
        return self.can_skip_field_template.format(self.skip_cmd)

    def form_starting_msg(self) -> str:
        return self.form_starting_template.format(self.cancel_cmd)


@dataclass
class FormExitContext(Generic[ResultT]):
    bot: AsyncTeleBot
    last_update: Optional[tg.Message]
    result: ResultT


FormExitCallback = Callable[[FormExitContext], Coroutine[None, None, None]]


@dataclass
class _FormState:
    """User's progress through the form: the engine holds the values, the state tracks the dialog"""

    engine: FormEngine
    current_field_id: Optional[FieldId] = None
    answered: set[FieldId] = dataclass_field(default_factory=set)
    last_update: Optional[tg.Message] = None

    @property
    def current_field(self) -> FieldSpec:
        if self.current_field_id is None:
            raise RuntimeError("No field is currently being filled")
        return self.engine.form.fields_by_id[self.current_field_id]

    def next_field(self) -> Optional[FieldSpec]:
        """First visible field in form order that hasn't been answered yet"""
        for field in self.engine.form.fields:
            if field.id not in self.answered and self.engine.is_visible(field.id):
                return field
        return None


class FormHandler:
    """
    Telegram front end for the form engine: asks visible fields one by one, turns the user's
    messages into field values and submits the form when nothing is left to ask.

    Form states are kept in memory, one per user.
    """

    def __init__(
        self,
        name: str,
        form: Form,
        config: FormHandlerConfig,
        engine_config: FormEngineConfig = DEFAULT_CONFIG,
    ):
        self.name = name
        self.form = form
        self.config = config
        self.engine_config = engine_config
        self.logger = logging.getLogger(f"{__name__}[{name}]")
        self._states: dict[int, _FormState] = {}
        self._on_form_submitted: Optional[FormExitCallback] = None
        self._on_form_cancelled: Optional[FormExitCallback] = None

    def engine_for(self, user_id: int) -> Optional[FormEngine]:
        """Gives the host access to the user's engine, e.g. to merge late initial values"""
        state = self._states.get(user_id)
        return state.engine if state is not None else None

    def _drop_state(self, user_id: int) -> Optional[_FormState]:
        state = self._states.pop(user_id, None)
        if state is not None:
            state.engine.close()
        return state

    def _field_prompt(self, state: _FormState) -> str:
        field = state.current_field
        sentences = [field.get_query_message()]
        if not state.engine.is_required(field.id):
            sentences.append(self.config.can_skip_field_msg())
        return " ".join(sentences)

    def _field_reply_markup(self, state: _FormState) -> tg.ReplyMarkup:
        field = state.current_field
        options: list[Option] = state.engine.options_for(field.id)
        return field.get_reply_markup(options, state.engine.values.get(field.id))

    async def _send(self, bot: AsyncTeleBot, user_id: int, paragraphs: list[str], reply_markup: tg.ReplyMarkup):
        await bot.send_message(
            user_id,
            text=join_paragraphs(paragraphs),
            parse_mode="HTML",
            reply_markup=reply_markup,
        )

    async def _submit(self, bot: AsyncTeleBot, user_id: int, state: _FormState, paragraphs: list[str]) -> None:
        result: SubmitResult = await state.engine.submit()
        if result.ok:
            return

        paragraphs.append(self.config.submit_failed_msg)
        paragraphs.append(
            "\n".join(
                format_named_value(self.form.fields_by_id[field_id].label, error)
                for field_id, error in result.errors.items()
            )
        )
        state.answered.difference_update(result.errors)
        state.current_field_id = next(iter(result.errors))
        paragraphs.append(self._field_prompt(state))
        await self._send(bot, user_id, paragraphs, self._field_reply_markup(state))

    async def _advance(self, bot: AsyncTeleBot, user_id: int, state: _FormState, paragraphs: list[str]) -> None:
        await state.engine.options_settled()
        next_field = state.next_field()
        if next_field is None:
            state.current_field_id = None
            await self._submit(bot, user_id, state, paragraphs)
            return
        state.current_field_id = next_field.id
        paragraphs.append(self._field_prompt(state))
        await self._send(bot, user_id, paragraphs, self._field_reply_markup(state))

    async def _handle_message(self, bot: AsyncTeleBot, message: tg.Message, state: _FormState) -> None:
        user_id = message.from_user.id
        state.last_update = message
        field = state.current_field

        message_cmd = message.text_content.strip() if message.content_type == "text" else None
        if message_cmd == self.config.cancel_cmd:
            self._drop_state(user_id)
            if self._on_form_cancelled is not None:
                await self._on_form_cancelled(FormExitContext(bot, message, dict(state.engine.values)))
            return

        if message_cmd == self.config.skip_cmd:
            if state.engine.is_required(field.id):
                await self._send(
                    bot,
                    user_id,
                    [self.config.cant_skip_field_msg, self._field_prompt(state)],
                    self._field_reply_markup(state),
                )
                return
            state.answered.add(field.id)
            await self._advance(bot, user_id, state, [])
            return

        try:
            value = field.parse(message, state.engine.options_for(field.id))
        except BadFieldValueError as error:
            await self._send(
                bot,
                user_id,
                [telegram_html_escape(error.msg), self.config.retry_field_msg],
                self._field_reply_markup(state),
            )
            return

        validation_error = state.engine.set_value(field.id, value)
        if validation_error:
            await self._send(
                bot,
                user_id,
                [telegram_html_escape(validation_error), self.config.retry_field_msg],
                self._field_reply_markup(state),
            )
            return

        state.answered.add(field.id)
        await self._advance(bot, user_id, state, [])

    def setup(
        self,
        bot: AsyncTeleBot,
        on_form_submitted: FormExitCallback,
        on_form_cancelled: Optional[FormExitCallback] = None,
    ) -> None:
        self._on_form_submitted = on_form_submitted
        self._on_form_cancelled = on_form_cancelled

        async def currently_filling_form(message: tg.Message) -> bool:
            return message.from_user.id in self._states

        @bot.message_handler(func=currently_filling_form, chat_types=[constants.ChatType.private], priority=100)
        async def form_message_handler(message: tg.Message):
            user_id = message.from_user.id
            state = self._states.get(user_id)
            if state is None:
                return
            try:
                await self._handle_message(bot, message, state)
            except Exception as e:
                self.logger.exception("Unexpected error processing form message, cancelling the form")
                self._drop_state(user_id)
                await bot.send_message(
                    user_id,
                    text=self.config.cancelling_because_of_error_template.format(telegram_html_escape(str(e))),
                    parse_mode="HTML",
                    reply_markup=tg.ReplyKeyboardRemove(),
                )
                if self._on_form_cancelled is not None:
                    await self._on_form_cancelled(FormExitContext(bot, message, dict(state.engine.values)))

    async def start(
        self,
        bot: AsyncTeleBot,
        user: tg.User,
        initial_values: Optional[Mapping[FieldId, Any]] = None,
        dynamic_options: Optional[Mapping[FieldId, list[Option]]] = None,
    ) -> None:
        if self._on_form_submitted is None:
            raise RuntimeError("FormHandler.setup must be called before starting the form")
        on_form_submitted = self._on_form_submitted
        self._drop_state(user.id)

        state: Optional[_FormState] = None

        async def on_submit(values: dict[FieldId, Any]) -> None:
            last_update = state.last_update if state is not None else None
            self._drop_state(user.id)
            paragraphs: list[str] = []
            if self.config.form_submitted_msg is not None:
                paragraphs.append(self.config.form_submitted_msg)
                if self.config.echo_result:
                    paragraphs.append(self.form.result_to_html(values))
            if paragraphs:
                await self._send(bot, user.id, paragraphs, tg.ReplyKeyboardRemove())
            await on_form_submitted(FormExitContext(bot, last_update, values))

        engine = FormEngine(
            form=self.form,
            on_submit=on_submit,
            initial_values=initial_values,
            dynamic_options=dynamic_options,
            config=self.engine_config,
            name=f"{self.name}:{user.id}",
        )
        # host-supplied values are not asked again, submission validates them anyway
        state = _FormState(engine=engine, answered={fid for fid in engine.values if fid in self.form.fields_by_id})
        self._states[user.id] = state
        await self._advance(bot, user.id, state, [self.config.form_starting_msg()])
