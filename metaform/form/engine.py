import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from metaform.form.dependencies import is_required, is_visible
from metaform.form.form import Form
from metaform.form.options import DynamicOptionResolver
from metaform.form.rules import DEFAULT_CONFIG, FormEngineConfig, validate
from metaform.form.session import FieldState, FormSession, FormSnapshot
from metaform.form.types import FieldId, Option
from metaform.utils import maybe_await

SubmitCallback = Callable[[dict[FieldId, Any]], Union[None, Awaitable[None]]]


@dataclass
class SubmitResult:
    ok: bool
    errors: dict[FieldId, str]


class FormEngine:
    """
    Evaluation engine for one form instance: keeps the session consistent with every value
    change and decides on submission.

    A value change synchronously recomputes visibility and revalidates the changed field, then
    schedules re-resolution of dynamic options in the background. Forms with option providers
    must therefore be created and updated from inside a running event loop.
    """

    def __init__(
        self,
        form: Form,
        on_submit: SubmitCallback,
        initial_values: Optional[Mapping[FieldId, Any]] = None,
        dynamic_options: Optional[Mapping[FieldId, list[Option]]] = None,
        config: FormEngineConfig = DEFAULT_CONFIG,
        name: Optional[str] = None,
    ):
        self.form = form
        self.on_submit = on_submit
        self.config = config
        self.logger = logging.getLogger(f"{__name__}[{name}]" if name else __name__)

        self.session = FormSession(form=form, values=dict(initial_values or {}))
        self.option_resolver = DynamicOptionResolver(
            self.session,
            scoped=config.scoped_option_refresh,
            logger=self.logger,
        )
        if dynamic_options:
            self.merge_options(dynamic_options)
        self._recompute_visibility()
        self.option_resolver.refresh(changed=None)

    # region: presentation queries

    @property
    def values(self) -> Mapping[FieldId, Any]:
        return MappingProxyType(self.session.values)

    @property
    def errors(self) -> dict[FieldId, str]:
        return self.session.errors

    @property
    def resolved_options(self) -> dict[FieldId, list[Option]]:
        return self.session.resolved_options

    def is_visible(self, field_id: FieldId) -> bool:
        return self.session.visibility.get(field_id, False)

    def is_required(self, field_id: FieldId) -> bool:
        field = self.form.get_field(field_id)
        return field is not None and is_required(field, self.session.values)

    def field_state(self, field_id: FieldId) -> FieldState:
        return self.session.field_states.get(field_id, FieldState.UNTOUCHED)

    def options_for(self, field_id: FieldId) -> list[Option]:
        return list(self.session.resolved_options.get(field_id, []))

    def snapshot(self) -> FormSnapshot:
        return self.session.snapshot()

    # endregion

    def _recompute_visibility(self) -> None:
        values = self.session.values
        self.session.visibility = {f.id: is_visible(f, values) for f in self.form.fields}

    def _validate_field(self, field_id: FieldId) -> str:
        field = self.form.fields_by_id[field_id]
        self.session.field_states[field_id] = FieldState.VALIDATING
        error = validate(field, self.session.values.get(field_id), self.session.values, self.config)
        self.session.set_error(field_id, error)
        return error

    def set_value(self, field_id: FieldId, value: Any) -> str:
        """Stores the user's value and returns the field's error message (empty if valid).
        Only the changed field is revalidated, other fields get their visibility updated."""
        self.session.set_value(field_id, value)
        self._recompute_visibility()
        error = ""
        if self.session.has_field(field_id):
            error = self._validate_field(field_id)
        else:
            self.logger.debug(f"Value set for unknown field {field_id!r}, not validating it")
        self.option_resolver.refresh(changed=[field_id])
        return error

    def merge_initial_values(self, values: Mapping[FieldId, Any]) -> None:
        """Late host-supplied values only fill keys absent from the session, so the user's edits survive.
        Filled fields are not validated, their previous errors are dropped."""
        filled = self.session.fill_absent_values(values)
        if not filled:
            return
        for field_id in filled:
            if self.session.has_field(field_id):
                self.session.reset_validation(field_id)
        self.logger.debug(f"Host filled in values for {filled}")
        self._recompute_visibility()
        self.option_resolver.refresh(changed=filled)

    def merge_options(self, options: Mapping[FieldId, list[Option]]) -> None:
        """Host-supplied options replace the current ones; later provider results replace them in turn"""
        for field_id, field_options in options.items():
            if not self.session.has_field(field_id):
                self.logger.warning(f"Ignoring options for unknown field {field_id!r}")
                continue
            self.session.set_options(field_id, field_options)

    async def options_settled(self) -> None:
        await self.option_resolver.join()

    async def submit(self) -> SubmitResult:
        """Validates every visible field; hidden fields are neither validated nor required but
        their stored values are still passed to the submit handler"""
        self._recompute_visibility()
        errors: dict[FieldId, str] = {}
        for field in self.form.fields:
            if not self.is_visible(field.id):
                continue
            error = self._validate_field(field.id)
            if error:
                errors[field.id] = error

        self.session.errors = errors
        if errors:
            self.logger.debug(f"Submit rejected, invalid fields: {list(errors)}")
            return SubmitResult(ok=False, errors=dict(errors))

        await maybe_await(self.on_submit(dict(self.session.values)))
        return SubmitResult(ok=True, errors={})

    def close(self) -> None:
        """Marks the session as discarded; option providers still in flight will not write to it"""
        self.session.closed = True
