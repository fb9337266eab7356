import copy
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from metaform.form.form import Form
from metaform.form.types import FieldId, Option


class FieldState(Enum):
    UNTOUCHED = "untouched"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"


@dataclass(frozen=True)
class FormSnapshot:
    """Read-only view of the session for the presentation layer"""

    values: Mapping[FieldId, Any]
    errors: Mapping[FieldId, str]
    resolved_options: Mapping[FieldId, list[Option]]
    visibility: Mapping[FieldId, bool]

    def is_visible(self, field_id: FieldId) -> bool:
        return self.visibility.get(field_id, False)

    def error(self, field_id: FieldId) -> Optional[str]:
        return self.errors.get(field_id) or None


@dataclass
class FormSession:
    """
    Mutable runtime state of a single form instance; the single source of truth for values,
    errors and option lists. Mutated only from the event loop thread.
    """

    form: Form
    values: dict[FieldId, Any] = dataclass_field(default_factory=dict)
    errors: dict[FieldId, str] = dataclass_field(default_factory=dict)
    resolved_options: dict[FieldId, list[Option]] = dataclass_field(default_factory=dict)
    field_states: dict[FieldId, FieldState] = dataclass_field(default_factory=dict)
    visibility: dict[FieldId, bool] = dataclass_field(default_factory=dict)
    # keys set by the user, as opposed to the host-supplied initial values
    edited: set[FieldId] = dataclass_field(default_factory=set)
    closed: bool = False

    def __post_init__(self) -> None:
        for field in self.form.fields:
            self.field_states.setdefault(field.id, FieldState.UNTOUCHED)
            if field.options:
                self.resolved_options.setdefault(field.id, list(field.options))

    def has_field(self, field_id: FieldId) -> bool:
        return field_id in self.form.fields_by_id

    def set_value(self, field_id: FieldId, value: Any) -> None:
        self.values[field_id] = value
        self.edited.add(field_id)

    def fill_absent_values(self, values: Mapping[FieldId, Any]) -> list[FieldId]:
        filled = [key for key in values if key not in self.values]
        for key in filled:
            self.values[key] = values[key]
        return filled

    def reset_validation(self, field_id: FieldId) -> None:
        self.errors.pop(field_id, None)
        self.field_states[field_id] = FieldState.UNTOUCHED

    def set_error(self, field_id: FieldId, error: str) -> None:
        self.errors[field_id] = error
        self.field_states[field_id] = FieldState.INVALID if error else FieldState.VALID

    def set_options(self, field_id: FieldId, options: list[Option]) -> None:
        self.resolved_options[field_id] = list(options)

    def snapshot(self) -> FormSnapshot:
        return FormSnapshot(
            values=MappingProxyType(copy.copy(self.values)),
            errors=MappingProxyType(copy.copy(self.errors)),
            resolved_options=MappingProxyType({fid: list(opts) for fid, opts in self.resolved_options.items()}),
            visibility=MappingProxyType(copy.copy(self.visibility)),
        )
