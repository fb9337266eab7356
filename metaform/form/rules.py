"""
Field validation. Checks run in a fixed order and the first failing one produces the error:
required, min length, max length, pattern, greater than, less than, custom predicate.
"""

from dataclasses import dataclass
from typing import Any, Optional

from metaform.form.dependencies import is_required
from metaform.form.field import FieldSpec
from metaform.form.types import FormValues
from metaform.utils import as_number, is_empty_value


@dataclass
class FormEngineConfig:
    # templates have {label} and (where it makes sense) {limit} placeholders
    required_error_template: str = "{label} is required."
    min_length_error_template: str = "{label} must be at least {limit} characters."
    max_length_error_template: str = "{label} must be at most {limit} characters."
    pattern_error_template: str = "{label} is not valid."
    greater_than_error_template: str = "{label} must be greater than {limit}."
    less_than_error_template: str = "{label} must be less than {limit}."

    # re-resolve dynamic options only when fields from FieldSpec.options_depend_on change
    scoped_option_refresh: bool = True


DEFAULT_CONFIG = FormEngineConfig()


def _length(value: Any) -> Optional[int]:
    try:
        return len(value)
    except TypeError:
        return None


def validate(field: FieldSpec, value: Any, all_values: FormValues, config: FormEngineConfig = DEFAULT_CONFIG) -> str:
    """Returns error message or empty string if the value is valid. Exceptions raised by the
    field's custom predicate are not handled."""
    if is_required(field, all_values) and is_empty_value(value):
        return config.required_error_template.format(label=field.label)

    rules = field.validations
    if rules is None or value is None:
        return ""

    length = _length(value)
    if rules.min_length is not None and length is not None and length < rules.min_length:
        return config.min_length_error_template.format(label=field.label, limit=rules.min_length)
    if rules.max_length is not None and length is not None and length > rules.max_length:
        return config.max_length_error_template.format(label=field.label, limit=rules.max_length)
    if rules.pattern is not None and rules.pattern.search(str(value)) is None:  # type: ignore
        return config.pattern_error_template.format(label=field.label)

    if rules.greater_than is not None:
        number = as_number(value)
        if number is None or number <= rules.greater_than:
            return config.greater_than_error_template.format(label=field.label, limit=rules.greater_than)
    if rules.less_than is not None:
        number = as_number(value)
        if number is None or number >= rules.less_than:
            return config.less_than_error_template.format(label=field.label, limit=rules.less_than)

    if rules.custom is not None:
        custom_result = rules.custom(value, all_values)
        if custom_result is True:
            return ""
        elif isinstance(custom_result, str):
            return custom_result
        else:
            return config.pattern_error_template.format(label=field.label)

    return ""
