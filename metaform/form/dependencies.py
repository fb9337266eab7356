from typing import Any, Optional

from metaform.form.field import Condition, Dependency, FieldSpec
from metaform.form.types import FormValues, resolve
from metaform.utils import as_number, strict_equals


def _compare_numbers(actual: Any, expected: Any) -> Optional[tuple[float, float]]:
    actual_number = as_number(actual)
    expected_number = as_number(expected)
    if actual_number is None or expected_number is None:
        return None
    return actual_number, expected_number


def is_condition_met(dependency: Dependency, all_values: FormValues) -> bool:
    actual = all_values.get(dependency.field)
    if dependency.condition is Condition.EQUALS:
        return strict_equals(actual, dependency.value)
    elif dependency.condition is Condition.NOT_EQUALS:
        return not strict_equals(actual, dependency.value)
    elif dependency.condition is Condition.GREATER_THAN:
        numbers = _compare_numbers(actual, dependency.value)
        return numbers is not None and numbers[0] > numbers[1]
    elif dependency.condition is Condition.LESS_THAN:
        numbers = _compare_numbers(actual, dependency.value)
        return numbers is not None and numbers[0] < numbers[1]
    elif dependency.condition is Condition.EXISTS:
        return bool(actual)
    else:
        raise ValueError(f"Unknown dependency condition: {dependency.condition!r}")


def is_visible(field: FieldSpec, all_values: FormValues) -> bool:
    """Field is visible when all of its dependencies are met; no dependencies means always visible"""
    if field.dependencies is None:
        return True
    dependencies = resolve(field.dependencies, all_values)  # type: ignore
    if dependencies is None:
        return True
    return all(is_condition_met(dependency, all_values) for dependency in dependencies)


def is_required(field: FieldSpec, all_values: FormValues) -> bool:
    return bool(resolve(field.required, all_values))  # type: ignore
