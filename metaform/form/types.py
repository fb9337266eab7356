from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Mapping, Sequence, TypeVar, Union

FieldId = str
FormValues = Mapping[FieldId, Any]

ResolvedT = TypeVar("ResolvedT")


@dataclass(frozen=True)
class Option:
    value: str
    label: str


OptionProvider = Callable[[FormValues], Awaitable[Sequence[Option]]]
CustomPredicate = Callable[[Any, FormValues], Union[bool, str]]


@dataclass(frozen=True)
class Constant(Generic[ResolvedT]):
    value: ResolvedT


@dataclass(frozen=True)
class Computed(Generic[ResolvedT]):
    function: Callable[[FormValues], ResolvedT]


Resolvable = Union[Constant[ResolvedT], Computed[ResolvedT]]


def as_resolvable(value: Any) -> Resolvable:
    """Wraps a plain constant or a callable of form values into a tagged variant"""
    if isinstance(value, (Constant, Computed)):
        return value
    elif callable(value):
        return Computed(value)
    else:
        return Constant(value)


def resolve(resolvable: Resolvable[ResolvedT], values: FormValues) -> ResolvedT:
    if isinstance(resolvable, Constant):
        return resolvable.value
    elif isinstance(resolvable, Computed):
        return resolvable.function(values)
    else:
        raise TypeError(f"Constant or Computed expected, found {resolvable!r}")
