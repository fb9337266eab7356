"""
Loading form metadata from YAML. The document describes the declarative part of the metadata;
behaviour (conditional requiredness, computed dependencies, option providers, custom predicates,
custom field parsers) is referenced by name and looked up in the callables mapping.

Example:

    fields:
      - id: country
        label: Country
        kind: select
        required: true
        options:
          - {value: US, label: United States}
      - id: state
        label: State
        kind: select
        required: state_is_required
        dependencies:
          - {field: country, condition: equals, value: US}
        dynamic_options: fetch_states
        options_depend_on: [country]
"""

import logging
from pathlib import Path
from typing import IO, Any, Callable, Mapping, Optional, Union

import pydantic
from ruamel.yaml import YAML  # type: ignore

from metaform.form.field import (
    FIELD_CLASS_BY_KIND,
    Condition,
    CustomField,
    Dependency,
    FieldKind,
    FieldSpec,
    ValidationRules,
)
from metaform.form.form import Form
from metaform.form.types import Option

logger = logging.getLogger(__name__)

Callables = Mapping[str, Callable]

yaml = YAML(typ="safe")


def _lookup(callables: Callables, name: str, purpose: str) -> Callable:
    try:
        return callables[name]
    except KeyError:
        raise ValueError(f"Unknown callable {name!r} referenced as {purpose}; available: {sorted(callables)}")


class OptionDocument(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")

    value: str
    label: str


class DependencyDocument(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")

    field: str
    condition: Condition
    value: Any = None


class ValidationsDocument(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")

    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    greater_than: Union[int, float, None] = None
    less_than: Union[int, float, None] = None
    custom: Optional[str] = None

    def to_rules(self, callables: Callables, field_id: str) -> ValidationRules:
        return ValidationRules(
            min_length=self.min_length,
            max_length=self.max_length,
            pattern=self.pattern,
            greater_than=self.greater_than,
            less_than=self.less_than,
            custom=(
                _lookup(callables, self.custom, f"custom validation of {field_id!r}")  # type: ignore
                if self.custom is not None
                else None
            ),
        )


class FieldDocument(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")

    id: str
    label: str
    kind: FieldKind
    query_message: Optional[str] = None
    # either a constant or a name of the predicate of form values
    required: Union[bool, str] = False
    options: list[OptionDocument] = pydantic.Field(default_factory=list)
    dynamic_options: Optional[str] = None
    options_depend_on: Optional[list[str]] = None
    # either a static list or a name of the function of form values
    dependencies: Union[list[DependencyDocument], str, None] = None
    validations: Optional[ValidationsDocument] = None

    # custom fields only
    parser: Optional[str] = None
    formatter: Optional[str] = None
    renderer: Optional[str] = None

    def to_field_spec(self, callables: Callables) -> FieldSpec:
        kwargs: dict[str, Any] = dict(
            id=self.id,
            label=self.label,
            query_message=self.query_message,
            options=[Option(value=o.value, label=o.label) for o in self.options],
            options_depend_on=self.options_depend_on,
        )
        if isinstance(self.required, str):
            kwargs["required"] = _lookup(callables, self.required, f"required rule of {self.id!r}")
        else:
            kwargs["required"] = self.required
        if self.dynamic_options is not None:
            kwargs["dynamic_options"] = _lookup(callables, self.dynamic_options, f"option provider of {self.id!r}")
        if isinstance(self.dependencies, str):
            kwargs["dependencies"] = _lookup(callables, self.dependencies, f"dependencies of {self.id!r}")
        elif self.dependencies is not None:
            kwargs["dependencies"] = [Dependency(d.field, d.condition, d.value) for d in self.dependencies]
        if self.validations is not None:
            kwargs["validations"] = self.validations.to_rules(callables, self.id)

        if self.kind is FieldKind.CUSTOM:
            if self.parser is None:
                raise ValueError(f"Custom field {self.id!r} must reference a parser")
            kwargs["parser"] = _lookup(callables, self.parser, f"parser of {self.id!r}")
            if self.formatter is not None:
                kwargs["formatter"] = _lookup(callables, self.formatter, f"formatter of {self.id!r}")
            if self.renderer is not None:
                kwargs["renderer"] = _lookup(callables, self.renderer, f"renderer of {self.id!r}")
            return CustomField(**kwargs)
        elif self.parser is not None or self.formatter is not None or self.renderer is not None:
            raise ValueError(f"Field {self.id!r}: parser, formatter and renderer are only allowed for custom fields")

        return FIELD_CLASS_BY_KIND[self.kind](**kwargs)


class FormDocument(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")

    fields: list[FieldDocument]


def load_form(source: Union[str, Path, IO[str]], callables: Optional[Callables] = None) -> Form:
    """Source may be a YAML string, a path to a YAML file or an open text stream"""
    if isinstance(source, Path):
        with open(source) as f:
            data = yaml.load(f)
    else:
        data = yaml.load(source)
    document = FormDocument.model_validate(data)
    logger.debug(f"Loaded form document with {len(document.fields)} fields")
    return Form([field_document.to_field_spec(callables or {}) for field_document in document.fields])
