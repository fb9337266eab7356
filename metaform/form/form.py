import copy
from typing import Any, Collection, Mapping, Optional

from metaform.form.field import FieldSpec
from metaform.form.types import FieldId
from metaform.utils import telegram_html_escape


class Form:
    """Immutable, ordered collection of field specs. Does not modify passed objects, creates private copies."""

    def __init__(self, fields: Collection[FieldSpec]):
        if not fields:
            raise ValueError("Fields list can't be empty")

        # copy fields to avoid modifying user's objects; this allows safely reusing one field in multiple forms
        self.fields = [copy.deepcopy(f) for f in fields]

        field_ids = [f.id for f in self.fields]
        for fid in field_ids:
            if field_ids.count(fid) > 1:
                raise ValueError(f"All fields must have unique ids, but there is at least one duplicate: {fid}!")

        self.fields_by_id: dict[FieldId, FieldSpec] = {f.id: f for f in self.fields}

        for f in self.fields:
            if f.options_depend_on is not None:
                unknown = [fid for fid in f.options_depend_on if fid not in self.fields_by_id]
                if unknown:
                    raise ValueError(f"Field {f.id!r} lists unknown fields as option dependencies: {unknown}")

    @property
    def field_ids(self) -> list[FieldId]:
        return [f.id for f in self.fields]

    def get_field(self, field_id: FieldId) -> Optional[FieldSpec]:
        return self.fields_by_id.get(field_id)

    def result_to_html(
        self,
        result: Mapping[FieldId, Any],
        omitted_fields_count_template: Optional[str] = "<i>+{} omitted</i>",
    ) -> str:
        """Fields are listed in form order, empty values are omitted"""
        blocks: list[str] = []
        omitted_field_count = 0
        for field in self.fields:
            value = result.get(field.id)
            if value is None or value == "":
                omitted_field_count += 1
                continue
            blocks.append(format_named_value(field.label, field.value_to_str(value)))

        if omitted_field_count and omitted_fields_count_template is not None:
            blocks.append(omitted_fields_count_template.format(omitted_field_count))
        return "\n".join(blocks)


def format_named_value(name: str, value: str, single_line: bool = True) -> str:
    sep = ": " if single_line else "\n"
    result = f"<b>{telegram_html_escape(name)}</b>{sep}{telegram_html_escape(value)}"
    if not single_line:
        result += "\n"
    return result
