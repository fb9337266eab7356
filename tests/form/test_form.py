import datetime

import pytest

from metaform.form.field import CheckboxField, DateField, SelectField, TextField
from metaform.form.form import Form, format_named_value


def test_duplicate_ids():
    with pytest.raises(ValueError, match="duplicate: name"):
        Form([TextField("name", "Name"), TextField("name", "Nickname")])


def test_empty_form():
    with pytest.raises(ValueError):
        Form([])


def test_unknown_option_dependency():
    with pytest.raises(ValueError, match="unknown fields"):
        Form([SelectField("city", "City", options_depend_on=["state"])])


def test_fields_are_copied():
    name = TextField("name", "Name")
    form_1 = Form([name, TextField("email", "Email")])
    form_2 = Form([name])
    name.label = "Changed"
    assert form_1.fields_by_id["name"].label == "Name"
    assert form_1.fields_by_id["name"] is not form_2.fields_by_id["name"]
    assert form_1.field_ids == ["name", "email"]
    assert form_2.get_field("email") is None


def test_result_to_html():
    form = Form(
        [
            TextField("name", "Name"),
            TextField("bio", "About <you>"),
            DateField("dateOfBirth", "Date of birth"),
            CheckboxField("terms", "Terms accepted"),
            TextField("portfolioLink", "Portfolio"),
        ]
    )
    result = {
        "name": "Kamal",
        "bio": "I like <b> & <i>",
        "dateOfBirth": datetime.date(1990, 5, 31),
        "terms": True,
        "portfolioLink": "",
    }
    assert form.result_to_html(result) == "\n".join(
        [
            "<b>Name</b>: Kamal",
            "<b>About &lt;you&gt;</b>: I like &lt;b&gt; &amp; &lt;i&gt;",
            "<b>Date of birth</b>: 1990-05-31",
            "<b>Terms accepted</b>: Yes",
            "<i>+1 omitted</i>",
        ]
    )
    assert form.result_to_html({"name": "Kamal"}, omitted_fields_count_template=None) == "<b>Name</b>: Kamal"


def test_format_named_value_multiline():
    assert format_named_value("Bio", "line 1\nline 2", single_line=False) == "<b>Bio</b>\nline 1\nline 2\n"
