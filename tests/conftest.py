import pytest

from metaform.form.field import (
    Dependency,
    NumberField,
    SelectField,
    TextField,
    ValidationRules,
)
from metaform.form.form import Form
from metaform.form.types import Option
from tests.utils import fetch_cities, fetch_states, passwords_match


@pytest.fixture
def address_form() -> Form:
    return Form(
        [
            TextField("name", "Name", required=True, validations=ValidationRules(min_length=2)),
            NumberField("age", "Age", required=True, validations=ValidationRules(greater_than=18, less_than=100)),
            SelectField(
                "country",
                "Country",
                required=True,
                options=[Option("US", "United States"), Option("UK", "United Kingdom")],
            ),
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
        ]
    )


@pytest.fixture
def password_form() -> Form:
    return Form(
        [
            TextField("password", "Password", required=True, validations=ValidationRules(min_length=8)),
            TextField(
                "confirmPassword",
                "Confirm Password",
                required=True,
                validations=ValidationRules(custom=passwords_match),
            ),
        ]
    )
