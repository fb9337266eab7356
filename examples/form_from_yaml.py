"""Loads the metadata from YAML and drives the engine directly, without a bot"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Mapping

from metaform.form.engine import FormEngine
from metaform.form.loader import load_form
from metaform.form.types import Option

logging.basicConfig(level=logging.DEBUG)


async def fetch_cities(values: Mapping[str, Any]) -> list[Option]:
    await asyncio.sleep(0.1)
    if values.get("state") == "NY":
        return [Option("NYC", "New York City")]
    return []


def state_is_required(values: Mapping[str, Any]) -> bool:
    return values.get("country") == "US"


def passwords_match(value: Any, values: Mapping[str, Any]) -> bool | str:
    return True if value == values.get("password") else "Passwords must match."


async def main() -> None:
    form = load_form(
        Path(__file__).parent / "signup_form.yaml",
        callables={
            "fetch_cities": fetch_cities,
            "state_is_required": state_is_required,
            "passwords_match": passwords_match,
        },
    )

    engine = FormEngine(form, on_submit=lambda values: print("Submitted:", values))
    engine.set_value("password", "abc12345")
    print("confirmPassword:", engine.set_value("confirmPassword", "xyz") or "ok")
    engine.set_value("country", "US")
    engine.set_value("state", "NY")
    await engine.options_settled()
    print("city options:", engine.options_for("city"))
    engine.set_value("confirmPassword", "abc12345")
    engine.set_value("city", "NYC")
    print(await engine.submit())


if __name__ == "__main__":
    asyncio.run(main())
