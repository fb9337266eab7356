import asyncio
import logging
from collections import defaultdict
from typing import Collection, Optional

from metaform.form.field import FieldSpec
from metaform.form.session import FormSession
from metaform.form.types import FieldId, FormValues, Option


class DynamicOptionResolver:
    """
    Runs fields' async option providers and publishes their results to the session.

    Invocations for the same field may overlap and complete in any order; each invocation
    gets a number from a monotonic per-field counter and its result is applied only if no
    newer invocation has been started since (last invocation wins). Superseded requests are
    not cancelled, their results are dropped on arrival.
    """

    def __init__(self, session: FormSession, scoped: bool = True, logger: Optional[logging.Logger] = None):
        self.session = session
        self.scoped = scoped
        self.logger = logger or logging.getLogger(__name__)
        self._request_counters: dict[FieldId, int] = defaultdict(int)
        self._in_flight: set[asyncio.Task] = set()

    @property
    def provider_fields(self) -> list[FieldSpec]:
        return [f for f in self.session.form.fields if f.dynamic_options is not None]

    def _is_affected(self, field: FieldSpec, changed: Optional[Collection[FieldId]]) -> bool:
        if changed is None or not self.scoped or field.options_depend_on is None:
            return True
        return any(fid in changed for fid in field.options_depend_on)

    def refresh(self, changed: Optional[Collection[FieldId]] = None) -> None:
        """Starts a new invocation for every affected provider without waiting for it; changed=None
        means the whole form may have changed"""
        fields = [f for f in self.provider_fields if self._is_affected(f, changed)]
        if not fields:
            return
        loop = asyncio.get_running_loop()
        values = dict(self.session.values)
        for field in fields:
            request_number = self._next_request_number(field.id)
            task = loop.create_task(self.resolve_options(field, values, request_number=request_number))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

    def _next_request_number(self, field_id: FieldId) -> int:
        self._request_counters[field_id] += 1
        return self._request_counters[field_id]

    async def resolve_options(
        self, field: FieldSpec, values: FormValues, request_number: Optional[int] = None
    ) -> Optional[list[Option]]:
        """Returns the options if they were applied to the session, None if the invocation
        failed or was superseded"""
        if field.dynamic_options is None:
            return None
        if request_number is None:
            request_number = self._next_request_number(field.id)

        try:
            options = list(await field.dynamic_options(values))
        except Exception:
            self.logger.exception(f"Option provider for field {field.id!r} failed, keeping previous options")
            return None

        if self.session.closed:
            self.logger.debug(f"Session is closed, dropping options for {field.id!r}")
            return None
        if request_number != self._request_counters[field.id]:
            self.logger.debug(
                f"Dropping superseded options for {field.id!r} "
                + f"(request {request_number}, latest {self._request_counters[field.id]})"
            )
            return None
        if not self.session.has_field(field.id):
            self.logger.debug(f"Dropping options for unknown field {field.id!r}")
            return None

        self.session.set_options(field.id, options)
        return options

    async def join(self) -> None:
        """Waits until no invocations are in flight, including those started while waiting"""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)
