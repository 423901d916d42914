"""Record form controller: edit buffer, local validation and create-or-update submit."""
import logging
from typing import Any, Callable, Optional

from .client import ListQuery, ResourceClient
from .errors import FieldError, RemoteError, ValidationError

_logger = logging.getLogger(__name__)

# Page size used to fill reference selects (e.g. the employee picker of a leave)
CHOICES_LIMIT = 50


def _choice_label(row: dict[str, Any]) -> str:
    name = f"{row.get('firstName', '')} {row.get('lastName', '')}".strip()
    return name or str(row.get('email') or row.get('id'))


class FormController:
    """
    Owns the draft of one record.

    ``record_id`` set means editing: :meth:`load` fills the buffer from the
    backend and :meth:`submit` updates. Without it the buffer starts at the
    schema defaults and :meth:`submit` creates. ``on_saved`` is called with the
    saved record after a successful submit; callers navigate away from there.
    """

    def __init__(
        self,
        client: ResourceClient,
        record_id: Optional[int] = None,
        on_saved: Optional[Callable[[dict], Any]] = None,
        choice_clients: Optional[dict[str, ResourceClient]] = None,
    ):
        self.client = client
        self.schema = client.schema
        self.record_id = record_id
        self.on_saved = on_saved
        self.choice_clients = choice_clients or {}
        self.buffer: dict[str, Any] = self.schema.defaults()
        self.errors: list[FieldError] = []
        self.error: Optional[RemoteError] = None
        self.choices: dict[str, list[tuple[int, str]]] = {}

    @property
    def editing(self) -> bool:
        return self.record_id is not None

    async def load(self) -> dict[str, Any]:
        if not self.editing:
            self.buffer = self.schema.defaults()
            return self.buffer
        try:
            record = await self.client.get_record(self.record_id)
        except RemoteError as exc:
            self.error = exc
            raise
        self.buffer = self.schema.prefill(record)
        return self.buffer

    async def load_choices(self) -> dict[str, list[tuple[int, str]]]:
        for field_name, path in self.schema.references.items():
            client = self.choice_clients.get(path)
            if client is None:
                _logger.debug("No client for %s choices of %s", path, self.schema.name)
                continue
            page = await client.list_page(ListQuery(page=1, page_size=CHOICES_LIMIT))
            self.choices[field_name] = [(row['id'], _choice_label(row)) for row in page.rows]
        return self.choices

    def set(self, field_name: str, value: Any) -> None:
        self.buffer[field_name] = value

    def validate(self, fields: Optional[dict[str, Any]] = None) -> list[FieldError]:
        """Check ``fields`` (default: the buffer) without touching the network."""
        values = self.buffer if fields is None else fields
        self.errors = self.schema.validate(values, editing=self.editing)
        return self.errors

    async def submit(self, fields: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        if fields:
            self.buffer.update(fields)
        errors = self.validate()
        if errors:
            raise ValidationError(errors)
        body = self.schema.payload(self.buffer, editing=self.editing)
        try:
            if self.editing:
                record = await self.client.update_record(self.record_id, body)
            else:
                record = await self.client.create_record(body)
        except RemoteError as exc:
            self.error = exc
            raise
        self.error = None
        if self.on_saved is not None:
            self.on_saved(record)
        return record
