"""Entity schemas: one description per managed collection.

Each schema bundles what the generic client, controllers and API routers need
to know about an entity type: its endpoint path, the editable fields with
their defaults, and the pydantic models used for client-side validation.
"""
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from .errors import FieldError

Gender = Literal['MALE', 'FEMALE']

_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

# Readable messages for the pydantic error types the models can produce
_TYPE_MSGS = {
    "missing": "This field is required",
    "int_parsing": "Must be a whole number",
    "date_parsing": "Must be a date in YYYY-MM-DD format",
    "date_from_datetime_parsing": "Must be a date in YYYY-MM-DD format",
    "date_type": "Must be a date in YYYY-MM-DD format",
    "literal_error": "Invalid choice",
    "string_type": "Must be text",
}


def _check_email(v: str) -> str:
    if not _EMAIL_RE.match(v or ''):
        raise ValueError("Invalid email")
    return v


# ── Employees ───────────────────────────────────────────────────

class EmployeeForm(BaseModel):
    firstName: str = Field(..., min_length=2)
    lastName: str = Field(..., min_length=2)
    email: str
    phoneNumber: str = Field(..., min_length=6)
    address: Optional[str] = ''
    gender: Gender = 'MALE'

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _check_email(v)


# ── Users ───────────────────────────────────────────────────────

class UserForm(BaseModel):
    firstName: str = Field(..., min_length=2)
    lastName: str = Field(..., min_length=2)
    email: str
    password: str = Field(..., min_length=6)
    birthDate: date
    gender: Gender = 'MALE'

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _check_email(v)


class UserUpdateForm(UserForm):
    # Sent on update only; the backend checks it before changing the profile
    currentPassword: str = Field(..., min_length=1)


# ── Leaves ──────────────────────────────────────────────────────

class LeaveForm(BaseModel):
    employeeId: int = Field(..., ge=1)
    startDate: date
    endDate: date
    reason: Optional[str] = ''


@dataclass(frozen=True)
class EntitySchema:
    """Everything the generic layers need to know about one entity type."""

    name: str
    path: str
    tag: str
    create_model: type[BaseModel]
    defaults: Callable[[], dict[str, Any]]
    update_model: Optional[type[BaseModel]] = None
    # buffer field -> (record key, nested key) for read-only embedded records
    nested: dict[str, tuple[str, str]] = field(default_factory=dict)
    # buffer field -> name of the referenced schema, offered as choices
    references: dict[str, str] = field(default_factory=dict)
    date_fields: tuple[str, ...] = ()

    @property
    def fields(self) -> list[str]:
        return list(self.create_model.model_fields)

    def model_for(self, editing: bool) -> type[BaseModel]:
        if editing and self.update_model is not None:
            return self.update_model
        return self.create_model

    def validate(self, values: dict[str, Any], editing: bool = False) -> list[FieldError]:
        """Return the field errors for ``values``; an empty list means valid."""
        try:
            self.model_for(editing).model_validate(values)
        except PydanticValidationError as exc:
            return [_field_error(e) for e in exc.errors()]
        return []

    def payload(self, values: dict[str, Any], editing: bool = False) -> dict[str, Any]:
        """Validated, JSON-ready request body (never carries ``id``)."""
        model = self.model_for(editing).model_validate(values)
        body = model.model_dump(mode='json')
        body.pop('id', None)
        return body

    def prefill(self, record: dict[str, Any]) -> dict[str, Any]:
        """Map a fetched record onto the editable buffer fields."""
        buffer = self.defaults()
        for name in self.fields:
            if name in self.nested:
                outer, inner = self.nested[name]
                embedded = record.get(outer) or {}
                value = embedded.get(inner, record.get(name))
            else:
                value = record.get(name)
            if value is None:
                continue
            if name in self.date_fields and isinstance(value, str):
                value = value[:10]
            buffer[name] = value
        return buffer


def _field_error(err: dict) -> FieldError:
    loc = [str(part) for part in err.get("loc", ())]
    field_name = ".".join(loc) or "__root__"
    etype = err.get("type", "")
    if etype != "string_too_short" and err.get("input") in ("", None):
        msg = "This field is required"
    elif etype == "string_too_short":
        min_length = (err.get("ctx") or {}).get("min_length")
        msg = f"Must be at least {min_length} characters"
    elif etype == "greater_than_equal":
        msg = "This field is required"
    elif etype == "value_error":
        msg = str((err.get("ctx") or {}).get("error") or err.get("msg", "Invalid value"))
    else:
        msg = _TYPE_MSGS.get(etype, err.get("msg", "Invalid value"))
    return FieldError(field_name, msg)


EMPLOYEE = EntitySchema(
    name='employee',
    path='employees',
    tag='Employees',
    create_model=EmployeeForm,
    defaults=lambda: {
        'firstName': '',
        'lastName': '',
        'email': '',
        'phoneNumber': '',
        'address': '',
        'gender': 'MALE',
    },
)

USER = EntitySchema(
    name='user',
    path='users',
    tag='Users',
    create_model=UserForm,
    update_model=UserUpdateForm,
    defaults=lambda: {
        'firstName': '',
        'lastName': '',
        'email': '',
        'password': '',
        'currentPassword': '',
        'birthDate': date.today().isoformat(),
        'gender': 'MALE',
    },
    date_fields=('birthDate',),
)

LEAVE = EntitySchema(
    name='leave',
    path='leaves',
    tag='Leaves',
    create_model=LeaveForm,
    defaults=lambda: {
        'employeeId': '',
        'startDate': date.today().isoformat(),
        'endDate': date.today().isoformat(),
        'reason': '',
    },
    nested={'employeeId': ('employee', 'id')},
    references={'employeeId': 'employees'},
    date_fields=('startDate', 'endDate'),
)

SCHEMAS = {s.path: s for s in (EMPLOYEE, LEAVE, USER)}
