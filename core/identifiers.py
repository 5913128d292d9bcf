"""
Core — Identifiers

UUID parsing for path/body ids and the reference-number generator used for
dispatch, return and receiving documents (DO-xxxxxx, RT-xxxxxx, GRN-xxxxxx).

@file core/identifiers.py
"""

import secrets
import uuid

from django.conf import settings

from core.exceptions import IdentifierExhausted, InvalidIdentifier


def parse_uuid(value) -> uuid.UUID:
    """
    Coerce value to a UUID or raise InvalidIdentifier.

    Callers run this before touching the database so malformed ids never
    reach a query.
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise InvalidIdentifier(value)


class ReferenceGenerator:
    """
    Mints human-readable document numbers of the form PREFIX-NNNNNN.

    Candidates are random; each one is checked against `model.field` and a
    collision triggers another draw. After `attempts` collisions the
    generator gives up with IdentifierExhausted. The unique index on the
    target column remains the final guard against two concurrent writers
    drawing the same number.
    """

    def __init__(self, prefix: str, model, field: str, *, digits: int = 6, attempts: int | None = None):
        self.prefix = prefix
        self.model = model
        self.field = field
        self.digits = digits
        self.attempts = attempts or getattr(settings, 'REFERENCE_MAX_ATTEMPTS', 5)

    def candidate(self) -> str:
        number = secrets.randbelow(10 ** self.digits)
        return f'{self.prefix}-{number:0{self.digits}d}'

    def is_taken(self, value: str) -> bool:
        return self.model.objects.filter(**{self.field: value}).exists()

    def __call__(self) -> str:
        for _ in range(self.attempts):
            value = self.candidate()
            if not self.is_taken(value):
                return value
        raise IdentifierExhausted(
            detail=f'No free {self.prefix} number after {self.attempts} attempts.',
        )
