"""
Core — Identifier Tests

UUID parsing and reference-number minting.

@file core/tests/test_identifiers.py
"""

import uuid

import pytest

from core.exceptions import IdentifierExhausted, InvalidIdentifier
from core.identifiers import ReferenceGenerator, parse_uuid
from logistics.models import DispatchOrder
from tests.factories import DispatchOrderFactory


class TestParseUuid:
    def test_accepts_uuid_and_string(self):
        value = uuid.uuid4()
        assert parse_uuid(value) is value
        assert parse_uuid(str(value)) == value

    @pytest.mark.parametrize('raw', ['bogus', '', None, 42, '1234-not-a-uuid'])
    def test_rejects_malformed(self, raw):
        with pytest.raises(InvalidIdentifier) as exc:
            parse_uuid(raw)
        assert exc.value.value == raw
        assert exc.value.get_codes() == 'INVALID_IDENTIFIER'


@pytest.mark.django_db
class TestReferenceGenerator:
    def test_candidate_format(self):
        generate = ReferenceGenerator('DO', DispatchOrder, 'dispatch_number')
        value = generate()
        prefix, number = value.split('-')
        assert prefix == 'DO'
        assert len(number) == 6 and number.isdigit()

    def test_retries_on_collision(self):
        DispatchOrderFactory(dispatch_number='DO-000001')
        generate = ReferenceGenerator('DO', DispatchOrder, 'dispatch_number')
        draws = iter(['DO-000001', 'DO-000002'])
        generate.candidate = lambda: next(draws)
        assert generate() == 'DO-000002'

    def test_gives_up_after_attempts(self):
        DispatchOrderFactory(dispatch_number='DO-000001')
        generate = ReferenceGenerator('DO', DispatchOrder, 'dispatch_number', attempts=3)
        calls = []

        def always_taken():
            calls.append(1)
            return 'DO-000001'

        generate.candidate = always_taken
        with pytest.raises(IdentifierExhausted):
            generate()
        assert len(calls) == 3

    def test_attempts_default_from_settings(self, settings):
        settings.REFERENCE_MAX_ATTEMPTS = 7
        generate = ReferenceGenerator('RT', DispatchOrder, 'dispatch_number')
        assert generate.attempts == 7
