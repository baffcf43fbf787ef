from concurrent.futures import ThreadPoolExecutor

import pytest
from django.db import OperationalError, connection

from registrations import utils
from registrations.exceptions import AllocationError
from registrations.models import IdentifierCounter
from registrations.utils import (
    FALLBACK_SCOPE,
    IDENTIFICATION_NUMBER,
    REGIONAL_CODE,
    allocate_identifier,
    format_identifier,
    get_counter_scope,
    get_scope_prefix,
)


def test_prefixes_for_listed_and_unlisted_countries():
    assert get_scope_prefix(REGIONAL_CODE, 'Gambia') == 'GM'
    assert get_scope_prefix(IDENTIFICATION_NUMBER, 'Gambia') == 'GMB'
    assert get_scope_prefix(REGIONAL_CODE, '  sierra leone ') == 'SL'
    assert get_scope_prefix(REGIONAL_CODE, 'Atlantis') == 'XX'
    assert get_scope_prefix(IDENTIFICATION_NUMBER, None) == 'XXX'


def test_unknown_category_is_rejected():
    with pytest.raises(AllocationError):
        get_scope_prefix('memberNumber', 'Ghana')


def test_format_identifier_pads_and_overflows(settings):
    settings.IDENTIFIER_WIDTH = 3
    assert format_identifier(IDENTIFICATION_NUMBER, 'Ghana', 7) == 'GHA007'
    assert format_identifier(IDENTIFICATION_NUMBER, 'Ghana', 1000) == 'GHA1000'
    assert format_identifier(REGIONAL_CODE, 'Ghana', 42, width=5) == 'GH00042'


def test_counter_scope_groups_unlisted_countries():
    assert get_counter_scope('nigeria') == 'Nigeria'
    assert get_counter_scope('Atlantis') == FALLBACK_SCOPE
    assert get_counter_scope('Lemuria') == FALLBACK_SCOPE


@pytest.mark.django_db
def test_fresh_country_starts_at_one():
    assert allocate_identifier(IDENTIFICATION_NUMBER, 'Gambia') == 'GMB001'
    assert allocate_identifier(IDENTIFICATION_NUMBER, 'Gambia') == 'GMB002'

    counter = IdentifierCounter.objects.get(category_key=IDENTIFICATION_NUMBER, scope='Gambia')
    assert counter.current_value == 2


@pytest.mark.django_db
def test_unknown_country_uses_fallback_prefix():
    assert allocate_identifier(REGIONAL_CODE, 'Atlantis') == 'XX001'
    # A different unlisted country continues the shared fallback sequence
    assert allocate_identifier(REGIONAL_CODE, 'Lemuria') == 'XX002'


@pytest.mark.django_db
def test_categories_have_independent_sequences():
    assert allocate_identifier(REGIONAL_CODE, 'Liberia') == 'ML001'
    assert allocate_identifier(REGIONAL_CODE, 'Liberia') == 'ML002'
    assert allocate_identifier(IDENTIFICATION_NUMBER, 'Liberia') == 'LIB001'
    assert allocate_identifier(REGIONAL_CODE, 'Liberia') == 'ML003'
    assert allocate_identifier(IDENTIFICATION_NUMBER, 'liberia') == 'LIB002'

    assert IdentifierCounter.objects.filter(scope='Liberia').count() == 2


@pytest.mark.django_db
def test_countries_have_independent_sequences():
    assert allocate_identifier(REGIONAL_CODE, 'Ghana') == 'GH001'
    assert allocate_identifier(REGIONAL_CODE, 'Senegal') == 'SN001'
    assert allocate_identifier(REGIONAL_CODE, 'Ghana') == 'GH002'


@pytest.mark.django_db
def test_unknown_category_does_not_create_counter():
    with pytest.raises(AllocationError):
        allocate_identifier('memberNumber', 'Ghana')
    assert not IdentifierCounter.objects.exists()


@pytest.mark.django_db
def test_transient_failure_is_retried(monkeypatch):
    real_increment = utils._increment_counter
    calls = []

    def flaky_increment(category_key, scope):
        calls.append(scope)
        if len(calls) == 1:
            raise OperationalError('database is locked')
        return real_increment(category_key, scope)

    monkeypatch.setattr(utils, '_increment_counter', flaky_increment)

    assert allocate_identifier(IDENTIFICATION_NUMBER, 'Mali') == 'MLI001'
    assert calls == ['Mali', 'Mali']


@pytest.mark.django_db
def test_exhausted_retries_raise_allocation_error(monkeypatch, settings):
    settings.IDENTIFIER_ALLOCATION_MAX_RETRIES = 4
    attempts = []

    def failing_increment(category_key, scope):
        attempts.append(scope)
        raise OperationalError('deadlock detected')

    monkeypatch.setattr(utils, '_increment_counter', failing_increment)

    with pytest.raises(AllocationError) as excinfo:
        allocate_identifier(REGIONAL_CODE, 'Guinea')

    assert len(attempts) == 4
    assert isinstance(excinfo.value.__cause__, OperationalError)


@pytest.mark.django_db
def test_backoff_doubles_between_attempts(monkeypatch, settings):
    settings.IDENTIFIER_ALLOCATION_BACKOFF = 0.1
    sleeps = []
    monkeypatch.setattr(utils.time, 'sleep', sleeps.append)

    def failing_increment(category_key, scope):
        raise OperationalError('could not obtain lock')

    monkeypatch.setattr(utils, '_increment_counter', failing_increment)

    with pytest.raises(AllocationError):
        allocate_identifier(REGIONAL_CODE, 'Ghana')

    # No sleep after the last attempt
    assert sleeps == [0.1, 0.2]


def _allocate_and_close(category_key, scope):
    try:
        return allocate_identifier(category_key, scope)
    finally:
        connection.close()


@pytest.mark.django_db(transaction=True)
def test_concurrent_allocations_are_unique_and_contiguous():
    allocate_identifier(IDENTIFICATION_NUMBER, 'Liberia')
    allocate_identifier(IDENTIFICATION_NUMBER, 'Liberia')
    workers = 8

    with ThreadPoolExecutor(max_workers=workers) as pool:
        codes = list(pool.map(
            lambda _: _allocate_and_close(IDENTIFICATION_NUMBER, 'Liberia'),
            range(workers),
        ))

    assert len(set(codes)) == workers
    assert sorted(int(code[3:]) for code in codes) == list(range(3, 3 + workers))
    counter = IdentifierCounter.objects.get(category_key=IDENTIFICATION_NUMBER, scope='Liberia')
    assert counter.current_value == 2 + workers
