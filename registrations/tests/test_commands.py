from io import StringIO

import pytest
from django.core.management import call_command

from registrations.models import IdentifierCounter, Registration
from registrations.services import create_registration

pytestmark = pytest.mark.django_db


def test_issues_only_missing_identifiers(applicant_data, legacy_registration):
    issued = create_registration(applicant_data(), send_confirmation=False)
    legacy = legacy_registration(email='old@example.com', country='Nigeria')

    out = StringIO()
    call_command('issue_missing_identifiers', stdout=out)

    legacy.refresh_from_db()
    issued.refresh_from_db()
    assert legacy.regional_code == 'NG001'
    assert legacy.identification_number == 'NGA001'
    assert (issued.regional_code, issued.identification_number) == ('ML001', 'LIB001')
    assert 'Identifiers issued: 2' in out.getvalue()


def test_partially_issued_registration_keeps_existing_code(legacy_registration):
    legacy = legacy_registration(email='half@example.com', country='Mali')
    Registration.objects.filter(pk=legacy.pk).update(regional_code='MA777')

    call_command('issue_missing_identifiers', stdout=StringIO())

    legacy.refresh_from_db()
    assert legacy.regional_code == 'MA777'
    assert legacy.identification_number == 'MLI001'
    assert not IdentifierCounter.objects.filter(category_key='regionalCode').exists()


def test_dry_run_allocates_nothing(legacy_registration):
    legacy = legacy_registration(email='old@example.com')

    out = StringIO()
    call_command('issue_missing_identifiers', '--dry-run', stdout=out)

    legacy.refresh_from_db()
    assert legacy.regional_code is None
    assert not IdentifierCounter.objects.exists()
    assert 'would issue regionalCode' in out.getvalue()
