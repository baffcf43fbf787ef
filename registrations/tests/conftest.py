import datetime

import pytest

from registrations.models import Registration


@pytest.fixture(autouse=True)
def fast_retries(settings):
    settings.IDENTIFIER_ALLOCATION_BACKOFF = 0
    settings.IDENTIFIER_ALLOCATION_MAX_RETRIES = 3


@pytest.fixture
def applicant_data():
    def make(**overrides):
        data = {
            'full_name': 'Comfort Kollie',
            'date_of_birth': datetime.date(1988, 3, 14),
            'email': 'comfort@example.com',
            'phone': '+231770000001',
            'country': 'Liberia',
            'address': '12 Broad Street, Monrovia',
            'marital_status': 'Married',
            'gender': 'Female',
            'education_level': 'Bachelor',
            'church_organization': 'Graceland Church',
            'position': 'Pastor',
            'recommendation_name': 'John Doe',
            'recommendation_contact': 'john@example.com',
            'recommendation_relationship': 'mentor',
            'recommendation_church': 'Graceland Church',
            'membership_purpose': 'Fellowship and ministry collaboration',
        }
        data.update(overrides)
        return data
    return make


@pytest.fixture
def legacy_registration(applicant_data):
    """A registration stored directly, without issued identifiers."""
    def make(**overrides):
        return Registration.objects.create(**applicant_data(**overrides))
    return make


@pytest.fixture
def staff_client(client, django_user_model):
    user = django_user_model.objects.create_user(username='reviewer', password='secret', is_staff=True)
    client.force_login(user)
    return client
