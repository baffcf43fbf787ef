"""
Registration creation and status workflow.

Both operations are called in-process by the views, the Django admin and the
management commands; nothing else writes identifier or status fields.
"""
import logging
from functools import partial

from django.db import IntegrityError, transaction
from django.utils import timezone

from .emails import notify_status, send_registration_confirmation_email
from .exceptions import DuplicateApplicantError, InvalidTransitionError
from .models import Registration
from .utils import (
    IDENTIFICATION_NUMBER,
    REGIONAL_CODE,
    allocate_identifier,
    normalize_applicant_data,
)

logger = logging.getLogger(__name__)


APPLICANT_FIELDS = (
    'full_name', 'date_of_birth', 'email', 'phone', 'country', 'address',
    'marital_status', 'gender', 'education_level', 'church_organization',
    'position', 'recommendation_name', 'recommendation_contact',
    'recommendation_relationship', 'recommendation_church',
    'membership_purpose', 'signed_by', 'approved_by', 'attested_by',
)

# current status -> statuses it may move to; approved and declined are final
ALLOWED_TRANSITIONS = {
    Registration.STATUS_PENDING: {
        Registration.STATUS_UNDER_REVIEW,
        Registration.STATUS_APPROVED,
        Registration.STATUS_DECLINED,
    },
    Registration.STATUS_UNDER_REVIEW: {
        Registration.STATUS_APPROVED,
        Registration.STATUS_DECLINED,
    },
    Registration.STATUS_APPROVED: set(),
    Registration.STATUS_DECLINED: set(),
}

NOTIFIABLE_STATUSES = {Registration.STATUS_APPROVED, Registration.STATUS_DECLINED}


def email_is_registered(email):
    return bool(email) and Registration.objects.filter(email__iexact=email.strip()).exists()


def create_registration(applicant_data, send_confirmation=True):
    """
    Create a pending registration with both identifiers issued.

    The applicant's email is checked for duplicates and the record is
    validated before any counter is touched. Each identifier is then
    allocated in its own transaction and the registration is inserted in a
    third one. Identifiers allocated for an insert that later fails are not
    reclaimed.

    Args:
        applicant_data: dict of applicant fields; the combined
            ``Recommendation`` and ``Signed/Approved/Attested By`` strings
            are split into their model fields.
        send_confirmation: send the confirmation email after the insert.

    Returns:
        Registration: the persisted registration

    Raises:
        DuplicateApplicantError: the email is already registered.
        django.core.exceptions.ValidationError: invalid applicant fields.
        AllocationError: an identifier could not be issued; nothing is saved.
    """
    data = normalize_applicant_data(applicant_data)
    email = (data.get('email') or '').strip()
    data['email'] = email

    if email_is_registered(email):
        raise DuplicateApplicantError('email', email)

    registration = Registration(
        status=Registration.STATUS_PENDING,
        **{field: data[field] for field in APPLICANT_FIELDS if field in data}
    )
    # The database constraints are the final arbiter; see the insert below
    registration.full_clean(validate_unique=False, validate_constraints=False)

    regional_code = allocate_identifier(REGIONAL_CODE, registration.country)
    identification_number = allocate_identifier(IDENTIFICATION_NUMBER, registration.country)
    registration.regional_code = regional_code
    registration.identification_number = identification_number

    try:
        with transaction.atomic():
            registration.save(force_insert=True)
    except IntegrityError as e:
        logger.warning(
            f"Registration insert for {email} failed after issuing "
            f"{regional_code}/{identification_number}: {str(e)}"
        )
        # Lost a race with a concurrent registration for the same email
        if Registration.objects.filter(email__iexact=email).exists():
            raise DuplicateApplicantError('email', email) from e
        raise

    logger.info(
        f"Created registration {registration.id} for {email} "
        f"({regional_code}, {identification_number})"
    )

    if send_confirmation:
        transaction.on_commit(partial(send_registration_confirmation_email, registration))

    return registration


def can_transition(current, requested):
    return requested in ALLOWED_TRANSITIONS.get(current, set())


def _send_status_email(registration, status, message):
    try:
        notify_status(registration, status, message)
    except Exception as e:
        logger.error(f"Status email for registration {registration.id} failed: {str(e)}")


def apply_status(registration_id, new_status, message='', reviewer=None):
    """
    Move a registration to ``new_status``.

    The registration row is locked for the read-compare-write, so concurrent
    requests for the same registration are applied one after the other and
    only the first of two identical requests changes anything. Requesting
    the current status is a no-op: nothing is written and no email is sent,
    even when ``message`` differs.

    Approval and decline emails are queued with ``transaction.on_commit``:
    they go out once the outermost transaction commits and never for a
    change that is rolled back. Email failures are logged and never undo the
    change or reach the caller.

    Returns:
        Registration: the registration after the call

    Raises:
        Registration.DoesNotExist: unknown registration id.
        InvalidTransitionError: the change is not allowed from the current status.
    """
    with transaction.atomic():
        registration = Registration.objects.select_for_update().get(pk=registration_id)
        previous_status = registration.status

        if new_status == previous_status:
            logger.info(f"Registration {registration.id} already {new_status}; nothing to do")
            return registration

        if not can_transition(previous_status, new_status):
            raise InvalidTransitionError(previous_status, new_status)

        registration.status = new_status
        registration.status_message = message
        registration.reviewed_by = reviewer
        registration.status_updated_at = timezone.now()
        registration.save(update_fields=[
            'status', 'status_message', 'reviewed_by', 'status_updated_at', 'updated_at',
        ])

        if new_status in NOTIFIABLE_STATUSES:
            transaction.on_commit(
                partial(_send_status_email, registration, new_status, message)
            )

    logger.info(
        f"Registration {registration.id} moved from {previous_status} to {new_status}"
        f" by {reviewer or 'unknown reviewer'}"
    )

    return registration
