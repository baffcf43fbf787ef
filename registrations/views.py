"""
JSON API views for membership registrations.
"""
import json
import logging
from datetime import timedelta

from django.core.exceptions import ValidationError
from django.core.paginator import EmptyPage, PageNotAnInteger, Paginator
from django.db.models import Count, Q
from django.db.models.functions import TruncMonth
from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .exceptions import AllocationError, DuplicateApplicantError, InvalidTransitionError
from .forms import RegistrationForm
from .models import Registration
from .services import apply_status, create_registration, email_is_registered
from .utils import normalize_applicant_data

logger = logging.getLogger(__name__)

PAGINATE_BY = 10
MAX_PAGE_SIZE = 100
SEARCH_FIELDS = ('full_name', 'email', 'phone', 'church_organization', 'position')


def _parse_body(request):
    """Return submitted data as a plain dict from a JSON or form-encoded body."""
    if request.content_type == 'application/json':
        try:
            data = json.loads(request.body or b'{}')
        except (ValueError, UnicodeDecodeError):
            return None
        return data if isinstance(data, dict) else None
    return request.POST.dict()


def _forbidden():
    return JsonResponse({
        'success': False,
        'message': 'You do not have permission to access this resource.',
    }, status=403)


def _bad_request(message):
    return JsonResponse({'success': False, 'message': message}, status=400)


def _status_request(data):
    """
    Read ``status`` and ``status_message`` (or ``statusMessage``) from a
    request body. Returns ``(status, message, error)``; ``error`` is a
    message for the client when the values are missing or not strings.
    """
    new_status = data.get('status')
    if new_status is not None and not isinstance(new_status, str):
        return None, None, 'Status must be a string'
    new_status = (new_status or '').strip()
    if not new_status:
        return None, None, 'Status is required'

    message = data.get('status_message', data.get('statusMessage'))
    if message is not None and not isinstance(message, str):
        return None, None, 'Status message must be a string'
    return new_status, message or '', None


def _get_filtered_registrations_queryset(params):
    """
    Registrations matching the ``country``, ``status``, ``search`` and
    ``start_date``/``end_date`` (or ``startDate``/``endDate``) query
    parameters, newest first. Raises ValueError on a malformed date.
    """
    queryset = Registration.objects.all()

    country = (params.get('country') or '').strip()
    if country:
        queryset = queryset.filter(country__iexact=country)

    status = (params.get('status') or '').strip()
    if status:
        queryset = queryset.filter(status=status)

    search = (params.get('search') or params.get('q') or '').strip()
    if search:
        query = Q()
        for field in SEARCH_FIELDS:
            query |= Q(**{f'{field}__icontains': search})
        queryset = queryset.filter(query)

    for param, alias, lookup in (
        ('start_date', 'startDate', 'created_at__date__gte'),
        ('end_date', 'endDate', 'created_at__date__lte'),
    ):
        value = (params.get(param) or params.get(alias) or '').strip()
        if not value:
            continue
        day = parse_date(value)
        if day is None:
            raise ValueError(f"Invalid date for {param}: {value}")
        queryset = queryset.filter(**{lookup: day})

    return queryset.order_by('-created_at')


def _page_size(params, default=PAGINATE_BY):
    try:
        limit = int(params.get('limit', default))
    except (TypeError, ValueError):
        return default
    return max(1, min(limit, MAX_PAGE_SIZE))


def _list_registrations(request):
    """
    API: Paginated registrations, filtered by country, status, search text
    and creation date range (staff only).
    """
    if not request.user.is_staff:
        return _forbidden()

    try:
        queryset = _get_filtered_registrations_queryset(request.GET)
    except ValueError as e:
        return _bad_request(str(e))

    limit = _page_size(request.GET)
    paginator = Paginator(queryset, limit)
    page_number = request.GET.get('page', 1)
    try:
        page = paginator.page(page_number)
    except PageNotAnInteger:
        page = paginator.page(1)
    except EmptyPage:
        page = paginator.page(paginator.num_pages)

    return JsonResponse({
        'success': True,
        'data': {
            'registrations': [registration.to_dict() for registration in page.object_list],
            'total': paginator.count,
            'page': page.number,
            'limit': limit,
            'totalPages': paginator.num_pages if paginator.count else 0,
        },
    })


@csrf_exempt
@require_http_methods(["GET", "POST"])
def registrations(request):
    """
    API: List registrations (GET, staff only) or create one (POST).
    Creating issues the regional code and identification number and returns
    the pending registration.
    """
    if request.method == 'GET':
        return _list_registrations(request)

    data = _parse_body(request)
    if data is None:
        return JsonResponse({'success': False, 'message': 'Invalid JSON'}, status=400)

    form = RegistrationForm(normalize_applicant_data(data))
    if not form.is_valid():
        return JsonResponse({
            'success': False,
            'message': 'Validation failed',
            'errors': form.errors.get_json_data(),
        }, status=400)

    try:
        registration = create_registration(form.cleaned_data)
    except DuplicateApplicantError as e:
        return JsonResponse({
            'success': False,
            'message': 'Registration with this email already exists',
            'errors': [str(e)],
        }, status=409)
    except ValidationError as e:
        return JsonResponse({
            'success': False,
            'message': 'Validation failed',
            'errors': e.messages,
        }, status=400)
    except AllocationError as e:
        logger.error(f"Registration for {form.cleaned_data.get('email')} failed: {str(e)}")
        return JsonResponse({
            'success': False,
            'message': 'Registration could not be completed, please try again shortly',
        }, status=503)

    return JsonResponse({
        'success': True,
        'data': registration.to_dict(),
        'message': 'Registration created successfully',
    }, status=201)


@require_http_methods(["GET"])
def registration_detail(request, registration_id):
    """
    API: Get a single registration (staff only).
    """
    if not request.user.is_staff:
        return _forbidden()

    try:
        registration = Registration.objects.get(id=registration_id)
    except Registration.DoesNotExist:
        return JsonResponse({'success': False, 'message': 'Registration not found'}, status=404)

    return JsonResponse({'success': True, 'data': registration.to_dict()})


@csrf_exempt
@require_http_methods(["POST", "PUT"])
def update_status(request, registration_id):
    """
    API: Approve, decline or mark a registration under review (staff only).
    Repeating a request that was already applied returns the registration unchanged.
    """
    if not request.user.is_staff:
        return _forbidden()

    data = _parse_body(request)
    if data is None:
        return JsonResponse({'success': False, 'message': 'Invalid JSON'}, status=400)

    new_status, message, error = _status_request(data)
    if error:
        return _bad_request(error)
    reviewer = request.user.get_username()

    try:
        registration = apply_status(registration_id, new_status, message=message, reviewer=reviewer)
    except Registration.DoesNotExist:
        return JsonResponse({'success': False, 'message': 'Registration not found'}, status=404)
    except InvalidTransitionError as e:
        return JsonResponse({
            'success': False,
            'message': 'Invalid status change',
            'errors': [str(e)],
        }, status=400)

    return JsonResponse({
        'success': True,
        'data': registration.to_dict(),
        'message': 'Registration updated successfully',
    })


@require_http_methods(["GET"])
def check_duplicates(request):
    """
    API: Check whether an email or phone number is already registered.
    Only the email has to be unique; a repeated phone number is a warning.
    """
    email = (request.GET.get('email') or '').strip()
    phone = (request.GET.get('phone') or '').strip()
    if not email and not phone:
        return JsonResponse({
            'success': False,
            'message': 'Email or phone number is required',
        }, status=400)

    duplicate_fields = []
    if email and Registration.objects.filter(email__iexact=email).exists():
        duplicate_fields.append('email')
    if phone and Registration.objects.filter(phone=phone).exists():
        duplicate_fields.append('phone')

    return JsonResponse({
        'success': True,
        'data': {
            'hasDuplicates': bool(duplicate_fields),
            'duplicateFields': duplicate_fields,
        },
    })


@csrf_exempt
@require_http_methods(["POST"])
def validate_registration(request):
    """
    API: Check registration data before submission without saving it.
    A registered email is an error; a registered phone number is a warning.
    """
    data = _parse_body(request)
    if data is None:
        return JsonResponse({'success': False, 'message': 'Invalid JSON'}, status=400)

    form = RegistrationForm(normalize_applicant_data(data))
    errors = {
        field: [error['message'] for error in field_errors]
        for field, field_errors in form.errors.get_json_data().items()
    }
    warnings = []

    email = data.get('email')
    if isinstance(email, str) and email_is_registered(email):
        errors.setdefault('email', []).append('Email address already registered')

    phone = data.get('phone')
    if isinstance(phone, str) and phone.strip() and Registration.objects.filter(phone=phone.strip()).exists():
        warnings.append('Phone number already registered')

    return JsonResponse({
        'success': True,
        'data': {
            'isValid': not errors,
            'errors': errors,
            'warnings': warnings,
        },
    })


@csrf_exempt
@require_http_methods(["POST", "PUT"])
def bulk_update_status(request):
    """
    API: Apply one status change to several registrations (staff only).

    Each registration goes through the status workflow on its own, so a
    registration that cannot make the change is reported in ``failed`` and
    does not stop the others.
    """
    if not request.user.is_staff:
        return _forbidden()

    data = _parse_body(request)
    if data is None:
        return JsonResponse({'success': False, 'message': 'Invalid JSON'}, status=400)

    ids = data.get('ids')
    if not isinstance(ids, list) or not ids or not all(isinstance(pk, str) for pk in ids):
        return _bad_request('Invalid or missing registration IDs')

    updates = data.get('updates', data)
    if not isinstance(updates, dict):
        return _bad_request('Updates must be an object')
    new_status, message, error = _status_request(updates)
    if error:
        return _bad_request(error)
    reviewer = request.user.get_username()

    updated = []
    failed = []
    for registration_id in dict.fromkeys(ids):
        try:
            registration = apply_status(registration_id, new_status, message=message, reviewer=reviewer)
        except (Registration.DoesNotExist, ValidationError):
            failed.append({'id': registration_id, 'error': 'Registration not found'})
        except InvalidTransitionError as e:
            failed.append({'id': registration_id, 'error': str(e)})
        else:
            updated.append(registration.to_dict())

    logger.info(
        f"Bulk status update to {new_status} by {reviewer}: "
        f"{len(updated)} updated, {len(failed)} failed"
    )

    return JsonResponse({
        'success': True,
        'data': {
            'updated': updated,
            'failed': failed,
        },
        'message': f"{len(updated)} registration(s) updated successfully",
    })


@require_http_methods(["GET"])
def search_registrations(request):
    """
    API: Registrations whose name, email, phone, church or position contain
    ``q``, optionally narrowed by country and status (staff only).
    """
    if not request.user.is_staff:
        return _forbidden()

    query = (request.GET.get('q') or '').strip()
    if not query:
        return _bad_request('Search query is required')

    try:
        queryset = _get_filtered_registrations_queryset(request.GET)
    except ValueError as e:
        return _bad_request(str(e))

    return JsonResponse({
        'success': True,
        'data': [registration.to_dict() for registration in queryset[:MAX_PAGE_SIZE]],
    })


@require_http_methods(["GET"])
def recent_registrations(request):
    """
    API: The newest registrations, ``limit`` of them (staff only).
    """
    if not request.user.is_staff:
        return _forbidden()

    limit = _page_size(request.GET)
    queryset = Registration.objects.order_by('-created_at')[:limit]
    return JsonResponse({
        'success': True,
        'data': [registration.to_dict() for registration in queryset],
    })


@require_http_methods(["GET"])
def registrations_by_country(request, country):
    """
    API: All registrations from one country, newest first (staff only).
    """
    if not request.user.is_staff:
        return _forbidden()

    queryset = _get_filtered_registrations_queryset({'country': country})
    return JsonResponse({
        'success': True,
        'data': [registration.to_dict() for registration in queryset],
    })


@require_http_methods(["GET"])
def registration_stats(request):
    """
    API: Registration counts by status, by country and by month for the last
    twelve months, plus the five newest registrations (staff only).
    """
    if not request.user.is_staff:
        return _forbidden()

    by_status = {status: 0 for status, _label in Registration.STATUS_CHOICES}
    for row in Registration.objects.values('status').annotate(count=Count('id')).order_by('status'):
        by_status[row['status']] = row['count']

    by_country = {
        row['country']: row['count']
        for row in Registration.objects.values('country').annotate(count=Count('id')).order_by('country')
    }

    since = timezone.now() - timedelta(days=365)
    monthly = (
        Registration.objects.filter(created_at__gte=since)
        .annotate(month=TruncMonth('created_at'))
        .values('month')
        .annotate(count=Count('id'))
        .order_by('month')
    )
    by_month = {row['month'].strftime('%Y-%m'): row['count'] for row in monthly}

    recent = Registration.objects.order_by('-created_at')[:5]

    return JsonResponse({
        'success': True,
        'data': {
            'total': sum(by_status.values()),
            'byStatus': by_status,
            'byCountry': by_country,
            'byMonth': by_month,
            'recentRegistrations': [registration.to_dict() for registration in recent],
        },
    })
