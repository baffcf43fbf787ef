"""
Utility functions for the registrations app: identifier issuance and
normalization of combined applicant fields.
"""
import logging
import re
import time

from django.conf import settings
from django.db import IntegrityError, InterfaceError, OperationalError, transaction
from django.db.models import F

from .exceptions import AllocationError

logger = logging.getLogger(__name__)


REGIONAL_CODE = 'regionalCode'
IDENTIFICATION_NUMBER = 'identificationNumber'

# Two-letter prefixes for regional codes, e.g. ML001
REGIONAL_CODE_PREFIXES = {
    'Liberia': 'ML',
    'Sierra Leone': 'SL',
    'Guinea': 'GN',
    'Ivory Coast': 'IC',
    'Ghana': 'GH',
    'Nigeria': 'NG',
    'Mali': 'MA',
    'Burkina Faso': 'BF',
    'Senegal': 'SN',
    'Gambia': 'GM',
}

# Three-letter country codes for identification numbers, e.g. LIB001
IDENTIFICATION_NUMBER_PREFIXES = {
    'Liberia': 'LIB',
    'Sierra Leone': 'SLE',
    'Guinea': 'GIN',
    'Ivory Coast': 'IVC',
    'Ghana': 'GHA',
    'Nigeria': 'NGA',
    'Mali': 'MLI',
    'Burkina Faso': 'BFA',
    'Senegal': 'SEN',
    'Gambia': 'GMB',
}

# category_key -> (prefix table, prefix for unlisted countries)
IDENTIFIER_PREFIXES = {
    REGIONAL_CODE: (REGIONAL_CODE_PREFIXES, 'XX'),
    IDENTIFICATION_NUMBER: (IDENTIFICATION_NUMBER_PREFIXES, 'XXX'),
}

# Unlisted countries share the fallback prefix, so they must share one counter too.
FALLBACK_SCOPE = '*'

_KNOWN_COUNTRIES = {name.casefold(): name for name in REGIONAL_CODE_PREFIXES}

_RETRYABLE_ERRORS = (IntegrityError, OperationalError, InterfaceError)


def canonical_country(country):
    """
    Return the listed spelling of ``country`` (case and surrounding
    whitespace ignored), or None for countries without an assigned prefix.
    """
    if not country:
        return None
    return _KNOWN_COUNTRIES.get(str(country).strip().casefold())


def get_counter_scope(country):
    """Scope under which the counter for ``country`` is kept."""
    return canonical_country(country) or FALLBACK_SCOPE


def get_scope_prefix(category_key, country):
    """
    Prefix for identifiers of ``category_key`` issued in ``country``.
    Unlisted countries get the category's fallback prefix (XX / XXX).
    """
    try:
        prefixes, fallback = IDENTIFIER_PREFIXES[category_key]
    except KeyError:
        raise AllocationError(f"Unknown identifier category: {category_key!r}") from None
    name = canonical_country(country)
    return prefixes[name] if name else fallback


def format_identifier(category_key, country, value, width=None):
    """
    Format a counter value: country prefix followed by the value zero-padded
    to ``IDENTIFIER_WIDTH`` digits (GMB001). Values wider than the padding
    are written in full (GMB1000).
    """
    if width is None:
        width = getattr(settings, 'IDENTIFIER_WIDTH', 3)
    return f"{get_scope_prefix(category_key, country)}{int(value):0{width}d}"


def _increment_counter(category_key, scope):
    """
    Read-increment-commit one counter row under an exclusive row lock and
    return the post-increment value.
    """
    from .models import IdentifierCounter

    with transaction.atomic():
        # get_or_create retries the lookup when a concurrent insert wins the
        # unique (category_key, scope) constraint.
        counter, created = (
            IdentifierCounter.objects
            .select_for_update()
            .get_or_create(category_key=category_key, scope=scope, defaults={'current_value': 0})
        )
        counter.current_value = F('current_value') + 1
        counter.save(update_fields=['current_value', 'updated_at'])
        counter.refresh_from_db(fields=['current_value'])
        if created:
            logger.info(f"Created identifier counter {category_key} [{scope}]")
        return counter.current_value


def allocate_identifier(category_key, scope):
    """
    Issue the next identifier for ``category_key`` in ``scope`` (a country).

    Every call runs in its own short transaction, so the counter row lock is
    never held across unrelated work. Deadlocks, lock timeouts and lost
    connections are retried with exponential backoff up to
    ``IDENTIFIER_ALLOCATION_MAX_RETRIES`` attempts.

    Returns:
        str: formatted identifier, e.g. ``GMB001``

    Raises:
        AllocationError: unknown category, or the store kept failing.
    """
    # Validates the category before touching the store.
    get_scope_prefix(category_key, scope)
    counter_scope = get_counter_scope(scope)

    max_attempts = max(1, getattr(settings, 'IDENTIFIER_ALLOCATION_MAX_RETRIES', 3))
    backoff = getattr(settings, 'IDENTIFIER_ALLOCATION_BACKOFF', 0.05)

    last_error = None
    for attempt in range(1, max_attempts + 1):
        try:
            value = _increment_counter(category_key, counter_scope)
        except _RETRYABLE_ERRORS as e:
            last_error = e
            logger.warning(
                f"Identifier allocation for {category_key} [{counter_scope}] failed "
                f"(attempt {attempt}/{max_attempts}): {str(e)}"
            )
            if attempt < max_attempts:
                time.sleep(backoff * (2 ** (attempt - 1)))
            continue

        code = format_identifier(category_key, scope, value)
        logger.info(f"Issued {category_key} {code} for scope {counter_scope}")
        return code

    logger.error(f"Giving up on {category_key} allocation for {counter_scope} after {max_attempts} attempts")
    raise AllocationError(
        f"Could not allocate {category_key} for {scope!r} after {max_attempts} attempts"
    ) from last_error


# "John (mentor, from Graceland Church, contact: john@example.com)"
RECOMMENDATION_PATTERN = re.compile(
    r'^([^(]+)\s*\(([^,]+),\s*from\s+([^,]+),\s*contact:\s*([^)]+)\)'
)


def parse_recommendation(recommendation):
    """
    Split a combined recommendation string into its parts.
    Strings that don't match the expected layout become the name, whole.
    """
    if not recommendation:
        return {}
    text = str(recommendation).strip()
    match = RECOMMENDATION_PATTERN.match(text)
    if match:
        name, relationship, church, contact = (part.strip() for part in match.groups())
        return {
            'recommendation_name': name,
            'recommendation_relationship': relationship,
            'recommendation_church': church,
            'recommendation_contact': contact,
        }
    return {
        'recommendation_name': text,
        'recommendation_relationship': '',
        'recommendation_church': '',
        'recommendation_contact': '',
    }


def parse_authorization(authorization):
    """Split "Signer & Approver & Attester" into the three authorization fields."""
    if not authorization:
        return {}
    parts = [part.strip() for part in str(authorization).split('&')]
    parts += [''] * (3 - len(parts))
    return {
        'signed_by': parts[0],
        'approved_by': parts[1],
        'attested_by': parts[2],
    }


COMBINED_RECOMMENDATION_KEY = 'Recommendation'
COMBINED_AUTHORIZATION_KEY = 'Signed/Approved/Attested By'


def normalize_applicant_data(data):
    """
    Return a copy of submitted applicant data with the combined
    recommendation and authorization fields split into model fields.
    """
    normalized = dict(data)
    recommendation = normalized.pop(COMBINED_RECOMMENDATION_KEY, None)
    if recommendation:
        normalized.update(parse_recommendation(recommendation))
    authorization = normalized.pop(COMBINED_AUTHORIZATION_KEY, None)
    if authorization:
        normalized.update(parse_authorization(authorization))
    return normalized
