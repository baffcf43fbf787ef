"""
Email sending functions for registration confirmations and status notifications.
"""
from django.core.mail import send_mail
from django.template.loader import render_to_string
from django.conf import settings
from django.utils.html import strip_tags
import logging

from .exceptions import NotificationError

logger = logging.getLogger(__name__)


STATUS_EMAILS = {
    'approved': (
        'MARMA Registration Approved',
        'registrations/emails/registration_approved.html',
    ),
    'declined': (
        'MARMA Registration Update',
        'registrations/emails/registration_declined.html',
    ),
}


def _base_context(registration):
    return {
        'registration': registration,
        'support_email': getattr(settings, 'SUPPORT_EMAIL', 'support@marma.org'),
        'site_url': getattr(settings, 'SITE_URL', 'https://register.marma.org'),
    }


def send_registration_confirmation_email(registration):
    """
    Send registration confirmation email with the issued regional code and
    identification number.

    Args:
        registration: Registration instance
    """
    try:
        context = _base_context(registration)
        subject = 'MARMA Registration Confirmation'
        html_message = render_to_string('registrations/emails/registration_confirmation.html', context)
        plain_message = strip_tags(html_message)

        send_mail(
            subject=subject,
            message=plain_message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[registration.email],
            html_message=html_message,
            fail_silently=False,
        )

        logger.info(f"Registration confirmation email sent to {registration.email} for registration {registration.id}")

    except Exception as e:
        logger.error(f"Failed to send registration confirmation email: {str(e)}")
        # Don't raise exception - email failure shouldn't break registration


def notify_status(registration, status, message=''):
    """
    Deliver the approval or decline email for a registration.

    Unlike the other helpers in this module this one raises, so the status
    workflow can log the failure against the transition it belongs to.

    Args:
        registration: Registration instance (snapshot after the status change)
        status: 'approved' or 'declined'
        message: reviewer's message to include in the email

    Raises:
        NotificationError: unsupported status, or the email could not be sent.
    """
    try:
        subject, template = STATUS_EMAILS[status]
    except KeyError:
        raise NotificationError(f"No notification is sent for status {status!r}") from None

    try:
        context = _base_context(registration)
        context['message'] = message or ''
        html_message = render_to_string(template, context)
        plain_message = strip_tags(html_message)

        send_mail(
            subject=subject,
            message=plain_message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[registration.email],
            html_message=html_message,
            fail_silently=False,
        )
    except Exception as e:
        raise NotificationError(
            f"Failed to send {status} email to {registration.email}: {str(e)}"
        ) from e

    logger.info(f"Registration {status} email sent to {registration.email} for registration {registration.id}")
