"""
Errors raised by identifier issuance and the registration status workflow.
"""


class RegistrationError(Exception):
    """Base class for registration workflow errors."""


class AllocationError(RegistrationError):
    """The counter store could not issue an identifier after bounded retries."""


class DuplicateApplicantError(RegistrationError):
    """An applicant with the same unique contact field is already registered."""

    def __init__(self, field, value):
        self.field = field
        self.value = value
        super().__init__(f"A registration with this {field} already exists: {value}")


class InvalidTransitionError(RegistrationError):
    """The requested status change is not permitted from the current status."""

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change registration status from '{current}' to '{requested}'")


class NotificationError(RegistrationError):
    """A status email could not be delivered. Logged by callers, never surfaced."""
