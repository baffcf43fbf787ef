"""
Database models for MARMA membership registrations.
"""
import uuid
from django.db import models
from django.db.models.functions import Lower


class IdentifierCounter(models.Model):
    """
    Last value issued for one identifier family within one scope.

    Rows are created lazily on the first allocation for a new
    (category_key, scope) pair and only ever mutated by
    ``registrations.utils.allocate_identifier`` while holding the row lock.
    """
    category_key = models.CharField(max_length=50, help_text="e.g. regionalCode, identificationNumber")
    scope = models.CharField(max_length=100, help_text="Country the counter is partitioned by")
    current_value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['category_key', 'scope'], name='identifier_counter_key_scope_unique'),
        ]
        ordering = ['category_key', 'scope']
        verbose_name = 'Identifier Counter'
        verbose_name_plural = 'Identifier Counters'

    def __str__(self):
        return f"{self.category_key} [{self.scope}] → {self.current_value}"


class Registration(models.Model):
    """
    Stores a membership application, its two issued identifiers and its review status.
    """
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_DECLINED = 'declined'
    STATUS_UNDER_REVIEW = 'under_review'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_DECLINED, 'Declined'),
        (STATUS_UNDER_REVIEW, 'Under Review'),
    ]

    MARITAL_STATUS_CHOICES = [
        ('Single', 'Single'),
        ('Married', 'Married'),
        ('Divorced', 'Divorced'),
        ('Widowed', 'Widowed'),
    ]

    GENDER_CHOICES = [
        ('Male', 'Male'),
        ('Female', 'Female'),
    ]

    # Primary identifier
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Personal information
    full_name = models.CharField(max_length=100)
    date_of_birth = models.DateField()
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=30, db_index=True)
    country = models.CharField(max_length=100, db_index=True)
    address = models.TextField()
    marital_status = models.CharField(max_length=10, choices=MARITAL_STATUS_CHOICES)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES)

    # Education & ministry
    education_level = models.CharField(max_length=200)
    church_organization = models.CharField(max_length=200)
    position = models.CharField(max_length=200)

    # Recommendation
    recommendation_name = models.CharField(max_length=200)
    recommendation_contact = models.CharField(max_length=200, blank=True, default='')
    recommendation_relationship = models.CharField(max_length=200, blank=True, default='')
    recommendation_church = models.CharField(max_length=200, blank=True, default='')

    membership_purpose = models.TextField()

    # Authorization
    signed_by = models.CharField(max_length=200, blank=True, null=True)
    approved_by = models.CharField(max_length=200, blank=True, null=True)
    attested_by = models.CharField(max_length=200, blank=True, null=True)

    # Issued identifiers: assigned once at creation, never reassigned
    regional_code = models.CharField(
        max_length=20, unique=True, blank=True, null=True, editable=False,
        help_text="Issued code e.g. ML001 (country prefix + 3-digit sequence)"
    )
    identification_number = models.CharField(
        max_length=20, unique=True, blank=True, null=True, editable=False,
        help_text="Issued number e.g. LIB001 (country code + 3-digit sequence)"
    )

    # Review status, only written by registrations.services.apply_status
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    status_message = models.TextField(blank=True, null=True)
    status_updated_at = models.DateTimeField(blank=True, null=True)
    reviewed_by = models.CharField(max_length=150, blank=True, null=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            # Emails are compared case-insensitively by the duplicate check
            models.UniqueConstraint(Lower('email'), name='registration_email_ci_unique'),
        ]
        verbose_name = 'Registration'
        verbose_name_plural = 'Registrations'

    def __str__(self):
        return f"{self.full_name} - {self.regional_code or 'unissued'} - {self.status}"

    @property
    def is_final(self):
        """Approved and declined registrations accept no further transitions."""
        return self.status in (self.STATUS_APPROVED, self.STATUS_DECLINED)

    def to_dict(self):
        return {
            'id': str(self.id),
            'full_name': self.full_name,
            'date_of_birth': self.date_of_birth.isoformat() if self.date_of_birth else None,
            'email': self.email,
            'phone': self.phone,
            'country': self.country,
            'address': self.address,
            'marital_status': self.marital_status,
            'gender': self.gender,
            'education_level': self.education_level,
            'church_organization': self.church_organization,
            'position': self.position,
            'recommendation_name': self.recommendation_name,
            'recommendation_contact': self.recommendation_contact,
            'recommendation_relationship': self.recommendation_relationship,
            'recommendation_church': self.recommendation_church,
            'membership_purpose': self.membership_purpose,
            'signed_by': self.signed_by,
            'approved_by': self.approved_by,
            'attested_by': self.attested_by,
            'regional_code': self.regional_code,
            'identification_number': self.identification_number,
            'status': self.status,
            'status_message': self.status_message,
            'status_updated_at': self.status_updated_at.isoformat() if self.status_updated_at else None,
            'reviewed_by': self.reviewed_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
