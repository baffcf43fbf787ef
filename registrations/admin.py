"""
Django admin configuration for registrations app.
"""
from django.contrib import admin, messages

from .exceptions import InvalidTransitionError
from .models import IdentifierCounter, Registration
from .services import apply_status


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    """
    Admin interface for reviewing registrations.
    Status changes go through the status workflow so emails are sent once.
    """
    list_display = [
        'full_name', 'email', 'phone', 'country', 'regional_code',
        'identification_number', 'status', 'status_updated_at', 'created_at'
    ]
    list_filter = ['status', 'country', 'gender', 'created_at']
    search_fields = [
        'full_name', 'email', 'phone', 'regional_code', 'identification_number',
        'church_organization', 'position'
    ]
    fieldsets = (
        ('Identifiers', {
            'fields': ('id', 'regional_code', 'identification_number')
        }),
        ('Personal Information', {
            'fields': (
                'full_name', 'date_of_birth', 'email', 'phone', 'country',
                'address', 'marital_status', 'gender'
            )
        }),
        ('Education & Ministry', {
            'fields': ('education_level', 'church_organization', 'position', 'membership_purpose')
        }),
        ('Recommendation', {
            'fields': (
                'recommendation_name', 'recommendation_relationship',
                'recommendation_church', 'recommendation_contact'
            ),
            'classes': ('collapse',)
        }),
        ('Authorization', {
            'fields': ('signed_by', 'approved_by', 'attested_by'),
            'classes': ('collapse',)
        }),
        ('Review', {
            'fields': ('status', 'status_message', 'status_updated_at', 'reviewed_by', 'created_at', 'updated_at')
        }),
    )

    actions = ['approve_registrations', 'decline_registrations', 'mark_under_review']

    def get_readonly_fields(self, request, obj=None):
        # Applicant data is the submitted record; only the status actions change it
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        # Registrations are created through the API so identifiers get issued
        return False

    def has_delete_permission(self, request, obj=None):
        # Issued identifiers and registered emails are never released
        return False

    def _apply_status(self, request, queryset, new_status):
        changed = 0
        for registration in queryset:
            before = registration.status
            try:
                updated = apply_status(
                    registration.pk, new_status, reviewer=request.user.get_username()
                )
            except InvalidTransitionError as e:
                self.message_user(request, f"{registration.full_name}: {e}", level=messages.WARNING)
                continue
            if updated.status != before:
                changed += 1
        self.message_user(request, f"{changed} registration(s) marked {new_status}.", level=messages.SUCCESS)

    @admin.action(description="Approve selected registrations")
    def approve_registrations(self, request, queryset):
        self._apply_status(request, queryset, Registration.STATUS_APPROVED)

    @admin.action(description="Decline selected registrations")
    def decline_registrations(self, request, queryset):
        self._apply_status(request, queryset, Registration.STATUS_DECLINED)

    @admin.action(description="Mark selected registrations under review")
    def mark_under_review(self, request, queryset):
        self._apply_status(request, queryset, Registration.STATUS_UNDER_REVIEW)


@admin.register(IdentifierCounter)
class IdentifierCounterAdmin(admin.ModelAdmin):
    """
    Read-only view of identifier counters. Values only change through allocation.
    """
    list_display = ['category_key', 'scope', 'current_value', 'updated_at']
    list_filter = ['category_key']
    search_fields = ['scope']
    readonly_fields = ['category_key', 'scope', 'current_value', 'updated_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
