"""
Django forms for registration.
"""
from django import forms
from .models import Registration
from .services import APPLICANT_FIELDS


class RegistrationForm(forms.ModelForm):
    """
    Validates applicant input from the public registration form.
    """

    class Meta:
        model = Registration
        fields = list(APPLICANT_FIELDS)
        widgets = {
            'date_of_birth': forms.DateInput(attrs={'type': 'date'}),
            'address': forms.Textarea(attrs={'rows': 3}),
            'membership_purpose': forms.Textarea(attrs={'rows': 4}),
        }

    def full_clean(self):
        # The client sends lowercase choice values ('single', 'male')
        if self.is_bound:
            data = self.data.copy()
            for field_name in ('marital_status', 'gender'):
                value = (data.get(field_name) or '').strip()
                for choice, _label in self.fields[field_name].choices:
                    if choice and choice.lower() == value.lower():
                        data[field_name] = choice
                        break
            self.data = data
        super().full_clean()

    def clean_full_name(self):
        full_name = (self.cleaned_data.get('full_name') or '').strip()
        if len(full_name) < 2:
            raise forms.ValidationError('Full name must be 2-100 characters')
        return full_name

    def clean_email(self):
        return (self.cleaned_data.get('email') or '').strip()

    def clean_country(self):
        return (self.cleaned_data.get('country') or '').strip()

    def validate_unique(self):
        # Duplicate emails are reported by create_registration as a conflict.
        pass
