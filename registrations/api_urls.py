"""
API URL patterns for registrations app.
"""
from django.urls import path
from . import views

urlpatterns = [
    path('registrations/', views.registrations, name='registrations'),
    path('registrations/check-duplicates/', views.check_duplicates, name='check_duplicates'),
    path('registrations/validate/', views.validate_registration, name='validate_registration'),
    path('registrations/stats/', views.registration_stats, name='registration_stats'),
    path('registrations/recent/', views.recent_registrations, name='recent_registrations'),
    path('registrations/search/', views.search_registrations, name='search_registrations'),
    path('registrations/bulk-update/', views.bulk_update_status, name='bulk_update_status'),
    path('registrations/country/<str:country>/', views.registrations_by_country, name='registrations_by_country'),
    path('registrations/<uuid:registration_id>/', views.registration_detail, name='registration_detail'),
    path('registrations/<uuid:registration_id>/status/', views.update_status, name='update_registration_status'),
]
