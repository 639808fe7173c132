"""
Django app configuration for payments.
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'src.adapters.django_app.payments'
    label = 'payments'
    verbose_name = 'Payments'
