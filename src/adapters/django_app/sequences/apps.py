"""
Django app for named counters (ticket and receipt numbers).
"""

from django.apps import AppConfig


class SequencesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'src.adapters.django_app.sequences'
    label = 'sequences'
    verbose_name = 'Sequences'
