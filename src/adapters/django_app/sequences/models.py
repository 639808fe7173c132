"""
Counter table behind DjangoSequenceGenerator.
"""

from django.db import models


class SequenceModel(models.Model):
    """
    One row per named counter.

    ``value`` is the last number handed out; the first call to
    ``next_value`` returns 1.
    """

    name = models.CharField(
        max_length=50,
        primary_key=True,
        help_text="Counter name, e.g. 'ticket' or 'receipt'"
    )

    value = models.BigIntegerField(
        default=0,
        help_text="Last value handed out"
    )

    class Meta:
        db_table = 'sequences'
        verbose_name = 'Sequence'
        verbose_name_plural = 'Sequences'

    def __str__(self):
        return f"{self.name}={self.value}"
