"""
Atomic named counters on top of the ORM.

The counter row is locked with SELECT ... FOR UPDATE and bumped with
``UPDATE ... SET value = value + 1``, so two concurrent transactions
serialize on the row and never read the same value.
"""

import logging

from django.db import transaction
from django.db.models import F

from .models import SequenceModel

logger = logging.getLogger(__name__)


class DjangoSequenceGenerator:
    """
    Example:
        sequence = DjangoSequenceGenerator()
        sequence.next_value("ticket")  # 1
        sequence.next_value("ticket")  # 2
    """

    def next_value(self, name: str) -> int:
        with transaction.atomic():
            SequenceModel.objects.select_for_update().get_or_create(name=name)
            SequenceModel.objects.filter(name=name).update(value=F('value') + 1)
            value = SequenceModel.objects.values_list('value', flat=True).get(name=name)

        logger.debug("Sequence %s -> %d", name, value)
        return value

    def current(self, name: str) -> int:
        return (
            SequenceModel.objects.filter(name=name)
            .values_list('value', flat=True)
            .first()
        ) or 0
