"""
Repository base - shared Django ORM plumbing.

Concrete repositories provide the model class, the entity/model
conversion and how a filter object becomes a queryset. Everything
else (upsert, lookups, counting, deletion) lives here.

Principles:
- Repositories are stateless
- No business rules, only persistence and queries
- Unique key collisions surface as ConcurrencyError
"""

from abc import ABC, abstractmethod
from typing import Generic, List, Optional, Type, TypeVar
import logging

from django.db import IntegrityError, models, transaction
from django.db.models import QuerySet

from src.core.shared.exceptions import ConcurrencyError, EntityNotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")  # Entity
M = TypeVar("M", bound=models.Model)  # Model
F = TypeVar("F")  # Filter criteria


class BaseRepository(ABC, Generic[T, M, F]):
    """
    Abstract base for Django repositories.

    Type Parameters:
        T: Domain entity
        M: Django model
        F: Filter dataclass understood by ``find`` and ``count``

    Example:
        class DjangoTicketRepository(BaseRepository[TicketEntity, TicketModel, TicketFilter]):
            model_class = TicketModel
            entity_name = "Ticket"
    """

    model_class: Type[M]
    entity_name: str = "Entity"
    default_ordering: tuple = ("-created_at",)

    @abstractmethod
    def to_entity(self, model: M) -> T:
        raise NotImplementedError

    @abstractmethod
    def to_model(self, entity: T) -> M:
        """Unsaved model carrying every column of the entity."""
        raise NotImplementedError

    @abstractmethod
    def _apply_filter(self, qs: QuerySet, criteria: F) -> QuerySet:
        raise NotImplementedError

    def _get_base_queryset(self) -> QuerySet:
        return self.model_class.objects.all()

    def save(self, entity: T) -> None:
        """
        Create or update by primary key.

        Raises:
            ConcurrencyError: If a unique column collides with another row
        """
        model = self.to_model(entity)
        defaults = {
            f.attname: getattr(model, f.attname)
            for f in model._meta.concrete_fields
            if not f.primary_key
        }
        try:
            with transaction.atomic():
                self.model_class.objects.update_or_create(pk=model.pk, defaults=defaults)
        except IntegrityError as e:
            logger.warning("%s %s collided on save: %s", self.entity_name, model.pk, e)
            raise ConcurrencyError(f"{self.entity_name} {model.pk} conflicts with an existing record")

        logger.debug("%s saved: %s", self.entity_name, model.pk)

    def get_by_id(self, entity_id: str) -> Optional[T]:
        try:
            return self.to_entity(self._get_base_queryset().get(pk=entity_id))
        except self.model_class.DoesNotExist:
            return None

    def _get_one(self, **lookup) -> Optional[T]:
        model = self._get_base_queryset().filter(**lookup).first()
        return self.to_entity(model) if model is not None else None

    def delete(self, entity_id: str) -> None:
        """
        Raises:
            EntityNotFoundError: If nothing was deleted
        """
        deleted, _ = self.model_class.objects.filter(pk=entity_id).delete()
        if not deleted:
            raise EntityNotFoundError(
                f"{self.entity_name} {entity_id} not found",
                entity_type=self.entity_name,
                entity_id=entity_id,
            )
        logger.info("%s deleted: %s", self.entity_name, entity_id)

    def exists(self, entity_id: str) -> bool:
        return self.model_class.objects.filter(pk=entity_id).exists()

    def _filtered(self, criteria: Optional[F]) -> QuerySet:
        qs = self._get_base_queryset()
        if criteria is not None:
            qs = self._apply_filter(qs, criteria)
        return qs

    def find(self, criteria: F, offset: int = 0, limit: Optional[int] = None) -> List[T]:
        """
        Matching entities in ``default_ordering``.

        ``offset``/``limit`` are applied to the queryset, so only one
        page of rows is fetched and mapped.
        """
        qs = self._filtered(criteria).order_by(*self.default_ordering)
        if limit is not None:
            qs = qs[offset:offset + limit]
        elif offset:
            qs = qs[offset:]
        return [self.to_entity(m) for m in qs]

    def list_all(self) -> List[T]:
        qs = self._get_base_queryset().order_by(*self.default_ordering)
        return [self.to_entity(m) for m in qs]

    def count(self, criteria: Optional[F] = None) -> int:
        return self._filtered(criteria).count()
