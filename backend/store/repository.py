"""
Entity Repository
=================

Generic CRUD over Django models, with lifecycle hooks.

TRANSACTION STRATEGY:
--------------------
create() and delete() run the primary write and every registered hook
(see store.hooks) inside ONE transaction.atomic() block:

    with transaction.atomic(using=alias):
        INSERT / DELETE
        hook 1, hook 2, ...

If any hook raises, the primary write is rolled back with it. There is no
state where the row exists but its derived counters are stale.

The database alias is the transaction handle. It is passed explicitly to
every query and every hook, nothing reads an ambient default.

DERIVED FIELDS:
---------------
A model may declare ``DERIVED_FIELDS = ('article_count', ...)``. Those
columns belong to the hooks: create() resets them to their defaults and
update() refuses them.
"""

import logging
from typing import Any, Dict, List, Optional, Type

from django.db import DEFAULT_DB_ALIAS, DatabaseError, IntegrityError, models, transaction
from django.utils import timezone

from . import hooks
from .exceptions import ConstraintError, NotFoundError, QueryError

logger = logging.getLogger(__name__)


def derived_fields(model: Type[models.Model]) -> tuple:
    return tuple(getattr(model, 'DERIVED_FIELDS', ()))


class Repository:
    """CRUD entry point bound to one database alias."""

    def __init__(self, using: str = DEFAULT_DB_ALIAS):
        self.using = using

    def _objects(self, model):
        return model._default_manager.db_manager(self.using)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, instance: models.Model) -> Any:
        """
        INSERT ``instance`` and fire its after_create hooks atomically.

        Returns the new primary key.
        """
        model = type(instance)
        for name in derived_fields(model):
            setattr(instance, name, model._meta.get_field(name).get_default())

        try:
            with transaction.atomic(using=self.using):
                instance.save(using=self.using, force_insert=True)
                hooks.fire(hooks.AFTER_CREATE, instance, using=self.using)
        except IntegrityError as exc:
            instance.pk = None
            raise ConstraintError(f"Could not create {model.__name__}: {exc}") from exc
        except DatabaseError as exc:
            instance.pk = None
            raise QueryError(f"Could not create {model.__name__}: {exc}") from exc
        except Exception:
            instance.pk = None
            raise

        logger.info("Created %s pk=%s", model.__name__, instance.pk)
        return instance.pk

    def update(self, model: Type[models.Model], pk: Any, fields: Dict[str, Any]) -> None:
        """Partial update of one row. Raises NotFoundError if it is missing."""
        updated = self.update_where(model, {'pk': pk}, fields)
        if updated == 0:
            raise NotFoundError(f"{model.__name__} {pk} not found")

    def update_where(self, model: Type[models.Model], filters: Dict[str, Any],
                     fields: Dict[str, Any]) -> int:
        """Partial update of every row matching ``filters``. Returns the row count."""
        values = self._clean_update_fields(model, fields)
        try:
            with transaction.atomic(using=self.using):
                return self._objects(model).filter(**filters).update(**values)
        except IntegrityError as exc:
            raise ConstraintError(f"Could not update {model.__name__}: {exc}") from exc
        except DatabaseError as exc:
            raise QueryError(f"Could not update {model.__name__}: {exc}") from exc

    def delete(self, model: Type[models.Model], pk: Any) -> None:
        """DELETE one row and fire its after_delete hooks atomically."""
        try:
            with transaction.atomic(using=self.using):
                instance = self._objects(model).select_for_update().filter(pk=pk).first()
                if instance is None:
                    raise NotFoundError(f"{model.__name__} {pk} not found")
                self._delete_instance(instance)
        except IntegrityError as exc:
            raise ConstraintError(f"Could not delete {model.__name__} {pk}: {exc}") from exc
        except DatabaseError as exc:
            raise QueryError(f"Could not delete {model.__name__} {pk}: {exc}") from exc

        logger.info("Deleted %s pk=%s", model.__name__, pk)

    def delete_where(self, model: Type[models.Model], **filters) -> int:
        """
        Delete every row matching ``filters``, one by one, in one transaction.

        QuerySet.delete() would skip the hooks, so each row goes through
        the same path as delete().
        """
        try:
            with transaction.atomic(using=self.using):
                instances = list(
                    self._objects(model).select_for_update().filter(**filters).order_by('pk')
                )
                for instance in instances:
                    self._delete_instance(instance)
        except IntegrityError as exc:
            raise ConstraintError(f"Could not delete {model.__name__} rows: {exc}") from exc
        except DatabaseError as exc:
            raise QueryError(f"Could not delete {model.__name__} rows: {exc}") from exc

        logger.info("Deleted %d %s row(s)", len(instances), model.__name__)
        return len(instances)

    def _delete_instance(self, instance: models.Model) -> None:
        pk = instance.pk
        instance.delete(using=self.using)
        # Django clears pk on delete; hooks still need to know which row it was
        instance.pk = pk
        hooks.fire(hooks.AFTER_DELETE, instance, using=self.using)

    def _clean_update_fields(self, model, fields):
        if not fields:
            raise ValueError("No fields to update")

        concrete = {
            f.name: f for f in model._meta.concrete_fields
        }
        derived = derived_fields(model)
        values = {}
        for name, value in fields.items():
            field = concrete.get(name)
            if field is None:
                raise ValueError(f"{model.__name__} has no field {name!r}")
            if field.primary_key:
                raise ValueError(f"{model.__name__}.{name} is the primary key")
            if name in derived:
                raise ValueError(f"{model.__name__}.{name} is maintained automatically")
            values[field.attname] = value

        # QuerySet.update() skips auto_now
        for field in model._meta.concrete_fields:
            if getattr(field, 'auto_now', False) and field.attname not in values:
                values[field.attname] = timezone.now()
        return values

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_id(self, model: Type[models.Model], pk: Any) -> models.Model:
        try:
            return self._objects(model).get(pk=pk)
        except model.DoesNotExist as exc:
            raise NotFoundError(f"{model.__name__} {pk} not found") from exc
        except DatabaseError as exc:
            raise QueryError(f"Could not load {model.__name__} {pk}: {exc}") from exc

    def find(self, model: Type[models.Model], order_by: Optional[tuple] = None,
             **filters) -> List[models.Model]:
        """Rows matching ``filters``. An empty result is not an error."""
        queryset = self._objects(model).filter(**filters)
        if order_by:
            queryset = queryset.order_by(*order_by)
        try:
            return list(queryset)
        except DatabaseError as exc:
            raise QueryError(f"Could not query {model.__name__}: {exc}") from exc

    def find_required(self, model: Type[models.Model], order_by: Optional[tuple] = None,
                      **filters) -> List[models.Model]:
        """Like find(), but an empty result raises NotFoundError."""
        rows = self.find(model, order_by=order_by, **filters)
        if not rows:
            described = ', '.join(f"{k}={v!r}" for k, v in sorted(filters.items()))
            raise NotFoundError(f"No {model.__name__} rows where {described}")
        return rows

    def count(self, model: Type[models.Model], **filters) -> int:
        try:
            return self._objects(model).filter(**filters).count()
        except DatabaseError as exc:
            raise QueryError(f"Could not count {model.__name__}: {exc}") from exc
