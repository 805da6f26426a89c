"""
Write access to canonical restaurants and dishes.

All methods are transaction-safe. The caller controls commit/rollback;
this repository never commits on its own.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from sqlalchemy import update
from sqlalchemy.orm import Session

from db.base import utc_now
from db.models.canonical_entity import DataSource, Dish, Restaurant

EntityT = TypeVar("EntityT", Restaurant, Dish)


class CanonicalEntityRepository(Generic[EntityT]):
    """
    Create and merge canonical entities of one model type.

    Merge semantics: ``name`` and ``slug`` are always overwritten; every other
    column is written only when the incoming value is not None, so an
    existing value is never cleared by a sparser source.
    """

    def __init__(self, session: Session, model: type[EntityT]) -> None:
        self._session = session
        self._model = model

    def get(self, entity_id: uuid.UUID) -> EntityT | None:
        return self._session.get(self._model, entity_id, populate_existing=True)

    def create(
        self,
        *,
        name: str,
        slug: str,
        fields: Mapping[str, Any],
    ) -> EntityT:
        entity = self._model(
            name=name,
            slug=slug,
            data_source=DataSource.IMPORTED,
            external_source_count=1,
            **{key: value for key, value in fields.items() if value is not None},
        )
        self._session.add(entity)
        self._session.flush()
        return entity

    def merge(
        self,
        *,
        entity_id: uuid.UUID,
        name: str,
        slug: str,
        fields: Mapping[str, Any],
    ) -> bool:
        """
        Merge incoming fields into an existing entity.

        Returns False when no row with ``entity_id`` exists.
        """

        values: dict[str, Any] = {
            "name": name,
            "slug": slug,
            "data_source": DataSource.IMPORTED,
            "external_source_count": self._model.external_source_count + 1,
            "updated_at": utc_now(),
        }
        values.update({key: value for key, value in fields.items() if value is not None})

        stmt = (
            update(self._model)
            .where(self._model.id == entity_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(stmt).rowcount == 1
