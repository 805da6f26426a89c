"""
app/services/record_upsert_service.py

Matches external records to canonical restaurants/dishes and merges them.

Lookup is by external identity ``(entity_type, source_id, external_id)``. A
miss creates the canonical entity and its link inside one savepoint; the
unique constraint on the link's external identity decides the winner when
two workers create the same record concurrently, and the loser retries once
as a match.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import get_import_pipeline_settings
from app.domain.imports import DishRecord, ImportRecord, RestaurantRecord, UpsertResult
from app.mappers.record_mapper import entity_columns, entity_model_of, entity_type_of, slugify
from db.models.import_link import ImportLink
from db.repositories.canonical_entity_repository import CanonicalEntityRepository
from db.repositories.errors import ValidationError
from db.repositories.import_link_repository import ImportLinkRepository

logger = logging.getLogger(__name__)


class RecordUpsertService:
    """
    Idempotent upsert of one validated record per call.

    Runs inside the caller's transaction and never commits.
    """

    def __init__(
        self,
        session: Session,
        *,
        default_confidence_score: float | None = None,
        default_match_method: str | None = None,
    ) -> None:
        settings = get_import_pipeline_settings()
        self._session = session
        self._links = ImportLinkRepository(session)
        self._default_confidence_score = (
            settings.default_confidence_score
            if default_confidence_score is None
            else default_confidence_score
        )
        self._default_match_method = default_match_method or settings.default_match_method

    def upsert(self, source_id: str, record: ImportRecord) -> UpsertResult:
        if isinstance(record, RestaurantRecord):
            return self.upsert_restaurant(source_id, record)
        if isinstance(record, DishRecord):
            return self.upsert_dish(source_id, record)
        raise ValidationError(f"Unsupported import record type: {type(record).__name__}")

    def upsert_restaurant(self, source_id: str, record: RestaurantRecord) -> UpsertResult:
        return self._upsert(source_id, record)

    def upsert_dish(self, source_id: str, record: DishRecord) -> UpsertResult:
        return self._upsert(source_id, record)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _upsert(self, source_id: str, record: ImportRecord, *, allow_retry: bool = True) -> UpsertResult:
        source_id = source_id.strip()
        if not source_id:
            raise ValidationError("source_id must be non-empty.")

        slug = slugify(record.name)
        if not slug:
            raise ValidationError(f"Name '{record.name}' has no characters usable in a slug.")

        entity_type = entity_type_of(record)
        entities = CanonicalEntityRepository(self._session, entity_model_of(record))
        fields = entity_columns(record)

        link = self._links.find_by_external_identity(
            entity_type=entity_type,
            source_id=source_id,
            external_id=record.external_id,
        )
        if link is not None:
            return self._merge(source_id, record, link, entities, slug, fields)

        try:
            with self._session.begin_nested():
                entity = entities.create(name=record.name.strip(), slug=slug, fields=fields)
                self._links.create_link(
                    entity_type=entity_type,
                    entity_id=entity.id,
                    source_id=source_id,
                    external_id=record.external_id,
                    external_menu_id=getattr(record, "external_menu_id", None),
                    **self._link_values(record),
                )
        except IntegrityError:
            winner = self._links.find_by_external_identity(
                entity_type=entity_type,
                source_id=source_id,
                external_id=record.external_id,
            )
            if winner is None or not allow_retry:
                raise
            logger.info(
                "Concurrent create lost, retrying as match entity_type=%s source_id=%s external_id=%s",
                entity_type,
                source_id,
                record.external_id,
            )
            return self._upsert(source_id, record, allow_retry=False)

        logger.debug(
            "Created canonical entity entity_type=%s entity_id=%s source_id=%s external_id=%s",
            entity_type,
            entity.id,
            source_id,
            record.external_id,
        )
        return UpsertResult(entity_id=entity.id, created=True)

    def _merge(
        self,
        source_id: str,
        record: ImportRecord,
        link: ImportLink,
        entities: CanonicalEntityRepository,
        slug: str,
        fields: dict[str, Any],
    ) -> UpsertResult:
        entity_id = link.entity_id
        created = False
        merged = entities.merge(entity_id=entity_id, name=record.name.strip(), slug=slug, fields=fields)
        if not merged:
            # Link outlived its entity; recreate it and repoint the link.
            logger.warning(
                "Import link points at a missing entity entity_type=%s entity_id=%s",
                link.entity_type,
                entity_id,
            )
            entity = entities.create(name=record.name.strip(), slug=slug, fields=fields)
            link.entity_id = entity.id
            entity_id = entity.id
            created = True

        self._links.upsert_link(
            entity_type=link.entity_type,
            entity_id=entity_id,
            source_id=source_id,
            external_id=record.external_id,
            external_menu_id=getattr(record, "external_menu_id", None),
            **self._link_values(record),
        )
        return UpsertResult(entity_id=entity_id, created=created)

    def _link_values(self, record: ImportRecord) -> dict[str, Any]:
        return {
            "confidence_score": (
                self._default_confidence_score
                if record.confidence_score is None
                else record.confidence_score
            ),
            "match_method": record.match_method or self._default_match_method,
            "raw_data": record.raw or None,
        }
