"""
Persistence for ImportLink rows (external identity -> canonical entity).
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.base import utc_now
from db.models.import_link import ImportLink, ImportLinkStatus


class ImportLinkRepository:
    """
    Lookup and write access for import links.

    ``create_link`` flushes immediately so a unique-constraint violation on
    the external identity surfaces as ``IntegrityError`` at the call site.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_by_external_identity(
        self,
        *,
        entity_type: str,
        source_id: str,
        external_id: str,
    ) -> ImportLink | None:
        stmt = select(ImportLink).where(
            ImportLink.entity_type == entity_type,
            ImportLink.source_id == source_id,
            ImportLink.external_id == external_id,
        )
        return self._session.scalars(stmt).one_or_none()

    def find_by_entity_source(
        self,
        *,
        entity_type: str,
        entity_id: uuid.UUID,
        source_id: str,
    ) -> ImportLink | None:
        stmt = select(ImportLink).where(
            ImportLink.entity_type == entity_type,
            ImportLink.entity_id == entity_id,
            ImportLink.source_id == source_id,
        )
        return self._session.scalars(stmt).one_or_none()

    def list_for_entity(self, *, entity_type: str, entity_id: uuid.UUID) -> list[ImportLink]:
        stmt = (
            select(ImportLink)
            .where(ImportLink.entity_type == entity_type, ImportLink.entity_id == entity_id)
            .order_by(ImportLink.source_id)
        )
        return list(self._session.scalars(stmt).all())

    def create_link(
        self,
        *,
        entity_type: str,
        entity_id: uuid.UUID,
        source_id: str,
        external_id: str,
        confidence_score: float,
        match_method: str,
        raw_data: dict[str, Any] | None = None,
        external_menu_id: str | None = None,
    ) -> ImportLink:
        now = utc_now()
        link = ImportLink(
            entity_type=entity_type,
            entity_id=entity_id,
            source_id=source_id,
            external_id=external_id,
            external_menu_id=external_menu_id,
            raw_data=raw_data,
            confidence_score=confidence_score,
            match_method=match_method,
            status=ImportLinkStatus.ACTIVE,
            import_date=now,
            last_updated=now,
        )
        self._session.add(link)
        self._session.flush()
        return link

    def upsert_link(
        self,
        *,
        entity_type: str,
        entity_id: uuid.UUID,
        source_id: str,
        external_id: str,
        confidence_score: float,
        match_method: str,
        raw_data: dict[str, Any] | None = None,
        external_menu_id: str | None = None,
    ) -> ImportLink:
        """
        Refresh the link for ``(entity_id, source_id)``, creating it if absent.
        """

        link = self.find_by_entity_source(
            entity_type=entity_type,
            entity_id=entity_id,
            source_id=source_id,
        )
        if link is None:
            return self.create_link(
                entity_type=entity_type,
                entity_id=entity_id,
                source_id=source_id,
                external_id=external_id,
                confidence_score=confidence_score,
                match_method=match_method,
                raw_data=raw_data,
                external_menu_id=external_menu_id,
            )

        link.external_id = external_id
        if external_menu_id is not None:
            link.external_menu_id = external_menu_id
        link.raw_data = raw_data
        link.confidence_score = confidence_score
        link.match_method = match_method
        link.status = ImportLinkStatus.ACTIVE
        link.last_updated = utc_now()
        self._session.flush()
        return link
