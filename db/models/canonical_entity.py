"""
db/models/canonical_entity.py

Canonical restaurant and dish records that every external source is merged into.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Float, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONDocument, TimestampMixin


class DataSource:
    USER_CREATED = "USER_CREATED"
    IMPORTED = "IMPORTED"


class Restaurant(Base, TimestampMixin):
    __tablename__ = "restaurants"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    state: Mapped[str | None] = mapped_column(String(120), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    country: Mapped[str | None] = mapped_column(String(120), nullable=True)
    country_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cuisine_type: Mapped[str | None] = mapped_column(String(120), nullable=True)
    price_range: Mapped[str | None] = mapped_column(String(32), nullable=True)
    opening_hours: Mapped[Any | None] = mapped_column(JSONDocument, nullable=True)
    features: Mapped[Any | None] = mapped_column(JSONDocument, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    data_source: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=DataSource.USER_CREATED,
    )
    external_source_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_restaurants_slug", "slug"),
        Index("ix_restaurants_city", "city"),
        Index("ix_restaurants_country_code", "country_code"),
    )


class Dish(Base, TimestampMixin):
    __tablename__ = "dishes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    restaurant_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Restaurant reference carried by the import record",
    )
    restaurant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(120), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    is_vegetarian: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    spicy_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    country_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    data_source: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=DataSource.USER_CREATED,
    )
    external_source_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_dishes_slug", "slug"),
        Index("ix_dishes_restaurant_id", "restaurant_id"),
    )
