"""
app/mappers/record_mapper.py

Mapping from validated import records to canonical entity columns.
"""

from __future__ import annotations

import re
from typing import Any

from app.domain.imports import DishRecord, ImportRecord, RestaurantRecord
from db.models.canonical_entity import Dish, Restaurant
from db.models.import_job import ImportJobType

RESTAURANT_FIELDS: tuple[str, ...] = (
    "description",
    "address",
    "city",
    "state",
    "postal_code",
    "country",
    "country_code",
    "latitude",
    "longitude",
    "phone",
    "website",
    "email",
    "cuisine_type",
    "price_range",
    "opening_hours",
    "features",
    "image_url",
    "logo_url",
)

DISH_FIELDS: tuple[str, ...] = (
    "description",
    "restaurant_id",
    "restaurant_name",
    "category",
    "image_url",
    "is_vegetarian",
    "spicy_level",
    "price",
    "country_code",
)

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """
    Lowercase ``name``, collapse every run of non ``[a-z0-9]`` characters to a
    single hyphen and trim hyphens from both ends.

    >>> slugify("  Joe's Café & Grill!! ")
    'joe-s-caf-grill'
    """

    return _NON_SLUG_CHARS.sub("-", name.lower()).strip("-")


def entity_type_of(record: ImportRecord) -> str:
    if isinstance(record, RestaurantRecord):
        return ImportJobType.RESTAURANT
    if isinstance(record, DishRecord):
        return ImportJobType.DISH
    raise TypeError(f"Unsupported import record type: {type(record).__name__}")


def entity_model_of(record: ImportRecord) -> type[Restaurant] | type[Dish]:
    return Restaurant if isinstance(record, RestaurantRecord) else Dish


def entity_columns(record: ImportRecord) -> dict[str, Any]:
    """
    Optional canonical columns carried by ``record``. None means "no value
    from this source" and is left for the repository to skip.
    """

    names = RESTAURANT_FIELDS if isinstance(record, RestaurantRecord) else DISH_FIELDS
    return {name: getattr(record, name) for name in names}
