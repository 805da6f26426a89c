"""
app/domain/imports.py

Typed import records and batch processing results.

``ImportRecord`` is a tagged variant: a batch of a RESTAURANT job carries
``RestaurantRecord`` items and a batch of a DISH job carries ``DishRecord``
items. Each variant has its own validator and upsert routine.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Union


@dataclass(frozen=True)
class RestaurantRecord:
    """
    Validated external restaurant record.
    """

    external_id: str
    name: str
    description: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    country_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    phone: str | None = None
    website: str | None = None
    email: str | None = None
    cuisine_type: str | None = None
    price_range: str | None = None
    opening_hours: dict[str, Any] | None = None
    features: list[Any] | None = None
    image_url: str | None = None
    logo_url: str | None = None
    confidence_score: float | None = None
    match_method: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DishRecord:
    """
    Validated external dish record. ``restaurant_id`` references the
    restaurant the dish is served at.
    """

    external_id: str
    name: str
    restaurant_id: str
    restaurant_name: str
    description: str | None = None
    category: str | None = None
    image_url: str | None = None
    is_vegetarian: bool | None = None
    spicy_level: int | None = None
    price: Decimal | None = None
    country_code: str | None = None
    external_menu_id: str | None = None
    confidence_score: float | None = None
    match_method: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


ImportRecord = Union[RestaurantRecord, DishRecord]


@dataclass(frozen=True)
class UpsertResult:
    entity_id: uuid.UUID
    created: bool


@dataclass(frozen=True)
class BatchItemError:
    """
    One failed item: its external id (or ``"unknown"``) and the reason.
    """

    item: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"item": self.item, "error": self.error}


@dataclass(frozen=True)
class BatchProcessingResult:
    """
    Outcome of one ``process_batch`` call.

    ``skipped`` is True when the batch was not claimable (already claimed or
    terminal) and nothing was written.
    """

    job_id: uuid.UUID
    batch_id: uuid.UUID
    status: str
    success_count: int = 0
    error_count: int = 0
    errors: tuple[BatchItemError, ...] = ()
    skipped: bool = False
