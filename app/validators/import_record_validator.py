"""
app/validators/import_record_validator.py

Validation of raw import records into typed RESTAURANT / DISH variants.
"""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from app.domain.imports import DishRecord, ImportRecord, RestaurantRecord
from db.models.import_job import ImportJobType
from db.repositories.errors import ValidationError

_TRUE_STRINGS = {"1", "true", "yes", "y", "on"}
_FALSE_STRINGS = {"0", "false", "no", "n", "off"}


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    """Return the first non-None value among camelCase / snake_case spellings."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _text(raw: Mapping[str, Any], *keys: str) -> str | None:
    value = _pick(raw, *keys)
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise ValidationError(f"Field '{keys[0]}' must be a scalar value.")
    text = str(value).strip()
    return text or None


def _required_text(raw: Mapping[str, Any], *keys: str) -> str:
    value = _text(raw, *keys)
    if value is None:
        raise ValidationError(f"Missing required field '{keys[0]}'.")
    return value


def _float(raw: Mapping[str, Any], *keys: str) -> float | None:
    value = _pick(raw, *keys)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Field '{keys[0]}' must be numeric.")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Field '{keys[0]}' must be numeric.") from exc
    if not math.isfinite(number):
        raise ValidationError(f"Field '{keys[0]}' must be finite.")
    return number


def _int(raw: Mapping[str, Any], *keys: str) -> int | None:
    number = _float(raw, *keys)
    if number is None:
        return None
    if not number.is_integer():
        raise ValidationError(f"Field '{keys[0]}' must be an integer.")
    return int(number)


def _bool(raw: Mapping[str, Any], *keys: str) -> bool | None:
    value = _pick(raw, *keys)
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE_STRINGS:
        return True
    if lowered in _FALSE_STRINGS:
        return False
    raise ValidationError(f"Field '{keys[0]}' must be a boolean.")


def _decimal(raw: Mapping[str, Any], *keys: str) -> Decimal | None:
    value = _pick(raw, *keys)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Field '{keys[0]}' must be a decimal amount.")
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"Field '{keys[0]}' must be a decimal amount.") from exc
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"Field '{keys[0]}' must be a non-negative amount.")
    return amount.quantize(Decimal("0.01"))


def _check_range(value: float | None, *, name: str, low: float, high: float) -> None:
    if value is not None and not low <= value <= high:
        raise ValidationError(f"Field '{name}' must be between {low} and {high}.")


def _mapping_or_none(raw: Mapping[str, Any], *keys: str) -> dict[str, Any] | None:
    value = _pick(raw, *keys)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ValidationError(f"Field '{keys[0]}' must be an object.")
    return dict(value)


def _list_or_none(raw: Mapping[str, Any], *keys: str) -> list[Any] | None:
    value = _pick(raw, *keys)
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValidationError(f"Field '{keys[0]}' must be a list.")
    return list(value)


def _link_fields(raw: Mapping[str, Any]) -> dict[str, Any]:
    confidence = _float(raw, "confidenceScore", "confidence_score")
    _check_range(confidence, name="confidenceScore", low=0.0, high=100.0)
    match_method = _text(raw, "matchMethod", "match_method")
    return {
        "confidence_score": confidence,
        "match_method": match_method.upper() if match_method else None,
    }


def _require_mapping(raw: Any) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        raise ValidationError("Import record must be a JSON object.")
    return raw


class RestaurantRecordValidator:
    """
    Validates raw restaurant records. ``name`` and ``externalId`` are required.
    """

    job_type = ImportJobType.RESTAURANT

    def validate(self, raw: Any) -> RestaurantRecord:
        raw = _require_mapping(raw)
        latitude = _float(raw, "latitude", "lat")
        longitude = _float(raw, "longitude", "lng")
        _check_range(latitude, name="latitude", low=-90.0, high=90.0)
        _check_range(longitude, name="longitude", low=-180.0, high=180.0)

        return RestaurantRecord(
            external_id=_required_text(raw, "externalId", "external_id"),
            name=_required_text(raw, "name"),
            description=_text(raw, "description"),
            address=_text(raw, "address"),
            city=_text(raw, "city"),
            state=_text(raw, "state"),
            postal_code=_text(raw, "postalCode", "postal_code"),
            country=_text(raw, "country"),
            country_code=_text(raw, "countryCode", "country_code"),
            latitude=latitude,
            longitude=longitude,
            phone=_text(raw, "phone"),
            website=_text(raw, "website"),
            email=_text(raw, "email"),
            cuisine_type=_text(raw, "cuisineType", "cuisine_type"),
            price_range=_text(raw, "priceRange", "price_range"),
            opening_hours=_mapping_or_none(raw, "openingHours", "opening_hours"),
            features=_list_or_none(raw, "features"),
            image_url=_text(raw, "imageUrl", "image_url"),
            logo_url=_text(raw, "logoUrl", "logo_url"),
            raw=dict(raw),
            **_link_fields(raw),
        )


class DishRecordValidator:
    """
    Validates raw dish records. ``name``, ``externalId``, ``restaurantId`` and
    ``restaurantName`` are required.
    """

    job_type = ImportJobType.DISH

    def validate(self, raw: Any) -> DishRecord:
        raw = _require_mapping(raw)
        spicy_level = _int(raw, "spicyLevel", "spicy_level")
        _check_range(spicy_level, name="spicyLevel", low=0, high=5)

        return DishRecord(
            external_id=_required_text(raw, "externalId", "external_id"),
            name=_required_text(raw, "name"),
            restaurant_id=_required_text(raw, "restaurantId", "restaurant_id"),
            restaurant_name=_required_text(raw, "restaurantName", "restaurant_name"),
            description=_text(raw, "description"),
            category=_text(raw, "category"),
            image_url=_text(raw, "imageUrl", "image_url"),
            is_vegetarian=_bool(raw, "isVegetarian", "is_vegetarian"),
            spicy_level=spicy_level,
            price=_decimal(raw, "price"),
            country_code=_text(raw, "countryCode", "country_code"),
            external_menu_id=_text(raw, "externalMenuId", "external_menu_id"),
            raw=dict(raw),
            **_link_fields(raw),
        )


_VALIDATORS: dict[str, RestaurantRecordValidator | DishRecordValidator] = {
    ImportJobType.RESTAURANT: RestaurantRecordValidator(),
    ImportJobType.DISH: DishRecordValidator(),
}


def validate_import_record(job_type: str, raw: Any) -> ImportRecord:
    """
    Validate ``raw`` as the record variant for ``job_type``.
    """

    validator = _VALIDATORS.get(job_type)
    if validator is None:
        raise ValidationError(f"Unsupported import job type '{job_type}'.")
    return validator.validate(raw)


def external_id_of(raw: Any) -> str:
    """Best-effort item identifier for error reporting."""
    if isinstance(raw, Mapping):
        value = _pick(raw, "externalId", "external_id")
        if value is not None and str(value).strip():
            return str(value).strip()
    return "unknown"
