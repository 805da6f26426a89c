from __future__ import annotations

import unittest
from decimal import Decimal

from app.domain.imports import DishRecord, RestaurantRecord
from app.validators.import_record_validator import external_id_of, validate_import_record
from db.repositories.errors import ValidationError


class TestRestaurantRecordValidator(unittest.TestCase):
    def test_accepts_camel_and_snake_case(self) -> None:
        record = validate_import_record(
            "RESTAURANT",
            {
                "externalId": " yelp-1 ",
                "name": "Village Park",
                "postal_code": "47400",
                "cuisineType": "Malaysian",
                "latitude": "3.1",
                "lng": 101.6,
                "openingHours": {"mon": "07:00-17:00"},
                "confidenceScore": 87.5,
                "matchMethod": "fuzzy",
            },
        )

        self.assertIsInstance(record, RestaurantRecord)
        self.assertEqual(record.external_id, "yelp-1")
        self.assertEqual(record.postal_code, "47400")
        self.assertEqual(record.latitude, 3.1)
        self.assertEqual(record.longitude, 101.6)
        self.assertEqual(record.opening_hours, {"mon": "07:00-17:00"})
        self.assertEqual(record.confidence_score, 87.5)
        self.assertEqual(record.match_method, "FUZZY")
        self.assertEqual(record.raw["name"], "Village Park")

    def test_blank_optional_fields_become_none(self) -> None:
        record = validate_import_record("RESTAURANT", {"externalId": "e", "name": "N", "city": "  "})
        self.assertIsNone(record.city)
        self.assertIsNone(record.confidence_score)

    def test_rejects_missing_required_fields(self) -> None:
        for raw in ({"name": "No id"}, {"externalId": "e"}, {"externalId": "e", "name": "   "}):
            with self.subTest(raw=raw):
                with self.assertRaises(ValidationError):
                    validate_import_record("RESTAURANT", raw)

    def test_rejects_out_of_range_values(self) -> None:
        for overrides in (
            {"latitude": 91},
            {"longitude": -181},
            {"latitude": "north"},
            {"confidenceScore": 120},
            {"openingHours": "always"},
            {"features": "wifi"},
        ):
            with self.subTest(overrides=overrides):
                with self.assertRaises(ValidationError):
                    validate_import_record("RESTAURANT", {"externalId": "e", "name": "N", **overrides})

    def test_rejects_non_object(self) -> None:
        with self.assertRaises(ValidationError):
            validate_import_record("RESTAURANT", ["not", "a", "record"])


class TestDishRecordValidator(unittest.TestCase):
    def _raw(self, **overrides) -> dict:
        raw = {
            "externalId": "dish-1",
            "name": "Nasi Lemak",
            "restaurantId": "r-1",
            "restaurantName": "Village Park",
        }
        raw.update(overrides)
        return raw

    def test_parses_typed_fields(self) -> None:
        record = validate_import_record(
            "DISH",
            self._raw(price="12.5", isVegetarian="no", spicyLevel="3", externalMenuId="menu-9"),
        )

        self.assertIsInstance(record, DishRecord)
        self.assertEqual(record.price, Decimal("12.50"))
        self.assertIs(record.is_vegetarian, False)
        self.assertEqual(record.spicy_level, 3)
        self.assertEqual(record.external_menu_id, "menu-9")

    def test_requires_restaurant_reference(self) -> None:
        for missing in ("restaurantId", "restaurantName"):
            with self.subTest(missing=missing):
                raw = self._raw()
                del raw[missing]
                with self.assertRaises(ValidationError):
                    validate_import_record("DISH", raw)

    def test_rejects_bad_values(self) -> None:
        for overrides in (
            {"price": "-1"},
            {"price": "cheap"},
            {"spicyLevel": 6},
            {"spicyLevel": 2.5},
            {"isVegetarian": "sometimes"},
        ):
            with self.subTest(overrides=overrides):
                with self.assertRaises(ValidationError):
                    validate_import_record("DISH", self._raw(**overrides))


class TestDispatch(unittest.TestCase):
    def test_unknown_job_type(self) -> None:
        with self.assertRaises(ValidationError):
            validate_import_record("MENU", {"externalId": "e", "name": "N"})

    def test_external_id_of(self) -> None:
        self.assertEqual(external_id_of({"external_id": " x-1 "}), "x-1")
        self.assertEqual(external_id_of({"name": "no id"}), "unknown")
        self.assertEqual(external_id_of("garbage"), "unknown")


if __name__ == "__main__":
    unittest.main()
