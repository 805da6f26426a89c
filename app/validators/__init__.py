"""
app/validators package marker.
"""

from app.validators.analytics_event_validator import AnalyticsEventValidator, derive_event_id
from app.validators.import_record_validator import (
    DishRecordValidator,
    RestaurantRecordValidator,
    validate_import_record,
)

__all__ = [
    "AnalyticsEventValidator",
    "DishRecordValidator",
    "RestaurantRecordValidator",
    "derive_event_id",
    "validate_import_record",
]
