"""
app/mappers package marker.
"""

from app.mappers.record_mapper import DISH_FIELDS, RESTAURANT_FIELDS, entity_columns, slugify

__all__ = [
    "DISH_FIELDS",
    "RESTAURANT_FIELDS",
    "entity_columns",
    "slugify",
]
