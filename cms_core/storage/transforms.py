# =============================================================================
# cms_core/storage/transforms.py
# Application <-> Database Row Mapping
# =============================================================================
"""
Pure two-way mapping between camelCase application records and the
snake_case rows of the hosted database.

``*_to_db`` only emits columns whose application key is present in the
input, so the same function serves inserts and partial updates without
blanking untouched columns. Inputs are never mutated.
"""

from __future__ import annotations
from typing import Any, Dict, Tuple

FieldMap = Tuple[Tuple[str, str], ...]

# (application key, database column)
PRODUCT_FIELDS: FieldMap = (
    ("name", "name"),
    ("category", "category"),
    ("description", "description"),
    ("image", "image"),
    ("features", "features"),
    ("price", "price"),
    ("specifications", "specifications"),
    ("inStock", "in_stock"),
    ("featured", "featured"),
)

MEDIA_FIELDS: FieldMap = (
    ("id", "id"),
    ("name", "name"),
    ("url", "url"),
    ("type", "type"),
    ("category", "category"),
    ("alt", "alt"),
    ("size", "size"),
    ("uploadDate", "upload_date"),
)

TESTIMONIAL_FIELDS: FieldMap = (
    ("name", "name"),
    ("company", "company"),
    ("text", "text"),
    ("rating", "rating"),
    ("image", "image"),
)

CATEGORY_FIELDS: FieldMap = (
    ("name", "name"),
    ("slug", "slug"),
    ("description", "description"),
    ("display_order", "display_order"),
    ("active", "active"),
)


def _to_db(record: Dict[str, Any], fields: FieldMap) -> Dict[str, Any]:
    return {column: record[key] for key, column in fields if key in record}


def _from_db(row: Dict[str, Any], fields: FieldMap) -> Dict[str, Any]:
    result = {}
    if "id" in row:
        result["id"] = row["id"]
    for key, column in fields:
        if column in row:
            result[key] = row[column]
    return result


def product_to_db(product: Dict[str, Any]) -> Dict[str, Any]:
    return _to_db(product, PRODUCT_FIELDS)


def product_from_db(row: Dict[str, Any]) -> Dict[str, Any]:
    return _from_db(row, PRODUCT_FIELDS)


def media_to_db(media: Dict[str, Any]) -> Dict[str, Any]:
    return _to_db(media, MEDIA_FIELDS)


def media_from_db(row: Dict[str, Any]) -> Dict[str, Any]:
    return _from_db(row, MEDIA_FIELDS)


def testimonial_to_db(testimonial: Dict[str, Any]) -> Dict[str, Any]:
    return _to_db(testimonial, TESTIMONIAL_FIELDS)


def testimonial_from_db(row: Dict[str, Any]) -> Dict[str, Any]:
    return _from_db(row, TESTIMONIAL_FIELDS)


def category_to_db(category: Dict[str, Any]) -> Dict[str, Any]:
    return _to_db(category, CATEGORY_FIELDS)


def category_from_db(row: Dict[str, Any]) -> Dict[str, Any]:
    return _from_db(row, CATEGORY_FIELDS)


# =============================================================================
# SECTION-KEYED DOCUMENTS (content / settings)
# =============================================================================

def document_to_sections(document: Dict[str, Any], key_column: str, value_column: str,
                         exclude: Tuple[str, ...] = ()) -> list:
    """Split a nested document into one row per top-level section."""
    return [
        {key_column: section, value_column: value}
        for section, value in document.items()
        if section not in exclude and value is not None
    ]


def sections_to_document(rows: list, key_column: str, value_column: str) -> Dict[str, Any]:
    """Reassemble section rows into the nested document."""
    return {row[key_column]: row[value_column] for row in rows}
