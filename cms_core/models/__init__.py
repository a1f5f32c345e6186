# =============================================================================
# cms_core/models/__init__.py
# Website Entities
# =============================================================================

from .entities import (
    CONTENT_SECTIONS,
    SETTINGS_KEYS,
    MAX_IMAGE_SIZE,
    MAX_VIDEO_SIZE,
    PROTECTED_CATEGORY,
    Product,
    Testimonial,
    Category,
    MediaItem,
    UploadFile,
    generate_slug,
    validate_rating,
    validate_upload,
    alt_from_filename,
    make_media_id,
    utc_now_iso,
)

__all__ = [
    "CONTENT_SECTIONS",
    "SETTINGS_KEYS",
    "MAX_IMAGE_SIZE",
    "MAX_VIDEO_SIZE",
    "PROTECTED_CATEGORY",
    "Product",
    "Testimonial",
    "Category",
    "MediaItem",
    "UploadFile",
    "generate_slug",
    "validate_rating",
    "validate_upload",
    "alt_from_filename",
    "make_media_id",
    "utc_now_iso",
]
