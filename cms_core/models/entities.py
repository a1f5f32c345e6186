# =============================================================================
# cms_core/models/entities.py
# Website Entities, Validation and Upload Rules
# =============================================================================
"""
Entity definitions for the website CMS.

Backends exchange plain camelCase dictionaries (the shape stored in the
local blobs and in export files). The dataclasses here validate those
dictionaries on create and fill in defaults.
"""

from __future__ import annotations
import mimetypes
import random
import re
import string
import time
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional

from cms_core.errors import DataValidationError, UploadValidationError


CONTENT_SECTIONS = ("hero", "about", "cta", "statistics")
SETTINGS_KEYS = ("company", "contact", "social", "seo", "categories", "navigation", "theme")

MAX_IMAGE_SIZE = 5 * 1024 * 1024
MAX_VIDEO_SIZE = 50 * 1024 * 1024

PROTECTED_CATEGORY = "All"

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def generate_slug(name: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to '-', strip edge hyphens."""
    return _SLUG_PATTERN.sub("-", (name or "").lower()).strip("-")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _require(data: Dict[str, Any], entity: str, *fields: str) -> None:
    for name in fields:
        value = data.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise DataValidationError(
                f"{entity.capitalize()} {name} is required",
                entity=entity,
                field=name,
            )


def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# =============================================================================
# PRODUCTS
# =============================================================================

@dataclass
class Product:
    name: str
    category: str
    description: str = ""
    image: str = ""
    features: List[str] = field(default_factory=list)
    price: str = ""
    specifications: Dict[str, str] = field(default_factory=dict)
    inStock: bool = True
    featured: bool = False
    id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Product:
        _require(data, "product", "name", "category")
        return cls(
            name=str(data["name"]).strip(),
            category=str(data["category"]).strip(),
            description=data.get("description") or "",
            image=data.get("image") or "",
            features=list(data.get("features") or []),
            price=str(data.get("price") or ""),
            specifications=dict(data.get("specifications") or {}),
            inStock=bool(data.get("inStock", True)),
            featured=bool(data.get("featured", False)),
            id=data.get("id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _clean(asdict(self))


# =============================================================================
# TESTIMONIALS
# =============================================================================

def validate_rating(rating: Any) -> int:
    try:
        value = int(rating)
    except (TypeError, ValueError):
        raise DataValidationError(
            f"Rating must be a whole number, got {rating!r}",
            entity="testimonial",
            field="rating",
        )
    if not 1 <= value <= 5:
        raise DataValidationError(
            f"Rating must be between 1 and 5, got {value}",
            entity="testimonial",
            field="rating",
        )
    return value


@dataclass
class Testimonial:
    name: str
    text: str
    company: str = ""
    rating: int = 5
    image: str = ""
    id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Testimonial:
        _require(data, "testimonial", "name", "text")
        return cls(
            name=str(data["name"]).strip(),
            text=str(data["text"]).strip(),
            company=data.get("company") or "",
            rating=validate_rating(data.get("rating", 5)),
            image=data.get("image") or "",
            id=data.get("id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _clean(asdict(self))


# =============================================================================
# CATEGORIES
# =============================================================================

@dataclass
class Category:
    name: str
    slug: str = ""
    description: str = ""
    display_order: int = 0
    active: bool = True
    id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Category:
        _require(data, "category", "name")
        name = str(data["name"]).strip()
        return cls(
            name=name,
            slug=data.get("slug") or generate_slug(name),
            description=data.get("description") or "",
            display_order=int(data.get("display_order") or 0),
            active=bool(data.get("active", True)),
            id=data.get("id"),
        )

    @property
    def is_protected(self) -> bool:
        return self.name == PROTECTED_CATEGORY

    def to_dict(self) -> Dict[str, Any]:
        return _clean(asdict(self))


# =============================================================================
# MEDIA
# =============================================================================

@dataclass
class UploadFile:
    """An uploaded file held in memory (name, raw bytes, MIME type)."""
    name: str
    content: bytes
    content_type: str = ""

    def __post_init__(self):
        if not self.content_type:
            guessed, _ = mimetypes.guess_type(self.name)
            self.content_type = guessed or "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        suffix = PurePosixPath(self.name).suffix.lstrip(".").lower()
        if suffix:
            return suffix
        guessed = mimetypes.guess_extension(self.content_type) or ""
        return guessed.lstrip(".") or "bin"

    @property
    def is_video(self) -> bool:
        return self.content_type.startswith("video/")


def validate_upload(file: UploadFile, allow_video: bool = False) -> None:
    """
    Check MIME type and size before any storage I/O.

    Raises:
        UploadValidationError: wrong type or over the size ceiling
    """
    if file.is_video and allow_video:
        limit, label = MAX_VIDEO_SIZE, "50MB"
    elif file.content_type.startswith("image/"):
        limit, label = MAX_IMAGE_SIZE, "5MB"
    else:
        expected = "an image or video" if allow_video else "an image"
        raise UploadValidationError(
            f"Invalid file type: {file.content_type}. Must be {expected}.",
            constraint="type",
            file_name=file.name,
        )

    if file.size > limit:
        raise UploadValidationError(
            f"File too large: {file.size / 1024 / 1024:.2f}MB. Maximum {label} allowed.",
            constraint="size",
            file_name=file.name,
        )


def alt_from_filename(filename: str) -> str:
    stem = PurePosixPath(filename).stem
    return re.sub(r"[-_]", " ", stem)


def make_media_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"media_{int(time.time() * 1000)}_{suffix}"


@dataclass
class MediaItem:
    id: str
    name: str
    url: str
    type: str
    category: str
    alt: str
    size: int
    uploadDate: str

    @classmethod
    def from_upload(
        cls,
        file: UploadFile,
        url: str,
        category: str,
        media_id: Optional[str] = None,
    ) -> MediaItem:
        return cls(
            id=media_id or make_media_id(),
            name=file.name,
            url=url,
            type="video" if file.is_video else "image",
            category=category,
            alt=alt_from_filename(file.name),
            size=file.size,
            uploadDate=utc_now_iso(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
