# =============================================================================
# cms_core/hooks/__init__.py
# Data-Access Hooks (one instance per UI surface)
# =============================================================================

from .website_data import WebsiteDataHook
from .categories import CategoriesHook, default_categories

__all__ = ["WebsiteDataHook", "CategoriesHook", "default_categories"]
