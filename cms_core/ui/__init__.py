# =============================================================================
# cms_core/ui/__init__.py
# Streamlit Admin Components
# =============================================================================

from .runtime import AdminRuntime, BackgroundLoop, get_admin_runtime, config_with_streamlit_secrets
from .storage_panel import render_storage_panel

__all__ = [
    "AdminRuntime",
    "BackgroundLoop",
    "get_admin_runtime",
    "config_with_streamlit_secrets",
    "render_storage_panel",
]
