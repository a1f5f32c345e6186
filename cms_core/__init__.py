# =============================================================================
# cms_core/__init__.py
# Shyam Trading Company Website CMS - persistence core
# =============================================================================

__version__ = "2.0.0"
