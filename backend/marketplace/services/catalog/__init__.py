"""
Extension Catalog Module

Usage:
    from marketplace.services.catalog import ExtensionCatalog, ExtensionMedia

    catalog = ExtensionCatalog(db)
    extension = catalog.create(publisher, spec)
    ExtensionMedia(db, storage).set_icon(publisher, extension, data, "image/png")
"""

from .catalog import ExtensionCatalog  # noqa: F401
from .media import ExtensionMedia  # noqa: F401

__all__ = ["ExtensionCatalog", "ExtensionMedia"]
