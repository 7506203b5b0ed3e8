"""Reference content: the catalog and the bundled classes."""

from typing import Optional
import logging

from sidekick.content.content_catalog import ContentCatalog, validate_class

logger = logging.getLogger(__name__)


def load_builtin_content(catalog: Optional[ContentCatalog] = None) -> ContentCatalog:
    """
    Register the bundled classes, ancestries and backgrounds.

    Args:
        catalog: Catalog to fill; a new one is created if omitted

    Returns:
        The filled catalog
    """
    from sidekick.content.builtin import (
        BUILTIN_ANCESTRIES,
        BUILTIN_BACKGROUNDS,
        BUILTIN_CLASSES,
    )

    catalog = catalog or ContentCatalog()
    for class_def in BUILTIN_CLASSES:
        catalog.register_class(class_def)
    for ancestry in BUILTIN_ANCESTRIES:
        catalog.register_ancestry(ancestry)
    for background in BUILTIN_BACKGROUNDS:
        catalog.register_background(background)
    logger.info(f"Loaded {len(BUILTIN_CLASSES)} built-in classes")
    return catalog


__all__ = ["ContentCatalog", "load_builtin_content", "validate_class"]
