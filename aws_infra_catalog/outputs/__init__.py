"""Output generation for discovered catalogs."""

from .json_generator import CatalogJSONGenerator, OutputError

__all__ = ["CatalogJSONGenerator", "OutputError"]
