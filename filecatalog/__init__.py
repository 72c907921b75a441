"""FileCatalog: a queryable catalog of a local directory tree."""

__version__ = "0.1.0"
