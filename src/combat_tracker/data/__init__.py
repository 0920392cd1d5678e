"""Data layer utilities for the actor library and encounter files."""

from .errors import DataIntegrityError, DataLoadError, DataValidationError
from .paths import get_definitions_path, get_repo_root

__all__ = [
    "DataIntegrityError",
    "DataLoadError",
    "DataValidationError",
    "get_definitions_path",
    "get_repo_root",
]
