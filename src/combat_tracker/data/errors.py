"""Custom exceptions for data loading and storage."""


class DataError(Exception):
    """Base exception for the data layer."""


class DataLoadError(DataError):
    """Raised when JSON files are missing or invalid."""


class DataValidationError(DataError):
    """Raised when JSON content fails structural validation."""


class DataIntegrityError(DataError):
    """Raised when a write would break a uniqueness constraint of the store."""
