"""Service-layer exceptions."""


class CombatTrackerError(Exception):
    """Base class for recoverable combat engine errors."""


class ValidationError(CombatTrackerError):
    """Raised when input is rejected before any state changes."""


class InvalidDurationError(ValidationError):
    """Raised when a timed condition is applied without a positive duration."""


class NotFoundError(CombatTrackerError):
    """Raised when a combatant, condition or actor id does not resolve."""


class DuplicateError(CombatTrackerError):
    """Raised when a uniqueness rule would be broken."""


class DuplicateConditionError(DuplicateError):
    """Raised when a condition type is already applied to the combatant."""


class DuplicateInstanceError(DuplicateError):
    """Raised when the store reports a clashing combatant instance."""


class PersistenceError(CombatTrackerError):
    """Raised when save or load operations fail."""
