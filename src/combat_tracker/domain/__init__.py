"""Pure domain models and rules."""
