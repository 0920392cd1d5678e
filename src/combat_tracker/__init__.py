"""Initiative and turn-order combat engine for tabletop encounters."""

__version__ = "0.1.0"
