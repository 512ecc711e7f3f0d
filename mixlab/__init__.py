"""mixlab - track structure analysis and DJ transition suggestions."""

__version__ = "1.0.0"
