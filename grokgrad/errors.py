"""
Error types raised by grokgrad.

Every failure is a programming or configuration mistake surfaced to the
caller immediately; the library never catches its own errors.
"""


class GrokgradError(Exception):
    """Base class for all grokgrad errors."""


class ShapeMismatchError(GrokgradError, ValueError):
    """Operand shapes are incompatible for the requested operation."""


class IndexOutOfRangeError(GrokgradError, IndexError):
    """A row index falls outside the lookup table."""


class ConfigurationError(GrokgradError, ValueError):
    """A layer or operation was given invalid sizes or arguments."""
