"""Exception hierarchy for the scheduling engine.

Configuration problems are reported through ``ConfigValidation`` values
and never appear here.
"""


class CadenceError(Exception):
    """Base class for all engine errors."""


class InvalidItemDataError(CadenceError, ValueError):
    """Raised when an item is structurally malformed (missing id or numeric fields)."""


class UnknownAlgorithmError(CadenceError, LookupError):
    """Raised when constructing an algorithm that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Algorithm '{name}' is not registered")
        self.name = name


class SessionStateError(CadenceError, RuntimeError):
    """Raised when a session operation is not allowed in the current state."""
