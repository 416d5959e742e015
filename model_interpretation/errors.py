"""
Error taxonomy for the interpretation engine.

All errors derive from ``InterpretationError``, itself a ``ValueError``, so
callers that already treat bad input as ``ValueError`` (the API layer does)
keep working unchanged.
"""


class InterpretationError(ValueError):
    """Base class for every error raised by the interpretation services."""


class InvalidConfiguration(InterpretationError):
    """Bad repetition count, unknown mode/loss, or a loss undefined for the response."""


class InvalidFeature(InterpretationError):
    """A referenced feature name is absent from the dataset."""

    def __init__(self, feature, available=None):
        self.feature = feature
        self.available = list(available) if available is not None else []
        msg = f"Feature '{feature}' not found."
        if self.available:
            msg += f" Available: {self.available}"
        super().__init__(msg)


class EmptyDomain(InterpretationError):
    """A feature has no observed values to build a grid from."""


class InsufficientVariance(InterpretationError):
    """The denominator of an H-statistic is (near) zero."""
