"""
Exceptions and warnings raised by the amesreg pipeline.

Every error subclasses ``ValueError`` so callers that already guard input
validation with ``except ValueError`` keep working.
"""


class AmesRegError(ValueError):
    """Base class for all amesreg errors."""


class ConfigurationError(AmesRegError):
    """Bad column name, empty table, or an invalid analysis parameter."""


class ImputationError(AmesRegError):
    """A numeric column has no observed values to impute from."""


class SingularDesignError(AmesRegError):
    """The design matrix is rank-deficient (aliased predictor terms)."""

    def __init__(self, message, aliased=()):
        super().__init__(message)
        self.aliased = tuple(aliased)


class TooManyCandidatesError(AmesRegError):
    """Best-subset search pool exceeds the configured cap."""


class AICComparabilityWarning(UserWarning):
    """AIC compared across models fitted on different observation counts."""
