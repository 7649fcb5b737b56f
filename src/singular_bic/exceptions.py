"""
Error taxonomy for the singular BIC package.

Structural and programmer errors (malformed posets, bad data shapes, bad
model ids, unrelated model pairs) surface immediately to the caller.
Fit failures are raised by the model families but caught per model by the
scoring engine, which reports the affected model as unavailable instead of
aborting the whole scoring call.
"""

from typing import Optional


class SingularBICError(Exception):
    """Base class for all errors raised by this package."""


class MalformedPosetError(SingularBICError, ValueError):
    """The model poset has a cycle, a self-loop or edges to unknown models."""


class DimensionMismatchError(SingularBICError, ValueError):
    """The bound data does not match the family's structural parameters."""


class InvalidModelIdError(SingularBICError, IndexError):
    """A model id outside ``1..num_models`` was requested."""


class InvalidRelationError(SingularBICError, ValueError):
    """A learning coefficient was requested for a pair that is not nested."""


class InvalidPenaltyError(SingularBICError, ValueError):
    """A penalty parameter is unknown to the family or out of range."""


class DataNotSetError(SingularBICError, RuntimeError):
    """Data was requested from a family before ``set_data`` was called."""


class FitFailureError(SingularBICError, RuntimeError):
    """
    The fit routine for a model did not produce a usable log-likelihood.

    Raised on non-convergence, non-finite log-likelihoods and timeouts.
    The fit cache is left unset so that a retry is possible.
    """

    def __init__(self, message: str, model: Optional[int] = None):
        super().__init__(message)
        self.model = model
