"""Exceptions raised while building sparsity patterns.

Key Classes:
    FEPatternError: Base class for all package errors
    ConfigurationError: Malformed coupling specification or options
    PreconditionError: A collaborator is not in the state required
"""


class FEPatternError(Exception):
    """Base class for fepattern errors."""


class ConfigurationError(FEPatternError, ValueError):
    """Raised for a malformed coupling matrix or invalid builder options.

    Examples are a non-square coupling, an asymmetric coupling combined with a
    symmetric pattern, or a coupling whose size matches neither the number of
    fields, the number of components nor the local dofs per element.
    """


class PreconditionError(FEPatternError, RuntimeError):
    """Raised when a DofHandler or ConstraintHandler is used in the wrong state.

    Typical causes are a handler that has not been closed, excluding
    constrained dofs without passing a ConstraintHandler, or modifying a
    handler after it was closed.
    """
