from .logger_setup import setup_logger
# LOGGING
logger = setup_logger(__name__)

# Import modules
from . import errors
from . import dofs
from . import pattern

from .errors import ConfigurationError, PreconditionError
from .dofs import DofHandler, ConstraintHandler, AffineConstraint
from .pattern import build_pattern, build_symmetric_pattern, SymmetricPattern

__version__ = "0.1.0"
